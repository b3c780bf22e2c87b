"""Account provisioning for candidates who cleared screening.

Provisioning has two steps, identity then profile. Both are idempotent:
repeating a step for the same email or user returns the existing row.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from pydantic import SecretStr
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from uuid_utils.compat import uuid7

from geargrab.core.exceptions import AccountProvisioningError
from geargrab.core.logging import get_logger
from geargrab.db.models.account import UserAccount, UserProfile
from geargrab.db.repositories.account import AccountRepository, ProfileRepository
from geargrab.screening.types import CandidateSummary

from .security import hash_password

logger = get_logger(__name__)


class AccountProvisioner(ABC):
    """Base class for the marketplace account store."""

    @abstractmethod
    async def create_account(
        self,
        email: str,
        credential: SecretStr | None,
        display_name: str,
    ) -> UUID:
        """Create the identity for ``email`` or return the existing one.

        Raises:
            AccountProvisioningError: If the identity cannot be created.
        """
        ...

    @abstractmethod
    async def create_profile(
        self,
        user_id: UUID,
        summary: CandidateSummary,
        screening_record_id: UUID | None = None,
    ) -> None:
        """Create the marketplace profile for ``user_id`` if missing.

        Raises:
            AccountProvisioningError: With ``step="profile"`` on failure.
        """
        ...


# =============================================================================
# In-Memory Provisioner
# =============================================================================


@dataclass
class ProvisionedAccount:
    """An identity held by the in-memory provisioner."""

    user_id: UUID
    email: str
    display_name: str
    password_hash: str | None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryAccountProvisioner(AccountProvisioner):
    """Account store kept in memory for development and tests.

    Args:
        fail_account: Raise on ``create_account`` while set.
        fail_profile: Raise on ``create_profile`` while set.
        hash_credentials: Hash credentials with bcrypt. Tests turn this
            off to skip the bcrypt cost.
    """

    def __init__(
        self,
        fail_account: bool = False,
        fail_profile: bool = False,
        hash_credentials: bool = True,
    ):
        self.fail_account = fail_account
        self.fail_profile = fail_profile
        self.hash_credentials = hash_credentials
        self.accounts: dict[str, ProvisionedAccount] = {}
        self.profiles: dict[UUID, CandidateSummary] = {}
        self.account_calls: list[str] = []
        self.profile_calls: list[UUID] = []

    async def create_account(
        self,
        email: str,
        credential: SecretStr | None,
        display_name: str,
    ) -> UUID:
        self.account_calls.append(email)
        if self.fail_account:
            raise AccountProvisioningError(f"Identity store rejected {email}")

        key = email.lower()
        existing = self.accounts.get(key)
        if existing is not None:
            return existing.user_id

        password_hash = None
        if credential is not None:
            secret = credential.get_secret_value()
            password_hash = hash_password(secret) if self.hash_credentials else "plain:" + secret

        account = ProvisionedAccount(
            user_id=uuid7(),
            email=key,
            display_name=display_name,
            password_hash=password_hash,
        )
        self.accounts[key] = account
        return account.user_id

    async def create_profile(
        self,
        user_id: UUID,
        summary: CandidateSummary,
        screening_record_id: UUID | None = None,
    ) -> None:
        self.profile_calls.append(user_id)
        if self.fail_profile:
            raise AccountProvisioningError(
                f"Profile store rejected user {user_id}", step="profile"
            )
        self.profiles.setdefault(user_id, summary)


# =============================================================================
# Database Provisioner
# =============================================================================


class DatabaseAccountProvisioner(AccountProvisioner):
    """Account store backed by the user_accounts and user_profiles tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_account(
        self,
        email: str,
        credential: SecretStr | None,
        display_name: str,
    ) -> UUID:
        async with self._session_factory() as session:
            repo = AccountRepository(session)
            try:
                existing = await repo.find_by_email(email)
                if existing is not None:
                    logger.info("account_already_exists", user_id=str(existing.user_id))
                    return existing.user_id

                account = UserAccount(
                    user_id=uuid7(),
                    email=email.lower(),
                    display_name=display_name,
                    password_hash=(
                        hash_password(credential.get_secret_value()) if credential else None
                    ),
                )
                await repo.create(account)
                logger.info("account_created", user_id=str(account.user_id))
                return account.user_id
            except IntegrityError:
                # Lost a race with a concurrent create for the same email
                await session.rollback()
                existing = await repo.find_by_email(email)
                if existing is not None:
                    return existing.user_id
                raise AccountProvisioningError(f"Could not create identity for {email}") from None
            except SQLAlchemyError as e:
                raise AccountProvisioningError(
                    f"Identity store error: {type(e).__name__}"
                ) from e

    async def create_profile(
        self,
        user_id: UUID,
        summary: CandidateSummary,
        screening_record_id: UUID | None = None,
    ) -> None:
        async with self._session_factory() as session:
            repo = ProfileRepository(session)
            try:
                if await repo.get(user_id) is not None:
                    return
                await repo.create(
                    UserProfile(
                        user_id=user_id,
                        first_name=summary.first_name,
                        last_name=summary.last_name,
                        display_name=summary.display_name,
                        state=summary.state,
                        is_verified=True,
                        screening_status="clear",
                        screening_record_id=screening_record_id,
                    )
                )
                logger.info("profile_created", user_id=str(user_id))
            except IntegrityError:
                await session.rollback()
                if await repo.get(user_id) is None:
                    raise AccountProvisioningError(
                        f"Could not create profile for {user_id}", step="profile"
                    ) from None
            except SQLAlchemyError as e:
                raise AccountProvisioningError(
                    f"Profile store error: {type(e).__name__}", step="profile"
                ) from e
