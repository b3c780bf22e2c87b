"""User account and profile repositories."""

from uuid import UUID

from sqlalchemy import func, select

from geargrab.db.models.account import UserAccount, UserProfile

from .base import BaseRepository


class AccountRepository(BaseRepository[UserAccount, UUID]):
    """Queries over user_accounts."""

    async def find_by_email(self, email: str) -> UserAccount | None:
        stmt = select(UserAccount).where(func.lower(UserAccount.email) == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()


class ProfileRepository(BaseRepository[UserProfile, UUID]):
    """Queries over user_profiles."""
