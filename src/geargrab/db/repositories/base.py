"""Base repository shared by the GearGrab tables.

Repositories wrap one AsyncSession. Stores that outlive a request open a
session per operation and build a repository inside it.

Usage:
    from geargrab.db.repositories.base import BaseRepository

    class AccountRepository(BaseRepository[UserAccount, UUID]):
        pass

    async with session_factory() as session:
        account = await AccountRepository(session).get(user_id)
"""

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from geargrab.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
PKType = TypeVar("PKType", bound=UUID | int | str)


class BaseRepository(Generic[ModelType, PKType]):
    """Generic repository for SQLAlchemy models.

    Attributes:
        model: The model class, taken from the first generic parameter
        db: The database session
    """

    model: type[ModelType]

    def __init__(self, db: AsyncSession):
        self.db = db

    def __init_subclass__(cls, **kwargs):
        """Extract model type from generic parameter."""
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            args = getattr(base, "__args__", None)
            if args and isinstance(args[0], type) and issubclass(args[0], Base):
                cls.model = args[0]
                break

    async def get(self, pk: PKType) -> ModelType | None:
        """Get a single row by primary key, bypassing the identity map."""
        return await self.db.get(self.model, pk, populate_existing=True)

    async def create(self, obj: ModelType, *, commit: bool = True) -> ModelType:
        """Insert a row.

        Args:
            obj: Model instance to insert
            commit: Commit now, or only flush into the open transaction

        Raises:
            IntegrityError: On a unique constraint violation; the caller
                rolls back and decides what the conflict means.
        """
        self.db.add(obj)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
        return obj
