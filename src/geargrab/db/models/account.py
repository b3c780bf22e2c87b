"""Marketplace user account and profile models."""

from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableUUID, TimestampMixin


class UserAccount(Base, TimestampMixin):
    """Identity created for a candidate who cleared screening."""

    __tablename__ = "user_accounts"

    user_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email_verified: Mapped[bool] = mapped_column(default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<UserAccount(id={self.user_id})>"


class UserProfile(Base, TimestampMixin):
    """Marketplace profile attached to a user account."""

    __tablename__ = "user_profiles"

    user_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("user_accounts.user_id"), primary_key=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    is_verified: Mapped[bool] = mapped_column(default=False, nullable=False)
    screening_status: Mapped[str] = mapped_column(String(30), nullable=False)
    screening_record_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    def __repr__(self) -> str:
        return f"<UserProfile(user_id={self.user_id})>"
