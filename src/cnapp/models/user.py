from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserRecord(Base):
    """
    Storage shape of a user.

    The domain-facing `User` (see `cnapp.services.user_service`) carries the
    same fields with timestamps rendered as RFC 3339 strings.
    """
    __tablename__ = "users"

    # Engine-assigned identifier
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    role: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Soft-deactivation toggle
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Both timestamps are written by the repository (UTC), never by the engine.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<UserRecord(id={self.id!r}, name={self.name!r}, email={self.email!r})>"
