"""Staged registrations awaiting email confirmation."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from authgate.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin, as_utc
from .user import normalize_email

# --- Lifecycle ---
STAGED = "STAGED"
PENDING = "PENDING"
PROMOTED = "PROMOTED"

RegistrationStatus = Enum(STAGED, PENDING, PROMOTED, name="registration_status")


class TempRegistration(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Registration details held until the emailed passcode is confirmed.

    A record starts ``STAGED``; it becomes ``PENDING`` once the passcode has
    been dispatched and ``PROMOTED`` when a :class:`User` was created from it.
    Only the password hash is ever stored.

    Fields
    ------
    email : str
        Normalized email; not unique so a failed dispatch can be retried.
    username : str
        Requested public handle.
    full_name : str | None
        Optional real name copied onto the user at promotion.
    password_hash : str
        Hash computed when the registration was accepted.
    status : str
        One of ``STAGED``, ``PENDING`` or ``PROMOTED``.
    expires_at : datetime
        After this instant the record can no longer be promoted.
    promoted_user_id : int | None
        Identifier of the user created from this record.
    """

    __tablename__ = "temp_registrations"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    status: Mapped[str] = mapped_column(RegistrationStatus, nullable=False, default=STAGED)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    promoted_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_temp_registrations_email", "email"),
        Index("ix_temp_registrations_username", "username"),
    )

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` once ``now`` has reached :attr:`expires_at`."""
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and expires_at <= now

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return normalize_email(value)

    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        v = (value or "").strip()
        if not v:
            raise ValueError("Username is required.")
        return v
