"""User account, role and claim models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import check_password_hash, generate_password_hash

from authgate.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

# Many-to-many join between users and roles
user_roles = db.Table(
    "user_roles",
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


def normalize_email(value: str) -> str:
    """Lowercase and trim an email address; raise ``ValueError`` when malformed."""
    if not value or not isinstance(value, str):
        raise ValueError("Email is required.")
    v = value.strip().lower()
    # Minimal sanity check; full validation happens at API layer.
    if "@" not in v or "." not in v.split("@")[-1]:
        raise ValueError("Email format looks invalid.")
    return v


class Role(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """Named role carried in the ``role`` claim of issued tokens."""

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_roles_name"),)

    users: Mapped[list[User]] = relationship(
        "User", secondary=user_roles, back_populates="roles"
    )


class UserClaim(PKMixin, ReprMixin, db.Model):
    """Arbitrary ``(type, value)`` claim attached to a user."""

    __tablename__ = "user_claims"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    claim_type: Mapped[str] = mapped_column(String(100), nullable=False)
    claim_value: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (Index("ix_user_claims_user_id", "user_id"),)

    user: Mapped[User] = relationship("User", back_populates="claims")


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authenticated account.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    password_hash : str
        Hashed password (write-only setter via ``password``).
    username : str
        Public handle, unique per system. Also accepted as a login identifier.
    full_name : str | None
        Optional real name; split into first/last name for profile output.
    is_active : bool
        Inactive accounts are refused at sign-in (``NOT_ALLOWED``).
    two_factor_enabled : bool
        Sign-in with a correct password still requires a second factor.
    failed_login_count : int
        Consecutive wrong passwords since the last success.
    lockout_end : datetime | None
        Sign-in is refused until this instant (``LOCKED_OUT``).
    """

    __tablename__ = "users"

    # Columns
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failed_login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lockout_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Constraints & indexes
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("username", name="uq_users_username"),
        Index("ix_users_email", "email"),
        Index("ix_users_username", "username"),
    )

    # Relationships
    roles: Mapped[list[Role]] = relationship(
        "Role", secondary=user_roles, back_populates="users", lazy="selectin"
    )
    claims: Mapped[list[UserClaim]] = relationship(
        "UserClaim",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, raw))

    @property
    def role_names(self) -> list[str]:
        """Role names sorted for stable token payloads."""
        return sorted(role.name for role in self.roles)

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return normalize_email(value)

    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        if not isinstance(value, str):
            raise ValueError("Username is required.")
        v = value.strip()
        if not v:
            raise ValueError("Username is required.")
        return v
