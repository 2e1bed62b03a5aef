"""
Domain-level failure taxonomy used within the service layer.

Services never let exceptions cross their public boundary: every failure is
described by a :class:`Reason` (stable, machine-checkable code) which belongs
to exactly one :class:`ErrorKind` category. The translation to HTTP responses
(RFC 7807) is handled by ``authgate/core/errors.py``.

These types are **framework-agnostic** and must never import Flask.
"""

from __future__ import annotations

from enum import Enum

from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy.exc import IntegrityError, SQLAlchemyError


def violates_unique(exc: IntegrityError, *constraint_names: str) -> bool:
    """
    Check whether an IntegrityError is a uniqueness violation.

    PostgreSQL reports the constraint name (``uq_users_email``); SQLite only
    reports ``UNIQUE constraint failed: users.email``. Any listed name, or the
    generic uniqueness wording, counts.
    """
    message = str(exc.orig).lower() if exc.orig else str(exc).lower()
    if any(name.lower() in message for name in constraint_names):
        return True
    return "unique" in message or "duplicate" in message


class ErrorKind(str, Enum):
    """Coarse failure category; tells callers whether to retry or restart."""

    VALIDATION_FAILURE = "validation_failure"
    CONFLICT = "conflict"
    PERSISTENCE_FAILURE = "persistence_failure"
    DISPATCH_FAILURE = "dispatch_failure"
    AUTH_FAILURE = "auth_failure"
    TOKEN_INVALID = "token_invalid"
    NOT_FOUND = "not_found"
    OTP_VERIFICATION_FAILED = "otp_verification_failed"


class Reason(str, Enum):
    """Specific failure code. Sub-kinds are preserved end to end."""

    VALIDATION_FAILED = "validation_failed"

    USER_ALREADY_EXISTS = "user_already_exists"

    PERSISTENCE_FAILURE = "persistence_failure"

    OTP_DISPATCH_FAILURE = "otp_dispatch_failure"

    INVALID_CREDENTIALS = "invalid_credentials"
    LOCKED_OUT = "locked_out"
    NOT_ALLOWED = "not_allowed"
    TWO_FACTOR_REQUIRED = "two_factor_required"

    SIGNATURE_INVALID = "signature_invalid"
    ALGORITHM_MISMATCH = "algorithm_mismatch"
    EXPIRED = "expired"
    MALFORMED = "malformed"

    REFRESH_TOKEN_NOT_FOUND = "refresh_token_not_found"
    USER_ID_MISSING = "user_id_missing"
    USER_NOT_FOUND = "user_not_found"
    OWNER_MISMATCH = "owner_mismatch"

    OTP_VERIFICATION_FAILED = "otp_verification_failed"

    @property
    def kind(self) -> ErrorKind:
        """Return the taxonomy category of this reason."""
        return REASON_KIND[self]


REASON_KIND: dict[Reason, ErrorKind] = {
    Reason.VALIDATION_FAILED: ErrorKind.VALIDATION_FAILURE,
    Reason.USER_ALREADY_EXISTS: ErrorKind.CONFLICT,
    Reason.PERSISTENCE_FAILURE: ErrorKind.PERSISTENCE_FAILURE,
    Reason.OTP_DISPATCH_FAILURE: ErrorKind.DISPATCH_FAILURE,
    Reason.INVALID_CREDENTIALS: ErrorKind.AUTH_FAILURE,
    Reason.LOCKED_OUT: ErrorKind.AUTH_FAILURE,
    Reason.NOT_ALLOWED: ErrorKind.AUTH_FAILURE,
    Reason.TWO_FACTOR_REQUIRED: ErrorKind.AUTH_FAILURE,
    Reason.SIGNATURE_INVALID: ErrorKind.TOKEN_INVALID,
    Reason.ALGORITHM_MISMATCH: ErrorKind.TOKEN_INVALID,
    Reason.EXPIRED: ErrorKind.TOKEN_INVALID,
    Reason.MALFORMED: ErrorKind.TOKEN_INVALID,
    Reason.REFRESH_TOKEN_NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.USER_ID_MISSING: ErrorKind.NOT_FOUND,
    Reason.USER_NOT_FOUND: ErrorKind.NOT_FOUND,
    Reason.OWNER_MISMATCH: ErrorKind.NOT_FOUND,
    Reason.OTP_VERIFICATION_FAILED: ErrorKind.OTP_VERIFICATION_FAILED,
}


# Transport/storage failures raised by collaborators at their I/O points.
# Services catch exactly these and convert them into a tagged failure.
COLLABORATOR_ERRORS: tuple[type[BaseException], ...] = (
    RedisError,
    SQLAlchemyError,
    OSError,
)
