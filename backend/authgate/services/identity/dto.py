from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, slots=True)
class UserOut:
    """Public-safe user view (no password hash)."""

    id: int
    email: str
    username: str
    full_name: str | None = None


class SignInStatus(str, Enum):
    SUCCEEDED = "succeeded"
    LOCKED_OUT = "locked_out"
    NOT_ALLOWED = "not_allowed"
    REQUIRES_TWO_FACTOR = "requires_two_factor"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SignInOutcome:
    """
    Result of a password check.

    :ivar status: What happened.
    :ivar user: The matched user, set whenever the identifier resolved.
    """

    status: SignInStatus
    user: UserOut | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SignInStatus.SUCCEEDED
