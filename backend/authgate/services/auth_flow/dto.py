"""
DTOs for the two-phase authentication flow.

Login:        ANONYMOUS → CREDENTIALS_SUBMITTED → OTP_PENDING → AUTHENTICATED
Registration: ANONYMOUS → REGISTRATION_SUBMITTED → TEMP_STORED → OTP_PENDING
              → AUTHENTICATED
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from authgate.services.registration.dto import RegistrationIn


class FlowState(str, Enum):
    ANONYMOUS = "anonymous"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    REGISTRATION_SUBMITTED = "registration_submitted"
    TEMP_STORED = "temp_stored"
    OTP_PENDING = "otp_pending"
    AUTHENTICATED = "authenticated"


# --------------------------------------------------------------------------- #
# Input
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    :param identifier: Username or email.
    :type identifier: str
    :param password: Raw password.
    :type password: str
    """

    identifier: str
    password: str


@dataclass(frozen=True, slots=True)
class ConfirmCodeIn:
    email: str
    code: str


# --------------------------------------------------------------------------- #
# Output
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class FlowStep:
    """Where the caller stands after a successful step."""

    state: FlowState
    email: str


@dataclass(frozen=True, slots=True)
class SessionOut:
    """Authenticated session handed out after passcode confirmation."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    state: FlowState = FlowState.AUTHENTICATED


__all__ = [
    "ConfirmCodeIn",
    "FlowState",
    "FlowStep",
    "LoginIn",
    "RegistrationIn",
    "SessionOut",
]
