"""
DTOs for the registration staging service.

A registration is held as a temporary record until the emailed passcode is
confirmed, at which point it is promoted into a permanent user.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# --------------------------------------------------------------------------- #
# Input
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegistrationIn:
    """
    Registration request.

    :param email: Login email (normalized to lowercase+trim on write).
    :type email: str
    :param username: Public handle (unique once promoted).
    :type username: str
    :param password: Raw password; hashed before anything is stored.
    :type password: str
    :param full_name: Optional real name.
    :type full_name: str | None
    """

    email: str
    username: str
    password: str
    full_name: str | None = None


# --------------------------------------------------------------------------- #
# Output
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class TempRegistrationOut:
    """
    Snapshot of a staged registration.

    :param status: ``STAGED``, ``PENDING`` or ``PROMOTED``.
    :type status: str
    :param password_hash: Hash handed to user creation at promotion.
    :type password_hash: str
    """

    id: int
    email: str
    username: str
    full_name: str | None
    password_hash: str
    status: str
    expires_at: datetime
