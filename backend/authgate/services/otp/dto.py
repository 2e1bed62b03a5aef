from __future__ import annotations

from dataclasses import dataclass

from authgate.services.identity.dto import UserOut


@dataclass(frozen=True, slots=True)
class CodeVerification:
    """
    Outcome of checking a passcode.

    :ivar verified: The code matched and has been consumed.
    :ivar user: Existing user owning the email, if any. ``None`` with
        ``verified=True`` means the email belongs to a pending registration.
    """

    verified: bool
    user: UserOut | None = None
