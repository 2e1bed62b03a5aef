"""
authgate.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) that the account services
depend on.

Modules
-------
- :mod:`token_codec`:
    :class:`~.TokenCodec`, signing and validating claim sets.
- :mod:`refresh_store`:
    :class:`~.RefreshStore` and :class:`~.RefreshRecord`, one session record
    per user with compare-and-set writes.
- :mod:`identity_provider`:
    :class:`~.IdentityProvider`, user lookup, sign-in and creation.
- :mod:`otp_store`:
    :class:`~.OtpStore`, hashed one-time passcodes with TTL and attempts.
- :mod:`email_sender`:
    :class:`~.EmailSender`, passcode delivery.

Concrete Redis, PyJWT and SMTP adapters live under ``authgate.infra``; the
in-memory variants here back local runs without Redis and the unit tests.
"""

from __future__ import annotations

from .email_sender import EmailSender
from .identity_provider import IdentityProvider
from .otp_store import InMemoryOtpStore, OtpEntry, OtpStore
from .refresh_store import InMemoryRefreshStore, RefreshRecord, RefreshStore
from .token_codec import TokenCodec

__all__ = [
    "EmailSender",
    "IdentityProvider",
    "InMemoryOtpStore",
    "InMemoryRefreshStore",
    "OtpEntry",
    "OtpStore",
    "RefreshRecord",
    "RefreshStore",
    "TokenCodec",
]
