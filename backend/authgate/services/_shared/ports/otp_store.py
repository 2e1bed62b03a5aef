from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Protocol


@dataclass(frozen=True)
class OtpEntry:
    """
    Outstanding passcode for one email.

    :ivar digest: HMAC of the code; the code itself is never stored.
    :ivar attempts: Wrong guesses so far.
    """

    digest: str
    attempts: int = 0


class OtpStore(Protocol):
    """Short-lived passcode storage keyed by normalized email."""

    def put(self, email: str, digest: str, ttl_seconds: int) -> None:
        """Store ``digest`` for ``email``, replacing any outstanding code."""

    def get(self, email: str) -> OtpEntry | None:
        """Return the unexpired entry for ``email`` (if present)."""

    def incr_attempts(self, email: str) -> int:
        """Count one wrong guess; return the new total (0 when no entry)."""

    def delete(self, email: str) -> bool:
        """Remove the entry. :returns: ``True`` if this call removed it."""


class InMemoryOtpStore(OtpStore):
    """Process-local passcode store with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[OtpEntry, float]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def _live(self, email: str) -> OtpEntry | None:
        item = self._entries.get(email)
        if item is None:
            return None
        entry, deadline = item
        if deadline <= self._clock():
            del self._entries[email]
            return None
        return entry

    def put(self, email: str, digest: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[email] = (OtpEntry(digest=digest), self._clock() + ttl_seconds)

    def get(self, email: str) -> OtpEntry | None:
        with self._lock:
            return self._live(email)

    def incr_attempts(self, email: str) -> int:
        with self._lock:
            entry = self._live(email)
            if entry is None:
                return 0
            _, deadline = self._entries[email]
            bumped = replace(entry, attempts=entry.attempts + 1)
            self._entries[email] = (bumped, deadline)
            return bumped.attempts

    def delete(self, email: str) -> bool:
        with self._lock:
            return self._entries.pop(email, None) is not None
