from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Protocol


@dataclass(frozen=True)
class RefreshRecord:
    """
    Per-user session record.

    :ivar user_id: Owner user id (string form).
    :ivar access_token: Most recently issued access token.
    :ivar refresh_token: Most recently issued refresh token, if any.
    """

    user_id: str
    access_token: str | None = None
    refresh_token: str | None = None


class RefreshStore(Protocol):
    """
    Keyed store of at most one :class:`RefreshRecord` per user.

    Lookups by refresh token must be exact: a superseded token never finds
    the record again. ``upsert`` MUST be atomic.
    """

    def find_by_user(self, user_id: str) -> RefreshRecord | None:
        """Return the record owned by ``user_id`` (if present)."""

    def find_by_refresh_token(self, refresh_token: str) -> RefreshRecord | None:
        """Return the record whose *current* refresh token equals ``refresh_token``."""

    def find_by_user_and_refresh_token(
        self, user_id: str, refresh_token: str
    ) -> RefreshRecord | None:
        """Return the record only when both keys match."""

    def upsert(
        self,
        user_id: str,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
        expected_refresh_token: str | None = None,
    ) -> bool:
        """
        Create or update the record for ``user_id``.

        Fields passed as ``None`` keep their stored value. When
        ``expected_refresh_token`` is given the write only happens if the
        stored refresh token still equals it (compare-and-set).

        :returns: ``False`` when the expectation was not met; nothing is written.
        """


class InMemoryRefreshStore(RefreshStore):
    """
    Process-local refresh store.

    .. note::
       A threading lock makes ``upsert`` atomic across request threads.
    """

    def __init__(self) -> None:
        self._by_user: dict[str, RefreshRecord] = {}
        self._by_token: dict[str, str] = {}
        self._lock = threading.Lock()

    def find_by_user(self, user_id: str) -> RefreshRecord | None:
        with self._lock:
            return self._by_user.get(str(user_id))

    def find_by_refresh_token(self, refresh_token: str) -> RefreshRecord | None:
        with self._lock:
            user_id = self._by_token.get(refresh_token)
            return self._by_user.get(user_id) if user_id is not None else None

    def find_by_user_and_refresh_token(
        self, user_id: str, refresh_token: str
    ) -> RefreshRecord | None:
        with self._lock:
            record = self._by_user.get(str(user_id))
            if record is None or record.refresh_token != refresh_token:
                return None
            return record

    def upsert(
        self,
        user_id: str,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
        expected_refresh_token: str | None = None,
    ) -> bool:
        key = str(user_id)
        with self._lock:
            current = self._by_user.get(key) or RefreshRecord(user_id=key)
            if expected_refresh_token is not None and current.refresh_token != expected_refresh_token:
                return False

            updated = replace(
                current,
                access_token=access_token if access_token is not None else current.access_token,
                refresh_token=refresh_token if refresh_token is not None else current.refresh_token,
            )
            if refresh_token is not None and current.refresh_token is not None:
                self._by_token.pop(current.refresh_token, None)
            if refresh_token is not None:
                self._by_token[refresh_token] = key
            self._by_user[key] = updated
            return True
