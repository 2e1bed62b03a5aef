# comments in English; reST docstrings
from __future__ import annotations

import hashlib
from dataclasses import dataclass

import redis  # type: ignore[import-untyped]

from authgate.services._shared.ports import RefreshRecord, RefreshStore


def _s(value: bytes | str | None) -> str | None:
    if value is None:
        return None
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


@dataclass(slots=True)
class RedisRefreshStore(RefreshStore):
    """
    Redis-backed refresh store, one hash per user.

    Layout
    ------
    ``{prefix}:user:{user_id}``
        Hash with ``access_token`` and ``refresh_token`` fields.
    ``{prefix}:token:{sha256(refresh_token)}``
        User id owning that refresh token; expires with the refresh horizon.
        Re-pointed on every refresh-token write so superseded tokens stop
        resolving.

    :param r: A Redis client (already connected).
    :param refresh_ttl_seconds: Lifetime of the refresh-token index keys.
    """

    r: redis.Redis
    refresh_ttl_seconds: int
    prefix: str = "refresh"

    # -------------------- helpers --------------------

    def _ku(self, user_id: str) -> str:
        return f"{self.prefix}:user:{user_id}"

    def _kt(self, refresh_token: str) -> str:
        digest = hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()
        return f"{self.prefix}:token:{digest}"

    def _record(self, user_id: str, h: dict) -> RefreshRecord | None:
        if not h:
            return None
        return RefreshRecord(
            user_id=user_id,
            access_token=_s(h.get(b"access_token") or h.get("access_token")),
            refresh_token=_s(h.get(b"refresh_token") or h.get("refresh_token")),
        )

    # -------------------- API ------------------------

    def find_by_user(self, user_id: str) -> RefreshRecord | None:
        uid = str(user_id)
        return self._record(uid, self.r.hgetall(self._ku(uid)))

    def find_by_refresh_token(self, refresh_token: str) -> RefreshRecord | None:
        uid = _s(self.r.get(self._kt(refresh_token)))
        if uid is None:
            return None
        record = self.find_by_user(uid)
        # Index may briefly outlive a rotation; the hash is authoritative
        if record is None or record.refresh_token != refresh_token:
            return None
        return record

    def find_by_user_and_refresh_token(
        self, user_id: str, refresh_token: str
    ) -> RefreshRecord | None:
        record = self.find_by_user(user_id)
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
        """
        Create or update the user's record atomically.

        Uses Redis WATCH/MULTI/EXEC (optimistic locking) on the user hash;
        a concurrent writer makes EXEC fail and the loop re-reads.
        """
        uid = str(user_id)
        k_user = self._ku(uid)

        mapping: dict[str, str] = {}
        if access_token is not None:
            mapping["access_token"] = access_token
        if refresh_token is not None:
            mapping["refresh_token"] = refresh_token

        # Retry loop for optimistic locking in case of concurrent modifications
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_user)
                    current = _s(p.hget(k_user, "refresh_token"))

                    if expected_refresh_token is not None and current != expected_refresh_token:
                        p.unwatch()
                        return False

                    p.multi()
                    p.hset(k_user, "user_id", uid)
                    if mapping:
                        p.hset(k_user, mapping=mapping)
                    if refresh_token is not None:
                        if current is not None and current != refresh_token:
                            p.delete(self._kt(current))
                        p.set(self._kt(refresh_token), uid, ex=max(1, self.refresh_ttl_seconds))
                    p.execute()
                return True
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue
