from __future__ import annotations

from dataclasses import dataclass, field

import redis  # type: ignore[import-untyped]
from redis.commands.core import Script  # type: ignore[import-untyped]

from authgate.services._shared.ports import OtpEntry, OtpStore

# Increment only a live hash; HINCRBY alone would resurrect an expired key without a TTL
_INCR_IF_EXISTS = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
return redis.call('HINCRBY', KEYS[1], 'attempts', 1)
"""


@dataclass(slots=True)
class RedisOtpStore(OtpStore):
    """
    Redis-backed passcode store.

    Each email maps to a hash ``{prefix}:{email}`` holding ``digest`` and
    ``attempts``; the key's TTL is the passcode lifetime.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis
    prefix: str = "otp"
    _incr: Script = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._incr = self.r.register_script(_INCR_IF_EXISTS)

    def _k(self, email: str) -> str:
        return f"{self.prefix}:{email}"

    def put(self, email: str, digest: str, ttl_seconds: int) -> None:
        key = self._k(email)
        with self.r.pipeline(transaction=True) as p:
            p.delete(key)
            p.hset(key, mapping={"digest": digest, "attempts": "0"})
            p.expire(key, max(1, int(ttl_seconds)))
            p.execute()

    def get(self, email: str) -> OtpEntry | None:
        h = self.r.hgetall(self._k(email))
        if not h:
            return None
        digest = h.get(b"digest")
        attempts = h.get(b"attempts", b"0")
        if digest is None:
            return None
        return OtpEntry(digest=digest.decode(), attempts=int(attempts))

    def incr_attempts(self, email: str) -> int:
        return int(self._incr(keys=[self._k(email)]))

    def delete(self, email: str) -> bool:
        return bool(self.r.delete(self._k(email)))
