"""
OtpService
==========

Issues and verifies short numeric passcodes bound to an email address.

Codes are stored as an HMAC-SHA-256 digest keyed with the application
secret, so a leaked store does not reveal live codes. Each email has at most
one outstanding code; issuing again replaces it.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets

from authgate.core.logger import redact_email
from authgate.services._shared.ports import IdentityProvider, OtpStore
from authgate.services.otp.dto import CodeVerification

log = logging.getLogger(__name__)


class OtpService:
    """
    One-time passcode issuer/verifier.

    :param store: Passcode storage.
    :param identity: Used to attach the existing user (if any) to a
        successful verification.
    :param secret: HMAC key for stored digests.
    :param length: Number of digits.
    :param ttl_seconds: Code lifetime.
    :param max_attempts: Wrong guesses allowed before the code is discarded.
    """

    def __init__(
        self,
        store: OtpStore,
        identity: IdentityProvider,
        secret: str,
        *,
        length: int = 6,
        ttl_seconds: int = 300,
        max_attempts: int = 5,
    ) -> None:
        if not secret:
            raise ValueError("OTP secret must be non-empty.")
        self.store = store
        self.identity = identity
        self._secret = secret.encode("utf-8")
        self.length = max(4, int(length))
        self.ttl_seconds = int(ttl_seconds)
        self.max_attempts = max(1, int(max_attempts))

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def _digest(self, email: str, code: str) -> str:
        message = f"{self._key(email)}:{code}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def issue_code(self, email: str) -> str:
        """
        Generate a fresh code for ``email`` and store its digest.

        :returns: The plain code, to be emailed and then forgotten.
        :raises RedisError: Callers convert storage failures.
        """
        code = "".join(secrets.choice("0123456789") for _ in range(self.length))
        self.store.put(self._key(email), self._digest(email, code), self.ttl_seconds)
        log.info("otp.issued", extra={"email": redact_email(email)})
        return code

    def verify_code(self, email: str, code: str) -> CodeVerification:
        """
        Check ``code`` against the outstanding passcode for ``email``.

        A match consumes the code. A miss counts one attempt; reaching
        ``max_attempts`` discards the code.

        :returns: :class:`CodeVerification` with the existing user (if any).
        :raises RedisError | SQLAlchemyError: Callers convert storage failures.
        """
        key = self._key(email)
        entry = self.store.get(key)
        if entry is None:
            return CodeVerification(verified=False)

        candidate = self._digest(email, (code or "").strip())
        if not hmac.compare_digest(entry.digest, candidate):
            attempts = self.store.incr_attempts(key)
            if attempts >= self.max_attempts:
                self.store.delete(key)
                log.warning("otp.exhausted", extra={"email": redact_email(email)})
            return CodeVerification(verified=False)

        # Only the caller that actually removes the entry wins
        if not self.store.delete(key):
            return CodeVerification(verified=False)

        return CodeVerification(verified=True, user=self.identity.find_by_email(key))

    def has_outstanding(self, email: str) -> bool:
        """Return ``True`` while ``email`` holds an unexpired, unexhausted code."""
        return self.store.get(self._key(email)) is not None

    def revoke(self, email: str) -> None:
        """Discard any outstanding code for ``email``."""
        self.store.delete(self._key(email))
