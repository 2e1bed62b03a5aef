from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from authgate.services._shared.errors import Reason
from authgate.services._shared.ports import TokenCodec
from authgate.services._shared.result import Err, Ok, Result
from authgate.services.tokens.claims import ClaimSet
from authgate.services.tokens.dto import DecodedToken

log = logging.getLogger(__name__)

ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PyJWTTokenCodec(TokenCodec):
    """
    HS256 JWT codec backed by PyJWT.

    Secrets are passed per call because access and refresh tokens are signed
    with different keys.

    :param clock: Source of "now" for ``iat``/``exp`` on encode. Decoding
        relies on PyJWT's own clock.
    """

    clock: Callable[[], datetime] = field(default=_utcnow)

    def encode(
        self,
        claims: ClaimSet,
        secret: str,
        expires_delta: timedelta,
        *,
        token_type: str,
        jti: str | None = None,
    ) -> str:
        now = self.clock()
        payload: dict[str, Any] = claims.to_payload()
        payload["iat"] = int(now.timestamp())
        payload["exp"] = int((now + expires_delta).timestamp())
        payload["type"] = token_type
        if jti is not None:
            payload["jti"] = jti
        return jwt.encode(payload, secret, algorithm=ALGORITHM)

    def decode(
        self, token: str, secret: str, *, verify_exp: bool = True
    ) -> Result[DecodedToken]:
        """
        Validate ``token`` and return its claims.

        Check order: structure, then header algorithm, then signature, then
        expiry (only when ``verify_exp``).

        :param token: Compact JWT.
        :param secret: HMAC key the token must be signed with.
        :param verify_exp: Whether an elapsed ``exp`` is a failure.
        :returns: :class:`DecodedToken` or one of ``MALFORMED``,
            ``ALGORITHM_MISMATCH``, ``SIGNATURE_INVALID``, ``EXPIRED``.
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError:
            return Err(Reason.MALFORMED, "Token could not be parsed")

        if header.get("alg") != ALGORITHM:
            return Err(Reason.ALGORITHM_MISMATCH, "Token algorithm is not accepted")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": verify_exp, "require": ["exp"]},
            )
        # Subclass of DecodeError; must come first
        except jwt.InvalidSignatureError:
            return Err(Reason.SIGNATURE_INVALID, "Token signature is invalid")
        except jwt.ExpiredSignatureError:
            return Err(Reason.EXPIRED, "Token has expired")
        except jwt.InvalidTokenError as exc:
            log.debug("token rejected: %s", exc.__class__.__name__)
            return Err(Reason.MALFORMED, "Token could not be parsed")

        try:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return Err(Reason.MALFORMED, "Token expiry is not a timestamp")

        return Ok(
            DecodedToken(
                claims=ClaimSet.from_payload(payload),
                expires_at=expires_at,
                token_type=payload.get("type"),
                jti=payload.get("jti"),
            )
        )
