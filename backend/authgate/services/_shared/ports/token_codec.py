from __future__ import annotations

from datetime import timedelta
from typing import Protocol

from authgate.services._shared.result import Result
from authgate.services.tokens.claims import ClaimSet
from authgate.services.tokens.dto import DecodedToken


class TokenCodec(Protocol):
    """Port for signing claim sets into tokens and validating them back."""

    def encode(
        self,
        claims: ClaimSet,
        secret: str,
        expires_delta: timedelta,
        *,
        token_type: str,
        jti: str | None = None,
    ) -> str: ...

    def decode(
        self, token: str, secret: str, *, verify_exp: bool = True
    ) -> Result[DecodedToken]:
        """
        Validate ``token`` under ``secret``.

        Structural, algorithm and signature checks always run; ``verify_exp``
        only controls the expiry check.
        """
        ...
