from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from authgate.services.tokens.claims import ClaimSet

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True, slots=True)
class DecodedToken:
    """
    Validated token contents.

    :ivar claims: User claims (registered claims removed).
    :ivar expires_at: ``exp`` as an aware UTC datetime.
    :ivar token_type: ``"access"`` or ``"refresh"``.
    :ivar jti: Unique token identifier, when present.
    """

    claims: ClaimSet
    expires_at: datetime
    token_type: str | None = None
    jti: str | None = None

    @property
    def subject(self) -> str | None:
        return self.claims.identity


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Current-user view returned by ``/me``."""

    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    roles: list[str] = field(default_factory=list)
