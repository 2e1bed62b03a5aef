"""
Claim values embedded in issued tokens.

A :class:`ClaimSet` is an ordered collection of ``(type, value)`` pairs.
On the wire, claims are grouped by type: a type seen once becomes a scalar,
a repeated type (typically ``role``) becomes a list.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

IDENTITY_CLAIM = "sub"
ROLE_CLAIM = "role"

# Registered/transport keys that never become user claims
RESERVED_CLAIMS = frozenset({"exp", "iat", "nbf", "jti", "type"})


@dataclass(frozen=True, slots=True)
class Claim:
    """A typed fact about a user, e.g. identity or role."""

    type: str
    value: str


class ClaimSet:
    """Immutable, ordered sequence of :class:`Claim` values."""

    __slots__ = ("_claims",)

    def __init__(self, claims: Iterable[Claim] = ()) -> None:
        self._claims: tuple[Claim, ...] = tuple(claims)

    def __iter__(self) -> Iterator[Claim]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClaimSet):
            return NotImplemented
        return self._claims == other._claims

    def __repr__(self) -> str:
        return f"ClaimSet({list(self._claims)!r})"

    def first(self, claim_type: str) -> str | None:
        """Return the first value of ``claim_type`` or ``None``."""
        for claim in self._claims:
            if claim.type == claim_type:
                return claim.value
        return None

    def values(self, claim_type: str) -> list[str]:
        return [c.value for c in self._claims if c.type == claim_type]

    @property
    def identity(self) -> str | None:
        return self.first(IDENTITY_CLAIM)

    def to_payload(self) -> dict[str, Any]:
        """Group claims by type into a JWT payload fragment."""
        payload: dict[str, Any] = {}
        for claim in self._claims:
            if claim.type in RESERVED_CLAIMS:
                raise ValueError(f"Claim type {claim.type!r} is reserved.")
            current = payload.get(claim.type)
            if current is None:
                payload[claim.type] = claim.value
            elif isinstance(current, list):
                current.append(claim.value)
            else:
                payload[claim.type] = [current, claim.value]
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ClaimSet:
        """Inverse of :meth:`to_payload`, skipping registered claims."""
        claims: list[Claim] = []
        for key, value in payload.items():
            if key in RESERVED_CLAIMS:
                continue
            if isinstance(value, list):
                claims.extend(Claim(key, str(v)) for v in value)
            else:
                claims.append(Claim(key, str(value)))
        return cls(claims)


class ClaimsAssembler:
    """Builds the claim set carried by a user's tokens."""

    def assemble(
        self,
        user_id: int | str,
        *,
        roles: Iterable[str] = (),
        claims: Iterable[Claim] = (),
    ) -> ClaimSet:
        """
        Assemble identity, user-specific and role claims, in that order.

        :param user_id: Identity placed in the ``sub`` claim.
        :param roles: Role names; sorted so payloads are stable.
        :param claims: Extra user claims from the identity store.
        :returns: Fresh claim set.
        :rtype: ClaimSet
        """
        items = [Claim(IDENTITY_CLAIM, str(user_id))]
        items.extend(c for c in claims if c.type not in RESERVED_CLAIMS and c.type != IDENTITY_CLAIM)
        items.extend(Claim(ROLE_CLAIM, role) for role in sorted(roles))
        return ClaimSet(items)
