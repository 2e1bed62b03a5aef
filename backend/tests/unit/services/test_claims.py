"""Unit tests for claim sets and the claims assembler."""

from __future__ import annotations

import pytest
from authgate.services.tokens.claims import Claim, ClaimsAssembler, ClaimSet


class TestClaimsAssembler:
    def test_identity_then_user_claims_then_sorted_roles(self):
        claims = ClaimsAssembler().assemble(
            7,
            roles={"user", "admin"},
            claims=[Claim("tenant", "acme")],
        )

        assert list(claims) == [
            Claim("sub", "7"),
            Claim("tenant", "acme"),
            Claim("role", "admin"),
            Claim("role", "user"),
        ]
        assert claims.identity == "7"

    def test_user_claims_cannot_override_identity_or_registered_keys(self):
        claims = ClaimsAssembler().assemble(
            7,
            claims=[Claim("sub", "1"), Claim("exp", "0"), Claim("type", "refresh")],
        )

        assert list(claims) == [Claim("sub", "7")]

    def test_no_roles_no_role_claim(self):
        claims = ClaimsAssembler().assemble("3")

        assert claims.values("role") == []
        assert len(claims) == 1


class TestClaimSetPayload:
    def test_repeated_types_become_lists(self):
        claims = ClaimSet([Claim("sub", "1"), Claim("role", "a"), Claim("role", "b")])

        assert claims.to_payload() == {"sub": "1", "role": ["a", "b"]}

    def test_from_payload_skips_registered_claims(self):
        claims = ClaimSet.from_payload(
            {"sub": "1", "role": ["a", "b"], "exp": 1, "iat": 1, "jti": "x", "type": "access"}
        )

        assert list(claims) == [Claim("sub", "1"), Claim("role", "a"), Claim("role", "b")]

    def test_from_payload_stringifies_values(self):
        claims = ClaimSet.from_payload({"sub": 5})

        assert claims.identity == "5"

    def test_first_and_values(self):
        claims = ClaimSet([Claim("role", "a"), Claim("role", "b")])

        assert claims.first("role") == "a"
        assert claims.first("sub") is None
        assert claims.values("role") == ["a", "b"]

    def test_equality_is_order_sensitive(self):
        a = ClaimSet([Claim("role", "a"), Claim("role", "b")])
        b = ClaimSet([Claim("role", "b"), Claim("role", "a")])

        assert a != b
        assert a == ClaimSet(list(a))

    def test_reserved_type_cannot_be_serialized(self):
        with pytest.raises(ValueError, match="reserved"):
            ClaimSet([Claim("iat", "1")]).to_payload()
