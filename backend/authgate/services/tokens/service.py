"""
TokenService
============

Owns the session-token lifecycle:

- issuance of access tokens (and access/refresh pairs),
- validation of presented access tokens,
- rotation of a refresh token into a fresh pair.

It is the only component that touches the :class:`RefreshStore` or the
:class:`TokenCodec`. Every operation returns a tagged result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import uuid4

from authgate.services._shared.base import BaseService
from authgate.services._shared.errors import COLLABORATOR_ERRORS, Reason
from authgate.services._shared.ports import IdentityProvider, RefreshStore, TokenCodec
from authgate.services._shared.result import Err, Ok, Result
from authgate.services.identity.dto import UserOut
from authgate.services.tokens.claims import ClaimsAssembler, ClaimSet
from authgate.services.tokens.dto import ACCESS, REFRESH, DecodedToken, TokenPair, UserProfile

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TokenConfig:
    """
    Signing secrets and lifetimes.

    Access and refresh tokens must use different secrets so one can never be
    presented as the other.
    """

    access_secret: str
    refresh_secret: str
    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=7)

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Token secrets must be non-empty.")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh secrets must differ.")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> TokenConfig:
        """Build from Flask config keys (``JWT_*``)."""
        return cls(
            access_secret=config["JWT_SECRET_KEY"],
            refresh_secret=config["JWT_REFRESH_SECRET_KEY"],
            access_expires=timedelta(minutes=int(config["JWT_ACCESS_TOKEN_EXPIRES_MINUTES"])),
            refresh_expires=timedelta(days=int(config["JWT_REFRESH_TOKEN_EXPIRES_DAYS"])),
        )


def split_full_name(full_name: str | None) -> tuple[str, str]:
    """
    Split a display name into ``(first_name, last_name)``.

    The first space-separated token is the last name; the remaining tokens
    joined by a single space form the first name.
    """
    parts = (full_name or "").strip().split(" ")
    return " ".join(parts[1:]), parts[0]


class TokenService(BaseService):
    """
    Application service for access/refresh tokens.

    :param codec: Signs and validates tokens.
    :param store: Holds one refresh record per user.
    :param identity: Resolves users, roles and claims.
    :param config: Secrets and lifetimes.
    :param jti_factory: Produces unique token ids so two tokens minted within
        the same second still differ.
    """

    def __init__(
        self,
        *,
        codec: TokenCodec,
        store: RefreshStore,
        identity: IdentityProvider,
        config: TokenConfig,
        assembler: ClaimsAssembler | None = None,
        jti_factory: Callable[[], str] | None = None,
    ) -> None:
        super().__init__()
        self.codec = codec
        self.store = store
        self.identity = identity
        self.config = config
        self.assembler = assembler or ClaimsAssembler()
        self._jti = jti_factory or (lambda: uuid4().hex)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _claims_for(self, user: UserOut) -> ClaimSet:
        return self.assembler.assemble(
            user.id,
            roles=self.identity.get_roles(user),
            claims=self.identity.get_claims(user),
        )

    def _access(self, claims: ClaimSet) -> str:
        return self.codec.encode(
            claims,
            self.config.access_secret,
            self.config.access_expires,
            token_type=ACCESS,
            jti=self._jti(),
        )

    def _refresh(self, claims: ClaimSet) -> str:
        return self.codec.encode(
            claims,
            self.config.refresh_secret,
            self.config.refresh_expires,
            token_type=REFRESH,
            jti=self._jti(),
        )

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def issue_session(self, user: UserOut) -> Result[str]:
        """
        Mint an access token and record it as the user's latest.

        Repeated calls keep a single record per user, holding the newest
        access token.

        :param user: Authenticated user.
        :returns: The access token.
        """
        try:
            access_token = self._access(self._claims_for(user))
            self.store.upsert(str(user.id), access_token=access_token)
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "issue_session")

        log.info("token.issued", extra={"user_id": user.id})
        return Ok(access_token)

    def issue_session_pair(self, user: UserOut) -> Result[TokenPair]:
        """
        Mint an access token and a refresh token and record both.

        :param user: Authenticated user.
        :returns: :class:`TokenPair`.
        """
        try:
            claims = self._claims_for(user)
            pair = TokenPair(access_token=self._access(claims), refresh_token=self._refresh(claims))
            self.store.upsert(
                str(user.id),
                access_token=pair.access_token,
                refresh_token=pair.refresh_token,
            )
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "issue_session_pair")

        log.info("token.issued", extra={"user_id": user.id, "state": "pair"})
        return Ok(pair)

    # ------------------------------------------------------------------ #
    # Rotation
    # ------------------------------------------------------------------ #

    def refresh_session(self, refresh_token: str) -> Result[TokenPair]:
        """
        Exchange a refresh token for a new access/refresh pair.

        Steps, each short-circuiting on failure:

        1. the refresh token must be the current one of some record
           (``REFRESH_TOKEN_NOT_FOUND``, nothing is written);
        2. the refresh token must decode under the refresh secret, expiry
           enforced;
        3. the record's stored access token must decode under the access
           secret, expiry ignored;
        4. that token must carry an identity (``USER_ID_MISSING``);
        5. the user must exist (``USER_NOT_FOUND``);
        6. the user must own the refresh token (``OWNER_MISMATCH``);
        7. both tokens are re-minted and written only if the stored refresh
           token is still the presented one (``OWNER_MISMATCH`` otherwise).

        :param refresh_token: Token previously handed out with a pair.
        :returns: The new :class:`TokenPair`.
        """
        try:
            record = self.store.find_by_refresh_token(refresh_token)
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "refresh_session.lookup")
        if record is None:
            log.info("token.refresh_rejected", extra={"reason": Reason.REFRESH_TOKEN_NOT_FOUND.value})
            return Err(Reason.REFRESH_TOKEN_NOT_FOUND, "Refresh token not recognised")

        presented = self.codec.decode(refresh_token, self.config.refresh_secret)
        if isinstance(presented, Err):
            return presented
        if presented.value.token_type != REFRESH:
            return Err(Reason.MALFORMED, "Token is not a refresh token")

        stored = self.codec.decode(
            record.access_token or "", self.config.access_secret, verify_exp=False
        )
        if isinstance(stored, Err):
            return stored

        user_id = stored.value.subject
        if not user_id:
            return Err(Reason.USER_ID_MISSING, "Stored session has no user id")

        try:
            user = self.identity.find_by_id(user_id)
            if user is None:
                return Err(Reason.USER_NOT_FOUND, "User not found")

            owned = self.store.find_by_user_and_refresh_token(str(user.id), refresh_token)
            if owned is None:
                return Err(Reason.OWNER_MISMATCH, "Refresh token does not belong to this user")

            claims = self._claims_for(user)
            pair = TokenPair(access_token=self._access(claims), refresh_token=self._refresh(claims))
            written = self.store.upsert(
                str(user.id),
                access_token=pair.access_token,
                refresh_token=pair.refresh_token,
                expected_refresh_token=refresh_token,
            )
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "refresh_session")

        if not written:
            # Another rotation won the race for this record
            log.warning("token.rotation_conflict", extra={"user_id": user.id})
            return Err(Reason.OWNER_MISMATCH, "Refresh token was already rotated")

        log.info("token.rotated", extra={"user_id": user.id})
        return Ok(pair)

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def validate_token(self, token: str, *, verify_exp: bool = True) -> Result[DecodedToken]:
        """Validate an access token under the access secret."""
        decoded = self.codec.decode(token, self.config.access_secret, verify_exp=verify_exp)
        if isinstance(decoded, Err):
            return decoded
        if decoded.value.token_type not in (None, ACCESS):
            return Err(Reason.MALFORMED, "Token is not an access token")
        return decoded

    def get_current_user(self, access_token: str) -> Result[UserProfile]:
        """
        Resolve the profile of the user an access token belongs to.

        :param access_token: Bearer token; expiry is enforced.
        :returns: :class:`UserProfile`, a codec reason, or ``OWNER_MISMATCH``
            when the token names no (existing) user.
        """
        decoded = self.validate_token(access_token)
        if isinstance(decoded, Err):
            return decoded

        user_id = decoded.value.subject
        if not user_id:
            return Err(Reason.OWNER_MISMATCH, "Token does not identify a user")

        try:
            user = self.identity.find_by_id(user_id)
            if user is None:
                return Err(Reason.OWNER_MISMATCH, "Token does not identify a user")
            roles = sorted(self.identity.get_roles(user))
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "get_current_user")

        first_name, last_name = split_full_name(user.full_name)
        return Ok(
            UserProfile(
                id=user.id,
                email=user.email,
                username=user.username,
                first_name=first_name,
                last_name=last_name,
                roles=roles,
            )
        )
