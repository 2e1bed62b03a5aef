from __future__ import annotations

from typing import Protocol

from authgate.services._shared.result import Result
from authgate.services.identity.dto import SignInOutcome, UserOut
from authgate.services.tokens.claims import Claim


class IdentityProvider(Protocol):
    """
    Port for user lookup, password sign-in and user creation.

    Lookups may raise :data:`COLLABORATOR_ERRORS`; callers convert them.
    """

    def find_by_id(self, user_id: int | str) -> UserOut | None: ...

    def find_by_email(self, email: str) -> UserOut | None: ...

    def exists(self, *, email: str, username: str) -> bool:
        """Return ``True`` when a user holds either ``email`` or ``username``."""
        ...

    def sign_in(self, identifier: str, password: str) -> SignInOutcome: ...

    def get_roles(self, user: UserOut) -> set[str]: ...

    def get_claims(self, user: UserOut) -> list[Claim]: ...

    def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        full_name: str | None = None,
    ) -> Result[UserOut]: ...
