"""
IdentityService
===============

Aggregate service responsible for the `User` aggregate:
- lookup by id, email or login identifier
- password sign-in with lockout bookkeeping
- roles and claims feeding token issuance
- creation of users promoted from a confirmed registration
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from authgate.models.base import as_utc
from authgate.models.user import User
from authgate.services._shared.base import BaseService
from authgate.services._shared.errors import COLLABORATOR_ERRORS, Reason, violates_unique
from authgate.services._shared.ports import IdentityProvider
from authgate.services._shared.result import Err, Ok, Result
from authgate.services.identity.dto import SignInOutcome, SignInStatus, UserOut
from authgate.services.tokens.claims import Claim

log = logging.getLogger(__name__)


def _out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        username=user.username,
        full_name=user.full_name,
    )


class IdentityService(BaseService, IdentityProvider):
    """
    Application service for the `User` aggregate.

    :param max_failed_attempts: Consecutive wrong passwords that lock the
        account. The attempt reaching the threshold already reports
        ``LOCKED_OUT``.
    :param lockout_duration: How long a lockout lasts.
    :param default_role: Role granted by :meth:`create_user` (blank disables).
    """

    def __init__(
        self,
        *,
        max_failed_attempts: int = 5,
        lockout_duration: timedelta = timedelta(minutes=5),
        default_role: str | None = "user",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self.max_failed_attempts = max(1, int(max_failed_attempts))
        self.lockout_duration = lockout_duration
        self.default_role = (default_role or "").strip() or None

    # --------------------------------------------------------------------- #
    # Lookup
    # --------------------------------------------------------------------- #

    def find_by_id(self, user_id: int | str) -> UserOut | None:
        """
        Retrieve a user by identifier.

        :param user_id: Primary key, or its string form from a token claim.
        :returns: ``None`` for unknown or non-numeric ids.
        """
        if isinstance(user_id, str):
            if not user_id.strip().isdigit():
                return None
            user_id = int(user_id)

        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            return _out(user) if user is not None else None

    def find_by_email(self, email: str) -> UserOut | None:
        with self.ro_uow() as uow:
            user = uow.users.get_by_email(email)
            return _out(user) if user is not None else None

    def exists(self, *, email: str, username: str) -> bool:
        with self.ro_uow() as uow:
            return uow.users.exists_by_email(email) or uow.users.exists_by_username(username)

    # --------------------------------------------------------------------- #
    # Sign-in
    # --------------------------------------------------------------------- #

    def sign_in(self, identifier: str, password: str) -> SignInOutcome:
        """
        Check a password for the user named by ``identifier``.

        Order of checks: unknown user (``FAILED``), inactive
        (``NOT_ALLOWED``), active lockout (``LOCKED_OUT``), wrong password
        (``FAILED``, or ``LOCKED_OUT`` when it reaches the threshold), then
        two-factor (``REQUIRES_TWO_FACTOR``).

        :param identifier: Username or email.
        :param password: Raw password candidate.
        :returns: :class:`SignInOutcome`.
        """
        with self.rw_uow() as uow:
            user = uow.users.get_by_login(identifier)
            if user is None:
                return SignInOutcome(SignInStatus.FAILED)

            out = _out(user)
            if not user.is_active:
                return SignInOutcome(SignInStatus.NOT_ALLOWED, out)

            now = self.now_utc()
            lockout_end = as_utc(user.lockout_end)
            if lockout_end is not None and lockout_end > now:
                return SignInOutcome(SignInStatus.LOCKED_OUT, out)

            if not user.verify_password(password):
                user.failed_login_count = (user.failed_login_count or 0) + 1
                if user.failed_login_count >= self.max_failed_attempts:
                    user.lockout_end = now + self.lockout_duration
                    user.failed_login_count = 0
                    log.warning("identity.locked_out", extra={"user_id": user.id})
                    return SignInOutcome(SignInStatus.LOCKED_OUT, out)
                return SignInOutcome(SignInStatus.FAILED, out)

            user.failed_login_count = 0
            user.lockout_end = None
            if user.two_factor_enabled:
                return SignInOutcome(SignInStatus.REQUIRES_TWO_FACTOR, out)
            return SignInOutcome(SignInStatus.SUCCEEDED, out)

    # --------------------------------------------------------------------- #
    # Roles & claims
    # --------------------------------------------------------------------- #

    def get_roles(self, user: UserOut) -> set[str]:
        with self.ro_uow() as uow:
            row = uow.users.get(user.id)
            return set(row.role_names) if row is not None else set()

    def get_claims(self, user: UserOut) -> list[Claim]:
        with self.ro_uow() as uow:
            row = uow.users.get(user.id)
            if row is None:
                return []
            return [Claim(c.claim_type, c.claim_value) for c in row.claims]

    # --------------------------------------------------------------------- #
    # Creation
    # --------------------------------------------------------------------- #

    def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        full_name: str | None = None,
    ) -> Result[UserOut]:
        """
        Create a user from an already-hashed password.

        :returns: The new user, ``USER_ALREADY_EXISTS`` when the email or
            username is taken, ``VALIDATION_FAILED`` for unusable values.
        """
        try:
            with self.rw_uow() as uow:
                if uow.users.exists_by_email(email) or uow.users.exists_by_username(username):
                    return Err(Reason.USER_ALREADY_EXISTS, "Email or username already in use")

                user = User(
                    email=email,
                    username=username,
                    full_name=full_name,
                    password_hash=password_hash,
                )
                if self.default_role:
                    user.roles.append(uow.roles.get_or_create(self.default_role))
                uow.users.add(user)
                out = _out(user)
        except IntegrityError as exc:
            if violates_unique(exc, "uq_users_email", "uq_users_username"):
                return Err(Reason.USER_ALREADY_EXISTS, "Email or username already in use")
            return self.collaborator_failure(exc, "create_user")
        except ValueError as exc:
            return Err(Reason.VALIDATION_FAILED, str(exc))
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "create_user")

        log.info("identity.user_created", extra={"user_id": out.id})
        return Ok(out)
