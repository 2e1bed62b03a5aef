"""
RegistrationService
===================

Owns the lifecycle of :class:`TempRegistration` records:

``STAGED`` (written, passcode not yet sent) → ``PENDING`` (passcode sent)
→ ``PROMOTED`` (user created). Unconfirmed records expire after a TTL and
are removed by ``flask registrations purge``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from werkzeug.security import generate_password_hash

from authgate.core.logger import redact_email
from authgate.models.base import as_utc
from authgate.models.temp_registration import PENDING, PROMOTED, STAGED, TempRegistration
from authgate.services._shared.base import BaseService
from authgate.services._shared.errors import COLLABORATOR_ERRORS, Reason
from authgate.services._shared.result import Err, Ok, Result
from authgate.services.registration.dto import RegistrationIn, TempRegistrationOut

log = logging.getLogger(__name__)


def _out(record: TempRegistration) -> TempRegistrationOut:
    return TempRegistrationOut(
        id=record.id,
        email=record.email,
        username=record.username,
        full_name=record.full_name,
        password_hash=record.password_hash,
        status=record.status,
        expires_at=as_utc(record.expires_at),  # type: ignore[arg-type]
    )


class RegistrationService(BaseService):
    """
    Stage, look up and promote pending registrations.

    :param ttl: How long a registration may wait for confirmation.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self.ttl = ttl

    def stage(self, dto: RegistrationIn) -> Result[TempRegistrationOut]:
        """
        Write a ``STAGED`` record for ``dto``.

        The newest unconfirmed record for the same email (left behind by a
        failed dispatch, or one whose passcode lapsed) is overwritten in place
        and returned to ``STAGED`` instead of duplicated.

        :returns: The staged record or ``PERSISTENCE_FAILURE``/``VALIDATION_FAILED``.
        """
        expires_at = self.now_utc() + self.ttl
        password_hash = generate_password_hash(dto.password)
        try:
            with self.rw_uow() as uow:
                record = uow.temp_registrations.latest_unconfirmed(dto.email)
                if record is None:
                    record = TempRegistration(email=dto.email)
                    uow.session.add(record)
                record.status = STAGED
                record.username = dto.username
                record.full_name = dto.full_name
                record.password_hash = password_hash
                record.expires_at = expires_at
                uow.temp_registrations.flush()
                out = _out(record)
        except ValueError as exc:
            return Err(Reason.VALIDATION_FAILED, str(exc))
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, "registration.stage")

        log.info("registration.staged", extra={"email": redact_email(out.email)})
        return Ok(out)

    def mark_pending(self, registration_id: int) -> Result[None]:
        """Flag a staged record as awaiting its passcode."""
        return self._transition(registration_id, PENDING)

    def mark_staged(self, registration_id: int) -> Result[None]:
        """Return a record to ``STAGED`` after its passcode could not be sent."""
        return self._transition(registration_id, STAGED)

    def promote(self, registration_id: int, user_id: int) -> Result[None]:
        """Tag a record as converted into user ``user_id``; it is never found again."""
        return self._transition(registration_id, PROMOTED, promoted_user_id=user_id)

    def _transition(
        self, registration_id: int, status: str, *, promoted_user_id: int | None = None
    ) -> Result[None]:
        try:
            with self.rw_uow() as uow:
                record = uow.temp_registrations.get(registration_id)
                if record is None:
                    return Err(Reason.PERSISTENCE_FAILURE, "Registration record vanished")
                record.status = status
                if promoted_user_id is not None:
                    record.promoted_user_id = promoted_user_id
        except COLLABORATOR_ERRORS as exc:
            return self.collaborator_failure(exc, f"registration.{status.lower()}")
        return Ok(None)

    def find_pending(self, email: str) -> TempRegistrationOut | None:
        """
        Return the newest unexpired ``PENDING`` record for ``email``.

        :raises SQLAlchemyError: Callers convert storage failures.
        """
        with self.ro_uow() as uow:
            record = uow.temp_registrations.latest_pending(email)
            if record is None or record.is_expired(self.now_utc()):
                return None
            return _out(record)

    def pending_emails(self, *, email: str, username: str) -> list[str]:
        """
        Return the emails of unexpired ``PENDING`` records holding either key.

        :raises SQLAlchemyError: Callers convert storage failures.
        """
        with self.ro_uow() as uow:
            return uow.temp_registrations.pending_holders(
                email=email, username=username, now=self.now_utc()
            )

    def purge_expired(self, now: datetime | None = None) -> int:
        """
        Delete expired, never-promoted records.

        :param now: Reference instant; defaults to the service clock.
        :returns: Number of deleted rows.
        """
        with self.rw_uow() as uow:
            deleted = uow.temp_registrations.delete_expired(now or self.now_utc())
        log.info("registration.purged count=%s", deleted)
        return deleted
