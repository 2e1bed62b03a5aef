from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from authgate.services._shared.errors import COLLABORATOR_ERRORS, Reason
from authgate.services._shared.result import Err
from authgate.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Convert collaborator I/O failures into tagged results.
    * Offer an injectable clock so expiry logic is testable.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    - Public operations return :class:`Ok` / :class:`Err`, never raise.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        """
        :param clock: Returns the current aware UTC time. Defaults to
            :func:`datetime.now` in UTC.
        """
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(read_only=True)

    # ------------------------------ Helpers ---------------------------------

    def now_utc(self) -> datetime:
        return self._clock()

    def collaborator_failure(self, exc: BaseException, operation: str) -> Err:
        """
        Log an I/O failure and return it as ``PERSISTENCE_FAILURE``.

        :param exc: One of :data:`COLLABORATOR_ERRORS`.
        :param operation: Short name of the failing step, for the log line.
        """
        log.error(
            "%s failed: %s",
            operation,
            exc.__class__.__name__,
            exc_info=exc,
            extra={"reason": Reason.PERSISTENCE_FAILURE.value},
        )
        return Err(Reason.PERSISTENCE_FAILURE, "A storage dependency is unavailable")


__all__ = ["BaseService", "COLLABORATOR_ERRORS"]
