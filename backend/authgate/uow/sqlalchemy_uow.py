"""
Unit of Work over the Flask-SQLAlchemy scoped session.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from authgate.core.extensions import db
from authgate.repositories import (
    RoleRepository,
    TempRegistrationRepository,
    UserRepository,
)
from authgate.uow.base import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Every repository shares one session, so a registration promotion (create
    user, grant role, tag record) commits or rolls back as a whole.

    :param read_only: Always roll back on exit; :meth:`commit` refuses to run.
    :param session: Explicit session; defaults to ``db.session``.
    """

    def __init__(self, *, read_only: bool = False, session: Session | None = None) -> None:
        self.session: Session = session if session is not None else db.session
        self.read_only = read_only
        self.users = UserRepository(session=self.session)
        self.roles = RoleRepository(session=self.session)
        self.temp_registrations = TempRegistrationRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # The session begins lazily on the first statement
        return self

    def commit(self) -> None:
        if self.read_only:
            raise RuntimeError("Read-only UnitOfWork does not allow commit().")
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
