"""
Transaction boundary shared by the account services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authgate.repositories import (
        RoleRepository,
        TempRegistrationRepository,
        UserRepository,
    )


class UnitOfWork(ABC):
    """
    One transaction spanning the user, role and staged-registration tables.

    Leaving the ``with`` block commits when no exception escaped and the
    scope is writable; any other exit rolls back.

    :ivar read_only: Reads only; the scope never commits.
    """

    users: UserRepository
    roles: RoleRepository
    temp_registrations: TempRegistrationRepository
    read_only: bool = False

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None or self.read_only:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
