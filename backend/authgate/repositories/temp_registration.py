"""Repository for staged registrations."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, or_, select

from authgate.models.temp_registration import PENDING, PROMOTED, STAGED, TempRegistration
from authgate.repositories.base import BaseRepository


class TempRegistrationRepository(BaseRepository[TempRegistration]):
    """Persistence-only repository for :class:`TempRegistration`."""

    model = TempRegistration

    def _filterable_fields(self):
        return {
            "email": TempRegistration.email,
            "username": TempRegistration.username,
            "status": TempRegistration.status,
        }

    def latest_by_email(self, email: str, *, status: str) -> TempRegistration | None:
        """Return the most recent record for ``email`` in the given status."""
        stmt = (
            select(TempRegistration)
            .where(
                TempRegistration.email == email.lower().strip(),
                TempRegistration.status == status,
            )
            .order_by(TempRegistration.id.desc())
        )
        return cast(TempRegistration | None, self.session.execute(stmt).scalars().first())

    def latest_pending(self, email: str) -> TempRegistration | None:
        return self.latest_by_email(email, status=PENDING)

    def latest_unconfirmed(self, email: str) -> TempRegistration | None:
        """Return the newest ``STAGED`` or ``PENDING`` record for ``email``."""
        stmt = (
            select(TempRegistration)
            .where(
                TempRegistration.email == email.lower().strip(),
                TempRegistration.status.in_((STAGED, PENDING)),
            )
            .order_by(TempRegistration.id.desc())
        )
        return cast(TempRegistration | None, self.session.execute(stmt).scalars().first())

    def pending_holders(self, *, email: str, username: str, now: datetime) -> list[str]:
        """Return the emails of unexpired ``PENDING`` records holding either key."""
        stmt = (
            select(TempRegistration.email)
            .where(
                TempRegistration.status == PENDING,
                TempRegistration.expires_at > now,
                or_(
                    TempRegistration.email == email.lower().strip(),
                    TempRegistration.username == username.strip(),
                ),
            )
            .distinct()
        )
        return list(self.session.execute(stmt).scalars())

    def delete_expired(self, now: datetime) -> int:
        """Delete expired records that were never promoted; return the row count."""
        stmt = (
            delete(TempRegistration)
            .where(
                TempRegistration.expires_at <= now,
                TempRegistration.status != PROMOTED,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)
