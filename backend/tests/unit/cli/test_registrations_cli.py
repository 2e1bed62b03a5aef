"""Tests for the ``flask registrations`` command group."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from authgate.models.temp_registration import PROMOTED, TempRegistration
from tests.factories.temp_registration import TempRegistrationFactory


def _remaining(session) -> set[str]:
    return {r.username for r in session.query(TempRegistration).all()}


def test_purge_deletes_expired_unpromoted_rows(runner, session):
    now = datetime.now(timezone.utc)
    TempRegistrationFactory(username="stale", expires_at=now - timedelta(hours=2))
    TempRegistrationFactory(username="done", expires_at=now - timedelta(hours=2), status=PROMOTED)
    TempRegistrationFactory(username="fresh", expires_at=now + timedelta(hours=2))

    result = runner.invoke(args=["registrations", "purge"])

    assert result.exit_code == 0, result.output
    assert "Purged 1 expired registration(s)." in result.output
    assert _remaining(session) == {"done", "fresh"}


def test_purge_accepts_reference_instant(runner, session):
    TempRegistrationFactory(username="a", expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc))
    TempRegistrationFactory(username="b", expires_at=datetime(2030, 6, 1, tzinfo=timezone.utc))

    result = runner.invoke(args=["registrations", "purge", "--now", "2030-03-01T00:00:00"])

    assert result.exit_code == 0, result.output
    assert "Purged 1 expired registration(s)." in result.output
    assert _remaining(session) == {"b"}


def test_purge_rejects_bad_instant(runner):
    result = runner.invoke(args=["registrations", "purge", "--now", "yesterday"])

    assert result.exit_code != 0
    assert "ISO-8601" in result.output
