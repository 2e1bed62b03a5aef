"""Pytest fixtures for an isolated application, database and adapter layer.

Each test gets freshly created tables in an in-memory SQLite database and
fresh in-memory refresh/OTP stores plus a recording mailer, so neither data
nor passcodes leak between cases.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest
from authgate.api.deps import MAILER_KEY, OTP_STORE_KEY, REFRESH_STORE_KEY
from authgate.core.config import TestingConfig
from authgate.core.extensions import db as _db  # Flask-SQLAlchemy instance
from authgate.factory import create_app  # application factory under test
from authgate.services._shared.ports import InMemoryOtpStore, InMemoryRefreshStore
from tests.helpers.fakes import RecordingEmailSender

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Distinct, sufficiently long HMAC secrets for both token kinds.
    - Avoids hitting external services (no Redis, no SMTP).
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "test-otp-secret-0123456789abcdef"
    JWT_SECRET_KEY = ACCESS_SECRET
    JWT_REFRESH_SECRET_KEY = REFRESH_SECRET
    OTP_LENGTH = 6
    OTP_MAX_ATTEMPTS = 3
    LOCKOUT_MAX_FAILED_ATTEMPTS = 3
    DEFAULT_USER_ROLE = "user"
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied and an
        application context pushed for the whole session.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestConfig)
    app.logger.setLevel("WARNING")
    ctx = app.app_context()
    ctx.push()
    yield app
    ctx.pop()


@pytest.fixture()
def session(app):
    """Create all tables for one test and drop them afterwards.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        The application's scoped session; services and factories share it.
    """
    _db.create_all()
    try:
        yield _db.session
    finally:
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def mailer(app) -> RecordingEmailSender:
    """Recording mailer installed as the application's email sender."""
    sender = RecordingEmailSender()
    app.extensions[MAILER_KEY] = sender
    return sender


@pytest.fixture(autouse=True)
def _fresh_adapters(app, mailer):
    """Give every test empty refresh/OTP stores."""
    app.extensions[REFRESH_STORE_KEY] = InMemoryRefreshStore()
    app.extensions[OTP_STORE_KEY] = InMemoryOtpStore()
    yield


@pytest.fixture()
def client(app, session):
    """Flask test client backed by a fresh schema."""
    with app.app_context():
        yield app.test_client()


@pytest.fixture()
def runner(app, session):
    """Flask CLI runner backed by a fresh schema."""
    return app.test_cli_runner()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


@pytest.fixture()
def freeze_time() -> Callable[[str | None], Any]:
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_lockout_ends(freeze_time):
    ...     with freeze_time("2030-01-01 12:00:00") as frozen:
    ...         frozen.tick(timedelta(minutes=6))
    """

    from freezegun import freeze_time as _freeze_time

    def _factory(target: str | None = None) -> Any:
        return _freeze_time(target or "2030-01-01 12:00:00")

    return _factory


# -- Hook up Factory Boy to the application session ----------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the per-test session."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield
    SQLAlchemySession.set(None)
