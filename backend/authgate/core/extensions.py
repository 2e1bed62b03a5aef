"""Flask extension singletons and the optional Redis connection."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

REDIS_EXTENSION_KEY = "redis_client"

# Constraint names match the account schema migration
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()


def init_app(app: Flask) -> None:
    """Bind the database, migrations, JWT request guard and Redis to ``app``.

    Parameters
    ----------
    app: flask.Flask
        Application being configured. :mod:`authgate.models` is imported so
        Alembic sees the full metadata.

    Notes
    -----
    ``flask-jwt-extended`` only *verifies* bearer tokens here; minting is done
    by the token codec, which signs access tokens with the same
    ``JWT_SECRET_KEY``.
    """
    db.init_app(app)

    from authgate import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
    _connect_redis(app)


def _connect_redis(app: Flask) -> None:
    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        app.extensions.pop(REDIS_EXTENSION_KEY, None)
        return

    client = redis.Redis.from_url(redis_url)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    app.extensions[REDIS_EXTENSION_KEY] = client


def get_redis() -> redis.Redis | None:
    """Return the app's Redis client, or ``None`` when ``REDIS_URL`` is unset."""
    return current_app.extensions.get(REDIS_EXTENSION_KEY)
