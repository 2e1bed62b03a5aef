"""JSON logging for the account service, correlated by request id.

Every record carries ``request_id`` (taken from ``X-Request-ID`` or
``X-Correlation-ID`` when the caller sends one). Email addresses passed via
``extra={"email": ...}`` are masked before they reach the output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, Response, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")

# Structured ``extra`` keys emitted when present on a record
EXTRA_KEYS = (
    "endpoint",
    "elapsed_ms",
    "remote_addr",
    "user_id",
    "reason",
    "email",
    "state",
    "status",
)


def redact_email(email: str | None) -> str:
    """Mask an email address for log output (``al***@example.com``)."""

    if not email or "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``email`` extras are always redacted."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in EXTRA_KEYS:
            if key in record.__dict__:
                payload[key] = record.__dict__[key]
        if "email" in payload:
            payload["email"] = redact_email(payload["email"])
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on every record (``None`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the request's correlation id, assigning one on first use."""

    if not has_request_context():
        return str(uuid4())
    if "request_id" not in g:
        supplied = next(
            (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)),
            None,
        )
        g.request_id = supplied or str(uuid4())
    return g.request_id  # type: ignore[no-any-return]


def configure_logging(level: str | int = "INFO") -> None:
    """Replace root handlers with a single JSON stdout handler."""

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper() if isinstance(level, str) else level)


def init_app(app: Flask) -> None:
    """Correlate app logs with requests and echo the id on every response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _assign_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response: Response) -> Response:
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "redact_email"]
