"""Shared API helpers: responses, auth guard, timing and service wiring."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, TypeVar, cast

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from authgate.core.errors import APIError, Unauthorized
from authgate.core.extensions import get_redis
from authgate.infra.jwt.pyjwt_token_codec import PyJWTTokenCodec
from authgate.infra.mail.smtp_email_sender import SmtpEmailSender
from authgate.infra.redis.redis_otp_store import RedisOtpStore
from authgate.infra.redis.redis_refresh_store import RedisRefreshStore
from authgate.services._shared.ports import (
    EmailSender,
    InMemoryOtpStore,
    InMemoryRefreshStore,
    OtpStore,
    RefreshStore,
)
from authgate.services._shared.result import Err, Result
from authgate.services.auth_flow.service import AuthFlowService
from authgate.services.identity.service import IdentityService
from authgate.services.otp.service import OtpService
from authgate.services.registration.service import RegistrationService
from authgate.services.tokens.service import TokenConfig, TokenService

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

# app.extensions keys; tests may pre-populate them to swap adapters
REFRESH_STORE_KEY = "authgate.refresh_store"
OTP_STORE_KEY = "authgate.otp_store"
MAILER_KEY = "authgate.mailer"


# ------------------------------ Responses -----------------------------------


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def unwrap_or_raise(result: Result[T]) -> T:
    """Return the success value or raise the matching :class:`APIError`."""

    if isinstance(result, Err):
        raise APIError.from_failure(result)
    return result.value


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={
                    "endpoint": request_endpoint,
                    "elapsed_ms": round(elapsed_ms, 2),
                    "remote_addr": request.remote_addr,
                },
            )

    return wrapper  # type: ignore[return-value]


# ------------------------------ Auth guard ----------------------------------


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token.

    A token the guard rejects is re-checked by :class:`TokenService` so the
    client sees the precise reason (``signature_invalid``,
    ``algorithm_mismatch``, ``malformed``, ``expired``).
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        try:
            verify_jwt_in_request(optional=False)
        except (JWTExtendedException, PyJWTError):
            checked = build_token_service().validate_token(bearer_token())
            if isinstance(checked, Err):
                raise APIError.from_failure(checked) from None
            raise
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def bearer_token() -> str:
    """Return the raw token from ``Authorization: Bearer <token>``."""

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Missing access token")
    return token.strip()


# ------------------------------ Adapters ------------------------------------


def get_refresh_store() -> RefreshStore:
    """Redis-backed when ``REDIS_URL`` is configured, else process-local."""

    def _build() -> RefreshStore:
        client = get_redis()
        if client is None:
            return InMemoryRefreshStore()
        days = int(current_app.config["JWT_REFRESH_TOKEN_EXPIRES_DAYS"])
        return RedisRefreshStore(client, refresh_ttl_seconds=days * 24 * 3600)

    return cast(RefreshStore, _cached(REFRESH_STORE_KEY, _build))


def get_otp_store() -> OtpStore:
    def _build() -> OtpStore:
        client = get_redis()
        return InMemoryOtpStore() if client is None else RedisOtpStore(client)

    return cast(OtpStore, _cached(OTP_STORE_KEY, _build))


def get_mailer() -> EmailSender:
    def _build() -> EmailSender:
        cfg = current_app.config
        return SmtpEmailSender(
            host=cfg.get("SMTP_HOST"),
            port=int(cfg.get("SMTP_PORT", 587)),
            user=cfg.get("SMTP_USER"),
            password=cfg.get("SMTP_PASSWORD"),
            use_tls=bool(cfg.get("SMTP_USE_TLS", True)),
            from_email=cfg.get("MAIL_FROM"),
            from_name=cfg.get("MAIL_FROM_NAME", "AuthGate"),
            log_codes=current_app.debug,
        )

    return cast(EmailSender, _cached(MAILER_KEY, _build))


def _cached(key: str, build: Callable[[], Any]) -> Any:
    extensions = current_app.extensions
    if key not in extensions:
        extensions[key] = build()
    return extensions[key]


# ------------------------------ Services ------------------------------------


def build_identity_service() -> IdentityService:
    cfg = current_app.config
    return IdentityService(
        max_failed_attempts=int(cfg["LOCKOUT_MAX_FAILED_ATTEMPTS"]),
        lockout_duration=timedelta(minutes=int(cfg["LOCKOUT_MINUTES"])),
        default_role=cfg.get("DEFAULT_USER_ROLE"),
    )


def build_registration_service() -> RegistrationService:
    return RegistrationService(
        ttl=timedelta(minutes=int(current_app.config["REGISTRATION_TTL_MINUTES"]))
    )


def build_token_service(identity: IdentityService | None = None) -> TokenService:
    return TokenService(
        codec=PyJWTTokenCodec(),
        store=get_refresh_store(),
        identity=identity or build_identity_service(),
        config=TokenConfig.from_mapping(current_app.config),
    )


def build_auth_flow_service() -> AuthFlowService:
    cfg = current_app.config
    identity = build_identity_service()
    otp = OtpService(
        get_otp_store(),
        identity,
        cfg["SECRET_KEY"],
        length=int(cfg["OTP_LENGTH"]),
        ttl_seconds=int(cfg["OTP_TTL_SECONDS"]),
        max_attempts=int(cfg["OTP_MAX_ATTEMPTS"]),
    )
    return AuthFlowService(
        tokens=build_token_service(identity),
        identity=identity,
        otp=otp,
        mailer=get_mailer(),
        registrations=build_registration_service(),
        otp_subject=cfg.get("OTP_EMAIL_SUBJECT", "Validate Email Code"),
    )
