"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from authgate.core.extensions import jwt
from authgate.core.logger import ensure_request_id
from authgate.services._shared.errors import ErrorKind, Reason
from authgate.services._shared.result import Err

log = logging.getLogger(__name__)

# Failure category -> HTTP status. Reasons listed in _REASON_STATUS win.
_KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_FAILURE: HTTPStatus.UNPROCESSABLE_ENTITY,
    ErrorKind.CONFLICT: HTTPStatus.CONFLICT,
    ErrorKind.PERSISTENCE_FAILURE: HTTPStatus.SERVICE_UNAVAILABLE,
    ErrorKind.DISPATCH_FAILURE: HTTPStatus.SERVICE_UNAVAILABLE,
    ErrorKind.AUTH_FAILURE: HTTPStatus.UNAUTHORIZED,
    ErrorKind.TOKEN_INVALID: HTTPStatus.UNAUTHORIZED,
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.OTP_VERIFICATION_FAILED: HTTPStatus.UNAUTHORIZED,
}

_REASON_STATUS: dict[Reason, int] = {
    Reason.LOCKED_OUT: HTTPStatus.FORBIDDEN,
    Reason.NOT_ALLOWED: HTTPStatus.FORBIDDEN,
}


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    kind: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param kind: Failure category shared by related codes.
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    :rtype: dict
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if kind:
        problem["kind"] = kind
    if details:
        problem["details"] = details
    # Always attach correlation id
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """
    Return a Flask response with ``application/problem+json`` media type.

    :param problem: Problem details payload.
    :returns: Flask JSON Response with proper MIME type.
    :rtype: flask.Response
    """
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier, typically snake_case. Defaults to
        ``"bad_request"``.
    kind : str | None, optional
        Failure category (see :class:`ErrorKind`) when raised from a service
        failure.
    details : dict[str, Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        kind: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.kind = kind
        self.details = details or {}

    @classmethod
    def from_failure(cls, failure: Err) -> APIError:
        """
        Translate a tagged service failure into an API error.

        :param failure: Failed service result.
        :type failure: Err
        :returns: Error carrying the reason as ``code`` and its category as ``kind``.
        :rtype: APIError
        """
        status = _REASON_STATUS.get(failure.reason) or _KIND_STATUS[failure.kind]
        return cls(
            failure.message or failure.reason.value.replace("_", " ").capitalize(),
            status_code=status,
            code=failure.reason.value,
            kind=failure.kind.value,
        )

    def to_problem(self) -> dict[str, Any]:
        """
        Serialize error metadata into an RFC 7807 problem.

        :returns: Problem details dictionary.
        :rtype: dict
        """
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            kind=self.kind,
            details=self.details or None,
        )


class Unauthorized(APIError):
    """401 when authentication fails."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            message,
            status_code=HTTPStatus.UNAUTHORIZED,
            code="unauthorized",
            kind=ErrorKind.TOKEN_INVALID.value,
        )


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Ensures a correlation ``request_id`` is present on every error.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem.get("request_id"),
        )
        return _problem_response(problem), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        # Werkzeug may provide HTML-ish description; normalize for clients
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem.get("request_id"),
        )
        return _problem_response(problem), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code=Reason.VALIDATION_FAILED.value,
            message="Validation failed",
            kind=ErrorKind.VALIDATION_FAILURE.value,
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem.get("request_id"))
        return _problem_response(problem), HTTPStatus.UNPROCESSABLE_ENTITY

    # Request guard failures (missing header, bad/expired bearer token)
    @jwt.unauthorized_loader
    def handle_missing_token(reason: str):
        return handle_api_error(Unauthorized("Missing access token"))

    @jwt.invalid_token_loader
    def handle_invalid_token(reason: str):
        return handle_api_error(Unauthorized("Invalid access token"))

    @jwt.expired_token_loader
    def handle_expired_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        err = Unauthorized("Access token has expired")
        err.code = Reason.EXPIRED.value
        return handle_api_error(err)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error(
            "Unhandled exception: request_id=%s",
            problem.get("request_id"),
            exc_info=True,
        )
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR
