"""Account flow Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, fields, post_load, validate

from authgate.services.auth_flow.dto import FlowState


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    username = fields.String(required=True, validate=validate.Length(min=3, max=50))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    full_name = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))

    @post_load
    def strip_values(self, data: dict[str, Any], **_: Any) -> dict[str, Any]:
        data["email"] = data["email"].strip().lower()
        data["username"] = data["username"].strip()
        if data.get("full_name"):
            data["full_name"] = data["full_name"].strip() or None
        return data


class LoginSchema(Schema):
    """Input payload for the password step; ``username`` also accepts an email."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class ConfirmCodeSchema(Schema):
    """Input payload for the passcode step."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    code = fields.String(
        required=True,
        validate=[validate.Length(min=4, max=10), validate.Regexp(r"^\d+$")],
    )


class RefreshTokenSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class FlowStepSchema(Schema):
    """Response payload for a step that awaits the emailed passcode."""

    state = fields.Enum(FlowState, by_value=True)
    email = fields.Email()


class SessionSchema(Schema):
    """Response payload carrying an access/refresh token pair."""

    state = fields.Enum(FlowState, by_value=True)
    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")


class TokenPairSchema(Schema):
    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")


class ProfileSchema(Schema):
    """Response payload exposing the authenticated user's profile."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    username = fields.String(required=True)
    first_name = fields.String()
    last_name = fields.String()
    roles = fields.List(fields.String())
