"""Account endpoints: register/login → confirm passcode → tokens."""

from __future__ import annotations

from flask import Blueprint, request

from authgate.api.deps import (
    bearer_token,
    build_auth_flow_service,
    build_token_service,
    json_response,
    require_auth,
    timing,
    unwrap_or_raise,
)
from authgate.schemas import (
    ConfirmCodeSchema,
    FlowStepSchema,
    LoginSchema,
    ProfileSchema,
    RefreshTokenSchema,
    RegisterSchema,
    SessionSchema,
    TokenPairSchema,
)
from authgate.services.auth_flow.dto import ConfirmCodeIn, LoginIn, RegistrationIn

bp = Blueprint("account", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
confirm_schema = ConfirmCodeSchema()
refresh_schema = RefreshTokenSchema()
step_schema = FlowStepSchema()
session_schema = SessionSchema()
pair_schema = TokenPairSchema()
profile_schema = ProfileSchema()


@bp.post("/register")
@timing
def register():
    """Stage a registration and email a passcode."""

    data = register_schema.load(request.get_json(silent=True) or {})
    step = unwrap_or_raise(build_auth_flow_service().register(RegistrationIn(**data)))
    return json_response({"data": step_schema.dump(step)}, status=202)


@bp.post("/login")
@timing
def login():
    """Check credentials and email a passcode."""

    data = login_schema.load(request.get_json(silent=True) or {})
    dto = LoginIn(identifier=data["username"], password=data["password"])
    step = unwrap_or_raise(build_auth_flow_service().login(dto))
    return json_response({"data": step_schema.dump(step)}, status=202)


@bp.post("/confirm-code")
@timing
def confirm_code():
    """Confirm a passcode and return an access/refresh token pair."""

    data = confirm_schema.load(request.get_json(silent=True) or {})
    session = unwrap_or_raise(build_auth_flow_service().confirm_code(ConfirmCodeIn(**data)))
    return json_response({"data": session_schema.dump(session)})


@bp.post("/refresh-token")
@timing
def refresh_token():
    """Rotate a refresh token into a new pair."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = unwrap_or_raise(build_token_service().refresh_session(data["refresh_token"]))
    return json_response({"data": pair_schema.dump(pair)})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user's profile."""

    profile = unwrap_or_raise(build_token_service().get_current_user(bearer_token()))
    return json_response({"data": profile_schema.dump(profile)})
