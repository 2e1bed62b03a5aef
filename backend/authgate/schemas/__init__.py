"""Convenience exports for application schemas."""

from __future__ import annotations

from .account import (
    ConfirmCodeSchema,
    FlowStepSchema,
    LoginSchema,
    ProfileSchema,
    RefreshTokenSchema,
    RegisterSchema,
    SessionSchema,
    TokenPairSchema,
)

__all__ = [
    "ConfirmCodeSchema",
    "FlowStepSchema",
    "LoginSchema",
    "ProfileSchema",
    "RefreshTokenSchema",
    "RegisterSchema",
    "SessionSchema",
    "TokenPairSchema",
]
