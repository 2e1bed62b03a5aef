from authgate.models.temp_registration import TempRegistration
from authgate.models.user import Role, User, UserClaim, user_roles

__all__ = [
    "Role",
    "TempRegistration",
    "User",
    "UserClaim",
    "user_roles",
]
