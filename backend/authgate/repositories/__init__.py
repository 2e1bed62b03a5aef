from authgate.repositories.temp_registration import TempRegistrationRepository
from authgate.repositories.user import RoleRepository, UserRepository

__all__ = [
    "RoleRepository",
    "TempRegistrationRepository",
    "UserRepository",
]
