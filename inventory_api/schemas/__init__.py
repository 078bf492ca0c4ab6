# Inventory API Pydantic Schemas
from inventory_api.schemas.auth import (
    AdminAccessResponse,
    AuthResponse,
    ClientAuthResponse,
    ClientLoginRequest,
    ClientResponse,
    LoginRequest,
    LogoutResponse,
    RoleResponse,
    SignupRequest,
    UserResponse,
)

__all__ = [
    "AdminAccessResponse",
    "AuthResponse",
    "ClientAuthResponse",
    "ClientLoginRequest",
    "ClientResponse",
    "LoginRequest",
    "LogoutResponse",
    "RoleResponse",
    "SignupRequest",
    "UserResponse",
]
