"""Pydantic schemas for authentication API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from inventory_api.models.client import DocumentType
from inventory_api.models.user import Role

_EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9-]+(\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,}$"
_MAX_EMAIL_LENGTH = 254


class SignupRequest(BaseModel):
    """Request for user registration."""

    email: str = Field(
        ...,
        max_length=_MAX_EMAIL_LENGTH,
        pattern=_EMAIL_PATTERN,
        description="Email address for user registration",
    )
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="Password (minimum 6 characters)",
    )
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Role | None = Field(
        default=None,
        description="SALESPERSON (default) or ADMINISTRATOR",
    )
    phone_number: str | None = Field(default=None, max_length=50)
    address: str | None = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginRequest(BaseModel):
    """Request for login."""

    email: str = Field(..., min_length=1, max_length=_MAX_EMAIL_LENGTH, pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ClientLoginRequest(BaseModel):
    """Request for mobile client login by identity document."""

    document_type: DocumentType
    document_number: str = Field(..., min_length=1, max_length=50)


class UserResponse(BaseModel):
    """User information without the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    phone_number: str | None = None
    address: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ClientResponse(BaseModel):
    """Mobile client information."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None = None
    document_type: DocumentType
    document_number: str
    is_active: bool


class AuthResponse(BaseModel):
    """Response for signup and login."""

    message: str
    user: UserResponse
    token: str
    expires_in: int = Field(description="Token lifetime in seconds")


class ClientAuthResponse(BaseModel):
    """Response for mobile client login."""

    message: str
    client: ClientResponse
    token: str
    expires_in: int = Field(description="Token lifetime in seconds")


class LogoutResponse(BaseModel):
    """Logout acknowledgement; always returned, even for stale tokens."""

    message: str
    logout_time: datetime


class RoleResponse(BaseModel):
    role: Role


class AdminAccessResponse(BaseModel):
    message: str
    user_id: str
