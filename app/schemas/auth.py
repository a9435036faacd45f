"""Request/response schemas for auth endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from app.core.security import Role


class LoginRequest(BaseModel):
    """Credentials for login. Presence is checked by the endpoint so the 400 message is uniform."""

    email: str | None = Field(default=None, description="Account email")
    password: str | None = Field(default=None, description="Password")


class RegisterRequest(LoginRequest):
    """New account details; name is optional."""

    name: str | None = Field(default=None, max_length=255, description="Display name")


class UserPublic(BaseModel):
    """Account fields safe to return to clients (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    role: Role


class AuthResponse(BaseModel):
    """Body returned by login and register; the token is also set as a cookie."""

    success: bool = True
    message: str
    token: str = Field(..., description="JWT access token")
    user: UserPublic
