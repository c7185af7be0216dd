"""Request/response schemas for auth endpoints and the authenticated identity."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
)
from app.schemas.base import RequestModel, ResponseModel


class ProfileOut(ResponseModel):
    """Profile attached to a user, including its permission strings."""

    id: int
    name: str
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
    phone: str | None = None
    department: str | None = None
    position: str | None = None
    profile_image: str | None = None


class UserOut(ResponseModel):
    """User as returned by the API (never includes the password hash)."""

    id: int
    username: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    active: bool = True
    last_login: datetime | None = None
    created_at: datetime | None = None
    profile: ProfileOut | None = None


class CurrentUser(UserOut):
    """Authenticated user resolved from a bearer token, for dependency injection."""

    @property
    def permissions(self) -> list[str]:
        return list(self.profile.permissions) if self.profile else []

    @property
    def profile_id(self) -> int | None:
        return self.profile.id if self.profile else None


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str = Field(
        ..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Username"
    )
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )


class LoginResponse(ResponseModel):
    """Tokens and user returned after successful login. `token` mirrors `accessToken`."""

    message: str
    user: UserOut
    token: str
    access_token: str
    refresh_token: str


class RefreshRequest(RequestModel):
    """Refresh token exchange. Missing token is answered with 401, not 400."""

    refresh_token: str | None = Field(default=None, description="Refresh token from login")


class RefreshResponse(ResponseModel):
    access_token: str


class MeResponse(ResponseModel):
    user: UserOut


class MessageResponse(BaseModel):
    message: str
