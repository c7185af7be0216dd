"""Request/response schemas for user administration endpoints."""

from datetime import datetime
from typing import Any

from pydantic import EmailStr, Field

from app.core.security import NEW_PASSWORD_MIN_LEN, PASSWORD_MAX_LEN, USERNAME_MAX_LEN
from app.schemas.auth import ProfileOut, UserOut
from app.schemas.base import RequestModel, ResponseModel


class UserCreate(RequestModel):
    """Body for POST /users (admin only)."""

    username: str = Field(..., max_length=USERNAME_MAX_LEN)
    password: str = Field(..., max_length=PASSWORD_MAX_LEN)
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    profile_name: str | None = Field(default=None, max_length=255)
    active: bool = True


class UserUpdate(RequestModel):
    """Body for PUT /users/{id}; omitted fields are left unchanged."""

    username: str | None = Field(default=None, max_length=USERNAME_MAX_LEN)
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    profile_name: str | None = Field(default=None, max_length=255)
    active: bool | None = None
    password: str | None = Field(default=None, max_length=PASSWORD_MAX_LEN)


class PermissionsUpdate(RequestModel):
    permissions: list[str]


class ProfileTemplateUpdate(RequestModel):
    """Body for PUT /users/profiles/{id} (admin only)."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    permissions: list[str] = Field(default_factory=list)


class PasswordChange(RequestModel):
    new_password: str = Field(..., min_length=NEW_PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class OwnProfileUpdate(RequestModel):
    """Body for PUT /users/profile; blank values keep the current value."""

    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=64)
    department: str | None = Field(default=None, max_length=255)
    position: str | None = Field(default=None, max_length=255)


class UserDetail(UserOut):
    updated_at: datetime | None = None


class UsersListResponse(ResponseModel):
    """Paginated user list."""

    users: list[UserDetail]
    total: int
    page: int
    limit: int
    total_pages: int


class ProfileSummary(ResponseModel):
    id: int
    name: str
    description: str = ""
    permissions: list[str] = Field(default_factory=list)
    user_count: int = 0


class PermissionsResponse(ResponseModel):
    message: str
    permissions: list[str]


class ProfileUpdateResponse(ResponseModel):
    message: str
    user: UserOut


class HistoryActor(ResponseModel):
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class HistoryEntry(ResponseModel):
    """One audit entry performed by or on a user."""

    id: int
    action: str
    resource: str
    resource_id: str | None = None
    old_values: Any = None
    new_values: Any = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime
    user: HistoryActor

    @classmethod
    def from_row(cls, entry: Any, actor: Any) -> "HistoryEntry":
        """Build from an (AuditLog, User | None) row; no actor gives an empty HistoryActor."""
        return cls(
            id=entry.id,
            action=entry.action,
            resource=entry.resource,
            resource_id=entry.resource_id,
            old_values=entry.old_values,
            new_values=entry.new_values,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            created_at=entry.created_at,
            user=HistoryActor.model_validate(actor) if actor is not None else HistoryActor(),
        )


class HistoryResponse(ResponseModel):
    history: list[HistoryEntry]
    total: int


__all__ = [
    "HistoryActor",
    "HistoryEntry",
    "HistoryResponse",
    "OwnProfileUpdate",
    "PasswordChange",
    "PermissionsResponse",
    "PermissionsUpdate",
    "ProfileOut",
    "ProfileSummary",
    "ProfileTemplateUpdate",
    "ProfileUpdateResponse",
    "UserCreate",
    "UserDetail",
    "UserUpdate",
    "UsersListResponse",
]
