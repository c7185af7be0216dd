"""Pydantic request/response schemas."""

from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    ProfileOut,
    RefreshRequest,
    RefreshResponse,
    UserOut,
)
from app.schemas.health import HealthResponse
from app.schemas.users import (
    HistoryEntry,
    HistoryResponse,
    OwnProfileUpdate,
    PasswordChange,
    PermissionsResponse,
    PermissionsUpdate,
    ProfileSummary,
    ProfileTemplateUpdate,
    UserCreate,
    UserDetail,
    UsersListResponse,
    UserUpdate,
)

__all__ = [
    "CurrentUser",
    "HealthResponse",
    "HistoryEntry",
    "HistoryResponse",
    "LoginRequest",
    "LoginResponse",
    "MeResponse",
    "MessageResponse",
    "OwnProfileUpdate",
    "PasswordChange",
    "PermissionsResponse",
    "PermissionsUpdate",
    "ProfileOut",
    "ProfileSummary",
    "ProfileTemplateUpdate",
    "RefreshRequest",
    "RefreshResponse",
    "UserCreate",
    "UserDetail",
    "UserOut",
    "UsersListResponse",
    "UserUpdate",
]
