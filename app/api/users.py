"""User administration: listing, CRUD, permissions, passwords, own profile and audit history."""

import logging
import math
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.api.auth import get_current_user, permission_denied, require_admin, require_permission
from app.core.config import get_settings
from app.core.database import get_db
from app.core.permissions import ADMIN_PERMISSION, has_permission, is_admin
from app.core.security import NEW_PASSWORD_MIN_LEN, NEW_USERNAME_MIN_LEN, hash_password
from app.models import Profile, User
from app.schemas.auth import CurrentUser, MessageResponse, UserOut
from app.schemas.users import (
    HistoryEntry,
    HistoryResponse,
    OwnProfileUpdate,
    PasswordChange,
    PermissionsResponse,
    PermissionsUpdate,
    ProfileSummary,
    ProfileTemplateUpdate,
    ProfileUpdateResponse,
    UserCreate,
    UserDetail,
    UsersListResponse,
    UserUpdate,
)
from app.services.audit import (
    PROFILE_RESOURCE,
    USER_RESOURCE,
    profile_snapshot,
    record_audit,
    user_history,
    user_snapshot,
)
from app.services.tokens import revoke_user_sessions

logger = logging.getLogger(__name__)

router = APIRouter()

READ_PERMISSION = "users.read"
UPDATE_PERMISSION = "users.update"
VIEW_HISTORY_PERMISSION = "view_history"

SORT_COLUMNS = {
    "createdAt": User.created_at,
    "name": User.first_name,
    "username": User.username,
    "lastLogin": User.last_login,
}


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _clean(value: str | None) -> str | None:
    """Strip whitespace; blank strings become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _ensure_unique(
    db: Session,
    username: str | None,
    email: str | None,
    exclude_id: int | None = None,
) -> None:
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(User.email == email)
    if not conditions:
        return
    query = db.query(User).filter(or_(*conditions))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with that username or email already exists",
        )


def _normalize_permissions(permissions: list[str]) -> list[str]:
    """Strip, drop blanks and de-duplicate, keeping first-seen order."""
    return list(dict.fromkeys(p.strip() for p in permissions if p and p.strip()))


def _require_self_or(current_user: CurrentUser, user_id: int, permission: str) -> None:
    if current_user.id != user_id and not has_permission(current_user.permissions, permission):
        raise permission_denied(permission)


def _require_admin_for_admin_target(current_user: CurrentUser, user: User) -> None:
    """Only an administrator may change credentials or status of an administrator account."""
    if is_admin(user.permissions) and not is_admin(current_user.permissions):
        raise permission_denied(ADMIN_PERMISSION)


@router.get("", response_model=UsersListResponse)
def list_users(
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(require_permission(READ_PERMISSION))],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str = "",
    status_filter: Annotated[
        Literal["active", "inactive", "all"], Query(alias="status")
    ] = "all",
    profile: str = "",
    sort_by: Annotated[
        Literal["createdAt", "name", "username", "lastLogin"], Query(alias="sortBy")
    ] = "createdAt",
    sort_order: Annotated[Literal["asc", "desc"], Query(alias="sortOrder")] = "desc",
) -> UsersListResponse:
    """
    List users with pagination, text search (username, names, email), status and
    profile-name filters, and sorting.
    """
    query = db.query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                User.username.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    if status_filter == "active":
        query = query.filter(User.active.is_(True))
    elif status_filter == "inactive":
        query = query.filter(User.active.is_(False))
    if profile:
        query = query.filter(User.profile.has(Profile.name.ilike(f"%{profile}%")))

    total = query.order_by(None).count()
    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    users = (
        query.order_by(ordering, User.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return UsersListResponse(
        users=[UserDetail.model_validate(u) for u in users],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/profiles", response_model=list[ProfileSummary])
def list_profiles(
    db: Annotated[Session, Depends(get_db)],
    _user: Annotated[CurrentUser, Depends(require_permission(READ_PERMISSION))],
) -> list[ProfileSummary]:
    """Profiles grouped by name, with how many users carry each one."""
    rows = db.query(Profile).order_by(Profile.name, Profile.id).all()
    summaries: dict[str, ProfileSummary] = {}
    for p in rows:
        summary = summaries.get(p.name)
        if summary is None:
            summaries[p.name] = ProfileSummary(
                id=p.id,
                name=p.name,
                description=p.description or "",
                permissions=list(p.permissions or []),
                user_count=1,
            )
        else:
            summary.user_count += 1
    return list(summaries.values())


@router.put("/profiles/{profile_id}", response_model=ProfileSummary)
def update_profile_template(
    profile_id: int,
    body: ProfileTemplateUpdate,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    admin: Annotated[CurrentUser, Depends(require_admin)],
) -> ProfileSummary:
    """Rename a profile and replace its description and permissions (admin only)."""
    name = body.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Profile name is required"
        )
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    duplicate = (
        db.query(Profile).filter(Profile.name == name, Profile.id != profile_id).first()
    )
    if duplicate is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A profile with that name already exists",
        )

    old_values = profile_snapshot(profile)
    profile.name = name
    profile.description = _clean(body.description) or ""
    profile.permissions = _normalize_permissions(body.permissions)
    db.commit()
    db.refresh(profile)
    logger.info("Profile id=%s updated by %r", profile.id, admin.username)

    new_values = profile_snapshot(profile)
    record_audit(
        db, admin.id, "update", PROFILE_RESOURCE, profile.id, old_values, new_values, request
    )
    return ProfileSummary(
        id=profile_id,
        name=new_values["name"],
        description=new_values["description"],
        permissions=new_values["permissions"],
        user_count=db.query(func.count(Profile.id)).filter(Profile.name == name).scalar(),
    )


@router.put("/profile", response_model=ProfileUpdateResponse)
def update_own_profile(
    body: OwnProfileUpdate,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ProfileUpdateResponse:
    """Update the current user's names, email and contact fields. Blank fields are kept."""
    user = _get_user_or_404(db, current_user.id)
    email = _clean(body.email)
    _ensure_unique(db, None, email, exclude_id=user.id)
    old_values = {
        **user_snapshot(user),
        "phone": user.profile.phone if user.profile else None,
        "department": user.profile.department if user.profile else None,
        "position": user.profile.position if user.profile else None,
    }

    user.first_name = _clean(body.first_name) or user.first_name
    user.last_name = _clean(body.last_name) or user.last_name
    user.email = email or user.email
    if user.profile is None:
        user.profile = Profile(
            name=f"Profile of {user.username}",
            description="Personal profile",
            permissions=[],
        )
    user.profile.phone = _clean(body.phone) or user.profile.phone
    user.profile.department = _clean(body.department) or user.profile.department
    user.profile.position = _clean(body.position) or user.profile.position
    db.commit()
    db.refresh(user)

    new_values = {
        **user_snapshot(user),
        "phone": user.profile.phone,
        "department": user.profile.department,
        "position": user.profile.position,
    }
    record_audit(
        db, current_user.id, "update_profile", USER_RESOURCE, user.id,
        old_values, new_values, request,
    )
    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=UserOut.model_validate(user),
    )


@router.get("/{user_id}", response_model=UserDetail)
def get_user(
    user_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> UserDetail:
    """Return one user with profile. Users may always read their own record."""
    _require_self_or(current_user, user_id, READ_PERMISSION)
    return UserDetail.model_validate(_get_user_or_404(db, user_id))


@router.post("", response_model=UserDetail, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    admin: Annotated[CurrentUser, Depends(require_admin)],
) -> UserDetail:
    """Create a user, optionally with an empty-permission profile (admin only)."""
    username = (body.username or "").strip()
    if len(username) < NEW_USERNAME_MIN_LEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Username must be at least {NEW_USERNAME_MIN_LEN} characters",
        )
    if len(body.password) < NEW_PASSWORD_MIN_LEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {NEW_PASSWORD_MIN_LEN} characters",
        )
    email = _clean(body.email)
    _ensure_unique(db, username, email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(body.password),
        first_name=_clean(body.first_name),
        last_name=_clean(body.last_name),
        active=body.active,
    )
    profile_name = _clean(body.profile_name)
    if profile_name:
        user.profile = Profile(
            name=profile_name,
            description=f"Profile of {profile_name}",
            permissions=[],
        )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %r created by %r", user.username, admin.username)

    record_audit(
        db, admin.id, "create", USER_RESOURCE, user.id, None, user_snapshot(user), request
    )
    return UserDetail.model_validate(user)


@router.put("/{user_id}", response_model=UserDetail)
def update_user(
    user_id: int,
    body: UserUpdate,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[CurrentUser, Depends(require_permission(UPDATE_PERMISSION))],
) -> UserDetail:
    """Update user fields; a new password is hashed, a profile name creates or renames the profile."""
    user = _get_user_or_404(db, user_id)
    username = _clean(body.username)
    email = _clean(body.email)
    if username is not None and len(username) < NEW_USERNAME_MIN_LEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Username must be at least {NEW_USERNAME_MIN_LEN} characters",
        )
    if body.password is not None and len(body.password) < NEW_PASSWORD_MIN_LEN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {NEW_PASSWORD_MIN_LEN} characters",
        )
    if body.password or (body.active is not None and body.active != user.active):
        _require_admin_for_admin_target(current_user, user)
    _ensure_unique(db, username, email, exclude_id=user.id)

    old_values = user_snapshot(user)
    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if body.first_name is not None:
        user.first_name = _clean(body.first_name)
    if body.last_name is not None:
        user.last_name = _clean(body.last_name)
    if body.active is not None:
        user.active = body.active
    if body.password:
        user.password_hash = hash_password(body.password)
        revoke_user_sessions(db, user.id)
    profile_name = _clean(body.profile_name)
    if profile_name:
        if user.profile is None:
            user.profile = Profile(name=profile_name, permissions=[])
        user.profile.name = profile_name
        user.profile.description = f"Profile of {profile_name}"
    db.commit()
    db.refresh(user)

    new_values = user_snapshot(user)
    if body.password:
        new_values["passwordChanged"] = True
    record_audit(
        db, current_user.id, "update", USER_RESOURCE, user.id, old_values, new_values, request
    )
    return UserDetail.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    admin: Annotated[CurrentUser, Depends(require_admin)],
) -> MessageResponse:
    """Delete a user with its profile and sessions (admin only). The audit entry is kept."""
    user = _get_user_or_404(db, user_id)
    old_values = user_snapshot(user)
    record_audit(db, admin.id, "delete", USER_RESOURCE, user_id, old_values, None, request)
    db.delete(user)
    db.commit()
    logger.info("User %r deleted by %r", old_values["username"], admin.username)
    return MessageResponse(message="User deleted successfully")


@router.put("/{user_id}/permissions", response_model=PermissionsResponse)
def update_permissions(
    user_id: int,
    body: PermissionsUpdate,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    admin: Annotated[CurrentUser, Depends(require_admin)],
) -> PermissionsResponse:
    """Replace a user's permission set, creating a profile if the user has none (admin only)."""
    user = _get_user_or_404(db, user_id)
    permissions = _normalize_permissions(body.permissions)
    if user.profile is not None:
        old_values = {"permissions": list(user.profile.permissions or [])}
        user.profile.permissions = permissions
        action, message = "update_permissions", "Permissions updated successfully"
    else:
        old_values = None
        user.profile = Profile(
            name=f"Profile of {user.username}",
            description="Custom profile",
            permissions=permissions,
        )
        action, message = "create_permissions", "Permissions created successfully"
    db.commit()
    record_audit(
        db, admin.id, action, USER_RESOURCE, user.id,
        old_values, {"permissions": permissions}, request,
    )
    return PermissionsResponse(message=message, permissions=permissions)


@router.put("/{user_id}/password", response_model=MessageResponse)
def change_password(
    user_id: int,
    body: PasswordChange,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> MessageResponse:
    """Set a new password for a user and revoke all of that user's sessions."""
    _require_self_or(current_user, user_id, UPDATE_PERMISSION)
    user = _get_user_or_404(db, user_id)
    if current_user.id != user.id:
        _require_admin_for_admin_target(current_user, user)
    user.password_hash = hash_password(body.new_password)
    revoked = revoke_user_sessions(db, user.id)
    db.commit()
    logger.info("Password changed for user_id=%s, sessions_revoked=%s", user.id, revoked)
    record_audit(
        db, current_user.id, "change_password", USER_RESOURCE, user.id,
        None, {"passwordChanged": True}, request,
    )
    return MessageResponse(message="Password updated successfully")


@router.get("/{user_id}/history", response_model=HistoryResponse)
def get_history(
    user_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> HistoryResponse:
    """Audit entries performed by or on the user, newest first. Users may read their own."""
    _require_self_or(current_user, user_id, VIEW_HISTORY_PERMISSION)
    rows = user_history(db, user_id, get_settings().USER_HISTORY_LIMIT)
    history = [HistoryEntry.from_row(entry, actor) for entry, actor in rows]
    return HistoryResponse(history=history, total=len(history))
