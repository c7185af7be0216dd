"""Login, refresh, logout and /me routes, plus the auth dependencies used by every router."""

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.permissions import ADMIN_PERMISSION, has_permission, is_admin
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    UserOut,
)
from app.services.authenticator import authenticate_request, bearer_token
from app.services.credentials import verify_credentials
from app.services.tokens import (
    RefreshTokenError,
    issue_tokens,
    refresh_access_token,
    revoke_session,
)

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS_DETAIL = "Invalid username or password."
BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


def permission_denied(permission: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Permission required: {permission}",
    )


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Dependency: require a valid Bearer token with a live session. Raises 401 otherwise."""
    decision = authenticate_request(db, authorization, get_settings())
    if not decision.allowed:
        raise HTTPException(
            status_code=decision.status_code,
            detail=decision.reason,
            headers=BEARER_HEADERS,
        )
    return decision.user


def require_permission(permission: str) -> Callable[..., CurrentUser]:
    """Dependency factory: 403 unless the user holds `permission` or an admin sentinel."""

    def checker(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if not has_permission(current_user.permissions, permission):
            raise permission_denied(permission)
        return current_user

    return checker


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require an admin sentinel (all/admin/ADMIN). Raises 403 otherwise."""
    if not is_admin(current_user.permissions):
        raise permission_denied(ADMIN_PERMISSION)
    return current_user


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> LoginResponse:
    """
    Authenticate with username and password; returns access and refresh tokens.
    Include the access token in the Authorization header as: Bearer <accessToken>
    """
    settings = get_settings()
    result = verify_credentials(db, body.username, body.password, settings)
    if not result.authenticated:
        logger.info("Failed login for username=%r: %s", body.username, result.outcome.value)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_DETAIL,
        )
    try:
        tokens = issue_tokens(
            db, result.user, settings, persist_session=not result.break_glass
        )
    except SQLAlchemyError as e:
        logger.warning("Could not persist session for user_id=%s: %s", result.user.id, e)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS_DETAIL,
        ) from e
    logger.info("User %r logged in", result.user.username)
    return LoginResponse(
        message="Login successful",
        user=UserOut.model_validate(result.user.model_dump()),
        token=tokens.access_token,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    body: RefreshRequest,
    db: Annotated[Session, Depends(get_db)],
) -> RefreshResponse:
    """Exchange a refresh token for a new access token. 401 means the client must log in again."""
    try:
        access_token = refresh_access_token(db, body.refresh_token or "", get_settings())
    except RefreshTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers=BEARER_HEADERS,
        ) from e
    return RefreshResponse(access_token=access_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    db: Annotated[Session, Depends(get_db)],
    authorization: Annotated[str | None, Header()] = None,
) -> MessageResponse:
    """
    Revoke the session of the presented access token. Best-effort: the signature is
    not checked, and the response is 200 even if the token was unknown or storage failed.
    """
    token = bearer_token(authorization)
    if token is not None:
        try:
            deleted = revoke_session(db, token)
            logger.info("Logout: sessions_deleted=%s", deleted)
        except SQLAlchemyError as e:
            logger.warning("Logout could not reach storage: %s", e)
            db.rollback()
    return MessageResponse(message="Logout successful")


@router.get("/me", response_model=MeResponse)
def me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> MeResponse:
    """Return the authenticated user with profile and permissions."""
    return MeResponse(user=UserOut.model_validate(current_user.model_dump()))
