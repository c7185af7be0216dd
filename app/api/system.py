"""System administration routes: the global audit trail."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.auth import require_admin
from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.users import HistoryEntry
from app.services.audit import recent_audit_entries

router = APIRouter()


@router.get("/audit", response_model=list[HistoryEntry])
def list_audit_entries(
    db: Annotated[Session, Depends(get_db)],
    _admin: Annotated[CurrentUser, Depends(require_admin)],
) -> list[HistoryEntry]:
    """Newest audit entries across all resources, with the acting user's name (admin only)."""
    rows = recent_audit_entries(db, get_settings().USER_HISTORY_LIMIT)
    return [HistoryEntry.from_row(entry, actor) for entry, actor in rows]
