"""SQLAlchemy ORM models."""

from app.models.audit_log import AuditLog
from app.models.base import Base
from app.models.session import AuthSession
from app.models.user import Profile, User

__all__ = ["AuditLog", "AuthSession", "Base", "Profile", "User"]
