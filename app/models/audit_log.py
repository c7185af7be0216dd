"""ORM model for the append-only audit trail of state-changing actions."""

from sqlalchemy import Column, DateTime, Integer, String, func

from app.models.base import Base, JSONType


class AuditLog(Base):
    """
    Immutable record of who changed what.

    user_id is the actor; it is not a foreign key so entries survive user deletion.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(64), nullable=False)
    resource = Column(String(64), nullable=False, index=True)
    resource_id = Column(String(64), nullable=True, index=True)
    old_values = Column(JSONType, nullable=True)
    new_values = Column(JSONType, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
