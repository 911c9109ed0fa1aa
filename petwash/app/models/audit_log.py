"""
Audit Log Database Model.

Tracks authentication events and walk lifecycle transitions.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from petwash.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - USER_CREATED / LOGIN_SUCCESS / LOGIN_FAILED / TOKEN_REVOKED
    - WALK_BOOKED / WALK_STARTED / WALK_COMPLETED / WALK_CANCELLED
    - EMERGENCY_RAISED / EMERGENCY_RESOLVED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Who was affected (the pet owner for walker actions)
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)

    # Additional context, e.g. {"walk_id": 12}
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username})>"
