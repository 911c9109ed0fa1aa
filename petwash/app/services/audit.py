"""
Audit logging service for authentication and walk lifecycle events.

Provides centralized logging for compliance and incident review
(emergency alerts in particular).
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from petwash.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    USER_CREATED = "USER_CREATED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    TOKEN_REVOKED = "TOKEN_REVOKED"

    PET_REGISTERED = "PET_REGISTERED"

    WALK_BOOKED = "WALK_BOOKED"
    WALK_STARTED = "WALK_STARTED"
    WALK_COMPLETED = "WALK_COMPLETED"
    WALK_CANCELLED = "WALK_CANCELLED"
    EMERGENCY_RAISED = "EMERGENCY_RAISED"
    EMERGENCY_RESOLVED = "EMERGENCY_RESOLVED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    commit: bool = True
) -> AuditLog:
    """
    Log a security or walk event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_user_id: ID of user affected (walk owner for walker actions)
        target_username: Username of target
        metadata: Additional context as JSON
        ip_address: IP address of the request
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    if commit:
        await db.commit()
        await db.refresh(audit_log)
    else:
        await db.flush()

    return audit_log


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an authentication event (login success/failure, logout)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    action: Optional[str] = None,
    walk_id: Optional[int] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.

    walk_id is matched against the "walk_id" key of the event metadata.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if action:
        query = query.where(AuditLog.action == action)

    result = await db.execute(query)
    logs = result.scalars().all()

    if walk_id is not None:
        logs = [log for log in logs if (log.meta_data or {}).get("walk_id") == walk_id]

    return logs[:limit]
