"""
Audit logging service for admin wallet actions and order changes.

Entries are added to the caller's session and committed with the
change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    WALLET_CREDITED = "WALLET_CREDITED"
    WALLET_DEBITED = "WALLET_DEBITED"
    PAYMENT_CREDITED = "PAYMENT_CREDITED"

    ORDER_CHARGED = "ORDER_CHARGED"
    ORDER_HELD = "ORDER_HELD"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    ORDER_DELETED = "ORDER_DELETED"

    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_UPDATED = "ACCOUNT_UPDATED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[dict] = None,
    target_enrollment: Optional[str] = None,
    target_order_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit entry to the current unit of work.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        actor: Token payload of the acting user, None for system actions
        target_enrollment: Account the action touched
        target_order_id: Order the action touched
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor=actor.get("sub") if actor else None,
        actor_role=actor.get("role") if actor else None,
        action=action,
        target_enrollment=target_enrollment,
        target_order_id=target_order_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_enrollment: Optional[str] = None,
    target_order_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_enrollment:
        query = query.where(AuditLog.target_enrollment == target_enrollment)

    if target_order_id:
        query = query.where(AuditLog.target_order_id == target_order_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
