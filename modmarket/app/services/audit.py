"""
Audit trail for money-moving and entitlement-changing actions.

Events are written after the audited operation has committed, so a rolled
back operation never leaves an audit row behind.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from modmarket.app.models.audit_log import AuditLog


class AuditAction:
    """Audit action names stored in `AuditLog.action`."""
    DEPOSIT_RECORDED = "DEPOSIT_RECORDED"
    PROFIT_CASHED_OUT = "PROFIT_CASHED_OUT"
    MODS_PURCHASED = "MODS_PURCHASED"
    BUNDLE_SUBSCRIBED = "BUNDLE_SUBSCRIBED"
    AUTO_RENEW_TOGGLED = "AUTO_RENEW_TOGGLED"
    ALLOCATION_CHANGED = "ALLOCATION_CHANGED"
    RECONCILIATION_TRIGGERED = "RECONCILIATION_TRIGGERED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[Dict[str, Any]] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Persist one audit event and commit it.
    
    Args:
        db: Database session
        action: One of the AuditAction names
        actor: Token claims of the caller (None for system actions)
        target_user_id: Account affected, when it differs from the actor
        target_username: Login of that account
        metadata: JSON-serializable context
        ip_address: Client address
    """
    entry = AuditLog(
        actor_id=actor.get("user_id") if actor else None,
        actor_username=actor.get("sub") if actor else None,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        meta_data=metadata,
        ip_address=ip_address
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> List[AuditLog]:
    """Most recent events first, optionally filtered by target account and action."""
    query = select(AuditLog)
    if target_user_id is not None:
        query = query.where(AuditLog.target_user_id == target_user_id)
    if action:
        query = query.where(AuditLog.action == action)
    
    result = await db.execute(
        query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
    )
    return list(result.scalars().all())
