"""
Audit log repository for admin action and ledger event tracking
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.models.audit_log import AuditLog


def add_audit_log(
    session: AsyncSession,
    action: str,
    details: dict,
    actor_id: Optional[UUID] = None,
    contest_id: Optional[UUID] = None
) -> AuditLog:
    """
    Stage an audit log entry in the caller's unit of work.
    
    Args:
        session: Database session
        action: Action performed
        details: Additional details as JSON
        actor_id: Admin user ID who performed the action, None for the engine
        contest_id: Contest affected, if any
    
    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor="admin" if actor_id else "system",
        action=action,
        contest_id=contest_id,
        details=details
    )
    session.add(audit_log)
    return audit_log


async def get_audit_logs(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
    action: Optional[str] = None,
    contest_id: Optional[UUID] = None
) -> List[AuditLog]:
    """
    Get audit logs, newest first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.created_at))
    
    if action:
        query = query.where(AuditLog.action == action)
    
    if contest_id:
        query = query.where(AuditLog.contest_id == contest_id)
    
    query = query.limit(limit).offset(offset)
    
    result = await session.execute(query)
    return list(result.scalars().all())
