"""
Contest lifecycle: forward-only status changes, draw recording and finalization
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.config import settings
from bolao.core.errors import ContestNotFound, InvalidStatusTransition
from bolao.models.audit_log import AuditLog
from bolao.models.contest import Contest
from bolao.models.enums import ContestStatus, CONTEST_STATUS_ORDER
from bolao.repos.admin_config_repo import get_admin_config
from bolao.repos.audit_log_repo import add_audit_log
from bolao.repos.contest_repo import get_contest_by_id
from bolao.repos.participation_repo import get_contest_participations
from bolao.services.distribution import compute_distribution
from bolao.services.tickets import count_hits, validate_ticket_numbers

# Configure logging
logger = logging.getLogger(__name__)

FINALIZE_ACTION = "contest_finalized"


def check_transition(contest: Contest, target: str) -> None:
    """Allow only the next status in open -> closed -> drawn -> finalized."""
    current_index = CONTEST_STATUS_ORDER.index(contest.status)
    target_index = CONTEST_STATUS_ORDER.index(target)
    if target_index != current_index + 1:
        raise InvalidStatusTransition(contest.id, contest.status, target)


async def _load_for_update(session: AsyncSession, contest_id: UUID) -> Contest:
    contest = await get_contest_by_id(session, contest_id, for_update=True)
    if contest is None:
        raise ContestNotFound(contest_id)
    return contest


async def close_contest(session: AsyncSession, contest_id: UUID, admin_id: Optional[UUID] = None) -> Contest:
    """
    Stop selling quotas. Payments already captured can still be reconciled.
    """
    contest = await _load_for_update(session, contest_id)
    check_transition(contest, ContestStatus.CLOSED.value)
    
    contest.status = ContestStatus.CLOSED.value
    add_audit_log(
        session,
        action="contest_closed",
        actor_id=admin_id,
        contest_id=contest_id,
        details={"quotas_sold": contest.quotas_sold, "capacity": contest.capacity}
    )
    await session.commit()
    await session.refresh(contest)
    logger.info(f"Contest {contest_id} closed with {contest.quotas_sold}/{contest.capacity} quotas sold")
    return contest


async def record_draw(
    session: AsyncSession,
    contest_id: UUID,
    numbers: List[int],
    admin_id: Optional[UUID] = None
) -> Contest:
    """
    Store the official drawn numbers and score every participation.
    
    Args:
        session: Database session
        contest_id: Contest UUID (must be closed)
        numbers: The 6 drawn numbers
        admin_id: Admin recording the draw
    
    Returns:
        The drawn Contest
    
    Raises:
        ContestNotFound, InvalidStatusTransition, InvalidNumbers
    """
    drawn = validate_ticket_numbers(numbers)
    contest = await _load_for_update(session, contest_id)
    check_transition(contest, ContestStatus.DRAWN.value)
    
    participations = await get_contest_participations(session, contest_id)
    winners = 0
    for participation in participations:
        hits = count_hits(participation.chosen_numbers, drawn)
        participation.numbers_matched = hits
        participation.is_winner = hits >= settings.min_winning_hits
        if participation.is_winner:
            winners += 1
    
    contest.drawn_numbers = drawn
    contest.status = ContestStatus.DRAWN.value
    add_audit_log(
        session,
        action="contest_drawn",
        actor_id=admin_id,
        contest_id=contest_id,
        details={"drawn_numbers": drawn, "participations": len(participations), "winners": winners}
    )
    await session.commit()
    await session.refresh(contest)
    logger.info(f"Contest {contest_id} drawn {drawn}: {winners} of {len(participations)} tickets with "
                f"{settings.min_winning_hits}+ hits")
    return contest


async def _get_finalization_snapshot(session: AsyncSession, contest_id: UUID) -> Optional[Dict]:
    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.action == FINALIZE_ACTION)
        .where(AuditLog.contest_id == contest_id)
        .order_by(AuditLog.created_at.desc())
        .limit(1)
    )
    audit_log = result.scalar_one_or_none()
    return audit_log.details if audit_log else None


async def finalize_contest(session: AsyncSession, contest_id: UUID, admin_id: Optional[UUID] = None) -> Dict:
    """
    Freeze the contest's distribution.
    
    Writes each participation's prize amount, stores the whole distribution
    in the audit log and marks the contest finalized. Calling it again on a
    finalized contest returns the stored snapshot without recomputing.
    
    Raises:
        ContestNotFound, InvalidStatusTransition
    """
    contest = await _load_for_update(session, contest_id)
    
    if contest.status == ContestStatus.FINALIZED.value:
        await session.rollback()
        logger.info(f"Contest {contest_id} already finalized, returning stored snapshot")
        snapshot = await _get_finalization_snapshot(session, contest_id)
        return {"status": "already_finalized", **(snapshot or {})}
    
    check_transition(contest, ContestStatus.FINALIZED.value)
    
    config = await get_admin_config(session)
    participations = await get_contest_participations(session, contest_id)
    distribution = compute_distribution(contest, participations, config, config.operator_user_id)
    
    prizes = {share.participation_id: share.prize_amount for share in distribution.shares}
    for participation in participations:
        participation.prize_amount = prizes[participation.id]
    
    snapshot = distribution.to_dict(admin=True)
    snapshot["drawn_numbers"] = contest.drawn_numbers
    snapshot["commission_percent"] = str(config.commission_percent)
    snapshot["free_quota_count"] = config.free_quota_count
    snapshot["finalized_at"] = datetime.now(timezone.utc).isoformat()
    
    contest.status = ContestStatus.FINALIZED.value
    add_audit_log(
        session,
        action=FINALIZE_ACTION,
        actor_id=admin_id,
        contest_id=contest_id,
        details=snapshot
    )
    await session.commit()
    
    logger.info(
        f"Finalized contest {contest_id}: revenue {distribution.revenue}, "
        f"commission {distribution.commission}, pool {distribution.playable_pool}, "
        f"{len(distribution.shares)} participations"
    )
    if distribution.warnings:
        logger.warning(f"Contest {contest_id} finalized with {len(distribution.warnings)} configuration warning(s)")
    
    return {"status": "finalized", **snapshot}
