"""
Administrator corrections to participations and the contest quota ledger.

Every change keeps `contests.quotas_sold` equal to the sum of the contest's
participation quota counts, and every change is written to the audit log.
"""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.auth import AuthContext
from bolao.core.errors import ContestNotFound, LedgerIntegrityError, ParticipationNotFound
from bolao.db.unit_of_work import run_unit_of_work
from bolao.models.contest import Contest
from bolao.models.participation import Participation
from bolao.repos.admin_config_repo import get_admin_config
from bolao.repos.audit_log_repo import add_audit_log
from bolao.repos.contest_repo import get_contest_by_id, release_quotas, reserve_quotas, set_integrity_lock
from bolao.repos.participation_repo import get_participation_by_id, sum_contest_quotas
from bolao.services.reconciliation import quota_amount
from bolao.services.tickets import validate_ticket_numbers

# Configure logging
logger = logging.getLogger(__name__)


async def update_participation(
    session: AsyncSession,
    auth: AuthContext,
    participation_id: UUID,
    quota_count: Optional[int] = None,
    numbers: Optional[List[int]] = None
) -> Participation:
    """
    Explicit admin edit of a participation.
    
    A quota change moves the contest ledger by the difference (an increase is
    capacity checked) and recomputes the amount paid, zero for the house.
    
    Raises:
        ParticipationNotFound, InsufficientCapacity, LedgerIntegrityError, InvalidNumbers
    """
    if quota_count is not None and quota_count < 1:
        raise ValueError("Quota count must be at least 1")
    chosen = validate_ticket_numbers(numbers) if numbers is not None else None
    
    async def _update() -> Participation:
        participation = await get_participation_by_id(session, participation_id, for_update=True)
        if participation is None:
            raise ParticipationNotFound(participation_id)
        contest = await get_contest_by_id(session, participation.contest_id)
        
        before = {
            "quota_count": participation.quota_count,
            "amount_paid": str(participation.amount_paid),
            "chosen_numbers": participation.chosen_numbers
        }
        values = {}
        
        if quota_count is not None and quota_count != participation.quota_count:
            delta = quota_count - participation.quota_count
            if delta > 0:
                await reserve_quotas(session, contest.id, delta)
            else:
                await release_quotas(session, contest.id, -delta)
            config = await get_admin_config(session)
            is_house = config.operator_user_id is not None and participation.user_id == config.operator_user_id
            values["quota_count"] = quota_count
            values["amount_paid"] = quota_amount(contest, quota_count, is_house)
        
        if chosen is not None:
            values["chosen_numbers"] = chosen
        
        if values:
            await session.execute(
                update(Participation)
                .where(Participation.id == participation_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        
        participation = await get_participation_by_id(session, participation_id)
        await session.refresh(participation)
        add_audit_log(
            session,
            action="participation_updated",
            actor_id=auth.user_id,
            contest_id=contest.id,
            details={
                "participation_id": str(participation_id),
                "user_id": str(participation.user_id),
                "before": before,
                "after": {
                    "quota_count": participation.quota_count,
                    "amount_paid": str(participation.amount_paid),
                    "chosen_numbers": participation.chosen_numbers
                }
            }
        )
        await session.commit()
        return participation
    
    participation = await run_unit_of_work(session, "update_participation", _update)
    logger.info(f"Admin {auth.user_id} updated participation {participation_id}")
    return participation


async def delete_participation(session: AsyncSession, auth: AuthContext, participation_id: UUID) -> None:
    """
    Explicit admin deletion of a participation, releasing its quotas.
    Payment records are kept as history.
    
    Raises:
        ParticipationNotFound, LedgerIntegrityError
    """
    async def _delete() -> None:
        participation = await get_participation_by_id(session, participation_id, for_update=True)
        if participation is None:
            raise ParticipationNotFound(participation_id)
        
        details = {
            "participation_id": str(participation_id),
            "user_id": str(participation.user_id),
            "quota_count": participation.quota_count,
            "amount_paid": str(participation.amount_paid),
            "chosen_numbers": participation.chosen_numbers
        }
        contest_id = participation.contest_id
        
        await release_quotas(session, contest_id, participation.quota_count)
        await session.execute(delete(Participation).where(Participation.id == participation_id))
        add_audit_log(
            session,
            action="participation_deleted",
            actor_id=auth.user_id,
            contest_id=contest_id,
            details=details
        )
        await session.commit()
    
    await run_unit_of_work(session, "delete_participation", _delete)
    logger.info(f"Admin {auth.user_id} deleted participation {participation_id}")


async def check_ledger(session: AsyncSession, contest_id: UUID) -> Dict:
    """
    Compare the sold counter with the participations.
    
    An inconsistent ledger is logged, audited and locked against automatic
    mutation until `resync_ledger` repairs it.
    
    Returns:
        Report with the counter, the participation sum and whether they agree
    """
    contest = await get_contest_by_id(session, contest_id)
    if contest is None:
        raise ContestNotFound(contest_id)
    
    participation_total = await sum_contest_quotas(session, contest_id)
    consistent = contest.quotas_sold == participation_total and contest.quotas_sold <= contest.capacity
    report = {
        "contest_id": str(contest_id),
        "quotas_sold": contest.quotas_sold,
        "participation_quotas": participation_total,
        "capacity": contest.capacity,
        "consistent": consistent,
        "integrity_locked": contest.integrity_locked
    }
    
    if not consistent:
        logger.error(
            f"Ledger mismatch in contest {contest_id}: sold={contest.quotas_sold}, "
            f"participations={participation_total}, capacity={contest.capacity}. Locking contest"
        )
        await set_integrity_lock(session, contest_id, True)
        add_audit_log(session, action="ledger_integrity_violation", contest_id=contest_id, details=report)
        await session.commit()
        report["integrity_locked"] = True
    
    return report


async def resync_ledger(session: AsyncSession, auth: AuthContext, contest_id: UUID) -> Contest:
    """
    Recompute `quotas_sold` from the participations and lift the integrity lock.
    
    Raises:
        ContestNotFound, LedgerIntegrityError if the participations themselves
        exceed capacity (they must be corrected first)
    """
    async def _resync() -> Contest:
        contest = await get_contest_by_id(session, contest_id, for_update=True)
        if contest is None:
            raise ContestNotFound(contest_id)
        
        participation_total = await sum_contest_quotas(session, contest_id)
        if participation_total > contest.capacity:
            raise LedgerIntegrityError(
                contest_id,
                f"Participations hold {participation_total} quotas, above capacity {contest.capacity}"
            )
        
        previous = contest.quotas_sold
        await session.execute(
            update(Contest)
            .where(Contest.id == contest_id)
            .values(quotas_sold=participation_total, integrity_locked=False)
            .execution_options(synchronize_session=False)
        )
        add_audit_log(
            session,
            action="ledger_resync",
            actor_id=auth.user_id,
            contest_id=contest_id,
            details={"previous_quotas_sold": previous, "quotas_sold": participation_total}
        )
        await session.commit()
        return await get_contest_by_id(session, contest_id)
    
    contest = await run_unit_of_work(session, "resync_ledger", _resync)
    logger.info(f"Admin {auth.user_id} resynced ledger of contest {contest_id}: {contest.quotas_sold} quotas sold")
    return contest
