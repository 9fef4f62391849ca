"""
Contest repository: contest records and the per-contest quota ledger.

The ledger functions (`reserve_quotas`, `release_quotas`) never commit; they
run inside the caller's unit of work so the counter moves in the same
transaction as the payment record and participation it belongs to.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.errors import ContestNotFound, InsufficientCapacity, LedgerIntegrityError
from bolao.models.contest import Contest
from bolao.models.enums import ContestStatus

# Configure logging
logger = logging.getLogger(__name__)


async def create_contest(
    session: AsyncSession,
    name: str,
    number: int,
    draw_date: datetime,
    price_per_quota: Decimal,
    capacity: int,
    description: Optional[str] = None,
    total_prize: Optional[Decimal] = None
) -> Contest:
    """
    Create a new open contest.
    
    Args:
        session: Database session
        name: Display name
        number: Official draw sequence number
        draw_date: Scheduled draw date
        price_per_quota: Price of a single quota
        capacity: Maximum number of quotas that can be sold
        description: Optional description
        total_prize: Announced prize (display only)
    
    Returns:
        Created Contest instance
    """
    contest = Contest(
        name=name,
        number=number,
        description=description,
        draw_date=draw_date,
        price_per_quota=price_per_quota,
        capacity=capacity,
        quotas_sold=0,
        status=ContestStatus.OPEN.value,
        total_prize=total_prize,
        integrity_locked=False
    )
    session.add(contest)
    await session.commit()
    await session.refresh(contest)
    return contest


async def get_contest_by_id(
    session: AsyncSession,
    contest_id: UUID,
    for_update: bool = False
) -> Optional[Contest]:
    """
    Get contest by ID.
    
    Args:
        session: Database session
        contest_id: Contest UUID
        for_update: Lock the row until the end of the transaction
    
    Returns:
        Contest instance or None if not found
    """
    query = select(Contest).where(Contest.id == contest_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_contests(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
    status: Optional[str] = None
) -> List[Contest]:
    """
    Get list of contests, newest draw first.
    """
    query = select(Contest).order_by(desc(Contest.draw_date), desc(Contest.number))
    
    if status:
        query = query.where(Contest.status == status)
    
    query = query.limit(limit).offset(offset)
    
    result = await session.execute(query)
    return list(result.scalars().all())


async def reserve_quotas(session: AsyncSession, contest_id: UUID, quantity: int) -> None:
    """
    Atomically move `quantity` quotas into the sold counter.
    
    The capacity check and the increment are one conditional UPDATE, so two
    concurrent buyers of the last quota serialize on the contest row and the
    loser gets InsufficientCapacity instead of over-selling the contest.
    
    Raises:
        ContestNotFound, LedgerIntegrityError, InsufficientCapacity
    """
    if quantity <= 0:
        raise ValueError("Quantity must be positive")
    
    result = await session.execute(
        update(Contest)
        .where(Contest.id == contest_id)
        .where(Contest.integrity_locked.is_(False))
        .where(Contest.quotas_sold + quantity <= Contest.capacity)
        .values(quotas_sold=Contest.quotas_sold + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        logger.info(f"Reserved {quantity} quotas in contest {contest_id}")
        return
    
    contest = await get_contest_by_id(session, contest_id)
    if contest is None:
        raise ContestNotFound(contest_id)
    if contest.integrity_locked:
        raise LedgerIntegrityError(contest_id)
    
    logger.info(
        f"Reservation of {quantity} quotas rejected for contest {contest_id}: "
        f"{contest.quotas_available} available"
    )
    raise InsufficientCapacity(contest_id, quantity, contest.quotas_available)


async def release_quotas(session: AsyncSession, contest_id: UUID, quantity: int) -> None:
    """
    Atomically return `quantity` quotas to the contest (admin edits and deletions).
    
    Raises:
        LedgerIntegrityError if the counter would go negative
    """
    if quantity <= 0:
        raise ValueError("Quantity must be positive")
    
    result = await session.execute(
        update(Contest)
        .where(Contest.id == contest_id)
        .where(Contest.quotas_sold >= quantity)
        .values(quotas_sold=Contest.quotas_sold - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.error(f"Releasing {quantity} quotas would drive contest {contest_id} below zero")
        raise LedgerIntegrityError(
            contest_id, f"Cannot release {quantity} quotas from contest {contest_id}"
        )


async def set_integrity_lock(session: AsyncSession, contest_id: UUID, locked: bool) -> None:
    """Flag or clear a contest as blocked from automatic ledger mutation."""
    await session.execute(
        update(Contest)
        .where(Contest.id == contest_id)
        .values(integrity_locked=locked)
        .execution_options(synchronize_session=False)
    )
