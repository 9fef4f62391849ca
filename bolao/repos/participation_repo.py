"""
Participation repository: one row per (user, contest), merged additively
"""

import logging
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import select, update, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.models.participation import Participation

# Configure logging
logger = logging.getLogger(__name__)


async def get_participation(
    session: AsyncSession,
    user_id: UUID,
    contest_id: UUID,
    for_update: bool = False
) -> Optional[Participation]:
    """
    Get the participation of a user in a contest.
    """
    query = (
        select(Participation)
        .where(Participation.user_id == user_id)
        .where(Participation.contest_id == contest_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_participation_by_id(
    session: AsyncSession,
    participation_id: UUID,
    for_update: bool = False
) -> Optional[Participation]:
    """
    Get participation by ID.
    """
    query = select(Participation).where(Participation.id == participation_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_contest_participations(session: AsyncSession, contest_id: UUID) -> List[Participation]:
    """
    Get every participation of a contest, oldest first.
    """
    result = await session.execute(
        select(Participation)
        .where(Participation.contest_id == contest_id)
        .order_by(Participation.created_at, Participation.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_participations(
    session: AsyncSession,
    user_id: Optional[UUID] = None,
    contest_id: Optional[UUID] = None,
    limit: int = 50,
    offset: int = 0
) -> List[Participation]:
    """
    List participations, newest first.
    
    Args:
        session: Database session
        user_id: Restrict to one user
        contest_id: Restrict to one contest
        limit: Maximum number of records to return
        offset: Number of records to skip
    """
    query = (
        select(Participation)
        .order_by(desc(Participation.created_at), Participation.id)
        .execution_options(populate_existing=True)
    )
    
    if user_id:
        query = query.where(Participation.user_id == user_id)
    if contest_id:
        query = query.where(Participation.contest_id == contest_id)
    
    query = query.limit(limit).offset(offset)
    
    result = await session.execute(query)
    return list(result.scalars().all())


async def sum_contest_quotas(session: AsyncSession, contest_id: UUID) -> int:
    """
    Sum of quota_count over all participations of a contest.
    """
    result = await session.execute(
        select(func.coalesce(func.sum(Participation.quota_count), 0))
        .where(Participation.contest_id == contest_id)
    )
    return int(result.scalar_one())


async def merge_participation(
    session: AsyncSession,
    user_id: UUID,
    contest_id: UUID,
    quota_count: int,
    amount: Decimal,
    numbers_factory: Callable[[], List[int]],
    is_house: bool = False
) -> Participation:
    """
    Create the (user, contest) participation or add onto the existing one.
    
    Quota count and amount are summed with an in-database increment, never
    recomputed, so manually adjusted history survives. The operator's own row
    always keeps amount_paid at zero. Does not commit.
    
    Args:
        session: Database session inside an open unit of work
        user_id: Participant UUID
        contest_id: Contest UUID
        quota_count: Quotas to add
        amount: Amount to add (ignored for the house)
        numbers_factory: Called only when a new row is created
        is_house: Whether user_id is the operator account
    
    Returns:
        The created or updated Participation
    """
    amount = Decimal("0") if is_house else amount
    existing = await get_participation(session, user_id, contest_id, for_update=True)
    
    if existing is None:
        participation = Participation(
            user_id=user_id,
            contest_id=contest_id,
            chosen_numbers=numbers_factory(),
            quota_count=quota_count,
            amount_paid=amount
        )
        try:
            async with session.begin_nested():
                session.add(participation)
                await session.flush()
            logger.info(
                f"Created participation {participation.id} for user {user_id} "
                f"in contest {contest_id}: {quota_count} quotas, {amount} paid"
            )
            return participation
        except IntegrityError:
            # Another writer created the row first; fall through to the additive update
            logger.warning(
                f"Concurrent participation create for user {user_id} in contest {contest_id}, "
                f"merging into existing row"
            )
            existing = await get_participation(session, user_id, contest_id, for_update=True)
            if existing is None:
                raise
    
    values = {"quota_count": Participation.quota_count + quota_count}
    if is_house:
        values["amount_paid"] = Decimal("0")
    else:
        values["amount_paid"] = Participation.amount_paid + amount
    
    await session.execute(
        update(Participation)
        .where(Participation.id == existing.id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(existing)
    logger.info(
        f"Merged {quota_count} quotas into participation {existing.id}: "
        f"now {existing.quota_count} quotas, {existing.amount_paid} paid"
    )
    return existing
