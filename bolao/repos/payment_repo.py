"""
Payment record repository
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.models.enums import PaymentStatus, PaymentMethod
from bolao.models.payment import PaymentRecord


def add_payment_record(
    session: AsyncSession,
    user_id: UUID,
    contest_id: UUID,
    quota_count: int,
    amount: Decimal,
    method: str = PaymentMethod.GATEWAY.value,
    status: str = PaymentStatus.PENDING.value,
    chosen_numbers: Optional[List[int]] = None
) -> PaymentRecord:
    """
    Stage a new payment record in the session. The caller commits.
    """
    payment = PaymentRecord(
        user_id=user_id,
        contest_id=contest_id,
        quota_count=quota_count,
        amount=amount,
        method=method,
        status=status,
        chosen_numbers=chosen_numbers,
        paid_at=datetime.now(timezone.utc) if status == PaymentStatus.PAID.value else None
    )
    session.add(payment)
    return payment


async def get_payment_by_id(session: AsyncSession, payment_id: UUID) -> Optional[PaymentRecord]:
    """
    Get payment record by ID.
    """
    result = await session.execute(
        select(PaymentRecord)
        .where(PaymentRecord.id == payment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_payment_by_session_id(session: AsyncSession, checkout_session_id: str) -> Optional[PaymentRecord]:
    """
    Get payment record by its gateway checkout-session id.
    """
    result = await session.execute(
        select(PaymentRecord)
        .where(PaymentRecord.checkout_session_id == checkout_session_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def transition_pending(
    session: AsyncSession,
    payment_id: UUID,
    new_status: str,
    payment_intent_id: Optional[str] = None
) -> bool:
    """
    Move a payment out of `pending`. Does not commit.
    
    The status guard lives in the WHERE clause, so only one caller can win the
    transition; everyone else sees False. Terminal records are never touched.
    
    Returns:
        True if this call performed the transition
    """
    values = {"status": new_status}
    if new_status == PaymentStatus.PAID.value:
        values["paid_at"] = datetime.now(timezone.utc)
        values["unallocatable_at"] = None
    if payment_intent_id:
        values["payment_intent_id"] = payment_intent_id
    
    result = await session.execute(
        update(PaymentRecord)
        .where(PaymentRecord.id == payment_id)
        .where(PaymentRecord.status == PaymentStatus.PENDING.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def mark_unallocatable(session: AsyncSession, payment_id: UUID) -> bool:
    """
    Flag a pending payment whose captured money could not be merged. Does not commit.
    
    Returns:
        True the first time a record is flagged, False if it already was
    """
    result = await session.execute(
        update(PaymentRecord)
        .where(PaymentRecord.id == payment_id)
        .where(PaymentRecord.status == PaymentStatus.PENDING.value)
        .where(PaymentRecord.unallocatable_at.is_(None))
        .values(unallocatable_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def get_payments(
    session: AsyncSession,
    user_id: Optional[UUID] = None,
    contest_id: Optional[UUID] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0
) -> List[PaymentRecord]:
    """
    List payment records, newest first.
    
    Args:
        session: Database session
        user_id: Restrict to one user's records
        contest_id: Restrict to one contest
        status: Filter by status
        limit: Maximum number of records to return
        offset: Number of records to skip
    """
    query = (
        select(PaymentRecord)
        .order_by(desc(PaymentRecord.created_at))
        .execution_options(populate_existing=True)
    )
    
    if user_id:
        query = query.where(PaymentRecord.user_id == user_id)
    if contest_id:
        query = query.where(PaymentRecord.contest_id == contest_id)
    if status:
        query = query.where(PaymentRecord.status == status)
    
    query = query.limit(limit).offset(offset)
    
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_stale_pending_session_ids(
    session: AsyncSession,
    older_than: datetime,
    limit: int = 200
) -> List[str]:
    """
    Checkout-session ids of gateway payments still pending since before `older_than`.
    Records already flagged as unallocatable wait for an admin instead.
    """
    result = await session.execute(
        select(PaymentRecord.checkout_session_id)
        .where(PaymentRecord.status == PaymentStatus.PENDING.value)
        .where(PaymentRecord.method == PaymentMethod.GATEWAY.value)
        .where(PaymentRecord.checkout_session_id.is_not(None))
        .where(PaymentRecord.created_at < older_than)
        .where(PaymentRecord.unallocatable_at.is_(None))
        .order_by(PaymentRecord.created_at)
        .limit(limit)
    )
    return [row[0] for row in result.all()]
