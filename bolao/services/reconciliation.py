"""
Payment-to-participation reconciliation engine.

Purchases create a pending payment record and a gateway checkout. `verify`
asks the gateway for the authoritative status and, exactly once per payment,
moves the record to `paid` and merges its quotas into the participation and
the contest ledger in a single transaction. Admin grants take the same merge
path without the gateway.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.auth import AuthContext
from bolao.core.config import settings
from bolao.core.errors import (
    BolaoError, ContestNotFound, ContestNotOpen, InsufficientCapacity, InvalidNumbers,
    LedgerIntegrityError, OperatorPurchaseNotAllowed, PaymentNotFound, GatewayUnavailable, GatewayError
)
from bolao.core.metrics import PURCHASE_COUNT, RECONCILIATION_COUNT, MERGE_COUNT
from bolao.db.unit_of_work import run_unit_of_work
from bolao.models.contest import Contest
from bolao.models.enums import ContestStatus, GatewayPaymentStatus, PaymentMethod, PaymentStatus
from bolao.models.participation import Participation
from bolao.models.payment import PaymentRecord
from bolao.repos.admin_config_repo import get_admin_config
from bolao.repos.audit_log_repo import add_audit_log
from bolao.repos.contest_repo import get_contest_by_id, reserve_quotas
from bolao.repos.participation_repo import get_participation, merge_participation
from bolao.repos.payment_repo import (
    add_payment_record, get_payment_by_id, get_payment_by_session_id, mark_unallocatable, transition_pending
)
from bolao.services.payment_gateway import PaymentGateway
from bolao.services.tickets import generate_ticket_numbers, validate_ticket_numbers

# Configure logging
logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Contests still accepting merges of money already captured or admin grants
MERGEABLE_STATUSES = {ContestStatus.OPEN.value, ContestStatus.CLOSED.value}


@dataclass
class PurchaseResult:
    payment_id: UUID
    checkout_session_id: str
    checkout_url: str

    def to_dict(self):
        return {
            "payment_id": str(self.payment_id),
            "checkout_session_id": self.checkout_session_id,
            "checkout_url": self.checkout_url
        }


@dataclass
class VerifyResult:
    payment_id: UUID
    payment_status: str
    internal_status: str
    already_reconciled: bool = False
    merged: bool = False

    def to_dict(self):
        return {
            "payment_id": str(self.payment_id),
            "payment_status": self.payment_status,
            "internal_status": self.internal_status,
            "already_reconciled": self.already_reconciled,
            "merged": self.merged
        }


def quota_amount(contest: Contest, quota_count: int, is_house: bool) -> Decimal:
    """Amount owed for `quota_count` quotas. The house never pays."""
    if is_house:
        return Decimal("0.00")
    return (Decimal(contest.price_per_quota) * quota_count).quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_ticket_numbers(chosen: Optional[List[int]]) -> List[int]:
    """
    Numbers for a brand new participation, following the `auto_assign_numbers` policy.
    """
    if chosen:
        return validate_ticket_numbers(chosen)
    if settings.auto_assign_numbers:
        return generate_ticket_numbers()
    raise InvalidNumbers("A ticket with 6 numbers is required for a first participation")


async def apply_paid_payment(session: AsyncSession, payment: PaymentRecord) -> Participation:
    """
    Merge step for a payment that has just become `paid`.
    
    Reserves the quotas on the contest ledger and sums them onto the
    participation. Runs inside the caller's unit of work; does not commit.
    """
    config = await get_admin_config(session)
    is_house = config.operator_user_id is not None and payment.user_id == config.operator_user_id
    
    await reserve_quotas(session, payment.contest_id, payment.quota_count)
    participation = await merge_participation(
        session,
        user_id=payment.user_id,
        contest_id=payment.contest_id,
        quota_count=payment.quota_count,
        amount=payment.amount,
        numbers_factory=lambda: resolve_ticket_numbers(payment.chosen_numbers),
        is_house=is_house
    )
    MERGE_COUNT.labels(source=payment.method).inc()
    return participation


async def purchase_quotas(
    session: AsyncSession,
    gateway: PaymentGateway,
    auth: AuthContext,
    contest_id: UUID,
    quota_count: int,
    numbers: Optional[List[int]] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None
) -> PurchaseResult:
    """
    Start a gateway purchase of `quota_count` quotas.
    
    Creates a pending payment record, then the gateway checkout. Capacity is
    checked here for a fast answer; the authoritative reservation happens in
    the merge when the payment is confirmed.
    
    Raises:
        ContestNotFound, ContestNotOpen, InsufficientCapacity, InvalidNumbers,
        LedgerIntegrityError, OperatorPurchaseNotAllowed,
        GatewayUnavailable, GatewayError
    """
    if quota_count <= 0:
        raise ValueError("Quota count must be positive")
    
    contest = await get_contest_by_id(session, contest_id)
    if contest is None:
        raise ContestNotFound(contest_id)
    if contest.status != ContestStatus.OPEN.value:
        PURCHASE_COUNT.labels(status="contest_not_open").inc()
        raise ContestNotOpen(contest_id, contest.status)
    if contest.integrity_locked:
        raise LedgerIntegrityError(contest_id)
    if quota_count > contest.quotas_available:
        PURCHASE_COUNT.labels(status="insufficient_capacity").inc()
        raise InsufficientCapacity(contest_id, quota_count, contest.quotas_available)
    
    config = await get_admin_config(session)
    if config.operator_user_id is not None and auth.user_id == config.operator_user_id:
        raise OperatorPurchaseNotAllowed("Operator quotas are granted by an administrator, not purchased")
    
    chosen = validate_ticket_numbers(numbers) if numbers else None
    if chosen is None and not settings.auto_assign_numbers:
        existing = await get_participation(session, auth.user_id, contest_id)
        if existing is None:
            raise InvalidNumbers("A ticket with 6 numbers is required for a first participation")
    
    payment = add_payment_record(
        session,
        user_id=auth.user_id,
        contest_id=contest_id,
        quota_count=quota_count,
        amount=quota_amount(contest, quota_count, is_house=False),
        method=PaymentMethod.GATEWAY.value,
        status=PaymentStatus.PENDING.value,
        chosen_numbers=chosen
    )
    await session.commit()
    logger.info(f"Payment {payment.id} created: user {auth.user_id}, contest {contest_id}, {quota_count} quotas")
    
    base_url = settings.public_base_url.rstrip("/")
    try:
        checkout = await gateway.create_checkout_session(
            contest_id=contest_id,
            quota_count=quota_count,
            unit_amount=Decimal(contest.price_per_quota),
            description=f"{contest.name} - {quota_count} cota(s)",
            success_url=success_url or f"{base_url}/pagamento-sucesso?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=cancel_url or f"{base_url}/concursos",
            metadata={
                "payment_id": str(payment.id),
                "contest_id": str(contest_id),
                "user_id": str(auth.user_id)
            }
        )
    except GatewayUnavailable:
        PURCHASE_COUNT.labels(status="gateway_unavailable").inc()
        logger.warning(f"Gateway unavailable while creating checkout for payment {payment.id}")
        raise
    except GatewayError:
        PURCHASE_COUNT.labels(status="gateway_error").inc()
        # The gateway refused outright; no money can be captured for this record
        await transition_pending(session, payment.id, PaymentStatus.CANCELLED.value)
        await session.commit()
        raise
    
    payment.checkout_session_id = checkout.session_id
    await session.commit()
    PURCHASE_COUNT.labels(status="checkout_created").inc()
    logger.info(f"Payment {payment.id} linked to checkout session {checkout.session_id}")
    
    return PurchaseResult(
        payment_id=payment.id,
        checkout_session_id=checkout.session_id,
        checkout_url=checkout.redirect_url
    )


async def _settle_paid(session: AsyncSession, payment_id: UUID, payment_intent_id: Optional[str]) -> bool:
    """
    Transition pending -> paid and run the merge step as one transaction.
    
    Returns:
        True if this call won the transition, False if the record was already terminal
    """
    if not await transition_pending(session, payment_id, PaymentStatus.PAID.value, payment_intent_id):
        await session.rollback()
        return False
    
    payment = await get_payment_by_id(session, payment_id)
    contest = await get_contest_by_id(session, payment.contest_id)
    if contest.status not in MERGEABLE_STATUSES:
        logger.warning(
            f"Merging captured payment {payment_id} into contest {contest.id} with status {contest.status}"
        )
    
    participation = await apply_paid_payment(session, payment)
    await session.commit()
    logger.info(
        f"Payment {payment_id} reconciled: participation {participation.id} "
        f"now holds {participation.quota_count} quotas"
    )
    return True


async def _close_pending(session: AsyncSession, payment_id: UUID, new_status: str) -> None:
    if await transition_pending(session, payment_id, new_status):
        logger.info(f"Payment {payment_id} moved to {new_status}")
    await session.commit()


async def _record_unallocatable_payment(session: AsyncSession, payment: PaymentRecord, error: BolaoError) -> None:
    """Money was captured but the quotas cannot be merged; leave a trail for a manual refund."""
    payment_id, contest_id = payment.id, payment.contest_id
    if not await mark_unallocatable(session, payment_id):
        await session.rollback()
        logger.warning(f"Captured payment {payment_id} still cannot be merged into contest {contest_id}: {error}")
        return
    
    logger.error(
        f"Captured payment {payment.id} could not be merged into contest {payment.contest_id}: {error}. "
        f"Record stays pending; manual action required"
    )
    add_audit_log(
        session,
        action="payment_unallocatable",
        contest_id=payment.contest_id,
        details={
            "payment_id": str(payment.id),
            "user_id": str(payment.user_id),
            "quota_count": payment.quota_count,
            "amount": str(payment.amount),
            "error": str(error)
        }
    )
    await session.commit()


async def verify_payment(session: AsyncSession, gateway: PaymentGateway, session_id: str) -> VerifyResult:
    """
    Reconcile a payment record with the gateway's authoritative status.
    
    Safe to call any number of times for the same session: only the first
    call that sees `paid` performs the merge. An unpaid session is a normal
    result, not an error. A gateway failure leaves the record untouched.
    
    Raises:
        PaymentNotFound, GatewayUnavailable, GatewayError,
        InsufficientCapacity / LedgerIntegrityError when captured money cannot be merged
    """
    payment = await get_payment_by_session_id(session, session_id)
    if payment is None:
        RECONCILIATION_COUNT.labels(outcome="not_found").inc()
        raise PaymentNotFound(session_id)
    payment_id = payment.id
    
    try:
        gateway_status = await gateway.get_session_status(session_id)
    except GatewayUnavailable:
        RECONCILIATION_COUNT.labels(outcome="gateway_unavailable").inc()
        logger.warning(f"Gateway unavailable verifying session {session_id}; payment {payment_id} stays {payment.status}")
        raise
    
    status_value = gateway_status.payment_status.value
    
    if payment.status == PaymentStatus.PAID.value:
        RECONCILIATION_COUNT.labels(outcome="already_reconciled").inc()
        logger.info(f"Payment {payment_id} already reconciled; nothing to do")
        return VerifyResult(
            payment_id=payment_id,
            payment_status=status_value,
            internal_status=payment.status,
            already_reconciled=True
        )
    
    merged = False
    if gateway_status.payment_status == GatewayPaymentStatus.PAID:
        try:
            merged = await run_unit_of_work(
                session,
                "verify_payment",
                lambda: _settle_paid(session, payment_id, gateway_status.payment_intent_id)
            )
        except (InsufficientCapacity, LedgerIntegrityError, InvalidNumbers) as e:
            RECONCILIATION_COUNT.labels(outcome="unallocatable").inc()
            # The rollback expired every loaded instance
            payment = await get_payment_by_id(session, payment_id)
            await _record_unallocatable_payment(session, payment, e)
            raise
        RECONCILIATION_COUNT.labels(outcome="merged" if merged else "already_reconciled").inc()
    elif gateway_status.payment_status == GatewayPaymentStatus.EXPIRED:
        await _close_pending(session, payment_id, PaymentStatus.EXPIRED.value)
        RECONCILIATION_COUNT.labels(outcome="expired").inc()
    elif not gateway_status.session_open:
        await _close_pending(session, payment_id, PaymentStatus.CANCELLED.value)
        RECONCILIATION_COUNT.labels(outcome="cancelled").inc()
    else:
        RECONCILIATION_COUNT.labels(outcome="pending").inc()
        logger.info(f"Session {session_id} still awaiting payment")
    
    payment = await get_payment_by_id(session, payment_id)
    return VerifyResult(
        payment_id=payment_id,
        payment_status=status_value,
        internal_status=payment.status,
        already_reconciled=not merged and payment.status == PaymentStatus.PAID.value,
        merged=merged
    )


async def admin_grant(
    session: AsyncSession,
    auth: AuthContext,
    contest_id: UUID,
    user_id: UUID,
    quota_count: int,
    numbers: Optional[List[int]] = None
) -> Participation:
    """
    Grant quotas to a user without the gateway (admin-assisted payment).
    
    Creates an already-paid `admin` payment record and merges it in the same
    transaction. Grants to the operator account are recorded with amount 0.
    
    Raises:
        ContestNotFound, ContestNotOpen, InsufficientCapacity, InvalidNumbers,
        LedgerIntegrityError
    """
    if quota_count <= 0:
        raise ValueError("Quota count must be positive")
    
    contest = await get_contest_by_id(session, contest_id)
    if contest is None:
        raise ContestNotFound(contest_id)
    if contest.status not in MERGEABLE_STATUSES:
        raise ContestNotOpen(contest_id, contest.status)
    
    chosen = validate_ticket_numbers(numbers) if numbers else None
    config = await get_admin_config(session)
    is_house = config.operator_user_id is not None and user_id == config.operator_user_id
    amount = quota_amount(contest, quota_count, is_house)
    
    async def _grant() -> Participation:
        payment = add_payment_record(
            session,
            user_id=user_id,
            contest_id=contest_id,
            quota_count=quota_count,
            amount=amount,
            method=PaymentMethod.ADMIN.value,
            status=PaymentStatus.PAID.value,
            chosen_numbers=chosen
        )
        await session.flush()
        participation = await apply_paid_payment(session, payment)
        add_audit_log(
            session,
            action="admin_grant",
            actor_id=auth.user_id,
            contest_id=contest_id,
            details={
                "payment_id": str(payment.id),
                "user_id": str(user_id),
                "quota_count": quota_count,
                "amount": str(amount),
                "is_house": is_house
            }
        )
        await session.commit()
        return participation
    
    participation = await run_unit_of_work(session, "admin_grant", _grant)
    logger.info(
        f"Admin {auth.user_id} granted {quota_count} quotas to user {user_id} in contest {contest_id}"
    )
    return participation
