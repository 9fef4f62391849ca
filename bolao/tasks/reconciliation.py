"""
Background payment reconciliation tasks
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from sqlalchemy.exc import DBAPIError

from bolao.celery_app import celery
from bolao.core.config import settings
from bolao.core.errors import BolaoError, GatewayUnavailable
from bolao.db.session import async_engine, async_session
from bolao.repos.payment_repo import get_stale_pending_session_ids
from bolao.services.payment_gateway import get_payment_gateway
from bolao.services.reconciliation import verify_payment

logger = logging.getLogger(__name__)


def retry_countdown(retries: int) -> int:
    """Exponential backoff in seconds: 2, 4, 8, ... capped at 5 minutes."""
    return min(300, 2 ** (retries + 1))


async def reconcile_payment_async(session_id: str) -> Dict:
    """
    Async helper for reconciliation.
    
    Args:
        session_id: Gateway checkout session id
    
    Returns:
        The verify result as a dict
    """
    try:
        async with async_session() as db:
            result = await verify_payment(db, get_payment_gateway(), session_id)
            return result.to_dict()
    finally:
        # Each task runs its own event loop; pooled connections cannot outlive it
        await async_engine.dispose()


@celery.task(bind=True, acks_late=True, max_retries=settings.reconcile_max_retries)
def reconcile_payment(self, session_id):
    """
    Reconcile one checkout session with the gateway.
    
    Transient gateway and database failures are retried with backoff. Domain
    errors (unknown session, no capacity left) are final: retrying cannot
    change their outcome.
    """
    try:
        result = asyncio.run(reconcile_payment_async(session_id))
        logger.info(f"Reconciled session {session_id}: {result['internal_status']}")
        return result
    except GatewayUnavailable as e:
        countdown = e.retry_after or retry_countdown(self.request.retries)
        logger.warning(f"Gateway unavailable reconciling {session_id}, retrying in {countdown}s")
        raise self.retry(exc=e, countdown=countdown)
    except DBAPIError as e:
        countdown = retry_countdown(self.request.retries)
        logger.warning(f"Database error reconciling {session_id}, retrying in {countdown}s: {e}")
        raise self.retry(exc=e, countdown=countdown)
    except BolaoError as e:
        logger.error(f"Reconciliation of session {session_id} failed permanently: {e}")
        return {"session_id": session_id, "error": e.__class__.__name__, "message": str(e)}


async def find_stale_pending_sessions() -> List[str]:
    older_than = datetime.now(timezone.utc) - timedelta(minutes=settings.pending_recheck_minutes)
    try:
        async with async_session() as db:
            return await get_stale_pending_session_ids(db, older_than)
    finally:
        await async_engine.dispose()


@celery.task
def recheck_pending_payments():
    """
    Re-enqueue reconciliation of gateway payments still pending after
    `pending_recheck_minutes` (missed or delayed webhooks).
    """
    session_ids = asyncio.run(find_stale_pending_sessions())
    for session_id in session_ids:
        reconcile_payment.delay(session_id)
    if session_ids:
        logger.info(f"Re-enqueued {len(session_ids)} stale pending payments")
    return len(session_ids)
