"""
Stripe webhook endpoint

Checkout events only trigger a reconciliation of their session; the payment
state itself always comes from `verify_payment`, never from the event body.
"""

import hashlib
import hmac
import json
import logging
import time
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from bolao.core.config import settings
from bolao.core.metrics import WEBHOOK_COUNT
from bolao.core.redis_client import get_redis_client

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()

RECONCILE_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
    "checkout.session.async_payment_failed",
    "checkout.session.expired",
}

DEDUPE_TTL_SECONDS = 86400


def _parse_signature_header(header: str) -> Dict[str, list]:
    parts: Dict[str, list] = {}
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key and value:
            parts.setdefault(key, []).append(value)
    return parts


def compute_stripe_signature(secret: str, timestamp: int, body: bytes) -> str:
    signed_payload = f"{timestamp}.".encode() + body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def verify_stripe_signature(
    header: Optional[str],
    body: bytes,
    secret: Optional[str],
    tolerance: int,
    now: Optional[int] = None
) -> bool:
    """
    Verify a `Stripe-Signature` header (`t=<timestamp>,v1=<hex hmac>`).
    
    The HMAC-SHA256 is computed over `<timestamp>.<raw body>`; timestamps older
    than `tolerance` seconds are rejected.
    """
    if not secret:
        # If no secret is configured, skip verification
        return True
    if not header:
        return False
    
    parts = _parse_signature_header(header)
    try:
        timestamp = int(parts.get("t", [""])[0])
    except ValueError:
        return False
    
    now = now if now is not None else int(time.time())
    if tolerance and abs(now - timestamp) > tolerance:
        return False
    
    expected = compute_stripe_signature(secret, timestamp, body)
    return any(hmac.compare_digest(expected, candidate) for candidate in parts.get("v1", []))


async def mark_event_enqueued(redis_client, event_id: str) -> bool:
    """
    Record that an event's reconciliation was enqueued.
    
    Returns:
        False if the event was already seen. Redis failures return True so the
        event is still processed.
    """
    try:
        key = f"stripe:event:{event_id}"
        return bool(await redis_client.set(key, "1", nx=True, ex=DEDUPE_TTL_SECONDS))
    except Exception as e:
        logger.error(f"Error marking Stripe event {event_id} as enqueued: {e}")
        return True


@router.post("/webhooks/stripe", status_code=status.HTTP_202_ACCEPTED)
async def stripe_webhook(request: Request, redis_client=Depends(get_redis_client)):
    """
    Stripe webhook:
    - verify the signature
    - ignore events that do not concern a checkout session
    - enqueue a reconciliation of the session (once per event id)
    """
    body = await request.body()
    
    if not verify_stripe_signature(
        request.headers.get("Stripe-Signature"),
        body,
        settings.stripe_webhook_secret,
        settings.stripe_webhook_tolerance_seconds
    ):
        WEBHOOK_COUNT.labels(status="invalid_signature").inc()
        logger.warning("Rejected Stripe webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")
    
    try:
        event = json.loads(body)
        event_id = event["id"]
        event_type = event["type"]
    except (ValueError, KeyError, TypeError):
        WEBHOOK_COUNT.labels(status="invalid_payload").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    
    if event_type not in RECONCILE_EVENTS:
        WEBHOOK_COUNT.labels(status="ignored").inc()
        return {"ok": True, "enqueued": False, "message": f"Ignored event type {event_type}"}
    
    session_id = ((event.get("data") or {}).get("object") or {}).get("id")
    if not session_id:
        WEBHOOK_COUNT.labels(status="invalid_payload").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event carries no checkout session")
    
    if not await mark_event_enqueued(redis_client, event_id):
        WEBHOOK_COUNT.labels(status="duplicate").inc()
        logger.info(f"Duplicate Stripe event {event_id} for session {session_id}")
        return {"ok": True, "enqueued": False, "message": "Duplicate event"}
    
    from bolao.tasks.reconciliation import reconcile_payment
    reconcile_payment.delay(session_id)
    
    WEBHOOK_COUNT.labels(status="enqueued").inc()
    logger.info(f"Enqueued reconciliation of session {session_id} for event {event_type} ({event_id})")
    return {"ok": True, "enqueued": True, "session_id": session_id}
