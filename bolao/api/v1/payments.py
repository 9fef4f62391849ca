"""
Payment API endpoints: reconciliation and payment history
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.api.errors import to_http_exception
from bolao.core.auth import AuthContext, get_auth_context
from bolao.core.errors import BolaoError
from bolao.db.session import get_db
from bolao.models.enums import PaymentStatus
from bolao.repos.payment_repo import get_payments
from bolao.services.payment_gateway import PaymentGateway, get_payment_gateway
from bolao.services.reconciliation import verify_payment

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


class VerifyRequest(BaseModel):
    """Payment verification request model"""
    session_id: str = Field(..., min_length=1, description="Gateway checkout session id")


@router.post("/payments/verify")
async def verify_payment_endpoint(
    request: VerifyRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """
    Reconcile a checkout session with the gateway.
    
    Returns the gateway status and the resulting internal status. An unpaid
    session is a normal answer; calling this again after success is a no-op.
    """
    try:
        result = await verify_payment(session, gateway, request.session_id)
    except BolaoError as e:
        raise to_http_exception(e)
    return result.to_dict()


@router.get("/payments")
async def list_payments_endpoint(
    contest_id: Optional[UUID] = None,
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db)
):
    """
    Payment records, newest first. Participants only see their own.
    """
    payments = await get_payments(
        session,
        user_id=None if auth.is_admin else auth.user_id,
        contest_id=contest_id,
        status=status_filter.value if status_filter else None,
        limit=limit,
        offset=offset
    )
    return {"payments": [payment.to_dict() for payment in payments], "total": len(payments)}
