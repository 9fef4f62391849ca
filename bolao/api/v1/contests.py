"""
Contest API endpoints
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.api.errors import to_http_exception
from bolao.core.auth import AuthContext, get_auth_context, require_admin
from bolao.core.errors import BolaoError, ContestNotFound
from bolao.db.session import get_db
from bolao.models.enums import ContestStatus
from bolao.repos.audit_log_repo import add_audit_log
from bolao.repos.contest_repo import create_contest, get_contest_by_id, get_contests
from bolao.services.contests import close_contest, finalize_contest, record_draw
from bolao.services.distribution import get_distribution
from bolao.services.payment_gateway import PaymentGateway, get_payment_gateway
from bolao.services.reconciliation import purchase_quotas

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


class ContestCreate(BaseModel):
    """Contest creation request model"""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    number: int = Field(..., ge=1, description="Official draw sequence number")
    draw_date: datetime = Field(..., description="Scheduled draw date (ISO format)")
    price_per_quota: Decimal = Field(..., gt=0, description="Price of one quota")
    capacity: int = Field(..., ge=1, description="Maximum number of quotas")
    description: Optional[str] = Field(None, description="Contest description")
    total_prize: Optional[Decimal] = Field(None, ge=0, description="Announced prize")


class PurchaseRequest(BaseModel):
    """Quota purchase request model"""
    quota_count: int = Field(..., ge=1, description="Number of quotas to buy")
    numbers: Optional[List[int]] = Field(None, description="6 distinct numbers between 1 and 60")
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class DrawRequest(BaseModel):
    """Official draw result"""
    numbers: List[int] = Field(..., description="The 6 drawn numbers")


@router.get("/contests")
async def list_contests_endpoint(
    status_filter: Optional[ContestStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db)
):
    """
    List contests, newest draw first.
    """
    contests = await get_contests(
        session,
        limit=limit,
        offset=offset,
        status=status_filter.value if status_filter else None
    )
    return {"contests": [contest.to_dict() for contest in contests], "total": len(contests)}


@router.get("/contests/{contest_id}")
async def get_contest_endpoint(
    contest_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db)
):
    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise to_http_exception(ContestNotFound(contest_id))
    return contest.to_dict()


@router.post("/contests", status_code=status.HTTP_201_CREATED)
async def create_contest_endpoint(
    contest_data: ContestCreate,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    """
    Create a new open contest (admin only).
    """
    contest = await create_contest(
        session,
        name=contest_data.name,
        number=contest_data.number,
        draw_date=contest_data.draw_date,
        price_per_quota=contest_data.price_per_quota,
        capacity=contest_data.capacity,
        description=contest_data.description,
        total_prize=contest_data.total_prize
    )
    add_audit_log(
        session,
        action="contest_created",
        actor_id=admin.user_id,
        contest_id=contest.id,
        details={"number": contest.number, "capacity": contest.capacity, "price_per_quota": str(contest.price_per_quota)}
    )
    await session.commit()
    logger.info(f"Admin {admin.user_id} created contest {contest.id} (#{contest.number})")
    return contest.to_dict()


@router.post("/contests/{contest_id}/purchase", status_code=status.HTTP_201_CREATED)
async def purchase_endpoint(
    contest_id: UUID,
    request: PurchaseRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """
    Start a quota purchase and return the gateway checkout URL.
    """
    try:
        result = await purchase_quotas(
            session,
            gateway,
            auth,
            contest_id=contest_id,
            quota_count=request.quota_count,
            numbers=request.numbers,
            success_url=request.success_url,
            cancel_url=request.cancel_url
        )
    except BolaoError as e:
        raise to_http_exception(e)
    return result.to_dict()


@router.get("/contests/{contest_id}/distribution")
async def distribution_endpoint(
    contest_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db)
):
    """
    Prize distribution of a contest. Administrators also get the deductions,
    the raw pool and configuration warnings.
    The caller's own share, if any, is returned under `my_share`.
    """
    try:
        distribution = await get_distribution(session, contest_id)
    except BolaoError as e:
        raise to_http_exception(e)
    return distribution.to_dict(admin=auth.is_admin, viewer_id=auth.user_id)


@router.post("/contests/{contest_id}/close")
async def close_contest_endpoint(
    contest_id: UUID,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    try:
        contest = await close_contest(session, contest_id, admin_id=admin.user_id)
    except BolaoError as e:
        raise to_http_exception(e)
    return contest.to_dict()


@router.post("/contests/{contest_id}/draw")
async def draw_contest_endpoint(
    contest_id: UUID,
    request: DrawRequest,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    """
    Record the official draw and score every ticket (admin only).
    """
    try:
        contest = await record_draw(session, contest_id, request.numbers, admin_id=admin.user_id)
    except BolaoError as e:
        raise to_http_exception(e)
    return contest.to_dict()


@router.post("/contests/{contest_id}/finalize")
async def finalize_contest_endpoint(
    contest_id: UUID,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    """
    Freeze prize amounts for a drawn contest (admin only). Idempotent.
    """
    try:
        return await finalize_contest(session, contest_id, admin_id=admin.user_id)
    except BolaoError as e:
        raise to_http_exception(e)
