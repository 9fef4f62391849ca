"""
Admin API endpoints: quota grants, participation corrections, configuration,
dashboard and ledger maintenance
"""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.api.errors import to_http_exception
from bolao.core.auth import AuthContext, require_admin
from bolao.core.errors import BolaoError
from bolao.db.session import get_db
from bolao.repos.admin_config_repo import get_admin_config, update_admin_config
from bolao.repos.audit_log_repo import add_audit_log, get_audit_logs
from bolao.repos.participation_repo import get_contest_participations
from bolao.services.distribution import get_dashboard
from bolao.services.ledger import check_ledger, delete_participation, resync_ledger, update_participation
from bolao.services.reconciliation import admin_grant

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


class GrantRequest(BaseModel):
    """Admin-assisted quota grant"""
    user_id: UUID = Field(..., description="Participant receiving the quotas")
    quota_count: int = Field(..., ge=1)
    numbers: Optional[List[int]] = Field(None, description="6 distinct numbers between 1 and 60")


class ParticipationUpdate(BaseModel):
    """Admin edit of a participation"""
    quota_count: Optional[int] = Field(None, ge=1)
    numbers: Optional[List[int]] = None


class AdminConfigUpdate(BaseModel):
    """Admin configuration update"""
    commission_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    free_quota_count: Optional[int] = Field(None, ge=0)
    operator_user_id: Optional[UUID] = None


@router.post("/contests/{contest_id}/grants", status_code=status.HTTP_201_CREATED)
async def grant_quotas_endpoint(
    contest_id: UUID,
    request: GrantRequest,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    """
    Grant quotas without the gateway (admin-assisted payment).
    """
    try:
        participation = await admin_grant(
            session,
            admin,
            contest_id=contest_id,
            user_id=request.user_id,
            quota_count=request.quota_count,
            numbers=request.numbers
        )
    except BolaoError as e:
        raise to_http_exception(e)
    return participation.to_dict()


@router.get("/contests/{contest_id}/participations")
async def list_participations_endpoint(
    contest_id: UUID,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    participations = await get_contest_participations(session, contest_id)
    return {"participations": [p.to_dict() for p in participations], "total": len(participations)}


@router.patch("/participations/{participation_id}")
async def update_participation_endpoint(
    participation_id: UUID,
    request: ParticipationUpdate,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    if request.quota_count is None and request.numbers is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update"
        )
    try:
        participation = await update_participation(
            session,
            admin,
            participation_id,
            quota_count=request.quota_count,
            numbers=request.numbers
        )
    except BolaoError as e:
        raise to_http_exception(e)
    return participation.to_dict()


@router.delete("/participations/{participation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_participation_endpoint(
    participation_id: UUID,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    try:
        await delete_participation(session, admin, participation_id)
    except BolaoError as e:
        raise to_http_exception(e)


@router.get("/config")
async def get_config_endpoint(
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    config = await get_admin_config(session)
    return config.to_dict()


@router.put("/config")
async def update_config_endpoint(
    request: AdminConfigUpdate,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    """
    Update commission percent, free-quota count and the operator account.
    """
    try:
        config = await update_admin_config(
            session,
            commission_percent=request.commission_percent,
            free_quota_count=request.free_quota_count,
            operator_user_id=request.operator_user_id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    add_audit_log(
        session,
        action="config_updated",
        actor_id=admin.user_id,
        details=request.model_dump(mode="json", exclude_none=True)
    )
    await session.commit()
    return config.to_dict()


@router.get("/dashboard")
async def dashboard_endpoint(
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    return await get_dashboard(session)


@router.post("/contests/{contest_id}/ledger/check")
async def check_ledger_endpoint(
    contest_id: UUID,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    """
    Compare the sold counter with the participations; locks the contest on mismatch.
    """
    try:
        return await check_ledger(session, contest_id)
    except BolaoError as e:
        raise to_http_exception(e)


@router.post("/contests/{contest_id}/ledger/resync")
async def resync_ledger_endpoint(
    contest_id: UUID,
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    try:
        contest = await resync_ledger(session, admin, contest_id)
    except BolaoError as e:
        raise to_http_exception(e)
    return contest.to_dict()


@router.get("/audit-logs")
async def audit_logs_endpoint(
    contest_id: Optional[UUID] = None,
    action: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: AuthContext = Depends(require_admin),
    session: AsyncSession = Depends(get_db)
):
    logs = await get_audit_logs(session, limit=limit, offset=offset, action=action, contest_id=contest_id)
    return {"audit_logs": [log.to_dict() for log in logs], "total": len(logs)}
