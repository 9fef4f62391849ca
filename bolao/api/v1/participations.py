"""
Participation API endpoints: tickets, quotas and prizes per user
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.auth import AuthContext, get_auth_context
from bolao.db.session import get_db
from bolao.repos.participation_repo import get_participations

router = APIRouter()


@router.get("/participations")
async def list_participations_endpoint(
    contest_id: Optional[UUID] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db)
):
    """
    Participations with chosen numbers, quotas and prizes, newest first.
    Participants only see their own; admins see everyone's.
    """
    participations = await get_participations(
        session,
        user_id=None if auth.is_admin else auth.user_id,
        contest_id=contest_id,
        limit=limit,
        offset=offset
    )
    return {
        "participations": [participation.to_dict() for participation in participations],
        "total": len(participations)
    }
