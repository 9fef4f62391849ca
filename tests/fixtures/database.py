"""
Database-specific test fixtures and utilities
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from bolao.db.base import Base
from bolao.models.contest import Contest
from bolao.models.participation import Participation
from bolao.repos.contest_repo import get_contest_by_id
from bolao.repos.participation_repo import get_contest_participations, get_participation


async def create_file_engine(path: str):
    """
    File-backed SQLite engine for tests that need several real connections.
    
    Every transaction starts with BEGIN IMMEDIATE, so writers queue on the
    database lock (up to the 30s busy timeout) instead of failing.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        connect_args={"timeout": 30}
    )
    
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # Stop the driver from emitting its own BEGIN
        dbapi_connection.isolation_level = None
    
    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


async def reload_contest(session: AsyncSession, contest_id: UUID) -> Contest:
    """Fresh contest row, bypassing the identity map."""
    return await get_contest_by_id(session, contest_id)


async def reload_participation(session: AsyncSession, user_id: UUID, contest_id: UUID) -> Optional[Participation]:
    return await get_participation(session, user_id, contest_id)


async def participation_quota_sum(session: AsyncSession, contest_id: UUID) -> int:
    participations: List[Participation] = await get_contest_participations(session, contest_id)
    return sum(p.quota_count for p in participations)
