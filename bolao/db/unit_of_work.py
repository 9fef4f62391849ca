"""
Retry wrapper for units of work that hit transient lock conflicts
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.config import settings

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# 40P01: deadlock_detected, 40001: serialization_failure
RETRYABLE_SQLSTATES = {"40P01", "40001"}


def _sqlstate(exc: DBAPIError):
    orig = getattr(exc, "orig", None)
    return (
        getattr(orig, "sqlstate", None)
        or getattr(orig, "pgcode", None)
        or getattr(orig, "code", None)
    )


def is_retryable_db_error(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    if _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True
    # SQLite reports writer contention as an OperationalError
    return isinstance(exc, OperationalError) and "database is locked" in str(exc)


async def run_unit_of_work(
    session: AsyncSession,
    op: str,
    fn: Callable[[], Awaitable[_T]]
) -> _T:
    """
    Run `fn` (reads, checks, writes and commit) retrying the whole unit on
    deadlocks and serialization failures.
    
    `fn` must be safe to re-run from scratch: a rollback discards everything
    it staged. Non-retryable errors roll back and propagate.
    """
    attempts = max(1, settings.commit_retry_attempts)
    base = settings.commit_retry_base_delay_ms / 1000.0
    cap = max(base, settings.commit_retry_max_delay_ms / 1000.0)
    
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            await session.rollback()
            attempt += 1
            if attempt >= attempts or not is_retryable_db_error(exc):
                raise
            
            delay = min(cap, base * (2 ** (attempt - 1)))
            delay = delay * (1.0 + 0.25 * random.random())
            logger.warning(
                f"Retrying unit of work op={op} attempt={attempt}/{attempts} "
                f"delay={delay:.3f}s error={exc.__class__.__name__}"
            )
            await asyncio.sleep(delay)
