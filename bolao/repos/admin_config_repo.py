"""
Admin configuration repository (singleton row)
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.config import settings
from bolao.models.admin_config import AdminConfig, SINGLETON_ID

# Configure logging
logger = logging.getLogger(__name__)


async def get_admin_config(session: AsyncSession) -> AdminConfig:
    """
    Get the admin configuration.
    
    When the row has not been saved yet, returns a transient instance built
    from the settings defaults (not added to the session).
    """
    result = await session.execute(
        select(AdminConfig).where(AdminConfig.id == SINGLETON_ID)
    )
    config = result.scalar_one_or_none()
    if config is None:
        return AdminConfig(
            id=SINGLETON_ID,
            commission_percent=settings.default_commission_pct,
            free_quota_count=settings.default_free_quota_count,
            operator_user_id=None
        )
    return config


async def update_admin_config(
    session: AsyncSession,
    commission_percent: Optional[Decimal] = None,
    free_quota_count: Optional[int] = None,
    operator_user_id: Optional[UUID] = None
) -> AdminConfig:
    """
    Create or update the admin configuration.
    
    Args:
        session: Database session
        commission_percent: Commission over revenue, 0 to 100
        free_quota_count: House quotas deducted per contest, >= 0
        operator_user_id: Account whose participation is the house's
    
    Returns:
        Persisted AdminConfig
    """
    if commission_percent is not None and not (Decimal("0") <= commission_percent <= Decimal("100")):
        raise ValueError("Commission percent must be between 0 and 100")
    if free_quota_count is not None and free_quota_count < 0:
        raise ValueError("Free quota count cannot be negative")
    
    result = await session.execute(
        select(AdminConfig).where(AdminConfig.id == SINGLETON_ID)
    )
    config = result.scalar_one_or_none()
    if config is None:
        config = AdminConfig(
            id=SINGLETON_ID,
            commission_percent=settings.default_commission_pct,
            free_quota_count=settings.default_free_quota_count
        )
        session.add(config)
    
    if commission_percent is not None:
        config.commission_percent = commission_percent
    if free_quota_count is not None:
        config.free_quota_count = free_quota_count
    if operator_user_id is not None:
        config.operator_user_id = operator_user_id
    
    await session.commit()
    await session.refresh(config)
    logger.info(
        f"Admin config updated: commission={config.commission_percent}%, "
        f"free_quotas={config.free_quota_count}, operator={config.operator_user_id}"
    )
    return config
