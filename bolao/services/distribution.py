"""
Prize-pool distribution calculator.

`compute_distribution` is the only place the prize math lives. Every surface
that shows shares, pools or dashboard totals goes through it.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bolao.core.errors import ContestNotFound
from bolao.models.admin_config import AdminConfig
from bolao.models.contest import Contest
from bolao.models.enums import ContestStatus
from bolao.models.participation import Participation
from bolao.repos.admin_config_repo import get_admin_config
from bolao.repos.contest_repo import get_contest_by_id, get_contests
from bolao.repos.participation_repo import get_contest_participations

# Configure logging
logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class ConfigurationWarning:
    """Deductions exceed revenue; the raw pool is negative."""
    contest_id: UUID
    raw_playable_pool: Decimal
    message: str

    def to_dict(self):
        return {
            "contest_id": str(self.contest_id),
            "raw_playable_pool": str(self.raw_playable_pool),
            "message": self.message
        }


@dataclass
class ParticipantShare:
    participation_id: UUID
    user_id: UUID
    quota_count: int
    amount_paid: Decimal
    display_amount_paid: Decimal
    share_percent: Decimal
    prize_amount: Decimal
    is_house: bool = False

    def to_dict(self):
        return {
            "participation_id": str(self.participation_id),
            "user_id": str(self.user_id),
            "quota_count": self.quota_count,
            "amount_paid": str(self.display_amount_paid),
            "share_percent": str(self.share_percent),
            "prize_amount": str(self.prize_amount),
            "is_house": self.is_house
        }


@dataclass
class Distribution:
    contest_id: UUID
    revenue: Decimal = ZERO
    house_quota_value: Decimal = ZERO
    commission: Decimal = ZERO
    raw_playable_pool: Decimal = ZERO
    playable_pool: Decimal = ZERO
    total_quotas: int = 0
    house_quotas: int = 0
    shares: List[ParticipantShare] = field(default_factory=list)
    warnings: List[ConfigurationWarning] = field(default_factory=list)

    @property
    def paying_participants(self) -> int:
        return sum(1 for share in self.shares if not share.is_house)

    def share_for(self, user_id: UUID) -> Optional[ParticipantShare]:
        for share in self.shares:
            if share.user_id == user_id:
                return share
        return None

    def to_dict(self, admin: bool = False, viewer_id: Optional[UUID] = None):
        """
        Serialize for API responses. The administrator view adds the
        deductions, the raw (possibly negative) pool and warnings. With a
        `viewer_id` the viewer's own share is repeated under `my_share`.
        """
        data = {
            "contest_id": str(self.contest_id),
            "playable_pool": str(self.playable_pool),
            "total_quotas": self.total_quotas,
            "paying_participants": self.paying_participants,
            "shares": [share.to_dict() for share in self.shares]
        }
        if viewer_id is not None:
            share = self.share_for(viewer_id)
            data["my_share"] = share.to_dict() if share else None
        if admin:
            data.update({
                "revenue": str(self.revenue),
                "house_quota_value": str(self.house_quota_value),
                "commission": str(self.commission),
                "raw_playable_pool": str(self.raw_playable_pool),
                "house_quotas": self.house_quotas,
                "warnings": [warning.to_dict() for warning in self.warnings]
            })
        return data


def compute_distribution(
    contest: Contest,
    participations: Sequence[Participation],
    config: AdminConfig,
    operator_user_id: Optional[UUID] = None
) -> Distribution:
    """
    Split a contest's collected money into commission, the house's free-quota
    value and the playable pool, and share the pool by quota count.
    
    The operator's participation contributes no revenue but its quotas count
    toward the total, so it dilutes every share and receives a prize like any
    other row. Aggregates are exact; each monetary figure is rounded to cents
    once, at the end.
    
    Args:
        contest: Contest being distributed
        participations: All of the contest's participations
        config: Commission percent and free-quota count
        operator_user_id: Account whose participation is the house's
    
    Returns:
        Distribution with aggregates and per-participation shares
    """
    price = Decimal(contest.price_per_quota)
    
    def is_house(p: Participation) -> bool:
        return operator_user_id is not None and p.user_id == operator_user_id
    
    revenue = sum(
        (Decimal(p.amount_paid) for p in participations if not is_house(p)),
        Decimal("0")
    )
    total_quotas = sum(p.quota_count for p in participations)
    house_quotas = sum(p.quota_count for p in participations if is_house(p))
    
    if revenue == 0:
        house_quota_value = Decimal("0")
        commission = Decimal("0")
    else:
        house_quota_value = Decimal(config.free_quota_count) * price
        commission = revenue * Decimal(config.commission_percent) / HUNDRED
    
    raw_pool = revenue - house_quota_value - commission
    pool = max(raw_pool, Decimal("0"))
    
    distribution = Distribution(
        contest_id=contest.id,
        revenue=_money(revenue),
        house_quota_value=_money(house_quota_value),
        commission=_money(commission),
        raw_playable_pool=_money(raw_pool),
        playable_pool=_money(pool),
        total_quotas=total_quotas,
        house_quotas=house_quotas
    )
    
    if raw_pool < 0:
        message = (
            f"Deductions exceed revenue for contest {contest.id}: revenue {distribution.revenue}, "
            f"house value {distribution.house_quota_value}, commission {distribution.commission}"
        )
        logger.warning(message)
        distribution.warnings.append(
            ConfigurationWarning(contest_id=contest.id, raw_playable_pool=distribution.raw_playable_pool, message=message)
        )
    
    for p in participations:
        house = is_house(p)
        if total_quotas > 0:
            fraction = Decimal(p.quota_count) / Decimal(total_quotas)
        else:
            fraction = Decimal("0")
        amount_paid = Decimal(p.amount_paid)
        distribution.shares.append(ParticipantShare(
            participation_id=p.id,
            user_id=p.user_id,
            quota_count=p.quota_count,
            amount_paid=_money(amount_paid),
            display_amount_paid=_money(Decimal(p.quota_count) * price) if house else _money(amount_paid),
            share_percent=_money(fraction * HUNDRED),
            prize_amount=_money(fraction * pool),
            is_house=house
        ))
    
    return distribution


async def get_distribution(session: AsyncSession, contest_id: UUID) -> Distribution:
    """
    Load a contest, its participations and the admin configuration and compute
    the distribution.
    """
    contest = await get_contest_by_id(session, contest_id)
    if contest is None:
        raise ContestNotFound(contest_id)
    
    config = await get_admin_config(session)
    participations = await get_contest_participations(session, contest_id)
    return compute_distribution(contest, participations, config, config.operator_user_id)


async def get_dashboard(session: AsyncSession) -> Dict:
    """
    Administrator totals across every contest, summed from the per-contest
    distributions.
    """
    config = await get_admin_config(session)
    contests = await get_contests(session, limit=10000)
    
    totals = {
        "contests": len(contests),
        "open_contests": 0,
        "quotas_sold": 0,
        "revenue": ZERO,
        "commission": ZERO,
        "house_quota_value": ZERO,
        "playable_pool": ZERO
    }
    paying_users = set()
    warnings: List[ConfigurationWarning] = []
    
    for contest in contests:
        participations = await get_contest_participations(session, contest.id)
        distribution = compute_distribution(contest, participations, config, config.operator_user_id)
        
        if contest.status == ContestStatus.OPEN.value:
            totals["open_contests"] += 1
        totals["quotas_sold"] += distribution.total_quotas - distribution.house_quotas
        totals["revenue"] += distribution.revenue
        totals["commission"] += distribution.commission
        totals["house_quota_value"] += distribution.house_quota_value
        totals["playable_pool"] += distribution.playable_pool
        paying_users.update(share.user_id for share in distribution.shares if not share.is_house)
        warnings.extend(distribution.warnings)
    
    return {
        "contests": totals["contests"],
        "open_contests": totals["open_contests"],
        "quotas_sold": totals["quotas_sold"],
        "revenue": str(totals["revenue"]),
        "commission": str(totals["commission"]),
        "house_quota_value": str(totals["house_quota_value"]),
        "playable_pool": str(totals["playable_pool"]),
        "participants": len(paying_users),
        "commission_percent": str(config.commission_percent),
        "free_quota_count": config.free_quota_count,
        "warnings": [warning.to_dict() for warning in warnings]
    }
