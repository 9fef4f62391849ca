"""
Unit tests for prize-pool distribution math
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from bolao.models.admin_config import AdminConfig
from bolao.models.contest import Contest
from bolao.models.participation import Participation
from bolao.services.distribution import compute_distribution


def make_contest(price="10.00", capacity=100):
    return Contest(
        id=uuid4(),
        name="Mega",
        number=1,
        price_per_quota=Decimal(price),
        capacity=capacity,
        quotas_sold=0,
        status="open"
    )


def make_participation(contest, user_id, quota_count, amount_paid):
    return Participation(
        id=uuid4(),
        user_id=user_id,
        contest_id=contest.id,
        chosen_numbers=[1, 2, 3, 4, 5, 6],
        quota_count=quota_count,
        amount_paid=Decimal(amount_paid)
    )


def make_config(commission="10", free_quotas=3):
    return AdminConfig(commission_percent=Decimal(commission), free_quota_count=free_quotas)


class TestDistributionMath:
    """Distribution of the worked example and its edge cases"""
    
    def test_worked_example(self):
        """A buys 5, B buys 3, the house holds 3 free quotas, 10% commission"""
        contest = make_contest()
        house_id, a_id, b_id = uuid4(), uuid4(), uuid4()
        participations = [
            make_participation(contest, a_id, 5, "50.00"),
            make_participation(contest, b_id, 3, "30.00"),
            make_participation(contest, house_id, 3, "0.00"),
        ]
        
        dist = compute_distribution(contest, participations, make_config(), house_id)
        
        assert dist.revenue == Decimal("80.00")
        assert dist.house_quota_value == Decimal("30.00")
        assert dist.commission == Decimal("8.00")
        assert dist.playable_pool == Decimal("42.00")
        assert dist.raw_playable_pool == Decimal("42.00")
        assert dist.total_quotas == 11
        assert dist.house_quotas == 3
        assert dist.warnings == []
        
        a = dist.share_for(a_id)
        b = dist.share_for(b_id)
        house = dist.share_for(house_id)
        assert a.share_percent == Decimal("45.45")
        assert a.prize_amount == Decimal("19.09")
        assert b.share_percent == Decimal("27.27")
        assert b.prize_amount == Decimal("11.45")
        assert house.share_percent == Decimal("27.27")
        assert house.prize_amount == Decimal("11.45")
    
    def test_house_row_displays_quota_value_but_keeps_zero_ledger_amount(self):
        contest = make_contest()
        house_id = uuid4()
        participations = [
            make_participation(contest, uuid4(), 2, "20.00"),
            make_participation(contest, house_id, 3, "0.00"),
        ]
        
        dist = compute_distribution(contest, participations, make_config(), house_id)
        house = dist.share_for(house_id)
        
        assert house.is_house is True
        assert house.amount_paid == Decimal("0.00")
        assert house.display_amount_paid == Decimal("30.00")
        assert house.to_dict()["amount_paid"] == "30.00"
        assert dist.paying_participants == 1
    
    def test_revenue_comes_from_non_house_rows_only(self):
        """A manually edited house amount never counts as revenue"""
        contest = make_contest()
        house_id = uuid4()
        participations = [
            make_participation(contest, uuid4(), 4, "40.00"),
            make_participation(contest, house_id, 3, "30.00"),
        ]
        
        dist = compute_distribution(contest, participations, make_config(), house_id)
        
        assert dist.revenue == Decimal("40.00")
        assert dist.total_quotas == 7
    
    def test_conservation(self):
        """Prizes add up to the playable pool within a cent per row"""
        contest = make_contest(price="7.33")
        house_id = uuid4()
        participations = [
            make_participation(contest, uuid4(), q, str(Decimal("7.33") * q))
            for q in (1, 2, 3, 5, 7, 11)
        ]
        participations.append(make_participation(contest, house_id, 3, "0.00"))
        
        dist = compute_distribution(contest, participations, make_config("12.5", 2), house_id)
        
        total_prizes = sum(share.prize_amount for share in dist.shares)
        total_percent = sum(share.share_percent for share in dist.shares)
        tolerance = Decimal("0.01") * len(dist.shares)
        assert abs(total_prizes - dist.playable_pool) <= tolerance
        assert abs(total_percent - Decimal("100")) <= tolerance
    
    def test_zero_participations(self):
        contest = make_contest()
        
        dist = compute_distribution(contest, [], make_config(), uuid4())
        
        assert dist.revenue == Decimal("0.00")
        assert dist.house_quota_value == Decimal("0.00")
        assert dist.commission == Decimal("0.00")
        assert dist.playable_pool == Decimal("0.00")
        assert dist.total_quotas == 0
        assert dist.shares == []
        assert dist.warnings == []
    
    def test_only_house_participation(self):
        """Zero revenue: no deductions, shares defined, every prize zero"""
        contest = make_contest()
        house_id = uuid4()
        participations = [make_participation(contest, house_id, 3, "0.00")]
        
        dist = compute_distribution(contest, participations, make_config(), house_id)
        
        assert dist.revenue == Decimal("0.00")
        assert dist.house_quota_value == Decimal("0.00")
        assert dist.commission == Decimal("0.00")
        assert dist.playable_pool == Decimal("0.00")
        assert dist.total_quotas == 3
        assert dist.shares[0].share_percent == Decimal("100.00")
        assert dist.shares[0].prize_amount == Decimal("0.00")
    
    def test_negative_pool_is_clamped_and_warned(self):
        contest = make_contest()
        house_id = uuid4()
        participations = [make_participation(contest, uuid4(), 2, "20.00")]
        
        dist = compute_distribution(contest, participations, make_config("50", 10), house_id)
        
        assert dist.house_quota_value == Decimal("100.00")
        assert dist.commission == Decimal("10.00")
        assert dist.raw_playable_pool == Decimal("-90.00")
        assert dist.playable_pool == Decimal("0.00")
        assert len(dist.warnings) == 1
        assert dist.warnings[0].raw_playable_pool == Decimal("-90.00")
        assert dist.shares[0].prize_amount == Decimal("0.00")
    
    def test_participant_view_hides_deductions_and_warnings(self):
        contest = make_contest()
        participations = [make_participation(contest, uuid4(), 2, "20.00")]
        dist = compute_distribution(contest, participations, make_config("50", 10), None)
        
        public = dist.to_dict()
        admin = dist.to_dict(admin=True)
        
        assert "warnings" not in public
        assert "commission" not in public
        assert public["playable_pool"] == "0.00"
        assert admin["raw_playable_pool"] == "-90.00"
        assert len(admin["warnings"]) == 1
    
    def test_viewer_gets_own_share(self):
        contest = make_contest()
        house_id, a_id = uuid4(), uuid4()
        participations = [
            make_participation(contest, a_id, 2, "20.00"),
            make_participation(contest, house_id, 3, "0.00"),
        ]
        dist = compute_distribution(contest, participations, make_config("10", 3), house_id)
        
        mine = dist.to_dict(viewer_id=a_id)
        outsider = dist.to_dict(viewer_id=uuid4())
        
        assert mine["paying_participants"] == 1
        assert mine["my_share"]["user_id"] == str(a_id)
        assert mine["my_share"]["quota_count"] == 2
        assert outsider["my_share"] is None
        assert "my_share" not in dist.to_dict()
    
    def test_without_operator_every_row_pays(self):
        contest = make_contest()
        participations = [
            make_participation(contest, uuid4(), 1, "10.00"),
            make_participation(contest, uuid4(), 1, "10.00"),
        ]
        
        dist = compute_distribution(contest, participations, make_config("0", 0), None)
        
        assert dist.revenue == Decimal("20.00")
        assert dist.playable_pool == Decimal("20.00")
        assert all(not share.is_house for share in dist.shares)
        assert [share.prize_amount for share in dist.shares] == [Decimal("10.00"), Decimal("10.00")]
