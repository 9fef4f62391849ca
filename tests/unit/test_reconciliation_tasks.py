"""
Unit tests for the Celery reconciliation tasks
"""

import pytest

from bolao.core.errors import GatewayUnavailable, InsufficientCapacity, PaymentNotFound
from bolao.tasks import reconciliation as tasks
from bolao.tasks.reconciliation import reconcile_payment, recheck_pending_payments, retry_countdown


class RetryRequested(Exception):
    def __init__(self, countdown):
        self.countdown = countdown


@pytest.fixture
def retries(monkeypatch):
    """Countdowns passed to `self.retry`, which raises instead of re-queueing."""
    countdowns = []
    
    def fake_retry(exc=None, countdown=None, **kwargs):
        countdowns.append(countdown)
        return RetryRequested(countdown)
    
    monkeypatch.setattr(reconcile_payment, "retry", fake_retry)
    return countdowns


def stub_reconcile(monkeypatch, outcome):
    async def fake_reconcile(session_id):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
    monkeypatch.setattr(tasks, "reconcile_payment_async", fake_reconcile)


def test_retry_countdown_backs_off_and_caps():
    assert [retry_countdown(n) for n in range(4)] == [2, 4, 8, 16]
    assert retry_countdown(20) == 300


def test_successful_reconciliation(monkeypatch, retries):
    stub_reconcile(monkeypatch, {"payment_id": "p1", "internal_status": "paid", "merged": True})
    
    result = reconcile_payment.run("cs_1")
    
    assert result["merged"] is True
    assert retries == []


def test_gateway_unavailable_is_retried(monkeypatch, retries):
    stub_reconcile(monkeypatch, GatewayUnavailable("down"))
    
    with pytest.raises(RetryRequested):
        reconcile_payment.run("cs_1")
    assert retries == [2]


def test_gateway_retry_after_is_honoured(monkeypatch, retries):
    stub_reconcile(monkeypatch, GatewayUnavailable("rate limited", retry_after=30))
    
    with pytest.raises(RetryRequested):
        reconcile_payment.run("cs_1")
    assert retries == [30]


@pytest.mark.parametrize("error", [
    PaymentNotFound("cs_missing"),
    InsufficientCapacity("contest", 3, 1),
])
def test_domain_errors_are_final(monkeypatch, retries, error):
    stub_reconcile(monkeypatch, error)
    
    result = reconcile_payment.run("cs_1")
    
    assert result["error"] == error.__class__.__name__
    assert retries == []


def test_recheck_enqueues_stale_sessions(monkeypatch):
    enqueued = []
    
    async def fake_find():
        return ["cs_a", "cs_b"]
    
    monkeypatch.setattr(tasks, "find_stale_pending_sessions", fake_find)
    monkeypatch.setattr(reconcile_payment, "delay", lambda session_id: enqueued.append(session_id))
    
    assert recheck_pending_payments.run() == 2
    assert enqueued == ["cs_a", "cs_b"]
