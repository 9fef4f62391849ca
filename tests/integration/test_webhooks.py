"""
Integration tests for the Stripe webhook endpoint
"""

import json
import time

import pytest

from bolao.api.webhooks import compute_stripe_signature
from bolao.core.config import settings
from bolao.core.redis_client import get_redis_client
from bolao.tasks.reconciliation import reconcile_payment
from tests.fixtures.redis import FailingRedisClient

WEBHOOK_URL = "/api/v1/webhooks/stripe"


def signed(event: dict, secret: str = None):
    body = json.dumps(event).encode()
    timestamp = int(time.time())
    signature = compute_stripe_signature(secret or settings.stripe_webhook_secret, timestamp, body)
    return body, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def checkout_event(event_id="evt_1", event_type="checkout.session.completed", session_id="cs_test_1"):
    return {"id": event_id, "type": event_type, "data": {"object": {"id": session_id, "object": "checkout.session"}}}


@pytest.fixture
def enqueued(monkeypatch):
    """Session ids handed to the reconciliation task instead of a broker."""
    calls = []
    monkeypatch.setattr(reconcile_payment, "delay", lambda session_id: calls.append(session_id))
    return calls


@pytest.mark.integration
class TestStripeWebhook:
    
    async def test_completed_event_enqueues_reconciliation(self, test_client, enqueued):
        body, headers = signed(checkout_event())
        
        response = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        
        assert response.status_code == 202
        assert response.json() == {"ok": True, "enqueued": True, "session_id": "cs_test_1"}
        assert enqueued == ["cs_test_1"]
    
    async def test_every_checkout_event_type(self, test_client, enqueued):
        for index, event_type in enumerate((
            "checkout.session.async_payment_succeeded",
            "checkout.session.async_payment_failed",
            "checkout.session.expired",
        )):
            body, headers = signed(checkout_event(event_id=f"evt_{index}", event_type=event_type, session_id=f"cs_{index}"))
            response = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
            assert response.json()["enqueued"] is True
        
        assert enqueued == ["cs_0", "cs_1", "cs_2"]
    
    async def test_duplicate_event_enqueued_once(self, test_client, enqueued, redis_client):
        body, headers = signed(checkout_event(event_id="evt_dup"))
        
        first = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        second = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        
        assert first.json()["enqueued"] is True
        assert second.status_code == 202
        assert second.json()["enqueued"] is False
        assert enqueued == ["cs_test_1"]
        assert "stripe:event:evt_dup" in redis_client.keys()
    
    async def test_redis_down_still_enqueues(self, test_app, test_client, enqueued):
        async def get_failing_redis():
            return FailingRedisClient()
        test_app.dependency_overrides[get_redis_client] = get_failing_redis
        
        body, headers = signed(checkout_event())
        response = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        
        assert response.json()["enqueued"] is True
        assert enqueued == ["cs_test_1"]
    
    async def test_bad_signature(self, test_client, enqueued):
        body, headers = signed(checkout_event(), secret="whsec_wrong")
        
        response = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        
        assert response.status_code == 400
        assert enqueued == []
    
    async def test_missing_signature(self, test_client, enqueued):
        response = await test_client.post(WEBHOOK_URL, content=json.dumps(checkout_event()).encode())
        
        assert response.status_code == 400
        assert enqueued == []
    
    async def test_ignored_event_type(self, test_client, enqueued):
        body, headers = signed({"id": "evt_2", "type": "invoice.paid", "data": {"object": {"id": "in_1"}}})
        
        response = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        
        assert response.status_code == 202
        assert response.json()["enqueued"] is False
        assert enqueued == []
    
    async def test_event_without_session(self, test_client, enqueued):
        body, headers = signed({"id": "evt_3", "type": "checkout.session.completed", "data": {}})
        
        response = await test_client.post(WEBHOOK_URL, content=body, headers=headers)
        
        assert response.status_code == 400
        assert enqueued == []
    
    async def test_malformed_payload(self, test_client, enqueued):
        body = b"not json"
        timestamp = int(time.time())
        signature = compute_stripe_signature(settings.stripe_webhook_secret, timestamp, body)
        
        response = await test_client.post(
            WEBHOOK_URL, content=body, headers={"Stripe-Signature": f"t={timestamp},v1={signature}"}
        )
        
        assert response.status_code == 400
