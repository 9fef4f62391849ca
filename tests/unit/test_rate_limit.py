"""
Unit tests for the purchase/verify rate limiting middleware
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from bolao.middleware.rate_limit import RateLimitMiddleware
from tests.fixtures.redis import FailingRedisClient, MockRedisClient


def build_app(redis_client):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client)
    
    @app.post("/api/v1/contests/{contest_id}/purchase")
    async def purchase(contest_id: str):
        return {"ok": True}
    
    @app.post("/api/v1/payments/verify")
    async def verify():
        return {"ok": True}
    
    @app.get("/api/v1/contests")
    async def contests():
        return {"ok": True}
    
    return app


@pytest.fixture
def low_limit(monkeypatch):
    monkeypatch.setattr("bolao.middleware.rate_limit.settings.rate_limit_requests", 2)
    monkeypatch.setattr("bolao.middleware.rate_limit.settings.rate_limit_window_seconds", 60)


async def post_many(app, path, count):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return [await client.post(path) for _ in range(count)]


async def test_purchase_is_limited(low_limit):
    responses = await post_many(build_app(MockRedisClient()), "/api/v1/contests/abc/purchase", 3)
    
    assert [r.status_code for r in responses] == [200, 200, 429]
    assert int(responses[-1].headers["Retry-After"]) >= 1


async def test_verify_has_its_own_counter(low_limit):
    redis_client = MockRedisClient()
    app = build_app(redis_client)
    await post_many(app, "/api/v1/contests/abc/purchase", 2)
    
    responses = await post_many(app, "/api/v1/payments/verify", 2)
    
    assert [r.status_code for r in responses] == [200, 200]


async def test_reads_are_not_limited(low_limit):
    app = build_app(MockRedisClient())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        responses = [await client.get("/api/v1/contests") for _ in range(5)]
    
    assert all(r.status_code == 200 for r in responses)


async def test_redis_failure_allows_requests(low_limit):
    responses = await post_many(build_app(FailingRedisClient()), "/api/v1/payments/verify", 4)
    
    assert all(r.status_code == 200 for r in responses)
