"""
Test configuration and fixtures for Bolao

Every test gets its own in-memory SQLite database (aiosqlite) with the schema
created from the models, a mock payment gateway and an httpx client bound to
the FastAPI app with its database, gateway and Redis dependencies overridden.

Usage:
    pytest tests/
    pytest tests/ -m "not slow"
"""

import os

# Settings are read at import time
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYMENT_GATEWAY", "mock")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from bolao.core.auth import AuthContext, create_access_token
from bolao.core.redis_client import get_redis_client
from bolao.db.base import Base
from bolao.db.session import get_db
from bolao.main import app
from bolao.models.contest import Contest
from bolao.models.enums import UserRole
from bolao.repos.admin_config_repo import update_admin_config
from bolao.repos.contest_repo import create_contest
from bolao.services.payment_gateway import MockGateway, get_payment_gateway
from tests.fixtures.redis import MockRedisClient

import bolao.models  # noqa: F401  registers the tables on Base.metadata


@pytest.fixture
async def db_engine():
    """
    In-memory SQLite engine with all tables created.
    
    StaticPool keeps a single connection so every session of the test sees
    the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Database session for service-level tests. Services commit their own units
    of work, so there is no surrounding transaction to roll back.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture
def redis_client() -> MockRedisClient:
    return MockRedisClient()


@pytest.fixture
async def test_app(session_factory, gateway, redis_client) -> AsyncGenerator[FastAPI, None]:
    """
    FastAPI app with database, gateway and Redis dependencies overridden.
    """
    async def get_test_db():
        async with session_factory() as session:
            yield session
    
    async def get_test_redis():
        return redis_client
    
    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_redis_client] = get_test_redis
    
    yield app
    
    app.dependency_overrides.clear()


@pytest.fixture
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


# Identities
@pytest.fixture
def participant() -> AuthContext:
    return AuthContext(user_id=uuid4(), role=UserRole.PARTICIPANT.value)


@pytest.fixture
def other_participant() -> AuthContext:
    return AuthContext(user_id=uuid4(), role=UserRole.PARTICIPANT.value)


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext(user_id=uuid4(), role=UserRole.ADMIN.value)


def auth_headers(auth: AuthContext) -> dict:
    token = create_access_token({"sub": str(auth.user_id), "role": auth.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def participant_headers(participant) -> dict:
    return auth_headers(participant)


@pytest.fixture
def admin_headers(admin) -> dict:
    return auth_headers(admin)


# Domain data
@pytest.fixture
async def operator(db_session, admin) -> AuthContext:
    """
    The admin is also the operator account; commission 10%, 3 free quotas.
    """
    await update_admin_config(
        db_session,
        commission_percent=Decimal("10"),
        free_quota_count=3,
        operator_user_id=admin.user_id
    )
    return admin


@pytest.fixture
async def contest(db_session) -> Contest:
    """Open contest: 10.00 per quota, 100 quotas."""
    return await create_contest(
        db_session,
        name="Mega da Virada",
        number=2800,
        draw_date=datetime.now(timezone.utc) + timedelta(days=7),
        price_per_quota=Decimal("10.00"),
        capacity=100
    )


@pytest.fixture
async def small_contest(db_session) -> Contest:
    """Open contest with only 5 quotas."""
    return await create_contest(
        db_session,
        name="Quina",
        number=6500,
        draw_date=datetime.now(timezone.utc) + timedelta(days=2),
        price_per_quota=Decimal("5.00"),
        capacity=5
    )


# Markers for different test types
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
