"""
Test health endpoint
"""

import pytest

from bolao.core.config import settings
from bolao.db.session import get_db


async def test_health_endpoint(test_client):
    """Health endpoint reports the database as reachable"""
    response = await test_client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "service": settings.app_name}


async def test_health_endpoint_database_down(test_app, test_client):
    """A failing database turns the health check into a 503"""
    class BrokenSession:
        async def execute(self, *args, **kwargs):
            raise RuntimeError("connection refused")
    
    async def get_broken_db():
        yield BrokenSession()
    
    test_app.dependency_overrides[get_db] = get_broken_db
    
    response = await test_client.get("/api/v1/health")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
