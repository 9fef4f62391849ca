"""
Bolao FastAPI Application
Main entry point for the application
"""

import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from bolao.core.config import settings

# Sentry integration
if os.getenv("SENTRY_DSN"):
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    from sentry_sdk.integrations.redis import RedisIntegration
    
    sentry_sdk.init(
        dsn=os.getenv("SENTRY_DSN"),
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            RedisIntegration(),
        ],
        traces_sample_rate=0.1,
        environment=settings.app_env,
    )

from bolao.api.health import router as health_router
from bolao.api.webhooks import router as webhooks_router
from bolao.api.v1.contests import router as contests_router
from bolao.api.v1.payments import router as payments_router
from bolao.api.v1.participations import router as participations_router
from bolao.api.v1.admin import router as admin_router
from bolao.core.metrics import REQUEST_COUNT, REQUEST_DURATION, ACTIVE_CONNECTIONS
from bolao.middleware.rate_limit import RateLimitMiddleware

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Create FastAPI app instance
app = FastAPI(
    title="Bolao API",
    description="Lottery pool quotas, payment reconciliation and prize distribution",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Redis-backed rate limiting is switched off in tests
if settings.app_env != "testing":
    from bolao.core.redis_client import redis_client
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client)


# Add metrics middleware
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    ACTIVE_CONNECTIONS.inc()
    response = None
    
    try:
        response = await call_next(request)
        return response
    finally:
        duration = time.time() - start_time
        ACTIVE_CONNECTIONS.dec()
        
        # Record metrics only if response is available
        if response:
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=request.url.path,
                status=response.status_code
            ).inc()
            
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(duration)


# Add metrics endpoint
@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(health_router, prefix=settings.api_v1_prefix, tags=["health"])
app.include_router(webhooks_router, prefix=settings.api_v1_prefix, tags=["webhooks"])
app.include_router(contests_router, prefix=settings.api_v1_prefix, tags=["contests"])
app.include_router(payments_router, prefix=settings.api_v1_prefix, tags=["payments"])
app.include_router(participations_router, prefix=settings.api_v1_prefix, tags=["participations"])
app.include_router(admin_router, prefix=f"{settings.api_v1_prefix}/admin", tags=["admin"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bolao.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
