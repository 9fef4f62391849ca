"""
Celery application configuration
"""

import os
from celery import Celery
from bolao.core.config import settings

# Use REDIS_URL as fallback for Celery broker
broker_url = os.environ.get('CELERY_BROKER_URL', os.environ.get('REDIS_URL', settings.celery_broker_url))
backend_url = os.environ.get('CELERY_RESULT_BACKEND', os.environ.get('REDIS_URL', settings.celery_result_backend))

# Create Celery instance
celery = Celery(
    "bolao",
    broker=broker_url,
    backend=backend_url,
    include=["bolao.tasks.reconciliation"]
)

# Configure Celery
celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Sao_Paulo",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    result_expires=3600,  # 1 hour
    worker_concurrency=int(os.getenv("CELERY_WORKER_CONCURRENCY", 4)),
    task_routes={
        "bolao.tasks.reconciliation.reconcile_payment": {"queue": "reconciliation"},
        "bolao.tasks.reconciliation.recheck_pending_payments": {"queue": "reconciliation"},
    },
    task_default_queue="default",
    beat_schedule={
        "recheck-pending-payments": {
            "task": "bolao.tasks.reconciliation.recheck_pending_payments",
            "schedule": 300.0,  # every 5 minutes
        },
    },
)

# For testing, we can run tasks synchronously
if settings.app_env == "testing":
    celery.conf.task_always_eager = True
    celery.conf.task_eager_propagates = True

if __name__ == "__main__":
    celery.start()
