"""Celery application configuration"""
from celery import Celery
from celery.schedules import crontab
from kombu import Queue
import os

# Check if we're in eager/test mode (no broker needed)
CELERY_EAGER_MODE = os.getenv("CELERY_TASK_ALWAYS_EAGER", "").lower() == "true"

# Get broker URL from environment
if CELERY_EAGER_MODE:
    # Use memory backend for testing without Redis
    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = "cache+memory://"
else:
    CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

# Create Celery application
celery_app = Celery(
    "lien_sync",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "tasks.automation_tasks",
    ]
)

# Enable eager mode if set
if CELERY_EAGER_MODE:
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task queues
    task_queues=(
        Queue("default", routing_key="default"),
        Queue("automation", routing_key="automation"),
        Queue("maintenance", routing_key="maintenance"),
    ),

    # Default queue
    task_default_queue="default",
    task_default_routing_key="default",

    # Task routing
    task_routes={
        "tasks.automation_tasks.check_schedule": {"queue": "automation"},
        "tasks.automation_tasks.trigger_scheduled_run": {"queue": "automation"},
        "tasks.automation_tasks.mark_stale_liens": {"queue": "maintenance"},
        "tasks.automation_tasks.cleanup_expired_pdfs": {"queue": "maintenance"},
    },

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Result settings
    result_expires=86400,  # 24 hours

    # Task time limits
    task_soft_time_limit=120,
    task_time_limit=300,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # The run time lives in the database, so beat checks it every minute
    "check-automation-schedule": {
        "task": "tasks.automation_tasks.check_schedule",
        "schedule": crontab(),
    },
    "mark-stale-liens": {
        "task": "tasks.automation_tasks.mark_stale_liens",
        "schedule": 3600.0,  # Every hour
    },
    "cleanup-expired-pdfs": {
        "task": "tasks.automation_tasks.cleanup_expired_pdfs",
        "schedule": 86400.0,  # Every 24 hours
    },
}
