"""
manageRTC Payroll - Celery Configuration

Celery configuration for background payroll processing.
Uses Redis as the message broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings


# Create Celery app
celery_app = Celery(
    'managertc_payroll',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['app.tasks.celery_tasks'],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone='Asia/Kolkata',
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=1800,  # 30 minutes
    task_soft_time_limit=1500,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=86400,  # 24 hours

    # Retry settings
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Generate last month's payroll for every company on the 1st at 2 AM
        'generate-monthly-payroll': {
            'task': 'app.tasks.celery_tasks.generate_previous_month_payroll_task',
            'schedule': crontab(day_of_month=1, hour=2, minute=0),
        },
    },
)


celery_app.conf.task_routes = {
    'app.tasks.celery_tasks.*': {'queue': 'payroll'},
}
