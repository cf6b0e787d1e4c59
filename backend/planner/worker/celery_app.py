from celery import Celery

from planner.core.config import settings

celery_app = Celery(
    "planner",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["planner.worker.tasks"],
)

celery_app.conf.update(
    timezone="UTC",
    beat_schedule={
        "reconcile-scheduled-posts": {
            "task": "planner.worker.tasks.reconcile_scheduled_posts",
            "schedule": float(settings.RECONCILE_INTERVAL_SECONDS),
        },
        "purge-expired-oauth-states": {
            "task": "planner.worker.tasks.purge_expired_oauth_states",
            "schedule": 600.0,
        },
    },
)
