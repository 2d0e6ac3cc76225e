from celery import Celery
from virtual_staging.core.config import settings

celery_app = Celery("virtual_staging", broker=settings.redis_url, backend=settings.redis_url, include=["virtual_staging.tasks.runs"])
celery_app.conf.update(task_track_started=True, result_expires=3600, broker_connection_retry_on_startup=True, task_acks_late=True,)
celery_app.conf.beat_schedule = {
    "sweep-staging-runs": {"task": "sweep_staging_runs", "schedule": settings.sweep_interval_seconds},
}
