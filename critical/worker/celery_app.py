"""Celery application configuration."""

from celery import Celery

from critical.core.config import settings

celery_app = Celery("critical", include=["critical.tasks.css_tasks"])

broker_url = settings.celery_broker_url or settings.redis_url
result_backend = settings.celery_result_backend or settings.redis_url

celery_app.conf.update(
    broker_url=broker_url,
    result_backend=result_backend,
    task_default_queue="critical_css",
    task_soft_time_limit=int(settings.extraction_timeout_seconds * 2),
    task_time_limit=int(settings.extraction_timeout_seconds * 3),
    worker_max_tasks_per_child=100,
    task_track_started=True,
    task_always_eager=settings.debug,
    task_eager_propagates=False,
)
