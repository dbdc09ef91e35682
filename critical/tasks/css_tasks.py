"""Celery tasks for critical CSS extraction."""

from __future__ import annotations

from critical.core.logging import bound_context, get_logger
from critical.models.critical_css import CriticalCSSRequest, CriticalCSSResult
from critical.services import job_store
from critical.services.generator import generate_sync
from critical.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="critical_css.generate")
def generate_critical_css(job_id: str, payload: dict) -> dict:
    """Run the generator for a queued request and record the outcome on the job."""

    with bound_context(job_id=job_id, label=payload.get("label")):
        logger.info("critical_css_task_started")
        try:
            job_store.mark_processing(job_id)
            request = CriticalCSSRequest.model_validate(payload)
            options = request.to_options()
            critical_css = generate_sync(options)
        except Exception as exc:
            logger.exception("critical_css_task_failed", error=str(exc))
            job_store.mark_failed(job_id, str(exc))
            raise

        result = CriticalCSSResult(critical_css=critical_css, dimensions=options.dimensions)
        result_payload = result.model_dump(mode="json")
        job_store.mark_completed(job_id, result_payload)
        logger.info("critical_css_task_completed", size=len(critical_css))
        return result_payload
