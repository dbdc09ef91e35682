"""Routes for critical CSS extraction."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status

from critical.api.dependencies import get_auth_dependency
from critical.models.critical_css import (
    CriticalCSSJobStatusResponse,
    CriticalCSSRequest,
    CriticalCSSResult,
)
from critical.models.job import JobStatus
from critical.services import job_store
from critical.services.generator import generate
from critical.tasks.css_tasks import generate_critical_css

# Credentials travel to the worker but are never kept on the job record.
REDACTED_FIELDS = {"password"}

router = APIRouter(prefix="/critical-css", tags=["critical-css"], dependencies=[Depends(get_auth_dependency)])


@router.post(
    "/generate",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue a critical CSS generation job",
)
def enqueue_critical_css(payload: CriticalCSSRequest) -> dict:
    """Create a job to generate critical CSS for the supplied source."""

    if not payload.has_source:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Either 'src' or 'html' must be provided.",
        )

    job_id = f"css_{uuid.uuid4().hex}"
    serialized_payload = payload.model_dump(mode="json", by_alias=True)
    job_store.create_job(job_id, payload.model_dump(mode="json", by_alias=True, exclude=REDACTED_FIELDS))
    generate_critical_css.delay(job_id=job_id, payload=serialized_payload)
    return {"job_id": job_id, "status": JobStatus.queued}


@router.get(
    "/{job_id}",
    response_model=CriticalCSSJobStatusResponse,
    summary="Retrieve critical CSS job status",
)
def get_critical_css_job(job_id: str) -> CriticalCSSJobStatusResponse:
    """Return job status and resulting CSS if available."""

    job = job_store.job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    result = None
    if job.finished and job.result:
        result = CriticalCSSResult.model_validate(job.result)

    return CriticalCSSJobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        label=job.payload.get("label"),
        src=job.payload.get("src"),
        created_at=job.created_at,
        updated_at=job.updated_at,
        result=result,
        error=job.error,
    )


@router.post(
    "/render",
    response_model=CriticalCSSResult,
    summary="Generate critical CSS and wait for the result",
)
async def render_critical_css(payload: CriticalCSSRequest) -> CriticalCSSResult:
    """Run the generator inline instead of queueing a job."""

    options = payload.to_options()
    critical_css = await generate(options)
    return CriticalCSSResult(critical_css=critical_css, dimensions=options.dimensions)
