"""Job records tracked between the API and the worker."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Lifecycle of a queued generation."""

    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class JobKind(str, Enum):
    critical_css = "critical_css"


class JobMetadata(BaseModel):
    """Snapshot of a job. Updates return new copies."""

    job_id: str
    job_type: JobKind = JobKind.critical_css
    status: JobStatus = JobStatus.queued
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    error: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.completed, JobStatus.failed)

    def _updated(self, **changes: Any) -> "JobMetadata":
        return self.model_copy(update={**changes, "updated_at": _now()})

    def with_status(self, status: JobStatus) -> "JobMetadata":
        return self._updated(status=status)

    def with_result(self, result: Dict[str, Any]) -> "JobMetadata":
        """Store the generator output and mark the job completed."""

        return self._updated(result=result, status=JobStatus.completed, error=None)

    def with_error(self, message: str) -> "JobMetadata":
        """Store the failure message and mark the job failed."""

        return self._updated(error=message, status=JobStatus.failed)
