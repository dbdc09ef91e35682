"""In-memory registry of critical CSS jobs."""

from __future__ import annotations

from threading import Lock
from typing import Callable, Dict, Optional

from critical.models.job import JobKind, JobMetadata, JobStatus


class InMemoryJobStore:
    """Thread-safe job registry shared by the API and eager workers."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: Dict[str, JobMetadata] = {}

    def create_job(self, job: JobMetadata) -> None:
        with self._lock:
            self._jobs[job.job_id] = job

    def get_job(self, job_id: str) -> Optional[JobMetadata]:
        with self._lock:
            return self._jobs.get(job_id)

    def transition(self, job_id: str, change: Callable[[JobMetadata], JobMetadata]) -> JobMetadata:
        """Apply ``change`` to a stored job atomically."""

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(f"Job {job_id} not found")
            updated = change(job)
            self._jobs[job_id] = updated
            return updated

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


job_store = InMemoryJobStore()


def create_job(job_id: str, payload: dict, job_type: JobKind = JobKind.critical_css) -> JobMetadata:
    """Register a new job in queued state."""

    job = JobMetadata(job_id=job_id, job_type=job_type, payload=payload)
    job_store.create_job(job)
    return job


def mark_processing(job_id: str) -> JobMetadata:
    return job_store.transition(job_id, lambda job: job.with_status(JobStatus.processing))


def mark_completed(job_id: str, result: dict) -> JobMetadata:
    return job_store.transition(job_id, lambda job: job.with_result(result))


def mark_failed(job_id: str, message: str) -> JobMetadata:
    return job_store.transition(job_id, lambda job: job.with_error(message))
