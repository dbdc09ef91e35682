"""Tests for the in-memory job registry."""

import pytest

from critical.models.job import JobStatus
from critical.services import job_store


@pytest.mark.unit
class TestJobStore:
    def test_lifecycle(self):
        job = job_store.create_job("css_1", {"src": "index.html"})
        assert job.status == JobStatus.queued
        assert not job.finished

        assert job_store.mark_processing("css_1").status == JobStatus.processing

        completed = job_store.mark_completed("css_1", {"critical_css": "a{color:red}"})
        assert completed.status == JobStatus.completed
        assert completed.result == {"critical_css": "a{color:red}"}
        assert completed.updated_at >= job.created_at
        assert completed.finished

    def test_failure_records_message(self):
        job_store.create_job("css_2", {})

        failed = job_store.mark_failed("css_2", "No usable stylesheets found")

        assert failed.status == JobStatus.failed
        assert job_store.job_store.get_job("css_2").error == "No usable stylesheets found"

    def test_unknown_job(self):
        with pytest.raises(KeyError):
            job_store.mark_processing("missing")
