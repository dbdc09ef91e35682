"""Models for critical CSS extraction workflows."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .job import JobStatus
from .options import Dimension, GenerateOptions


class CriticalCSSRequest(GenerateOptions):
    """Payload accepted by the critical CSS endpoint."""

    label: Optional[str] = Field(default=None, description="Identifier used by downstream consumers.")

    def to_options(self) -> GenerateOptions:
        """Strip API-only fields before handing the payload to the generator."""

        return GenerateOptions.model_validate(self.model_dump(exclude={"label"}))


class CriticalCSSResult(BaseModel):
    """Result payload for completed CSS extraction jobs."""

    critical_css: str
    dimensions: List[Dimension] = Field(default_factory=list)


class CriticalCSSJobStatusResponse(BaseModel):
    """API response for CSS job status queries."""

    job_id: str
    status: JobStatus
    label: Optional[str] = None
    src: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    result: Optional[CriticalCSSResult] = None
    error: Optional[str] = None
