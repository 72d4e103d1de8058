"""
Response schemas for the HTTP API.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from categorizer.models.enums import JobStatus


class JobData(BaseModel):
    """Job payload as shown to observers. Keys are camelCase on the wire."""
    destinationName: str
    description: str
    category: Optional[str] = None
    prompt: Optional[str] = None
    response: Optional[str] = None


class JobOut(BaseModel):
    id: str
    status: JobStatus
    created: datetime
    data: JobData = Field(description="Transaction fields plus classification audit trail")

    @classmethod
    def from_job(cls, job: Any) -> "JobOut":
        return cls(id=job.id, status=job.status, created=job.created, data=JobData(**job.data))


class HealthOut(BaseModel):
    status: str
    service: str
    version: str
    timestamp: float
    checks: Dict[str, Any] = Field(default_factory=dict)
