"""Job value objects shared by the registry, the orchestrator and observers."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from categorizer.models.enums import JobEventType, JobStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Job:
    """Immutable snapshot of one categorization job.

    The registry never mutates a Job; every change stores a new instance, so
    any snapshot handed out earlier keeps its values. ``data`` is stored as a
    read-only view of a private copy, so readers cannot write through it.
    """
    id: str
    status: JobStatus
    data: Mapping[str, Any]
    created: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def with_status(self, status: JobStatus) -> "Job":
        return replace(self, status=status)

    def with_data(self, data: Mapping[str, Any]) -> "Job":
        return replace(self, data=data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "created": self.created.isoformat(),
            "data": dict(self.data),
        }


@dataclass(frozen=True, slots=True)
class JobEvent:
    type: JobEventType
    job: Job

    def to_message(self) -> dict[str, Any]:
        return {"event": self.type.value, "data": self.job.to_dict()}


__all__ = ["Job", "JobEvent"]
