from .enums import JobStatus, JobEventType, QueueEventType, JOBS_SNAPSHOT_EVENT
from .job import Job, JobEvent

__all__ = [
    "Job",
    "JobEvent",
    "JobStatus",
    "JobEventType",
    "QueueEventType",
    "JOBS_SNAPSHOT_EVENT",
]
