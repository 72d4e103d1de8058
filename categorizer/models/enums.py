"""Central Enum definitions for job lifecycle and event names.

Values are what observers see on the wire, so they double as the public
vocabulary of the real-time channel.
"""
from __future__ import annotations
import enum


class JobStatus(str, enum.Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class JobEventType(str, enum.Enum):
    CREATED = "job created"
    UPDATED = "job updated"


class QueueEventType(str, enum.Enum):
    START = "start"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


# Name of the snapshot message sent to a freshly connected observer
JOBS_SNAPSHOT_EVENT = "jobs"

__all__ = [
    "JobStatus",
    "JobEventType",
    "QueueEventType",
    "JOBS_SNAPSHOT_EVENT",
]
