"""In-memory job registry (process lifetime, no persistence).

The registry owns every Job and is the single source of truth for job state.
Each mutation stores a new immutable Job and publishes a JobEvent to the
registered subscribers while still holding the lock, so subscribers observe
events in exactly the order the mutations happened.

Writers: the webhook handler calls create_job; every other mutating method is
called only from the task queue worker. Readers (observers, health checks) use
get_jobs / get_job and receive immutable snapshots.

State machine: created -> in_progress -> finished. There is no failed state; a
job whose processing raised stays wherever it was.
"""
from __future__ import annotations

import threading
import uuid
from typing import Any, Callable, Mapping

from categorizer.models import Job, JobEvent, JobEventType, JobStatus
from categorizer.utils import get_logger

logger = get_logger(__name__)

JobSubscriber = Callable[[JobEvent], None]


class JobNotFoundError(KeyError):
    """Raised for an id the registry never issued."""


class InvalidJobTransitionError(RuntimeError):
    """Raised when a status change would move a job backwards."""


class JobRegistry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._jobs: dict[str, Job] = {}  # insertion order == creation order
        self._subscribers: list[JobSubscriber] = []

    # ----------------------------- subscriptions ----------------------------- #
    def subscribe(self, callback: JobSubscriber) -> Callable[[], None]:
        """Register ``callback`` for every created/updated event.

        Returns a zero-argument function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def _publish(self, event_type: JobEventType, job: Job) -> None:
        event = JobEvent(type=event_type, job=job)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Job subscriber failed",
                    job_id=job.id,
                    event=event_type.value,
                    error=str(e),
                    exc_info=True,
                )

    # ----------------------------- internal helpers ----------------------------- #
    def _get(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            logger.error("Unknown job id", job_id=job_id)
            raise JobNotFoundError(job_id) from None

    def _store(self, job: Job, event_type: JobEventType) -> Job:
        self._jobs[job.id] = job
        self._publish(event_type, job)
        return job

    # ----------------------------- public API ----------------------------- #
    def create_job(self, data: Mapping[str, Any]) -> Job:
        with self._lock:
            job = Job(id=str(uuid.uuid4()), status=JobStatus.CREATED, data=data)
            logger.info("Job created", job_id=job.id)
            return self._store(job, JobEventType.CREATED)

    def set_job_in_progress(self, job_id: str) -> Job:
        with self._lock:
            job = self._get(job_id)
            if job.status is not JobStatus.CREATED:
                raise InvalidJobTransitionError(
                    f"Job {job_id} cannot move from {job.status.value} to {JobStatus.IN_PROGRESS.value}"
                )
            return self._store(job.with_status(JobStatus.IN_PROGRESS), JobEventType.UPDATED)

    def update_job_data(self, job_id: str, data: Mapping[str, Any]) -> Job:
        """Replace the job's data wholesale; status is preserved."""
        with self._lock:
            job = self._get(job_id)
            return self._store(job.with_data(data), JobEventType.UPDATED)

    def set_job_finished(self, job_id: str) -> Job:
        with self._lock:
            job = self._get(job_id)
            if job.status is JobStatus.FINISHED:
                raise InvalidJobTransitionError(f"Job {job_id} is already {JobStatus.FINISHED.value}")
            logger.info("Job finished", job_id=job_id)
            return self._store(job.with_status(JobStatus.FINISHED), JobEventType.UPDATED)

    def get_job(self, job_id: str) -> Job:
        with self._lock:
            return self._get(job_id)

    def get_jobs(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    # ----------------------------- inspection ----------------------------- #
    def __len__(self) -> int:
        return len(self._jobs)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            counts = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                counts[job.status.value] += 1
            return {"total": len(self._jobs), **counts}


__all__ = ["JobRegistry", "JobNotFoundError", "InvalidJobTransitionError", "JobSubscriber"]
