"""Relay of job registry events to connected observers.

Each observer owns an outbound asyncio.Queue of ready-to-send messages. On
connect the observer's queue is seeded with a ``jobs`` snapshot; afterwards
every registry event is appended to every observer queue. The transport
drains the queue at its own pace; this module applies no filtering and no
backpressure.
"""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable

from categorizer.jobs.registry import JobRegistry
from categorizer.models import JOBS_SNAPSHOT_EVENT, JobEvent
from categorizer.utils import get_logger

logger = get_logger(__name__)

_observer_ids = itertools.count(1)


@dataclass(eq=False)
class Observer:
    id: int = field(default_factory=lambda: next(_observer_ids))
    messages: asyncio.Queue = field(default_factory=asyncio.Queue)

    async def next_message(self) -> dict[str, Any]:
        return await self.messages.get()

    def pending(self) -> list[dict[str, Any]]:
        """Drain and return every message queued so far without waiting."""
        drained = []
        while not self.messages.empty():
            drained.append(self.messages.get_nowait())
        return drained


class JobEventBroadcaster:
    def __init__(self, registry: JobRegistry) -> None:
        self.registry = registry
        self._observers: set[Observer] = set()
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.registry.subscribe(self._relay)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _relay(self, event: JobEvent) -> None:
        message = event.to_message()
        for observer in list(self._observers):
            observer.messages.put_nowait(message)

    def connect(self) -> Observer:
        """Register a new observer, seeded with the current job snapshot.

        The snapshot is taken and the observer registered without yielding to
        the event loop, so no registry event can fall between the two.
        """
        observer = Observer()
        jobs = [job.to_dict() for job in self.registry.get_jobs()]
        observer.messages.put_nowait({"event": JOBS_SNAPSHOT_EVENT, "data": jobs})
        self._observers.add(observer)
        logger.info("Observer connected", observer_id=observer.id, observers=len(self._observers))
        return observer

    def disconnect(self, observer: Observer) -> None:
        self._observers.discard(observer)
        logger.info("Observer disconnected", observer_id=observer.id, observers=len(self._observers))

    def __len__(self) -> int:
        return len(self._observers)


__all__ = ["JobEventBroadcaster", "Observer"]
