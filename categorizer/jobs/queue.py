"""Sequential asyncio task queue (single worker, single process).

Features:
- Concurrency of exactly one: a task starts only after the previous one
  succeeded, failed or timed out.
- FIFO order matching push order; no priorities, no reordering.
- Per-task timeout. A timed-out task is abandoned, not cancelled: its
  coroutine keeps running in the background and may still finish (and mutate
  state) later. The worker moves on to the next task immediately.
- Autostart: the worker is spawned by the first push.

Every push returns a QueuedTask whose future settles with the closure's return
value, its exception or a QueueTimeoutError. Lifecycle events (start, success,
error, timeout) are also delivered to listeners for logging.
"""
from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from categorizer.config import QUEUE_SETTINGS
from categorizer.models import QueueEventType
from categorizer.utils import get_logger

logger = get_logger(__name__)

Work = Callable[[], Awaitable[Any]]


class QueueTimeoutError(TimeoutError):
    """The task exceeded the queue's time budget and was abandoned."""


class QueueStoppedError(RuntimeError):
    """The queue no longer accepts or runs tasks."""


@dataclass(slots=True, eq=False)
class QueuedTask:
    work: Work
    name: str
    seq: int
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    async def result(self) -> Any:
        """Wait for the task to settle and return (or raise) its outcome."""
        return await asyncio.shield(self.future)

    def done(self) -> bool:
        return self.future.done()


@dataclass(frozen=True, slots=True)
class QueueEvent:
    type: QueueEventType
    task: QueuedTask
    error: Optional[BaseException] = None


QueueListener = Callable[[QueueEvent], None]


class SequentialTaskQueue:
    def __init__(self, *, timeout_seconds: float | None = None, autostart: bool | None = None) -> None:
        self.timeout_seconds = float(
            timeout_seconds if timeout_seconds is not None else QUEUE_SETTINGS.get("timeout_seconds", 30)
        )
        self.autostart = bool(autostart if autostart is not None else QUEUE_SETTINGS.get("autostart", True))
        self._pending: asyncio.Queue[QueuedTask] = asyncio.Queue()
        self._listeners: list[QueueListener] = []
        self._worker: asyncio.Task | None = None
        self._running: QueuedTask | None = None
        self._seq = itertools.count(1)
        self._stopped = False
        self._counters = {"processed": 0, "succeeded": 0, "failed": 0, "timed_out": 0}

    # ----------------------------- listeners ----------------------------- #
    def add_listener(self, callback: QueueListener) -> None:
        self._listeners.append(callback)

    def _emit(self, event_type: QueueEventType, task: QueuedTask, error: BaseException | None = None) -> None:
        event = QueueEvent(type=event_type, task=task, error=error)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                logger.error("Queue listener failed", task=task.name, event=event_type.value, error=str(e), exc_info=True)

    # ----------------------------- public API ----------------------------- #
    def push(self, work: Work, *, name: str | None = None) -> QueuedTask:
        """Append ``work`` (a zero-argument async callable) to the queue.

        Must be called from within the running event loop.
        """
        if self._stopped:
            raise QueueStoppedError("Queue stopped")
        loop = asyncio.get_running_loop()
        seq = next(self._seq)
        task = QueuedTask(work=work, name=name or f"task-{seq}", seq=seq, future=loop.create_future())
        self._pending.put_nowait(task)
        logger.debug("Task queued", task=task.name, depth=self._pending.qsize())
        if self.autostart:
            self.start()
        return task

    def start(self) -> None:
        if self._stopped:
            raise QueueStoppedError("Queue stopped")
        if self._worker is not None and not self._worker.done():
            return
        self._worker = asyncio.get_running_loop().create_task(self._loop(), name="sequential-task-queue")
        logger.info("Task queue worker started", timeout_seconds=self.timeout_seconds)

    async def stop(self) -> None:
        """Stop the worker and fail every task that has not started yet."""
        self._stopped = True
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        while not self._pending.empty():
            task = self._pending.get_nowait()
            self._settle(task, error=QueueStoppedError("Queue stopped before task started"))
            self._pending.task_done()
        logger.info("Task queue worker stopped")

    async def join(self) -> None:
        """Wait until every task pushed so far has settled."""
        await self._pending.join()

    # ----------------------------- worker ----------------------------- #
    async def _loop(self) -> None:
        while True:
            task = await self._pending.get()
            try:
                await self._execute(task)
            finally:
                self._pending.task_done()

    @staticmethod
    async def _invoke(work: Work) -> Any:
        return await work()

    async def _execute(self, task: QueuedTask) -> None:
        self._running = task
        task.started_at = time.monotonic()
        self._emit(QueueEventType.START, task)
        runner = asyncio.ensure_future(self._invoke(task.work))
        try:
            done, _ = await asyncio.wait({runner}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            # queue is stopping; the running task is abandoned like a timeout
            runner.add_done_callback(self._late_completion(task))
            self._settle(task, error=QueueStoppedError("Queue stopped while task was running"))
            raise
        finally:
            self._running = None

        self._counters["processed"] += 1
        if runner in done:
            if runner.cancelled():
                error: BaseException | None = RuntimeError(f"Task {task.name} was cancelled")
            else:
                error = runner.exception()
            if error is None:
                self._counters["succeeded"] += 1
                self._settle(task, result=runner.result())
                self._emit(QueueEventType.SUCCESS, task)
            else:
                self._counters["failed"] += 1
                self._settle(task, error=error)
                self._emit(QueueEventType.ERROR, task, error)
            return

        self._counters["timed_out"] += 1
        error = QueueTimeoutError(f"Task {task.name} exceeded {self.timeout_seconds:g}s")
        runner.add_done_callback(self._late_completion(task))
        self._settle(task, error=error)
        self._emit(QueueEventType.TIMEOUT, task, error)

    def _settle(self, task: QueuedTask, *, result: Any = None, error: BaseException | None = None) -> None:
        task.finished_at = time.monotonic()
        if task.future.done():
            return
        if error is None:
            task.future.set_result(result)
        else:
            task.future.set_exception(error)
            # outcome is also reported through queue events; pushers may ignore the future
            task.future.exception()

    @staticmethod
    def _late_completion(task: QueuedTask) -> Callable[[asyncio.Future], None]:
        def _callback(runner: asyncio.Future) -> None:
            if runner.cancelled():
                return
            error = runner.exception()
            if error is not None:
                logger.warning("Abandoned task failed after timeout", task=task.name, error=str(error))
            else:
                logger.warning("Abandoned task completed after timeout", task=task.name)
        return _callback

    # ----------------------------- inspection ----------------------------- #
    def depth(self) -> int:
        return self._pending.qsize()

    def __len__(self) -> int:
        return self.depth()

    @property
    def running(self) -> QueuedTask | None:
        return self._running

    @property
    def stopped(self) -> bool:
        return self._stopped

    def snapshot(self) -> dict:
        return {
            "depth": self.depth(),
            "running": self._running.name if self._running else None,
            "concurrency": 1,
            "timeout_seconds": self.timeout_seconds,
            "stopped": self._stopped,
            **self._counters,
        }


__all__ = [
    "SequentialTaskQueue",
    "QueuedTask",
    "QueueEvent",
    "QueueListener",
    "QueueTimeoutError",
    "QueueStoppedError",
]
