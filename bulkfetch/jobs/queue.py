"""
In-process FIFO task queue with bounded in-place retry.

One drain loop serves every named queue, so at most one task is in flight
at a time. Nothing is persisted: queued and in-flight tasks are lost when
the process exits.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bulkfetch.config import QueueSettings, get_queue_settings
from bulkfetch.domain.catalog import utc_now
from bulkfetch.errors import InvalidStateError
from bulkfetch.jobs.retry import RetryPolicy
from bulkfetch.logging_utils import log_event

logger = logging.getLogger(__name__)

TaskCallback = Callable[[Any], Awaitable[Any]]
FailureListener = Callable[["QueuedTask", BaseException], None]


@dataclass
class QueuedTask:
    task_id: str
    queue_name: str
    payload: Any
    attempts: int = 0
    enqueued_at: datetime = field(default_factory=utc_now)


class TaskQueue:
    """
    Named FIFO queues drained by a single-flight loop.

    A failed callback re-appends its task to the back of the same queue until
    `max_attempts` is reached; the task is then dropped and failure listeners
    receive the `job-failed` signal. Dead-lettering belongs to the consumer.
    """

    def __init__(
        self,
        *,
        settings: QueueSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_queue_settings()
        self.retry_policy = RetryPolicy(
            max_attempts=self.settings.max_attempts,
            on_exhausted=self._notify_failure,
        )
        self._sleep = sleep
        self._queues: dict[str, deque[QueuedTask]] = {}
        self._consumers: dict[str, TaskCallback] = {}
        self._failure_listeners: list[FailureListener] = []
        self._processing = False
        self._closed = False
        self._drain_task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def publish(self, queue_name: str, payload: Any) -> str:
        if self._closed:
            raise InvalidStateError("Task queue is closed.")
        task = QueuedTask(task_id=uuid.uuid4().hex, queue_name=queue_name, payload=payload)
        self._queues.setdefault(queue_name, deque()).append(task)
        log_event(
            logger,
            logging.DEBUG,
            "task_published",
            queue=queue_name,
            task_id=task.task_id,
            pending=len(self._queues[queue_name]),
        )
        self._schedule_drain()
        return task.task_id

    async def consume(self, queue_name: str, callback: TaskCallback) -> None:
        """
        Register the single active callback for `queue_name`.
        """

        if self._closed:
            raise InvalidStateError("Task queue is closed.")
        if queue_name in self._consumers:
            raise InvalidStateError(f"Queue {queue_name!r} already has a consumer.")
        self._consumers[queue_name] = callback
        self._queues.setdefault(queue_name, deque())
        self._schedule_drain()

    def stop_consuming(self, queue_name: str) -> bool:
        return self._consumers.pop(queue_name, None) is not None

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    def status(self, queue_name: str) -> dict[str, Any]:
        return {
            "queue_name": queue_name,
            "pending": len(self._queues.get(queue_name, ())),
            "has_consumer": queue_name in self._consumers,
            "processing": self._processing,
        }

    def all_status(self) -> dict[str, dict[str, Any]]:
        return {name: self.status(name) for name in self._queues}

    def clear(self, queue_name: str) -> int:
        pending = self._queues.get(queue_name)
        if not pending:
            return 0
        removed = len(pending)
        pending.clear()
        return removed

    async def join(self) -> None:
        """
        Wait until the drain loop has nothing left to run.
        """

        while self._processing:
            await self._idle.wait()

    async def close(self) -> None:
        self._closed = True
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task
        for pending in self._queues.values():
            pending.clear()
        self._consumers.clear()
        self._processing = False
        self._idle.set()

    def _schedule_drain(self) -> None:
        if self._processing or self._closed or self._next_consumable() is None:
            return
        self._processing = True
        self._idle.clear()
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    def _next_consumable(self) -> str | None:
        for queue_name in self._consumers:
            if self._queues.get(queue_name):
                return queue_name
        return None

    async def _drain(self) -> None:
        try:
            while True:
                queue_name = self._next_consumable()
                if queue_name is None:
                    break
                task = self._queues[queue_name].popleft()
                await self._run_task(task)
                if self._next_consumable() is not None and self.settings.task_delay_seconds > 0:
                    await self._sleep(self.settings.task_delay_seconds)
        finally:
            self._processing = False
            self._idle.set()

    async def _run_task(self, task: QueuedTask) -> None:
        callback = self._consumers.get(task.queue_name)
        if callback is None:
            self._queues[task.queue_name].appendleft(task)
            return

        task.attempts += 1
        try:
            await callback(task.payload)
        except Exception as exc:
            if self.retry_policy.should_retry(exc, task.attempts):
                self._queues[task.queue_name].append(task)
                log_event(
                    logger,
                    logging.WARNING,
                    "task_requeued",
                    queue=task.queue_name,
                    task_id=task.task_id,
                    attempts=task.attempts,
                    error=str(exc),
                )
                return
            log_event(
                logger,
                logging.ERROR,
                "task_dropped",
                queue=task.queue_name,
                task_id=task.task_id,
                attempts=task.attempts,
                error=str(exc),
            )
            await self.retry_policy.exhaust(task, exc, task.attempts)

    async def _notify_failure(self, task: QueuedTask, exc: BaseException, attempts: int) -> None:
        for listener in list(self._failure_listeners):
            try:
                listener(task, exc)
            except Exception as listener_exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "failure_listener_failed",
                    task_id=task.task_id,
                    error=str(listener_exc),
                )
