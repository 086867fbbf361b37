"""
Typed job lifecycle events and the per-job broadcaster.

Delivery is at-most-once to listeners subscribed at publish time; nothing
is buffered for late subscribers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from bulkfetch.domain.catalog import Product, utc_now
from bulkfetch.logging_utils import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    job_id: str
    brand_index: int
    brand_name: str
    total_brands: int
    processed_brands: int
    status: str
    products: list[Product] = field(default_factory=list)
    emitted_at: datetime = field(default_factory=utc_now)
    kind: str = field(default="progress", init=False)


@dataclass(frozen=True)
class ErrorEvent:
    job_id: str
    brand_index: int
    brand_name: str
    total_brands: int
    processed_brands: int
    error: str
    error_kind: str
    emitted_at: datetime = field(default_factory=utc_now)
    kind: str = field(default="error", init=False)


@dataclass(frozen=True)
class CompleteEvent:
    job_id: str
    status: str
    total_brands: int
    successful_brands: int
    failed_brands: int
    total_products: int
    success_rate: int
    duration_ms: int | None
    has_errors: bool
    emitted_at: datetime = field(default_factory=utc_now)
    kind: str = field(default="complete", init=False)


@dataclass(frozen=True)
class CancelledEvent:
    job_id: str
    reason: str
    processed_brands: int
    total_brands: int
    emitted_at: datetime = field(default_factory=utc_now)
    kind: str = field(default="cancelled", init=False)


JobEvent = Union[ProgressEvent, ErrorEvent, CompleteEvent, CancelledEvent]
TERMINAL_EVENT_KINDS = frozenset({"complete", "cancelled"})

EventCallback = Callable[[JobEvent], None]


class Subscription:
    """
    One listener's membership on a job's channel.

    Events go to the callback when one is given; otherwise they are queued
    for `get()` / `async for`. Iteration ends after a terminal event or when
    the subscription is closed.
    """

    def __init__(self, job_id: str, callback: EventCallback | None = None) -> None:
        self.job_id = job_id
        self.callback = callback
        self.active = True
        self._queue: asyncio.Queue[JobEvent | None] = asyncio.Queue()
        self._finished = False

    def deliver(self, event: JobEvent) -> None:
        if not self.active:
            return
        if self.callback is not None:
            self.callback(event)
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self.active:
            self.active = False
            self._queue.put_nowait(None)

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> JobEvent | None:
        """
        Wait for the next event; None once the subscription is closed.
        """

        return await self._queue.get()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> JobEvent:
        if self._finished:
            raise StopAsyncIteration
        event = await self.get()
        if event is None:
            self._finished = True
            raise StopAsyncIteration
        if event.kind in TERMINAL_EVENT_KINDS:
            self._finished = True
        return event


class ProgressBroadcaster:
    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, job_id: str, callback: EventCallback | None = None) -> Subscription:
        subscription = Subscription(job_id, callback)
        self._subscriptions.setdefault(job_id, []).append(subscription)
        return subscription

    def unsubscribe(self, target: Subscription | str) -> int:
        """
        Leave one subscription, or every subscription for a job id.
        """

        if isinstance(target, Subscription):
            listeners = self._subscriptions.get(target.job_id, [])
            removed = [target] if target in listeners else []
        else:
            removed = list(self._subscriptions.get(target, []))

        for subscription in removed:
            subscription.close()
            self._subscriptions[subscription.job_id].remove(subscription)
        for job_id in {subscription.job_id for subscription in removed}:
            if not self._subscriptions.get(job_id):
                self._subscriptions.pop(job_id, None)
        return len(removed)

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscriptions.get(job_id, []))

    def publish(self, event: JobEvent) -> int:
        delivered = 0
        for subscription in list(self._subscriptions.get(event.job_id, [])):
            try:
                subscription.deliver(event)
            except Exception as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "event_listener_failed",
                    job_id=event.job_id,
                    kind=event.kind,
                    error=str(exc),
                )
                continue
            delivered += 1
        return delivered
