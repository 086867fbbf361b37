"""
Brand worker: drains brand tasks, scrapes under a hard timeout, retries with
exponential backoff, and dead-letters tasks that exhaust their attempts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict

from bulkfetch.config import WorkerSettings, get_queue_settings, get_worker_settings
from bulkfetch.domain.catalog import Product
from bulkfetch.domain.jobs import BrandOutcome, BrandTask, DeadLetterRecord
from bulkfetch.errors import (
    InvalidStateError,
    NotFoundError,
    RetryExhaustedError,
    TaskTimeoutError,
    error_kind,
    is_retryable,
)
from bulkfetch.jobs.dead_letter import DeadLetterSink, InMemoryDeadLetterSink
from bulkfetch.jobs.queue import TaskQueue
from bulkfetch.jobs.registry import JobRegistry
from bulkfetch.jobs.retry import RetryPolicy, exponential_backoff
from bulkfetch.logging_utils import log_event
from bulkfetch.scraping.brand_scraper import BrandScraper
from bulkfetch.scraping.product_scraper import ProductScraper

logger = logging.getLogger(__name__)


class BrandWorker:
    """
    Consumes `BrandTask` payloads from one named queue.

    Retries happen inside the task handler, so a brand is never re-queued
    while it is being retried and sibling brands wait behind it.
    """

    def __init__(
        self,
        *,
        queue: TaskQueue,
        registry: JobRegistry,
        product_scraper: ProductScraper,
        brand_scraper: BrandScraper | None = None,
        dead_letters: DeadLetterSink | None = None,
        settings: WorkerSettings | None = None,
        queue_name: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.queue = queue
        self.registry = registry
        self.product_scraper = product_scraper
        self.brand_scraper = brand_scraper
        self.dead_letters = dead_letters or InMemoryDeadLetterSink()
        self.settings = settings or get_worker_settings()
        self.queue_name = queue_name or get_queue_settings().queue_name
        self.retry_policy = RetryPolicy(
            max_attempts=self.settings.max_retries + 1,
            backoff=exponential_backoff(
                initial_seconds=self.settings.backoff_initial_seconds,
                multiplier=self.settings.backoff_multiplier,
                max_seconds=self.settings.backoff_max_seconds,
            ),
            on_exhausted=self._dead_letter,
            on_retry_scheduled=self._on_retry_scheduled,
            sleep=sleep,
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        await self.queue.consume(self.queue_name, self.handle_task)
        self._running = True
        log_event(logger, logging.INFO, "worker_started", queue=self.queue_name)

    async def stop(self) -> None:
        if not self._running:
            return
        self.queue.stop_consuming(self.queue_name)
        self._running = False
        log_event(logger, logging.INFO, "worker_stopped", queue=self.queue_name)

    async def handle_task(self, task: BrandTask) -> BrandOutcome | None:
        """
        Run one brand task to a terminal outcome and record it.

        Returns None when the owning job is gone or already terminal.
        """

        job = self.registry.get(task.job_id)
        if job is None or job.is_terminal:
            log_event(
                logger,
                logging.INFO,
                "brand_task_skipped",
                job_id=task.job_id,
                brand=task.brand_name,
                job_status=job.status if job is not None else None,
            )
            return None

        self.registry.mark_processing(task.job_id)
        log_event(
            logger,
            logging.INFO,
            "brand_task_started",
            job_id=task.job_id,
            brand=task.brand_name,
            brand_index=task.brand_index,
            total_brands=task.total_brands,
        )

        try:
            products = await self.retry_policy.run(self._attempt, task)
        except RetryExhaustedError as exc:
            outcome = BrandOutcome(
                brand_index=task.brand_index,
                brand_name=task.brand_name,
                brand_url=task.brand_url,
                success=False,
                error=str(exc.last_error),
                error_kind=error_kind(exc),
                retry_count=exc.attempts - 1,
                can_retry=is_retryable(exc.last_error),
            )
        else:
            outcome = BrandOutcome(
                brand_index=task.brand_index,
                brand_name=task.brand_name,
                brand_url=task.brand_url,
                success=True,
                products=products,
                retry_count=task.retry_count,
            )

        accepted = self.registry.update_progress(task.job_id, outcome)
        log_event(
            logger,
            logging.INFO if outcome.success else logging.ERROR,
            "brand_task_finished",
            job_id=task.job_id,
            brand=task.brand_name,
            success=outcome.success,
            products=len(outcome.products),
            retry_count=outcome.retry_count,
            accepted=accepted,
        )
        return outcome

    async def _attempt(self, task: BrandTask) -> list[Product]:
        if self.registry.is_cancelled(task.job_id):
            raise InvalidStateError(f"Job {task.job_id} was cancelled.")

        try:
            return await asyncio.wait_for(self._scrape(task), timeout=self.settings.task_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise TaskTimeoutError(
                f"Brand {task.brand_name} exceeded {self.settings.task_timeout_seconds}s"
            ) from exc

    async def _scrape(self, task: BrandTask) -> list[Product]:
        brand_url = task.brand_url or await self._resolve_brand_url(task)
        return await self.product_scraper.scrape_products(brand_url, task.brand_name)

    async def _resolve_brand_url(self, task: BrandTask) -> str:
        if self.brand_scraper is None:
            raise NotFoundError(f"No URL for brand {task.brand_name}.")
        brand = await self.brand_scraper.find_brand(task.brand_name)
        if brand is None:
            raise NotFoundError(f"Brand {task.brand_name} is not listed in the directory.")
        return brand.url

    def _on_retry_scheduled(self, task: BrandTask, exc: BaseException, attempts_made: int, delay: float) -> None:
        task.retry_count = attempts_made
        log_event(
            logger,
            logging.WARNING,
            "brand_task_retry_scheduled",
            job_id=task.job_id,
            brand=task.brand_name,
            retry_count=task.retry_count,
            delay_seconds=delay,
            error=str(exc),
            error_kind=error_kind(exc),
        )

    async def _dead_letter(self, task: BrandTask, exc: BaseException, attempts_made: int) -> None:
        if self.registry.is_cancelled(task.job_id):
            return
        record = DeadLetterRecord(
            original_task=asdict(task),
            final_error=str(exc),
            retry_count=attempts_made - 1,
        )
        await self.dead_letters.publish(record)
        log_event(
            logger,
            logging.ERROR,
            "brand_task_dead_lettered",
            job_id=task.job_id,
            brand=task.brand_name,
            retry_count=record.retry_count,
            error=record.final_error,
            error_kind=error_kind(exc),
        )
