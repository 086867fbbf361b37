"""
bulkfetch/services/bulk_fetch_service.py

Service facade for starting, observing, and managing bulk fetch jobs.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import ValidationError as SchemaValidationError

from bulkfetch.config import (
    HTTPSettings,
    JobSettings,
    QueueSettings,
    ScraperSettings,
    WorkerSettings,
    get_http_settings,
    get_queue_settings,
)
from bulkfetch.domain.jobs import BrandTask, DeadLetterRecord, Job
from bulkfetch.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from bulkfetch.jobs.dead_letter import DeadLetterSink, InMemoryDeadLetterSink
from bulkfetch.jobs.events import EventCallback, ProgressBroadcaster, Subscription
from bulkfetch.jobs.queue import TaskQueue
from bulkfetch.jobs.registry import DEFAULT_CANCEL_REASON, JobRegistry
from bulkfetch.jobs.worker import BrandWorker
from bulkfetch.logging_utils import log_event
from bulkfetch.schemas.bulk_fetch import (
    BulkFetchRequest,
    CancelJobResponse,
    JobCreatedResponse,
    JobDetailsResponse,
    JobListResponse,
    JobStatsResponse,
    JobStatusResponse,
    JobSummaryResponse,
    ProductResponse,
)
from bulkfetch.scraping.brand_scraper import BrandScraper
from bulkfetch.scraping.fetcher import PageFetcher, PageSource
from bulkfetch.scraping.product_scraper import ProductScraper
from bulkfetch.scraping.store import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)


class BulkFetchService:
    """
    Inbound operations for bulk fetch jobs.

    Ownership checks live here; the registry trusts its callers.
    """

    def __init__(
        self,
        *,
        registry: JobRegistry,
        queue: TaskQueue,
        worker: BrandWorker,
        brand_scraper: BrandScraper,
        dead_letters: DeadLetterSink,
        fetcher: PageFetcher | None = None,
    ) -> None:
        self.registry = registry
        self.queue = queue
        self.worker = worker
        self.brand_scraper = brand_scraper
        self.dead_letters = dead_letters
        self._fetcher = fetcher

    @property
    def broadcaster(self) -> ProgressBroadcaster:
        return self.registry.broadcaster

    async def __aenter__(self) -> BulkFetchService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        await self.worker.start()

    async def close(self) -> None:
        await self.worker.stop()
        await self.queue.close()
        if self._fetcher is not None:
            await self._fetcher.close()

    async def start_job(self, brands: Mapping[str, str], target_id: str, owner_id: str) -> JobCreatedResponse:
        """
        Create a job and enqueue one brand task per entry, in input order.
        """

        try:
            request = BulkFetchRequest(brands=dict(brands), target_id=target_id)
        except SchemaValidationError as exc:
            raise ValidationError(str(exc)) from exc

        job = self.registry.create_job(request.brands, request.target_id, owner_id)
        for brand_index, (brand_name, brand_url) in enumerate(request.brands.items()):
            await self.queue.publish(
                self.worker.queue_name,
                BrandTask(
                    job_id=job.job_id,
                    brand_index=brand_index,
                    brand_name=brand_name,
                    brand_url=brand_url,
                    total_brands=job.total_brands,
                ),
            )
        log_event(
            logger,
            logging.INFO,
            "bulk_fetch_started",
            job_id=job.job_id,
            target_id=job.target_id,
            total_brands=job.total_brands,
        )
        return JobCreatedResponse(job_id=job.job_id, total_brands=job.total_brands, status=job.status)

    async def start_all_brands_job(self, target_id: str, owner_id: str) -> JobCreatedResponse:
        if not target_id or not target_id.strip():
            raise ValidationError("A target id is required.")
        brands = await self.brand_scraper.scrape_all_brands()
        if not brands:
            raise NotFoundError("No brands found in the brand directory.")
        return await self.start_job({brand.name: brand.url for brand in brands}, target_id, owner_id)

    def cancel_job(self, job_id: str, owner_id: str, reason: str = DEFAULT_CANCEL_REASON) -> CancelJobResponse:
        job = self._owned_job(job_id, owner_id)
        if job.is_terminal:
            raise InvalidStateError(f"Job {job_id} is already {job.status}.")
        job = self.registry.cancel_job(job_id, reason)
        return CancelJobResponse(
            job_id=job.job_id,
            status=job.status,
            reason=job.cancellation_reason or reason,
            processed_brands=job.processed_brands,
            total_brands=job.total_brands,
        )

    def get_job_status(self, job_id: str, owner_id: str) -> JobStatusResponse:
        return JobStatusResponse.from_job(self._owned_job(job_id, owner_id))

    def get_job_details(self, job_id: str, owner_id: str) -> JobDetailsResponse:
        self._owned_job(job_id, owner_id)
        details = self.registry.job_details(job_id)
        snapshot = JobStatusResponse.from_job(details["job"])
        return JobDetailsResponse(
            **snapshot.model_dump(),
            products_by_brand={
                brand_name: [ProductResponse.model_validate(product) for product in products]
                for brand_name, products in details["products_by_brand"].items()
            },
        )

    def list_jobs(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> JobListResponse:
        jobs, total = self.registry.list_jobs(owner_id=owner_id, status=status, limit=limit, offset=offset)
        return JobListResponse(
            jobs=[
                JobSummaryResponse(
                    job_id=job.job_id,
                    target_id=job.target_id,
                    status=job.status,
                    total_brands=job.total_brands,
                    processed_brands=job.processed_brands,
                    success_rate=job.success_rate,
                    total_products=len(job.products),
                    start_time=job.start_time,
                    end_time=job.end_time,
                )
                for job in jobs
            ],
            total=total,
            limit=max(0, limit),
            offset=max(0, offset),
        )

    def get_job_stats(self, owner_id: str, *, period: str = "all") -> JobStatsResponse:
        return JobStatsResponse(**self.registry.job_stats(owner_id=owner_id, period=period))

    def delete_job(self, job_id: str, owner_id: str) -> bool:
        self._owned_job(job_id, owner_id)
        return self.registry.delete_job(job_id)

    def cleanup_old_jobs(self, max_age_hours: float | None = None) -> int:
        return self.registry.cleanup_old_jobs(max_age_hours)

    def subscribe(self, job_id: str, callback: EventCallback | None = None) -> Subscription:
        return self.broadcaster.subscribe(job_id, callback)

    def unsubscribe(self, target: Subscription | str) -> int:
        return self.broadcaster.unsubscribe(target)

    def dead_letter_records(self, job_id: str | None = None) -> list[DeadLetterRecord]:
        return self.dead_letters.records(job_id=job_id)

    async def wait_until_idle(self) -> None:
        await self.queue.join()

    def _owned_job(self, job_id: str, owner_id: str) -> Job:
        job = self.registry.require(job_id)
        if job.owner_id != owner_id:
            raise ForbiddenError(f"Job {job_id} belongs to another user.")
        return job


def build_bulk_fetch_service(
    *,
    source: PageSource | None = None,
    store: KeyValueStore | None = None,
    dead_letters: DeadLetterSink | None = None,
    http_settings: HTTPSettings | None = None,
    scraper_settings: ScraperSettings | None = None,
    queue_settings: QueueSettings | None = None,
    worker_settings: WorkerSettings | None = None,
    job_settings: JobSettings | None = None,
) -> BulkFetchService:
    """
    Wire the default in-process components.

    When no page source is given, a `PageFetcher` is created and closed
    together with the service.
    """

    http_settings = http_settings or get_http_settings()
    queue_settings = queue_settings or get_queue_settings()
    store = store or InMemoryKeyValueStore()
    dead_letters = dead_letters or InMemoryDeadLetterSink()
    fetcher = PageFetcher(settings=http_settings) if source is None else None
    page_source: PageSource = source if source is not None else fetcher

    brand_scraper = BrandScraper(
        source=page_source,
        store=store,
        settings=scraper_settings,
        base_url=http_settings.base_url,
    )
    product_scraper = ProductScraper(
        source=page_source,
        settings=scraper_settings,
        base_url=http_settings.base_url,
    )
    registry = JobRegistry(store=store, broadcaster=ProgressBroadcaster(), settings=job_settings)
    queue = TaskQueue(settings=queue_settings)
    worker = BrandWorker(
        queue=queue,
        registry=registry,
        product_scraper=product_scraper,
        brand_scraper=brand_scraper,
        dead_letters=dead_letters,
        settings=worker_settings,
        queue_name=queue_settings.queue_name,
    )
    queue.add_failure_listener(
        lambda task, exc: log_event(
            logger,
            logging.ERROR,
            "job_failed",
            task_id=task.task_id,
            queue=task.queue_name,
            error=str(exc),
        )
    )
    return BulkFetchService(
        registry=registry,
        queue=queue,
        worker=worker,
        brand_scraper=brand_scraper,
        dead_letters=dead_letters,
        fetcher=fetcher,
    )
