"""
tests/test_brand_worker.py

Brand task handling: success, timeouts, permanent errors, cancellation, and
dead-lettering.
"""

from __future__ import annotations

import asyncio

from conftest import BASE_URL, FakePageSource, detail_page, listing_page, product_card

from bulkfetch.config import QueueSettings, ScraperSettings, WorkerSettings
from bulkfetch.domain.jobs import BrandTask, JobStatus
from bulkfetch.errors import NetworkError
from bulkfetch.jobs.dead_letter import InMemoryDeadLetterSink
from bulkfetch.jobs.queue import TaskQueue
from bulkfetch.jobs.registry import JobRegistry
from bulkfetch.jobs.worker import BrandWorker
from bulkfetch.scraping.brand_scraper import BrandScraper
from bulkfetch.scraping.product_scraper import ProductScraper
from bulkfetch.scraping.store import InMemoryKeyValueStore

NIKE_URL = f"{BASE_URL}/brand/nike-21"


def _nike_pages() -> dict[str, object]:
    return {
        NIKE_URL: listing_page(
            product_card("Air", "/product/air-1", price="120"),
            product_card("Max", "/product/max-2", price="140"),
        ),
        f"{BASE_URL}/product/air-1": detail_page(),
        f"{BASE_URL}/product/max-2": detail_page(),
    }


class _Harness:
    def __init__(self, source: FakePageSource, settings: WorkerSettings, sleep=None) -> None:
        scraper_settings = ScraperSettings(page_delay_seconds=0.0, max_consecutive_page_failures=1)
        self.source = source
        self.registry = JobRegistry()
        self.dead_letters = InMemoryDeadLetterSink()
        self.worker = BrandWorker(
            queue=TaskQueue(settings=QueueSettings(task_delay_seconds=0.0)),
            registry=self.registry,
            product_scraper=ProductScraper(source=source, settings=scraper_settings, base_url=BASE_URL),
            brand_scraper=BrandScraper(
                source=source,
                store=InMemoryKeyValueStore(),
                settings=scraper_settings,
                base_url=BASE_URL,
            ),
            dead_letters=self.dead_letters,
            settings=settings,
            **({"sleep": sleep} if sleep is not None else {}),
        )

    def task_for(self, brand_name: str, brand_url: str) -> BrandTask:
        job = self.registry.create_job({brand_name: brand_url or "pending"}, "S1", "U1")
        return BrandTask(
            job_id=job.job_id,
            brand_index=0,
            brand_name=brand_name,
            brand_url=brand_url,
            total_brands=1,
        )


def test_successful_brand_updates_job(worker_settings: WorkerSettings) -> None:
    harness = _Harness(FakePageSource(_nike_pages()), worker_settings)
    task = harness.task_for("Nike", NIKE_URL)

    outcome = asyncio.run(harness.worker.handle_task(task))

    job = harness.registry.get(task.job_id)
    assert outcome.success is True
    assert len(outcome.products) == 2
    assert job.status == JobStatus.COMPLETED
    assert job.success_rate == 100
    assert harness.dead_letters.records() == []


def test_transient_failure_recovers_and_counts_retries(worker_settings: WorkerSettings) -> None:
    pages = _nike_pages()
    listing = pages[NIKE_URL]
    pages[NIKE_URL] = [NetworkError("reset"), listing]
    harness = _Harness(FakePageSource(pages), worker_settings)
    task = harness.task_for("Nike", NIKE_URL)

    outcome = asyncio.run(harness.worker.handle_task(task))

    assert outcome.success is True
    assert outcome.retry_count == 1


def test_timeouts_exhaust_retries_and_dead_letter_once() -> None:
    source = FakePageSource(_nike_pages())
    source.delays[NIKE_URL] = 1.0
    settings = WorkerSettings(
        task_timeout_seconds=0.05,
        max_retries=2,
        backoff_initial_seconds=0.0,
        backoff_max_seconds=0.0,
    )
    harness = _Harness(source, settings)
    task = harness.task_for("Nike", NIKE_URL)

    outcome = asyncio.run(harness.worker.handle_task(task))

    job = harness.registry.get(task.job_id)
    records = harness.dead_letters.records(job_id=task.job_id)
    assert outcome.success is False
    assert outcome.error_kind == "timeout"
    assert outcome.retry_count == 2
    assert outcome.can_retry is True
    assert source.count(NIKE_URL) == 3
    assert len(records) == 1
    assert records[0].retry_count == 2
    assert records[0].original_task["brand_name"] == "Nike"
    assert job.failed_brands == 1
    assert job.status == JobStatus.FAILED
    assert job.errors[0].error_kind == "timeout"


def test_permanent_http_error_is_not_retried(worker_settings: WorkerSettings) -> None:
    source = FakePageSource()
    harness = _Harness(source, worker_settings)
    task = harness.task_for("Ghost", f"{BASE_URL}/brand/ghost-404")

    outcome = asyncio.run(harness.worker.handle_task(task))

    assert outcome.success is False
    assert outcome.error_kind == "http_status"
    assert outcome.retry_count == 0
    assert outcome.can_retry is False
    assert len(harness.dead_letters.records()) == 1


def test_cancelled_job_is_skipped(worker_settings: WorkerSettings) -> None:
    source = FakePageSource(_nike_pages())
    harness = _Harness(source, worker_settings)
    task = harness.task_for("Nike", NIKE_URL)
    harness.registry.cancel_job(task.job_id)

    outcome = asyncio.run(harness.worker.handle_task(task))

    assert outcome is None
    assert source.calls == []
    assert harness.registry.get(task.job_id).status == JobStatus.CANCELLED


def test_cancellation_during_backoff_stops_retries_without_dead_letter(worker_settings: WorkerSettings) -> None:
    pages = _nike_pages()
    pages[NIKE_URL] = NetworkError("reset")
    source = FakePageSource(pages)
    harness: _Harness | None = None

    async def cancelling_sleep(seconds: float) -> None:
        harness.registry.cancel_job(task.job_id)

    harness = _Harness(source, worker_settings, sleep=cancelling_sleep)
    task = harness.task_for("Nike", NIKE_URL)

    asyncio.run(harness.worker.handle_task(task))

    job = harness.registry.get(task.job_id)
    assert job.status == JobStatus.CANCELLED
    assert job.processed_brands == 0
    assert harness.dead_letters.records() == []


def test_missing_url_is_resolved_from_brand_directory(worker_settings: WorkerSettings) -> None:
    pages = _nike_pages()
    pages[f"{BASE_URL}/brands"] = '<html><body><a href="/brand/nike-21">Nike</a></body></html>'
    harness = _Harness(FakePageSource(pages), worker_settings)
    task = harness.task_for("Nike", "")

    outcome = asyncio.run(harness.worker.handle_task(task))

    assert outcome.success is True
    assert len(outcome.products) == 2


def test_slow_directory_lookup_counts_against_task_timeout() -> None:
    pages = _nike_pages()
    pages[f"{BASE_URL}/brands"] = '<html><body><a href="/brand/nike-21">Nike</a></body></html>'
    source = FakePageSource(pages)
    source.delays[f"{BASE_URL}/brands"] = 1.0
    settings = WorkerSettings(
        task_timeout_seconds=0.05,
        max_retries=0,
        backoff_initial_seconds=0.0,
        backoff_max_seconds=0.0,
    )
    harness = _Harness(source, settings)
    task = harness.task_for("Nike", "")

    outcome = asyncio.run(harness.worker.handle_task(task))

    assert outcome.success is False
    assert outcome.error_kind == "timeout"
    assert source.count(NIKE_URL) == 0
    assert harness.registry.get(task.job_id).status == JobStatus.FAILED


def test_start_and_stop_register_consumer(worker_settings: WorkerSettings) -> None:
    harness = _Harness(FakePageSource(), worker_settings)

    async def scenario() -> tuple[bool, bool, bool]:
        await harness.worker.start()
        started = harness.worker.is_running
        has_consumer = harness.worker.queue.status(harness.worker.queue_name)["has_consumer"]
        await harness.worker.stop()
        return started, has_consumer, harness.worker.is_running

    assert asyncio.run(scenario()) == (True, True, False)
