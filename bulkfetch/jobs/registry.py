"""
Job registry: creation, aggregate progress, final status, and housekeeping.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from bulkfetch.config import JobSettings, get_job_settings
from bulkfetch.domain.catalog import Product, utc_now
from bulkfetch.domain.jobs import BrandOutcome, ErrorRecord, Job, JobStatus
from bulkfetch.errors import InvalidStateError, NotFoundError, ValidationError
from bulkfetch.jobs.events import CancelledEvent, CompleteEvent, ErrorEvent, ProgressBroadcaster, ProgressEvent
from bulkfetch.logging_utils import log_event
from bulkfetch.scraping.store import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

JOB_KEY_PREFIX = "job:"
DEFAULT_CANCEL_REASON = "User requested cancellation"
STATS_PERIODS: dict[str, timedelta | None] = {
    "1d": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}


def classify_final_status(successful_brands: int, processed_brands: int) -> str:
    """
    Three-way outcome: no successes fails, under half is partial, else complete.
    """

    if processed_brands <= 0 or successful_brands <= 0:
        return JobStatus.FAILED
    if successful_brands / processed_brands < 0.5:
        return JobStatus.COMPLETED_WITH_ERRORS
    return JobStatus.COMPLETED


class JobRegistry:
    """
    Owns every job record and is the only writer of job state.

    Each accepted brand outcome is broadcast as a progress or error event,
    and the last one also produces the completion event, so listeners see
    events in the order outcomes were recorded.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore | None = None,
        broadcaster: ProgressBroadcaster | None = None,
        settings: JobSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store or InMemoryKeyValueStore()
        self.broadcaster = broadcaster or ProgressBroadcaster()
        self.settings = settings or get_job_settings()
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    def create_job(self, brands: Mapping[str, str], target_id: str, owner_id: str) -> Job:
        if not brands:
            raise ValidationError("At least one brand is required.")
        if not target_id or not str(target_id).strip():
            raise ValidationError("A target id is required.")
        if any(not str(name).strip() for name in brands):
            raise ValidationError("Brand names must not be blank.")

        job = Job(
            job_id=self._id_factory(),
            target_id=str(target_id).strip(),
            owner_id=owner_id,
            total_brands=len(brands),
            start_time=self._clock(),
        )
        self._save(job)
        log_event(
            logger,
            logging.INFO,
            "job_created",
            job_id=job.job_id,
            target_id=job.target_id,
            owner_id=owner_id,
            total_brands=job.total_brands,
        )
        return job

    def get(self, job_id: str) -> Job | None:
        return self.store.get(self._key(job_id))

    def require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found.")
        return job

    def is_cancelled(self, job_id: str) -> bool:
        job = self.get(job_id)
        return job is not None and job.status == JobStatus.CANCELLED

    def mark_processing(self, job_id: str) -> bool:
        job = self.get(job_id)
        if job is None or job.status != JobStatus.QUEUED:
            return False
        job.status = JobStatus.PROCESSING
        job.last_updated = self._clock()
        self._save(job)
        return True

    def update_progress(self, job_id: str, outcome: BrandOutcome) -> bool:
        """
        Record one terminal brand outcome.

        Returns False, leaving the job untouched, when the job is unknown,
        terminal (including cancelled), or already has all its outcomes.
        """

        job = self.get(job_id)
        if job is None or job.is_terminal or job.processed_brands >= job.total_brands:
            log_event(
                logger,
                logging.INFO,
                "brand_result_rejected",
                job_id=job_id,
                brand=outcome.brand_name,
                status=job.status if job is not None else None,
            )
            return False

        job.brands.append(outcome)
        job.processed_brands += 1
        if outcome.success:
            job.successful_brands += 1
            job.products.extend(outcome.products)
        else:
            job.failed_brands += 1
            job.errors.append(
                ErrorRecord(
                    brand_name=outcome.brand_name,
                    brand_url=outcome.brand_url,
                    error=outcome.error or "",
                    error_kind=outcome.error_kind or "unknown",
                    retry_count=outcome.retry_count,
                    can_retry=outcome.can_retry,
                    timestamp=outcome.processed_at,
                )
            )
        job.success_rate = round(job.successful_brands / job.processed_brands * 100)
        if job.status == JobStatus.QUEUED:
            job.status = JobStatus.PROCESSING
        job.last_updated = self._clock()

        finished = job.processed_brands == job.total_brands
        if finished:
            job.status = classify_final_status(job.successful_brands, job.processed_brands)
            job.end_time = self._clock()
        self._save(job)

        if outcome.success:
            self.broadcaster.publish(
                ProgressEvent(
                    job_id=job_id,
                    brand_index=outcome.brand_index,
                    brand_name=outcome.brand_name,
                    total_brands=job.total_brands,
                    processed_brands=job.processed_brands,
                    status=outcome.status,
                    products=list(outcome.products),
                )
            )
        else:
            self.broadcaster.publish(
                ErrorEvent(
                    job_id=job_id,
                    brand_index=outcome.brand_index,
                    brand_name=outcome.brand_name,
                    total_brands=job.total_brands,
                    processed_brands=job.processed_brands,
                    error=outcome.error or "",
                    error_kind=outcome.error_kind or "unknown",
                )
            )

        if finished:
            self._finalize(job)
        return True

    def cancel_job(self, job_id: str, reason: str = DEFAULT_CANCEL_REASON) -> Job:
        job = self.require(job_id)
        if job.is_terminal:
            raise InvalidStateError(f"Job {job_id} is already {job.status}.")

        job.status = JobStatus.CANCELLED
        job.cancellation_reason = reason
        job.end_time = self._clock()
        job.last_updated = job.end_time
        self._save(job)
        log_event(
            logger,
            logging.INFO,
            "job_cancelled",
            job_id=job_id,
            reason=reason,
            processed_brands=job.processed_brands,
            total_brands=job.total_brands,
        )
        self.broadcaster.publish(
            CancelledEvent(
                job_id=job_id,
                reason=reason,
                processed_brands=job.processed_brands,
                total_brands=job.total_brands,
            )
        )
        return job

    def list_jobs(
        self,
        *,
        owner_id: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """
        Return one page of jobs (newest first) and the total match count.
        """

        if status is not None and status not in JobStatus.ALL:
            raise ValidationError(f"Unknown job status: {status}")
        jobs = [
            job
            for job in self._all_jobs()
            if (owner_id is None or job.owner_id == owner_id) and (status is None or job.status == status)
        ]
        jobs.sort(key=lambda job: job.start_time, reverse=True)
        offset = max(0, offset)
        return jobs[offset : offset + max(0, limit)], len(jobs)

    def job_details(self, job_id: str) -> dict[str, Any]:
        job = self.require(job_id)
        products_by_brand: dict[str, list[Product]] = {}
        for product in job.products:
            products_by_brand.setdefault(product.brand_name, []).append(product)
        return {"job": job, "products_by_brand": products_by_brand}

    def job_stats(self, *, owner_id: str | None = None, period: str = "all") -> dict[str, Any]:
        if period not in STATS_PERIODS:
            raise ValidationError(f"Unknown stats period: {period}")
        window = STATS_PERIODS[period]
        since = self._clock() - window if window is not None else None

        jobs = [
            job
            for job in self._all_jobs()
            if (owner_id is None or job.owner_id == owner_id) and (since is None or job.start_time >= since)
        ]
        status_breakdown = {status: 0 for status in sorted(JobStatus.ALL)}
        for job in jobs:
            status_breakdown[job.status] += 1

        processed = [job for job in jobs if job.processed_brands > 0]
        return {
            "period": period,
            "total_jobs": len(jobs),
            "status_breakdown": status_breakdown,
            "total_brands": sum(job.total_brands for job in jobs),
            "successful_brands": sum(job.successful_brands for job in jobs),
            "failed_brands": sum(job.failed_brands for job in jobs),
            "total_products": sum(len(job.products) for job in jobs),
            "average_success_rate": (
                round(sum(job.success_rate for job in processed) / len(processed)) if processed else 0
            ),
        }

    def delete_job(self, job_id: str) -> bool:
        job = self.require(job_id)
        if not job.is_terminal:
            raise InvalidStateError(f"Job {job_id} is still {job.status}; cancel it first.")
        return self.store.delete(self._key(job_id))

    def cleanup_old_jobs(self, max_age_hours: float | None = None) -> int:
        """
        Delete terminal jobs that ended more than `max_age_hours` ago.
        """

        hours = self.settings.retention_hours if max_age_hours is None else max_age_hours
        cutoff = self._clock() - timedelta(hours=hours)
        removed = 0
        for job in self._all_jobs():
            finished_at = job.end_time or job.start_time
            if job.is_terminal and finished_at < cutoff:
                removed += int(self.store.delete(self._key(job.job_id)))
        if removed:
            log_event(logger, logging.INFO, "jobs_cleaned_up", removed=removed, max_age_hours=hours)
        return removed

    def _finalize(self, job: Job) -> None:
        log_event(
            logger,
            logging.INFO,
            "job_finalized",
            job_id=job.job_id,
            status=job.status,
            successful_brands=job.successful_brands,
            failed_brands=job.failed_brands,
            success_rate=job.success_rate,
            duration_ms=job.duration_ms,
        )
        self.broadcaster.publish(
            CompleteEvent(
                job_id=job.job_id,
                status=job.status,
                total_brands=job.total_brands,
                successful_brands=job.successful_brands,
                failed_brands=job.failed_brands,
                total_products=len(job.products),
                success_rate=job.success_rate,
                duration_ms=job.duration_ms,
                has_errors=job.failed_brands > 0,
            )
        )

    def _all_jobs(self) -> list[Job]:
        return [job for _, job in self.store.items(JOB_KEY_PREFIX)]

    def _save(self, job: Job) -> None:
        self.store.set(self._key(job.job_id), job)

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{JOB_KEY_PREFIX}{job_id}"
