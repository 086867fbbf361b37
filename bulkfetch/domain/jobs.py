"""
bulkfetch/domain/jobs.py

Job, task, and outcome records for bulk fetch orchestration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bulkfetch.domain.catalog import Product, utc_now


class JobStatus:
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    CANCELLED = "cancelled"

    TERMINAL = frozenset({COMPLETED, COMPLETED_WITH_ERRORS, FAILED, CANCELLED})
    ALL = frozenset({QUEUED, PROCESSING, COMPLETED, COMPLETED_WITH_ERRORS, FAILED, CANCELLED})


class BrandStatus:
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BrandTask:
    """
    Unit of work: scrape one brand's full catalog for one job.
    """

    job_id: str
    brand_index: int
    brand_name: str
    brand_url: str
    total_brands: int
    retry_count: int = 0
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class BrandOutcome:
    """
    Terminal result for one brand task.
    """

    brand_index: int
    brand_name: str
    brand_url: str
    success: bool
    products: list[Product] = field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    retry_count: int = 0
    can_retry: bool = False
    processed_at: datetime = field(default_factory=utc_now)

    @property
    def status(self) -> str:
        return BrandStatus.COMPLETED if self.success else BrandStatus.FAILED


@dataclass(frozen=True)
class ErrorRecord:
    brand_name: str
    brand_url: str
    error: str
    error_kind: str
    retry_count: int
    can_retry: bool
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class DeadLetterRecord:
    """
    Immutable record of a brand task that exhausted its retries.
    """

    original_task: dict[str, Any]
    final_error: str
    retry_count: int
    failed_at: datetime = field(default_factory=utc_now)


@dataclass
class Job:
    """
    Aggregate state for one bulk fetch run.

    `processed_brands == successful_brands + failed_brands` holds after every
    mutation made through the registry.
    """

    job_id: str
    target_id: str
    owner_id: str
    total_brands: int
    status: str = JobStatus.QUEUED
    processed_brands: int = 0
    successful_brands: int = 0
    failed_brands: int = 0
    success_rate: int = 0
    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    last_updated: datetime | None = None
    cancellation_reason: str | None = None
    brands: list[BrandOutcome] = field(default_factory=list)
    products: list[Product] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL

    @property
    def duration_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)
