"""
bulkfetch/schemas/bulk_fetch.py

Request and response schemas for bulk fetch operations.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bulkfetch.domain.jobs import Job


class BulkFetchRequest(BaseModel):
    """
    Job creation request: brand name to listing URL, plus the target id.
    An empty URL means "look the brand up in the directory".
    """

    brands: dict[str, str] = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)

    @field_validator("target_id")
    @classmethod
    def _target_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("target_id must not be blank")
        return stripped

    @field_validator("brands")
    @classmethod
    def _brand_names_not_blank(cls, value: dict[str, str]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for name, url in value.items():
            stripped = name.strip()
            if not stripped:
                raise ValueError("brand names must not be blank")
            if stripped in cleaned:
                raise ValueError(f"duplicate brand name after trimming: {stripped!r}")
            cleaned[stripped] = (url or "").strip()
        return cleaned


class SizeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    size_name: str
    size_id: str | None = None
    product_id: str | None = None
    is_available: bool
    stock_quantity: int | None = None
    price: float | None = None
    discounted_price: float | None = None
    barcode: str | None = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    brand_name: str
    source_url: str | None = None
    current_price: float | None = None
    original_price: float | None = None
    is_discounted: bool = False
    currency: str
    main_image: str | None = None
    additional_images: list[str] = Field(default_factory=list)
    sizes: list[SizeResponse] = Field(default_factory=list)
    availability: str
    scraped_at: datetime


class BrandOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    brand_index: int = Field(..., ge=0)
    brand_name: str
    brand_url: str
    status: str
    products_count: int = Field(..., ge=0)
    error: str | None = None
    retry_count: int = Field(..., ge=0)
    processed_at: datetime


class ErrorRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    brand_name: str
    brand_url: str
    error: str
    error_kind: str
    retry_count: int = Field(..., ge=0)
    can_retry: bool
    timestamp: datetime


class JobCreatedResponse(BaseModel):
    job_id: str
    total_brands: int = Field(..., ge=1)
    status: str


class JobStatusResponse(BaseModel):
    """
    Complete job snapshot; safe to return mid-run.
    """

    job_id: str
    target_id: str
    owner_id: str
    status: str
    total_brands: int = Field(..., ge=0)
    processed_brands: int = Field(..., ge=0)
    successful_brands: int = Field(..., ge=0)
    failed_brands: int = Field(..., ge=0)
    success_rate: int = Field(..., ge=0, le=100)
    start_time: datetime
    end_time: datetime | None = None
    duration_ms: int | None = None
    cancellation_reason: str | None = None
    brands: list[BrandOutcomeResponse] = Field(default_factory=list)
    products: list[ProductResponse] = Field(default_factory=list)
    errors: list[ErrorRecordResponse] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: Job) -> JobStatusResponse:
        return cls(
            job_id=job.job_id,
            target_id=job.target_id,
            owner_id=job.owner_id,
            status=job.status,
            total_brands=job.total_brands,
            processed_brands=job.processed_brands,
            successful_brands=job.successful_brands,
            failed_brands=job.failed_brands,
            success_rate=job.success_rate,
            start_time=job.start_time,
            end_time=job.end_time,
            duration_ms=job.duration_ms,
            cancellation_reason=job.cancellation_reason,
            brands=[
                BrandOutcomeResponse(
                    brand_index=outcome.brand_index,
                    brand_name=outcome.brand_name,
                    brand_url=outcome.brand_url,
                    status=outcome.status,
                    products_count=len(outcome.products),
                    error=outcome.error,
                    retry_count=outcome.retry_count,
                    processed_at=outcome.processed_at,
                )
                for outcome in job.brands
            ],
            products=[ProductResponse.model_validate(product) for product in job.products],
            errors=[ErrorRecordResponse.model_validate(record) for record in job.errors],
        )


class JobDetailsResponse(JobStatusResponse):
    products_by_brand: dict[str, list[ProductResponse]] = Field(default_factory=dict)


class JobSummaryResponse(BaseModel):
    job_id: str
    target_id: str
    status: str
    total_brands: int = Field(..., ge=0)
    processed_brands: int = Field(..., ge=0)
    success_rate: int = Field(..., ge=0, le=100)
    total_products: int = Field(..., ge=0)
    start_time: datetime
    end_time: datetime | None = None


class JobListResponse(BaseModel):
    jobs: list[JobSummaryResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=0)
    offset: int = Field(..., ge=0)


class JobStatsResponse(BaseModel):
    period: str
    total_jobs: int = Field(..., ge=0)
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    total_brands: int = Field(..., ge=0)
    successful_brands: int = Field(..., ge=0)
    failed_brands: int = Field(..., ge=0)
    total_products: int = Field(..., ge=0)
    average_success_rate: int = Field(..., ge=0, le=100)


class CancelJobResponse(BaseModel):
    job_id: str
    status: str
    reason: str
    processed_brands: int = Field(..., ge=0)
    total_brands: int = Field(..., ge=0)
