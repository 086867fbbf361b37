from bulkfetch.schemas.bulk_fetch import (
    BulkFetchRequest,
    CancelJobResponse,
    JobCreatedResponse,
    JobDetailsResponse,
    JobListResponse,
    JobStatsResponse,
    JobStatusResponse,
    JobSummaryResponse,
)

__all__ = [
    "BulkFetchRequest",
    "CancelJobResponse",
    "JobCreatedResponse",
    "JobDetailsResponse",
    "JobListResponse",
    "JobStatsResponse",
    "JobStatusResponse",
    "JobSummaryResponse",
]
