"""
bulkfetch/domain package marker.
"""

from bulkfetch.domain.catalog import Availability, Brand, BrandPage, Product, Size
from bulkfetch.domain.jobs import (
    BrandOutcome,
    BrandStatus,
    BrandTask,
    DeadLetterRecord,
    ErrorRecord,
    Job,
    JobStatus,
)

__all__ = [
    "Availability",
    "Brand",
    "BrandOutcome",
    "BrandPage",
    "BrandStatus",
    "BrandTask",
    "DeadLetterRecord",
    "ErrorRecord",
    "Job",
    "JobStatus",
    "Product",
    "Size",
]
