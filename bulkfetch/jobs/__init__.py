from bulkfetch.jobs.dead_letter import DeadLetterSink, InMemoryDeadLetterSink
from bulkfetch.jobs.events import (
    CancelledEvent,
    CompleteEvent,
    ErrorEvent,
    JobEvent,
    ProgressBroadcaster,
    ProgressEvent,
    Subscription,
)
from bulkfetch.jobs.queue import QueuedTask, TaskQueue
from bulkfetch.jobs.registry import JobRegistry, classify_final_status
from bulkfetch.jobs.retry import RetryPolicy, exponential_backoff, fixed_backoff
from bulkfetch.jobs.worker import BrandWorker

__all__ = [
    "BrandWorker",
    "CancelledEvent",
    "CompleteEvent",
    "DeadLetterSink",
    "ErrorEvent",
    "InMemoryDeadLetterSink",
    "JobEvent",
    "JobRegistry",
    "ProgressBroadcaster",
    "ProgressEvent",
    "QueuedTask",
    "RetryPolicy",
    "Subscription",
    "TaskQueue",
    "classify_final_status",
    "exponential_backoff",
    "fixed_backoff",
]
