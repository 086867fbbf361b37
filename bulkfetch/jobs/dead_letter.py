"""
Dead-letter sinks for brand tasks that exhausted their retries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bulkfetch.domain.jobs import DeadLetterRecord


class DeadLetterSink(ABC):
    """
    Write-only destination for failed tasks. Records are never replayed.
    """

    @abstractmethod
    async def publish(self, record: DeadLetterRecord) -> None:
        """
        Persist one immutable failure record.
        """

    @abstractmethod
    def records(self, *, job_id: str | None = None) -> list[DeadLetterRecord]:
        """
        Return stored records, optionally for one job.
        """


class InMemoryDeadLetterSink(DeadLetterSink):
    def __init__(self) -> None:
        self._records: list[DeadLetterRecord] = []

    async def publish(self, record: DeadLetterRecord) -> None:
        self._records.append(record)

    def records(self, *, job_id: str | None = None) -> list[DeadLetterRecord]:
        if job_id is None:
            return list(self._records)
        return [record for record in self._records if record.original_task.get("job_id") == job_id]
