"""Registry of indexing jobs.

The indexing service only talks to JobStoreInterface, so a persistent
backend can replace the in-memory default without touching job processing.
"""

from abc import ABC, abstractmethod

from shared.models.job import IndexingJob


class JobStoreInterface(ABC):
    @abstractmethod
    def get(self, job_id: str) -> IndexingJob | None:
        pass

    @abstractmethod
    def put(self, job: IndexingJob) -> None:
        """Inserts or replaces the job with the same id."""
        pass

    @abstractmethod
    def list(self) -> list[IndexingJob]:
        """All jobs, oldest first."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryJobStore(JobStoreInterface):
    """Process-local store. History is lost on restart."""

    def __init__(self) -> None:
        self._jobs: dict[str, IndexingJob] = {}

    def get(self, job_id: str) -> IndexingJob | None:
        return self._jobs.get(job_id)

    def put(self, job: IndexingJob) -> None:
        self._jobs[job.id] = job

    def list(self) -> list[IndexingJob]:
        return sorted(self._jobs.values(), key=lambda job: job.start_time)

    def clear(self) -> None:
        self._jobs.clear()
