"""Pydantic models describing indexing jobs."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

JobStatus = Literal["pending", "processing", "completed", "failed"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class DocumentFailure(BaseModel):
    document_id: str
    document_name: str
    error: str


class IndexingJob(BaseModel):
    """State of one indexing run. Mutated only by the indexing service that owns it."""

    id: str
    status: JobStatus = "pending"
    site_id: str
    site_name: str = "Unknown"
    folder_path: str = "/"
    recursive: bool = False
    batch_size: int = 10
    total_documents: int = 0
    processed_documents: int = 0
    failed_documents: int = 0
    failures: list[DocumentFailure] = []
    start_time: datetime
    end_time: datetime | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
