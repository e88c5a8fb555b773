from pydantic import BaseModel

from shared.models.document import Site
from shared.models.job import IndexingJob
from shared.models.stats import CollectionStats, DocumentStats, HealthStatus


class StatusResponse(BaseModel):
    success: bool = True


class ErrorResponse(StatusResponse):
    success: bool = False
    error: str


class IndexStartedResponse(StatusResponse):
    job_id: str
    message: str


class JobResponse(StatusResponse):
    job: IndexingJob


class JobListResponse(StatusResponse):
    jobs: list[IndexingJob]


class IndexStats(BaseModel):
    documents: DocumentStats
    collection: CollectionStats


class StatsResponse(StatusResponse):
    stats: IndexStats


class SiteListResponse(StatusResponse):
    sites: list[Site]


class ReindexResponse(StatusResponse):
    chunks: int


class HealthResponse(HealthStatus):
    version: str = "unknown"


class DocumentInfo(BaseModel):
    id: str
    name: str
    site_id: str
    site_name: str | None = None
    drive_id: str
    content_type: str
    size: int = 0
    last_modified: str | None = None
    created_by: str | None = None
    web_url: str | None = None
    document_viewer_url: str | None = None
    chunk_count: int


class DocumentMetadataResponse(StatusResponse):
    document: DocumentInfo


class DocumentChunk(BaseModel):
    id: str
    chunk_index: int
    content: str
    section_number: str | None = None
    section_title: str | None = None


class DocumentChunksResponse(StatusResponse):
    document_name: str
    chunks: list[DocumentChunk]
