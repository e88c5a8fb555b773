from typing import Any

from pydantic import BaseModel, Field


class IndexRequest(BaseModel):
    site_id: str = Field(min_length=1)
    folder_path: str = "/"
    recursive: bool = False
    batch_size: int = Field(default=10, ge=1, le=100)
    max_concurrency: int = Field(default=3, ge=1, le=20)


class ReindexRequest(BaseModel):
    document_id: str = Field(min_length=1)
    site_id: str = Field(min_length=1)
    drive_id: str = Field(min_length=1)


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    k: int = Field(default=5, ge=1, le=50)
    filters: dict[str, Any] | None = None
