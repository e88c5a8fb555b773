"""Pydantic models for search hits and caller-facing results."""

from typing import Literal

from pydantic import BaseModel

from shared.models.chunk import StoredPayload

SearchType = Literal["keyword", "semantic", "hybrid"]


class SearchHit(BaseModel):
    """A single chunk returned by the vector store or the hybrid retriever.

    id is the unit id ("{document_id}_chunk_{n}"), not the point uuid.
    """

    id: str
    content: str
    metadata: StoredPayload | None = None
    score: float = 0.0
    search_type: SearchType = "semantic"


class RankedResult(BaseModel):
    """A reranked hit with the link/title fields a front end needs."""

    id: str
    content: str
    score: float
    search_type: SearchType
    source: str | None = None
    title: str | None = None
    site: str | None = None
    last_modified: str | None = None
    document_viewer_url: str | None = None
    web_url: str | None = None
    section_number: str | None = None
    section_title: str | None = None
    document_language: str | None = None
    is_translation: bool = False


class SearchResponse(BaseModel):
    query: str
    results: list[RankedResult]
    total: int
