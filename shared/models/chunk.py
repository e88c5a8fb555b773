"""Chunk and indexed-unit models.

Hierarchy:
  Section      : a structural header found by a structure detector.
  Chunk        : one retrieval unit cut from a document's text.
  UnitMetadata : closed provenance record stored with every chunk in the vector database.
  StoredPayload: UnitMetadata plus the storage bookkeeping fields written by the vector store.
  IndexedUnit  : what the indexing service hands to the vector store.
"""

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict

from shared.models.classification import Language

ChunkType = Literal["structured", "structured_part", "semantic"]

# uuid5 namespace for vector point ids; stable across processes and releases
POINT_NAMESPACE = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")


class Section(BaseModel):
    """A structural header. start/end delimit the header match itself."""

    number: str
    title: str = ""
    start: int
    end: int


class Chunk(BaseModel):
    content: str
    chunk_index: int
    chunk_type: ChunkType
    section_number: str | None = None
    section_title: str | None = None
    start_char: int
    end_char: int

    @property
    def is_structured(self) -> bool:
        return self.chunk_type != "semantic"


class UnitMetadata(BaseModel):
    """Provenance metadata of one indexed chunk.

    Unknown fields are rejected so that nothing outside this record leaks
    into the vector payload.
    """

    model_config = ConfigDict(extra="forbid")

    # chunk
    chunk_index: int
    chunk_type: ChunkType
    is_structured: bool
    section_number: str | None = None
    section_title: str | None = None
    start_char: int
    end_char: int

    # document identity
    document_id: str
    document_name: str
    site_id: str
    site_name: str | None = None
    drive_id: str
    content_type: str
    file_size: int = 0
    last_modified: str | None = None
    created_by: str | None = None
    job_id: str

    # links
    document_viewer_url: str | None = None
    web_url: str | None = None

    # classification
    document_language: Language = "unknown"
    document_version: str = "v0.0"
    version_major: int = 0
    version_minor: int = 0
    is_authoritative: bool = False
    is_latest: bool = False
    is_translation: bool = False
    authority_priority: int = 0
    document_category: str = "general"
    is_in_language_folder: bool = False
    language_folder: Language | None = None


class StoredPayload(UnitMetadata):
    """Payload as persisted in the vector database."""

    text: str
    original_id: str
    token_count: int = 0
    processing_time: str | None = None


class IndexedUnit(BaseModel):
    """A chunk ready for the vector store, keyed by "{document_id}_chunk_{chunk_index}"."""

    id: str
    content: str
    metadata: UnitMetadata

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}_chunk_{chunk_index}"


def make_point_id(unit_id: str) -> str:
    """Map a unit id to its deterministic vector point id.

    Args:
        unit_id (str): The unit id, e.g. "01ABC_chunk_3".

    Returns:
        str: UUID5 string, identical for identical unit ids in every run.
    """
    return str(uuid.uuid5(POINT_NAMESPACE, unit_id))
