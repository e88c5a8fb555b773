"""Builders for search hits used by the retrieval and reranking tests."""

from shared.models.chunk import StoredPayload
from shared.models.search import SearchHit


def make_hit(unit_id: str, content: str, score: float, search_type: str = "semantic", **overrides) -> SearchHit:
    document_id = unit_id.split("_chunk_")[0]
    fields = dict(
        chunk_index=0,
        chunk_type="semantic",
        is_structured=False,
        start_char=0,
        end_char=len(content),
        document_id=document_id,
        document_name=f"{document_id}.pdf",
        site_id="site-1",
        site_name="BISO Oslo",
        drive_id="drive-1",
        content_type="application/pdf",
        job_id="job_1",
        document_language="norwegian",
        is_latest=True,
        is_authoritative=True,
        document_category="statutes",
        text=content,
        original_id=unit_id,
    )
    fields.update(overrides)
    return SearchHit(id=unit_id, content=content, score=score, search_type=search_type, metadata=StoredPayload(**fields))
