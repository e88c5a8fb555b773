"""Shared fixtures and in-memory fakes for the client ports."""

import logging
from datetime import datetime, timezone

import pytest

from shared.clients.rag.models.Scroll import ScrollResult
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Site, SourceDocument


@pytest.fixture
def helper_config(monkeypatch: pytest.MonkeyPatch) -> HelperConfig:
    """HelperConfig without retry delays or batch pauses."""
    monkeypatch.setenv("VECTOR_STORE_RETRY_INITIAL_DELAY", "0.0")
    monkeypatch.setenv("INDEX_BATCH_DELAY_SECONDS", "0.0")
    monkeypatch.delenv("APP_API_KEY", raising=False)
    return HelperConfig(logger=logging.getLogger("sharepoint_ai_bridge.tests"))


def _matches(payload: dict, filters: list[dict] | None) -> bool:
    for condition in filters or []:
        if payload.get(condition["key"]) != condition["match"]["value"]:
            return False
    return True


class FakeEmbedClient:
    """Embeds every text as a 4D vector derived from its length."""

    def __init__(self, fail_times: int = 0):
        self.embed_model = "fake-embed"
        self.calls: list[list[str]] = []
        self.fail_times = fail_times

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        return 4, "Cosine"

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        texts = [texts] if isinstance(texts, str) else texts
        self.calls.append(list(texts))
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("embedding backend unavailable")
        return [[float(len(t)), 1.0, 0.0, 0.0] for t in texts]


class FakeRAGClient:
    """Keeps points in a dict. Search returns every matching point with its configured score."""

    def __init__(self):
        self.points: dict[str, dict] = {}
        self.scores: dict[str, float] = {}
        self.exists = False
        self.created: list[tuple[int, str]] = []
        self.upsert_calls = 0
        self.fail_upserts = 0
        self.search_calls: list[dict] = []

    def get_collection_name(self) -> str:
        return "test_collection"

    def build_match_filters(self, match: dict) -> list[dict]:
        return [{"key": key, "match": {"value": value}} for key, value in match.items()]

    async def do_existence_check(self) -> bool:
        return self.exists

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        self.created.append((vector_size, distance))
        self.exists = True

    async def do_delete_collection(self) -> None:
        self.points.clear()
        self.exists = False

    async def do_list_collections(self) -> list[str]:
        return ["test_collection"] if self.exists else []

    async def do_upsert_points(self, points: list[dict]) -> None:
        self.upsert_calls += 1
        if self.fail_upserts > 0:
            self.fail_upserts -= 1
            raise RuntimeError("qdrant unavailable")
        for point in points:
            self.points[point["id"]] = point

    async def do_delete_points(self, point_ids: list[str]) -> None:
        for point_id in point_ids:
            self.points.pop(point_id, None)

    async def do_search(self, vector, limit, filters=None, score_threshold=None) -> list[dict]:
        self.search_calls.append({"limit": limit, "filters": filters, "score_threshold": score_threshold})
        hits = [
            {"id": point_id, "score": self.scores.get(point["payload"]["original_id"], 0.5), "payload": point["payload"]}
            for point_id, point in self.points.items()
            if _matches(point["payload"], filters)
        ]
        if score_threshold is not None:
            hits = [h for h in hits if h["score"] >= score_threshold]
        hits.sort(key=lambda h: -h["score"])
        return hits[:limit]

    async def do_scroll(self, filters, with_payload, with_vector, limit=None, offset=None) -> ScrollResult:
        matching = [
            {"id": point_id, "payload": point["payload"]}
            for point_id, point in self.points.items()
            if _matches(point["payload"], filters)
        ]
        return ScrollResult(result=matching[:limit] if limit else matching)

    async def do_scroll_all(self, filters, with_payload, with_vector, page_size=1000) -> ScrollResult:
        return await self.do_scroll(filters, with_payload, with_vector)

    async def do_count(self, filters=None) -> int:
        return sum(1 for point in self.points.values() if _matches(point["payload"], filters))


class FakeSourceClient:
    """Serves a fixed listing and fixed file contents."""

    def __init__(self, documents: list[SourceDocument] | None = None, contents: dict[str, bytes] | None = None):
        self.documents = documents or []
        self.contents = contents or {}
        self.sites = [Site(id="site-1", display_name="BISO Oslo", web_url="https://example.sharepoint.com/sites/oslo")]
        self.listing_error: Exception | None = None
        self.listing_calls: list[tuple[str, str, bool]] = []

    async def do_fetch_sites(self) -> list[Site]:
        return self.sites

    async def do_fetch_site(self, site_id: str) -> Site:
        return next(site for site in self.sites if site.id == site_id)

    async def do_fetch_documents(self, site_id: str, folder_path: str = "/", recursive: bool = False) -> list[SourceDocument]:
        self.listing_calls.append((site_id, folder_path, recursive))
        if self.listing_error:
            raise self.listing_error
        return list(self.documents)

    async def do_download_document(self, drive_id: str, document_id: str) -> bytes:
        if document_id not in self.contents:
            raise RuntimeError(f"download failed for {document_id}")
        return self.contents[document_id]


def make_document(document_id: str, name: str, folder_path: str = "/", content_type: str = "text/plain") -> SourceDocument:
    return SourceDocument(
        id=document_id,
        drive_id="drive-1",
        site_id="site-1",
        name=name,
        folder_path=folder_path,
        content_type=content_type,
        size=100,
        last_modified=datetime(2025, 1, 15, tzinfo=timezone.utc),
        web_url=f"https://example.sharepoint.com/sites/oslo/{name}",
    )


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()
