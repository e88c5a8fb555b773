"""Vector store port.

Combines an embedding client and a RAG client into the operations the
indexing and search services need: embed-and-upsert, semantic and filtered
search, deletion and statistics. Every backend call is retried with
exponential backoff.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions.IndexingErrors import EmbeddingError, VectorStoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import IndexedUnit, StoredPayload, UnitMetadata, make_point_id
from shared.models.search import SearchHit
from shared.models.stats import CollectionStats, HealthStatus, ModelStats

T = TypeVar("T")

CHARS_PER_TOKEN = 4
DEFAULT_SEARCH_LIMIT = 5
MAX_BROAD_SEARCH_LIMIT = 1000
MIN_SCORE_THRESHOLD = 0.1


def estimate_tokens(text: str) -> int:
    """Character-based token estimate, rounded up."""
    return -(-len(text) // CHARS_PER_TOKEN)


class VectorStoreService:
    def __init__(self, helper_config: HelperConfig, rag_client: RAGClientInterface, embed_client: EmbedClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client

        self.max_tokens_per_request = helper_config.get_number_val("EMBED_MAX_TOKENS_PER_REQUEST", default=7000)
        self.max_tokens_per_input = helper_config.get_number_val("EMBED_MAX_TOKENS_PER_INPUT", default=2000)
        self.max_items_per_batch = helper_config.get_number_val("EMBED_MAX_ITEMS_PER_BATCH", default=64)
        self.retry_max_attempts = helper_config.get_number_val("VECTOR_STORE_RETRY_MAX_ATTEMPTS", default=3)
        self.retry_initial_delay = helper_config.get_number_val("VECTOR_STORE_RETRY_INITIAL_DELAY", default=1.0)
        self.retry_backoff_multiplier = helper_config.get_number_val("VECTOR_STORE_RETRY_BACKOFF_MULTIPLIER", default=2)

        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._stats = ModelStats(
            model=embed_client.embed_model or "unknown",
            estimated_cost_per_1k_tokens=helper_config.get_number_val("EMBED_COST_PER_1K_TOKENS", default=0.0),
        )

    ##########################################
    ################ HELPER ##################
    ##########################################

    async def _with_retry(self, operation: Callable[[], Awaitable[T]], context: str, error_class: type[Exception]) -> T:
        """
        Runs an async operation, retrying with exponential backoff.

        Args:
            operation (Callable[[], Awaitable[T]]): Zero-argument coroutine factory.
            context (str): Human-readable description used in logs and the final error.
            error_class (type[Exception]): Raised once all attempts failed.

        Raises:
            EmbeddingError | VectorStoreError: After the last failed attempt, chained to the last cause.
        """
        delay = self.retry_initial_delay
        last_error: Exception | None = None
        for attempt in range(1, self.retry_max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                last_error = e
                if attempt == self.retry_max_attempts:
                    break
                self.logging.warning("%s failed (attempt %d/%d): %s; retrying in %.1fs", context, attempt, self.retry_max_attempts, e, delay)
                await asyncio.sleep(delay)
                delay *= self.retry_backoff_multiplier
        self.logging.error("%s failed after %d attempts: %s", context, self.retry_max_attempts, last_error)
        raise error_class(f"{context} failed after {self.retry_max_attempts} attempts: {last_error}") from last_error

    def _record_tokens(self, tokens: int) -> None:
        self._stats.total_tokens_processed += tokens
        self._stats.estimated_cost = self._stats.total_tokens_processed / 1000 * self._stats.estimated_cost_per_1k_tokens

    async def _embed(self, texts: list[str], context: str) -> list[list[float]]:
        return await self._with_retry(lambda: self._embed_client.do_embed(texts), context, EmbeddingError)

    def _hit_from_point(self, point: dict, index: int, score: float | None = None) -> SearchHit:
        payload: dict = point.get("payload") or {}
        metadata: StoredPayload | None = None
        try:
            metadata = StoredPayload.model_validate(payload)
        except ValidationError as e:
            self.logging.warning("Point %s carries an unexpected payload: %s", point.get("id"), e.errors()[:1])
        return SearchHit(
            id=payload.get("original_id") or str(point.get("id") or f"result_{index}"),
            content=payload.get("text") or "",
            metadata=metadata,
            score=float(score if score is not None else point.get("score") or 0.0),
            search_type="semantic",
        )

    def _build_payload(self, unit_id: str, text: str, metadata: UnitMetadata, token_count: int) -> dict:
        return StoredPayload(
            **metadata.model_dump(),
            text=text,
            original_id=unit_id,
            token_count=token_count,
            processing_time=datetime.now(timezone.utc).isoformat(),
        ).model_dump()

    def _make_batches(self, token_counts: list[int]) -> list[list[int]]:
        """Groups item indices so no batch exceeds the item or token budget."""
        batches: list[list[int]] = []
        current: list[int] = []
        current_tokens = 0
        for index, tokens in enumerate(token_counts):
            if current and (len(current) >= self.max_items_per_batch or current_tokens + tokens > self.max_tokens_per_request):
                batches.append(current)
                current, current_tokens = [], 0
            current.append(index)
            current_tokens += tokens
        if current:
            batches.append(current)
        return batches

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def initialize(self) -> None:
        """Creates the collection with the embedding model's vector size if it does not exist yet."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            vector_size, distance = await self._with_retry(
                self._embed_client.do_fetch_embedding_vector_size, "Fetching embedding vector size", EmbeddingError
            )
            self._stats.vector_size = vector_size
            exists = await self._with_retry(self._rag_client.do_existence_check, "Checking collection", VectorStoreError)
            if not exists:
                await self._with_retry(
                    lambda: self._rag_client.do_create_collection(vector_size, distance),
                    "Creating collection",
                    VectorStoreError,
                )
                self.logging.info("Created collection '%s' (%dD, %s)", self._rag_client.get_collection_name(), vector_size, distance)
            self._initialized = True

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def add_documents(self, units: list[IndexedUnit]) -> int:
        """
        Embeds and upserts indexed units under their deterministic point ids.

        Args:
            units (list[IndexedUnit]): The units. Units with empty content are skipped.

        Returns:
            int: Number of points written.

        Raises:
            EmbeddingError: If embedding fails after all retries.
            VectorStoreError: If the upsert fails after all retries.
        """
        if not units:
            return 0
        await self.initialize()

        max_chars = self.max_tokens_per_input * CHARS_PER_TOKEN
        items: list[tuple[IndexedUnit, str, int]] = []
        for unit in units:
            text = (unit.content or "").strip()
            if not text:
                continue
            text = text[:max_chars]
            items.append((unit, text, estimate_tokens(text)))
        if not items:
            return 0

        vectors: list[list[float] | None] = [None] * len(items)
        for batch in self._make_batches([tokens for _, _, tokens in items]):
            texts = [items[i][1] for i in batch]
            embeddings = await self._embed(texts, "Generating embeddings")
            for i, embedding in zip(batch, embeddings):
                vectors[i] = embedding
            self._record_tokens(sum(items[i][2] for i in batch))

        points = [
            {
                "id": make_point_id(unit.id),
                "vector": vectors[i],
                "payload": self._build_payload(unit.id, text, unit.metadata, tokens),
            }
            for i, (unit, text, tokens) in enumerate(items)
        ]
        await self._with_retry(lambda: self._rag_client.do_upsert_points(points), "Upserting documents", VectorStoreError)
        self.logging.info("Indexed %d units into '%s'", len(points), self._rag_client.get_collection_name())
        return len(points)

    async def update_document(self, unit_id: str, content: str, metadata: UnitMetadata) -> None:
        """Re-embeds and overwrites a single unit."""
        await self.initialize()
        tokens = estimate_tokens(content)
        self._record_tokens(tokens)
        vectors = await self._embed([content], "Generating embedding for update")
        point = {
            "id": make_point_id(unit_id),
            "vector": vectors[0],
            "payload": self._build_payload(unit_id, content, metadata, tokens),
        }
        await self._with_retry(lambda: self._rag_client.do_upsert_points([point]), "Updating document", VectorStoreError)

    async def delete_documents(self, unit_ids: list[str]) -> None:
        if not unit_ids:
            return
        await self.initialize()
        point_ids = [make_point_id(unit_id) for unit_id in unit_ids]
        await self._with_retry(lambda: self._rag_client.do_delete_points(point_ids), "Deleting documents", VectorStoreError)
        self.logging.info("Deleted %d units", len(point_ids))

    async def clear_collection(self) -> None:
        """Drops the collection, resets statistics and recreates it empty."""
        await self.initialize()
        await self._with_retry(self._rag_client.do_delete_collection, "Clearing collection", VectorStoreError)
        self._initialized = False
        self._stats.total_tokens_processed = 0
        self._stats.estimated_cost = 0.0
        await self.initialize()
        self.logging.info("Collection cleared: %s", self._rag_client.get_collection_name())

    ##########################################
    ################ READS ###################
    ##########################################

    async def search(self, query: str | None = None, k: int = DEFAULT_SEARCH_LIMIT, filter: dict[str, Any] | None = None) -> list[SearchHit]:
        """
        Semantic search, or a metadata scan when no query is given.

        Args:
            query (str | None): The query text. Empty runs a filter-only scan with score 1.0.
            k (int): Maximum number of hits.
            filter (dict[str, Any] | None): Exact-match payload conditions.

        Returns:
            list[SearchHit]: Hits tagged "semantic".

        Raises:
            ValueError: If neither query nor filter is given.
        """
        await self.initialize()
        conditions = self._rag_client.build_match_filters(filter) if filter else []

        if not query:
            if not filter:
                raise ValueError("Query required for semantic search")
            page = await self._with_retry(
                lambda: self._rag_client.do_scroll(filters=conditions, with_payload=True, with_vector=False, limit=k),
                "Scrolling documents",
                VectorStoreError,
            )
            return [self._hit_from_point(point, i, score=1.0) for i, point in enumerate(page.result)]

        self._record_tokens(estimate_tokens(query))
        vectors = await self._embed([query], "Generating query embedding")
        hits = await self._with_retry(
            lambda: self._rag_client.do_search(vectors[0], limit=k, filters=conditions or None),
            "Performing search",
            VectorStoreError,
        )
        return [self._hit_from_point(hit, i) for i, hit in enumerate(hits)]

    async def search_broad(self, query: str, limit: int) -> list[SearchHit]:
        """Unfiltered semantic search with a minimum score, used as a candidate pool for keyword matching."""
        await self.initialize()
        capped = min(limit, MAX_BROAD_SEARCH_LIMIT)
        self._record_tokens(estimate_tokens(query))
        vectors = await self._embed([query], "Generating query embedding")
        hits = await self._with_retry(
            lambda: self._rag_client.do_search(vectors[0], limit=capped, score_threshold=MIN_SCORE_THRESHOLD),
            "Performing broad search",
            VectorStoreError,
        )
        return [self._hit_from_point(hit, i) for i, hit in enumerate(hits)]

    async def find_units(self, filter: dict[str, Any]) -> list[SearchHit]:
        """All units matching the filter, across every scroll page."""
        await self.initialize()
        conditions = self._rag_client.build_match_filters(filter)
        result = await self._with_retry(
            lambda: self._rag_client.do_scroll_all(filters=conditions, with_payload=True, with_vector=False),
            "Scanning documents",
            VectorStoreError,
        )
        return [self._hit_from_point(point, i, score=1.0) for i, point in enumerate(result.result)]

    async def get_collection_stats(self) -> CollectionStats:
        await self.initialize()
        count = await self._with_retry(self._rag_client.do_count, "Getting collection stats", VectorStoreError)
        return CollectionStats(count=count, model_stats=self._stats.model_copy())

    async def health_check(self) -> HealthStatus:
        """Reports backend reachability and collection size. Never raises."""
        try:
            collections, stats = await asyncio.gather(
                self._rag_client.do_list_collections(),
                self.get_collection_stats(),
            )
            return HealthStatus(
                healthy=True,
                details={
                    "collections": len(collections),
                    "document_count": stats.count,
                    "model_stats": stats.model_stats.model_dump(),
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
        except Exception as e:
            self.logging.warning("Vector store health check failed: %s", e)
            return HealthStatus(healthy=False, details={"error": str(e)})
