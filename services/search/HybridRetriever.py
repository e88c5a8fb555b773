"""Hybrid retrieval: section-locator keyword matching blended with semantic search.

Queries that point at a specific section ("§ 6.3", "paragraph 4",
"article 2") first pull a broad candidate pool from the vector store and
keep the candidates that literally contain the locator. Those keyword hits
are merged with a filtered semantic search over the query augmented with
organisation, category and campus terms.
"""

import re
from typing import Any

from pydantic import BaseModel

from services.classification.DocumentClassifier import DocumentClassifier
from services.vector_store.VectorStoreService import VectorStoreService
from shared.helper.HelperConfig import HelperConfig
from shared.models.classification import Language
from shared.models.search import SearchHit

# first family with a match wins; group 1 is the number
LOCATOR_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("paragraph", re.compile(r"§\s*(\d+(?:\.\d+)*)")),
    ("section", re.compile(r"(?:paragraf|paragraph|avsnitt|section)\s*(\d+(?:\.\d+)*)", re.IGNORECASE)),
    ("article", re.compile(r"(?:artikkel|article)\s*(\d+(?:\.\d+)*)", re.IGNORECASE)),
]

CATEGORY_TERMS: dict[str, dict[str, str]] = {
    "statutes": {"norwegian": "vedtekter", "default": "statutes"},
    "local-laws": {"norwegian": "lokale lover", "default": "local laws"},
}

BROAD_POOL_FACTOR = 5
KEYWORD_MATCH_BOOST = 0.3
KEYWORD_STRUCTURED_BOOST = 0.2
KEYWORD_EXACT_SECTION_BOOST = 0.3
HYBRID_SEMANTIC_WEIGHT = 0.3


class QueryContext(BaseModel):
    query: str
    language: Language
    category: str | None = None
    region: str | None = None
    category_term: str = ""
    region_term: str = ""
    augmented_query: str


class HybridRetriever:
    def __init__(self, helper_config: HelperConfig, vector_store: VectorStoreService, classifier: DocumentClassifier):
        self.logging = helper_config.get_logger()
        self._vector_store = vector_store
        self._classifier = classifier
        self.org_name = helper_config.get_string_val("SEARCH_ORG_NAME", default="BISO")

    ##########################################
    ################ CONTEXT #################
    ##########################################

    def build_query_context(self, query: str) -> QueryContext:
        """Detects language, category and campus of a query and builds the augmented query."""
        language = self._classifier.detect_query_language(query)
        category = self._classifier.detect_query_category(query)
        region = self._classifier.detect_query_region(query)

        category_term = ""
        if category in CATEGORY_TERMS:
            terms = CATEGORY_TERMS[category]
            category_term = terms["norwegian"] if language == "norwegian" else terms["default"]
        region_term = ""
        if region:
            region_term = f"campus {region}" if language == "norwegian" else region

        augmented = " ".join(part for part in (query, self.org_name, category_term, region_term) if part).strip()
        return QueryContext(
            query=query,
            language=language,
            category=category,
            region=region,
            category_term=category_term,
            region_term=region_term,
            augmented_query=augmented,
        )

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def search(self, query: str, k: int = 5, filters: dict[str, Any] | None = None, context: QueryContext | None = None) -> list[SearchHit]:
        """
        Runs keyword and semantic retrieval and merges the results.

        Args:
            query (str): The user query.
            k (int): Maximum number of hits.
            filters (dict[str, Any] | None): Extra exact-match payload conditions. Applied to both keyword and semantic hits.
            context (QueryContext | None): A context already built for this query.

        Returns:
            list[SearchHit]: At most k hits sorted by descending score.

        Raises:
            EmbeddingError | VectorStoreError: If the semantic search fails.
        """
        context = context or self.build_query_context(query)

        final_filter: dict[str, Any] = {**(filters or {}), "is_latest": True, "is_authoritative": True}
        if context.category:
            final_filter["document_category"] = context.category

        has_locator = False
        keyword_hits: list[SearchHit] = []
        for family, pattern in LOCATOR_PATTERNS:
            matches = list(pattern.finditer(query))
            if not matches:
                continue
            has_locator = True
            self.logging.debug("Detected %s locator in query: %s", family, [m.group(0) for m in matches])
            for match in matches:
                keyword_hits.extend(await self.keyword_search(match.group(0), match.group(1), k * 2, context, final_filter))
            break

        semantic_hits = await self._vector_store.search(
            query=context.augmented_query,
            k=k * 2 if has_locator else k,
            filter=final_filter,
        )

        if has_locator and keyword_hits:
            merged = self.merge(keyword_hits, semantic_hits, k)
            self.logging.info(
                "Hybrid search: %d keyword + %d semantic = %d combined results",
                len(keyword_hits), len(semantic_hits), len(merged),
            )
            return merged

        ranked = sorted(semantic_hits, key=lambda hit: (-hit.score, hit.id))[:k]
        return [hit.model_copy(update={"search_type": "semantic"}) for hit in ranked]

    async def keyword_search(self, locator: str, number: str, limit: int, context: QueryContext, filters: dict[str, Any] | None = None) -> list[SearchHit]:
        """
        Finds chunks that literally contain a section locator.

        Args:
            locator (str): The locator as written in the query, e.g. "§ 6.3".
            number (str): Its number, e.g. "6.3".
            limit (int): Maximum number of hits.
            context (QueryContext): Detected query facts.
            filters (dict[str, Any] | None): Exact-match payload conditions a candidate must satisfy.

        Returns:
            list[SearchHit]: Boosted keyword hits. Empty if the search fails.
        """
        broad_query = " ".join(
            part for part in (f"paragraph {number} section {locator}", self.org_name, context.category_term, context.region_term) if part
        )
        try:
            candidates = await self._vector_store.search_broad(broad_query, limit * BROAD_POOL_FACTOR)
        except Exception as e:
            self.logging.error("Keyword search for '%s' failed: %s", locator, e)
            return []

        surface_forms = self._surface_forms(locator, number)
        matches = [hit for hit in candidates if self._keyword_match(hit, number, surface_forms, context.category, filters)]

        def _is_exact(hit: SearchHit) -> bool:
            return hit.metadata is not None and hit.metadata.section_number == number

        def _is_structured(hit: SearchHit) -> bool:
            return hit.metadata is not None and hit.metadata.is_structured

        matches.sort(key=lambda hit: (not _is_structured(hit), not _is_exact(hit), -hit.score))
        self.logging.debug(
            "Keyword search for '%s': %d matches out of %d candidates, %d structured",
            locator, len(matches), len(candidates), sum(1 for hit in matches if _is_structured(hit)),
        )

        boosted: list[SearchHit] = []
        for hit in matches[:limit]:
            boost = KEYWORD_MATCH_BOOST
            if _is_structured(hit):
                boost += KEYWORD_STRUCTURED_BOOST
            if _is_exact(hit):
                boost += KEYWORD_EXACT_SECTION_BOOST
            boosted.append(hit.model_copy(update={"score": min(1.0, hit.score + boost), "search_type": "keyword"}))
        return boosted

    @staticmethod
    def _surface_forms(locator: str, number: str) -> list[str]:
        return [
            locator.lower(),
            f"§{number}",
            f"§ {number}",
            f"paragraf {number}",
            f"paragraph {number}",
            f"section {number}",
            f"avsnitt {number}",
            f"{number}.",
            f" {number} ",
            f"{number}\n",
            f"{number}\t",
        ]

    @staticmethod
    def _keyword_match(hit: SearchHit, number: str, surface_forms: list[str], category: str | None, filters: dict[str, Any] | None = None) -> bool:
        metadata = hit.metadata
        if metadata is None or not metadata.is_latest or not metadata.is_authoritative:
            return False
        # candidates come from an unfiltered pool
        payload = metadata.model_dump()
        if any(payload.get(key) != value for key, value in (filters or {}).items()):
            return False
        if category and metadata.document_category != category:
            return False
        text = hit.content.lower()
        if any(form in text for form in surface_forms):
            return True
        return bool(metadata.section_number) and number in metadata.section_number

    @staticmethod
    def merge(keyword_hits: list[SearchHit], semantic_hits: list[SearchHit], k: int) -> list[SearchHit]:
        """
        Merges keyword and semantic hits by unit id.

        Hits found by both become "hybrid" with score min(1, keyword + 0.3 * semantic).
        The result depends only on the sets of hits, not on their order.
        """
        keyword_best: dict[str, SearchHit] = {}
        for hit in keyword_hits:
            current = keyword_best.get(hit.id)
            if current is None or (hit.score, hit.content) > (current.score, current.content):
                keyword_best[hit.id] = hit

        semantic_best: dict[str, SearchHit] = {}
        for hit in semantic_hits:
            current = semantic_best.get(hit.id)
            if current is None or (hit.score, hit.content) > (current.score, current.content):
                semantic_best[hit.id] = hit

        merged: list[SearchHit] = []
        for unit_id, hit in keyword_best.items():
            semantic = semantic_best.get(unit_id)
            if semantic is None:
                merged.append(hit.model_copy(update={"search_type": "keyword"}))
            else:
                score = min(1.0, hit.score + HYBRID_SEMANTIC_WEIGHT * semantic.score)
                merged.append(hit.model_copy(update={"score": score, "search_type": "hybrid"}))
        for unit_id, hit in semantic_best.items():
            if unit_id not in keyword_best:
                merged.append(hit.model_copy(update={"search_type": "semantic"}))

        merged.sort(key=lambda hit: (-hit.score, hit.id))
        return merged[:k]
