"""Search entry point: hybrid retrieval, reranking and mapping to caller-facing results."""

from typing import Any

from services.search.HybridRetriever import HybridRetriever
from services.search.Reranker import Reranker
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import RankedResult, SearchHit, SearchResponse


class SearchService:
    def __init__(self, helper_config: HelperConfig, retriever: HybridRetriever, reranker: Reranker) -> None:
        self.logging = helper_config.get_logger()
        self._retriever = retriever
        self._reranker = reranker

    async def search(self, query: str, k: int = 5, filters: dict[str, Any] | None = None) -> SearchResponse:
        """
        Answers a query with reranked chunks.

        Args:
            query (str): The user query.
            k (int): Maximum number of results.
            filters (dict[str, Any] | None): Extra exact-match payload conditions.

        Returns:
            SearchResponse: The results, best first.
        """
        context = self._retriever.build_query_context(query)
        hits = await self._retriever.search(query, k=k, filters=filters, context=context)
        reranked = self._reranker.rerank(hits, context.augmented_query)
        results = [self.to_ranked_result(hit) for hit in reranked]
        self.logging.info("Search '%s' (%s): %d results", query, context.language, len(results))
        return SearchResponse(query=query, results=results, total=len(results))

    @staticmethod
    def to_ranked_result(hit: SearchHit) -> RankedResult:
        metadata = hit.metadata
        if metadata is None:
            return RankedResult(id=hit.id, content=hit.content, score=hit.score, search_type=hit.search_type)
        return RankedResult(
            id=hit.id,
            content=hit.content,
            score=hit.score,
            search_type=hit.search_type,
            source=metadata.document_viewer_url or metadata.web_url,
            title=metadata.document_name,
            site=metadata.site_name,
            last_modified=metadata.last_modified,
            document_viewer_url=metadata.document_viewer_url,
            web_url=metadata.web_url,
            section_number=metadata.section_number,
            section_title=metadata.section_title,
            document_language=metadata.document_language,
            is_translation=metadata.is_translation,
        )
