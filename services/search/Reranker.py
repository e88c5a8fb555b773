"""Rule-based reranking of retrieved chunks.

Adds structure, language, authority, title, length and recency terms to
each hit's retrieval score. Constants keep keyword evidence above
structure, structure above authority and authority above recency.
"""

from datetime import datetime, timezone
from typing import Callable

from services.classification.DocumentClassifier import DocumentClassifier
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import StoredPayload
from shared.models.classification import Language
from shared.models.search import SearchHit

STRUCTURED_BONUS = 0.2

NORWEGIAN_MATCHING_QUERY_BONUS = 0.3
NORWEGIAN_BONUS = 0.25
ENGLISH_MATCHING_QUERY_BONUS = 0.2
MIXED_BONUS = 0.15

AUTHORITATIVE_BONUS = 0.2
LATEST_BONUS = 0.15
TRANSLATION_PENALTY = -0.1
MAX_PRIORITY_BONUS = 0.3
PRIORITY_DIVISOR = 30000

TITLE_MATCH_BONUS = 0.15

SHORT_CONTENT_CHARS = 100
SHORT_CONTENT_PENALTY = -0.1
LONG_CONTENT_CHARS = 3000
LONG_CONTENT_PENALTY = -0.05
IDEAL_CONTENT_RANGE = (500, 1500)
IDEAL_CONTENT_BONUS = 0.1

RECENT_BONUS = 0.05         # modified within a year
SEMI_RECENT_BONUS = 0.02    # within three years
DAYS_PER_YEAR = 365


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class Reranker:
    def __init__(self, helper_config: HelperConfig, classifier: DocumentClassifier, clock: Callable[[], datetime] | None = None):
        self.logging = helper_config.get_logger()
        self._classifier = classifier
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def rerank(self, results: list[SearchHit], query: str) -> list[SearchHit]:
        """
        Rescores and sorts hits.

        Args:
            results (list[SearchHit]): Retrieved hits.
            query (str): The (augmented) query.

        Returns:
            list[SearchHit]: The same hits with final scores, highest first. Ties keep their input order.
        """
        query_language = self._classifier.detect_query_language(query)
        query_lower = (query or "").lower()
        now = self._clock()

        rescored = [
            hit.model_copy(update={"score": hit.score + self.score_terms(hit, query_lower, query_language, now)})
            for hit in results
        ]
        return sorted(rescored, key=lambda hit: -hit.score)

    def score_terms(self, hit: SearchHit, query_lower: str, query_language: Language, now: datetime) -> float:
        metadata = hit.metadata
        score = self._length_score(hit.content or "")
        if metadata is None:
            return score
        score += STRUCTURED_BONUS if metadata.is_structured else 0.0
        score += self._language_score(metadata, query_language)
        score += self._authority_score(metadata)
        if metadata.section_title and metadata.section_title.lower() in query_lower:
            score += TITLE_MATCH_BONUS
        score += self._recency_score(metadata.last_modified, now)
        return score

    @staticmethod
    def _language_score(metadata: StoredPayload, query_language: Language) -> float:
        if metadata.document_language == "norwegian":
            return NORWEGIAN_MATCHING_QUERY_BONUS if query_language == "norwegian" else NORWEGIAN_BONUS
        if metadata.document_language == "english" and query_language == "english":
            return ENGLISH_MATCHING_QUERY_BONUS
        if metadata.document_language == "mixed":
            return MIXED_BONUS
        return 0.0

    @staticmethod
    def _authority_score(metadata: StoredPayload) -> float:
        score = 0.0
        if metadata.is_authoritative:
            score += AUTHORITATIVE_BONUS
        if metadata.is_latest:
            score += LATEST_BONUS
        if metadata.is_translation:
            score += TRANSLATION_PENALTY
        score += min(MAX_PRIORITY_BONUS, max(metadata.authority_priority, 0) / PRIORITY_DIVISOR)
        return score

    @staticmethod
    def _length_score(content: str) -> float:
        length = len(content)
        if length < SHORT_CONTENT_CHARS:
            return SHORT_CONTENT_PENALTY
        if length > LONG_CONTENT_CHARS:
            return LONG_CONTENT_PENALTY
        if IDEAL_CONTENT_RANGE[0] <= length <= IDEAL_CONTENT_RANGE[1]:
            return IDEAL_CONTENT_BONUS
        return 0.0

    @staticmethod
    def _recency_score(last_modified: str | None, now: datetime) -> float:
        modified = _parse_timestamp(last_modified)
        if modified is None:
            return 0.0
        years = (now - modified).total_seconds() / (86400 * DAYS_PER_YEAR)
        if years < 1:
            return RECENT_BONUS
        if years < 3:
            return SEMI_RECENT_BONUS
        return 0.0
