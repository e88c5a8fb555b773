"""Statistics and health records reported by the vector store and the indexing service."""

from typing import Any

from pydantic import BaseModel


class ModelStats(BaseModel):
    """Embedding usage of this process. Tokens are estimated at four characters per token."""

    model: str
    vector_size: int = 0
    estimated_cost_per_1k_tokens: float = 0.0
    total_tokens_processed: int = 0
    estimated_cost: float = 0.0


class CollectionStats(BaseModel):
    count: int
    model_stats: ModelStats


class HealthStatus(BaseModel):
    healthy: bool
    details: dict[str, Any] = {}


class DocumentStats(BaseModel):
    total_documents: int
    total_chunks: int
