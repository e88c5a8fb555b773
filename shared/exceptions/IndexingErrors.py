"""Error taxonomy shared by the ingestion and search pipeline.

Per-document errors (unsupported type, extraction) are caught by the
indexing service and recorded on the job. Embedding and vector store errors
are raised after the retry budget is exhausted.
"""


class IndexingError(Exception):
    """Base class for all pipeline errors."""


class UnsupportedContentTypeError(IndexingError):
    """The document's content type cannot be turned into text."""

    def __init__(self, content_type: str, original_content_type: str | None = None):
        self.content_type = content_type
        self.original_content_type = original_content_type
        detail = f" (original: {original_content_type})" if original_content_type and original_content_type != content_type else ""
        super().__init__(f"Unsupported content type: {content_type}{detail}")


class ExtractionError(IndexingError):
    """The text extractor failed on a supported document."""


class EmbeddingError(IndexingError):
    """The embedding provider failed after all retries."""


class VectorStoreError(IndexingError):
    """The vector database failed after all retries."""


class DocumentNotFoundError(IndexingError):
    """A document could not be found in a fresh repository listing."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")
