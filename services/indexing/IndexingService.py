"""Indexing orchestrator.

Lists a folder of the document source, filters and prioritizes the
documents, then extracts, classifies, chunks and stores them batch by
batch. Each run is tracked as an IndexingJob in the job store.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from urllib.parse import quote

from services.chunking.Chunker import Chunker
from services.classification.DocumentClassifier import CONTENT_SAMPLE_CHARS, DocumentClassifier
from services.indexing.JobStore import JobStoreInterface
from services.prioritization.DocumentPrioritizer import DocumentPrioritizer
from services.vector_store.VectorStoreService import VectorStoreService
from shared.clients.source.SourceClientInterface import SourceClientInterface
from shared.exceptions.IndexingErrors import DocumentNotFoundError, UnsupportedContentTypeError
from shared.extractors.ContentExtractor import ContentExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.models.chunk import Chunk, IndexedUnit, UnitMetadata
from shared.models.classification import Classification
from shared.models.document import SourceDocument
from shared.models.job import DocumentFailure, IndexingJob
from shared.models.stats import DocumentStats

DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_CONCURRENCY = 3


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IndexingService:
    """Runs indexing jobs from a document source into the vector store."""

    def __init__(
        self,
        helper_config: HelperConfig,
        source_client: SourceClientInterface,
        vector_store: VectorStoreService,
        extractor: ContentExtractor,
        classifier: DocumentClassifier,
        prioritizer: DocumentPrioritizer,
        chunker: Chunker,
        job_store: JobStoreInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._source = source_client
        self._vector_store = vector_store
        self._extractor = extractor
        self._classifier = classifier
        self._prioritizer = prioritizer
        self._chunker = chunker
        self._jobs = job_store

        self.app_public_url = helper_config.get_string_val("APP_PUBLIC_URL", default="http://localhost:3000")
        self.batch_delay = helper_config.get_number_val("INDEX_BATCH_DELAY_SECONDS", default=1.0)

        # strong references, otherwise the event loop may drop running jobs
        self._tasks: set[asyncio.Task] = set()

    ##########################################
    ################# JOBS ###################
    ##########################################

    def create_job(self, site_id: str, folder_path: str = "/", recursive: bool = False, batch_size: int = DEFAULT_BATCH_SIZE) -> IndexingJob:
        job = IndexingJob(
            id=f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}",
            site_id=site_id,
            folder_path=folder_path or "/",
            recursive=recursive,
            batch_size=max(1, batch_size),
            start_time=_now(),
        )
        self._jobs.put(job)
        return job

    async def start_indexing(
        self,
        site_id: str,
        folder_path: str = "/",
        recursive: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> str:
        """
        Creates a job and processes it in the background.

        Args:
            site_id (str): The site to index.
            folder_path (str): The folder to index, "/" for the library root.
            recursive (bool): Whether to include subfolders.
            batch_size (int): Documents per batch. Batches run one after another.
            max_concurrency (int): Documents processed in parallel inside a batch.

        Returns:
            str: The job id, pollable with get_job().
        """
        job = self.create_job(site_id, folder_path, recursive, batch_size)
        task = asyncio.create_task(self.run_job(job.id, max_concurrency))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.logging.info("Started indexing job %s for site %s, folder '%s' (recursive=%s)", job.id, site_id, job.folder_path, recursive)
        return job.id

    async def run_job(self, job_id: str, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> IndexingJob:
        """
        Processes a pending job to completion. Job-level errors end in status "failed".
        A cancelled job is also marked "failed" before the cancellation propagates.

        Returns:
            IndexingJob: The job in its terminal state.
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")

        log_extra = {"job_id": job.id}
        job.status = "processing"
        self._jobs.put(job)
        try:
            job.site_name = await self._resolve_site_name(job.site_id)
            await self._vector_store.initialize()

            documents = await self._source.do_fetch_documents(job.site_id, job.folder_path, job.recursive)
            supported = [d for d in documents if self._extractor.is_supported_content_type(d.content_type, d.name)]
            if len(supported) < len(documents):
                self.logging.info("Job %s: skipping %d documents with unsupported content types", job.id, len(documents) - len(supported), extra=log_extra)

            prioritized = self._prioritizer.prioritize(supported)
            job.total_documents = len(prioritized)
            self._jobs.put(job)
            self.logging.info("Job %s: indexing %d documents from '%s'", job.id, len(prioritized), job.site_name, extra=log_extra)

            for batch_start in range(0, len(prioritized), job.batch_size):
                batch = prioritized[batch_start:batch_start + job.batch_size]
                await self._process_batch(job, batch, max_concurrency)
                if batch_start + job.batch_size < len(prioritized) and self.batch_delay > 0:
                    await asyncio.sleep(self.batch_delay)

            job.status = "completed"
            self.logging.info(
                "Job %s completed: %d processed, %d failed of %d",
                job.id, job.processed_documents, job.failed_documents, job.total_documents,
                extra=log_extra,
            )
        except asyncio.CancelledError:
            job.status = "failed"
            job.error = "cancelled at shutdown"
            self.logging.warning("Job %s cancelled at shutdown", job.id, extra=log_extra)
            raise
        except Exception as e:
            job.status = "failed"
            job.error = str(e) or e.__class__.__name__
            self.logging.error("Job %s failed: %s", job.id, job.error, extra=log_extra)
        finally:
            job.end_time = _now()
            self._jobs.put(job)
        return job

    async def _process_batch(self, job: IndexingJob, batch: list[SourceDocument], max_concurrency: int) -> None:
        sem = asyncio.Semaphore(max(1, max_concurrency))

        async def _limited(document: SourceDocument) -> int:
            async with sem:
                return await self.process_document(document, job.id, site_name=job.site_name)

        results = await asyncio.gather(*[_limited(d) for d in batch], return_exceptions=True)
        for document, result in zip(batch, results):
            if isinstance(result, BaseException):
                job.failed_documents += 1
                job.failures.append(DocumentFailure(document_id=document.id, document_name=document.name, error=str(result) or result.__class__.__name__))
                self.logging.error("Job %s: failed to process '%s': %s", job.id, document.name, result, extra={"job_id": job.id})
            else:
                job.processed_documents += 1
        self._jobs.put(job)

    async def _resolve_site_name(self, site_id: str) -> str:
        try:
            for site in await self._source.do_fetch_sites():
                if site.id == site_id:
                    return site.display_name
        except Exception as e:
            self.logging.debug("Listing sites failed: %s", e)
        try:
            return (await self._source.do_fetch_site(site_id)).display_name
        except Exception as e:
            self.logging.debug("Fetching site %s failed: %s", site_id, e)
        return "Unknown"

    def get_job(self, job_id: str) -> IndexingJob | None:
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[IndexingJob]:
        return self._jobs.list()

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    async def process_document(self, document: SourceDocument, job_id: str, site_name: str | None = None) -> int:
        """
        Downloads, extracts, classifies, chunks and stores one document.

        Args:
            document (SourceDocument): The document to index.
            job_id (str): Recorded on every stored unit.
            site_name (str | None): Display name of the site, if known.

        Returns:
            int: Number of units written.

        Raises:
            UnsupportedContentTypeError: If the corrected content type has no extractor.
            ExtractionError: If text extraction fails.
            EmbeddingError | VectorStoreError: If storing fails after retries.
        """
        content_type = self._extractor.correct_content_type(document.content_type, document.name)
        if not self._extractor.is_supported_content_type(content_type, document.name):
            raise UnsupportedContentTypeError(content_type, document.content_type)

        data = await self._source.do_download_document(document.drive_id, document.id)
        # parsers are CPU bound
        text = await asyncio.to_thread(self._extractor.extract, data, content_type, document.name)
        if not text:
            self.logging.warning("No text extracted from '%s'", document.name, extra={"job_id": job_id})
            return 0

        classification = self._classifier.classify(document.name, document.folder_path, text[:CONTENT_SAMPLE_CHARS])
        chunks = self._chunker.chunk(text, {"document_name": document.name})

        units = [
            IndexedUnit(
                id=IndexedUnit.make_id(document.id, chunk.chunk_index),
                content=chunk.content,
                metadata=self._build_metadata(document, chunk, classification, content_type, job_id, site_name),
            )
            for chunk in chunks
        ]
        written = await self._vector_store.add_documents(units)
        self.logging.info("Processed document '%s' (%d chunks)", document.name, len(chunks), extra={"job_id": job_id})
        return written

    def get_document_viewer_url(self, file_name: str) -> str:
        return f"{self.app_public_url.rstrip('/')}/document/{quote(file_name)}"

    def _build_metadata(
        self,
        document: SourceDocument,
        chunk: Chunk,
        classification: Classification,
        content_type: str,
        job_id: str,
        site_name: str | None,
    ) -> UnitMetadata:
        return UnitMetadata(
            chunk_index=chunk.chunk_index,
            chunk_type=chunk.chunk_type,
            is_structured=chunk.is_structured,
            section_number=chunk.section_number,
            section_title=chunk.section_title,
            start_char=chunk.start_char,
            end_char=chunk.end_char,
            document_id=document.id,
            document_name=document.name,
            site_id=document.site_id,
            site_name=site_name or document.site_name,
            drive_id=document.drive_id,
            content_type=content_type,
            file_size=document.size,
            last_modified=document.last_modified.isoformat() if document.last_modified else None,
            created_by=document.created_by,
            job_id=job_id,
            document_viewer_url=self.get_document_viewer_url(document.name),
            web_url=document.web_url,
            document_language=classification.language,
            document_version=classification.version.raw,
            version_major=classification.version.major,
            version_minor=classification.version.minor,
            is_authoritative=classification.authority.is_authoritative,
            is_latest=classification.authority.is_latest,
            is_translation=classification.authority.is_translation,
            authority_priority=classification.authority.priority,
            document_category=classification.path.category,
            is_in_language_folder=classification.path.is_in_language_folder,
            language_folder=classification.path.language_folder,
        )

    async def reindex_document(self, document_id: str, site_id: str, drive_id: str) -> int:
        """
        Replaces the stored units of one document with freshly processed ones.

        The document is looked up in a full recursive listing of the site, so the cost grows with the site size.

        Returns:
            int: Number of units written.

        Raises:
            DocumentNotFoundError: If the listing does not contain the document.
        """
        documents = await self._source.do_fetch_documents(site_id, "/", recursive=True)
        document = next((d for d in documents if d.id == document_id), None)
        if document is None:
            raise DocumentNotFoundError(document_id)
        document = document.model_copy(update={"drive_id": drive_id})

        existing = await self._vector_store.find_units({"document_id": document_id})
        if existing:
            await self._vector_store.delete_documents([hit.id for hit in existing])
            self.logging.info("Removed %d existing units of '%s'", len(existing), document.name)

        written = await self.process_document(document, f"reindex_{int(time.time() * 1000)}")
        self.logging.info("Document %s reindexed successfully", document_id)
        return written

    ##########################################
    ################# ADMIN ##################
    ##########################################

    async def get_document_stats(self) -> DocumentStats:
        """Every unit is a separate point, so both figures report the point count."""
        stats = await self._vector_store.get_collection_stats()
        return DocumentStats(total_documents=stats.count, total_chunks=stats.count)

    async def clear_index(self) -> None:
        await self._vector_store.clear_collection()
        self._jobs.clear()
        self.logging.info("Index cleared successfully")

    async def close(self) -> None:
        """Cancels jobs still running at shutdown."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
