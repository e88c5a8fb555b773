"""Tests for the indexing orchestrator with in-memory ports."""

import asyncio
import logging
from unittest.mock import patch

import pytest

from conftest import FakeEmbedClient, FakeRAGClient, FakeSourceClient, make_document
from services.chunking.Chunker import Chunker
from services.classification.DocumentClassifier import DocumentClassifier
from services.indexing.IndexingService import IndexingService
from services.indexing.JobStore import InMemoryJobStore
from services.prioritization.DocumentPrioritizer import DocumentPrioritizer
from services.vector_store.VectorStoreService import VectorStoreService
from shared.exceptions.IndexingErrors import DocumentNotFoundError, UnsupportedContentTypeError
from shared.extractors.ContentExtractor import ContentExtractor
from shared.models.chunk import make_point_id

REAL_SLEEP = asyncio.sleep

STATUTES = (
    "Vedtekter for BISO Oslo\n\n"
    "§ 1 Navn\nOrganisasjonens navn er BISO Oslo, og den er en frivillig studentorganisasjon.\n\n"
    "§ 2 Formål\nOrganisasjonen skal fremme studentenes faglige og sosiale interesser på campus.\n"
)
MINUTES = "Referat fra styremøte. Styret diskuterte budsjettet for neste semester og godkjente det enstemmig."


class Harness:
    def __init__(self, helper_config, documents, contents, source_class=FakeSourceClient):
        self.source = source_class(documents, contents)
        self.rag = FakeRAGClient()
        self.embed = FakeEmbedClient()
        self.jobs = InMemoryJobStore()
        classifier = DocumentClassifier(helper_config)
        self.vector_store = VectorStoreService(helper_config, self.rag, self.embed)
        self.service = IndexingService(
            helper_config=helper_config,
            source_client=self.source,
            vector_store=self.vector_store,
            extractor=ContentExtractor(helper_config),
            classifier=classifier,
            prioritizer=DocumentPrioritizer(helper_config, classifier),
            chunker=Chunker(helper_config),
            job_store=self.jobs,
        )

    def run(self, site_id: str = "site-1", **kwargs):
        job = self.service.create_job(site_id, **kwargs)
        return asyncio.run(self.service.run_job(job.id))

    def create_and_run(self, site_id: str = "site-1", max_concurrency: int = 3, **kwargs):
        job = self.service.create_job(site_id, **kwargs)
        return asyncio.run(self.service.run_job(job.id, max_concurrency))

    def payloads(self) -> list[dict]:
        return [point["payload"] for point in self.rag.points.values()]


@pytest.fixture
def harness(helper_config) -> Harness:
    documents = [
        make_document("doc-1", "Vedtekter BISO Oslo v2.0.txt", "/Styringsdokumenter"),
        make_document("doc-2", "Referat styremøte.txt", "/Referater"),
        make_document("doc-3", "Logo.png", "/", content_type="image/png"),
    ]
    contents = {"doc-1": STATUTES.encode("utf-8"), "doc-2": MINUTES.encode("utf-8"), "doc-3": b"\x89PNG"}
    return Harness(helper_config, documents, contents)


class TestRunJob:
    def test_completed_job(self, harness) -> None:
        job = harness.run(folder_path="/", recursive=True)

        assert job.status == "completed"
        assert job.site_name == "BISO Oslo"
        assert job.total_documents == 2
        assert job.processed_documents == 2
        assert job.failed_documents == 0
        assert job.end_time is not None
        assert harness.source.listing_calls == [("site-1", "/", True)]

    def test_metadata_is_written(self, harness) -> None:
        harness.run()
        statutes = [p for p in harness.payloads() if p["document_id"] == "doc-1"]

        assert {p["section_number"] for p in statutes} >= {"1", "2"}
        sample = next(p for p in statutes if p["section_number"] == "2")
        assert sample["is_structured"]
        assert sample["site_name"] == "BISO Oslo"
        assert sample["document_category"] == "statutes"
        assert sample["document_version"] == "v2.0"
        assert sample["document_language"] == "norwegian"
        assert sample["content_type"] == "text/plain"
        assert sample["document_viewer_url"] == "http://localhost:3000/document/Vedtekter%20BISO%20Oslo%20v2.0.txt"
        assert sample["job_id"].startswith("job_")
        assert sample["original_id"] == f"doc-1_chunk_{sample['chunk_index']}"

    def test_document_failure_is_isolated(self, harness) -> None:
        del harness.source.contents["doc-2"]
        job = harness.run()

        assert job.status == "completed"
        assert job.processed_documents == 1
        assert job.failed_documents == 1
        assert job.failures[0].document_id == "doc-2"
        assert "download failed" in job.failures[0].error

    def test_listing_error_fails_job(self, harness) -> None:
        harness.source.listing_error = RuntimeError("Graph API unavailable")
        job = harness.run()

        assert job.status == "failed"
        assert job.error == "Graph API unavailable"
        assert job.end_time is not None
        assert harness.service.get_job(job.id).status == "failed"

    def test_superseded_versions_are_skipped(self, helper_config) -> None:
        documents = [
            make_document("new", "Lokale lover BISO Oslo v7.1.txt"),
            make_document("old", "Lokale lover BISO Oslo v7.0.txt"),
        ]
        contents = {"new": STATUTES.encode(), "old": STATUTES.encode()}
        harness = Harness(helper_config, documents, contents)
        job = harness.run()

        assert job.total_documents == 1
        assert {p["document_id"] for p in harness.payloads()} == {"new"}

    def test_unknown_job(self, harness) -> None:
        with pytest.raises(KeyError):
            asyncio.run(harness.service.run_job("job_missing"))

    def test_start_indexing_runs_in_background(self, harness) -> None:
        async def run():
            job_id = await harness.service.start_indexing("site-1", batch_size=1, max_concurrency=2)
            while not harness.service.get_job(job_id).is_terminal:
                await asyncio.sleep(0.01)
            return harness.service.get_job(job_id)

        job = asyncio.run(run())
        assert job.status == "completed"
        assert job.processed_documents == 2
        assert [j.id for j in harness.service.list_jobs()] == [job.id]


class TestProcessDocument:
    def test_unsupported_type_raises(self, harness) -> None:
        with pytest.raises(UnsupportedContentTypeError):
            asyncio.run(harness.service.process_document(harness.source.documents[2], "job_1"))

    def test_empty_text_writes_nothing(self, harness) -> None:
        harness.source.contents["doc-2"] = b"   \n  "
        written = asyncio.run(harness.service.process_document(harness.source.documents[1], "job_1"))
        assert written == 0
        assert harness.rag.points == {}


class TestReindex:
    def test_missing_document(self, harness) -> None:
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(harness.service.reindex_document("nope", "site-1", "drive-1"))

    def test_replaces_old_units(self, harness) -> None:
        harness.run()
        assert make_point_id("doc-1_chunk_2") in harness.rag.points

        harness.source.contents["doc-1"] = ("§ 1 Navn\nOrganisasjonens navn er BISO Oslo, og den er en frivillig studentorganisasjon.").encode()
        written = asyncio.run(harness.service.reindex_document("doc-1", "site-1", "drive-2"))

        statutes = [p for p in harness.payloads() if p["document_id"] == "doc-1"]
        assert written == 1
        assert len(statutes) == 1
        assert statutes[0]["drive_id"] == "drive-2"
        assert statutes[0]["job_id"].startswith("reindex_")
        assert harness.source.listing_calls[-1] == ("site-1", "/", True)


class TestAdmin:
    def test_stats_and_clear(self, harness) -> None:
        harness.run()
        stats = asyncio.run(harness.service.get_document_stats())
        assert stats.total_chunks == stats.total_documents == len(harness.rag.points) > 0

        asyncio.run(harness.service.clear_index())
        assert harness.rag.points == {}
        assert harness.service.list_jobs() == []


class TrackingSourceClient(FakeSourceClient):
    """Records downloads and the peak number of downloads in flight."""

    def __init__(self, documents, contents):
        super().__init__(documents, contents)
        self.active = 0
        self.peak = 0
        self.events: list[str] = []

    async def do_download_document(self, drive_id: str, document_id: str) -> bytes:
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.events.append(f"download {document_id}")
        try:
            await REAL_SLEEP(0.01)
            return await super().do_download_document(drive_id, document_id)
        finally:
            self.active -= 1


def many_documents(count: int) -> tuple[list, dict]:
    documents = [make_document(f"doc-{i}", f"Referat {i}.txt") for i in range(count)]
    contents = {f"doc-{i}": MINUTES.encode("utf-8") for i in range(count)}
    return documents, contents


class TestBatching:
    def test_batches_run_in_sequence_with_delay_between(self, helper_config) -> None:
        harness = Harness(helper_config, *many_documents(3), source_class=TrackingSourceClient)
        harness.service.batch_delay = 0.5

        async def fake_sleep(delay):
            harness.source.events.append(f"sleep {delay}")

        with patch("services.indexing.IndexingService.asyncio.sleep", side_effect=fake_sleep):
            job = harness.run(batch_size=1)

        assert job.processed_documents == 3
        assert harness.source.events == ["download doc-0", "sleep 0.5", "download doc-1", "sleep 0.5", "download doc-2"]

    def test_max_concurrency_bounds_downloads(self, helper_config) -> None:
        harness = Harness(helper_config, *many_documents(6), source_class=TrackingSourceClient)
        job = harness.create_and_run(batch_size=10, max_concurrency=2)

        assert job.processed_documents == 6
        assert harness.source.peak == 2

    def test_single_document_batches_never_overlap(self, helper_config) -> None:
        harness = Harness(helper_config, *many_documents(3), source_class=TrackingSourceClient)
        job = harness.create_and_run(batch_size=1, max_concurrency=5)

        assert job.processed_documents == 3
        assert harness.source.peak == 1


class TestJobLogging:
    def test_job_records_carry_job_id(self, harness, caplog) -> None:
        with caplog.at_level(logging.INFO):
            job = harness.run()

        job_ids = {getattr(record, "job_id", None) for record in caplog.records if record.getMessage().startswith(("Job ", "Processed document"))}
        assert job_ids == {job.id}
        assert any(record.getMessage().startswith("Processed document") for record in caplog.records)


class TestShutdown:
    def test_close_marks_running_job_failed(self, harness) -> None:
        async def run():
            blocker = asyncio.Event()

            async def blocking_listing(site_id, folder_path="/", recursive=False):
                await blocker.wait()
                return []

            harness.source.do_fetch_documents = blocking_listing
            job_id = await harness.service.start_indexing("site-1")
            await REAL_SLEEP(0.01)
            await harness.service.close()
            return harness.service.get_job(job_id)

        job = asyncio.run(run())
        assert job.status == "failed"
        assert job.error == "cancelled at shutdown"
        assert job.end_time is not None
