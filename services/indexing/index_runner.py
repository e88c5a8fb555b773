"""Indexing runner entry point.

Indexes one SharePoint site (or a folder of it) into the vector database
without starting the API server.

Usage:
    python -m services.indexing.index_runner <site_id> [--folder /Dokumenter] [--recursive]
    python -m services.indexing.index_runner --list-sites
"""

import argparse
import asyncio
import sys

from services.chunking.Chunker import Chunker
from services.classification.DocumentClassifier import DocumentClassifier
from services.indexing.IndexingService import DEFAULT_BATCH_SIZE, DEFAULT_MAX_CONCURRENCY, IndexingService
from services.indexing.JobStore import InMemoryJobStore
from services.prioritization.DocumentPrioritizer import DocumentPrioritizer
from services.vector_store.VectorStoreService import VectorStoreService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.source.SourceClientManager import SourceClientManager
from shared.extractors.ContentExtractor import ContentExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index a SharePoint site into the vector database.")
    parser.add_argument("site_id", nargs="?", help="The site to index")
    parser.add_argument("--folder", default="/", help="Folder path inside the site's document library (default: /)")
    parser.add_argument("--recursive", action="store_true", help="Include subfolders")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, help="Documents per batch")
    parser.add_argument("--max-concurrency", type=int, default=DEFAULT_MAX_CONCURRENCY, help="Documents processed in parallel")
    parser.add_argument("--list-sites", action="store_true", help="List available sites and exit")
    args = parser.parse_args(argv)
    if not args.list_sites and not args.site_id:
        parser.error("site_id is required unless --list-sites is given")
    return args


async def main(argv: list[str] | None = None) -> int:
    """Run one indexing job. Returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    source_client = SourceClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()

    try:
        # the source client is needed in both modes, if it fails to boot there is nothing to do
        try:
            await source_client.boot()
        except Exception as e:
            logger.error("Error booting source client %s: %s. Aborting.", source_client.get_engine_name(), e)
            return 1

        if args.list_sites:
            for site in await source_client.do_fetch_sites():
                logger.info("%s  %s  %s", site.id, site.display_name, site.web_url or "")
            return 0

        # no point in indexing without embedding and storage
        for client in (embed_client, rag_client):
            try:
                await client.boot()
                await client.do_healthcheck()
            except Exception as e:
                logger.error("Error booting %s client %s: %s. Aborting.", client.get_client_type(), client.get_engine_name(), e)
                return 1

        classifier = DocumentClassifier(helper_config=config)
        indexing_service = IndexingService(
            helper_config=config,
            source_client=source_client,
            vector_store=VectorStoreService(helper_config=config, rag_client=rag_client, embed_client=embed_client),
            extractor=ContentExtractor(helper_config=config),
            classifier=classifier,
            prioritizer=DocumentPrioritizer(helper_config=config, classifier=classifier),
            chunker=Chunker(helper_config=config),
            job_store=InMemoryJobStore(),
        )
        job = indexing_service.create_job(args.site_id, args.folder, args.recursive, args.batch_size)
        job = await indexing_service.run_job(job.id, args.max_concurrency)

        if job.status == "failed":
            logger.error("Indexing failed: %s", job.error)
            return 1
        logger.info(
            "Indexed %d of %d documents from '%s' (%d failed).",
            job.processed_documents, job.total_documents, job.site_name, job.failed_documents,
            color="green",
        )
        for failure in job.failures:
            logger.warning("  %s: %s", failure.document_name, failure.error)
        return 0
    finally:
        for client in (embed_client, rag_client, source_client):
            await client.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
