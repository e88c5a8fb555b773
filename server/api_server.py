"""FastAPI application entry point for sharepoint_ai_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.source.SourceClientManager import SourceClientManager
from shared.exceptions.IndexingErrors import DocumentNotFoundError, IndexingError
from shared.extractors.ContentExtractor import ContentExtractor
from services.chunking.Chunker import Chunker
from services.classification.DocumentClassifier import DocumentClassifier
from services.indexing.IndexingService import IndexingService
from services.indexing.JobStore import InMemoryJobStore
from services.prioritization.DocumentPrioritizer import DocumentPrioritizer
from services.search.HybridRetriever import HybridRetriever
from services.search.Reranker import Reranker
from services.search.SearchService import SearchService
from services.vector_store.VectorStoreService import VectorStoreService
from server.routers.DocumentRouter import router as document_router
from server.routers.HealthRouter import router as health_router
from server.routers.IndexRouter import router as index_router
from server.routers.SearchRouter import router as search_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    helper_config = app.state.helper_config

    source_client = SourceClientManager(helper_config=helper_config).get_client()
    rag_client = RAGClientManager(helper_config=helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=helper_config).get_client()
    clients = [embed_client, rag_client, source_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(rag_client, embed_client)

    classifier = DocumentClassifier(helper_config=helper_config)
    vector_store = VectorStoreService(helper_config=helper_config, rag_client=rag_client, embed_client=embed_client)
    await vector_store.initialize()

    app.state.source_client = source_client
    app.state.vector_store = vector_store
    app.state.indexing_service = IndexingService(
        helper_config=helper_config,
        source_client=source_client,
        vector_store=vector_store,
        extractor=ContentExtractor(helper_config=helper_config),
        classifier=classifier,
        prioritizer=DocumentPrioritizer(helper_config=helper_config, classifier=classifier),
        chunker=Chunker(helper_config=helper_config),
        job_store=InMemoryJobStore(),
    )
    app.state.search_service = SearchService(
        helper_config=helper_config,
        retriever=HybridRetriever(helper_config=helper_config, vector_store=vector_store, classifier=classifier),
        reranker=Reranker(helper_config=helper_config, classifier=classifier),
    )

    # while the app is running...
    yield

    # when the app shuts down, stop running jobs and close all client connections
    logging.info("Shutting down, closing all clients...")
    await app.state.indexing_service.close()
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="sharepoint_ai_bridge",
    description=(
        "Ingests SharePoint document libraries into a vector database and serves "
        "hybrid keyword and semantic search over them. Indexing jobs are started "
        "via POST /index, queries are answered via POST /search."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(index_router)
app.include_router(search_router)
app.include_router(document_router)
app.include_router(health_router)


##########################################
############ ERROR HANDLERS ##############
##########################################

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = ["%s: %s" % (".".join(str(part) for part in error.get("loc", [])), error.get("msg", "")) for error in exc.errors()]
    return _error(422, "; ".join(messages) or "Invalid request")


@app.exception_handler(DocumentNotFoundError)
async def not_found_exception_handler(request: Request, exc: DocumentNotFoundError) -> JSONResponse:
    return _error(404, str(exc))


@app.exception_handler(IndexingError)
async def indexing_exception_handler(request: Request, exc: IndexingError) -> JSONResponse:
    logging.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error(500, str(exc))


@app.exception_handler(ValueError)
async def value_exception_handler(request: Request, exc: ValueError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc) or exc.__class__.__name__)


async def check_connections(rag_client, embed_client) -> None:
    """Check connectivity to the vector database and embedding backend on startup.

    The document source is checked by its token request during boot.

    Raises:
        Exception: If a backend is not reachable. Neither indexing nor search works without them.
    """
    result = await rag_client.do_healthcheck()
    if not result.is_success:
        raise Exception(
            f"RAG client '{rag_client.get_engine_name()}' is not reachable "
            f"(status {result.status_code}). Cannot serve queries."
        )

    result = await embed_client.do_healthcheck()
    if not result.is_success:
        raise Exception(
            f"Embed client '{embed_client.get_engine_name()}' is not reachable "
            f"(status {result.status_code}). Embedding will not work."
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting sharepoint_ai_bridge API Server v%s from root dir: %s on port %s...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
        os.environ.get("APP_PORT", "8000"),
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("APP_PORT", "8000")))
