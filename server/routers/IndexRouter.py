from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import IndexRequest, ReindexRequest
from server.models.responses import (
    IndexStartedResponse,
    IndexStats,
    JobListResponse,
    JobResponse,
    ReindexResponse,
    SiteListResponse,
    StatsResponse,
    StatusResponse,
)
from services.indexing.IndexingService import IndexingService
from shared.exceptions.IndexingErrors import DocumentNotFoundError

router = APIRouter(prefix="/index", tags=["index"], dependencies=[Depends(verify_api_key)])


def _indexing_service(request: Request) -> IndexingService:
    return request.app.state.indexing_service


@router.post("", status_code=202)
async def start_indexing(request: Request, body: IndexRequest) -> IndexStartedResponse:
    """Start an indexing job in the background.

    Args:
        request (Request): FastAPI request (provides app.state.indexing_service).
        body (IndexRequest): Site, folder and batching options.

    Returns:
        IndexStartedResponse: The id of the job, pollable via GET /index/jobs/{job_id}.
    """
    job_id = await _indexing_service(request).start_indexing(
        site_id=body.site_id,
        folder_path=body.folder_path,
        recursive=body.recursive,
        batch_size=body.batch_size,
        max_concurrency=body.max_concurrency,
    )
    return IndexStartedResponse(job_id=job_id, message=f"Indexing started for site {body.site_id}")


@router.get("/jobs/{job_id}")
async def get_job(request: Request, job_id: str) -> JobResponse:
    job = _indexing_service(request).get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return JobResponse(job=job)


@router.get("/jobs")
async def list_jobs(request: Request) -> JobListResponse:
    return JobListResponse(jobs=_indexing_service(request).list_jobs())


@router.get("/stats")
async def get_stats(request: Request) -> StatsResponse:
    service = _indexing_service(request)
    documents = await service.get_document_stats()
    collection = await request.app.state.vector_store.get_collection_stats()
    return StatsResponse(stats=IndexStats(documents=documents, collection=collection))


@router.get("/sites")
async def list_sites(request: Request) -> SiteListResponse:
    sites = await request.app.state.source_client.do_fetch_sites()
    return SiteListResponse(sites=sites)


@router.put("/reindex")
async def reindex_document(request: Request, body: ReindexRequest) -> ReindexResponse:
    """Re-run the pipeline for one document. Its old chunks are replaced.

    Raises:
        HTTPException: 404 if the document is not in the site's current listing.
    """
    try:
        chunks = await _indexing_service(request).reindex_document(body.document_id, body.site_id, body.drive_id)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ReindexResponse(chunks=chunks)


@router.delete("")
async def clear_index(request: Request) -> StatusResponse:
    await _indexing_service(request).clear_index()
    return StatusResponse()
