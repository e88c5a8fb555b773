from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from server.dependencies.auth import verify_api_key
from server.models.responses import DocumentChunk, DocumentChunksResponse, DocumentInfo, DocumentMetadataResponse
from shared.models.search import SearchHit

router = APIRouter(prefix="/document", tags=["document"], dependencies=[Depends(verify_api_key)])


async def _find_document_units(request: Request, file_name: str) -> list[SearchHit]:
    """Stored units of a document, in chunk order.

    Raises:
        HTTPException: 404 if nothing is indexed under the file name.
    """
    hits = await request.app.state.vector_store.find_units({"document_name": file_name})
    hits = [hit for hit in hits if hit.metadata is not None]
    if not hits:
        raise HTTPException(status_code=404, detail=f"Document not found: {file_name}")
    return sorted(hits, key=lambda hit: hit.metadata.chunk_index)


@router.get("/{file_name}/metadata")
async def get_document_metadata(request: Request, file_name: str) -> DocumentMetadataResponse:
    """Provenance of an indexed document, as linked by document_viewer_url."""
    hits = await _find_document_units(request, file_name)
    metadata = hits[0].metadata
    return DocumentMetadataResponse(
        document=DocumentInfo(
            id=metadata.document_id,
            name=metadata.document_name,
            site_id=metadata.site_id,
            site_name=metadata.site_name,
            drive_id=metadata.drive_id,
            content_type=metadata.content_type,
            size=metadata.file_size,
            last_modified=metadata.last_modified,
            created_by=metadata.created_by,
            web_url=metadata.web_url,
            document_viewer_url=metadata.document_viewer_url,
            chunk_count=len(hits),
        )
    )


@router.get("/{file_name}/chunks")
async def get_document_chunks(request: Request, file_name: str) -> DocumentChunksResponse:
    hits = await _find_document_units(request, file_name)
    chunks = [
        DocumentChunk(
            id=hit.id,
            chunk_index=hit.metadata.chunk_index,
            content=hit.content,
            section_number=hit.metadata.section_number,
            section_title=hit.metadata.section_title,
        )
        for hit in hits
    ]
    return DocumentChunksResponse(document_name=file_name, chunks=chunks)


@router.get("/{file_name}/content")
async def get_document_content(request: Request, file_name: str) -> Response:
    """Streams the original file from the document source.

    Raises:
        HTTPException: 404 if the document is not indexed, 400 if its drive is unknown.
    """
    metadata = (await _find_document_units(request, file_name))[0].metadata
    if not metadata.drive_id:
        raise HTTPException(status_code=400, detail="Document drive information not available")

    data = await request.app.state.source_client.do_download_document(metadata.drive_id, metadata.document_id)
    return Response(
        content=data,
        media_type=metadata.content_type or "application/octet-stream",
        headers={
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(metadata.document_name)}",
            "Cache-Control": "public, max-age=3600",
        },
    )
