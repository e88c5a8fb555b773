from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SearchRequest
from shared.models.search import SearchResponse

router = APIRouter(prefix="/search", tags=["search"])


@router.post("")
async def search_documents(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
) -> SearchResponse:
    """Run a hybrid search over the indexed chunks.

    Args:
        request (Request): FastAPI request (provides app.state.search_service).
        body (SearchRequest): JSON body with query string, result count and optional filters.
        _ (None): Auth dependency result (unused).

    Returns:
        SearchResponse: Reranked chunks with source links.
    """
    search_service = request.app.state.search_service
    return await search_service.search(body.query, k=body.k, filters=body.filters)
