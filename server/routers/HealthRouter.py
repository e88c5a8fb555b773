import os

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from server.models.responses import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    """Report vector store health. Unhealthy backends answer with 503."""
    status = await request.app.state.vector_store.health_check()
    body = HealthResponse(healthy=status.healthy, details=status.details, version=os.getenv("APP_VERSION", "unknown"))
    return JSONResponse(status_code=200 if status.healthy else 503, content=body.model_dump(mode="json"))
