"""Core routes for the reelsmith API (root and health check)."""

from fastapi import APIRouter

from api.schemas import HealthResponse, RootResponse

router = APIRouter(tags=["Core"])

API_VERSION = "0.1.0"


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "reelsmith API", "version": API_VERSION}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status.",
)
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
