"""Health check."""

from fastapi import APIRouter

from portfolio import __version__
from portfolio.config import settings
from portfolio.schemas.system import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(
        version=__version__,
        inline_threshold_bytes=settings.inline_threshold_bytes,
    )


@router.get("/ping")
async def ping():
    """Ultra-lightweight ping."""
    return {"status": "ok"}
