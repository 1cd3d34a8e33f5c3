"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from api.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness check for monitoring."""
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())
