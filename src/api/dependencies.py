"""FastAPI dependencies for authentication and shared resources."""

import secrets

from fastapi import Header, HTTPException, Request, status

from api.models.responses import ErrorCodes
from core.config import ROOMCAL_API_KEY
from core.database import BookingStore
from core.exceptions import MissingCredentialsError
from services.sync import BookingSyncService


async def verify_api_key(x_api_key: str | None = Header(None, alias="X-API-Key")) -> str | None:
    """
    Verify API key from X-API-Key header.

    Write endpoints are open when ROOMCAL_API_KEY is not configured.

    Raises:
        HTTPException: 401 if a key is configured and the header doesn't match
    """
    if not ROOMCAL_API_KEY:
        return None

    # Use constant-time comparison to prevent timing attacks
    if not x_api_key or not secrets.compare_digest(x_api_key, ROOMCAL_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Invalid or missing API key",
                "code": ErrorCodes.UNAUTHORIZED,
                "details": [],
            },
        )

    return x_api_key


def get_store(request: Request) -> BookingStore:
    return request.app.state.store


def get_sync_service(request: Request) -> BookingSyncService:
    return request.app.state.sync_service


def get_graph(request: Request):
    """
    MS Graph client for live calendar reads.

    Raises:
        HTTPException: 503 if Graph credentials are not configured
    """
    try:
        return request.app.state.graph_provider()
    except MissingCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "MS Graph is not configured",
                "code": ErrorCodes.MISSING_CREDENTIALS,
                "details": [str(e)],
            },
        )
