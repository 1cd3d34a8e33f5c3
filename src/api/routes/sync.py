"""Sync status and manual sync triggers."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.dependencies import get_store, get_sync_service, verify_api_key
from api.logging import log_request, start_request_log
from api.models.responses import (
    ErrorCodes,
    MonthStatus,
    MonthSyncResponse,
    SyncStatusResponse,
    SyncTriggerResponse,
)
from api.routes.bookings import validate_month_key
from core.database import BookingStore
from core.exceptions import MissingCredentialsError, RemoteUnavailableError
from services.sync import BookingSyncService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(
    store: BookingStore = Depends(get_store),
    service: BookingSyncService = Depends(get_sync_service),
):
    """Totals and per-month sync metadata. Months never synced are absent."""
    summary = await asyncio.to_thread(store.get_sync_status)
    return SyncStatusResponse(
        total_bookings=summary["total_bookings"],
        last_full_sync=summary["last_full_sync"],
        is_syncing=service.is_syncing,
        months=[
            MonthStatus(
                month_key=month["month_key"],
                last_sync=month["last_synced_at"],
                booking_count=month["record_count"],
            )
            for month in summary["months"]
        ],
    )


@router.post(
    "/sync/trigger", response_model=SyncTriggerResponse, response_model_exclude_none=True
)
async def trigger_sync(
    request: Request,
    force: bool = False,
    service: BookingSyncService = Depends(get_sync_service),
    _api_key: str | None = Depends(verify_api_key),
):
    """
    Sync stale months from MS Graph now.

    With force=true the store is cleared and the whole window refetched.
    """
    request_log = start_request_log(request)
    try:
        if force:
            result = await service.force_full_sync()
        else:
            result = await service.sync_all_needed()

        request_log.finish(200)
        if not result["success"]:
            request_log.error_code = ErrorCodes.REMOTE_UNAVAILABLE
            request_log.error_message = result["error"]
            return SyncTriggerResponse(success=False, error=result["error"])

        request_log.months_processed = result["months_synced"]
        request_log.bookings_stored = result["total_count"]
        return SyncTriggerResponse(
            success=True,
            months_synced=result["months_synced"],
            total_bookings=result["total_count"],
        )
    finally:
        try:
            log_request(request_log, service.store.db_path)
        except Exception as e:
            logger.warning("Failed to write request log: %s", e)


@router.post("/sync/month/{month_key}", response_model=MonthSyncResponse)
async def sync_single_month(
    month_key: str,
    service: BookingSyncService = Depends(get_sync_service),
    _api_key: str | None = Depends(verify_api_key),
):
    """Refetch one month regardless of its age."""
    validate_month_key(month_key)
    try:
        result = await service.force_sync_month(month_key)
    except (MissingCredentialsError, RemoteUnavailableError) as e:
        code = (
            ErrorCodes.MISSING_CREDENTIALS
            if isinstance(e, MissingCredentialsError)
            else ErrorCodes.REMOTE_UNAVAILABLE
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "Booking source unavailable", "code": code, "details": [str(e)]},
        )
    return MonthSyncResponse(
        success=result["success"],
        month_key=month_key,
        count=result["count"],
        error=result["error"],
    )
