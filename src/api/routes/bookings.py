"""Booking store endpoints: read stored bookings, accept client-side sync pushes."""

import asyncio
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.dependencies import get_store, verify_api_key
from api.logging import log_request, start_request_log
from api.models.bookings import AppointmentModel, BatchSyncRequest, MonthBookingsRequest
from api.models.responses import BatchSyncResponse, ErrorCodes, StoreMonthResponse
from core.database import BookingStore
from core.dates import parse_iso, parse_month_key
from core.exceptions import InvalidMonthKeyError, StoreWriteError

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_range(start: str | None, end: str | None) -> tuple[datetime, datetime]:
    """Parse ISO start/end query parameters (naive values are read as UTC)."""
    if not start or not end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "start and end parameters required",
                "code": ErrorCodes.INVALID_REQUEST,
                "details": [],
            },
        )
    try:
        return parse_iso(start), parse_iso(end)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Invalid start or end",
                "code": ErrorCodes.INVALID_REQUEST,
                "details": ["Expected ISO 8601 date-time"],
            },
        )


def validate_month_key(month_key: str) -> str:
    try:
        parse_month_key(month_key)
    except InvalidMonthKeyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Invalid month key",
                "code": ErrorCodes.INVALID_REQUEST,
                "details": [str(e)],
            },
        )
    return month_key


def store_error(e: StoreWriteError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "Failed to store bookings",
            "code": ErrorCodes.STORE_ERROR,
            "details": [str(e)],
        },
    )


@router.get("/bookings", response_model=list[AppointmentModel])
async def get_bookings(
    start: str | None = None,
    end: str | None = None,
    store: BookingStore = Depends(get_store),
):
    """Stored bookings starting within [start, end], ascending by start."""
    range_start, range_end = parse_range(start, end)
    records = await asyncio.to_thread(store.get_bookings, range_start, range_end)
    logger.info("Returning %d bookings for %s to %s", len(records), start, end)
    return [AppointmentModel.from_record(record) for record in records]


@router.get("/bookings/month/{month_key}", response_model=list[AppointmentModel])
async def get_month_bookings(month_key: str, store: BookingStore = Depends(get_store)):
    """Stored bookings of one month bucket."""
    validate_month_key(month_key)
    records = await asyncio.to_thread(store.get_bookings_for_month, month_key)
    return [AppointmentModel.from_record(record) for record in records]


@router.post("/bookings/sync", response_model=StoreMonthResponse)
async def store_month(
    request: Request,
    body: MonthBookingsRequest,
    store: BookingStore = Depends(get_store),
    _api_key: str | None = Depends(verify_api_key),
):
    """Replace one bucket with bookings fetched by a client."""
    request_log = start_request_log(request)
    try:
        validate_month_key(body.month_key)
        records = [booking.to_record() for booking in body.bookings]
        stored = await asyncio.to_thread(store.replace_month, body.month_key, records)

        request_log.months_processed = 1
        request_log.bookings_stored = stored
        request_log.finish(200)
        return StoreMonthResponse(success=True, stored=stored, month_key=body.month_key)

    except HTTPException as e:
        request_log.error_code = e.detail.get("code") if isinstance(e.detail, dict) else None
        request_log.error_message = str(e.detail)
        request_log.finish(e.status_code)
        raise

    except StoreWriteError as e:
        request_log.error_code = ErrorCodes.STORE_ERROR
        request_log.error_message = str(e)
        request_log.finish(500)
        raise store_error(e)

    finally:
        _write_log(request_log, store)


@router.post("/bookings/sync-batch", response_model=BatchSyncResponse)
async def store_months(
    request: Request,
    body: BatchSyncRequest,
    store: BookingStore = Depends(get_store),
    _api_key: str | None = Depends(verify_api_key),
):
    """Replace several buckets in one transaction."""
    request_log = start_request_log(request)
    try:
        batch = []
        for month in body.months:
            validate_month_key(month.month_key)
            batch.append((month.month_key, [booking.to_record() for booking in month.bookings]))

        total_stored = await asyncio.to_thread(store.replace_months, batch)
        logger.info("Batch sync complete: %d bookings across %d months", total_stored, len(batch))

        request_log.months_processed = len(batch)
        request_log.bookings_stored = total_stored
        request_log.finish(200)
        return BatchSyncResponse(
            success=True, total_stored=total_stored, months_processed=len(batch)
        )

    except HTTPException as e:
        request_log.error_code = e.detail.get("code") if isinstance(e.detail, dict) else None
        request_log.error_message = str(e.detail)
        request_log.finish(e.status_code)
        raise

    except StoreWriteError as e:
        request_log.error_code = ErrorCodes.STORE_ERROR
        request_log.error_message = str(e)
        request_log.finish(500)
        raise store_error(e)

    finally:
        _write_log(request_log, store)


def _write_log(request_log, store: BookingStore) -> None:
    try:
        log_request(request_log, store.db_path)
    except Exception as e:
        # Don't fail the request if logging fails
        logger.warning("Failed to write request log: %s", e)
