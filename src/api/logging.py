"""SQLite request logging for API write endpoints."""

import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from fastapi import Request


@dataclass
class RequestLog:
    """Captured request/response data for logging."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    started: float = field(default_factory=time.time)
    endpoint: str = ""
    method: str = ""
    client_ip: str | None = None
    status_code: int = 0
    error_code: str | None = None
    error_message: str | None = None
    processing_time_ms: int = 0
    months_processed: int | None = None
    bookings_stored: int | None = None
    details: list[tuple[str, str]] = field(default_factory=list)  # (type, message)

    def finish(self, status_code: int) -> None:
        self.status_code = status_code
        self.processing_time_ms = int((time.time() - self.started) * 1000)


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def start_request_log(request: Request) -> RequestLog:
    return RequestLog(
        endpoint=request.url.path,
        method=request.method,
        client_ip=get_client_ip(request),
    )


def log_request(log: RequestLog, db_path: Path) -> None:
    """Write request log to SQLite database."""
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()

        # Insert main request record
        cursor.execute(
            """
            INSERT INTO api_requests (
                request_id, timestamp, endpoint, method, client_ip,
                status_code, error_code, error_message, processing_time_ms,
                months_processed, bookings_stored
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                log.request_id,
                log.timestamp,
                log.endpoint,
                log.method,
                log.client_ip,
                log.status_code,
                log.error_code,
                log.error_message,
                log.processing_time_ms,
                log.months_processed,
                log.bookings_stored,
            ),
        )

        # Insert detail records
        for detail_type, message in log.details:
            cursor.execute(
                """
                INSERT INTO api_request_details (request_id, detail_type, message)
                VALUES (?, ?, ?)
            """,
                (log.request_id, detail_type, message),
            )

        conn.commit()
    finally:
        conn.close()
