"""SQLite request logging for API."""

import logging
import sqlite3
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import HTTPException, Request, status

from api.models.responses import ErrorCodes
from core.errors import TimelineError

logger = logging.getLogger(__name__)


@dataclass
class RequestLog:
    """Captured request/response data for logging."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    endpoint: str = ""
    method: str = ""
    client_ip: str | None = None
    payload_size_bytes: int | None = None
    status_code: int = 0
    error_code: str | None = None
    error_message: str | None = None
    processing_time_ms: int = 0
    details: list[tuple[str, str]] = field(default_factory=list)  # (type, message)


def log_request(conn: sqlite3.Connection, log: RequestLog) -> None:
    """Write request log to SQLite database."""
    with conn:
        conn.execute(
            """
            INSERT INTO api_requests (
                request_id, timestamp, endpoint, method, client_ip,
                payload_size_bytes, status_code, error_code, error_message,
                processing_time_ms
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                log.request_id,
                log.timestamp,
                log.endpoint,
                log.method,
                log.client_ip,
                log.payload_size_bytes,
                log.status_code,
                log.error_code,
                log.error_message,
                log.processing_time_ms,
            ),
        )

        for detail_type, message in log.details:
            conn.execute(
                """
                INSERT INTO api_request_details (request_id, detail_type, message)
                VALUES (?, ?, ?)
            """,
                (log.request_id, detail_type, message),
            )


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@contextmanager
def tracked_request(conn: sqlite3.Connection, request: Request, endpoint: str):
    """
    Wrap an endpoint body: map errors to HTTP responses and log the request.

    TimelineError becomes 422 with its stable code, anything unexpected
    becomes 500. The request is logged whatever the outcome.
    """
    start_time = time.time()
    request_log = RequestLog(
        endpoint=endpoint,
        method=request.method,
        client_ip=get_client_ip(request),
    )

    try:
        yield request_log
        request_log.status_code = request_log.status_code or 200

    except HTTPException as e:
        request_log.status_code = e.status_code
        if isinstance(e.detail, dict):
            request_log.error_code = e.detail.get("code")
            request_log.error_message = e.detail.get("error")
            for detail in e.detail.get("details", []):
                request_log.details.append(("validation_error", detail))
        else:
            request_log.error_message = str(e.detail)
        raise

    except TimelineError as e:
        request_log.status_code = 422
        request_log.error_code = e.code
        request_log.error_message = e.message
        request_log.details.append(("validation_error", str(e)))

        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": e.message,
                "code": e.code,
                "details": [str(e)],
            },
        ) from e

    except Exception as e:
        logger.exception("Unhandled error on %s", endpoint)
        request_log.status_code = 500
        request_log.error_code = ErrorCodes.INTERNAL_ERROR
        request_log.error_message = str(e)

        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "Internal server error",
                "code": ErrorCodes.INTERNAL_ERROR,
                "details": [],
            },
        ) from e

    finally:
        request_log.processing_time_ms = int((time.time() - start_time) * 1000)
        try:
            log_request(conn, request_log)
        except sqlite3.Error as e:
            # Don't fail the request if logging fails
            logger.warning("Failed to write request log: %s", e)
