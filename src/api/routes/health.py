"""Health check endpoint."""

import sqlite3
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models.responses import HealthResponse
from core.config import API_VERSION

router = APIRouter()


def _database_available(request: Request) -> tuple[bool, str | None]:
    conn = getattr(request.app.state, "conn", None)
    if conn is None:
        return False, "Database not initialized"
    try:
        conn.execute("SELECT 1 FROM timeline_plans LIMIT 1")
    except sqlite3.Error as e:
        return False, f"Database unavailable: {e}"
    return True, None


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint for monitoring.

    Returns 200 if healthy, 503 if unhealthy.
    """
    available, error = _database_available(request)
    timestamp = datetime.now(timezone.utc).isoformat()

    if available:
        return HealthResponse(
            status="healthy",
            version=API_VERSION,
            database_available=True,
            timestamp=timestamp,
        )
    else:
        return JSONResponse(
            status_code=503,
            content=HealthResponse(
                status="unhealthy",
                version=API_VERSION,
                database_available=False,
                timestamp=timestamp,
                error=error,
            ).model_dump(),
        )
