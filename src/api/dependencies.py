"""FastAPI dependencies for authentication and shared resources."""

import secrets
import sqlite3

from fastapi import Depends, Header, HTTPException, Request, status

from core.config import VIEWER_TIMEZONE, ZONE_PLANNER_API_KEY
from services.notifications import ReminderScheduler, SQLiteNotificationGateway
from services.plans import TimelineService
from services.preferences import EventPreferencesService, ReminderPreferencesManager
from services.reconciler import TimezoneChangeReconciler


async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> str:
    """
    Verify API key from X-API-Key header.

    Raises:
        HTTPException: 401 if key is missing or invalid
    """
    if not ZONE_PLANNER_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "API key not configured on server",
                "code": "INTERNAL_ERROR",
                "details": [],
            },
        )

    # Use constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(x_api_key, ZONE_PLANNER_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Invalid or missing API key",
                "code": "UNAUTHORIZED",
                "details": [],
            },
        )

    return x_api_key


def get_db(request: Request) -> sqlite3.Connection:
    """The application's shared SQLite connection (opened in the lifespan)."""
    return request.app.state.conn


def get_timeline_service(conn: sqlite3.Connection = Depends(get_db)) -> TimelineService:
    return TimelineService(conn)


def get_gateway(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteNotificationGateway:
    return SQLiteNotificationGateway(conn)


def get_reconciler(
    request: Request, conn: sqlite3.Connection = Depends(get_db)
) -> TimezoneChangeReconciler:
    """
    Process-wide reconciler.

    The throttle state and the in-flight guard only work if every request
    sees the same instance, so it lives on app.state.
    """
    reconciler = getattr(request.app.state, "reconciler", None)
    if reconciler is None:
        scheduler = ReminderScheduler(SQLiteNotificationGateway(conn), VIEWER_TIMEZONE)
        reconciler = TimezoneChangeReconciler(conn, scheduler)
        request.app.state.reconciler = reconciler
    return reconciler


def get_scheduler(
    reconciler: TimezoneChangeReconciler = Depends(get_reconciler),
) -> ReminderScheduler:
    # Shared with the reconciler so a timezone change moves both
    return reconciler.scheduler


def get_event_preferences(
    conn: sqlite3.Connection = Depends(get_db),
    scheduler: ReminderScheduler = Depends(get_scheduler),
) -> EventPreferencesService:
    return EventPreferencesService(conn, scheduler, ReminderPreferencesManager(conn))
