"""Reminder scheduling, reconciliation and hygiene endpoints."""

import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.dependencies import (
    get_db,
    get_event_preferences,
    get_gateway,
    get_reconciler,
    verify_api_key,
)
from api.logging import tracked_request
from api.models.responses import (
    ErrorCodes,
    ReconcileRequest,
    ReconcileResponse,
    ReminderRequest,
    ReminderResponse,
    SweepResponse,
)
from core import database
from core.timezones import zone_name
from models.events import ReminderOffset
from services.hygiene import NotificationHygiene
from services.notifications import SQLiteNotificationGateway
from services.preferences import EventPreferencesService
from services.reconciler import TimezoneChangeReconciler

router = APIRouter(prefix="/v1/reminders")


def parse_offsets(tokens: list[str]) -> list[ReminderOffset]:
    """Parse offset tokens, rejecting unknown ones with a 400."""
    offsets = []
    invalid = []
    for token in tokens:
        try:
            offsets.append(ReminderOffset(token))
        except ValueError:
            invalid.append(token)
    if invalid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Unknown reminder offset",
                "code": ErrorCodes.INVALID_REQUEST,
                "details": [f"Invalid offset: {token}" for token in invalid]
                + [f"Expected one of: {', '.join(o.value for o in ReminderOffset)}"],
            },
        )
    return offsets


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_endpoint(
    request: Request,
    body: ReconcileRequest | None = None,
    conn: sqlite3.Connection = Depends(get_db),
    reconciler: TimezoneChangeReconciler = Depends(get_reconciler),
    _api_key: str = Depends(verify_api_key),
):
    """
    Signal a host timezone change.

    Signals inside the throttle window, or while a run is in flight, are
    dropped and reported with accepted=false.
    """
    with tracked_request(conn, request, "/v1/reminders/reconcile") as request_log:
        new_zone = body.timezone if body else None
        report = await reconciler.handle_timezone_change(new_zone)
        host_timezone = zone_name(reconciler.scheduler.host_zone)
        if report is None:
            request_log.details.append(("info", "Timezone change signal throttled"))
            return ReconcileResponse(accepted=False, host_timezone=host_timezone)
        return ReconcileResponse(
            accepted=True,
            host_timezone=host_timezone,
            rescheduled=report.rescheduled,
            skipped=report.skipped,
            missing=report.missing,
        )


@router.post("/sweep", response_model=SweepResponse)
async def sweep_endpoint(
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    gateway: SQLiteNotificationGateway = Depends(get_gateway),
    _api_key: str = Depends(verify_api_key),
):
    """Remove expired notifications and notifications for unfavorited events."""
    with tracked_request(conn, request, "/v1/reminders/sweep"):
        report = await NotificationHygiene(gateway).run(database.fetch_favorite_event_ids(conn))
        return SweepResponse(
            expired=report.expired,
            orphaned=report.orphaned,
            removed=report.removed,
        )


@router.post("/{event_id}", response_model=ReminderResponse)
async def set_reminders_endpoint(
    event_id: str,
    request: Request,
    body: ReminderRequest,
    conn: sqlite3.Connection = Depends(get_db),
    preferences: EventPreferencesService = Depends(get_event_preferences),
    _api_key: str = Depends(verify_api_key),
):
    """
    Favorite an event (if needed) and schedule its reminders.

    An empty offset list means the default offset.
    """
    with tracked_request(conn, request, "/v1/reminders") as request_log:
        offsets = parse_offsets(body.offsets)
        event = database.fetch_event(conn, event_id)
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "error": "Event not found",
                    "code": ErrorCodes.NOT_FOUND,
                    "details": [event_id],
                },
            )

        if not preferences.is_favorite(event_id):
            await preferences.toggle_favorite(event)
        scheduled = await preferences.set_reminders(event, offsets, body.city_label)
        if not scheduled:
            request_log.details.append(("warning", "No reminder trigger is in the future"))

        return ReminderResponse(
            event_id=event_id,
            offsets=[o.value for o in ReminderOffset.normalize(offsets)],
            scheduled=scheduled,
        )


@router.delete("/{event_id}", response_model=ReminderResponse)
async def remove_reminders_endpoint(
    event_id: str,
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    preferences: EventPreferencesService = Depends(get_event_preferences),
    _api_key: str = Depends(verify_api_key),
):
    """Cancel every reminder of an event and forget its preference."""
    with tracked_request(conn, request, "/v1/reminders"):
        await preferences.remove_reminders(event_id)
        return ReminderResponse(event_id=event_id, offsets=[], scheduled=[])
