"""
One-way export of a multi-city timeline to a Microsoft 365 calendar.
"""

import logging

from msgraph.generated.models.body_type import BodyType
from msgraph.generated.models.date_time_time_zone import DateTimeTimeZone
from msgraph.generated.models.event import Event as CalendarEvent
from msgraph.generated.models.item_body import ItemBody
from msgraph.generated.models.location import Location

from core.graph_client import get_graph_client
from core.timezones import as_utc, format_time_range
from models.events import Event
from services.timeline import TimelineEntry, TimelineResult

logger = logging.getLogger(__name__)


def _graph_datetime(value) -> DateTimeTimeZone:
    # Graph expects a naive ISO timestamp plus a separate zone name
    return DateTimeTimeZone(
        date_time=as_utc(value).replace(tzinfo=None).isoformat(),
        time_zone="UTC",
    )


def build_calendar_event(entry: TimelineEntry, event: Event) -> CalendarEvent:
    """Convert one timeline entry to an MS Graph calendar event."""
    body_parts = [
        f"City: {entry.city_name} ({entry.city_identifier})",
        f"Local time: {format_time_range(entry.start, entry.end, entry.city_identifier)}",
        f"Event type: {event.event_type}",
    ]
    if event.link:
        body_parts.append(f"Link: {event.link}")

    return CalendarEvent(
        subject=f"{event.display_name} - {entry.city_name}",
        start=_graph_datetime(entry.start),
        end=_graph_datetime(entry.end),
        location=Location(display_name=entry.city_name),
        body=ItemBody(
            content_type=BodyType.Text,
            content="\n\n".join(body_parts),
        ),
    )


async def find_calendar(user_id: str, calendar_name: str):
    """Find a calendar by name for a user, or None."""
    graph = get_graph_client()
    calendars_response = await graph.users.by_user_id(user_id).calendars.get()
    calendars = calendars_response.value if calendars_response.value else []
    for calendar in calendars:
        if calendar.name == calendar_name:
            return calendar
    return None


async def export_timeline_to_calendar(
    result: TimelineResult, event: Event, user_id: str, calendar_name: str
) -> tuple[int, int]:
    """
    Add one calendar event per timeline entry.

    Per-entry failures are logged and counted, not raised.

    Returns:
        (added, errors)
    """
    graph = get_graph_client()
    calendar = await find_calendar(user_id, calendar_name)
    if calendar is None:
        logger.error("Calendar '%s' not found for %s", calendar_name, user_id)
        return 0, len(result.entries)

    added = 0
    errors = 0
    for entry in result.entries:
        calendar_event = build_calendar_event(entry, event)
        try:
            await graph.users.by_user_id(user_id).calendars.by_calendar_id(
                calendar.id
            ).events.post(calendar_event)
            added += 1
        except Exception as e:
            errors += 1
            logger.error("Failed to add %s to calendar: %s", calendar_event.subject, e)

    logger.info("Exported %d of %d timeline entries to %s", added, len(result.entries), calendar_name)
    return added, errors
