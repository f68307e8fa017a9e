"""
Reminder scheduling against a local notification-delivery service.

Every scheduled reminder is keyed by a reversible identifier,
"event::<event id>::<offset token>", so pending notifications can be mapped
back to events without a side index. Delivery is best-effort: gateway
failures are logged and never reach the caller.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, NamedTuple, Protocol

from core.config import (
    NOTIFICATION_CATEGORY,
    NOTIFICATION_ID_DELIMITER,
    NOTIFICATION_ID_PREFIX,
    REMINDER_TITLES,
)
from core.errors import NotificationDeliveryError
from core.timezones import actual_start, as_utc, is_upcoming, resolve_zone
from models.events import Event, ReminderOffset, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# IDENTIFIERS
# =============================================================================


class NotificationKey(NamedTuple):
    """Decoded notification identifier."""

    event_id: str
    offset_token: str

    @property
    def offset(self) -> ReminderOffset | None:
        try:
            return ReminderOffset(self.offset_token)
        except ValueError:
            return None


def encode_identifier(event_id: str, offset: ReminderOffset) -> str:
    """Build the notification identifier for one event/offset pair."""
    offset = ReminderOffset(offset)
    return NOTIFICATION_ID_DELIMITER.join((NOTIFICATION_ID_PREFIX, event_id, offset.value))


def decode_identifier(identifier: str) -> NotificationKey | None:
    """
    Recover (event id, offset token) from an identifier.

    Returns None for identifiers not produced by encode_identifier. The offset
    token is taken from the last segment, so event ids may contain the
    delimiter themselves.
    """
    prefix = NOTIFICATION_ID_PREFIX + NOTIFICATION_ID_DELIMITER
    if not identifier.startswith(prefix):
        return None
    event_id, delimiter, token = identifier[len(prefix):].rpartition(NOTIFICATION_ID_DELIMITER)
    if not delimiter or not event_id or not token:
        return None
    return NotificationKey(event_id, token)


def identifiers_for_event(event_id: str) -> list[str]:
    """Identifiers for every known offset of an event."""
    return [encode_identifier(event_id, offset) for offset in ReminderOffset]


# =============================================================================
# CONTENT
# =============================================================================


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str
    category: str = NOTIFICATION_CATEGORY
    thread_id: str = ""
    user_info: dict = field(default_factory=dict)


def build_title(event: Event) -> str:
    return REMINDER_TITLES.get(event.event_type, f"{event.display_heading} Starting Soon!")


def build_body(event: Event, offset: ReminderOffset, city_label: str | None = None) -> str:
    time_remaining = offset.short_display_name
    if city_label:
        return f"{event.display_name} starts in {city_label} in {time_remaining}"
    if event.is_global_time:
        return f"{event.display_name} starts in {time_remaining}"
    return f"{event.display_name} starts globally in {time_remaining}"


def build_content(
    event: Event, offset: ReminderOffset, city_label: str | None = None
) -> NotificationContent:
    """Reminder content for an event. Pure: same inputs, same content."""
    offset = ReminderOffset(offset)
    return NotificationContent(
        title=build_title(event),
        body=build_body(event, offset, city_label),
        thread_id=event.event_type,  # groups reminders by event type
        user_info={
            "eventID": event.id,
            "eventType": event.event_type,
            "startTime": as_utc(event.start_time).timestamp(),
            "isGlobalTime": event.is_global_time,
            "offset": offset.value,
        },
    )


# =============================================================================
# GATEWAY
# =============================================================================


@dataclass(frozen=True)
class PendingNotification:
    identifier: str
    trigger_at: datetime
    content: NotificationContent | None = None


class NotificationGateway(Protocol):
    """Local notification-delivery service (OS scheduler or a stand-in)."""

    async def schedule(
        self, identifier: str, content: NotificationContent, trigger_at: datetime
    ) -> None: ...

    async def cancel(self, identifiers: list[str]) -> None: ...

    async def list_pending(self) -> list[PendingNotification]: ...


class SQLiteNotificationGateway:
    """
    Notification store backed by the scheduled_notifications table.

    Scheduling an existing identifier replaces it, so repeated scheduling is
    idempotent. Cancelling unknown identifiers is a no-op.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    async def schedule(
        self, identifier: str, content: NotificationContent, trigger_at: datetime
    ) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO scheduled_notifications (
                        identifier, title, body, category, thread_id,
                        user_info, trigger_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(identifier) DO UPDATE SET
                        title = excluded.title,
                        body = excluded.body,
                        category = excluded.category,
                        thread_id = excluded.thread_id,
                        user_info = excluded.user_info,
                        trigger_at = excluded.trigger_at
                    """,
                    (
                        identifier,
                        content.title,
                        content.body,
                        content.category,
                        content.thread_id,
                        json.dumps(content.user_info),
                        as_utc(trigger_at).isoformat(),
                        utc_now().isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise NotificationDeliveryError(f"Could not schedule {identifier}: {e}") from e

    async def cancel(self, identifiers: list[str]) -> None:
        if not identifiers:
            return
        try:
            with self.conn:
                self.conn.executemany(
                    "DELETE FROM scheduled_notifications WHERE identifier = ?",
                    [(identifier,) for identifier in identifiers],
                )
        except sqlite3.Error as e:
            raise NotificationDeliveryError(f"Could not cancel notifications: {e}") from e

    async def list_pending(self) -> list[PendingNotification]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM scheduled_notifications ORDER BY trigger_at"
            ).fetchall()
        except sqlite3.Error as e:
            raise NotificationDeliveryError(f"Could not list notifications: {e}") from e
        return [
            PendingNotification(
                identifier=row["identifier"],
                trigger_at=datetime.fromisoformat(row["trigger_at"]),
                content=NotificationContent(
                    title=row["title"],
                    body=row["body"],
                    category=row["category"],
                    thread_id=row["thread_id"] or "",
                    user_info=json.loads(row["user_info"] or "{}"),
                ),
            )
            for row in rows
        ]

    async def due(self, now: datetime) -> list[PendingNotification]:
        """Pending notifications whose trigger time has arrived."""
        moment = as_utc(now)
        return [p for p in await self.list_pending() if as_utc(p.trigger_at) <= moment]


# =============================================================================
# SCHEDULER
# =============================================================================


class ReminderScheduler:
    """
    Computes reminder triggers and schedules them through a gateway.

    Local-event triggers depend on where the user is, so the scheduler carries
    the host timezone; the timezone-change reconciler updates it.
    """

    def __init__(
        self,
        gateway: NotificationGateway,
        host_zone="local",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.gateway = gateway
        self.clock = clock
        self.set_host_zone(host_zone)

    def set_host_zone(self, host_zone) -> None:
        """
        Configure the host zone ("local" keeps following the OS setting).

        Raises:
            InvalidTimezoneError: host_zone does not resolve
        """
        self.host_zone = resolve_zone(host_zone)
        self.host_zone_identifier = host_zone

    def refresh_host_zone(self):
        """Re-resolve the configured identifier, picking up OS zone changes."""
        self.host_zone = resolve_zone(self.host_zone_identifier)
        return self.host_zone

    def trigger_for(self, event: Event, offset: ReminderOffset) -> datetime:
        """Instant at which the reminder for this offset fires."""
        return actual_start(event, self.host_zone) - ReminderOffset(offset).duration

    async def schedule(
        self,
        event: Event,
        offsets,
        city_label: str | None = None,
    ) -> list[str]:
        """
        Schedule reminders for an event; returns the identifiers scheduled.

        Offsets are processed in a fixed order. Offsets whose trigger has
        already passed are skipped, and events that have ended are skipped
        entirely. Gateway failures are logged per offset.
        """
        now = as_utc(self.clock())
        if not is_upcoming(event, self.host_zone, now):
            logger.debug("Skipping reminders for %s: event is not upcoming", event.id)
            return []

        scheduled = []
        for offset in ReminderOffset.normalize(offsets):
            trigger_at = self.trigger_for(event, offset)
            if trigger_at <= now:
                logger.debug(
                    "Skipping %s reminder for %s: trigger time in past", offset.value, event.id
                )
                continue

            identifier = encode_identifier(event.id, offset)
            content = build_content(event, offset, city_label)
            try:
                await self.gateway.schedule(identifier, content, trigger_at)
            except Exception as e:
                logger.error("Failed to schedule notification %s: %s", identifier, e)
                continue

            scheduled.append(identifier)
            logger.info("Scheduled notification for %s at %s", event.display_name, trigger_at)
        return scheduled

    async def cancel(self, event_id: str) -> None:
        """Cancel every possible reminder of an event (no-op for unscheduled ones)."""
        try:
            await self.gateway.cancel(identifiers_for_event(event_id))
        except Exception as e:
            logger.error("Failed to cancel notifications for %s: %s", event_id, e)
            return
        logger.info("Canceled notifications for event: %s", event_id)

    async def pending_for_event(self, event_id: str) -> list[PendingNotification]:
        """Pending notifications belonging to one event."""
        try:
            pending = await self.gateway.list_pending()
        except Exception as e:
            logger.error("Failed to list pending notifications: %s", e)
            return []
        matches = []
        for notification in pending:
            key = decode_identifier(notification.identifier)
            if key is not None and key.event_id == event_id:
                matches.append(notification)
        return matches
