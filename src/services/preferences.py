"""
Favorite events and their per-event reminder preferences.
"""

import logging
import sqlite3

from core import database
from models.events import Event, ReminderOffset, ReminderPreference, utc_now
from services.notifications import ReminderScheduler

logger = logging.getLogger(__name__)


class ReminderPreferencesManager:
    """CRUD over reminder preferences, one record per event."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, event_id: str) -> ReminderPreference | None:
        return database.fetch_preference(self.conn, event_id)

    def get_or_create(self, event_id: str) -> ReminderPreference:
        """Existing preference, or a new one with the default offset."""
        preference = self.get(event_id)
        if preference is not None:
            return preference

        preference = ReminderPreference(event_id=event_id, offsets=[ReminderOffset.default()])
        with self.conn:
            database.upsert_preference(self.conn, preference)
        logger.debug("Created default reminder preference for %s", event_id)
        return preference

    def update(
        self, event_id: str, offsets, is_enabled: bool = True
    ) -> ReminderPreference:
        preference = ReminderPreference(
            event_id=event_id,
            offsets=list(offsets or ()),
            is_enabled=is_enabled,
            last_scheduled_date=utc_now(),
        )
        with self.conn:
            database.upsert_preference(self.conn, preference)
        logger.info(
            "Updated reminder preference for %s: %s",
            event_id,
            ", ".join(o.value for o in preference.offsets),
        )
        return preference

    def delete(self, event_id: str) -> None:
        with self.conn:
            database.delete_preference(self.conn, event_id)

    def all(self) -> list[ReminderPreference]:
        """All preferences, most recently scheduled first."""
        return database.fetch_preferences(self.conn)

    def enabled_offsets(self, event_id: str) -> list[ReminderOffset]:
        preference = self.get(event_id)
        if preference is None or not preference.is_enabled:
            return [ReminderOffset.default()]
        return list(preference.offsets)


class EventPreferencesService:
    """
    Favorites and reminders for events.

    Unfavoriting an event removes its reminder preference and cancels every
    reminder scheduled for it.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        scheduler: ReminderScheduler,
        preferences: ReminderPreferencesManager | None = None,
    ):
        self.conn = conn
        self.scheduler = scheduler
        self.preferences = preferences or ReminderPreferencesManager(conn)

    def is_favorite(self, event_id: str) -> bool:
        return event_id in self.favorite_event_ids()

    def favorite_event_ids(self) -> set[str]:
        return database.fetch_favorite_event_ids(self.conn)

    async def toggle_favorite(self, event: Event) -> bool:
        """Flip the favorite state of an event. Returns the new state."""
        if self.is_favorite(event.id):
            with self.conn:
                database.remove_favorite_event(self.conn, event.id)
            await self.remove_reminders(event.id)
            logger.info("Unfavorited event: %s", event.display_name)
            return False

        with self.conn:
            database.upsert_event(self.conn, event)
            database.add_favorite_event(self.conn, event.id)
        logger.info("Favorited event: %s", event.display_name)
        return True

    async def set_reminders(
        self, event: Event, offsets, city_label: str | None = None
    ) -> list[str]:
        """Save the offsets for an event and (re)schedule its reminders."""
        preference = self.preferences.update(event.id, offsets)
        with self.conn:
            database.upsert_event(self.conn, event)
        await self.scheduler.cancel(event.id)
        return await self.scheduler.schedule(event, preference.offsets, city_label)

    async def remove_reminders(self, event_id: str) -> None:
        self.preferences.delete(event_id)
        await self.scheduler.cancel(event_id)
