"""
Data models for events, cities, timeline plans and reminder preferences.

Timestamps are timezone-aware datetimes. Event start/end are stored in UTC;
whether they mean an absolute instant or a city-local wall clock depends on
Event.is_global_time (see core.timezones).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from core.config import DEFAULT_REMINDER_OFFSET


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# EVENTS AND CITIES
# =============================================================================


@dataclass
class Event:
    """An event as fetched from the event feed. Read-only to the planner."""

    id: str
    name: str
    event_type: str
    start_time: datetime
    end_time: datetime
    is_global_time: bool
    heading: str = ""
    link: str | None = None
    image_url: str | None = None

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def display_heading(self) -> str:
        return self.heading or self.name

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


@dataclass
class FavoriteCity:
    """A saved city, keyed by its IANA timezone identifier."""

    name: str
    time_zone_identifier: str
    full_name: str = ""
    added_date: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)

    @property
    def display_name(self) -> str:
        return self.full_name or self.name


# =============================================================================
# TIMELINE PLANS AND TEMPLATES
# =============================================================================


@dataclass
class TimelinePlan:
    """City selection saved for one specific event instance."""

    name: str
    event_id: str
    event_name: str
    event_type: str
    city_identifiers: list[str]
    id: str = field(default_factory=new_id)
    date_created: datetime = field(default_factory=utc_now)
    date_modified: datetime = field(default_factory=utc_now)


@dataclass
class TimelineTemplate:
    """Reusable city selection for every event of one event type."""

    name: str
    event_type: str
    city_identifiers: list[str]
    is_default: bool = False
    id: str = field(default_factory=new_id)
    date_created: datetime = field(default_factory=utc_now)
    date_modified: datetime = field(default_factory=utc_now)


# =============================================================================
# REMINDERS
# =============================================================================


class ReminderOffset(str, Enum):
    """Lead time before an event's start at which a reminder fires."""

    FIFTEEN_MINUTES = "fifteenMinutes"
    THIRTY_MINUTES = "thirtyMinutes"
    ONE_HOUR = "oneHour"
    THREE_HOURS = "threeHours"
    ONE_DAY = "oneDay"

    @property
    def duration(self) -> timedelta:
        return _OFFSET_DURATIONS[self]

    @property
    def display_name(self) -> str:
        return _OFFSET_DISPLAY_NAMES[self]

    @property
    def short_display_name(self) -> str:
        return _OFFSET_SHORT_NAMES[self]

    @classmethod
    def default(cls) -> "ReminderOffset":
        return cls(DEFAULT_REMINDER_OFFSET)

    @classmethod
    def normalize(cls, offsets) -> list["ReminderOffset"]:
        """
        Dedupe offsets and order them by declaration order.

        Accepts enum members or their string tokens. An empty selection
        becomes the single default offset.
        """
        chosen = {cls(o) for o in offsets or ()}
        if not chosen:
            return [cls.default()]
        return [member for member in cls if member in chosen]


_OFFSET_DURATIONS = {
    ReminderOffset.FIFTEEN_MINUTES: timedelta(minutes=15),
    ReminderOffset.THIRTY_MINUTES: timedelta(minutes=30),
    ReminderOffset.ONE_HOUR: timedelta(hours=1),
    ReminderOffset.THREE_HOURS: timedelta(hours=3),
    ReminderOffset.ONE_DAY: timedelta(days=1),
}

_OFFSET_DISPLAY_NAMES = {
    ReminderOffset.FIFTEEN_MINUTES: "15 minutes before",
    ReminderOffset.THIRTY_MINUTES: "30 minutes before",
    ReminderOffset.ONE_HOUR: "1 hour before",
    ReminderOffset.THREE_HOURS: "3 hours before",
    ReminderOffset.ONE_DAY: "1 day before",
}

_OFFSET_SHORT_NAMES = {
    ReminderOffset.FIFTEEN_MINUTES: "15 min",
    ReminderOffset.THIRTY_MINUTES: "30 min",
    ReminderOffset.ONE_HOUR: "1 hour",
    ReminderOffset.THREE_HOURS: "3 hours",
    ReminderOffset.ONE_DAY: "1 day",
}


@dataclass
class ReminderPreference:
    """Per-event reminder configuration. One record per event."""

    event_id: str
    offsets: list[ReminderOffset] = field(default_factory=list)
    is_enabled: bool = True
    last_scheduled_date: datetime | None = None

    def __post_init__(self):
        self.offsets = ReminderOffset.normalize(self.offsets)
