"""
Timezone resolution and event time conversion.

Two kinds of event time exist:

- Global events (is_global_time=True): start/end are absolute UTC instants,
  identical for every city.
- Local events (is_global_time=False): the wall-clock components of the stored
  timestamp, read as UTC, are the local time in whichever city is being
  considered. "14:00" means 14:00 in Tokyo for Tokyo and 14:00 in Berlin for
  Berlin, so the stored value has to be reinterpreted per city rather than
  offset-shifted.

DST disambiguation is left to zoneinfo (fold=0): wall-clock times inside a
spring-forward gap resolve forward, ambiguous fall-back times resolve to the
first occurrence.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.errors import InvalidTimezoneError
from models.events import Event

UTC = timezone.utc
LOCALTIME_PATH = "/etc/localtime"


# =============================================================================
# ZONE RESOLUTION
# =============================================================================


def resolve_zone(identifier: str | tzinfo | None) -> tzinfo:
    """
    Resolve a timezone identifier into a tzinfo.

    Accepts IANA names ("Asia/Tokyo"), "UTC" aliases and "local" (the host's
    current zone). An existing tzinfo is passed through unchanged.

    Raises:
        InvalidTimezoneError: identifier is empty or not a known zone
    """
    if isinstance(identifier, tzinfo):
        return identifier
    if identifier is None:
        raise InvalidTimezoneError("")

    name = str(identifier).strip()
    low = name.lower()
    if low in {"utc", "z", "gmt"}:
        return UTC
    if low in {"local", "system"}:
        return local_zone()
    if not name:
        raise InvalidTimezoneError(name)

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidTimezoneError(name) from e


def _zone_from_key(name: str) -> ZoneInfo | None:
    # TZ may be ":Europe/Berlin" or a path into a zoneinfo tree
    key = name.strip().lstrip(":")
    if "zoneinfo/" in key:
        key = key.split("zoneinfo/", 1)[1]
    if not key:
        return None
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def local_zone() -> tzinfo:
    """
    The host's current zone as a DST-aware tzinfo.

    Looked up on every call, in order: the TZ environment variable, the key
    /etc/localtime links to, the rules in /etc/localtime itself, then UTC.
    """
    zone = _zone_from_key(os.environ.get("TZ", ""))
    if zone is not None:
        return zone

    if os.path.islink(LOCALTIME_PATH):
        zone = _zone_from_key(os.path.realpath(LOCALTIME_PATH))
        if zone is not None:
            return zone

    try:
        with open(LOCALTIME_PATH, "rb") as f:
            return ZoneInfo.from_file(f, key="localtime")
    except (OSError, ValueError):
        return UTC


def is_valid_zone(identifier: str | None) -> bool:
    """Check whether an identifier is a known IANA zone (aliases like 'local' are not)."""
    if not isinstance(identifier, str) or not identifier.strip():
        return False
    try:
        ZoneInfo(identifier)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def zone_name(zone: tzinfo) -> str:
    """Stable name for a tzinfo (IANA key where available)."""
    key = getattr(zone, "key", None)
    if key:
        return key
    if zone is UTC:
        return "UTC"
    return str(zone)


# =============================================================================
# CONVERSION
# =============================================================================


def as_utc(value: datetime) -> datetime:
    """Normalize a stored timestamp to an aware UTC datetime (naive = UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def reinterpret_wall_clock(instant: datetime, from_zone, to_zone) -> datetime:
    """
    Read the wall-clock components of `instant` in `from_zone` and build the
    instant at which the same components occur in `to_zone`.

    This is not an offset shift: 14:00 in from_zone becomes 14:00 in to_zone.
    """
    source = resolve_zone(from_zone)
    target = resolve_zone(to_zone)
    wall = as_utc(instant).astimezone(source).replace(tzinfo=None)
    return wall.replace(tzinfo=target).astimezone(UTC)


def local_event_instant(stored: datetime, city_zone) -> datetime:
    """Absolute instant of a local-event timestamp in the given city."""
    return reinterpret_wall_clock(stored, UTC, city_zone)


@dataclass(frozen=True)
class ResolvedWindow:
    """Absolute event window for one city, plus viewer wall-clock times."""

    start: datetime
    end: datetime
    viewer_start: datetime
    viewer_end: datetime

    @property
    def duration(self):
        return self.end - self.start


def resolve(event: Event, city_zone, viewer_zone) -> ResolvedWindow:
    """
    Resolve an event into its absolute window for a city.

    Global events use the stored instants verbatim. Local events have their
    wall-clock components interpreted in the city's zone. The viewer zone only
    determines the wall-clock fields used for display.

    Raises:
        InvalidTimezoneError: city or viewer zone cannot be resolved
    """
    city = resolve_zone(city_zone)
    viewer = resolve_zone(viewer_zone)

    if event.is_global_time:
        start = as_utc(event.start_time)
        end = as_utc(event.end_time)
    else:
        start = local_event_instant(event.start_time, city)
        end = local_event_instant(event.end_time, city)

    return ResolvedWindow(
        start=start,
        end=end,
        viewer_start=start.astimezone(viewer),
        viewer_end=end.astimezone(viewer),
    )


def actual_start(event: Event, zone) -> datetime:
    """Event start as experienced by someone located in `zone`."""
    return resolve(event, zone, zone).start


def actual_end(event: Event, zone) -> datetime:
    return resolve(event, zone, zone).end


def is_upcoming(event: Event, zone, now: datetime) -> bool:
    """An event stays upcoming until its end has passed in `zone`."""
    return actual_end(event, zone) > as_utc(now)


# =============================================================================
# COMPARISON HELPERS
# =============================================================================


def time_difference(from_zone, to_zone, at: datetime) -> int:
    """
    Offset difference between two zones at an instant, in whole hours.

    Positive when to_zone is ahead of from_zone. Half-hour zones truncate
    toward zero.
    """
    source = resolve_zone(from_zone)
    target = resolve_zone(to_zone)
    moment = as_utc(at)
    delta = moment.astimezone(target).utcoffset() - moment.astimezone(source).utcoffset()
    return int(delta.total_seconds() / 3600)


def describe_time_difference(from_zone, to_zone, at: datetime) -> str:
    """Human-readable label, e.g. '7 hours behind'."""
    difference = time_difference(from_zone, to_zone, at)
    if difference == 0:
        return "Same time as yours"
    hours = abs(difference)
    unit = "hour" if hours == 1 else "hours"
    direction = "ahead" if difference > 0 else "behind"
    return f"{hours} {unit} {direction}"


def utc_offset_label(zone, at: datetime) -> str:
    """Format a zone's UTC offset at an instant (e.g. 'UTC+9', 'UTC+5:30')."""
    offset = as_utc(at).astimezone(resolve_zone(zone)).utcoffset()
    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    if minutes:
        return f"UTC{sign}{hours}:{minutes:02d}"
    return f"UTC{sign}{hours}"


# =============================================================================
# FORMATTING
# =============================================================================


def format_time(value: datetime, zone) -> str:
    """Format as 24-hour 'HH:MM' in the given zone."""
    return as_utc(value).astimezone(resolve_zone(zone)).strftime("%H:%M")


def format_time_range(start: datetime, end: datetime, zone, include_date: bool = False) -> str:
    """
    Format a time range for a zone.

    Example: '14:00-17:00 JST' or 'Jul 15, 2025, 14:00-17:00 JST'
    """
    tz = resolve_zone(zone)
    local_start = as_utc(start).astimezone(tz)
    abbreviation = local_start.tzname() or zone_name(tz)
    times = f"{format_time(start, tz)}-{format_time(end, tz)} {abbreviation}"
    if include_date:
        return f"{local_start.strftime('%b')} {local_start.day}, {local_start.year}, {times}"
    return times
