"""
Multi-city timeline synthesis.

Turns one event plus an ordered list of cities into a chronological schedule:
the absolute window in each city, the gaps between consecutive windows, and
the order in which the cities can be played. Overlapping windows are flagged
rather than solved; the start-sorted order is already the best sequence for
fixed event windows.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from core.config import (
    TIMELINE_MAX_PADDING_SECONDS,
    TIMELINE_MAX_TICKS,
    TIMELINE_MIN_PADDING_SECONDS,
    TIMELINE_PADDING_RATIO,
)
from core.errors import NoCitiesSelectedError
from core.timezones import format_time, resolve, resolve_zone, zone_name
from core.validation import dedupe_identifiers
from models.events import Event, FavoriteCity

logger = logging.getLogger(__name__)

UTC = timezone.utc


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class TimelineEntry:
    """Resolved event window for one city."""

    city_identifier: str
    city_name: str
    start: datetime
    end: datetime
    viewer_start: datetime
    viewer_end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def viewer_label(self) -> str:
        """Start time in the viewer's zone, e.g. '07:00 CEST'."""
        abbreviation = self.viewer_start.tzname() or ""
        return f"{format_time(self.viewer_start, self.viewer_start.tzinfo)} {abbreviation}".strip()


@dataclass(frozen=True)
class TimelineGap:
    """Transition between two consecutive cities. Negative gap = overlap."""

    from_city: str
    to_city: str
    gap: timedelta

    @property
    def is_overlap(self) -> bool:
        return self.gap < timedelta(0)


@dataclass
class TimelineResult:
    """Chronological multi-city schedule for one event."""

    event_id: str
    viewer_zone: str
    entries: list[TimelineEntry]
    gaps: list[TimelineGap] = field(default_factory=list)
    total_span: timedelta = timedelta(0)
    active_playtime: timedelta = timedelta(0)

    @property
    def suggested_order(self) -> list[str]:
        return [entry.city_identifier for entry in self.entries]

    @property
    def overlaps(self) -> list[TimelineGap]:
        return [gap for gap in self.gaps if gap.is_overlap]

    @property
    def has_overlaps(self) -> bool:
        return any(gap.is_overlap for gap in self.gaps)

    @property
    def earliest_start(self) -> datetime:
        return self.entries[0].start

    @property
    def latest_end(self) -> datetime:
        return max(entry.end for entry in self.entries)


# =============================================================================
# SYNTHESIS
# =============================================================================


def _city_key(city: FavoriteCity | str) -> tuple[str, str]:
    """Return (identifier, display name) for a saved city or a bare identifier."""
    if isinstance(city, FavoriteCity):
        return city.time_zone_identifier, city.display_name
    identifier = str(city)
    return identifier, identifier.rsplit("/", 1)[-1].replace("_", " ")


def build_timeline(event: Event, cities: list[FavoriteCity | str], viewer_zone) -> TimelineResult:
    """
    Build the chronological schedule of an event across cities.

    Entries are sorted by absolute start; cities whose windows start at the
    same instant keep their input order. Repeated identifiers are collapsed.

    Raises:
        NoCitiesSelectedError: cities is empty
        InvalidTimezoneError: a city or the viewer zone does not resolve
    """
    if not cities:
        raise NoCitiesSelectedError()

    viewer = resolve_zone(viewer_zone)
    names: dict[str, str] = {}
    for city in cities:
        identifier, name = _city_key(city)
        names.setdefault(identifier, name)
    identifiers = dedupe_identifiers([_city_key(city)[0] for city in cities])

    entries = []
    for identifier in identifiers:
        window = resolve(event, identifier, viewer)
        entries.append(
            TimelineEntry(
                city_identifier=identifier,
                city_name=names[identifier],
                start=window.start,
                end=window.end,
                viewer_start=window.viewer_start,
                viewer_end=window.viewer_end,
            )
        )

    # sorted() is stable: equal starts keep input order
    entries = sorted(entries, key=lambda entry: entry.start)

    gaps = [
        TimelineGap(from_city=a.city_identifier, to_city=b.city_identifier, gap=b.start - a.end)
        for a, b in zip(entries, entries[1:])
    ]

    total_span = max(entry.end for entry in entries) - min(entry.start for entry in entries)
    active_playtime = sum((entry.duration for entry in entries), timedelta(0))

    result = TimelineResult(
        event_id=event.id,
        viewer_zone=zone_name(viewer),
        entries=entries,
        gaps=gaps,
        total_span=total_span,
        active_playtime=active_playtime,
    )
    if result.has_overlaps:
        logger.info(
            "Timeline for %s has %d overlapping transition(s)", event.id, len(result.overlaps)
        )
    return result


# =============================================================================
# LAYOUT HELPERS
# =============================================================================


def assign_lanes(entries: list[TimelineEntry]) -> list[int]:
    """
    Pack windows into rows so that no two windows in a row overlap.

    Returns the lane index for each entry (entries must be start-sorted).
    Each entry takes the first lane that is free at its start.
    """
    lane_ends: list[datetime] = []
    lanes = []
    for entry in entries:
        for index, lane_end in enumerate(lane_ends):
            if entry.start >= lane_end:
                lane_ends[index] = entry.end
                lanes.append(index)
                break
        else:
            lanes.append(len(lane_ends))
            lane_ends.append(entry.end)
    return lanes


def display_padding(span: timedelta) -> timedelta:
    """10% of the span, clamped to [15 min, 3 h]."""
    suggested = max(span.total_seconds() * TIMELINE_PADDING_RATIO, TIMELINE_MIN_PADDING_SECONDS)
    return timedelta(seconds=min(suggested, TIMELINE_MAX_PADDING_SECONDS))


def display_range(result: TimelineResult) -> tuple[datetime, datetime]:
    """Padded (start, end) range for drawing the timeline."""
    padding = display_padding(result.total_span)
    return result.earliest_start - padding, result.latest_end + padding


def _tick_step_hours(hours: float) -> float:
    if hours < 3:
        return 0.5
    if hours < 8:
        return 1
    if hours < 16:
        return 2
    if hours < 32:
        return 3
    return max(math.ceil(hours / 8.0), 4)


def tick_marks(start: datetime, end: datetime) -> list[datetime]:
    """Axis ticks aligned to whole steps, always covering both range ends."""
    total_seconds = (end - start).total_seconds()
    if total_seconds <= 0:
        return [start, end]

    step = _tick_step_hours(total_seconds / 3600) * 3600
    slack = timedelta(seconds=60)
    current = math.floor(start.timestamp() / step) * step

    ticks = []
    for _ in range(TIMELINE_MAX_TICKS):
        tick = datetime.fromtimestamp(current, UTC)
        if start - slack <= tick <= end + slack:
            ticks.append(tick)
        if tick > end + timedelta(seconds=step):
            break
        current += step

    if not ticks:
        return [start, end]
    if ticks[0] > start + slack:
        ticks.insert(0, start)
    if ticks[-1] < end - slack:
        ticks.append(end)
    return ticks
