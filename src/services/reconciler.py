"""
Re-synchronizes outstanding reminders after a host timezone change.

Local-event reminders are computed against the host zone, so a zone change
invalidates them. Timezone-change signals arrive in bursts; only the first
signal inside the throttle window triggers a run, and a signal arriving while
a run is in flight is dropped. Dropped signals are logged and not retried.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from core import database
from core.config import RECONCILE_THROTTLE_SECONDS
from core.timezones import as_utc, is_upcoming, resolve_zone, zone_name
from models.events import utc_now
from services.notifications import ReminderScheduler
from services.preferences import ReminderPreferencesManager

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    started_at: datetime
    host_zone: str
    rescheduled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rescheduled) + len(self.skipped) + len(self.missing)


class TimezoneChangeReconciler:
    """
    Owns the throttle state and the single-flight guard for reconciliation.

    Attributes:
        last_reconciliation_start: when the last accepted run started
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        scheduler: ReminderScheduler,
        preferences: ReminderPreferencesManager | None = None,
        throttle_seconds: float = RECONCILE_THROTTLE_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.conn = conn
        self.scheduler = scheduler
        self.preferences = preferences or ReminderPreferencesManager(conn)
        self.throttle = timedelta(seconds=throttle_seconds)
        self.clock = clock
        self.last_reconciliation_start: datetime | None = None
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def is_throttled(self, now: datetime) -> bool:
        if self.last_reconciliation_start is None:
            return False
        return as_utc(now) - self.last_reconciliation_start < self.throttle

    async def handle_timezone_change(self, new_zone=None) -> ReconcileReport | None:
        """
        React to a host timezone-change signal.

        Returns the run's report, or None when the signal was dropped.

        Raises:
            InvalidTimezoneError: new_zone does not resolve
        """
        if new_zone is not None:
            resolve_zone(new_zone)
        now = as_utc(self.clock())
        if self.in_flight:
            logger.info("Reconciliation already running, dropping timezone change signal")
            return None
        if self.is_throttled(now):
            logger.debug(
                "Timezone change within %ss of last reconciliation, dropping",
                int(self.throttle.total_seconds()),
            )
            return None

        # No await between the checks and this assignment
        self.last_reconciliation_start = now
        async with self._lock:
            # A signal without a zone re-reads the configured one ("local" follows the OS)
            if new_zone is not None:
                self.scheduler.set_host_zone(new_zone)
            else:
                self.scheduler.refresh_host_zone()
            logger.info(
                "Timezone changed to %s, rescheduling reminders",
                zone_name(self.scheduler.host_zone),
            )
            return await self._reconcile(now)

    async def reconcile_all(self) -> ReconcileReport:
        """Reschedule reminders for every favorited, still-upcoming event."""
        async with self._lock:
            return await self._reconcile(as_utc(self.clock()))

    async def _reconcile(self, now: datetime) -> ReconcileReport:
        report = ReconcileReport(started_at=now, host_zone=zone_name(self.scheduler.host_zone))

        for event_id in sorted(database.fetch_favorite_event_ids(self.conn)):
            event = database.fetch_event(self.conn, event_id)
            if event is None:
                logger.warning("Favorited event not found: %s", event_id)
                report.missing.append(event_id)
                continue

            if not is_upcoming(event, self.scheduler.host_zone, now):
                report.skipped.append(event_id)
                continue

            offsets = self.preferences.enabled_offsets(event_id)
            await self.scheduler.cancel(event_id)
            await self.scheduler.schedule(event, offsets)
            report.rescheduled.append(event_id)

        logger.info(
            "Reconciled reminders: %d rescheduled, %d skipped, %d missing",
            len(report.rescheduled),
            len(report.skipped),
            len(report.missing),
        )
        return report
