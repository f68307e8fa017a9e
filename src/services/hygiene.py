"""
Periodic cleanup of the scheduled-notification store.

Both sweeps read the pending set and then delete from it. Gateway failures
are logged and the sweep returns whatever it managed to remove.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from core.timezones import as_utc
from models.events import utc_now
from services.notifications import NotificationGateway, decode_identifier

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    expired: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.expired) + len(self.orphaned)


class NotificationHygiene:
    def __init__(self, gateway: NotificationGateway):
        self.gateway = gateway

    async def _pending(self):
        try:
            return await self.gateway.list_pending()
        except Exception as e:
            logger.error("Failed to list pending notifications: %s", e)
            return None

    async def _remove(self, identifiers: list[str]) -> list[str]:
        if not identifiers:
            return []
        try:
            await self.gateway.cancel(identifiers)
        except Exception as e:
            logger.error("Failed to remove %d notifications: %s", len(identifiers), e)
            return []
        return identifiers

    async def sweep_expired(self, now: datetime | None = None) -> list[str]:
        """Remove pending notifications whose trigger time has passed."""
        pending = await self._pending()
        if pending is None:
            return []
        moment = as_utc(now or utc_now())
        expired = [p.identifier for p in pending if as_utc(p.trigger_at) < moment]
        removed = await self._remove(expired)
        if removed:
            logger.info("Removed %d expired notifications", len(removed))
        return removed

    async def sweep_orphaned(self, valid_event_ids) -> list[str]:
        """
        Remove pending notifications for events outside valid_event_ids.

        Identifiers that do not decode are not ours and are left alone.
        """
        pending = await self._pending()
        if pending is None:
            return []
        valid = set(valid_event_ids)
        orphaned = []
        for notification in pending:
            key = decode_identifier(notification.identifier)
            if key is None:
                continue
            if key.event_id not in valid:
                orphaned.append(notification.identifier)
        removed = await self._remove(orphaned)
        if removed:
            logger.info("Removed %d orphaned notifications", len(removed))
        return removed

    async def run(self, valid_event_ids, now: datetime | None = None) -> SweepReport:
        return SweepReport(
            expired=await self.sweep_expired(now),
            orphaned=await self.sweep_orphaned(valid_event_ids),
        )
