#!/usr/bin/env python3
"""
Periodic reminder maintenance.

Removes expired notifications and notifications for events that are no longer
favorited. With --reconcile, also reschedules every favorited, upcoming event
against the given host timezone.

Usage:
    uv run python src/scripts/sweep_notifications.py
    uv run python src/scripts/sweep_notifications.py --reconcile --timezone Europe/Berlin
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import DB_PATH, VIEWER_TIMEZONE, configure_logging
from core.database import create_schema, fetch_favorite_event_ids, get_connection
from core.errors import TimelineError
from services.hygiene import NotificationHygiene
from services.notifications import ReminderScheduler, SQLiteNotificationGateway
from services.reconciler import TimezoneChangeReconciler

logger = logging.getLogger(__name__)


async def main(host_timezone: str, reconcile: bool = False) -> int:
    conn = get_connection(DB_PATH)
    try:
        create_schema(conn)
        gateway = SQLiteNotificationGateway(conn)

        favorites = fetch_favorite_event_ids(conn)
        print(f"Favorited events: {len(favorites)}")

        report = await NotificationHygiene(gateway).run(favorites)
        print(f"Removed {len(report.expired)} expired notification(s)")
        print(f"Removed {len(report.orphaned)} orphaned notification(s)")

        if reconcile:
            scheduler = ReminderScheduler(gateway, host_timezone)
            reconciler = TimezoneChangeReconciler(conn, scheduler)
            result = await reconciler.reconcile_all()
            print(
                f"Reconciled against {result.host_zone}: "
                f"{len(result.rescheduled)} rescheduled, "
                f"{len(result.skipped)} skipped, "
                f"{len(result.missing)} missing"
            )

        pending = await gateway.list_pending()
        print(f"\nPending notifications: {len(pending)}")
        return 0

    except TimelineError as e:
        print(f"\nError: {e}")
        return 1

    finally:
        conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sweep and reconcile scheduled reminders")
    parser.add_argument(
        "--timezone",
        default=VIEWER_TIMEZONE,
        help="Host timezone for reminder triggers (IANA name or 'local')",
    )
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Also reschedule reminders for favorited upcoming events",
    )
    args = parser.parse_args()

    configure_logging()
    sys.exit(asyncio.run(main(args.timezone, args.reconcile)))
