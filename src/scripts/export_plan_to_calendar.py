#!/usr/bin/env python3
"""
Export a saved timeline plan to a Microsoft 365 calendar.

Builds the plan's multi-city timeline and adds one calendar event per city.

Usage:
    uv run python src/scripts/export_plan_to_calendar.py --plan-id <id>
    uv run python src/scripts/export_plan_to_calendar.py --plan-id <id> --calendar "Raid Nights"
"""

import argparse
import asyncio
import sys
import traceback
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import (
    CALENDAR_EXPORT_CALENDAR,
    CALENDAR_EXPORT_USER,
    DB_PATH,
    VIEWER_TIMEZONE,
    configure_logging,
)
from core.database import fetch_cities, fetch_event, fetch_plan, get_connection
from services.calendar import export_timeline_to_calendar
from services.timeline import build_timeline


async def main(plan_id: str, user_id: str, calendar_name: str) -> int:
    conn = get_connection(DB_PATH)
    try:
        plan = fetch_plan(conn, plan_id)
        if plan is None:
            print(f"ERROR: Plan '{plan_id}' not found!")
            return 1

        event = fetch_event(conn, plan.event_id)
        if event is None:
            print(f"ERROR: Event '{plan.event_id}' for plan '{plan.name}' not found!")
            return 1

        saved = {city.time_zone_identifier: city for city in fetch_cities(conn)}
        cities = [saved.get(identifier, identifier) for identifier in plan.city_identifiers]
        result = build_timeline(event, cities, VIEWER_TIMEZONE)
        print(f"Plan '{plan.name}': {len(result.entries)} cities for {event.display_name}")

        added, errors = await export_timeline_to_calendar(result, event, user_id, calendar_name)
        print(f"\nAdded {added} event(s) to '{calendar_name}' ({errors} error(s))")
        return 0 if not errors else 1

    except Exception as e:
        print(f"\nError: {e}")
        traceback.print_exc()
        return 1

    finally:
        conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export a timeline plan to a calendar")
    parser.add_argument("--plan-id", required=True, help="Saved plan id")
    parser.add_argument("--user", default=CALENDAR_EXPORT_USER, help="Calendar owner (UPN or id)")
    parser.add_argument(
        "--calendar", default=CALENDAR_EXPORT_CALENDAR, help="Target calendar name"
    )
    args = parser.parse_args()

    configure_logging()
    sys.exit(asyncio.run(main(args.plan_id, args.user, args.calendar)))
