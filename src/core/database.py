"""
SQLite storage for events, saved cities, timeline plans, templates,
reminder preferences and locally scheduled notifications.

Write helpers do not commit. Callers own the transaction, normally with
`with conn:` so a group of writes lands (or rolls back) together.
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from core.config import DB_PATH
from models.events import (
    Event,
    FavoriteCity,
    ReminderOffset,
    ReminderPreference,
    TimelinePlan,
    TimelineTemplate,
    utc_now,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    event_type TEXT NOT NULL,
    heading TEXT DEFAULT '',
    link TEXT,
    image_url TEXT,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    is_global_time INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS favorite_cities (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    time_zone_identifier TEXT UNIQUE NOT NULL,
    full_name TEXT DEFAULT '',
    added_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS favorite_events (
    event_id TEXT PRIMARY KEY,
    added_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS timeline_plans (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    event_id TEXT NOT NULL,
    event_name TEXT NOT NULL,
    event_type TEXT NOT NULL,
    city_identifiers TEXT NOT NULL,
    date_created TEXT NOT NULL,
    date_modified TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS timeline_templates (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    event_type TEXT NOT NULL,
    city_identifiers TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0,
    date_created TEXT NOT NULL,
    date_modified TEXT NOT NULL
);

-- At most one default template per event type
CREATE UNIQUE INDEX IF NOT EXISTS idx_templates_single_default
    ON timeline_templates(event_type) WHERE is_default = 1;

CREATE TABLE IF NOT EXISTS reminder_preferences (
    event_id TEXT PRIMARY KEY,
    offsets TEXT NOT NULL,
    is_enabled INTEGER NOT NULL DEFAULT 1,
    last_scheduled_date TEXT
);

CREATE TABLE IF NOT EXISTS scheduled_notifications (
    identifier TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    category TEXT,
    thread_id TEXT,
    user_info TEXT,
    trigger_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS api_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id TEXT UNIQUE NOT NULL,
    timestamp TEXT NOT NULL,
    endpoint TEXT NOT NULL,
    method TEXT NOT NULL,
    client_ip TEXT,
    payload_size_bytes INTEGER,
    status_code INTEGER NOT NULL,
    error_code TEXT,
    error_message TEXT,
    processing_time_ms INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS api_request_details (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id TEXT NOT NULL,
    detail_type TEXT NOT NULL CHECK(detail_type IN ('validation_error', 'warning', 'info')),
    message TEXT NOT NULL,
    FOREIGN KEY (request_id) REFERENCES api_requests(request_id)
);

CREATE INDEX IF NOT EXISTS idx_plans_event ON timeline_plans(event_id);
CREATE INDEX IF NOT EXISTS idx_notifications_trigger ON scheduled_notifications(trigger_at);
CREATE INDEX IF NOT EXISTS idx_api_requests_timestamp ON api_requests(timestamp);
"""


def get_connection(path: Path | str = DB_PATH) -> sqlite3.Connection:
    """Get a database connection with row access by column name."""
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist."""
    conn.executescript(SCHEMA)
    conn.commit()


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# EVENTS
# =============================================================================


def upsert_event(conn: sqlite3.Connection, event: Event) -> None:
    conn.execute(
        """
        INSERT INTO events (
            id, name, event_type, heading, link, image_url,
            start_time, end_time, is_global_time
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            event_type = excluded.event_type,
            heading = excluded.heading,
            link = excluded.link,
            image_url = excluded.image_url,
            start_time = excluded.start_time,
            end_time = excluded.end_time,
            is_global_time = excluded.is_global_time
        """,
        (
            event.id,
            event.name,
            event.event_type,
            event.heading,
            event.link,
            event.image_url,
            _ts(event.start_time),
            _ts(event.end_time),
            int(event.is_global_time),
        ),
    )


def _row_to_event(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        name=row["name"],
        event_type=row["event_type"],
        heading=row["heading"] or "",
        link=row["link"],
        image_url=row["image_url"],
        start_time=_parse_ts(row["start_time"]),
        end_time=_parse_ts(row["end_time"]),
        is_global_time=bool(row["is_global_time"]),
    )


def fetch_event(conn: sqlite3.Connection, event_id: str) -> Event | None:
    row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
    return _row_to_event(row) if row else None


# =============================================================================
# FAVORITES
# =============================================================================


def insert_city(conn: sqlite3.Connection, city: FavoriteCity) -> None:
    conn.execute(
        """
        INSERT INTO favorite_cities (id, name, time_zone_identifier, full_name, added_date)
        VALUES (?, ?, ?, ?, ?)
        """,
        (city.id, city.name, city.time_zone_identifier, city.full_name, _ts(city.added_date)),
    )


def fetch_cities(conn: sqlite3.Connection) -> list[FavoriteCity]:
    rows = conn.execute("SELECT * FROM favorite_cities ORDER BY name").fetchall()
    return [
        FavoriteCity(
            id=row["id"],
            name=row["name"],
            time_zone_identifier=row["time_zone_identifier"],
            full_name=row["full_name"] or "",
            added_date=_parse_ts(row["added_date"]),
        )
        for row in rows
    ]


def add_favorite_event(conn: sqlite3.Connection, event_id: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO favorite_events (event_id, added_date) VALUES (?, ?)",
        (event_id, _ts(utc_now())),
    )


def remove_favorite_event(conn: sqlite3.Connection, event_id: str) -> None:
    conn.execute("DELETE FROM favorite_events WHERE event_id = ?", (event_id,))


def fetch_favorite_event_ids(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT event_id FROM favorite_events").fetchall()
    return {row["event_id"] for row in rows}


# =============================================================================
# TIMELINE PLANS
# =============================================================================


def _row_to_plan(row: sqlite3.Row) -> TimelinePlan:
    return TimelinePlan(
        id=row["id"],
        name=row["name"],
        event_id=row["event_id"],
        event_name=row["event_name"],
        event_type=row["event_type"],
        city_identifiers=json.loads(row["city_identifiers"]),
        date_created=_parse_ts(row["date_created"]),
        date_modified=_parse_ts(row["date_modified"]),
    )


def insert_plan(conn: sqlite3.Connection, plan: TimelinePlan) -> None:
    conn.execute(
        """
        INSERT INTO timeline_plans (
            id, name, event_id, event_name, event_type,
            city_identifiers, date_created, date_modified
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            plan.id,
            plan.name,
            plan.event_id,
            plan.event_name,
            plan.event_type,
            json.dumps(plan.city_identifiers),
            _ts(plan.date_created),
            _ts(plan.date_modified),
        ),
    )


def update_plan(conn: sqlite3.Connection, plan: TimelinePlan) -> None:
    conn.execute(
        """
        UPDATE timeline_plans
        SET name = ?, city_identifiers = ?, date_modified = ?
        WHERE id = ?
        """,
        (plan.name, json.dumps(plan.city_identifiers), _ts(plan.date_modified), plan.id),
    )


def delete_plan(conn: sqlite3.Connection, plan_id: str) -> None:
    conn.execute("DELETE FROM timeline_plans WHERE id = ?", (plan_id,))


def fetch_plan(conn: sqlite3.Connection, plan_id: str) -> TimelinePlan | None:
    row = conn.execute("SELECT * FROM timeline_plans WHERE id = ?", (plan_id,)).fetchone()
    return _row_to_plan(row) if row else None


def fetch_plans(conn: sqlite3.Connection, event_id: str | None = None) -> list[TimelinePlan]:
    """Fetch plans (optionally for one event), newest modification first."""
    if event_id is None:
        rows = conn.execute(
            "SELECT * FROM timeline_plans ORDER BY date_modified DESC"
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM timeline_plans WHERE event_id = ? ORDER BY date_modified DESC",
            (event_id,),
        ).fetchall()
    return [_row_to_plan(row) for row in rows]


# =============================================================================
# TIMELINE TEMPLATES
# =============================================================================


def _row_to_template(row: sqlite3.Row) -> TimelineTemplate:
    return TimelineTemplate(
        id=row["id"],
        name=row["name"],
        event_type=row["event_type"],
        city_identifiers=json.loads(row["city_identifiers"]),
        is_default=bool(row["is_default"]),
        date_created=_parse_ts(row["date_created"]),
        date_modified=_parse_ts(row["date_modified"]),
    )


def upsert_template(conn: sqlite3.Connection, template: TimelineTemplate) -> None:
    conn.execute(
        """
        INSERT INTO timeline_templates (
            id, name, event_type, city_identifiers, is_default,
            date_created, date_modified
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            event_type = excluded.event_type,
            city_identifiers = excluded.city_identifiers,
            is_default = excluded.is_default,
            date_modified = excluded.date_modified
        """,
        (
            template.id,
            template.name,
            template.event_type,
            json.dumps(template.city_identifiers),
            int(template.is_default),
            _ts(template.date_created),
            _ts(template.date_modified),
        ),
    )


def clear_default_flags(conn: sqlite3.Connection, event_type: str, keep_id: str) -> int:
    """Unset is_default on every other template of this event type."""
    cursor = conn.execute(
        """
        UPDATE timeline_templates SET is_default = 0
        WHERE event_type = ? AND is_default = 1 AND id != ?
        """,
        (event_type, keep_id),
    )
    return cursor.rowcount


def delete_template(conn: sqlite3.Connection, template_id: str) -> None:
    conn.execute("DELETE FROM timeline_templates WHERE id = ?", (template_id,))


def fetch_template(conn: sqlite3.Connection, template_id: str) -> TimelineTemplate | None:
    row = conn.execute(
        "SELECT * FROM timeline_templates WHERE id = ?", (template_id,)
    ).fetchone()
    return _row_to_template(row) if row else None


def fetch_templates(
    conn: sqlite3.Connection, event_type: str | None = None, default_only: bool = False
) -> list[TimelineTemplate]:
    """Fetch templates, newest modification first."""
    clauses = []
    params: list = []
    if event_type is not None:
        clauses.append("event_type = ?")
        params.append(event_type)
    if default_only:
        clauses.append("is_default = 1")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM timeline_templates {where} ORDER BY date_modified DESC", params
    ).fetchall()
    return [_row_to_template(row) for row in rows]


# =============================================================================
# REMINDER PREFERENCES
# =============================================================================


def _row_to_preference(row: sqlite3.Row) -> ReminderPreference:
    return ReminderPreference(
        event_id=row["event_id"],
        offsets=[ReminderOffset(token) for token in json.loads(row["offsets"])],
        is_enabled=bool(row["is_enabled"]),
        last_scheduled_date=_parse_ts(row["last_scheduled_date"]),
    )


def fetch_preference(conn: sqlite3.Connection, event_id: str) -> ReminderPreference | None:
    row = conn.execute(
        "SELECT * FROM reminder_preferences WHERE event_id = ?", (event_id,)
    ).fetchone()
    return _row_to_preference(row) if row else None


def fetch_preferences(conn: sqlite3.Connection) -> list[ReminderPreference]:
    rows = conn.execute(
        "SELECT * FROM reminder_preferences ORDER BY last_scheduled_date DESC"
    ).fetchall()
    return [_row_to_preference(row) for row in rows]


def upsert_preference(conn: sqlite3.Connection, preference: ReminderPreference) -> None:
    conn.execute(
        """
        INSERT INTO reminder_preferences (event_id, offsets, is_enabled, last_scheduled_date)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(event_id) DO UPDATE SET
            offsets = excluded.offsets,
            is_enabled = excluded.is_enabled,
            last_scheduled_date = excluded.last_scheduled_date
        """,
        (
            preference.event_id,
            json.dumps([offset.value for offset in preference.offsets]),
            int(preference.is_enabled),
            _ts(preference.last_scheduled_date),
        ),
    )


def delete_preference(conn: sqlite3.Connection, event_id: str) -> None:
    conn.execute("DELETE FROM reminder_preferences WHERE event_id = ?", (event_id,))
