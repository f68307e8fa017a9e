"""
Timeline plan and template management.

Plans tie a city selection to one event instance; templates tie one to an
event type. At most one template per event type may be the default: writing a
default template clears the flag on every other template of that type in the
same transaction.
"""

import logging
import sqlite3
import threading

from core import database
from core.config import APP_VERSION
from core.validation import validate_plan, validate_template
from models.events import TimelinePlan, TimelineTemplate, utc_now
from services.export import ImportResult, export_plan, export_template, import_document

logger = logging.getLogger(__name__)

# Serializes template writes within the process; SQLite serializes across processes
_template_write_lock = threading.Lock()


class TimelineService:
    """Plan/template CRUD, default-template invariant and import/export."""

    def __init__(self, conn: sqlite3.Connection, app_version: str = APP_VERSION):
        self.conn = conn
        self.app_version = app_version

    # =========================================================================
    # PLANS
    # =========================================================================

    def plans_for_event(self, event_id: str) -> list[TimelinePlan]:
        return database.fetch_plans(self.conn, event_id)

    def all_plans(self) -> list[TimelinePlan]:
        return database.fetch_plans(self.conn)

    def get_plan(self, plan_id: str) -> TimelinePlan | None:
        return database.fetch_plan(self.conn, plan_id)

    def save_plan(
        self,
        name: str,
        event_id: str,
        event_name: str,
        event_type: str,
        city_identifiers: list[str],
    ) -> TimelinePlan:
        validate_plan(name, city_identifiers)
        plan = TimelinePlan(
            name=name,
            event_id=event_id,
            event_name=event_name,
            event_type=event_type,
            city_identifiers=list(city_identifiers),
        )
        with self.conn:
            database.insert_plan(self.conn, plan)
        logger.info("Saved plan: %s with %d cities", name, len(city_identifiers))
        return plan

    def update_plan(self, plan: TimelinePlan, name: str, city_identifiers: list[str]) -> TimelinePlan:
        validate_plan(name, city_identifiers)
        plan.name = name
        plan.city_identifiers = list(city_identifiers)
        plan.date_modified = utc_now()
        with self.conn:
            database.update_plan(self.conn, plan)
        logger.info("Updated plan: %s", name)
        return plan

    def delete_plan(self, plan: TimelinePlan) -> None:
        with self.conn:
            database.delete_plan(self.conn, plan.id)
        logger.info("Deleted plan: %s", plan.name)

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    def templates(self) -> list[TimelineTemplate]:
        return database.fetch_templates(self.conn)

    def get_template(self, template_id: str) -> TimelineTemplate | None:
        return database.fetch_template(self.conn, template_id)

    def default_template(self, event_type: str) -> TimelineTemplate | None:
        """The default template for an event type, if one is set."""
        defaults = database.fetch_templates(self.conn, event_type, default_only=True)
        return defaults[0] if defaults else None

    def upsert_default_template(self, template: TimelineTemplate) -> TimelineTemplate:
        """
        Persist a template, enforcing one default per event type.

        When template.is_default is set, every other default of the same event
        type is cleared in the same transaction as the write, so no reader ever
        sees two defaults for one type.
        """
        with _template_write_lock, self.conn:
            if template.is_default:
                cleared = database.clear_default_flags(
                    self.conn, template.event_type, template.id
                )
                if cleared:
                    logger.info(
                        "Cleared %d previous default template(s) for %s",
                        cleared,
                        template.event_type,
                    )
            database.upsert_template(self.conn, template)
        return template

    def save_template(
        self,
        name: str,
        event_type: str,
        city_identifiers: list[str],
        is_default: bool = False,
    ) -> TimelineTemplate:
        validate_template(name, event_type, city_identifiers)
        template = TimelineTemplate(
            name=name,
            event_type=event_type,
            city_identifiers=list(city_identifiers),
            is_default=is_default,
        )
        self.upsert_default_template(template)
        logger.info("Saved template: %s for event type: %s", name, event_type)
        return template

    def update_template(
        self,
        template: TimelineTemplate,
        name: str,
        city_identifiers: list[str],
        is_default: bool,
    ) -> TimelineTemplate:
        validate_template(name, template.event_type, city_identifiers)
        template.name = name
        template.city_identifiers = list(city_identifiers)
        template.is_default = is_default
        template.date_modified = utc_now()
        self.upsert_default_template(template)
        logger.info("Updated template: %s", name)
        return template

    def delete_template(self, template: TimelineTemplate) -> None:
        with self.conn:
            database.delete_template(self.conn, template.id)
        logger.info("Deleted template: %s", template.name)

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    def export_plan(self, plan: TimelinePlan) -> bytes:
        return export_plan(plan, database.fetch_cities(self.conn), self.app_version)

    def export_template(self, template: TimelineTemplate) -> bytes:
        return export_template(template, database.fetch_cities(self.conn), self.app_version)

    def import_plan(self, data: bytes | str) -> ImportResult:
        """Decode a document and save the resulting plan or template."""
        result = import_document(data)
        if result.is_template:
            self.upsert_default_template(result.template)
        else:
            with self.conn:
                database.insert_plan(self.conn, result.plan)
        logger.info(result.summary)
        return result
