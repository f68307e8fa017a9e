"""
Plan/template validation and persistence tests.
"""

import json
import sqlite3

import pytest

from core import database
from core.errors import (
    EmptyPlanNameError,
    EmptyTemplateNameError,
    InvalidEventTypeError,
    InvalidTimezoneError,
    NoCitiesSelectedError,
)
from core.validation import validate_plan, validate_template, validate_zone_identifiers
from models.events import TimelineTemplate
from services.plans import TimelineService

CITIES = ["Asia/Tokyo", "Europe/Berlin", "America/New_York"]


class TestValidation:
    def test_plan_name_blank(self):
        with pytest.raises(EmptyPlanNameError):
            validate_plan("   ", CITIES)

    def test_plan_without_cities(self):
        with pytest.raises(NoCitiesSelectedError):
            validate_plan("Weekend", [])

    def test_template_checks_name_first(self):
        with pytest.raises(EmptyTemplateNameError):
            validate_template("", "", [])

    def test_template_checks_event_type_before_cities(self):
        with pytest.raises(InvalidEventTypeError):
            validate_template("Default", " ", [])

    def test_template_without_cities(self):
        with pytest.raises(NoCitiesSelectedError):
            validate_template("Default", "raid-hour", [])

    def test_zone_identifiers(self):
        validate_zone_identifiers(CITIES)
        with pytest.raises(InvalidTimezoneError):
            validate_zone_identifiers(["Asia/Tokyo", "Asia/Atlantis"])


class TestPlans:
    def test_save_and_fetch(self, conn, local_event):
        service = TimelineService(conn)
        plan = service.save_plan(
            "Chase the sun", local_event.id, local_event.name, local_event.event_type, CITIES
        )

        stored = service.get_plan(plan.id)
        assert stored.name == "Chase the sun"
        assert stored.city_identifiers == CITIES
        assert [p.id for p in service.plans_for_event(local_event.id)] == [plan.id]
        assert service.plans_for_event("other-event") == []

    def test_invalid_plan_is_not_saved(self, conn, local_event):
        service = TimelineService(conn)
        with pytest.raises(EmptyPlanNameError):
            service.save_plan("", local_event.id, local_event.name, local_event.event_type, CITIES)
        assert service.all_plans() == []

    def test_update_bumps_modified_date(self, conn, local_event):
        service = TimelineService(conn)
        plan = service.save_plan(
            "Chase the sun", local_event.id, local_event.name, local_event.event_type, CITIES
        )
        created = plan.date_modified

        service.update_plan(plan, "Chase the sun (short)", CITIES[:2])

        stored = service.get_plan(plan.id)
        assert stored.name == "Chase the sun (short)"
        assert stored.city_identifiers == CITIES[:2]
        assert stored.date_modified >= created
        assert stored.date_created == plan.date_created

    def test_delete(self, conn, local_event):
        service = TimelineService(conn)
        plan = service.save_plan(
            "Chase the sun", local_event.id, local_event.name, local_event.event_type, CITIES
        )
        service.delete_plan(plan)
        assert service.get_plan(plan.id) is None

    def test_city_identifiers_stored_as_json(self, conn, local_event):
        service = TimelineService(conn)
        plan = service.save_plan(
            "Chase the sun", local_event.id, local_event.name, local_event.event_type, CITIES
        )
        row = conn.execute(
            "SELECT city_identifiers FROM timeline_plans WHERE id = ?", (plan.id,)
        ).fetchone()
        assert json.loads(row["city_identifiers"]) == CITIES


class TestDefaultTemplates:
    def test_new_default_replaces_previous(self, conn):
        service = TimelineService(conn)
        first = service.save_template("Asia first", "raid-hour", CITIES, is_default=True)
        second = service.save_template("Europe first", "raid-hour", CITIES[1:], is_default=True)

        assert service.default_template("raid-hour").id == second.id
        assert service.get_template(first.id).is_default is False
        defaults = database.fetch_templates(conn, "raid-hour", default_only=True)
        assert len(defaults) == 1

    def test_other_event_types_untouched(self, conn):
        service = TimelineService(conn)
        raid = service.save_template("Raid", "raid-hour", CITIES, is_default=True)
        service.save_template("Community", "community-day", CITIES, is_default=True)

        assert service.default_template("raid-hour").id == raid.id

    def test_update_to_default_clears_others(self, conn):
        service = TimelineService(conn)
        first = service.save_template("One", "raid-hour", CITIES, is_default=True)
        second = service.save_template("Two", "raid-hour", CITIES, is_default=False)

        service.update_template(second, "Two", CITIES, is_default=True)

        assert service.default_template("raid-hour").id == second.id
        assert service.get_template(first.id).is_default is False

    def test_no_default(self, conn):
        service = TimelineService(conn)
        service.save_template("Plain", "raid-hour", CITIES)
        assert service.default_template("raid-hour") is None

    def test_schema_rejects_second_default(self, conn):
        """The partial unique index backs up the service-level rule."""
        service = TimelineService(conn)
        service.save_template("One", "raid-hour", CITIES, is_default=True)
        rogue = TimelineTemplate(
            name="Rogue", event_type="raid-hour", city_identifiers=CITIES, is_default=True
        )

        with pytest.raises(sqlite3.IntegrityError) as exc_info:
            with conn:
                database.upsert_template(conn, rogue)
        assert "UNIQUE" in str(exc_info.value)

    def test_template_validation(self, conn):
        service = TimelineService(conn)
        with pytest.raises(InvalidEventTypeError):
            service.save_template("Default", "", CITIES)
