"""
Reminder identifiers, content and scheduling tests.
"""

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from models.events import ReminderOffset
from services.notifications import (
    NotificationContent,
    ReminderScheduler,
    SQLiteNotificationGateway,
    build_content,
    decode_identifier,
    encode_identifier,
    identifiers_for_event,
)

UTC = timezone.utc


class TestIdentifiers:
    def test_encode(self):
        assert encode_identifier("abc", ReminderOffset.THIRTY_MINUTES) == "event::abc::thirtyMinutes"

    def test_encode_accepts_token(self):
        assert encode_identifier("abc", "oneDay") == "event::abc::oneDay"

    def test_decode_reverses_encode(self):
        for offset in ReminderOffset:
            key = decode_identifier(encode_identifier("raid-42", offset))
            assert key.event_id == "raid-42"
            assert key.offset is offset

    def test_event_id_containing_delimiter(self):
        key = decode_identifier(encode_identifier("a::b", ReminderOffset.ONE_HOUR))
        assert key.event_id == "a::b"
        assert key.offset is ReminderOffset.ONE_HOUR

    @pytest.mark.parametrize(
        "identifier",
        ["system-update", "event::", "event::abc", "reminder::abc::oneHour", "event::::oneHour"],
    )
    def test_foreign_identifiers_do_not_decode(self, identifier):
        assert decode_identifier(identifier) is None

    def test_unknown_offset_token_keeps_event_id(self):
        key = decode_identifier("event::abc::twoWeeks")
        assert key.event_id == "abc"
        assert key.offset is None

    def test_identifiers_for_event_cover_every_offset(self):
        identifiers = identifiers_for_event("abc")
        assert len(identifiers) == len(ReminderOffset)
        assert identifiers[0] == "event::abc::fifteenMinutes"
        assert identifiers[-1] == "event::abc::oneDay"


class TestContent:
    def test_title_by_event_type(self, global_event):
        content = build_content(global_event, ReminderOffset.ONE_HOUR)
        assert content.title == "Raid Hour Starting Soon!"

    def test_title_falls_back_to_heading(self, global_event):
        global_event.event_type = "research-breakthrough"
        global_event.heading = "Research Breakthrough"
        content = build_content(global_event, ReminderOffset.ONE_HOUR)
        assert content.title == "Research Breakthrough Starting Soon!"

    def test_body_for_global_event(self, global_event):
        content = build_content(global_event, ReminderOffset.FIFTEEN_MINUTES)
        assert content.body == "Raid Hour starts in 15 min"

    def test_body_for_local_event(self, local_event):
        content = build_content(local_event, ReminderOffset.THREE_HOURS)
        assert content.body == "July Community Day starts globally in 3 hours"

    def test_body_with_city(self, local_event):
        content = build_content(local_event, ReminderOffset.ONE_DAY, city_label="Tokyo")
        assert content.body == "July Community Day starts in Tokyo in 1 day"

    def test_metadata(self, local_event):
        content = build_content(local_event, ReminderOffset.ONE_HOUR)
        assert content.category == "EVENT_REMINDER"
        assert content.thread_id == "community-day"
        assert content.user_info["eventID"] == local_event.id
        assert content.user_info["offset"] == "oneHour"
        assert content.user_info["isGlobalTime"] is False

    def test_deterministic(self, local_event):
        assert build_content(local_event, ReminderOffset.ONE_HOUR, "Tokyo") == build_content(
            local_event, ReminderOffset.ONE_HOUR, "Tokyo"
        )


class TestReminderScheduler:
    def test_schedules_in_declaration_order(self, gateway, clock, global_event):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        scheduled = asyncio.run(
            scheduler.schedule(global_event, [ReminderOffset.ONE_HOUR, ReminderOffset.FIFTEEN_MINUTES])
        )

        assert scheduled == [
            "event::raid-hour-2025-07-15::fifteenMinutes",
            "event::raid-hour-2025-07-15::oneHour",
        ]
        trigger = gateway.scheduled["event::raid-hour-2025-07-15::fifteenMinutes"].trigger_at
        assert trigger == datetime(2025, 7, 15, 13, 45, tzinfo=UTC)

    def test_past_trigger_is_skipped(self, gateway, clock, global_event):
        """The one-day reminder would have fired yesterday."""
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        scheduled = asyncio.run(
            scheduler.schedule(global_event, [ReminderOffset.ONE_DAY, ReminderOffset.ONE_HOUR])
        )

        assert scheduled == ["event::raid-hour-2025-07-15::oneHour"]
        assert "event::raid-hour-2025-07-15::oneDay" not in gateway.scheduled

    def test_empty_offsets_use_default(self, gateway, clock, global_event):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        scheduled = asyncio.run(scheduler.schedule(global_event, []))
        assert scheduled == ["event::raid-hour-2025-07-15::thirtyMinutes"]

    def test_duplicate_offsets_scheduled_once(self, gateway, clock, global_event):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        scheduled = asyncio.run(scheduler.schedule(global_event, ["oneHour", "oneHour"]))
        assert scheduled == ["event::raid-hour-2025-07-15::oneHour"]
        assert len([c for c in gateway.calls if c[0] == "schedule"]) == 1

    def test_ended_event_is_skipped(self, gateway, clock, global_event):
        clock.now = datetime(2025, 7, 15, 18, 0, tzinfo=UTC)
        scheduler = ReminderScheduler(gateway, "UTC", clock)

        assert asyncio.run(scheduler.schedule(global_event, [ReminderOffset.ONE_HOUR])) == []
        assert gateway.calls == []

    def test_local_event_uses_host_zone(self, gateway, clock, local_event):
        scheduler = ReminderScheduler(gateway, "Asia/Tokyo", clock)
        asyncio.run(scheduler.schedule(local_event, [ReminderOffset.THIRTY_MINUTES]))

        trigger = gateway.scheduled["event::community-day-2025-07-15::thirtyMinutes"].trigger_at
        assert trigger == datetime(2025, 7, 15, 4, 30, tzinfo=UTC)

    def test_city_label_in_body(self, gateway, clock, local_event):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        asyncio.run(scheduler.schedule(local_event, ["oneHour"], city_label="Berlin"))

        content = gateway.scheduled["event::community-day-2025-07-15::oneHour"].content
        assert content.body == "July Community Day starts in Berlin in 1 hour"

    def test_gateway_failure_is_logged_not_raised(self, gateway, clock, global_event, caplog):
        gateway.fail_on.add("schedule")
        scheduler = ReminderScheduler(gateway, "UTC", clock)

        with caplog.at_level(logging.ERROR, logger="services.notifications"):
            scheduled = asyncio.run(scheduler.schedule(global_event, ["oneHour", "fifteenMinutes"]))

        assert scheduled == []
        assert "permission denied" in caplog.text

    def test_cancel_removes_every_offset(self, gateway, clock, global_event):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        asyncio.run(scheduler.schedule(global_event, ["oneHour", "thirtyMinutes"]))

        asyncio.run(scheduler.cancel(global_event.id))

        assert gateway.scheduled == {}
        assert gateway.calls[-1] == ("cancel", tuple(identifiers_for_event(global_event.id)))

    def test_cancel_is_idempotent(self, gateway, clock):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        asyncio.run(scheduler.cancel("never-scheduled"))
        asyncio.run(scheduler.cancel("never-scheduled"))
        assert gateway.scheduled == {}

    def test_cancel_failure_is_not_raised(self, gateway, clock):
        gateway.fail_on.add("cancel")
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        asyncio.run(scheduler.cancel("abc"))

    def test_pending_for_event(self, gateway, clock, global_event, local_event):
        scheduler = ReminderScheduler(gateway, "UTC", clock)
        asyncio.run(scheduler.schedule(global_event, ["oneHour"]))
        asyncio.run(scheduler.schedule(local_event, ["oneHour", "fifteenMinutes"]))

        pending = asyncio.run(scheduler.pending_for_event(local_event.id))
        assert len(pending) == 2


class TestSQLiteNotificationGateway:
    content = NotificationContent(
        title="Raid Hour Starting Soon!",
        body="Raid Hour starts in 1 hour",
        thread_id="raid-hour",
        user_info={"eventID": "r1"},
    )

    def test_schedule_and_list(self, conn):
        gateway = SQLiteNotificationGateway(conn)
        trigger = datetime(2025, 7, 15, 13, 0, tzinfo=UTC)
        asyncio.run(gateway.schedule("event::r1::oneHour", self.content, trigger))

        pending = asyncio.run(gateway.list_pending())
        assert len(pending) == 1
        assert pending[0].identifier == "event::r1::oneHour"
        assert pending[0].trigger_at == trigger
        assert pending[0].content == self.content

    def test_reschedule_replaces(self, conn):
        gateway = SQLiteNotificationGateway(conn)
        asyncio.run(
            gateway.schedule("event::r1::oneHour", self.content, datetime(2025, 7, 15, 13, tzinfo=UTC))
        )
        asyncio.run(
            gateway.schedule("event::r1::oneHour", self.content, datetime(2025, 7, 15, 14, tzinfo=UTC))
        )

        pending = asyncio.run(gateway.list_pending())
        assert len(pending) == 1
        assert pending[0].trigger_at.hour == 14

    def test_cancel_unknown_is_noop(self, conn):
        gateway = SQLiteNotificationGateway(conn)
        asyncio.run(gateway.cancel(["event::missing::oneHour"]))
        asyncio.run(gateway.cancel([]))
        assert asyncio.run(gateway.list_pending()) == []

    def test_due(self, conn):
        gateway = SQLiteNotificationGateway(conn)
        asyncio.run(
            gateway.schedule("event::r1::oneHour", self.content, datetime(2025, 7, 15, 13, tzinfo=UTC))
        )
        asyncio.run(
            gateway.schedule("event::r2::oneHour", self.content, datetime(2025, 7, 16, 13, tzinfo=UTC))
        )

        due = asyncio.run(gateway.due(datetime(2025, 7, 15, 13, 0, tzinfo=UTC)))
        assert [p.identifier for p in due] == ["event::r1::oneHour"]

    def test_works_with_scheduler(self, conn, clock, global_event):
        scheduler = ReminderScheduler(SQLiteNotificationGateway(conn), "UTC", clock)
        asyncio.run(scheduler.schedule(global_event, ["oneHour", "threeHours"]))

        rows = conn.execute("SELECT identifier FROM scheduled_notifications ORDER BY trigger_at").fetchall()
        assert [row["identifier"] for row in rows] == [
            "event::raid-hour-2025-07-15::threeHours",
            "event::raid-hour-2025-07-15::oneHour",
        ]
