"""
Pytest configuration and shared fixtures.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.database import create_schema, get_connection  # noqa: E402
from core.errors import NotificationDeliveryError  # noqa: E402
from models.events import Event  # noqa: E402
from services.notifications import PendingNotification  # noqa: E402

UTC = timezone.utc


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeGateway:
    """In-memory notification gateway recording every call."""

    def __init__(self):
        self.scheduled: dict[str, PendingNotification] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    async def schedule(self, identifier, content, trigger_at):
        self.calls.append(("schedule", identifier))
        if "schedule" in self.fail_on:
            raise NotificationDeliveryError("Notification permission denied")
        self.scheduled[identifier] = PendingNotification(identifier, trigger_at, content)

    async def cancel(self, identifiers):
        self.calls.append(("cancel", tuple(identifiers)))
        if "cancel" in self.fail_on:
            raise NotificationDeliveryError("Notification service unavailable")
        for identifier in identifiers:
            self.scheduled.pop(identifier, None)

    async def list_pending(self):
        if "list" in self.fail_on:
            raise NotificationDeliveryError("Notification service unavailable")
        return list(self.scheduled.values())


@pytest.fixture
def conn():
    """In-memory database with the full schema."""
    connection = get_connection(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def clock():
    """Clock fixed at midnight UTC on the day of the sample events."""
    return FixedClock(datetime(2025, 7, 15, 0, 0, tzinfo=UTC))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def global_event():
    """Raid Hour at the same instant everywhere: 14:00-17:00 UTC."""
    return Event(
        id="raid-hour-2025-07-15",
        name="Raid Hour",
        event_type="raid-hour",
        heading="Raid Hour",
        start_time=datetime(2025, 7, 15, 14, 0, tzinfo=UTC),
        end_time=datetime(2025, 7, 15, 17, 0, tzinfo=UTC),
        is_global_time=True,
    )


@pytest.fixture
def local_event():
    """Community Day at 14:00-17:00 local time in every city."""
    return Event(
        id="community-day-2025-07-15",
        name="July Community Day",
        event_type="community-day",
        heading="Community Day",
        start_time=datetime(2025, 7, 15, 14, 0, tzinfo=UTC),
        end_time=datetime(2025, 7, 15, 17, 0, tzinfo=UTC),
        is_global_time=False,
    )
