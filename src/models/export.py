"""
Portable interchange document for timeline plans and templates.

Keys on the wire are camelCase. The presence of eventID is what tells a plan
export apart from a template export.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from core.config import APP_VERSION, EXPORT_FORMAT_VERSION


class ExportableCity(BaseModel):
    """City entry in an exported plan."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    time_zone_identifier: str = Field(alias="timeZoneIdentifier")


class ExportableTimelinePlan(BaseModel):
    """Versioned export of a TimelinePlan or TimelineTemplate."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = EXPORT_FORMAT_VERSION
    plan_name: str = Field(alias="planName")
    event_type: str = Field(alias="eventType")
    event_id: str | None = Field(default=None, alias="eventID")
    event_name: str | None = Field(default=None, alias="eventName")
    cities: list[ExportableCity]
    app_version: str = Field(default=APP_VERSION, alias="appVersion")
    export_date: datetime | None = Field(default=None, alias="exportDate")

    @property
    def is_template(self) -> bool:
        return self.event_id is None

    @property
    def city_identifiers(self) -> list[str]:
        return [city.time_zone_identifier for city in self.cities]
