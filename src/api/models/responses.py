"""Pydantic request/response models for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "healthy" or "unhealthy"
    version: str
    database_available: bool
    timestamp: str  # ISO 8601 UTC
    error: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    details: list[str] = []


class ErrorCodes:
    """Error code constants."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# TIMELINE
# =============================================================================


class CityPayload(BaseModel):
    name: str
    time_zone_identifier: str


class TimelineRequest(BaseModel):
    event_id: str
    cities: list[CityPayload]
    viewer_timezone: str | None = None


class TimelineEntryResponse(BaseModel):
    city_identifier: str
    city_name: str
    start: datetime
    end: datetime
    viewer_start: datetime
    viewer_end: datetime
    viewer_label: str
    lane: int


class TimelineGapResponse(BaseModel):
    from_city: str
    to_city: str
    gap_seconds: int
    is_overlap: bool


class TimelineResponse(BaseModel):
    event_id: str
    viewer_timezone: str
    entries: list[TimelineEntryResponse]
    gaps: list[TimelineGapResponse]
    suggested_order: list[str]
    total_span_seconds: int
    active_playtime_seconds: int
    has_overlaps: bool


# =============================================================================
# PLANS AND TEMPLATES
# =============================================================================


class ImportResponse(BaseModel):
    id: str
    plan_name: str
    event_type: str
    cities_count: int
    is_template: bool
    summary: str


class TemplateResponse(BaseModel):
    id: str
    name: str
    event_type: str
    city_identifiers: list[str]
    is_default: bool


# =============================================================================
# REMINDERS
# =============================================================================


class ReminderRequest(BaseModel):
    offsets: list[str] = Field(default_factory=list)
    city_label: str | None = None


class ReminderResponse(BaseModel):
    event_id: str
    offsets: list[str]
    scheduled: list[str]


class ReconcileRequest(BaseModel):
    timezone: str | None = None


class ReconcileResponse(BaseModel):
    accepted: bool
    host_timezone: str
    rescheduled: list[str] = []
    skipped: list[str] = []
    missing: list[str] = []


class SweepResponse(BaseModel):
    expired: list[str]
    orphaned: list[str]
    removed: int
