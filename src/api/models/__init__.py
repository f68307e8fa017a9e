"""API Pydantic models."""

from .responses import (
    CityPayload,
    ErrorCodes,
    ErrorResponse,
    HealthResponse,
    ImportResponse,
    ReconcileRequest,
    ReconcileResponse,
    ReminderRequest,
    ReminderResponse,
    SweepResponse,
    TemplateResponse,
    TimelineRequest,
    TimelineResponse,
)

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "ErrorCodes",
    "CityPayload",
    "TimelineRequest",
    "TimelineResponse",
    "ImportResponse",
    "TemplateResponse",
    "ReminderRequest",
    "ReminderResponse",
    "ReconcileRequest",
    "ReconcileResponse",
    "SweepResponse",
]
