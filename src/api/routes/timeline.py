"""Multi-city timeline endpoint."""

import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.dependencies import get_db, verify_api_key
from api.logging import tracked_request
from api.models.responses import (
    ErrorCodes,
    TimelineEntryResponse,
    TimelineGapResponse,
    TimelineRequest,
    TimelineResponse,
)
from core import database
from core.config import VIEWER_TIMEZONE
from models.events import FavoriteCity
from services.timeline import TimelineResult, assign_lanes, build_timeline

router = APIRouter(prefix="/v1")


def _to_response(result: TimelineResult) -> TimelineResponse:
    lanes = assign_lanes(result.entries)
    return TimelineResponse(
        event_id=result.event_id,
        viewer_timezone=result.viewer_zone,
        entries=[
            TimelineEntryResponse(
                city_identifier=entry.city_identifier,
                city_name=entry.city_name,
                start=entry.start,
                end=entry.end,
                viewer_start=entry.viewer_start,
                viewer_end=entry.viewer_end,
                viewer_label=entry.viewer_label,
                lane=lane,
            )
            for entry, lane in zip(result.entries, lanes)
        ],
        gaps=[
            TimelineGapResponse(
                from_city=gap.from_city,
                to_city=gap.to_city,
                gap_seconds=int(gap.gap.total_seconds()),
                is_overlap=gap.is_overlap,
            )
            for gap in result.gaps
        ],
        suggested_order=result.suggested_order,
        total_span_seconds=int(result.total_span.total_seconds()),
        active_playtime_seconds=int(result.active_playtime.total_seconds()),
        has_overlaps=result.has_overlaps,
    )


@router.post("/timeline", response_model=TimelineResponse)
async def build_timeline_endpoint(
    request: Request,
    body: TimelineRequest,
    conn: sqlite3.Connection = Depends(get_db),
    _api_key: str = Depends(verify_api_key),
):
    """Build the chronological schedule of a stored event across cities."""
    with tracked_request(conn, request, "/v1/timeline") as request_log:
        event = database.fetch_event(conn, body.event_id)
        if event is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "error": "Event not found",
                    "code": ErrorCodes.NOT_FOUND,
                    "details": [body.event_id],
                },
            )

        cities = [
            FavoriteCity(name=city.name, time_zone_identifier=city.time_zone_identifier)
            for city in body.cities
        ]
        result = build_timeline(event, cities, body.viewer_timezone or VIEWER_TIMEZONE)
        if result.has_overlaps:
            for gap in result.overlaps:
                request_log.details.append(
                    ("warning", f"{gap.from_city} overlaps {gap.to_city}")
                )
        return _to_response(result)
