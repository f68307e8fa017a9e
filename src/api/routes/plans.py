"""Plan and template export/import endpoints."""

import re
import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response

from api.dependencies import get_db, get_timeline_service, verify_api_key
from api.logging import tracked_request
from api.models.responses import ErrorCodes, ImportResponse, TemplateResponse
from core.config import MAX_IMPORT_SIZE_BYTES
from services.plans import TimelineService

router = APIRouter(prefix="/v1")


def export_filename(name: str) -> str:
    """Safe download filename for an exported plan."""
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_") or "timeline"
    return f"{stem}.json"


def _not_found(kind: str, identifier: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "error": f"{kind} not found",
            "code": ErrorCodes.NOT_FOUND,
            "details": [identifier],
        },
    )


def _json_attachment(content: bytes, name: str) -> Response:
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(name)}"'},
    )


@router.get("/plans/{plan_id}/export")
async def export_plan_endpoint(
    plan_id: str,
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    service: TimelineService = Depends(get_timeline_service),
    _api_key: str = Depends(verify_api_key),
):
    """Export a saved plan as an interchange document."""
    with tracked_request(conn, request, "/v1/plans/export"):
        plan = service.get_plan(plan_id)
        if plan is None:
            raise _not_found("Plan", plan_id)
        return _json_attachment(service.export_plan(plan), plan.name)


@router.get("/templates/{template_id}/export")
async def export_template_endpoint(
    template_id: str,
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    service: TimelineService = Depends(get_timeline_service),
    _api_key: str = Depends(verify_api_key),
):
    """Export a saved template (no event fields) as an interchange document."""
    with tracked_request(conn, request, "/v1/templates/export"):
        template = service.get_template(template_id)
        if template is None:
            raise _not_found("Template", template_id)
        return _json_attachment(service.export_template(template), template.name)


@router.post("/plans/import", response_model=ImportResponse)
async def import_plan_endpoint(
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    service: TimelineService = Depends(get_timeline_service),
    _api_key: str = Depends(verify_api_key),
):
    """
    Import an interchange document from the request body.

    Documents with an eventID become plans; without one, templates.
    """
    with tracked_request(conn, request, "/v1/plans/import") as request_log:
        content = await request.body()
        request_log.payload_size_bytes = len(content)

        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error": "No document provided",
                    "code": ErrorCodes.INVALID_REQUEST,
                    "details": [],
                },
            )

        if len(content) > MAX_IMPORT_SIZE_BYTES:
            max_kb = MAX_IMPORT_SIZE_BYTES // 1024
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail={
                    "error": f"Document exceeds maximum size of {max_kb} KB",
                    "code": ErrorCodes.PAYLOAD_TOO_LARGE,
                    "details": [f"Document size: {len(content) / 1024:.1f} KB"],
                },
            )

        result = service.import_plan(content)
        request_log.details.append(("info", result.summary))
        return ImportResponse(
            id=result.entity.id,
            plan_name=result.plan_name,
            event_type=result.event_type,
            cities_count=result.cities_count,
            is_template=result.is_template,
            summary=result.summary,
        )


@router.get("/templates/default/{event_type}", response_model=TemplateResponse)
async def default_template_endpoint(
    event_type: str,
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    service: TimelineService = Depends(get_timeline_service),
    _api_key: str = Depends(verify_api_key),
):
    """The default template for an event type."""
    with tracked_request(conn, request, "/v1/templates/default"):
        template = service.default_template(event_type)
        if template is None:
            raise _not_found("Default template", event_type)
        return TemplateResponse(
            id=template.id,
            name=template.name,
            event_type=template.event_type,
            city_identifiers=template.city_identifiers,
            is_default=template.is_default,
        )
