"""
Export and import of timeline plans and templates.

Exports resolve each city identifier against the saved cities and emit a
versioned JSON document. Imports validate the document (fail fast, first
failure wins) and decode it into a plan or a template depending on whether
the document carries an eventID.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import ValidationError

from core.config import APP_VERSION, EXPORT_FORMAT_VERSION
from core.errors import (
    InvalidImportDataError,
    InvalidTimezoneError,
    UnsupportedVersionError,
)
from core.timezones import is_valid_zone
from core.validation import validate_template
from models.events import FavoriteCity, TimelinePlan, TimelineTemplate, utc_now
from models.export import ExportableCity, ExportableTimelinePlan

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class ImportResult:
    """Outcome of decoding an interchange document."""

    plan_name: str
    cities_count: int
    event_type: str
    is_template: bool
    plan: TimelinePlan | None = None
    template: TimelineTemplate | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def entity(self) -> TimelinePlan | TimelineTemplate:
        return self.template if self.is_template else self.plan

    @property
    def summary(self) -> str:
        kind = "template" if self.is_template else "plan"
        return f"Imported {kind}: {self.plan_name} with {self.cities_count} cities"


# =============================================================================
# EXPORT
# =============================================================================


def resolve_cities(identifiers: list[str], saved_cities: list[FavoriteCity]) -> list[FavoriteCity]:
    """
    Map timezone identifiers to saved cities, keeping identifier order.

    Identifiers without a saved city are skipped and logged; a partial export
    is allowed.
    """
    city_map = {city.time_zone_identifier: city for city in saved_cities}
    resolved = []
    for identifier in identifiers:
        city = city_map.get(identifier)
        if city is None:
            logger.warning("City not found for identifier: %s", identifier)
            continue
        resolved.append(city)
    return resolved


def build_document(
    name: str,
    event_type: str,
    city_identifiers: list[str],
    saved_cities: list[FavoriteCity],
    event_id: str | None = None,
    event_name: str | None = None,
    app_version: str = APP_VERSION,
    export_date: datetime | None = None,
) -> ExportableTimelinePlan:
    cities = resolve_cities(city_identifiers, saved_cities)
    return ExportableTimelinePlan(
        version=EXPORT_FORMAT_VERSION,
        plan_name=name,
        event_type=event_type,
        event_id=event_id,
        event_name=event_name,
        cities=[
            ExportableCity(name=city.name, time_zone_identifier=city.time_zone_identifier)
            for city in cities
        ],
        app_version=app_version,
        export_date=export_date or utc_now(),
    )


def serialize(document: ExportableTimelinePlan) -> bytes:
    """Encode as pretty-printed JSON with sorted keys. Absent fields are omitted."""
    payload = document.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, indent=2, sort_keys=True).encode("utf-8")


def export_plan(
    plan: TimelinePlan, saved_cities: list[FavoriteCity], app_version: str = APP_VERSION
) -> bytes:
    document = build_document(
        plan.name,
        plan.event_type,
        plan.city_identifiers,
        saved_cities,
        event_id=plan.event_id,
        event_name=plan.event_name,
        app_version=app_version,
    )
    logger.info("Exported plan: %s (%d cities)", plan.name, len(document.cities))
    return serialize(document)


def export_template(
    template: TimelineTemplate, saved_cities: list[FavoriteCity], app_version: str = APP_VERSION
) -> bytes:
    document = build_document(
        template.name,
        template.event_type,
        template.city_identifiers,
        saved_cities,
        app_version=app_version,
    )
    logger.info("Exported template: %s (%d cities)", template.name, len(document.cities))
    return serialize(document)


# =============================================================================
# IMPORT
# =============================================================================


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail["loc"]) or "document"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


def parse_document(data: bytes | str) -> ExportableTimelinePlan:
    """
    Decode and validate an interchange document.

    Validation order:
        1. version equals the current format version (no migration)
        2. document shape, then plan name is non-empty
        3. at least one city
        4. every timezone identifier resolves

    Raises:
        UnsupportedVersionError, InvalidImportDataError, InvalidTimezoneError
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidImportDataError("Document is not valid JSON") from e

    if not isinstance(raw, dict):
        raise InvalidImportDataError("Document must be a JSON object")

    version = raw.get("version")
    if version != EXPORT_FORMAT_VERSION:
        raise UnsupportedVersionError("" if version is None else str(version))

    try:
        document = ExportableTimelinePlan.model_validate(raw)
    except ValidationError as e:
        raise InvalidImportDataError(_describe_validation_error(e)) from e

    if not document.plan_name.strip():
        raise InvalidImportDataError("Plan name is empty")

    if not document.cities:
        raise InvalidImportDataError("No cities in plan")

    for city in document.cities:
        if not is_valid_zone(city.time_zone_identifier):
            raise InvalidTimezoneError(city.time_zone_identifier)

    return document


def import_document(data: bytes | str) -> ImportResult:
    """
    Decode a document into a TimelinePlan or TimelineTemplate (not persisted).

    Without eventID the document becomes a template, never marked default.
    With eventID it becomes a plan, and eventName is then required.
    """
    document = parse_document(data)
    identifiers = document.city_identifiers

    if document.is_template:
        validate_template(document.plan_name, document.event_type, identifiers)
        template = TimelineTemplate(
            name=document.plan_name,
            event_type=document.event_type,
            city_identifiers=identifiers,
            is_default=False,
        )
        return ImportResult(
            plan_name=document.plan_name,
            cities_count=len(identifiers),
            event_type=document.event_type,
            is_template=True,
            template=template,
        )

    if document.event_name is None:
        raise InvalidImportDataError("Missing event ID or name")

    plan = TimelinePlan(
        name=document.plan_name,
        event_id=document.event_id,
        event_name=document.event_name,
        event_type=document.event_type,
        city_identifiers=identifiers,
    )
    return ImportResult(
        plan_name=document.plan_name,
        cities_count=len(identifiers),
        event_type=document.event_type,
        is_template=False,
        plan=plan,
    )
