"""
Plan and template validation.
"""

from core.errors import (
    EmptyPlanNameError,
    EmptyTemplateNameError,
    InvalidEventTypeError,
    InvalidTimezoneError,
    NoCitiesSelectedError,
)
from core.timezones import is_valid_zone


def validate_plan(name: str, city_identifiers: list[str]) -> None:
    """
    Validate plan data before it is saved.

    Raises:
        EmptyPlanNameError: name is empty after trimming
        NoCitiesSelectedError: no city identifiers given
    """
    if not (name or "").strip():
        raise EmptyPlanNameError()
    if not city_identifiers:
        raise NoCitiesSelectedError()


def validate_template(name: str, event_type: str, city_identifiers: list[str]) -> None:
    """
    Validate template data before it is saved.

    Checks run in order: name, event type, cities.
    """
    if not (name or "").strip():
        raise EmptyTemplateNameError()
    if not (event_type or "").strip():
        raise InvalidEventTypeError()
    if not city_identifiers:
        raise NoCitiesSelectedError()


def validate_zone_identifiers(city_identifiers: list[str]) -> None:
    """Raise InvalidTimezoneError for the first identifier that does not resolve."""
    for identifier in city_identifiers:
        if not is_valid_zone(identifier):
            raise InvalidTimezoneError(identifier)


def dedupe_identifiers(city_identifiers: list[str]) -> list[str]:
    """Drop repeated identifiers, keeping first-seen order."""
    return list(dict.fromkeys(city_identifiers))
