"""
Error types for timeline planning and reminder delivery.

Validation errors subclass ValueError so callers (and the API layer) can treat
them the same way as any other bad-input failure. Each carries a stable code
for the HTTP error payload.
"""


class TimelineError(ValueError):
    """Base class for user-displayable validation failures."""

    code = "VALIDATION_ERROR"
    message = "Invalid timeline data"

    def __init__(self, detail: str | None = None):
        self.detail = detail
        text = f"{self.message}: {detail}" if detail else self.message
        super().__init__(text)


class EmptyPlanNameError(TimelineError):
    code = "EMPTY_PLAN_NAME"
    message = "Plan name cannot be empty"


class EmptyTemplateNameError(TimelineError):
    code = "EMPTY_TEMPLATE_NAME"
    message = "Template name cannot be empty"


class NoCitiesSelectedError(TimelineError):
    code = "NO_CITIES_SELECTED"
    message = "Select at least one city"


class InvalidEventTypeError(TimelineError):
    code = "INVALID_EVENT_TYPE"
    message = "Event type cannot be empty"


class InvalidTimezoneError(TimelineError):
    code = "INVALID_TIMEZONE"
    message = "Invalid timezone identifier"

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(repr(identifier))


class UnsupportedVersionError(TimelineError):
    code = "UNSUPPORTED_VERSION"
    message = "Unsupported export version"

    def __init__(self, version: str):
        self.version = version
        super().__init__(repr(version))


class InvalidImportDataError(TimelineError):
    code = "INVALID_IMPORT_DATA"
    message = "Invalid import data"


class NotificationDeliveryError(Exception):
    """Raised by a notification gateway when the host scheduler rejects a call."""
