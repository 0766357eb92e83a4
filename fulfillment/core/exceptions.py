"""Domain exceptions for the fulfillment core.

Services raise these; endpoints translate them into HTTP responses.
Pricing "no match" is not an exception: the matcher returns None.
"""
from typing import Any, Optional


class FulfillmentError(Exception):
    """Base class for business-rule violations surfaced to the caller."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FulfillmentError):
    """Missing or out-of-range input, rejected before any state change."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(FulfillmentError):
    """Referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class StateConflictError(FulfillmentError):
    """Entity is not in the state required by the requested transition."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class BestEffortFailure(Exception):
    """A side effect failed; logged only, never raised to a caller."""

    def __init__(self, task_name: str, cause: BaseException):
        super().__init__(f"{task_name} failed: {cause}")
        self.task_name = task_name
        self.cause = cause


def error_detail(exc: FulfillmentError) -> str:
    """Caller-facing detail string, prefixed by the field for validation errors."""
    if isinstance(exc, ValidationError) and exc.field:
        return f"{exc.field}: {exc.message}"
    return exc.message
