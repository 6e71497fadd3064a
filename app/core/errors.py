import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ApprovalError(ValueError):
    """Base class for failures raised by the approval services."""


class ApprovalValidationError(ApprovalError):
    """Input was malformed or incomplete; nothing was touched."""


class MissingReason(ApprovalValidationError):
    def __init__(self, operation: str):
        super().__init__(f"A reason is required to {operation}")
        self.operation = operation


class EmptySelection(ApprovalValidationError):
    def __init__(self, field: str):
        super().__init__(f"{field} must contain at least one id")
        self.field = field


class NoMatchingEntries(ApprovalError):
    """The status predicate matched zero rows."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class EntityNotFound(ApprovalError):
    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidTransition(ApprovalError):
    """The row exists but its current status does not allow the change."""


def to_http_exception(exc: ApprovalError) -> HTTPException:
    """Validation -> 422, missing row -> 404, state conflicts and empty matches -> 409."""
    if isinstance(exc, ApprovalValidationError):
        status_code = 422
        logger.warning("Approval request rejected", extra={"status_code": status_code, "error": str(exc)})
    elif isinstance(exc, EntityNotFound):
        status_code = 404
        logger.info("Approval target not found", extra={"status_code": status_code, "error": str(exc)})
    else:
        status_code = 409
        logger.info("Approval request conflicts with current state", extra={"status_code": status_code, "error": str(exc)})
    return HTTPException(status_code=status_code, detail=str(exc))
