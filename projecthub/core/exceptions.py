"""
Domain error taxonomy.

Every rejection raised by the access and invariant layer is one of the
categories below. The HTTP layer maps them to status codes in
``exception_handlers``; nothing in the domain layer depends on FastAPI.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Error codes surfaced to clients."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DenyReason(str, Enum):
    """The two categories of access denial."""
    MISSING_ROLE = "missing_role"
    NOT_OWNER = "not_owner"


class AppError(Exception):
    """
    Base class for categorized application errors.

    Attributes:
        message: Human readable description of the failed rule.
        errors: Optional structured details (field names, limits, ...).
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(AppError):
    """Malformed or out-of-range input for a specific field."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        constraint: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        if errors is None and field is not None:
            errors = [{"field": field, "constraint": constraint}]
        super().__init__(message, errors)
        self.field = field
        self.constraint = constraint


class NotFoundError(AppError):
    """A referenced entity does not exist."""

    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, resource: str, field: Optional[str] = None):
        errors = [{"field": field}] if field else None
        super().__init__(f"{resource} not found", errors)
        self.resource = resource
        self.field = field


class ForbiddenError(AppError):
    """Role or ownership denial."""

    code = ErrorCode.FORBIDDEN
    status_code = 403

    def __init__(self, message: str, reason: DenyReason):
        super().__init__(message, [{"reason": reason.value}])
        self.reason = reason


class ConflictError(AppError):
    """The entity's current state conflicts with the requested transition."""

    code = ErrorCode.CONFLICT
    status_code = 409

    def __init__(self, message: str, condition: str, **details: Any):
        super().__init__(message, [{"condition": condition, **details}])
        self.condition = condition
        self.details = details
