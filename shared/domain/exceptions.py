"""
Rich Domain Exceptions

Exception hierarchy for the assignment and capacity engine.
Every error carries an error code, an HTTP status and a structured context
so the caller can explain exactly which rule or entity blocked the request.

None of these are retried: the caller shows the message and a person fixes the input.
"""

from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes for domain exceptions."""

    # Input errors
    DOMAIN_VALIDATION_ERROR = "DOMAIN_VALIDATION_ERROR"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Admission errors
    ASSIGNMENT_CONFLICT = "ASSIGNMENT_CONFLICT"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"

    # Caller identity
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"

    # Collaborators
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    EXTERNAL_SERVICE_TIMEOUT = "EXTERNAL_SERVICE_TIMEOUT"


class DomainException(Exception):
    """
    Base class for all domain exceptions.

    Subclasses pick their default error code and HTTP status as class attributes.
    """

    error_code: ErrorCode = ErrorCode.DOMAIN_VALIDATION_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            error_code: Overrides the class error code
            status_code: Overrides the class HTTP status
            context: Structured details (conflicting entity, counts, field)
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.context = {k: v for k, v in (context or {}).items() if v is not None}
        self.cause = cause

        logger.warning(
            "Domain exception raised",
            error_code=self.error_code.value,
            message=message,
            status_code=self.status_code,
            context=self.context,
            exception_type=type(self).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.error_code.value,
            "message": self.message,
            "type": type(self).__name__,
        }
        if self.context:
            result["context"] = self.context
        return result


class ValidationError(DomainException):
    """Malformed input or a missing required field."""

    error_code = ErrorCode.DOMAIN_VALIDATION_ERROR
    status_code = 400

    def __init__(self, message: str, field: str | None = None, value: Any = None, **kwargs):
        context = {
            **kwargs.pop("context", {}),
            "field": field,
            "value": None if value is None else str(value),
        }
        super().__init__(message, context=context, **kwargs)
        self.field = field


class NotFoundError(DomainException):
    """A referenced entity id does not exist."""

    error_code = ErrorCode.ENTITY_NOT_FOUND
    status_code = 404

    def __init__(self, entity_type: str, entity_id: str | None = None, **kwargs):
        message = kwargs.pop("message", None) or f"{entity_type} not found"
        if entity_id:
            message = f"{message} (ID: {entity_id})"
        context = {**kwargs.pop("context", {}), "entity_type": entity_type, "entity_id": entity_id}
        super().__init__(message, context=context, **kwargs)
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictError(DomainException):
    """
    Existing data already owns what the request asks for.

    The conflicting subject or instructor is exposed so the caller can name it.
    """

    error_code = ErrorCode.ASSIGNMENT_CONFLICT
    status_code = 409

    def __init__(
        self,
        message: str,
        conflicting_subject: str | None = None,
        conflicting_instructor: str | None = None,
        **kwargs,
    ):
        context = {
            **kwargs.pop("context", {}),
            "conflicting_subject": conflicting_subject,
            "conflicting_instructor": conflicting_instructor,
        }
        super().__init__(message, context=context, **kwargs)
        self.conflicting_subject = conflicting_subject
        self.conflicting_instructor = conflicting_instructor


class ScheduleConflictError(ConflictError):
    """A schedule overlaps another assignment of the same section."""

    error_code = ErrorCode.SCHEDULE_CONFLICT


class CapacityError(DomainException):
    """A fixed ceiling (students or instructors per section) is reached."""

    error_code = ErrorCode.CAPACITY_EXCEEDED
    status_code = 409

    def __init__(self, message: str, current: int, maximum: int, **kwargs):
        context = {**kwargs.pop("context", {}), "current": current, "maximum": maximum}
        super().__init__(message, context=context, **kwargs)
        self.current = current
        self.maximum = maximum


class InvalidStateError(DomainException):
    """The record's current state forbids the operation."""

    error_code = ErrorCode.INVALID_STATE_TRANSITION
    status_code = 409

    def __init__(self, message: str, current_state: str | None = None, **kwargs):
        context = {**kwargs.pop("context", {}), "current_state": current_state}
        super().__init__(message, context=context, **kwargs)
        self.current_state = current_state


class ExternalServiceError(DomainException):
    """A collaborator call failed or timed out."""

    error_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    status_code = 503

    def __init__(self, service_name: str, message: str | None = None, timeout: bool = False, **kwargs):
        if timeout:
            kwargs.setdefault("error_code", ErrorCode.EXTERNAL_SERVICE_TIMEOUT)
        outcome = "timed out" if timeout else "returned an error"
        context = {**kwargs.pop("context", {}), "service_name": service_name, "timeout": timeout}
        super().__init__(message or f"{service_name} service {outcome}", context=context, **kwargs)
        self.service_name = service_name
        self.timeout = timeout


class AuthenticationError(DomainException):
    """Missing, malformed or expired credentials."""

    error_code = ErrorCode.AUTHENTICATION_FAILED
    status_code = 401

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(DomainException):
    """The caller is authenticated but lacks the required role."""

    error_code = ErrorCode.AUTHORIZATION_DENIED
    status_code = 403

    def __init__(
        self,
        message: str = "Authorization denied",
        resource: str | None = None,
        action: str | None = None,
        **kwargs,
    ):
        context = {**kwargs.pop("context", {}), "resource": resource, "action": action}
        super().__init__(message, context=context, **kwargs)
