"""
Business Logic Exception Classes

Exception types raised by the validation engine and the per-entity services and
translated into HTTP responses by the Flask error handlers registered in
``src.app``. Every exception renders to the client-facing payload::

    {"name": "<ExceptionName>", "code": <http status>, "message": "..."}

``ValidationException`` extends that payload with the ordered ``validations``
list produced by the engine.

Classes:
    BaseBusinessException: Base class for business failures
    ValidationItem: One reported rule failure
    ValidationException: Request failed one or more validation rules
    ResourceNotFoundError: Record vanished between validation and write
    ConfigurationError: Misconfigured service wiring
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import structlog
from flask import jsonify

logger = structlog.get_logger("business.exceptions")


class ErrorSeverity(Enum):
    """Severity levels driving the log level of the exception audit entry."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for structured log classification."""
    DATA_VALIDATION = "data_validation"
    RESOURCE_ACCESS = "resource_access"
    AUTHORIZATION = "authorization"
    CONFIGURATION = "configuration"


class BaseBusinessException(Exception):
    """
    Base exception class for all business logic failures.

    Attributes:
        message (str): User-facing error message
        error_code (str): Stable identifier for client handling
        http_status_code (int): HTTP status code for the Flask response
        severity (ErrorSeverity): Severity used for logging
        category (ErrorCategory): Classification for log aggregation
        context (Dict[str, Any]): Additional, non-sensitive error context
        timestamp (datetime): Error occurrence timestamp
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        http_status_code: int = 400,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.DATA_VALIDATION,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.http_status_code = http_status_code
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        self._log_exception()

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def _log_exception(self) -> None:
        log_data = {
            'event_type': 'business_exception',
            'exception_class': self.name,
            'error_code': self.error_code,
            'severity': self.severity.value,
            'category': self.category.value,
            'http_status_code': self.http_status_code,
            'context': self.context,
        }
        if self.cause is not None:
            log_data['cause'] = repr(self.cause)

        if self.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            logger.error("Business exception occurred", **log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.warning("Business exception occurred", **log_data)
        else:
            logger.info("Business exception occurred", **log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Client-facing payload."""
        return {
            'name': self.name,
            'code': self.http_status_code,
            'message': self.message,
        }

    def to_flask_response(self) -> tuple:
        return jsonify(self.to_dict()), self.http_status_code


@dataclass(frozen=True)
class ValidationItem:
    """
    One reported rule failure.

    ``field`` is the dotted path of the offending value (``orderItems.1.quantity``),
    ``rule`` the wire name of the failing rule.
    """
    field: str
    rule: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        item = {'field': self.field, 'rule': self.rule, 'message': self.message}
        if self.details is not None:
            item['details'] = self.details
        return item


class ValidationException(BaseBusinessException):
    """
    Raised when a model fails one or more validation rules.

    Example:
        try:
            await validator.validate(schema, model)
        except ValidationException as e:
            return jsonify(e.to_dict()), 400
    """

    def __init__(
        self,
        validations: Iterable[ValidationItem],
        message: str = "An error occurred performing a validation"
    ) -> None:
        self.validations: List[ValidationItem] = list(validations)
        super().__init__(
            message=message,
            error_code="VALIDATION_FAILED",
            http_status_code=400,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.DATA_VALIDATION,
            context={
                'violation_count': len(self.validations),
                'fields': [item.field for item in self.validations],
            }
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload['validations'] = [item.to_dict() for item in self.validations]
        return payload


class ResourceNotFoundError(BaseBusinessException):
    """Raised when a record cannot be located after validation passed."""

    def __init__(self, resource_type: str, resource_id: Optional[str] = None) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=f"{resource_type} not found",
            error_code="RESOURCE_NOT_FOUND",
            http_status_code=404,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.RESOURCE_ACCESS,
            context={'resource_type': resource_type, 'resource_id': resource_id}
        )


class ConfigurationError(BaseBusinessException):
    """Raised when services are wired without a required collaborator."""

    def __init__(self, message: str, component: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            http_status_code=500,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            context={'component': component}
        )


__all__ = [
    'ErrorSeverity', 'ErrorCategory', 'BaseBusinessException', 'ValidationItem',
    'ValidationException', 'ResourceNotFoundError', 'ConfigurationError',
]
