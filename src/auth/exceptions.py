"""
Authentication and Authorization Exception Classes

Both exceptions carry deliberately generic client messages: a caller learns
that its token or role was rejected, never why. The detailed reason goes to
the structured log through ``reason``.
"""

from enum import Enum
from typing import Optional

from src.business.exceptions import BaseBusinessException, ErrorCategory, ErrorSeverity


class SecurityErrorCode(Enum):
    """Standardized security error codes for log aggregation."""
    AUTH_TOKEN_MISSING = "AUTH_1001"
    AUTH_TOKEN_INVALID = "AUTH_1002"
    AUTH_CREDENTIALS_INVALID = "AUTH_1005"
    AUTHZ_ROLE_INSUFFICIENT = "AUTHZ_2004"


class InvalidCredentials(BaseBusinessException):
    """Missing, malformed or expired bearer token, or a failed login."""

    def __init__(
        self,
        reason: Optional[str] = None,
        error_code: SecurityErrorCode = SecurityErrorCode.AUTH_TOKEN_INVALID
    ) -> None:
        self.reason = reason
        super().__init__(
            message="Invalid credentials",
            error_code=error_code.value,
            http_status_code=401,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.AUTHORIZATION,
            context={'reason': reason} if reason else None
        )


class InvalidPermissions(BaseBusinessException):
    """Authenticated session whose role is not allowed on the route."""

    def __init__(self, role: Optional[str] = None) -> None:
        self.role = role
        super().__init__(
            message="Invalid permissions",
            error_code=SecurityErrorCode.AUTHZ_ROLE_INSUFFICIENT.value,
            http_status_code=403,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.AUTHORIZATION,
            context={'role': role}
        )


__all__ = ['SecurityErrorCode', 'InvalidCredentials', 'InvalidPermissions']
