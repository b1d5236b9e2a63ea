"""
Database Exception Handling

Exception hierarchy for storage failures raised by the MongoDB repositories,
the mapping from PyMongo errors onto it, and the Flask error handler that
renders them. Storage failures are terminal for the current request: nothing
here retries.

Features:
- Custom exception hierarchy for database operations
- PyMongo error classification
- Prometheus error counter per exception type, operation and collection
- Structured error logging
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type

import pymongo.errors
import structlog
from flask import jsonify
from prometheus_client import Counter

logger = structlog.get_logger("data.exceptions")

database_errors_total = Counter(
    'commerce_database_errors_total',
    'Total database errors by type, operation and collection',
    ['error_type', 'operation', 'collection']
)


class DatabaseErrorSeverity(Enum):
    """Database error severity levels for monitoring and alerting"""
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DatabaseOperationType(Enum):
    """Database operation types for error classification"""
    READ = "read"
    WRITE = "write"
    CONNECTION = "connection"


class DatabaseErrorCategory(Enum):
    """Database error categories for classification"""
    NETWORK = "network"
    TIMEOUT = "timeout"
    DATA_INTEGRITY = "data_integrity"
    UNKNOWN = "unknown"


class DatabaseException(Exception):
    """
    Base exception class for all database-related errors.

    Carries severity, category and operation context and renders as a 500
    response unless a subclass maps to something more specific.
    """

    http_status_code = 500

    def __init__(
        self,
        message: str,
        severity: DatabaseErrorSeverity = DatabaseErrorSeverity.HIGH,
        category: DatabaseErrorCategory = DatabaseErrorCategory.UNKNOWN,
        operation: Optional[DatabaseOperationType] = None,
        database: Optional[str] = None,
        collection: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.operation = operation
        self.database = database
        self.collection = collection
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)

        database_errors_total.labels(
            error_type=self.__class__.__name__,
            operation=operation.value if operation else "unknown",
            collection=collection or "unknown"
        ).inc()

        logger.error(
            "Database exception occurred",
            error_type=self.__class__.__name__,
            message=message,
            severity=severity.value,
            category=category.value,
            operation=operation.value if operation else None,
            database=database,
            collection=collection,
            original_error=str(original_error) if original_error else None
        )

    def to_dict(self) -> Dict[str, Any]:
        """Client-facing payload; driver details stay in the logs."""
        return {
            "name": self.__class__.__name__,
            "code": self.http_status_code,
            "message": "A database error occurred while processing the request",
        }


class ConnectionException(DatabaseException):
    """MongoDB unreachable, server selection failed or the connection dropped."""

    http_status_code = 503

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('severity', DatabaseErrorSeverity.CRITICAL)
        kwargs.setdefault('category', DatabaseErrorCategory.NETWORK)
        kwargs.setdefault('operation', DatabaseOperationType.CONNECTION)
        super().__init__(message, **kwargs)


class TimeoutException(DatabaseException):
    """Query or network timeout."""

    http_status_code = 503

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('severity', DatabaseErrorSeverity.MEDIUM)
        kwargs.setdefault('category', DatabaseErrorCategory.TIMEOUT)
        super().__init__(message, **kwargs)


class QueryException(DatabaseException):
    """Rejected query or write (bad operator, duplicate key, invalid document)."""

    def __init__(self, message: str, query: Optional[Dict] = None, **kwargs):
        kwargs.setdefault('severity', DatabaseErrorSeverity.MEDIUM)
        kwargs.setdefault('category', DatabaseErrorCategory.DATA_INTEGRITY)
        self.query = query
        super().__init__(message, **kwargs)


# PyMongo Error Mapping, most specific first

PYMONGO_ERROR_MAPPING = (
    (pymongo.errors.NetworkTimeout, TimeoutException),
    (pymongo.errors.ExecutionTimeout, TimeoutException),
    (pymongo.errors.WTimeoutError, TimeoutException),
    (pymongo.errors.ServerSelectionTimeoutError, ConnectionException),
    (pymongo.errors.AutoReconnect, ConnectionException),
    (pymongo.errors.ConnectionFailure, ConnectionException),
    (pymongo.errors.DuplicateKeyError, QueryException),
    (pymongo.errors.BulkWriteError, QueryException),
    (pymongo.errors.WriteError, QueryException),
    (pymongo.errors.OperationFailure, QueryException),
    (pymongo.errors.InvalidOperation, QueryException),
    (pymongo.errors.PyMongoError, DatabaseException),
)


def classify_pymongo_error(error: Exception) -> Type[DatabaseException]:
    """
    Classify PyMongo errors into the custom exception types.

    Args:
        error: The original PyMongo exception

    Returns:
        Appropriate custom exception class
    """
    for error_type, exception_class in PYMONGO_ERROR_MAPPING:
        if isinstance(error, error_type):
            return exception_class
    return DatabaseException


def handle_database_error(
    error: Exception,
    operation: DatabaseOperationType,
    database: Optional[str],
    collection: Optional[str] = None
) -> DatabaseException:
    """
    Wrap a driver error in the matching ``DatabaseException``.

    Args:
        error: The original exception
        operation: Type of database operation
        database: Database name
        collection: Collection name (optional)

    Returns:
        Custom database exception, ready to raise
    """
    if isinstance(error, DatabaseException):
        return error

    if isinstance(error, pymongo.errors.PyMongoError):
        exception_class = classify_pymongo_error(error)
        return exception_class(
            f"Database operation failed: {error}",
            operation=operation,
            database=database,
            collection=collection,
            original_error=error
        )

    return DatabaseException(
        f"Unexpected database error: {error}",
        operation=operation,
        database=database,
        collection=collection,
        original_error=error
    )


def register_database_error_handlers(app):
    """
    Register Flask error handlers for database exceptions.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(DatabaseException)
    def handle_database_exception(error: DatabaseException):
        return jsonify(error.to_dict()), error.http_status_code

    @app.errorhandler(pymongo.errors.PyMongoError)
    def handle_pymongo_error(error):
        custom_exception = handle_database_error(
            error,
            operation=DatabaseOperationType.READ,
            database=app.config.get('MONGODB_DATABASE')
        )
        return handle_database_exception(custom_exception)


__all__ = [
    'DatabaseException', 'ConnectionException', 'TimeoutException', 'QueryException',
    'DatabaseErrorSeverity', 'DatabaseOperationType', 'DatabaseErrorCategory',
    'classify_pymongo_error', 'handle_database_error', 'register_database_error_handlers',
]
