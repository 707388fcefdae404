"""
Custom exceptions for the account retirement engine with structured error context.

This module provides the exception hierarchy used by the retirement engine
and the HTTP layer. Each exception carries context information for
debugging and an HTTP-facing severity (status code, error code, retryable).

Exception Hierarchy:
    RetirementException (base)
    ├── InputValidationError
    ├── PreconditionError
    │   ├── ArchiveStorageUnavailableError
    │   ├── PrimaryTableUnavailableError
    │   └── SchemaDriftError
    ├── TransientDatabaseError
    │   ├── DatabaseConnectionError
    │   └── LockContentionError
    └── ArchiveEntryError

SchemaAmbiguityWarning is a warning, not an error: it is recorded on the
retirement result and logged, never raised.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class RetirementException(Exception):
    """
    Base exception for all retirement-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (table, ids, operation, etc.)
        original_exception: The original exception that was caught (if any)
        status_code: HTTP status the API layer should answer with
        error_code: Stable machine-readable code
        retryable: Whether the caller may retry the same request
    """

    status_code: int = 500
    error_code: str = "RETIREMENT_FAILED"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Input Errors
# ============================================================================

class InputValidationError(RetirementException):
    """
    Raised when a request carries no usable account identifiers.

    Context should include:
        - field_name: Name of the offending request field
        - received: The raw value that was rejected (truncated if large)
    """
    status_code = 400
    error_code = "INVALID_INPUT"


# ============================================================================
# Precondition Errors (fatal, non-retryable)
# ============================================================================

class PreconditionError(RetirementException):
    """
    Base exception for deployment preconditions that are not met.

    Raised before any mutation happens; the whole batch is aborted.
    """
    error_code = "PRECONDITION_FAILED"


class ArchiveStorageUnavailableError(PreconditionError):
    """
    Raised when no archive table can be resolved.

    Context should include:
        - candidates: Archive table names that were probed
    """
    error_code = "ARCHIVE_UNAVAILABLE"


class PrimaryTableUnavailableError(PreconditionError):
    """
    Raised when the primary account table is missing or unreadable.

    Context should include:
        - table_name: The primary table that was probed
    """
    error_code = "USERS_UNAVAILABLE"


class SchemaDriftError(PreconditionError):
    """
    Raised under the "fail" drift policy when an expected optional
    table or column is absent.

    Context should include:
        - component: The logical table that could not be resolved
        - candidates: Table names that were probed
    """
    error_code = "SCHEMA_DRIFT"


# ============================================================================
# Transient Errors (retryable)
# ============================================================================

class TransientDatabaseError(RetirementException):
    """
    Database failure during a unit of work. The transaction has been
    rolled back; the same request may be retried.

    Use this for:
    - Connection loss
    - Lock contention / deadlocks
    - Timeouts
    - Any other unexpected driver error
    """
    status_code = 503
    error_code = "DATABASE_UNAVAILABLE"
    retryable = True


class DatabaseConnectionError(TransientDatabaseError):
    """Connection dropped or invalidated mid-transaction."""
    error_code = "DATABASE_CONNECTION_LOST"


class LockContentionError(TransientDatabaseError):
    """Row-lock contention, deadlock or lock wait timeout."""
    error_code = "LOCK_CONTENTION"


# ============================================================================
# Per-entry Errors
# ============================================================================

class ArchiveEntryError(RetirementException):
    """
    Failure scoped to a single archive entry during restore or purge.

    Reported inside the response; never aborts other entries.

    Context should include:
        - archive_id: The archive entry that failed
    """
    status_code = 409
    error_code = "ARCHIVE_ENTRY_FAILED"


# ============================================================================
# Warnings
# ============================================================================

class SchemaAmbiguityWarning(UserWarning):
    """An optional table or column could not be resolved; the step was skipped."""

    def __init__(self, component: str, detail: str):
        self.component = component
        self.detail = detail
        super().__init__(f"{component}: {detail}")

    def to_dict(self) -> Dict[str, Any]:
        return {"component": self.component, "detail": self.detail}
