"""
Core utilities and configuration for the school account retirement service.

This package provides foundational components used throughout the service:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import get_session
    from core.exceptions import ArchiveStorageUnavailableError, TransientDatabaseError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "get_session",
    "setup_logging",
    # Exceptions
    "RetirementException",
    "InputValidationError",
    "PreconditionError",
    "ArchiveStorageUnavailableError",
    "PrimaryTableUnavailableError",
    "SchemaDriftError",
    "TransientDatabaseError",
    "DatabaseConnectionError",
    "LockContentionError",
    "ArchiveEntryError",
    "SchemaAmbiguityWarning",
]
