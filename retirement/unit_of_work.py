"""
Transaction scope shared by every collaborator of one retirement batch.

    async with UnitOfWork(session) as uow:
        await uow.execute(stmt)

The block commits on normal exit and rolls back on any exception. Driver
errors leave the block as TransientDatabaseError subclasses chained to the
original SQLAlchemy exception.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    DatabaseConnectionError,
    LockContentionError,
    TransientDatabaseError,
)

logger = logging.getLogger(__name__)

LOCK_MARKERS = (
    "deadlock",
    "lock wait timeout",
    "could not obtain lock",
    "lock not available",
    "database is locked",
    "could not serialize access",
)

CONNECTION_MARKERS = (
    "connection is closed",
    "connection was closed",
    "server closed the connection",
    "lost connection",
    "gone away",
    "connection refused",
    "connection reset",
)


def translate_database_error(
    exc: SQLAlchemyError,
    context: Optional[Dict[str, Any]] = None
) -> TransientDatabaseError:
    """Classify a SQLAlchemy error into the retryable error family."""
    detail = str(getattr(exc, "orig", None) or exc).lower()

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        error_cls = DatabaseConnectionError
    elif any(marker in detail for marker in LOCK_MARKERS):
        error_cls = LockContentionError
    elif any(marker in detail for marker in CONNECTION_MARKERS):
        error_cls = DatabaseConnectionError
    else:
        error_cls = TransientDatabaseError

    return error_cls(
        "Database operation failed; the transaction was rolled back",
        context=dict(context or {}),
        original_exception=exc
    )


class UnitOfWork:
    """
    One database transaction for one batch.

    Wraps an AsyncSession owned by the caller; the session is not closed
    here so request-scoped sessions can be reused by the caller afterwards.
    """

    def __init__(self, session: AsyncSession, label: str = "unit_of_work"):
        self.session = session
        self.label = label
        self._active = False

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @property
    def supports_returning(self) -> bool:
        return bool(getattr(self.session.get_bind().dialect, "insert_returning", False))

    async def __aenter__(self) -> "UnitOfWork":
        if not self.session.in_transaction():
            await self.session.begin()
        self._active = True
        logger.debug(f"[{self.label}] transaction started")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._active = False

        if exc is None:
            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                await self._rollback()
                raise translate_database_error(e, {"unit_of_work": self.label, "phase": "commit"}) from e
            logger.debug(f"[{self.label}] transaction committed")
            return False

        await self._rollback()
        logger.info(f"[{self.label}] transaction rolled back: {type(exc).__name__}")

        if isinstance(exc, SQLAlchemyError):
            raise translate_database_error(exc, {"unit_of_work": self.label}) from exc
        return False

    async def execute(self, statement, params: Optional[Dict[str, Any]] = None):
        if params is None:
            return await self.session.execute(statement)
        return await self.session.execute(statement, params)

    async def run_sync(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn(sync_connection, *args)`` on the transaction's connection."""
        def _call(sync_session):
            return fn(sync_session.connection(), *args)

        return await self.session.run_sync(_call)

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            # The connection is already unusable; the original error is what the caller needs.
            logger.error(f"[{self.label}] rollback failed: {e}")
