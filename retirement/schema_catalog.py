"""
Runtime schema discovery.

Table names vary per deployment ("teacher" vs "teachers" vs "faculty"), so
logical tables are described by an ordered list of candidate names and
resolved against the live database once per operation.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple, Type

from sqlalchemy import inspect, text
from sqlalchemy.exc import NoSuchTableError

from core.exceptions import PreconditionError
from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


COLUMN_QUERIES = {
    "postgresql": text(
        "SELECT column_name FROM information_schema.columns "
        "WHERE table_schema = current_schema() AND table_name = :table_name"
    ),
    "mysql": text(
        "SELECT COLUMN_NAME AS column_name FROM information_schema.COLUMNS "
        "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table_name"
    ),
}
COLUMN_QUERIES["mariadb"] = COLUMN_QUERIES["mysql"]


@dataclass(frozen=True)
class SchemaTable:
    """A resolved physical table and the columns it has."""

    name: str
    columns: FrozenSet[str]

    def has(self, column: str) -> bool:
        return self.column(column) is not None

    def column(self, column: str) -> Optional[str]:
        """Return the physical spelling of ``column``, matched case-insensitively."""
        if column in self.columns:
            return column
        folded = column.lower()
        for name in self.columns:
            if name.lower() == folded:
                return name
        return None

    def first_column(self, candidates: Iterable[str]) -> Optional[str]:
        for candidate in candidates:
            name = self.column(candidate)
            if name is not None:
                return name
        return None

    def is_named(self, name: str) -> bool:
        return self.name.lower() == name.lower()


@dataclass(frozen=True)
class TableDescriptor:
    """
    A logical table and the physical names it may carry, in priority order.

    Attributes:
        logical_name: Name used in logs and errors ("archive", "teacher")
        candidates: Physical names to try, first match wins
        missing_error: Precondition raised by ``SchemaCatalog.require``
    """

    logical_name: str
    candidates: Tuple[str, ...]
    missing_error: Type[PreconditionError] = PreconditionError


class SchemaCatalog:
    """
    Per-operation view of the live schema.

    Column sets are memoised for the lifetime of the catalog only; create a
    new catalog for every batch.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self._columns: Dict[str, FrozenSet[str]] = {}

    async def get_columns(self, table_name: str) -> FrozenSet[str]:
        """
        Return the column names of ``table_name``.

        An absent table yields an empty set, so "table missing" and "column
        missing" can be handled the same way by callers.
        """
        key = table_name.lower()
        if key not in self._columns:
            self._columns[key] = await self._load_columns(table_name)
        return self._columns[key]

    async def get_table(self, table_name: str) -> Optional[SchemaTable]:
        columns = await self.get_columns(table_name)
        if not columns:
            return None
        return SchemaTable(name=table_name, columns=columns)

    async def resolve_table(self, candidates: Sequence[str]) -> Optional[SchemaTable]:
        """Return the first candidate with a non-empty column set, or None."""
        for candidate in candidates:
            table = await self.get_table(candidate)
            if table is not None:
                return table
        return None

    async def resolve(self, descriptor: TableDescriptor) -> Optional[SchemaTable]:
        table = await self.resolve_table(descriptor.candidates)
        if table is None:
            logger.debug(
                f"No table found for {descriptor.logical_name} "
                f"(tried {', '.join(descriptor.candidates)})"
            )
        else:
            logger.debug(f"Resolved {descriptor.logical_name} -> {table.name}")
        return table

    async def require(self, descriptor: TableDescriptor) -> SchemaTable:
        table = await self.resolve(descriptor)
        if table is None:
            raise descriptor.missing_error(
                f"Required {descriptor.logical_name} table is not available",
                context={
                    "component": descriptor.logical_name,
                    "candidates": list(descriptor.candidates),
                }
            )
        return table

    async def _load_columns(self, table_name: str) -> FrozenSet[str]:
        query = COLUMN_QUERIES.get(self.uow.dialect_name)
        if query is not None:
            result = await self.uow.execute(query, {"table_name": table_name})
            return frozenset(
                str(row[0]).strip() for row in result.all() if row[0] and str(row[0]).strip()
            )

        return frozenset(await self.uow.run_sync(_inspect_columns, table_name))


def _inspect_columns(connection, table_name: str) -> FrozenSet[str]:
    try:
        columns = inspect(connection).get_columns(table_name)
    except NoSuchTableError:
        return frozenset()
    return frozenset(column["name"] for column in columns)
