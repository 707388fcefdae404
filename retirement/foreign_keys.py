"""
Foreign-key discovery: which (table, column) pairs point at a given table.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import inspect, text

from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


REFERENCING_QUERIES = {
    "postgresql": text(
        """
        SELECT kcu.table_name AS table_name,
               kcu.column_name AS column_name,
               ccu.column_name AS referenced_column_name
        FROM information_schema.table_constraints AS tc
        JOIN information_schema.key_column_usage AS kcu
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
        JOIN information_schema.constraint_column_usage AS ccu
          ON ccu.constraint_name = tc.constraint_name
         AND ccu.table_schema = tc.table_schema
        WHERE tc.constraint_type = 'FOREIGN KEY'
          AND tc.table_schema = current_schema()
          AND ccu.table_name = :target_table
        """
    ),
    "mysql": text(
        "SELECT TABLE_NAME AS table_name, COLUMN_NAME AS column_name, "
        "REFERENCED_COLUMN_NAME AS referenced_column_name "
        "FROM information_schema.KEY_COLUMN_USAGE "
        "WHERE REFERENCED_TABLE_SCHEMA = DATABASE() AND REFERENCED_TABLE_NAME = :target_table"
    ),
}
REFERENCING_QUERIES["mariadb"] = REFERENCING_QUERIES["mysql"]


@dataclass(frozen=True)
class ForeignKeyEdge:
    """One referencing column pointing at the target table."""

    referencing_table: str
    referencing_column: str
    referenced_column: str


ReferencingMap = Dict[str, List[ForeignKeyEdge]]


class ForeignKeyIndex:
    """Builds referencing maps from the database's constraint metadata."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def build_referencing_map(self, target_table: str) -> ReferencingMap:
        """
        Map every table referencing ``target_table`` to its edges.

        Rows with a blank table, column or referenced column are dropped and
        each (table, column) pair appears once.
        """
        query = REFERENCING_QUERIES.get(self.uow.dialect_name)
        if query is not None:
            result = await self.uow.execute(query, {"target_table": target_table})
            raw_rows = [tuple(row) for row in result.all()]
        else:
            raw_rows = await self.uow.run_sync(_inspect_referencing_rows, target_table)

        referencing_map = group_edges(raw_rows)
        logger.info(
            f"Found {sum(len(v) for v in referencing_map.values())} foreign keys "
            f"referencing {target_table} across {len(referencing_map)} tables"
        )
        return referencing_map


def group_edges(rows: Iterable[Tuple[Optional[str], Optional[str], Optional[str]]]) -> ReferencingMap:
    referencing_map: ReferencingMap = {}
    seen = set()

    for table_raw, column_raw, referenced_raw in rows:
        table_name = str(table_raw).strip() if table_raw else ""
        column_name = str(column_raw).strip() if column_raw else ""
        referenced_column = str(referenced_raw).strip() if referenced_raw else ""

        if not table_name or not column_name or not referenced_column:
            continue

        key = (table_name.lower(), column_name.lower())
        if key in seen:
            continue
        seen.add(key)

        referencing_map.setdefault(table_name, []).append(
            ForeignKeyEdge(
                referencing_table=table_name,
                referencing_column=column_name,
                referenced_column=referenced_column,
            )
        )

    return referencing_map


def _inspect_referencing_rows(connection, target_table: str) -> List[Tuple[str, str, Optional[str]]]:
    inspector = inspect(connection)
    target = target_table.lower()
    rows = []

    for table_name in inspector.get_table_names():
        for fk in inspector.get_foreign_keys(table_name):
            if (fk.get("referred_table") or "").lower() != target:
                continue
            for column, referenced in zip(fk.get("constrained_columns") or [], fk.get("referred_columns") or []):
                rows.append((table_name, column, referenced))

    return rows
