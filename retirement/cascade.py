"""
Dependency-ordered removal of every live row that references retired accounts.

Order, children before parents:
    1. tables discovered through foreign keys to the users table
    2. tables discovered through foreign keys to the role table
    3. role join tables keyed by the alternate identifier
    4. the role rows themselves
    5. separately handled logs (account_logs)
    6. the users rows
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import column, delete, table

from retirement.chunking import chunked
from retirement.foreign_keys import ReferencingMap
from retirement.plan import RetirementPlan
from retirement.profiles import KeyColumn
from retirement.records import SourceRecordBundle
from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CascadeDeleter:
    """
    Deletes dependents of a batch of accounts inside the caller's transaction.

    Every statement is an IN-list of at most ``chunk_size`` values; a table
    with no matching rows is simply a zero-row delete.
    """

    def __init__(self, uow: UnitOfWork, plan: RetirementPlan, chunk_size: int = 500):
        if chunk_size < 1:
            raise ValueError(f"chunk size must be positive, got {chunk_size}")
        self.uow = uow
        self.plan = plan
        self.chunk_size = chunk_size
        self.rows_deleted: Dict[str, int] = {}

    async def delete_dependents(
        self,
        bundles: Sequence[SourceRecordBundle],
        exclude_tables: Iterable[str] = ()
    ) -> Dict[str, int]:
        """
        Remove everything referencing ``bundles``, then the accounts themselves.

        Returns a map of "table.column" to rows deleted.
        """
        if not bundles:
            return {}

        excluded = self.plan.excluded_tables()
        excluded.update(name.lower() for name in exclude_tables)

        await self._delete_referencing(
            self.plan.user_references,
            excluded,
            [b.user_row for b in bundles],
            fallback=[b.primary_id for b in bundles],
            fallback_column=self.plan.user_id_column,
        )

        role_rows = [b.role_row for b in bundles if b.role_row is not None]
        if self.plan.role_table is not None and role_rows:
            await self._delete_referencing(self.plan.role_references, excluded, role_rows)

        for join in self.plan.join_tables:
            await self._delete_by_key(join.table.name, join.key, bundles)

        await self._delete_role_rows(bundles)

        for separate in self.plan.separate_tables:
            await self._delete_by_key(separate.table.name, separate.key, bundles)

        await self._delete_in_chunks(
            self.plan.users.name,
            self.plan.user_id_column,
            [b.primary_id for b in bundles],
        )

        total = sum(self.rows_deleted.values())
        logger.info(f"Cascade removed {total} rows for {len(bundles)} accounts")
        return dict(self.rows_deleted)

    async def _delete_referencing(
        self,
        referencing_map: ReferencingMap,
        excluded,
        rows,
        fallback: Optional[List[Any]] = None,
        fallback_column: Optional[str] = None
    ) -> None:
        for table_name, edges in referencing_map.items():
            if table_name.lower() in excluded:
                logger.debug(f"Skipping {table_name} in foreign-key pass")
                continue

            for edge in edges:
                if (
                    fallback is not None
                    and fallback_column is not None
                    and edge.referenced_column.lower() == fallback_column.lower()
                ):
                    values = list(fallback)
                else:
                    values = [row.get(edge.referenced_column) for row in rows]
                await self._delete_in_chunks(table_name, edge.referencing_column, values)

    async def _delete_by_key(self, table_name: str, key: KeyColumn, bundles) -> None:
        values = [b.key_value(key) for b in bundles]
        await self._delete_in_chunks(table_name, key.column, values)

    async def _delete_role_rows(self, bundles: Sequence[SourceRecordBundle]) -> None:
        """Delete each role row by the first key column that has a value for it."""
        role_table = self.plan.role_table
        if role_table is None or not self.plan.role_key_columns:
            return

        grouped: Dict[str, List[Any]] = {}
        for bundle in bundles:
            for key in self.plan.role_key_columns:
                value = bundle.key_value(key)
                if value is not None:
                    grouped.setdefault(key.column, []).append(value)
                    break

        for column_name, values in grouped.items():
            await self._delete_in_chunks(role_table.name, column_name, values)

    async def _delete_in_chunks(self, table_name: str, column_name: str, values: Iterable[Any]) -> int:
        unique: List[Any] = []
        seen = set()
        for value in values:
            if value is None or value in seen:
                continue
            seen.add(value)
            unique.append(value)

        if not unique:
            return 0

        target = table(table_name, column(column_name))
        deleted = 0
        for chunk in chunked(unique, self.chunk_size):
            result = await self.uow.execute(
                delete(target).where(target.c[column_name].in_(chunk))
            )
            deleted += max(result.rowcount or 0, 0)

        key = f"{table_name}.{column_name}"
        self.rows_deleted[key] = self.rows_deleted.get(key, 0) + deleted
        if deleted:
            logger.debug(f"Deleted {deleted} rows from {key}")
        return deleted
