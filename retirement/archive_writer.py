"""
Write durable history for retired accounts.

The archive table's shape is owned by each deployment, so every INSERT is
built from the intersection of the logical archive fields and the columns
the table actually has. A JSON snapshot column, when present, receives the
raw source rows so nothing is lost to missing structured columns.
"""

import json
from collections import Counter
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import DateTime, column, insert, or_, select, table, update

from retirement.chunking import chunked
from retirement.identifiers import compute_full_name, normalize_contact
from retirement.plan import ResolvedAuxiliary, RetirementPlan
from retirement.records import ArchivedAccount, ArchiveOutcome, SourceRecordBundle
from retirement.rows import RowAccessor
from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("archived_at", "timestamp")
USER_TEXT_FIELDS = (
    "user_code",
    "username",
    "first_name",
    "middle_name",
    "last_name",
    "suffix",
    "password",
)


def _serialize_snapshot(bundle: SourceRecordBundle, role_table: Optional[str]) -> str:
    snapshot = {
        "user": bundle.user_row.as_dict(),
        "role_table": role_table,
        "role": bundle.role_row.as_dict() if bundle.role_row is not None else None,
    }
    return json.dumps(snapshot, default=str, sort_keys=True)


class ArchiveWriter:
    """
    Creates one archive row per retired account.

    Idempotent: an existing archive row for the account is reused, and a
    placeholder row without an account id (matched by email) is patched in
    place instead of inserting a second one.
    """

    def __init__(self, uow: UnitOfWork, plan: RetirementPlan, chunk_size: int = 500):
        self.uow = uow
        self.plan = plan
        self.chunk_size = chunk_size
        self.archive = plan.archive
        self.id_column = plan.archive_id_column
        self.user_id_column = plan.archive_user_id_column

    # ------------------------------------------------------------------
    # Archive rows
    # ------------------------------------------------------------------

    async def archive_one(self, bundle: SourceRecordBundle, reason: str) -> ArchiveOutcome:
        exists, existing_id = await self._find_existing(bundle.primary_id)
        if exists:
            logger.info(f"Account {bundle.primary_id} already archived as {existing_id}; reusing")
            return ArchiveOutcome(archived_id=existing_id)

        email = bundle.user_row.get_text("email")
        placeholder_id = await self._find_placeholder(email)
        if placeholder_id is not None:
            await self._patch_placeholder(placeholder_id, bundle.primary_id)
            logger.info(f"Patched placeholder archive {placeholder_id} with account {bundle.primary_id}")
            return ArchiveOutcome(archived_id=placeholder_id, patched=True)

        values = self.build_values(bundle, reason)
        archived_id = await self._insert(values)
        logger.info(f"Archived account {bundle.primary_id} as {archived_id}")
        return ArchiveOutcome(archived_id=archived_id, created=True)

    def build_values(self, bundle: SourceRecordBundle, reason: str) -> Dict[str, Any]:
        """Logical archive fields restricted to the columns the archive table has."""
        user = bundle.user_row
        now = datetime.utcnow()
        contact = normalize_contact(user)

        logical: List[Tuple[str, Any]] = [
            ("user_id", bundle.primary_id),
            ("role", user.get_text("role") or self.plan.profile.role),
            ("role_id", user.get_int("role_id")),
            ("name", compute_full_name(user)),
            ("email", user.get_text("email")),
            ("contact_number", contact),
            ("phone_number", contact),
            ("reason", reason),
            ("archived_at", now),
            ("timestamp", now),
            ("created_at", user.get("created_at")),
            ("updated_at", user.get("updated_at")),
        ]
        logical.extend((name, user.get_text(name)) for name in USER_TEXT_FIELDS)

        if bundle.role_row is not None:
            logical.extend(
                (name, bundle.role_row.get(name)) for name in self.plan.profile.snapshot_fields
            )

        values: Dict[str, Any] = {}
        for name, value in logical:
            physical = self.archive.column(name)
            if physical is None or value is None or physical in values:
                continue
            values[physical] = value

        if self.plan.snapshot_column is not None:
            role_table = self.plan.role_table.name if self.plan.role_table is not None else None
            values[self.plan.snapshot_column] = _serialize_snapshot(bundle, role_table)

        return values

    async def _find_existing(self, primary_id: int) -> Tuple[bool, Optional[int]]:
        """Whether an archive row exists for the account, and its archive id if the table has one."""
        selected = self.id_column or self.user_id_column
        t = table(self.archive.name, *[column(c) for c in dict.fromkeys((selected, self.user_id_column))])
        result = await self.uow.execute(
            select(t.c[selected]).where(t.c[self.user_id_column] == primary_id).limit(1)
        )
        row = result.first()
        if row is None:
            return False, None
        return True, (row[0] if self.id_column is not None else None)

    async def _find_placeholder(self, email: Optional[str]) -> Optional[int]:
        email_column = self.archive.column("email")
        if self.id_column is None or email_column is None or not email:
            return None
        t = table(self.archive.name, column(self.id_column), column(self.user_id_column), column(email_column))
        user_id = t.c[self.user_id_column]
        result = await self.uow.execute(
            select(t.c[self.id_column])
            .where(or_(user_id.is_(None), user_id == 0))
            .where(t.c[email_column] == email)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _patch_placeholder(self, archived_id: int, primary_id: int) -> None:
        t = table(self.archive.name, column(self.id_column), column(self.user_id_column))
        user_id = t.c[self.user_id_column]
        await self.uow.execute(
            update(t)
            .where(t.c[self.id_column] == archived_id)
            .where(or_(user_id.is_(None), user_id == 0))
            .values({self.user_id_column: primary_id})
        )

    async def _insert(self, values: Dict[str, Any]) -> Optional[int]:
        t = self._typed_table(self.archive.name, values, self.id_column)
        stmt = insert(t).values(values)

        if self.id_column is not None and self.uow.supports_returning:
            result = await self.uow.execute(stmt.returning(t.c[self.id_column]))
            return result.scalar_one()

        result = await self.uow.execute(stmt)
        if self.id_column is None:
            return None
        inserted_id = result.lastrowid
        return int(inserted_id) if inserted_id else None

    # ------------------------------------------------------------------
    # Auxiliary history (e.g. which grades a teacher handled)
    # ------------------------------------------------------------------

    async def preserve_auxiliary(self, bundle: SourceRecordBundle) -> int:
        """Copy the account's auxiliary rows under its archive id. Returns rows written."""
        if bundle.archived_id is None:
            return 0

        written = 0
        for aux in self.plan.auxiliary:
            written += await self._preserve_table(aux, bundle)
        return written

    async def _preserve_table(self, aux: ResolvedAuxiliary, bundle: SourceRecordBundle) -> int:
        key_value = bundle.key_value(aux.key)
        if key_value is None:
            return 0

        copy_columns = [c for c in (aux.source.column(n) for n in aux.copy_columns) if c]
        source_columns = list(dict.fromkeys([aux.key.column, *copy_columns]))
        src = table(aux.source.name, *[column(c) for c in source_columns])
        result = await self.uow.execute(
            select(*[src.c[c] for c in source_columns]).where(src.c[aux.key.column] == key_value)
        )
        live_rows = [RowAccessor(row) for row in result.mappings().all()]
        if not live_rows:
            return 0

        target_columns = {
            name: aux.archive.column(name)
            for name in aux.copy_columns
            if aux.archive.column(name) is not None
        }
        already = await self._existing_signatures(aux, bundle.archived_id, target_columns)

        written = 0
        for row in live_rows:
            values: Dict[str, Any] = {aux.archive_ref_column: bundle.archived_id}
            for logical, physical in target_columns.items():
                value = row.get(logical)
                if logical == aux.key.column and value is None:
                    value = key_value
                if value is not None:
                    values[physical] = value

            # Each archived row accounts for at most one live row
            signature = self._signature(values, target_columns.values())
            if already[signature] > 0:
                already[signature] -= 1
                continue

            archived_at = aux.archive.column("archived_at")
            if archived_at is not None:
                values[archived_at] = datetime.utcnow()

            await self.uow.execute(insert(self._typed_table(aux.archive.name, values)).values(values))
            written += 1

        if written:
            logger.info(
                f"Preserved {written} {aux.source.name} rows for account {bundle.primary_id} "
                f"under archive {bundle.archived_id}"
            )
        return written

    async def _existing_signatures(self, aux: ResolvedAuxiliary, archived_id: int, target_columns: Dict[str, str]):
        columns = list(target_columns.values())
        t = table(aux.archive.name, column(aux.archive_ref_column), *[column(c) for c in columns])
        if not columns:
            stmt = select(t.c[aux.archive_ref_column]).where(t.c[aux.archive_ref_column] == archived_id)
        else:
            stmt = select(*[t.c[c] for c in columns]).where(t.c[aux.archive_ref_column] == archived_id)
        result = await self.uow.execute(stmt)
        return Counter(
            self._signature(dict(row), columns)
            for row in result.mappings().all()
        )

    @staticmethod
    def _signature(values: Dict[str, Any], columns: Iterable[str]) -> Tuple:
        return tuple(
            None if values.get(c) is None else str(values.get(c))
            for c in columns
        )

    @staticmethod
    def _typed_table(name: str, values: Dict[str, Any], *extra: Optional[str]):
        cols = []
        for key in list(values) + [e for e in extra if e and e not in values]:
            if key.lower() in TIMESTAMP_FIELDS:
                cols.append(column(key, DateTime()))
            else:
                cols.append(column(key))
        return table(name, *cols)

    # ------------------------------------------------------------------
    # Already-archived lookups
    # ------------------------------------------------------------------

    async def find_archived(self, primary_ids: Sequence[int]) -> Dict[int, ArchivedAccount]:
        """Archive entries for accounts that no longer have a live row."""
        if not primary_ids:
            return {}

        wanted = [self.user_id_column]
        for name in (self.id_column, "name", "first_name", "middle_name", "last_name", "username", "email"):
            physical = self.archive.column(name) if name else None
            if physical and physical not in wanted:
                wanted.append(physical)

        t = table(self.archive.name, *[column(c) for c in wanted])
        found: Dict[int, ArchivedAccount] = {}
        for chunk in chunked(list(primary_ids), self.chunk_size):
            result = await self.uow.execute(
                select(*[t.c[c] for c in wanted]).where(t.c[self.user_id_column].in_(chunk))
            )
            for mapping in result.mappings().all():
                row = RowAccessor(mapping)
                user_id = row.get_int(self.user_id_column)
                if user_id is None or user_id in found:
                    continue
                found[user_id] = ArchivedAccount(
                    user_id=user_id,
                    name=compute_full_name(row),
                    email=row.get_text("email"),
                    archived_id=row.get_int(self.id_column) if self.id_column else None,
                    already_archived=True,
                )
        return found
