"""
Administrative operations on existing archive entries: list, purge, restore.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import DateTime, column, delete, desc, insert, literal_column, or_, select, table
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    ArchiveEntryError,
    ArchiveStorageUnavailableError,
    PreconditionError,
    RetirementException,
)
from retirement.chunking import chunked, normalize_ids
from retirement.identifiers import normalize_contact, split_name
from retirement.plan import AUXILIARY_ARCHIVE_REF_COLUMNS
from retirement.profiles import (
    ARCHIVE_ID_COLUMNS,
    ARCHIVE_TABLE,
    PROFILES,
    USER_ID_COLUMNS,
    USERS_TABLE,
    get_profile,
)
from retirement.rows import RowAccessor
from retirement.schema_catalog import SchemaCatalog, SchemaTable
from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

ROLE_LABELS = {profile.role: profile.label for profile in PROFILES.values()}
ROLE_LABELS.update({"admin": "IT Admin", "parent": "Parent", "student": "Student"})

LISTED_COLUMNS = ("user_id", "role", "name", "email", "reason")
ARCHIVED_AT_COLUMNS = ("archived_at", "timestamp")
TEMPORARY_PASSWORD_ALPHABET = string.ascii_lowercase + string.digits
TEMPORARY_PASSWORD_LENGTH = 8


def generate_temporary_password(length: int = TEMPORARY_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(TEMPORARY_PASSWORD_ALPHABET) for _ in range(length))


def normalize_role(value: Optional[str]) -> str:
    """Role value written back to users on restore."""
    if not value or not value.strip():
        return "user"
    lowered = value.strip().lower()
    if lowered in ("it_admin", "it-admin", "it admin"):
        return "admin"
    return "_".join(lowered.replace("/", " ").replace("-", " ").split())


def archive_entry_query(table_name: str, id_column: str, archive_id: int):
    """The archive row being restored, locked until the restore commits."""
    source = table(table_name, column(id_column))
    return (
        select(literal_column("*"))
        .select_from(source)
        .where(source.c[id_column] == archive_id)
        .with_for_update()
    )


def _display_name(row: RowAccessor) -> Optional[str]:
    name = row.get_text("name")
    if name:
        return name
    combined = " ".join(p for p in (row.get_text("first_name"), row.get_text("last_name")) if p)
    return combined or row.get_text("username")


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class ArchiveStore:
    """
    Reads and manages rows of the archive table.

    Each public method opens its own transaction on the given session;
    ``restore`` opens one per entry so a failed entry never blocks others.
    """

    def __init__(self, session: AsyncSession, chunk_size: int = 500):
        self.session = session
        self.chunk_size = chunk_size

    async def list_archived(self, role: Optional[str] = None) -> Dict[str, Any]:
        async with UnitOfWork(self.session, label="archive:list") as uow:
            catalog = SchemaCatalog(uow)
            archive = await catalog.resolve(ARCHIVE_TABLE)
            if archive is None:
                return {
                    "total": 0,
                    "records": [],
                    "metadata": {"missingTables": list(ARCHIVE_TABLE.candidates)},
                }

            id_column = archive.first_column(ARCHIVE_ID_COLUMNS)
            archived_at = archive.first_column(ARCHIVED_AT_COLUMNS)
            role_column = archive.column("role")

            missing = [f"{archive.name}.{name}" for name in LISTED_COLUMNS if not archive.has(name)]
            if id_column is None:
                missing.insert(0, f"{archive.name}.archive_id")
            if archived_at is None:
                missing.append(f"{archive.name}.archived_at")

            order_column = archived_at or id_column
            known = [c for c in (order_column, role_column) if c is not None]
            source = table(archive.name, *[column(c) for c in dict.fromkeys(known)])
            stmt = select(literal_column("*")).select_from(source)

            role_filter = self._role_filter(role)
            if role_filter is not None and role_column is not None:
                stmt = stmt.where(source.c[role_column] == role_filter)
            if order_column is not None:
                stmt = stmt.order_by(desc(source.c[order_column]))

            result = await uow.execute(stmt)
            rows = [RowAccessor(mapping) for mapping in result.mappings().all()]

        records = []
        for row in rows:
            role_value = row.get_text("role")
            records.append({
                "archiveId": row.get_int(id_column) if id_column else None,
                "userId": row.get_int("user_id"),
                "role": role_value,
                "roleLabel": ROLE_LABELS.get(role_value, role_value) if role_value else "Unknown",
                "name": _display_name(row),
                "email": row.get_text("email"),
                "reason": row.get_text("reason"),
                "archivedDate": _iso(row.get(archived_at)) if archived_at else None,
            })

        listing: Dict[str, Any] = {"total": len(records), "records": records, "metadata": {}}
        if missing:
            listing["metadata"]["missingColumns"] = missing
        return listing

    async def purge(self, archive_ids: Sequence[int]) -> Dict[str, Any]:
        """Permanently delete archive entries and their archived history rows."""
        ids = normalize_ids(archive_ids)
        if not ids:
            return {"deleted": [], "affected_rows": 0}

        async with UnitOfWork(self.session, label="archive:purge") as uow:
            catalog = SchemaCatalog(uow)
            archive = await catalog.require(ARCHIVE_TABLE)
            id_column = self._require_id_column(archive)
            source = table(archive.name, column(id_column))

            existing: List[int] = []
            for chunk in chunked(ids, self.chunk_size):
                result = await uow.execute(select(source.c[id_column]).where(source.c[id_column].in_(chunk)))
                existing.extend(int(value) for value in result.scalars().all() if value)

            if not existing:
                return {"deleted": [], "affected_rows": 0}

            for history in await self._history_tables(catalog):
                ref_column = history.first_column(AUXILIARY_ARCHIVE_REF_COLUMNS)
                target = table(history.name, column(ref_column))
                for chunk in chunked(existing, self.chunk_size):
                    await uow.execute(delete(target).where(target.c[ref_column].in_(chunk)))

            affected = 0
            for chunk in chunked(existing, self.chunk_size):
                result = await uow.execute(delete(source).where(source.c[id_column].in_(chunk)))
                affected += max(result.rowcount or 0, 0)

        logger.info(f"Purged {affected} archive entries")
        return {"deleted": existing, "affected_rows": affected}

    async def restore(self, archive_ids: Sequence[int]) -> Dict[str, List[Dict[str, Any]]]:
        """Re-create live accounts from archive entries, one transaction per entry."""
        ids = normalize_ids(archive_ids)
        restored: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []

        for archive_id in ids:
            try:
                async with UnitOfWork(self.session, label=f"archive:restore:{archive_id}") as uow:
                    restored.append(await self._restore_entry(uow, archive_id))
            except PreconditionError:
                raise
            except RetirementException as e:
                logger.warning(
                    f"Could not restore archive entry {archive_id}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                errors.append({"archiveId": archive_id, "message": e.message})

        logger.info(f"Restored {len(restored)} of {len(ids)} archive entries")
        return {"restored": restored, "errors": errors}

    async def _restore_entry(self, uow: UnitOfWork, archive_id: int) -> Dict[str, Any]:
        catalog = SchemaCatalog(uow)
        archive = await catalog.require(ARCHIVE_TABLE)
        users = await catalog.require(USERS_TABLE)
        id_column = self._require_id_column(archive)
        user_id_column = users.first_column(USER_ID_COLUMNS)

        source = table(archive.name, column(id_column))
        result = await uow.execute(archive_entry_query(archive.name, id_column, archive_id))
        mapping = result.mappings().first()
        if mapping is None:
            raise ArchiveEntryError("Archive entry not found", context={"archive_id": archive_id})
        row = RowAccessor(mapping)

        original_id = row.get_int("user_id")
        role = normalize_role(row.get_text("role"))
        name = row.get_text("name") or row.get_text("username") or f"Restored User {original_id or archive_id}"
        first_name, middle_name, last_name = split_name(name)
        contact = normalize_contact(row)
        email = (
            row.first_text(("email", "user_email"))
            or (f"restored_user_{original_id}@restored.local" if original_id else f"restored_{archive_id}@restored.local")
        )
        username = row.get_text("username") or email

        await self._check_duplicate(uow, users, user_id_column, original_id, email, archive_id)

        now = datetime.utcnow()
        temporary_password = generate_temporary_password()
        candidates = [
            (user_id_column, original_id),
            ("first_name", first_name),
            ("middle_name", middle_name),
            ("last_name", last_name),
            ("name", name),
            ("email", email),
            ("username", username),
            ("role", role),
            ("contact_number", contact),
            ("phone_number", contact),
            ("status", "Active"),
            ("password", temporary_password),
            ("created_at", now),
            ("updated_at", now),
        ]
        values: Dict[str, Any] = {}
        for logical, value in candidates:
            physical = users.column(logical) if logical else None
            if physical is not None and value is not None and physical not in values:
                values[physical] = value

        if not values:
            raise ArchiveEntryError(
                "Unable to determine insert columns for users table",
                context={"archive_id": archive_id, "table_name": users.name}
            )

        generated_id = user_id_column is not None and user_id_column not in values
        columns = list(values) + ([user_id_column] if generated_id else [])
        target = table(users.name, *[
            column(c, DateTime()) if c.lower() in ("created_at", "updated_at") else column(c)
            for c in columns
        ])
        stmt = insert(target).values(values)

        if not generated_id:
            await uow.execute(stmt)
            restored_id = original_id
        elif uow.supports_returning:
            restored_id = (await uow.execute(stmt.returning(target.c[user_id_column]))).scalar_one()
        else:
            restored_id = (await uow.execute(stmt)).lastrowid

        if not restored_id or int(restored_id) <= 0:
            raise ArchiveEntryError(
                "Failed to determine restored user identifier",
                context={"archive_id": archive_id}
            )

        for history in await self._history_tables(catalog):
            ref_column = history.first_column(AUXILIARY_ARCHIVE_REF_COLUMNS)
            target = table(history.name, column(ref_column))
            await uow.execute(delete(target).where(target.c[ref_column] == archive_id))

        await uow.execute(delete(source).where(source.c[id_column] == archive_id))
        logger.info(f"Restored archive entry {archive_id} as account {restored_id}")

        return {
            "archiveId": archive_id,
            "userId": int(restored_id),
            "role": role,
            "name": name,
            "email": email,
            "temporaryPassword": temporary_password,
        }

    async def _check_duplicate(
        self,
        uow: UnitOfWork,
        users: SchemaTable,
        user_id_column: Optional[str],
        original_id: Optional[int],
        email: str,
        archive_id: int
    ) -> None:
        email_column = users.column("email")
        checked = [c for c in (user_id_column, email_column) if c is not None]
        if not checked:
            return

        target = table(users.name, *[column(c) for c in dict.fromkeys(checked)])
        conditions = []
        if user_id_column and original_id:
            conditions.append(target.c[user_id_column] == original_id)
        if email_column:
            conditions.append(target.c[email_column] == email)
        if not conditions:
            return

        result = await uow.execute(select(target.c[checked[0]]).where(or_(*conditions)).limit(1))
        if result.first() is not None:
            raise ArchiveEntryError(
                "A user with the same identifier or email already exists",
                context={"archive_id": archive_id, "user_id": original_id, "email": email}
            )

    @staticmethod
    def _role_filter(role: Optional[str]) -> Optional[str]:
        if not role or role.strip().lower() == "all":
            return None
        profile = get_profile(role)
        return profile.role if profile is not None else role.strip().lower()

    @staticmethod
    def _require_id_column(archive: SchemaTable) -> str:
        id_column = archive.first_column(ARCHIVE_ID_COLUMNS)
        if id_column is None:
            raise ArchiveStorageUnavailableError(
                "Archive table has no archive id column",
                context={"table_name": archive.name, "candidates": list(ARCHIVE_ID_COLUMNS)}
            )
        return id_column

    @staticmethod
    async def _history_tables(catalog: SchemaCatalog) -> List[SchemaTable]:
        names = []
        for profile in PROFILES.values():
            for aux in profile.auxiliary_tables:
                if aux.archive_table not in names:
                    names.append(aux.archive_table)

        tables = []
        for name in names:
            history = await catalog.get_table(name)
            if history is not None and history.first_column(AUXILIARY_ARCHIVE_REF_COLUMNS):
                tables.append(history)
        return tables
