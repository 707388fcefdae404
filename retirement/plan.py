"""
Read-only discovery step of a retirement batch.

Resolves every table the batch will touch and the foreign keys pointing at
the users and role tables, and records which optional steps must be
skipped because the deployment lacks the table or column they need.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from core.exceptions import (
    ArchiveStorageUnavailableError,
    PrimaryTableUnavailableError,
    SchemaAmbiguityWarning,
    SchemaDriftError,
)
from retirement.foreign_keys import ForeignKeyIndex, ReferencingMap
from retirement.profiles import (
    ARCHIVE_ID_COLUMNS,
    ARCHIVE_TABLE,
    ARCHIVE_USER_ID_COLUMNS,
    SEPARATELY_DELETED_TABLES,
    SNAPSHOT_COLUMNS,
    USER_ID_COLUMNS,
    USERS_TABLE,
    KeyColumn,
    KeySource,
    RoleProfile,
)
from retirement.schema_catalog import SchemaCatalog, SchemaTable
from retirement.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

SKIP = "skip"
FAIL = "fail"

AUXILIARY_ARCHIVE_REF_COLUMNS = ("archived_id", "archive_id")


@dataclass(frozen=True)
class ResolvedAuxiliary:
    source: SchemaTable
    archive: SchemaTable
    key: KeyColumn
    archive_ref_column: str
    copy_columns: tuple


@dataclass(frozen=True)
class ResolvedJoin:
    table: SchemaTable
    key: KeyColumn


@dataclass
class RetirementPlan:
    profile: RoleProfile
    users: SchemaTable
    user_id_column: str
    archive: SchemaTable
    archive_id_column: Optional[str]
    archive_user_id_column: str
    snapshot_column: Optional[str]
    role_table: Optional[SchemaTable] = None
    role_lookup_column: Optional[str] = None
    role_key_columns: List[KeyColumn] = field(default_factory=list)
    user_references: ReferencingMap = field(default_factory=dict)
    role_references: ReferencingMap = field(default_factory=dict)
    auxiliary: List[ResolvedAuxiliary] = field(default_factory=list)
    join_tables: List[ResolvedJoin] = field(default_factory=list)
    separate_tables: List[ResolvedJoin] = field(default_factory=list)
    warnings: List[SchemaAmbiguityWarning] = field(default_factory=list)

    def excluded_tables(self) -> Set[str]:
        """Tables the generic foreign-key pass must never touch."""
        excluded = {self.users.name.lower(), self.archive.name.lower()}
        excluded.update(name.lower() for name in SEPARATELY_DELETED_TABLES)
        excluded.update(aux.archive.name.lower() for aux in self.auxiliary)
        if self.role_table is not None:
            excluded.add(self.role_table.name.lower())
        return excluded


async def build_plan(uow: UnitOfWork, profile: RoleProfile, drift_policy: str = SKIP) -> RetirementPlan:
    catalog = SchemaCatalog(uow)
    fk_index = ForeignKeyIndex(uow)
    warnings: List[SchemaAmbiguityWarning] = []

    archive = await catalog.require(ARCHIVE_TABLE)
    archive_user_id_column = archive.first_column(ARCHIVE_USER_ID_COLUMNS)
    if archive_user_id_column is None:
        raise ArchiveStorageUnavailableError(
            "Archive table has no user_id column",
            context={"table_name": archive.name}
        )

    users = await catalog.require(USERS_TABLE)
    user_id_column = users.first_column(USER_ID_COLUMNS)
    if user_id_column is None:
        raise PrimaryTableUnavailableError(
            "Users table has no identifier column",
            context={"table_name": users.name, "candidates": list(USER_ID_COLUMNS)}
        )

    plan = RetirementPlan(
        profile=profile,
        users=users,
        user_id_column=user_id_column,
        archive=archive,
        archive_id_column=archive.first_column(ARCHIVE_ID_COLUMNS),
        archive_user_id_column=archive_user_id_column,
        snapshot_column=archive.first_column(SNAPSHOT_COLUMNS),
        warnings=warnings,
    )

    role_table = await catalog.resolve(profile.table)
    if role_table is None:
        warnings.append(SchemaAmbiguityWarning(
            profile.table.logical_name,
            f"no role table among {', '.join(profile.table.candidates)}"
        ))
    else:
        plan.role_table = role_table
        plan.role_key_columns = [
            KeyColumn(role_table.column(key.column), key.source)
            for key in profile.row_key_columns
            if role_table.has(key.column)
        ]
        plan.role_lookup_column = next(
            (key.column for key in plan.role_key_columns if key.source == KeySource.PRIMARY),
            None
        )
        if plan.role_lookup_column is None:
            warnings.append(SchemaAmbiguityWarning(
                role_table.name, "role table has no column keyed by the account id"
            ))

    for aux in profile.auxiliary_tables:
        source = await catalog.get_table(aux.source_table)
        target = await catalog.get_table(aux.archive_table)
        key = _first_key(source, aux.key_columns) if source else None
        ref_column = target.first_column(AUXILIARY_ARCHIVE_REF_COLUMNS) if target else None
        if source is None or target is None or key is None or ref_column is None:
            warnings.append(SchemaAmbiguityWarning(
                aux.archive_table,
                f"cannot preserve {aux.source_table} history (table or key column missing)"
            ))
            continue
        if plan.archive_id_column is None:
            warnings.append(SchemaAmbiguityWarning(
                aux.archive_table, f"{archive.name} has no archive id column to key history by"
            ))
            continue
        plan.auxiliary.append(ResolvedAuxiliary(
            source=source,
            archive=target,
            key=key,
            archive_ref_column=ref_column,
            copy_columns=tuple(aux.copy_columns),
        ))

    for join in profile.join_tables:
        join_table = await catalog.get_table(join.table)
        key = _first_key(join_table, join.key_columns) if join_table else None
        if join_table is None or key is None:
            warnings.append(SchemaAmbiguityWarning(join.table, "join table or key column missing"))
            continue
        plan.join_tables.append(ResolvedJoin(table=join_table, key=key))

    for table_name, column_name in SEPARATELY_DELETED_TABLES.items():
        separate = await catalog.get_table(table_name)
        if separate is None or not separate.has(column_name):
            logger.debug(f"{table_name} absent or not keyed by {column_name}; not cleared")
            continue
        plan.separate_tables.append(ResolvedJoin(
            table=separate,
            key=KeyColumn(separate.column(column_name), KeySource.PRIMARY),
        ))

    plan.user_references = await fk_index.build_referencing_map(users.name)
    if role_table is not None:
        plan.role_references = await fk_index.build_referencing_map(role_table.name)

    for warning in warnings:
        logger.warning(f"Skipping optional retirement step: {warning}")

    if warnings and drift_policy == FAIL:
        raise SchemaDriftError(
            "Expected tables or columns are missing",
            context={
                "role": profile.role,
                "components": [w.to_dict() for w in warnings],
            }
        )

    return plan


def _first_key(table: SchemaTable, keys) -> Optional[KeyColumn]:
    for key in keys:
        physical = table.column(key.column)
        if physical is not None:
            return KeyColumn(physical, key.source)
    return None
