"""
Role profiles: where each kind of account keeps its role-specific data.

A profile names the candidate role tables, the columns an alternate
identifier may live in, how the role row is keyed, and which auxiliary
tables must be preserved or cleared when the account is retired.
"""

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.exceptions import ArchiveStorageUnavailableError, PrimaryTableUnavailableError
from retirement.schema_catalog import TableDescriptor


class KeySource(str, enum.Enum):
    """Which value a key column is matched against"""
    PRIMARY = "primary"      # the numeric account id
    ALTERNATE = "alternate"  # the resolved alternate identifier
    ROW = "row"              # the role row's own value in that column


@dataclass(frozen=True)
class KeyColumn:
    column: str
    source: KeySource = KeySource.PRIMARY


@dataclass(frozen=True)
class AuxiliaryTable:
    """
    Live rows copied into an archived counterpart before deletion.

    Archived copies are keyed by the archive id, plus whichever of
    ``copy_columns`` the archived table has.
    """
    source_table: str
    archive_table: str
    key_columns: Tuple[KeyColumn, ...]
    copy_columns: Tuple[str, ...]


@dataclass(frozen=True)
class JoinTable:
    """Relationship table cleared by the first key column it actually has."""
    table: str
    key_columns: Tuple[KeyColumn, ...]


@dataclass(frozen=True)
class RoleProfile:
    role: str
    label: str
    table: TableDescriptor
    alternate_id_columns: Tuple[str, ...]
    row_key_columns: Tuple[KeyColumn, ...]
    snapshot_fields: Tuple[str, ...] = ()
    auxiliary_tables: Tuple[AuxiliaryTable, ...] = ()
    join_tables: Tuple[JoinTable, ...] = ()


# ============================================================================
# Shared tables
# ============================================================================

USERS_TABLE = TableDescriptor(
    logical_name="users",
    candidates=("users",),
    missing_error=PrimaryTableUnavailableError,
)
USER_ID_COLUMNS = ("user_id", "id")

ARCHIVE_TABLE = TableDescriptor(
    logical_name="archive",
    candidates=("archived_users", "archive_users"),
    missing_error=ArchiveStorageUnavailableError,
)
ARCHIVE_ID_COLUMNS = ("archived_id", "archive_id", "id")
ARCHIVE_USER_ID_COLUMNS = ("user_id",)
SNAPSHOT_COLUMNS = ("snapshot_json", "snapshot")

# Tables referencing users that are cleared in their own step, only when
# they key directly on the account id.
SEPARATELY_DELETED_TABLES = {
    "account_logs": "user_id",
}


# ============================================================================
# Profiles
# ============================================================================

TEACHER = RoleProfile(
    role="teacher",
    label="Teacher",
    table=TableDescriptor(
        logical_name="teacher",
        candidates=(
            "teacher",
            "teachers",
            "teacher_info",
            "teacher_accounts",
            "faculty",
            "teacher_tbl",
            "remedial_teacher",
            "remedial_teachers",
            "remedial_teacher_info",
            "remedial_teacher_tbl",
        ),
    ),
    alternate_id_columns=("teacher_id", "employee_id", "faculty_id", "teacher_code", "user_id"),
    row_key_columns=(
        KeyColumn("user_id"),
        KeyColumn("teacher_id"),
        KeyColumn("employee_id"),
    ),
    snapshot_fields=("teacher_id", "employee_id", "faculty_id"),
    auxiliary_tables=(
        AuxiliaryTable(
            source_table="teacher_handled",
            archive_table="archived_teacher_handled",
            key_columns=(KeyColumn("teacher_id", KeySource.ALTERNATE),),
            copy_columns=("teacher_id", "grade_id"),
        ),
    ),
    join_tables=(
        JoinTable(
            table="teacher_handled",
            key_columns=(
                KeyColumn("teacher_id", KeySource.ALTERNATE),
                KeyColumn("user_id"),
            ),
        ),
        JoinTable(
            table="mt_coordinator_handled",
            key_columns=(
                KeyColumn("master_teacher_id", KeySource.ALTERNATE),
                KeyColumn("teacher_id", KeySource.ALTERNATE),
            ),
        ),
    ),
)

MASTER_TEACHER = RoleProfile(
    role="master_teacher",
    label="Master Teacher",
    table=TableDescriptor(
        logical_name="master_teacher",
        candidates=(
            "master_teacher",
            "master_teachers",
            "masterteacher",
            "master_teacher_info",
            "master_teacher_tbl",
            "mt_coordinator",
        ),
    ),
    alternate_id_columns=("master_teacher_id", "masterteacher_id", "teacher_id", "employee_id", "user_id"),
    row_key_columns=(
        KeyColumn("user_id"),
        KeyColumn("master_teacher_id", KeySource.ROW),
        KeyColumn("masterteacher_id", KeySource.ROW),
        KeyColumn("teacher_id", KeySource.ROW),
        KeyColumn("coord_id", KeySource.ROW),
        KeyColumn("id", KeySource.ROW),
    ),
    snapshot_fields=("master_teacher_id", "employee_id"),
    auxiliary_tables=(
        AuxiliaryTable(
            source_table="mt_coordinator_handled",
            archive_table="archived_mt_coordinator_handled",
            key_columns=(KeyColumn("master_teacher_id", KeySource.ALTERNATE),),
            copy_columns=("master_teacher_id", "grade_id", "subject_id"),
        ),
    ),
    join_tables=(
        JoinTable(
            table="mt_coordinator_handled",
            key_columns=(
                KeyColumn("master_teacher_id", KeySource.ALTERNATE),
                KeyColumn("user_id"),
            ),
        ),
    ),
)

PRINCIPAL = RoleProfile(
    role="principal",
    label="Principal",
    table=TableDescriptor(
        logical_name="principal",
        candidates=("principal", "principals", "principal_info"),
    ),
    alternate_id_columns=("principal_id", "employee_id", "user_id"),
    row_key_columns=(
        KeyColumn("user_id"),
        KeyColumn("principal_id", KeySource.ROW),
    ),
    snapshot_fields=("principal_id", "employee_id"),
)

IT_ADMIN = RoleProfile(
    role="it_admin",
    label="IT Admin",
    table=TableDescriptor(
        logical_name="it_admin",
        candidates=("it_admin", "it_admins"),
    ),
    alternate_id_columns=("it_admin_id", "admin_id", "employee_id", "user_id"),
    row_key_columns=(
        KeyColumn("user_id"),
        KeyColumn("it_admin_id", KeySource.ROW),
        KeyColumn("admin_id", KeySource.ROW),
    ),
)

PROFILES: Dict[str, RoleProfile] = {
    profile.role: profile
    for profile in (TEACHER, MASTER_TEACHER, PRINCIPAL, IT_ADMIN)
}

ROLE_ALIASES = {
    "teachers": "teacher",
    "masterteacher": "master_teacher",
    "master-teacher": "master_teacher",
    "master-teachers": "master_teacher",
    "master_teachers": "master_teacher",
    "principals": "principal",
    "admin": "it_admin",
    "it-admin": "it_admin",
}


def get_profile(role: str) -> Optional[RoleProfile]:
    key = (role or "").strip().lower()
    key = ROLE_ALIASES.get(key, key)
    return PROFILES.get(key)
