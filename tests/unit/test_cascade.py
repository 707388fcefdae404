"""
Unit tests for dependency-ordered cascade deletion
"""

import pytest
from unittest.mock import AsyncMock, Mock
from retirement.cascade import CascadeDeleter
from retirement.foreign_keys import ForeignKeyEdge
from retirement.identifiers import ResolvedIdentifier
from retirement.plan import ResolvedJoin, RetirementPlan
from retirement.profiles import TEACHER, KeyColumn, KeySource
from retirement.records import SourceRecordBundle
from retirement.rows import RowAccessor
from retirement.schema_catalog import SchemaTable


def _table(name, *columns):
    return SchemaTable(name, frozenset(columns))


def _plan():
    return RetirementPlan(
        profile=TEACHER,
        users=_table("users", "user_id", "email"),
        user_id_column="user_id",
        archive=_table("archived_users", "archived_id", "user_id"),
        archive_id_column="archived_id",
        archive_user_id_column="user_id",
        snapshot_column=None,
        role_table=_table("teacher", "teacher_id", "user_id"),
        role_lookup_column="user_id",
        role_key_columns=[KeyColumn("user_id")],
        user_references={
            "teacher": [ForeignKeyEdge("teacher", "user_id", "user_id")],
            "account_logs": [ForeignKeyEdge("account_logs", "user_id", "user_id")],
            "archived_users": [ForeignKeyEdge("archived_users", "user_id", "user_id")],
            "attendance": [ForeignKeyEdge("attendance", "recorded_by", "user_id")],
            "notes": [ForeignKeyEdge("notes", "author_email", "email")],
        },
        role_references={
            "teacher_handled": [ForeignKeyEdge("teacher_handled", "teacher_id", "teacher_id")],
        },
        join_tables=[
            ResolvedJoin(
                _table("mt_coordinator_handled", "master_teacher_id"),
                KeyColumn("master_teacher_id", KeySource.ALTERNATE),
            )
        ],
        separate_tables=[
            ResolvedJoin(_table("account_logs", "user_id"), KeyColumn("user_id")),
        ],
    )


def _bundle(user_id, with_role=True):
    teacher_id = f"T-{user_id}"
    role_row = RowAccessor({"teacher_id": teacher_id, "user_id": user_id}) if with_role else None
    return SourceRecordBundle(
        primary_id=user_id,
        user_row=RowAccessor({"user_id": user_id, "email": f"u{user_id}@school.test"}),
        role_row=role_row,
        alternate=ResolvedIdentifier(teacher_id, teacher_id, "teacher_id") if with_role else None,
    )


def _recording_uow(rowcount=1):
    """UnitOfWork double recording (table, column, values) per DELETE"""
    statements = []

    async def execute(statement, params=None):
        where = statement.whereclause
        values = list(statement.compile().params.values())[0]
        statements.append((statement.table.name, where.left.name, list(values)))
        return Mock(rowcount=rowcount)

    uow = Mock()
    uow.execute = AsyncMock(side_effect=execute)
    return uow, statements


class TestCascadeDeleter:

    @pytest.mark.asyncio
    async def test_children_deleted_before_role_row_and_account(self):
        uow, statements = _recording_uow()

        await CascadeDeleter(uow, _plan()).delete_dependents([_bundle(42)])

        assert [(t, c) for t, c, _ in statements] == [
            ("attendance", "recorded_by"),
            ("notes", "author_email"),
            ("teacher_handled", "teacher_id"),
            ("mt_coordinator_handled", "master_teacher_id"),
            ("teacher", "user_id"),
            ("account_logs", "user_id"),
            ("users", "user_id"),
        ]

    @pytest.mark.asyncio
    async def test_values_come_from_referenced_columns(self):
        uow, statements = _recording_uow()

        await CascadeDeleter(uow, _plan()).delete_dependents([_bundle(42)])

        by_table = {t: v for t, _, v in statements}
        assert by_table["attendance"] == [42]
        assert by_table["notes"] == ["u42@school.test"]
        assert by_table["teacher_handled"] == ["T-42"]
        assert by_table["mt_coordinator_handled"] == ["T-42"]

    @pytest.mark.asyncio
    async def test_excluded_tables_never_touched_by_foreign_key_pass(self):
        uow, statements = _recording_uow()

        await CascadeDeleter(uow, _plan()).delete_dependents(
            [_bundle(42)], exclude_tables=["Attendance"]
        )

        tables = [t for t, _, _ in statements]
        assert "archived_users" not in tables
        assert "attendance" not in tables
        assert tables.count("teacher") == 1
        assert tables.count("account_logs") == 1

    @pytest.mark.asyncio
    async def test_role_pass_skipped_without_role_rows(self):
        uow, statements = _recording_uow()

        await CascadeDeleter(uow, _plan()).delete_dependents([_bundle(7, with_role=False)])

        tables = [t for t, _, _ in statements]
        assert "teacher_handled" not in tables
        # Without a role row the alternate key is the account id as text
        assert ("mt_coordinator_handled", "master_teacher_id", ["7"]) in statements
        assert ("teacher", "user_id", [7]) in statements

    @pytest.mark.asyncio
    async def test_alternate_keys_bound_as_text_in_mixed_batch(self):
        uow, statements = _recording_uow()
        numeric_alternate = _bundle(9)
        numeric_alternate.alternate = ResolvedIdentifier(9, "9", "user_id")

        await CascadeDeleter(uow, _plan()).delete_dependents(
            [_bundle(42), _bundle(7, with_role=False), numeric_alternate]
        )

        values = next(v for t, c, v in statements if t == "mt_coordinator_handled")
        assert values == ["T-42", "7", "9"]
        assert all(isinstance(v, str) for v in values)

    @pytest.mark.asyncio
    async def test_1200_accounts_deleted_in_three_chunks(self):
        uow, statements = _recording_uow()
        bundles = [_bundle(i, with_role=False) for i in range(1, 1201)]

        await CascadeDeleter(uow, _plan(), chunk_size=500).delete_dependents(bundles)

        user_deletes = [v for t, _, v in statements if t == "users"]
        assert [len(v) for v in user_deletes] == [500, 500, 200]
        assert sorted(i for chunk in user_deletes for i in chunk) == list(range(1, 1201))

    @pytest.mark.asyncio
    async def test_rows_deleted_reported_per_table_column(self):
        uow, _ = _recording_uow(rowcount=3)

        deleted = await CascadeDeleter(uow, _plan()).delete_dependents([_bundle(42)])

        assert deleted["users.user_id"] == 3
        assert deleted["teacher_handled.teacher_id"] == 3

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self):
        uow, statements = _recording_uow()

        assert await CascadeDeleter(uow, _plan()).delete_dependents([]) == {}
        assert statements == []

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            CascadeDeleter(Mock(), _plan(), chunk_size=0)
