"""
Unit tests for archive row construction and history preservation
"""

import json
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, Mock
from retirement.archive_writer import ArchiveWriter
from retirement.identifiers import ResolvedIdentifier
from retirement.plan import ResolvedAuxiliary, RetirementPlan
from retirement.profiles import TEACHER, KeyColumn, KeySource
from retirement.records import SourceRecordBundle
from retirement.rows import RowAccessor
from retirement.schema_catalog import SchemaTable


def _writer(archive_columns, snapshot_column=None, role_table=True):
    plan = RetirementPlan(
        profile=TEACHER,
        users=SchemaTable("users", frozenset({"user_id"})),
        user_id_column="user_id",
        archive=SchemaTable("archived_users", frozenset(archive_columns)),
        archive_id_column="archived_id",
        archive_user_id_column="user_id",
        snapshot_column=snapshot_column,
        role_table=SchemaTable("teacher", frozenset({"teacher_id", "user_id"})) if role_table else None,
    )
    return ArchiveWriter(Mock(), plan)


def _bundle():
    return SourceRecordBundle(
        primary_id=42,
        user_row=RowAccessor({
            "user_id": 42,
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": " ada@school.test ",
            "phone_number": "555-0100",
            "password": "hashed",
            "role": None,
        }),
        role_row=RowAccessor({"teacher_id": "T-0042", "user_id": 42}),
    )


class TestBuildValues:

    def test_only_columns_the_archive_has(self):
        writer = _writer({"archived_id", "user_id", "name", "email", "reason"})

        values = writer.build_values(_bundle(), "policy violation")

        assert values == {
            "user_id": 42,
            "name": "Ada Lovelace",
            "email": "ada@school.test",
            "reason": "policy violation",
        }

    def test_role_defaults_to_profile_and_snapshot_fields_copied(self):
        writer = _writer({"user_id", "role", "teacher_id", "contact_number", "archived_at"})

        values = writer.build_values(_bundle(), "r")

        assert values["role"] == "teacher"
        assert values["teacher_id"] == "T-0042"
        assert values["contact_number"] == "555-0100"
        assert isinstance(values["archived_at"], datetime)

    def test_physical_column_spelling_used(self):
        writer = _writer({"User_Id", "EMAIL"})

        values = writer.build_values(_bundle(), "r")

        assert values == {"User_Id": 42, "EMAIL": "ada@school.test"}

    def test_absent_values_not_written(self):
        writer = _writer({"user_id", "middle_name", "username", "role_id"})

        values = writer.build_values(_bundle(), "r")

        assert values == {"user_id": 42}

    def test_snapshot_serialises_source_rows(self):
        writer = _writer({"user_id", "snapshot_json"}, snapshot_column="snapshot_json")

        values = writer.build_values(_bundle(), "r")
        snapshot = json.loads(values["snapshot_json"])

        assert snapshot["role_table"] == "teacher"
        assert snapshot["user"]["password"] == "hashed"
        assert snapshot["role"] == {"teacher_id": "T-0042", "user_id": 42}

    def test_snapshot_without_role_row(self):
        writer = _writer({"user_id", "snapshot"}, snapshot_column="snapshot", role_table=False)
        bundle = _bundle()
        bundle.role_row = None

        snapshot = json.loads(writer.build_values(bundle, "r")["snapshot"])

        assert snapshot["role"] is None
        assert snapshot["role_table"] is None


def _result(rows):
    result = Mock()
    result.mappings.return_value.all.return_value = rows
    return result


class TestPreserveAuxiliary:

    def _writer(self, archive_columns):
        plan = RetirementPlan(
            profile=TEACHER,
            users=SchemaTable("users", frozenset({"user_id"})),
            user_id_column="user_id",
            archive=SchemaTable("archived_users", frozenset({"archived_id", "user_id"})),
            archive_id_column="archived_id",
            archive_user_id_column="user_id",
            snapshot_column=None,
            auxiliary=[ResolvedAuxiliary(
                source=SchemaTable("teacher_handled", frozenset({"teacher_id", "grade_id"})),
                archive=SchemaTable("archived_teacher_handled", frozenset(archive_columns)),
                key=KeyColumn("teacher_id", KeySource.ALTERNATE),
                archive_ref_column="archived_id",
                copy_columns=("teacher_id", "grade_id"),
            )],
        )
        uow = Mock()
        uow.execute = AsyncMock()
        return ArchiveWriter(uow, plan), uow

    def _bundle(self):
        bundle = _bundle()
        bundle.alternate = ResolvedIdentifier("T-0042", "T-0042", "teacher_id")
        bundle.archived_id = 900
        return bundle

    @pytest.mark.asyncio
    async def test_rows_without_shared_columns_matched_one_for_one(self):
        writer, uow = self._writer({"id", "archived_id"})
        live = [{"teacher_id": "T-0042", "grade_id": g} for g in (1, 2, 3)]
        uow.execute.side_effect = [_result(live), _result([{"archived_id": 900}]), Mock(), Mock()]

        written = await writer.preserve_auxiliary(self._bundle())

        # One archived row already stands for one live row
        assert written == 2
        assert uow.execute.await_count == 4

    @pytest.mark.asyncio
    async def test_identical_live_rows_all_preserved(self):
        writer, uow = self._writer({"id", "archived_id", "teacher_id"})
        live = [{"teacher_id": "T-0042", "grade_id": 1}, {"teacher_id": "T-0042", "grade_id": 1}]
        uow.execute.side_effect = [_result(live), _result([]), Mock(), Mock()]

        assert await writer.preserve_auxiliary(self._bundle()) == 2

    @pytest.mark.asyncio
    async def test_fully_preserved_history_not_copied_again(self):
        writer, uow = self._writer({"id", "archived_id", "teacher_id", "grade_id"})
        live = [{"teacher_id": "T-0042", "grade_id": g} for g in (1, 2)]
        existing = [{"teacher_id": "T-0042", "grade_id": g} for g in (2, 1)]
        uow.execute.side_effect = [_result(live), _result(existing)]

        assert await writer.preserve_auxiliary(self._bundle()) == 0

    @pytest.mark.asyncio
    async def test_live_rows_selected_by_alternate_text(self):
        writer, uow = self._writer({"id", "archived_id"})
        bundle = self._bundle()
        bundle.alternate = ResolvedIdentifier(42, "42", "user_id")
        uow.execute.side_effect = [_result([])]

        await writer.preserve_auxiliary(bundle)

        stmt = uow.execute.await_args.args[0]
        assert list(stmt.compile().params.values()) == ["42"]
