"""
Unit tests for runtime schema discovery
"""

import pytest
from unittest.mock import AsyncMock, Mock
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.exceptions import ArchiveStorageUnavailableError, PreconditionError
from retirement.profiles import ARCHIVE_TABLE, TEACHER
from retirement.schema_catalog import SchemaCatalog, SchemaTable, TableDescriptor
from retirement.unit_of_work import UnitOfWork


def _information_schema_uow(tables):
    """UnitOfWork double answering information_schema column queries"""
    uow = Mock()
    uow.dialect_name = "postgresql"

    async def execute(statement, params=None):
        result = Mock()
        result.all.return_value = [(c,) for c in tables.get(params["table_name"], [])]
        return result

    uow.execute = AsyncMock(side_effect=execute)
    return uow


class TestSchemaTable:

    def test_column_lookup_is_case_insensitive(self):
        table = SchemaTable("users", frozenset({"User_Id", "email"}))

        assert table.column("user_id") == "User_Id"
        assert table.has("EMAIL")
        assert table.column("missing") is None
        assert table.first_column(("id", "user_id")) == "User_Id"


class TestInformationSchemaPath:

    @pytest.mark.asyncio
    async def test_first_non_empty_candidate_wins(self):
        uow = _information_schema_uow({
            "teachers": ["user_id", "teacher_id"],
            "faculty": ["user_id"],
        })
        catalog = SchemaCatalog(uow)

        table = await catalog.resolve(TEACHER.table)

        assert table.name == "teachers"
        assert table.columns == frozenset({"user_id", "teacher_id"})

    @pytest.mark.asyncio
    async def test_absent_table_is_empty_set(self):
        catalog = SchemaCatalog(_information_schema_uow({}))

        assert await catalog.get_columns("nope") == frozenset()
        assert await catalog.get_table("nope") is None

    @pytest.mark.asyncio
    async def test_columns_memoised_per_catalog(self):
        uow = _information_schema_uow({"users": ["user_id"]})
        catalog = SchemaCatalog(uow)

        await catalog.get_columns("users")
        await catalog.get_columns("USERS")

        assert uow.execute.await_count == 1

        # A new catalog sees the schema afresh
        await SchemaCatalog(uow).get_columns("users")
        assert uow.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_blank_column_names_dropped(self):
        catalog = SchemaCatalog(_information_schema_uow({"users": ["user_id", "", "  "]}))
        assert await catalog.get_columns("users") == frozenset({"user_id"})

    @pytest.mark.asyncio
    async def test_require_raises_descriptor_error(self):
        catalog = SchemaCatalog(_information_schema_uow({}))

        with pytest.raises(ArchiveStorageUnavailableError) as exc_info:
            await catalog.require(ARCHIVE_TABLE)

        assert exc_info.value.context["candidates"] == ["archived_users", "archive_users"]
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_require_default_error(self):
        catalog = SchemaCatalog(_information_schema_uow({}))
        descriptor = TableDescriptor("thing", ("thing",))

        with pytest.raises(PreconditionError):
            await catalog.require(descriptor)


class TestInspectorPath:

    @pytest.mark.asyncio
    async def test_resolver_selects_faculty(self, bare_engine):
        async with bare_engine.begin() as conn:
            await conn.execute(text(
                "CREATE TABLE faculty (faculty_id TEXT PRIMARY KEY, user_id INTEGER)"
            ))

        factory = async_sessionmaker(bare_engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as session:
            async with UnitOfWork(session) as uow:
                table = await SchemaCatalog(uow).resolve(TEACHER.table)

        assert table is not None
        assert table.name == "faculty"
        assert table.columns == frozenset({"faculty_id", "user_id"})

    @pytest.mark.asyncio
    async def test_missing_table_does_not_raise(self, bare_engine):
        factory = async_sessionmaker(bare_engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as session:
            async with UnitOfWork(session) as uow:
                catalog = SchemaCatalog(uow)
                assert await catalog.get_columns("teacher") == frozenset()
                assert await catalog.resolve(TEACHER.table) is None
