"""
Unit tests for row locks taken by retirement and restore reads
"""

from sqlalchemy.dialects import mysql, postgresql, sqlite
from retirement.archive_store import archive_entry_query
from retirement.coordinator import rows_by_key_query


def _sql(stmt, dialect):
    return str(stmt.compile(dialect=dialect))


class TestAccountRowsQuery:

    def test_users_read_locks_rows_on_postgresql(self):
        stmt = rows_by_key_query("users", "user_id", [42, 43], for_update=True)

        sql = _sql(stmt, postgresql.dialect())

        assert "FROM users" in sql
        assert sql.rstrip().endswith("FOR UPDATE")

    def test_users_read_locks_rows_on_mysql(self):
        stmt = rows_by_key_query("users", "user_id", [42], for_update=True)
        assert "FOR UPDATE" in _sql(stmt, mysql.dialect())

    def test_lock_omitted_on_sqlite(self):
        stmt = rows_by_key_query("users", "user_id", [42], for_update=True)
        assert "FOR UPDATE" not in _sql(stmt, sqlite.dialect())

    def test_role_rows_not_locked_by_default(self):
        stmt = rows_by_key_query("teacher", "user_id", [42])
        assert "FOR UPDATE" not in _sql(stmt, postgresql.dialect())


class TestArchiveEntryQuery:

    def test_restore_read_locks_archive_row(self):
        sql = _sql(archive_entry_query("archived_users", "archived_id", 7), postgresql.dialect())

        assert "FROM archived_users" in sql
        assert "archived_users.archived_id =" in sql
        assert sql.rstrip().endswith("FOR UPDATE")
