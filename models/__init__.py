"""
SQLAlchemy ORM models for the reference school schema.

The retirement engine discovers the live schema at runtime and never
depends on these classes; they define the reference deployment used by
scripts/init_db.py, Alembic and the test-suite.

Models:
    base: Base declarative class
    accounts: users, role tables, role join tables and account_logs
    archive: archived_users and archived history tables

Usage:
    from models import Base, User, Teacher, ArchivedUser

Relationships (foreign keys the engine discovers):
    - teacher, master_teacher, principal, it_admin, account_logs → users.user_id
    - teacher_handled → teacher.teacher_id
    - mt_coordinator_handled → master_teacher.master_teacher_id
    - archived_teacher_handled, archived_mt_coordinator_handled → archived_users.archived_id
"""

from models.base import Base
from models.accounts import (
    User,
    Teacher,
    TeacherHandled,
    MasterTeacher,
    MtCoordinatorHandled,
    Principal,
    ITAdmin,
    AccountLog,
)
from models.archive import (
    ArchivedUser,
    ArchivedTeacherHandled,
    ArchivedMtCoordinatorHandled,
)

__all__ = [
    "Base",
    "User",
    "Teacher",
    "TeacherHandled",
    "MasterTeacher",
    "MtCoordinatorHandled",
    "Principal",
    "ITAdmin",
    "AccountLog",
    "ArchivedUser",
    "ArchivedTeacherHandled",
    "ArchivedMtCoordinatorHandled",
]
