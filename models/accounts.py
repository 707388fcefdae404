from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index
from datetime import datetime
from models.base import Base


class User(Base):
    """
    Live account of any role.

    Role-specific data lives in the role tables below, each keyed back to
    ``users.user_id``.
    """
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    user_code = Column(String(50), nullable=True, index=True)
    username = Column(String(100), nullable=True)
    first_name = Column(String(100), nullable=True)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    suffix = Column(String(20), nullable=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, unique=True)
    contact_number = Column(String(50), nullable=True)

    # Access
    role = Column(String(50), nullable=True, index=True)
    password = Column(String(255), nullable=True)
    status = Column(String(20), nullable=True, default="Active")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, default=datetime.utcnow, onupdate=datetime.utcnow)


class Teacher(Base):
    __tablename__ = "teacher"

    teacher_id = Column(String(50), primary_key=True)  # Staff code, e.g. "T-0042"
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, unique=True)
    employee_id = Column(String(50), nullable=True)


class TeacherHandled(Base):
    """Grades a teacher is assigned to, keyed by staff code."""
    __tablename__ = "teacher_handled"

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(String(50), ForeignKey("teacher.teacher_id"), nullable=False, index=True)
    grade_id = Column(Integer, nullable=False)


class MasterTeacher(Base):
    __tablename__ = "master_teacher"

    master_teacher_id = Column(String(50), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, unique=True)
    employee_id = Column(String(50), nullable=True)


class MtCoordinatorHandled(Base):
    """Grade/subject pairs a master teacher coordinates."""
    __tablename__ = "mt_coordinator_handled"

    id = Column(Integer, primary_key=True, autoincrement=True)
    master_teacher_id = Column(
        String(50), ForeignKey("master_teacher.master_teacher_id"), nullable=False, index=True
    )
    grade_id = Column(Integer, nullable=False)
    subject_id = Column(Integer, nullable=True)


class Principal(Base):
    __tablename__ = "principal"

    principal_id = Column(String(50), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, unique=True)
    employee_id = Column(String(50), nullable=True)


class ITAdmin(Base):
    __tablename__ = "it_admin"

    it_admin_id = Column(String(50), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, unique=True)


class AccountLog(Base):
    """Login/session audit trail."""
    __tablename__ = "account_logs"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_account_logs_user_created", "user_id", "created_at"),
    )
