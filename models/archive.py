from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index
from datetime import datetime
from models.base import Base


class ArchivedUser(Base):
    """
    Durable history of a retired account.

    Purpose:
    - At most one row per retired ``user_id``
    - Survives deletion of every live row of the account
    - Source of restores

    Design Decisions:
    - ``user_id`` is a plain integer, not a foreign key: the live row is gone
    - ``snapshot_json`` holds the raw source rows for fields with no column here
    """
    __tablename__ = "archived_users"

    archived_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)

    role = Column(String(50), nullable=True, index=True)
    user_code = Column(String(50), nullable=True)
    username = Column(String(100), nullable=True)
    first_name = Column(String(100), nullable=True)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    contact_number = Column(String(50), nullable=True)

    # Role snapshot
    teacher_id = Column(String(50), nullable=True)
    master_teacher_id = Column(String(50), nullable=True)
    principal_id = Column(String(50), nullable=True)
    employee_id = Column(String(50), nullable=True)

    reason = Column(String(500), nullable=True)
    archived_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    snapshot_json = Column(Text, nullable=True)


class ArchivedTeacherHandled(Base):
    __tablename__ = "archived_teacher_handled"

    id = Column(Integer, primary_key=True, autoincrement=True)
    archived_id = Column(Integer, ForeignKey("archived_users.archived_id"), nullable=False)
    teacher_id = Column(String(50), nullable=True)
    grade_id = Column(Integer, nullable=True)
    archived_at = Column(DateTime, nullable=True, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_archived_teacher_handled_archive", "archived_id"),
    )


class ArchivedMtCoordinatorHandled(Base):
    __tablename__ = "archived_mt_coordinator_handled"

    id = Column(Integer, primary_key=True, autoincrement=True)
    archived_id = Column(Integer, ForeignKey("archived_users.archived_id"), nullable=False)
    master_teacher_id = Column(String(50), nullable=True)
    grade_id = Column(Integer, nullable=True)
    subject_id = Column(Integer, nullable=True)
    archived_at = Column(DateTime, nullable=True, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_archived_mt_coordinator_archive", "archived_id"),
    )
