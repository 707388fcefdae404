"""
Seed and assertion helpers shared by the integration and API tests
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from models import (
    User,
    Teacher,
    TeacherHandled,
    MasterTeacher,
    MtCoordinatorHandled,
    Principal,
    AccountLog,
    ArchivedUser,
)
from typing import Iterable


async def seed_teacher(
    session: AsyncSession,
    user_id: int,
    teacher_id: str = None,
    grades: Iterable[int] = (),
    logs: int = 0,
    **user_fields
) -> User:
    """Insert a teacher account with its role row, handled grades and logs"""
    teacher_id = teacher_id or f"T-{user_id:04d}"
    user = User(
        user_id=user_id,
        first_name=user_fields.pop("first_name", "Teacher"),
        last_name=user_fields.pop("last_name", str(user_id)),
        email=user_fields.pop("email", f"teacher{user_id}@school.test"),
        role="teacher",
        password="hashed",
        **user_fields
    )
    session.add(user)
    await session.flush()

    session.add(Teacher(teacher_id=teacher_id, user_id=user_id, employee_id=f"EMP-{user_id}"))
    await session.flush()

    for grade in grades:
        session.add(TeacherHandled(teacher_id=teacher_id, grade_id=grade))
    for i in range(logs):
        session.add(AccountLog(user_id=user_id, action=f"login-{i}"))

    await session.commit()
    return user


async def seed_master_teacher(
    session: AsyncSession,
    user_id: int,
    master_teacher_id: str = None,
    coordinated=()
) -> User:
    master_teacher_id = master_teacher_id or f"MT-{user_id:04d}"
    user = User(
        user_id=user_id,
        name=f"Master Teacher {user_id}",
        email=f"mt{user_id}@school.test",
        role="master_teacher",
    )
    session.add(user)
    await session.flush()

    session.add(MasterTeacher(master_teacher_id=master_teacher_id, user_id=user_id))
    await session.flush()

    for grade_id, subject_id in coordinated:
        session.add(MtCoordinatorHandled(
            master_teacher_id=master_teacher_id, grade_id=grade_id, subject_id=subject_id
        ))

    await session.commit()
    return user


async def seed_principal(session: AsyncSession, user_id: int) -> User:
    user = User(
        user_id=user_id,
        username=f"principal{user_id}",
        email=f"principal{user_id}@school.test",
        role="principal",
    )
    session.add(user)
    await session.flush()
    session.add(Principal(principal_id=f"P-{user_id}", user_id=user_id))
    await session.commit()
    return user


async def count_rows(session: AsyncSession, model, *criteria) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


async def archive_rows(session: AsyncSession, user_id: int):
    result = await session.execute(
        select(ArchivedUser)
        .where(ArchivedUser.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()
