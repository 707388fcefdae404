"""
Shared FastAPI dependencies
"""

from typing import AsyncIterator

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from retirement.profiles import RoleProfile, get_profile


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped database session"""
    async for session in get_session():
        yield session


def get_role_profile(role: str) -> RoleProfile:
    """Resolve the ``{role}`` path segment to a retirement profile"""
    profile = get_profile(role)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown account role: {role}")
    return profile
