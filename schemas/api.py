"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from retirement.chunking import normalize_ids


# ============================================================================
# Retirement Schemas
# ============================================================================

class ArchiveAccountsRequest(BaseModel):
    """Batch of accounts to retire"""
    user_ids: List[int] = Field(default_factory=list, alias="userIds")
    reason: Optional[str] = Field(None, max_length=500, description="Why the accounts are archived")

    @validator("user_ids", pre=True)
    def filter_user_ids(cls, v):
        """Keep positive integers only, deduplicated, in request order"""
        if not isinstance(v, list):
            return []
        return normalize_ids(v)

    @validator("reason")
    def strip_reason(cls, v):
        if v is None:
            return None
        return v.strip() or None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "userIds": [42, 43],
                "reason": "Resigned"
            }
        }


class ArchivedAccountResponse(BaseModel):
    user_id: int = Field(..., alias="userId")
    name: Optional[str]
    email: Optional[str]

    class Config:
        populate_by_name = True


class ArchiveAccountsResponse(BaseModel):
    success: bool = True
    archived: List[ArchivedAccountResponse] = Field(default_factory=list)


# ============================================================================
# Archive Store Schemas
# ============================================================================

class ArchiveIdsRequest(BaseModel):
    """Archive entries to purge or restore"""
    archive_ids: List[int] = Field(default_factory=list, alias="archiveIds")

    @validator("archive_ids", pre=True)
    def filter_archive_ids(cls, v):
        if not isinstance(v, list):
            return []
        return normalize_ids(v)

    class Config:
        populate_by_name = True


class ArchiveRecordResponse(BaseModel):
    archive_id: Optional[int] = Field(None, alias="archiveId")
    user_id: Optional[int] = Field(None, alias="userId")
    role: Optional[str] = None
    role_label: Optional[str] = Field(None, alias="roleLabel")
    name: Optional[str] = None
    email: Optional[str] = None
    reason: Optional[str] = None
    archived_date: Optional[str] = Field(None, alias="archivedDate")

    class Config:
        populate_by_name = True


class ArchiveListResponse(BaseModel):
    total: int
    records: List[ArchiveRecordResponse] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PurgeResponse(BaseModel):
    success: bool
    deleted_archive_ids: List[int] = Field(default_factory=list, alias="deletedArchiveIds")
    affected_rows: int = Field(0, alias="affectedRows")

    class Config:
        populate_by_name = True


class RestoredEntryResponse(BaseModel):
    archive_id: int = Field(..., alias="archiveId")
    user_id: int = Field(..., alias="userId")
    role: str
    name: str
    email: str
    temporary_password: Optional[str] = Field(None, alias="temporaryPassword")

    class Config:
        populate_by_name = True


class RestoreErrorResponse(BaseModel):
    archive_id: int = Field(..., alias="archiveId")
    message: str

    class Config:
        populate_by_name = True


class RestoreResponse(BaseModel):
    success: bool
    restored: List[RestoredEntryResponse] = Field(default_factory=list)
    errors: List[RestoreErrorResponse] = Field(default_factory=list)


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    archive_table: Optional[str] = None
    users_table: Optional[str] = None
    # Declared last so the validator sees the fields above
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Unhealthy without a database, degraded without archive storage"""
        if not values.get("database_connected"):
            return "unhealthy"
        if not values.get("archive_table") or not values.get("users_table"):
            return "degraded"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "archive_table": "archived_users",
                "users_table": "users"
            }
        }
