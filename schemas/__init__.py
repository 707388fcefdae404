"""
Pydantic schemas for the HTTP surface of the retirement engine.

Schemas:
    api: request/response models for account archiving, the archive
         listing, purge, restore and the health check

Request models accept the camelCase field names used by the school
frontend (``userIds``, ``archiveIds``); identifiers that are not positive
integers are dropped during validation instead of rejecting the request.

Usage:
    from schemas.api import ArchiveAccountsRequest, ArchiveListResponse
"""

__all__ = [
    "ArchiveAccountsRequest",
    "ArchiveAccountsResponse",
    "ArchivedAccountResponse",
    "ArchiveIdsRequest",
    "ArchiveRecordResponse",
    "ArchiveListResponse",
    "PurgeResponse",
    "RestoredEntryResponse",
    "RestoreErrorResponse",
    "RestoreResponse",
    "HealthCheckResponse",
]
