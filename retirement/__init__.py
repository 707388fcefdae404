"""
Account retirement engine.

Archives school accounts and removes every live row that references them,
discovering the deployment's tables and foreign keys at runtime.

Modules:
    rows: RowAccessor over dynamically shaped rows
    chunking: IN-clause batching and id normalisation
    unit_of_work: transaction scope and database error translation
    schema_catalog: table/column discovery (SchemaCatalog, TableDescriptor)
    foreign_keys: referencing-map discovery (ForeignKeyIndex)
    identifiers: alternate ids and display fields (IdentifierResolver)
    profiles: per-role table candidates and key columns
    plan: read-only discovery step of one batch
    archive_writer: archive rows and preserved history (ArchiveWriter)
    cascade: dependency-ordered deletes (CascadeDeleter)
    coordinator: one-transaction orchestration (RetirementCoordinator)
    archive_store: list, purge and restore of archive entries

Usage:
    from retirement import RetirementCoordinator, get_profile

    async with async_session_maker() as session:
        coordinator = RetirementCoordinator(session, get_profile("teacher"))
        result = await coordinator.retire([42], reason="Resigned")
"""

from retirement.archive_store import ArchiveStore
from retirement.archive_writer import ArchiveWriter
from retirement.cascade import CascadeDeleter
from retirement.coordinator import RetirementCoordinator
from retirement.foreign_keys import ForeignKeyEdge, ForeignKeyIndex
from retirement.identifiers import IdentifierResolver
from retirement.profiles import PROFILES, RoleProfile, get_profile
from retirement.records import ArchivedAccount, RetirementResult, SourceRecordBundle
from retirement.rows import RowAccessor
from retirement.schema_catalog import SchemaCatalog, SchemaTable, TableDescriptor
from retirement.unit_of_work import UnitOfWork

__all__ = [
    "ArchiveStore",
    "ArchiveWriter",
    "CascadeDeleter",
    "RetirementCoordinator",
    "ForeignKeyEdge",
    "ForeignKeyIndex",
    "IdentifierResolver",
    "PROFILES",
    "RoleProfile",
    "get_profile",
    "ArchivedAccount",
    "RetirementResult",
    "SourceRecordBundle",
    "RowAccessor",
    "SchemaCatalog",
    "SchemaTable",
    "TableDescriptor",
    "UnitOfWork",
]
