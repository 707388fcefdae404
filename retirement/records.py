"""
In-memory records that live for the duration of one retirement batch.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.exceptions import SchemaAmbiguityWarning
from retirement.identifiers import ResolvedIdentifier
from retirement.profiles import KeyColumn, KeySource
from retirement.rows import RowAccessor


@dataclass
class SourceRecordBundle:
    """The live users row plus the optional role row for one account."""

    primary_id: int
    user_row: RowAccessor
    role_row: Optional[RowAccessor] = None
    alternate: Optional[ResolvedIdentifier] = None
    archived_id: Optional[int] = None

    def key_value(self, key: KeyColumn) -> Any:
        """Value to match ``key.column`` against for this account."""
        if key.source == KeySource.PRIMARY:
            return self.primary_id
        if key.source == KeySource.ALTERNATE:
            # Alternate-keyed columns are text; bind the string form
            return self.alternate.text if self.alternate is not None else str(self.primary_id)
        if self.role_row is None:
            return None
        return self.role_row.get(key.column)


@dataclass(frozen=True)
class ArchivedAccount:
    """One entry of the outbound ``archived`` list."""

    user_id: int
    name: Optional[str]
    email: Optional[str]
    archived_id: Optional[int] = None
    already_archived: bool = False

    def to_response(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class ArchiveOutcome:
    archived_id: Optional[int]
    created: bool = False
    patched: bool = False


@dataclass
class RetirementResult:
    role: str
    archived: List[ArchivedAccount] = field(default_factory=list)
    archive_ids: Dict[int, int] = field(default_factory=dict)
    alternate_archive_ids: Dict[str, int] = field(default_factory=dict)
    archives_created: int = 0
    archives_reused: int = 0
    history_rows_preserved: int = 0
    rows_deleted: Dict[str, int] = field(default_factory=dict)
    not_found: List[int] = field(default_factory=list)
    warnings: List[SchemaAmbiguityWarning] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "archived": len(self.archived),
            "archives_created": self.archives_created,
            "archives_reused": self.archives_reused,
            "history_rows_preserved": self.history_rows_preserved,
            "rows_deleted": sum(self.rows_deleted.values()),
            "not_found": len(self.not_found),
            "warnings": [w.to_dict() for w in self.warnings],
        }
