"""
Alternate identifiers and display fields derived from source rows.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from retirement.rows import RowAccessor

NAME_PART_COLUMNS = ("first_name", "middle_name", "last_name")
CONTACT_COLUMNS = ("contact_number", "phone_number", "mobile", "contact")


@dataclass(frozen=True)
class ResolvedIdentifier:
    """
    An alternate identifier in both forms.

    ``value`` keeps the database type it was read with; ``text`` is the
    trimmed string form bound against alternate-keyed columns.
    """

    value: Any
    text: str
    column: Optional[str]

    @property
    def is_fallback(self) -> bool:
        return self.column is None


class IdentifierResolver:
    """
    Resolves the key under which a role-specific table refers to an account.

    Candidate columns are tried in order on the role row; blank values are
    treated as absent and the primary id is the final fallback.
    """

    def __init__(self, candidate_columns: Sequence[str]):
        self.candidate_columns = tuple(candidate_columns)

    def resolve(self, primary_id: int, role_row: Optional[RowAccessor]) -> ResolvedIdentifier:
        if role_row is not None:
            for column in self.candidate_columns:
                value = role_row.get(column)
                if value is None:
                    continue
                text = value.strip() if isinstance(value, str) else str(value).strip()
                if not text:
                    continue
                return ResolvedIdentifier(
                    value=text if isinstance(value, str) else value,
                    text=text,
                    column=column,
                )

        return ResolvedIdentifier(value=primary_id, text=str(primary_id), column=None)

    def resolve_alternate_id(self, primary_id: int, role_row: Optional[RowAccessor]) -> Optional[str]:
        return self.resolve(primary_id, role_row).text


def compute_full_name(user_row: RowAccessor) -> Optional[str]:
    """name, else first/middle/last, else username, else email, else "User <id>"."""
    name = user_row.get_text("name")
    if name:
        return name

    parts = [part for part in (user_row.get_text(c) for c in NAME_PART_COLUMNS) if part]
    if parts:
        return " ".join(parts)

    fallback = user_row.first_text(("username", "email"))
    if fallback:
        return fallback

    user_id = user_row.get_int("user_id")
    return f"User {user_id}" if user_id else None


def normalize_contact(user_row: RowAccessor) -> Optional[str]:
    return user_row.first_text(CONTACT_COLUMNS)


def split_name(name: Optional[str]):
    """Split a display name into (first, middle, last)."""
    if not name:
        return None, None, None

    parts = name.split()
    if not parts:
        return None, None, None
    if len(parts) == 1:
        return parts[0], None, None
    if len(parts) == 2:
        return parts[0], None, parts[1]
    return parts[0], " ".join(parts[1:-1]), parts[-1]
