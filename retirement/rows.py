"""
Typed access to rows whose shape is only known at runtime.
"""

from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple


class RowAccessor:
    """
    Read-only wrapper around one database row.

    Column lookup is exact first, then case-insensitive, so callers can ask
    for "user_id" regardless of how a deployment spelled the column.
    """

    __slots__ = ("_data", "_folded")

    def __init__(self, row: Mapping[str, Any]):
        self._data: Dict[str, Any] = dict(row)
        self._folded: Dict[str, str] = {}
        for key in self._data:
            self._folded.setdefault(key.lower(), key)

    def get(self, column: str, default: Any = None) -> Any:
        if column in self._data:
            return self._data[column]
        key = self._folded.get(column.lower())
        if key is None:
            return default
        return self._data[key]

    def has(self, column: str) -> bool:
        return column in self._data or column.lower() in self._folded

    def get_text(self, column: str) -> Optional[str]:
        """Return the trimmed string value, or None when absent or blank."""
        value = self.get(column)
        if value is None:
            return None
        if not isinstance(value, str):
            value = str(value)
        value = value.strip()
        return value or None

    def get_int(self, column: str) -> Optional[int]:
        """Return a positive integer value, or None."""
        value = self.get(column)
        if isinstance(value, bool) or value is None:
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            return None
        return number if number > 0 else None

    def first_text(self, columns: Iterable[str]) -> Optional[str]:
        for column in columns:
            value = self.get_text(column)
            if value is not None:
                return value
        return None

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(self._data.items())

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def __contains__(self, column: str) -> bool:
        return self.has(column)

    def __repr__(self) -> str:
        return f"RowAccessor({self._data!r})"
