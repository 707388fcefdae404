"""
Split id lists into statement-sized batches
"""

from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def chunked(values: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Yield consecutive slices of at most ``size`` items.

    Every value lands in exactly one chunk, in input order.
    """
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")

    for i in range(0, len(values), size):
        yield list(values[i:i + size])


def normalize_ids(values) -> List[int]:
    """Keep positive integers, drop duplicates, preserve first-seen order."""
    seen = set()
    ids: List[int] = []

    for value in values or []:
        if isinstance(value, bool):
            continue
        try:
            number = int(value)
        except (TypeError, ValueError):
            continue
        if isinstance(value, float) and not value.is_integer():
            continue
        if isinstance(value, str) and value.strip() != str(number):
            continue
        if number <= 0 or number in seen:
            continue
        seen.add(number)
        ids.append(number)

    return ids
