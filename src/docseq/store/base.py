"""Persistence interface consumed by the generator and the creation workflow."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IdentifierStore(Protocol):
    """A document collection with a unique, string-valued number field.

    Implementations must order numbers numerically: a longer value sorts
    above a shorter one and equal lengths compare lexicographically, so a
    sequence that outgrew its padding still counts as the highest.
    """

    field: str

    async def find_highest_matching(self, prefix_pattern: str) -> str | None:
        """Return the highest stored number starting with *prefix_pattern*."""
        ...

    async def insert(self, document: dict[str, Any]) -> None:
        """Persist *document*; raise ``RetryableConflict`` on a duplicate number."""
        ...

    async def values(self) -> list[str]:
        """Return every stored number."""
        ...

    async def delete(self, value: str) -> bool:
        """Delete the document holding *value*, keeping the number reserved."""
        ...


def numeric_key(value: str) -> tuple[int, str]:
    """Sort key giving numeric ordering for same-prefix numbers."""
    return (len(value), value)


def highest_matching(values: list[str], prefix_pattern: str) -> str | None:
    matching = [v for v in values if v.startswith(prefix_pattern)]
    if not matching:
        return None
    return max(matching, key=numeric_key)
