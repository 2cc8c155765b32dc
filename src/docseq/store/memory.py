"""In-process store, used in tests and single-process tools."""

from __future__ import annotations

import copy
from typing import Any

import anyio

from docseq.core.errors import RetryableConflict
from docseq.store.base import highest_matching


class MemoryStore:
    """In-process document collection with a unique number field.

    Reads yield to the event loop before returning, so concurrent creators
    interleave between "read highest" and "insert" the way they would
    against a remote store.
    """

    def __init__(self, field: str = "number") -> None:
        self.field = field
        self._documents: list[dict[str, Any]] = []
        self._index: set[str] = set()
        self._lock = anyio.Lock()

    async def find_highest_matching(self, prefix_pattern: str) -> str | None:
        result = highest_matching(list(self._index), prefix_pattern)
        await anyio.sleep(0)
        return result

    async def insert(self, document: dict[str, Any]) -> None:
        value = document.get(self.field)
        if not value:
            raise ValueError(f"Document has no value for {self.field!r}")
        async with self._lock:
            if value in self._index:
                raise RetryableConflict(self.field, value)
            self._index.add(value)
            self._documents.append(copy.deepcopy(document))

    async def values(self) -> list[str]:
        return [d[self.field] for d in self._documents]

    async def delete(self, value: str) -> bool:
        """Remove the document holding *value*; its number stays reserved."""
        async with self._lock:
            for i, doc in enumerate(self._documents):
                if doc[self.field] == value:
                    del self._documents[i]
                    return True
        return False

    async def documents(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._documents)
