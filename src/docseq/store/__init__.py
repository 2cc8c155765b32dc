"""Stores that hold numbered documents under a unique constraint."""

from docseq.store.base import IdentifierStore
from docseq.store.json_file import JsonFileStore
from docseq.store.memory import MemoryStore

__all__ = [
    "IdentifierStore",
    "JsonFileStore",
    "MemoryStore",
]
