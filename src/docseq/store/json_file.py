"""JSON file store for numbered documents.

One file holds one collection. Writers on the same file, in this process
or another, are serialised by a sidecar ``<name>.lock`` file lock held
across the whole read-check-write cycle.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import anyio
import anyio.to_thread
from filelock import FileLock

from docseq.core.errors import CorruptStore, RetryableConflict
from docseq.store.base import highest_matching

logger = logging.getLogger(__name__)

_MAX_BACKUPS = 3
_LOCK_TIMEOUT_S = 30.0


class JsonFileStore:
    """Atomic JSON document collection with backup rotation.

    The file holds ``{"documents": [...], "retired": [...]}``. Numbers of
    deleted documents move to ``retired`` so they are never issued again.

    A missing file falls back to the newest ``.bak.N`` (or an empty
    collection); an unreadable one raises :class:`CorruptStore` rather than
    loading a backup that may predate numbers already issued.
    """

    def __init__(self, path: Path, field: str = "number") -> None:
        self._path = path
        self.field = field
        self._lock = anyio.Lock()
        self._file_lock = FileLock(
            str(path.parent / f"{path.name}.lock"), timeout=_LOCK_TIMEOUT_S
        )

    @property
    def path(self) -> Path:
        return self._path

    # -- Public API ----------------------------------------------------------

    async def find_highest_matching(self, prefix_pattern: str) -> str | None:
        data = await anyio.to_thread.run_sync(self._load)
        reserved = [d[self.field] for d in data["documents"]] + data["retired"]
        return highest_matching(reserved, prefix_pattern)

    async def insert(self, document: dict[str, Any]) -> None:
        value = document.get(self.field)
        if not value:
            raise ValueError(f"Document has no value for {self.field!r}")

        def _insert(data: dict[str, Any]) -> bool:
            taken = {d[self.field] for d in data["documents"]} | set(data["retired"])
            if value in taken:
                raise RetryableConflict(self.field, value)
            data["documents"].append(document)
            return True

        await self._modify(_insert)

    async def values(self) -> list[str]:
        data = await anyio.to_thread.run_sync(self._load)
        return [d[self.field] for d in data["documents"]]

    async def delete(self, value: str) -> bool:
        def _delete(data: dict[str, Any]) -> bool:
            kept = [d for d in data["documents"] if d[self.field] != value]
            if len(kept) == len(data["documents"]):
                return False
            data["documents"] = kept
            data["retired"].append(value)
            return True

        return await self._modify(_delete)

    async def documents(self) -> list[dict[str, Any]]:
        return (await anyio.to_thread.run_sync(self._load))["documents"]

    # -- Internals -----------------------------------------------------------

    async def _modify(self, change: Callable[[dict[str, Any]], bool]) -> bool:
        """Apply *change* under the file lock; save when it returns True."""

        def _locked() -> bool:
            with self._file_lock:
                data = self._load()
                changed = change(data)
                if changed:
                    self._save(data)
                return changed

        async with self._lock:
            return await anyio.to_thread.run_sync(_locked)

    def _backup(self, i: int) -> Path:
        return self._path.parent / f"{self._path.name}.bak.{i}"

    def _load(self) -> dict[str, Any]:
        if self._path.exists():
            return self._read(self._path)

        for i in range(1, _MAX_BACKUPS + 1):
            backup = self._backup(i)
            if backup.exists():
                logger.warning("Store file %s is missing; loading backup %s", self._path, backup)
                return self._read(backup)
        return {"documents": [], "retired": []}

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Cannot read store file %s: %s", path, exc)
            raise CorruptStore(str(path), str(exc)) from exc
        if not isinstance(data, dict):
            logger.error("Store file %s does not hold a JSON object", path)
            raise CorruptStore(str(path), f"expected an object, got {type(data).__name__}")
        data.setdefault("documents", [])
        data.setdefault("retired", [])
        return data

    def _save(self, data: dict[str, Any]) -> None:
        path = self._path
        path.parent.mkdir(parents=True, exist_ok=True)

        # .bak.3 is dropped, .bak.2 -> .bak.3, .bak.1 -> .bak.2
        for i in range(_MAX_BACKUPS, 1, -1):
            if self._backup(i - 1).exists():
                os.replace(self._backup(i - 1), self._backup(i))

        # Copied, not moved: readers outside the file lock always find a primary
        if path.exists():
            shutil.copyfile(path, self._backup(1))

        content = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f"{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            try:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            except OSError:
                tmp.close()
                os.unlink(tmp.name)
                raise
        os.replace(tmp.name, path)
