"""MongoDB adapter backed by a pymongo collection.

The unique index on the number field is the final guard against duplicate
numbers; the driver's ``DuplicateKeyError`` becomes :class:`RetryableConflict`
so the creation workflow can generate a fresh number and try again.
Blocking driver calls run in a worker thread.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import anyio.to_thread
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from docseq.core.errors import RetryableConflict

logger = logging.getLogger(__name__)

# Soft-delete marker; retired documents keep their number reserved.
RETIRED_FLAG = "_retired"


class MongoStore:
    """Number store over one MongoDB collection and one unique field."""

    def __init__(self, collection: Collection, field: str = "number") -> None:
        self._collection = collection
        self.field = field

    async def ensure_indexes(self) -> str:
        """Create the unique index on the number field; returns its name."""

        def _create() -> str:
            return self._collection.create_index([(self.field, ASCENDING)], unique=True)

        name = await anyio.to_thread.run_sync(_create)
        logger.info("Ensured unique index %s on %s", name, self._collection.name)
        return name

    async def find_highest_matching(self, prefix_pattern: str) -> str | None:
        # Sort by length first so an overflowed sequence still ranks highest.
        pipeline = [
            {"$match": {self.field: {"$regex": f"^{re.escape(prefix_pattern)}"}}},
            {"$addFields": {"_numlen": {"$strLenCP": f"${self.field}"}}},
            {"$sort": {"_numlen": -1, self.field: -1}},
            {"$limit": 1},
            {"$project": {self.field: 1}},
        ]

        def _query() -> str | None:
            for doc in self._collection.aggregate(pipeline):
                return doc[self.field]
            return None

        return await anyio.to_thread.run_sync(_query)

    async def insert(self, document: dict[str, Any]) -> None:
        value = document.get(self.field)
        if not value:
            raise ValueError(f"Document has no value for {self.field!r}")
        # insert_one adds _id to the dict it is given
        payload = dict(document)

        def _insert() -> None:
            self._collection.insert_one(payload)

        try:
            await anyio.to_thread.run_sync(_insert)
        except DuplicateKeyError as exc:
            key_pattern = (exc.details or {}).get("keyPattern") or {self.field: 1}
            if self.field not in key_pattern:
                raise
            raise RetryableConflict(self.field, value) from exc

    async def values(self) -> list[str]:
        def _query() -> list[str]:
            cursor = self._collection.find(
                {RETIRED_FLAG: {"$ne": True}}, {self.field: 1, "_id": 0}
            )
            return [doc[self.field] for doc in cursor if self.field in doc]

        return await anyio.to_thread.run_sync(_query)

    async def delete(self, value: str) -> bool:
        def _retire() -> bool:
            result = self._collection.update_one(
                {self.field: value, RETIRED_FLAG: {"$ne": True}},
                {"$set": {RETIRED_FLAG: True}},
            )
            return result.modified_count == 1

        return await anyio.to_thread.run_sync(_retire)
