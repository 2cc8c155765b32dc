"""Tests for the MongoDB store against a mocked pymongo collection."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from docseq.core.errors import RetryableConflict
from docseq.core.identifiers import IdentifierGenerator
from docseq.store.base import IdentifierStore
from docseq.store.mongo import RETIRED_FLAG, MongoStore

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


def _collection() -> MagicMock:
    collection = MagicMock()
    collection.name = "purchase_payments"
    collection.aggregate.return_value = iter([])
    return collection


class TestFindHighest:
    async def test_satisfies_protocol(self):
        assert isinstance(MongoStore(_collection()), IdentifierStore)

    async def test_empty_returns_none(self):
        store = MongoStore(_collection(), field="payment_number")
        assert await store.find_highest_matching("PPAY2025") is None

    async def test_returns_top_document(self):
        collection = _collection()
        collection.aggregate.return_value = iter(
            [{"_id": "x", "payment_number": "PPAY2025000007"}]
        )
        store = MongoStore(collection, field="payment_number")

        assert await store.find_highest_matching("PPAY2025") == "PPAY2025000007"

        pipeline = collection.aggregate.call_args.args[0]
        assert pipeline[0] == {"$match": {"payment_number": {"$regex": "^PPAY2025"}}}
        assert pipeline[2] == {"$sort": {"_numlen": -1, "payment_number": -1}}
        assert pipeline[3] == {"$limit": 1}

    async def test_drives_generator(self):
        collection = _collection()
        collection.aggregate.return_value = iter([{"number": "PPAY2025000041"}])
        gen = IdentifierGenerator(MongoStore(collection), clock=lambda: NOW)
        assert await gen.next_identifier("PPAY") == "PPAY2025000042"


class TestInsert:
    async def test_insert_copies_document(self):
        collection = _collection()
        store = MongoStore(collection)
        document = {"number": "PPAY2025000001"}

        await store.insert(document)

        inserted = collection.insert_one.call_args.args[0]
        assert inserted == document
        assert inserted is not document

    async def test_duplicate_key_becomes_conflict(self):
        collection = _collection()
        collection.insert_one.side_effect = DuplicateKeyError(
            "E11000 duplicate key", 11000, {"keyPattern": {"number": 1}}
        )
        store = MongoStore(collection)

        with pytest.raises(RetryableConflict) as excinfo:
            await store.insert({"number": "PPAY2025000001"})
        assert excinfo.value.value == "PPAY2025000001"
        assert isinstance(excinfo.value.__cause__, DuplicateKeyError)

    async def test_duplicate_on_other_index_propagates(self):
        collection = _collection()
        collection.insert_one.side_effect = DuplicateKeyError(
            "E11000 duplicate key", 11000, {"keyPattern": {"check_number": 1}}
        )
        store = MongoStore(collection)

        with pytest.raises(DuplicateKeyError):
            await store.insert({"number": "PPAY2025000001"})

    async def test_missing_field_rejected(self):
        collection = _collection()
        with pytest.raises(ValueError):
            await MongoStore(collection).insert({"amount": 3})
        collection.insert_one.assert_not_called()


class TestIndexesAndLifecycle:
    async def test_ensure_indexes_creates_unique_index(self):
        collection = _collection()
        collection.create_index.return_value = "payment_number_1"
        store = MongoStore(collection, field="payment_number")

        assert await store.ensure_indexes() == "payment_number_1"
        collection.create_index.assert_called_once_with([("payment_number", 1)], unique=True)

    async def test_values_skip_retired(self):
        collection = _collection()
        collection.find.return_value = [{"number": "PPAY2025000001"}, {"other": 1}]
        store = MongoStore(collection)

        assert await store.values() == ["PPAY2025000001"]
        query = collection.find.call_args.args[0]
        assert query == {RETIRED_FLAG: {"$ne": True}}

    async def test_delete_soft_retires(self):
        collection = _collection()
        collection.update_one.return_value = MagicMock(modified_count=1)
        store = MongoStore(collection)

        assert await store.delete("PPAY2025000001")
        flt, update = collection.update_one.call_args.args
        assert flt["number"] == "PPAY2025000001"
        assert update == {"$set": {RETIRED_FLAG: True}}

    async def test_delete_unknown(self):
        collection = _collection()
        collection.update_one.return_value = MagicMock(modified_count=0)
        assert not await MongoStore(collection).delete("PPAY2025000001")
