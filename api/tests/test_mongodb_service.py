# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for MongoDB service layer.

The pymongo collection is replaced with a mock so the tests check the
filters and update documents the service sends without a running server.
"""

import pytest
from unittest.mock import MagicMock, patch
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from services.mongodb import MongoDBService, PaginationResult


@pytest.fixture
def collection():
    return MagicMock(name="collection")


@pytest.fixture
def mongodb_service(collection):
    """MongoDB service whose collections are all ``collection``."""
    service = MongoDBService("mongodb://localhost:27017/ecobite_test", "ecobite_test")
    with patch.object(MongoDBService, "get_collection", return_value=collection):
        yield service


class TestCreate:
    """Document creation."""

    def test_create_adds_timestamps_and_author(self, mongodb_service, collection):
        collection.insert_one.side_effect = lambda doc: MagicMock(inserted_id=doc["_id"])
        user_id = str(ObjectId())

        doc_id = mongodb_service.create("donations", {"aiFoodType": "Rice"}, user_id)

        stored = collection.insert_one.call_args[0][0]
        assert ObjectId.is_valid(doc_id)
        assert stored["aiFoodType"] == "Rice"
        assert stored["createdBy"] == user_id
        assert "createdAt" in stored
        assert "updatedAt" in stored

    def test_create_honours_given_id(self, mongodb_service, collection):
        collection.insert_one.side_effect = lambda doc: MagicMock(inserted_id=doc["_id"])
        given = str(ObjectId())

        assert mongodb_service.create("users", {"id": given, "email": "a@b.com"}) == given
        stored = collection.insert_one.call_args[0][0]
        assert stored["_id"] == ObjectId(given)
        assert "id" not in stored

    def test_duplicate_key_becomes_value_error(self, mongodb_service, collection):
        collection.insert_one.side_effect = DuplicateKeyError("E11000")

        with pytest.raises(ValueError, match="already exists"):
            mongodb_service.create("users", {"email": "a@b.com"})

    def test_create_does_not_mutate_input(self, mongodb_service, collection):
        collection.insert_one.side_effect = lambda doc: MagicMock(inserted_id=doc["_id"])
        document = {"name": "Banner"}
        mongodb_service.create("sponsor_banners", document)
        assert document == {"name": "Banner"}


class TestRead:
    """Lookups and serialization."""

    def test_find_by_id_serializes(self, mongodb_service, collection):
        oid = ObjectId()
        collection.find_one.return_value = {"_id": oid, "name": "Ali"}

        document = mongodb_service.find_by_id("users", str(oid))

        assert document == {"id": str(oid), "name": "Ali"}
        collection.find_one.assert_called_once_with({"_id": oid})

    def test_malformed_id_is_not_found(self, mongodb_service, collection):
        assert mongodb_service.find_by_id("users", "not-an-id") is None
        collection.find_one.assert_not_called()

    def test_find_by_ids_keys_by_id(self, mongodb_service, collection):
        first, second = ObjectId(), ObjectId()
        collection.find.return_value = [{"_id": first, "name": "A"}, {"_id": second, "name": "B"}]

        documents = mongodb_service.find_by_ids("users", [str(first), str(second), "junk"])

        assert set(documents) == {str(first), str(second)}
        query = collection.find.call_args[0][0]
        assert set(query["_id"]["$in"]) == {first, second}

    def test_find_by_ids_without_valid_ids(self, mongodb_service, collection):
        assert mongodb_service.find_by_ids("users", ["junk"]) == {}
        collection.find.assert_not_called()

    def test_find_sort_and_limit(self, mongodb_service, collection):
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": ObjectId(), "status": "available"}])
        collection.find.return_value = cursor

        documents = mongodb_service.find("donations", {"status": "available"}, sort="createdAt", limit=5)

        assert len(documents) == 1
        assert "id" in documents[0]
        cursor.sort.assert_called_once_with([("createdAt", DESCENDING)])
        cursor.limit.assert_called_once_with(5)

    def test_paginate(self, mongodb_service, collection):
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.__iter__.return_value = iter([{"_id": ObjectId()} for _ in range(10)])
        collection.find.return_value = cursor
        collection.count_documents.return_value = 25

        result = mongodb_service.paginate("notifications", page=2, page_size=10)

        assert isinstance(result, PaginationResult)
        assert result.total_pages == 3
        assert result.has_next
        assert result.has_prev
        cursor.skip.assert_called_once_with(10)


class TestWrite:
    """Updates, increments and deletes."""

    def test_guarded_update(self, mongodb_service, collection):
        oid = ObjectId()
        collection.update_one.return_value = MagicMock(matched_count=1)

        assert mongodb_service.update_by_id(
            "money_requests", str(oid), {"status": "approved"}, guard={"status": "pending"}
        )

        filters, update = collection.update_one.call_args[0]
        assert filters == {"_id": oid, "status": "pending"}
        assert update["$set"]["status"] == "approved"
        assert "updatedAt" in update["$set"]

    def test_update_that_matches_nothing(self, mongodb_service, collection):
        collection.update_one.return_value = MagicMock(matched_count=0)
        assert mongodb_service.update_by_id("users", str(ObjectId()), {"name": "x"}) is False

    def test_increment_with_guard(self, mongodb_service, collection):
        oid = ObjectId()
        collection.find_one_and_update.return_value = {"_id": oid, "ecoPoints": 4000}

        updated = mongodb_service.increment(
            "users", str(oid), {"ecoPoints": -1000}, guard={"ecoPoints": {"$gte": 1000}}
        )

        assert updated["ecoPoints"] == 4000
        filters, update = collection.find_one_and_update.call_args[0]
        assert filters == {"_id": oid, "ecoPoints": {"$gte": 1000}}
        assert update["$inc"] == {"ecoPoints": -1000}

    def test_increment_guard_failure(self, mongodb_service, collection):
        collection.find_one_and_update.return_value = None
        assert mongodb_service.increment("users", str(ObjectId()), {"ecoPoints": -1}) is None

    def test_increment_bad_id(self, mongodb_service, collection):
        assert mongodb_service.increment("users", "bad", {"ecoPoints": 1}) is None
        collection.find_one_and_update.assert_not_called()

    def test_update_many_returns_modified_count(self, mongodb_service, collection):
        collection.update_many.return_value = MagicMock(modified_count=3)
        assert mongodb_service.update_many("sponsor_banners", {"active": True}, {"active": False}) == 3

    def test_delete(self, mongodb_service, collection):
        collection.delete_one.return_value = MagicMock(deleted_count=1)
        assert mongodb_service.delete_by_id("vouchers", str(ObjectId()))
        assert mongodb_service.delete_by_id("vouchers", "bad") is False


class TestHealth:

    def test_unreachable_server_is_unhealthy(self):
        service = MongoDBService("mongodb://localhost:1/ecobite_test", "ecobite_test")
        with patch.object(MongoDBService, "client", new=property(lambda self: _raise())):
            health = service.health_check()
        assert health["status"] == "unhealthy"
        assert health["database"] == "ecobite_test"


def _raise():
    raise ConnectionError("refused")
