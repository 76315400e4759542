# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB access for the EcoBite API.

Every collection is reached through ``MongoDBService``, which hides ``_id``
handling (documents come back with a string ``id``), stamps
``createdAt``/``updatedAt`` and offers guarded updates so state transitions
and point deductions happen at most once.
"""

import os
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Dict, Optional, Any, Tuple, Union
from pymongo import MongoClient, ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError, DuplicateKeyError
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

SortSpec = Union[str, List[Tuple[str, int]]]

# collection -> [(keys, options)]
INDEXES: Dict[str, List[Tuple[Any, Dict[str, Any]]]] = {
    "users": [
        ("email", {"unique": True}),
        ([("ecoPoints", DESCENDING)], {}),
        ("type", {}),
        ("resetToken", {"sparse": True}),
    ],
    "donations": [
        ([("status", ASCENDING), ("createdAt", DESCENDING)], {}),
        ([("donorId", ASCENDING), ("createdAt", DESCENDING)], {}),
        ("claimedById", {}),
        ([("status", ASCENDING), ("expiry", ASCENDING)], {}),
    ],
    "food_requests": [([("requesterId", ASCENDING), ("createdAt", DESCENDING)], {})],
    "vouchers": [("code", {"unique": True})],
    "voucher_redemptions": [([("voucherId", ASCENDING), ("userId", ASCENDING)], {"unique": True})],
    "financial_transactions": [
        ([("type", ASCENDING), ("createdAt", DESCENDING)], {}),
        ("userId", {}),
    ],
    "notifications": [([("userId", ASCENDING), ("createdAt", DESCENDING)], {})],
    "admin_logs": [([("createdAt", DESCENDING)], {})],
    "sponsor_banners": [([("placement", ASCENDING), ("active", ASCENDING), ("displayOrder", ASCENDING)], {})],
    "ad_redemption_requests": [([("userId", ASCENDING), ("status", ASCENDING)], {})],
    "money_donations": [
        ([("donorId", ASCENDING), ("status", ASCENDING)], {}),
        # One donation per payment reference; manual transfers may omit it
        ("transactionId", {"unique": True, "partialFilterExpression": {"transactionId": {"$type": "string"}}}),
    ],
    "money_requests": [([("requesterId", ASCENDING), ("status", ASCENDING)], {})],
    "bank_accounts": [([("userId", ASCENDING), ("isDefault", DESCENDING)], {})],
}


class PaginationResult:
    """One page of documents plus the totals needed for HAL pagination links."""

    def __init__(self, items: List[Dict], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


def _object_id(doc_id: Any) -> Optional[ObjectId]:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        logger.warning(f"Invalid document ID {doc_id!r}")
        return None


def _serialize(document: Optional[Dict]) -> Optional[Dict]:
    if document is not None and "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


def _sort_spec(sort: SortSpec) -> List[Tuple[str, int]]:
    """A bare field name sorts descending."""
    return [(sort, DESCENDING)] if isinstance(sort, str) else sort


def _stamped(fields: Dict, user_id: Optional[str] = None, created: bool = False) -> Dict:
    stamped = dict(fields)
    now = datetime.utcnow()
    if created:
        stamped.setdefault("createdAt", now)
        if user_id:
            stamped["createdBy"] = user_id
    stamped["updatedAt"] = now
    if user_id:
        stamped["updatedBy"] = user_id
    return stamped


@contextmanager
def _logged(action: str, collection: str):
    try:
        yield
    except Exception as e:
        logger.error(f"Failed to {action} in {collection}: {e}")
        raise


class MongoDBService:
    """Lazily connected, pooled MongoDB client with CRUD helpers."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        self.connection_string = connection_string or os.getenv('MONGODB_URI', 'mongodb://localhost:27017/ecobite_dev')
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'ecobite_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        self.pool_options = {
            "maxPoolSize": int(os.getenv('MONGODB_MAX_POOL_SIZE', '10')),
            "minPoolSize": int(os.getenv('MONGODB_MIN_POOL_SIZE', '1')),
            "maxIdleTimeMS": int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000')),
            "serverSelectionTimeoutMS": int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000')),
        }

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            client = MongoClient(self.connection_string, retryWrites=True, retryReads=True, **self.pool_options)
            try:
                client.admin.command('ping')
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                client.close()
                raise
            logger.info(f"Connected to MongoDB database {self.database_name}")
            self._client = client
        return self._client

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        return self.database[collection_name]

    def close_connection(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        try:
            ping = self.client.admin.command('ping')
            version = self.client.server_info().get('version')
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {'status': 'unhealthy', 'error': str(e), 'database': self.database_name}

        return {
            'status': 'healthy',
            'ping': ping.get('ok') == 1,
            'version': version,
            'database': self.database_name,
            'connection_pool_size': self.pool_options["maxPoolSize"]
        }

    # Reads

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict]:
        """Malformed ids resolve to None like missing documents."""
        object_id = _object_id(doc_id)
        if object_id is None:
            return None
        with _logged(f"find document {doc_id}", collection):
            return _serialize(self.get_collection(collection).find_one({"_id": object_id}))

    def find_by_ids(self, collection: str, doc_ids: List[str]) -> Dict[str, Dict]:
        """Fetch many documents at once, keyed by id."""
        object_ids = [oid for oid in map(_object_id, set(doc_ids)) if oid is not None]
        if not object_ids:
            return {}
        return {doc["id"]: doc for doc in self.find(collection, {"_id": {"$in": object_ids}})}

    def find_one(self, collection: str, filters: Dict, sort: Optional[SortSpec] = None) -> Optional[Dict]:
        options = {"sort": _sort_spec(sort)} if sort else {}
        with _logged("find document", collection):
            return _serialize(self.get_collection(collection).find_one(filters, **options))

    def find(self, collection: str, filters: Dict = None, sort: Optional[SortSpec] = None,
             limit: int = 0, projection: Dict = None) -> List[Dict]:
        with _logged("find documents", collection):
            cursor = self.get_collection(collection).find(filters or {}, projection)
            if sort:
                cursor = cursor.sort(_sort_spec(sort))
            if limit:
                cursor = cursor.limit(limit)
            return [_serialize(doc) for doc in cursor]

    def paginate(self, collection: str, page: int = 1, page_size: int = 20,
                 filters: Dict = None, sort_by: str = "createdAt", sort_order: int = -1) -> PaginationResult:
        query = filters or {}
        with _logged("paginate documents", collection):
            target = self.get_collection(collection)
            total = target.count_documents(query)
            cursor = target.find(query).sort(sort_by, sort_order).skip((page - 1) * page_size).limit(page_size)
            return PaginationResult([_serialize(doc) for doc in cursor], total, page, page_size)

    def count(self, collection: str, filters: Dict = None) -> int:
        with _logged("count documents", collection):
            return self.get_collection(collection).count_documents(filters or {})

    def aggregate(self, collection: str, pipeline: List[Dict]) -> List[Dict]:
        with _logged("run aggregation", collection):
            return list(self.get_collection(collection).aggregate(pipeline))

    # Writes

    def create(self, collection: str, document: Dict, user_id: Optional[str] = None) -> str:
        """
        Insert a document and return its id.

        An ``id`` key, when present, becomes the ObjectId.

        Raises:
            ValueError: On a duplicate unique key or a malformed ``id``
        """
        document = _stamped(document, user_id, created=True)
        if "id" in document:
            given = document.pop("id")
            document["_id"] = _object_id(given)
            if document["_id"] is None:
                raise ValueError(f"Invalid ObjectId format: {given}")
        document.setdefault("_id", ObjectId())

        try:
            with _logged("create document", collection):
                result = self.get_collection(collection).insert_one(document)
        except DuplicateKeyError:
            raise ValueError("Document with this identifier already exists")

        logger.info(f"Created document in {collection}: {result.inserted_id}")
        return str(result.inserted_id)

    def update_by_id(self, collection: str, doc_id: str, updates: Dict,
                     user_id: Optional[str] = None, guard: Dict = None) -> bool:
        """
        ``$set`` fields on a document; True when it matched.

        ``guard`` adds filter conditions, so a transition such as
        pending -> approved only happens once.
        """
        object_id = _object_id(doc_id)
        if object_id is None:
            return False

        filters = {"_id": object_id, **(guard or {})}
        with _logged(f"update document {doc_id}", collection):
            result = self.get_collection(collection).update_one(filters, {"$set": _stamped(updates, user_id)})

        if result.matched_count == 0:
            logger.warning(f"No document updated for {doc_id} in {collection}")
            return False
        return True

    def update_many(self, collection: str, filters: Dict, updates: Dict) -> int:
        """Returns the modified count."""
        with _logged("update documents", collection):
            result = self.get_collection(collection).update_many(filters, {"$set": _stamped(updates)})
        logger.info(f"Updated {result.modified_count} documents in {collection}")
        return result.modified_count

    def find_one_and_update(self, collection: str, filters: Dict, update: Dict,
                            upsert: bool = False) -> Optional[Dict]:
        """
        Apply an update operator document atomically and return the new state.

        None means nothing matched ``filters``, which is how guarded updates
        such as ``{"ecoPoints": {"$gte": cost}}`` report failure.
        """
        update = dict(update)
        update["$set"] = {**update.get("$set", {}), "updatedAt": datetime.utcnow()}
        with _logged("update document", collection):
            document = self.get_collection(collection).find_one_and_update(
                filters, update, upsert=upsert, return_document=ReturnDocument.AFTER
            )
        return _serialize(document)

    def increment(self, collection: str, doc_id: str, increments: Dict[str, Union[int, float]],
                  guard: Dict = None) -> Optional[Dict]:
        """
        ``$inc`` numeric fields (negative deltas decrement).

        Returns:
            The updated document, or None if it is missing or ``guard`` failed
        """
        object_id = _object_id(doc_id)
        if object_id is None:
            return None
        return self.find_one_and_update(collection, {"_id": object_id, **(guard or {})}, {"$inc": increments})

    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        object_id = _object_id(doc_id)
        if object_id is None:
            return False
        with _logged(f"delete document {doc_id}", collection):
            deleted = self.get_collection(collection).delete_one({"_id": object_id}).deleted_count > 0
        if deleted:
            logger.info(f"Deleted document {doc_id} in {collection}")
        return deleted

    def delete_many(self, collection: str, filters: Dict) -> int:
        with _logged("delete documents", collection):
            result = self.get_collection(collection).delete_many(filters)
        logger.info(f"Deleted {result.deleted_count} documents in {collection}")
        return result.deleted_count

    def create_indexes(self) -> None:
        """Create the indexes in ``INDEXES``; existing ones are left alone."""
        for collection, specs in INDEXES.items():
            with _logged("create indexes", collection):
                target = self.get_collection(collection)
                for keys, options in specs:
                    target.create_index(keys, **options)
        logger.info("MongoDB indexes created successfully")


_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Process-wide service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
