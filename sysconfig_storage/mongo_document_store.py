# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""MongoDB document store implementation."""

import logging
from typing import Any

from .document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreConnectionError,
    DocumentStoreError,
    DocumentStoreNotConnectedError,
    DuplicateDocumentError,
    SortSpec,
)

logger = logging.getLogger(__name__)


def _id_query(doc_id: str) -> dict[str, Any]:
    """Build an _id query, converting to ObjectId when the value is one."""
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return {"_id": ObjectId(doc_id)}
    except (TypeError, ValueError, InvalidId):
        # Use as string if not a valid ObjectId
        return {"_id": doc_id}


def _stringify_id(doc: dict[str, Any]) -> dict[str, Any]:
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


class MongoDocumentStore(DocumentStore):
    """MongoDB document store implementation."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        database: str | None = None,
        **kwargs
    ):
        """Initialize MongoDB document store.

        Args:
            host: MongoDB host (required)
            port: MongoDB port (required)
            username: MongoDB username (optional)
            password: MongoDB password (optional)
            database: Database name (required)
            **kwargs: Additional MongoDB client options

        Raises:
            ValueError: If required parameters (host, port, database) are not provided
        """
        if not host:
            raise ValueError(
                "MongoDB host is required. "
                "Provide the MongoDB server hostname or IP address."
            )
        if port is None:
            raise ValueError(
                "MongoDB port is required. "
                "Provide the MongoDB server port number."
            )
        if not database:
            raise ValueError(
                "MongoDB database is required. "
                "Provide the database name to use."
            )

        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.database_name = database
        self.client_options = kwargs
        self.client = None
        self.database = None

    def connect(self) -> None:
        """Connect to MongoDB.

        Raises:
            DocumentStoreConnectionError: If connection fails
        """
        from pymongo import MongoClient
        from pymongo.errors import ConnectionFailure

        try:
            connection_params: dict[str, Any] = {
                "host": self.host,
                "port": self.port,
                "tz_aware": True,
            }

            if self.username and self.password:
                connection_params["username"] = self.username
                connection_params["password"] = self.password
                if "authSource" not in self.client_options:
                    connection_params["authSource"] = "admin"

            connection_params.update(self.client_options)

            self.client = MongoClient(**connection_params)
            self.client.admin.command('ping')
            self.database = self.client[self.database_name]

            logger.info("MongoDocumentStore: connected to %s:%s/%s", self.host, self.port, self.database_name)

        except ConnectionFailure as e:
            logger.error("MongoDocumentStore: connection failed - %s", e, exc_info=True)
            raise DocumentStoreConnectionError(f"Failed to connect to MongoDB at {self.host}:{self.port}") from e
        except Exception as e:
            logger.error("MongoDocumentStore: unexpected error during connect - %s", e, exc_info=True)
            raise DocumentStoreConnectionError(f"Unexpected error connecting to MongoDB: {str(e)}") from e

    def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("MongoDocumentStore: disconnected")

    def _collection(self, collection: str):
        if self.database is None:
            raise DocumentStoreNotConnectedError("Not connected to MongoDB")
        return self.database[collection]

    def insert_document(self, collection: str, doc: dict[str, Any]) -> str:
        """Insert a document into the specified collection.

        Raises:
            DocumentStoreNotConnectedError: If not connected to MongoDB
            DuplicateDocumentError: If a unique index rejects the document
            DocumentStoreError: If insertion fails
        """
        from pymongo.errors import DuplicateKeyError

        coll = self._collection(collection)
        try:
            result = coll.insert_one(dict(doc))
            doc_id = str(result.inserted_id)
            logger.debug(f"MongoDocumentStore: inserted document {doc_id} into {collection}")
            return doc_id
        except DuplicateKeyError as e:
            raise DuplicateDocumentError(f"Duplicate document in {collection}") from e
        except Exception as e:
            logger.error(f"MongoDocumentStore: insert failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to insert document into {collection}") from e

    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a document by its ID.

        Raises:
            DocumentStoreNotConnectedError: If not connected to MongoDB
            DocumentStoreError: If query operation fails
        """
        coll = self._collection(collection)
        try:
            doc = coll.find_one(_id_query(doc_id))
        except Exception as e:
            logger.error(f"MongoDocumentStore: get_document failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to retrieve document {doc_id} from {collection}") from e

        if doc:
            return _stringify_id(doc)
        logger.debug(f"MongoDocumentStore: document {doc_id} not found in {collection}")
        return None

    def query_documents(
        self,
        collection: str,
        filter_dict: dict[str, Any],
        limit: int = 100,
        sort: SortSpec | None = None,
        skip: int = 0,
    ) -> list[dict[str, Any]]:
        """Query documents matching the filter criteria.

        Raises:
            DocumentStoreNotConnectedError: If not connected to MongoDB
            DocumentStoreError: If query operation fails
        """
        coll = self._collection(collection)
        try:
            cursor = coll.find(filter_dict)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit and limit > 0:
                cursor = cursor.limit(limit)
            results = [_stringify_id(doc) for doc in cursor]
        except Exception as e:
            logger.error(f"MongoDocumentStore: query_documents failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to query documents from {collection}") from e

        logger.debug(
            f"MongoDocumentStore: query on {collection} with {filter_dict} "
            f"returned {len(results)} documents"
        )
        return results

    def count_documents(self, collection: str, filter_dict: dict[str, Any]) -> int:
        """Count documents matching the filter criteria."""
        coll = self._collection(collection)
        try:
            return coll.count_documents(filter_dict)
        except Exception as e:
            logger.error(f"MongoDocumentStore: count_documents failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to count documents in {collection}") from e

    def update_document(
        self, collection: str, doc_id: str, patch: dict[str, Any]
    ) -> None:
        """Update a document with the provided patch.

        Raises:
            DocumentStoreNotConnectedError: If not connected to MongoDB
            DocumentNotFoundError: If document does not exist
            DocumentStoreError: If update operation fails
        """
        coll = self._collection(collection)
        try:
            result = coll.update_one(_id_query(doc_id), {"$set": patch})
        except Exception as e:
            logger.error(f"MongoDocumentStore: update_document failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to update document {doc_id} in {collection}") from e

        if result.matched_count == 0:
            raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
        logger.debug(f"MongoDocumentStore: updated document {doc_id} in {collection}")

    def update_document_if(
        self,
        collection: str,
        doc_id: str,
        expected: dict[str, Any],
        patch: dict[str, Any],
    ) -> bool:
        """Apply a patch only if the document matches ``expected``.

        A single ``update_one`` with the condition folded into the filter is
        atomic on the server.
        """
        coll = self._collection(collection)
        query = {**expected, **_id_query(doc_id)}
        try:
            result = coll.update_one(query, {"$set": patch})
        except Exception as e:
            logger.error(f"MongoDocumentStore: update_document_if failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to update document {doc_id} in {collection}") from e
        return result.matched_count == 1

    def update_documents(
        self, collection: str, filter_dict: dict[str, Any], patch: dict[str, Any]
    ) -> int:
        """Apply a patch to every document matching the filter."""
        coll = self._collection(collection)
        try:
            result = coll.update_many(filter_dict, {"$set": patch})
        except Exception as e:
            logger.error(f"MongoDocumentStore: update_documents failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to update documents in {collection}") from e
        return result.modified_count

    def increment_document(
        self,
        collection: str,
        doc_id: str,
        increments: dict[str, int],
        patch: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Atomically increment numeric fields and return the updated document."""
        from pymongo import ReturnDocument

        coll = self._collection(collection)
        update: dict[str, Any] = {"$inc": increments}
        if patch:
            update["$set"] = patch
        try:
            doc = coll.find_one_and_update(
                _id_query(doc_id), update, return_document=ReturnDocument.AFTER
            )
        except Exception as e:
            logger.error(f"MongoDocumentStore: increment_document failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to increment document {doc_id} in {collection}") from e

        if doc is None:
            raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
        return _stringify_id(doc)

    def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document by its ID.

        Raises:
            DocumentStoreNotConnectedError: If not connected to MongoDB
            DocumentNotFoundError: If document does not exist
            DocumentStoreError: If delete operation fails
        """
        coll = self._collection(collection)
        try:
            result = coll.delete_one(_id_query(doc_id))
        except Exception as e:
            logger.error(f"MongoDocumentStore: delete_document failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to delete document {doc_id} from {collection}") from e

        if result.deleted_count == 0:
            raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
        logger.debug(f"MongoDocumentStore: deleted document {doc_id} from {collection}")

    def ensure_index(
        self,
        collection: str,
        keys: list[str],
        unique: bool = False,
        expire_after_seconds: int | None = None,
    ) -> None:
        """Create an index (unique and/or TTL) on the given fields."""
        options: dict[str, Any] = {"unique": unique}
        if expire_after_seconds is not None:
            options["expireAfterSeconds"] = expire_after_seconds
        try:
            self._collection(collection).create_index([(key, 1) for key in keys], **options)
        except Exception as e:
            logger.error(f"MongoDocumentStore: ensure_index failed - {e}", exc_info=True)
            raise DocumentStoreError(f"Failed to create index on {collection}") from e
