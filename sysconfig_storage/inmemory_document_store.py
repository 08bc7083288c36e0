# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""In-memory document store for testing and local development."""

import copy
import logging
import threading
import uuid
from collections import defaultdict
from typing import Any

from .document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DuplicateDocumentError,
    SortSpec,
)

logger = logging.getLogger(__name__)

_ORDERING_OPERATORS = {
    "$lt": lambda a, b: a < b,
    "$lte": lambda a, b: a <= b,
    "$gt": lambda a, b: a > b,
    "$gte": lambda a, b: a >= b,
}


def _condition_holds(doc: dict[str, Any], key: str, condition: Any) -> bool:
    """Evaluate a single filter condition against a document."""
    if not isinstance(condition, dict):
        return doc.get(key) == condition

    for op, value in condition.items():
        current = doc.get(key)
        if op == "$eq":
            if current != value:
                return False
        elif op == "$ne":
            if current == value:
                return False
        elif op == "$in":
            if current not in value:
                return False
        elif op == "$exists":
            if bool(value) != (key in doc):
                return False
        elif op in _ORDERING_OPERATORS:
            # Mongo never orders null against a value
            if current is None or value is None:
                return False
            try:
                if not _ORDERING_OPERATORS[op](current, value):
                    return False
            except TypeError:
                return False
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
    return True


def matches_filter(doc: dict[str, Any], filter_dict: dict[str, Any]) -> bool:
    """Return True if a document satisfies every condition in the filter."""
    return all(_condition_holds(doc, key, cond) for key, cond in filter_dict.items())


def _index_values(doc: dict[str, Any], fields: tuple[str, ...]) -> tuple[Any, ...]:
    # repr keeps list and dict values hashable
    return tuple(repr(doc.get(field)) for field in fields)


def _sort_documents(docs: list[dict[str, Any]], sort: SortSpec) -> list[dict[str, Any]]:
    # Stable sorts applied from the least to the most significant key
    for field, direction in reversed(sort):
        present = [d for d in docs if d.get(field) is not None]
        missing = [d for d in docs if d.get(field) is None]
        present.sort(key=lambda d: d[field], reverse=direction < 0)
        # Nulls sort first ascending, last descending
        docs = missing + present if direction >= 0 else present + missing
    return docs


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store implementation for testing.

    All operations are serialized by a single lock so that conditional writes
    are atomic in the same way they are on a real backend.
    """

    def __init__(self):
        """Initialize in-memory document store."""
        self.collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.unique_indexes: dict[str, list[tuple[str, ...]]] = defaultdict(list)
        self.connected = False
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Pretend to connect.

        Note: Always succeeds for in-memory store
        """
        self.connected = True
        logger.debug("InMemoryDocumentStore: connected")

    def disconnect(self) -> None:
        """Pretend to disconnect."""
        self.connected = False
        logger.debug("InMemoryDocumentStore: disconnected")

    def insert_document(self, collection: str, doc: dict[str, Any]) -> str:
        """Insert a document into the specified collection.

        Args:
            collection: Name of the collection
            doc: Document data as dictionary

        Returns:
            Document ID as string

        Raises:
            DuplicateDocumentError: If a document with the same ID exists
        """
        doc_id = str(doc.get("_id") or uuid.uuid4().hex)

        # Make a deep copy to avoid external mutations affecting stored data
        doc_copy = copy.deepcopy(doc)
        doc_copy["_id"] = doc_id

        with self._lock:
            if doc_id in self.collections[collection]:
                raise DuplicateDocumentError(
                    f"Document {doc_id} already exists in collection {collection}"
                )
            self._check_unique(collection, doc_copy)
            self.collections[collection][doc_id] = doc_copy

        logger.debug(f"InMemoryDocumentStore: inserted document {doc_id} into {collection}")
        return doc_id

    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a document by its ID.

        Args:
            collection: Name of the collection
            doc_id: Document ID

        Returns:
            Document data as dictionary, or None if not found
        """
        with self._lock:
            doc = self.collections[collection].get(doc_id)
            if doc:
                # Return a deep copy to prevent external mutations affecting stored data
                return copy.deepcopy(doc)
        logger.debug(f"InMemoryDocumentStore: document {doc_id} not found in {collection}")
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

        Args:
            collection: Name of the collection
            filter_dict: Filter criteria as dictionary
            limit: Maximum number of documents to return (0 means no limit)
            sort: Optional list of (field, direction) pairs
            skip: Number of matching documents to skip

        Returns:
            List of matching documents
        """
        with self._lock:
            results = [
                copy.deepcopy(doc)
                for doc in self.collections[collection].values()
                if matches_filter(doc, filter_dict)
            ]

        if sort:
            results = _sort_documents(results, sort)
        if skip:
            results = results[skip:]
        if limit and limit > 0:
            results = results[:limit]

        logger.debug(
            f"InMemoryDocumentStore: query on {collection} with {filter_dict} "
            f"returned {len(results)} documents"
        )
        return results

    def count_documents(self, collection: str, filter_dict: dict[str, Any]) -> int:
        """Count documents matching the filter criteria."""
        with self._lock:
            return sum(
                1 for doc in self.collections[collection].values()
                if matches_filter(doc, filter_dict)
            )

    def update_document(
        self, collection: str, doc_id: str, patch: dict[str, Any]
    ) -> None:
        """Update a document with the provided patch.

        Args:
            collection: Name of the collection
            doc_id: Document ID
            patch: Update data as dictionary

        Raises:
            DocumentNotFoundError: If document does not exist
        """
        with self._lock:
            if doc_id not in self.collections[collection]:
                raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
            self._check_unique(collection, {**self.collections[collection][doc_id], **patch})
            self.collections[collection][doc_id].update(copy.deepcopy(patch))
        logger.debug(f"InMemoryDocumentStore: updated document {doc_id} in {collection}")

    def update_document_if(
        self,
        collection: str,
        doc_id: str,
        expected: dict[str, Any],
        patch: dict[str, Any],
    ) -> bool:
        """Apply a patch only if the stored document satisfies ``expected``."""
        with self._lock:
            doc = self.collections[collection].get(doc_id)
            if doc is None or not matches_filter(doc, expected):
                logger.debug(
                    f"InMemoryDocumentStore: conditional update of {doc_id} in {collection} skipped"
                )
                return False
            self._check_unique(collection, {**doc, **patch})
            doc.update(copy.deepcopy(patch))
        return True

    def update_documents(
        self, collection: str, filter_dict: dict[str, Any], patch: dict[str, Any]
    ) -> int:
        """Apply a patch to every document matching the filter."""
        with self._lock:
            targets = [
                doc for doc in self.collections[collection].values()
                if matches_filter(doc, filter_dict)
            ]
            merged = {doc["_id"]: {**doc, **patch} for doc in targets}
            for candidate in merged.values():
                self._check_unique(collection, candidate, merged)
            for doc in targets:
                doc.update(copy.deepcopy(patch))
            modified = len(targets)
        logger.debug(
            f"InMemoryDocumentStore: update_many on {collection} with {filter_dict} "
            f"modified {modified} documents"
        )
        return modified

    def increment_document(
        self,
        collection: str,
        doc_id: str,
        increments: dict[str, int],
        patch: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Atomically increment numeric fields and return the updated document."""
        with self._lock:
            doc = self.collections[collection].get(doc_id)
            if doc is None:
                raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
            if patch:
                self._check_unique(collection, {**doc, **patch})
            for field, amount in increments.items():
                doc[field] = (doc.get(field) or 0) + amount
            if patch:
                doc.update(copy.deepcopy(patch))
            return copy.deepcopy(doc)

    def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document by its ID.

        Args:
            collection: Name of the collection
            doc_id: Document ID

        Raises:
            DocumentNotFoundError: If document does not exist
        """
        with self._lock:
            if doc_id not in self.collections[collection]:
                raise DocumentNotFoundError(f"Document {doc_id} not found in collection {collection}")
            del self.collections[collection][doc_id]
        logger.debug(f"InMemoryDocumentStore: deleted document {doc_id} from {collection}")

    def clear_collection(self, collection: str) -> None:
        """Clear all documents in a collection (useful for testing).

        Args:
            collection: Name of the collection
        """
        with self._lock:
            self.collections[collection].clear()

    def clear_all(self) -> None:
        """Clear all collections (useful for testing)."""
        with self._lock:
            self.collections.clear()

    def ensure_index(
        self,
        collection: str,
        keys: list[str],
        unique: bool = False,
        expire_after_seconds: int | None = None,
    ) -> None:
        """Register a unique index; other index kinds are ignored.

        Missing fields compare as None, so two documents that both lack an
        indexed field collide the same way they do on MongoDB.

        Args:
            collection: Name of the collection
            keys: Indexed fields, in order
            unique: Enforce uniqueness of the field combination
            expire_after_seconds: Ignored; documents never expire in memory

        Raises:
            DuplicateDocumentError: If stored documents already violate the index
        """
        if not unique:
            return
        fields = tuple(keys)
        with self._lock:
            if fields in self.unique_indexes[collection]:
                return
            seen: set[tuple[Any, ...]] = set()
            for doc in self.collections[collection].values():
                values = _index_values(doc, fields)
                if values in seen:
                    raise DuplicateDocumentError(
                        f"Existing documents in {collection} violate unique index {list(fields)}"
                    )
                seen.add(values)
            self.unique_indexes[collection].append(fields)
        logger.debug(f"InMemoryDocumentStore: unique index {list(fields)} on {collection}")

    def _check_unique(
        self,
        collection: str,
        candidate: dict[str, Any],
        pending: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        """Raise if ``candidate`` would collide with another stored document.

        ``pending`` holds the post-write state of documents changed by the
        same call. Must be called with the lock held.
        """
        pending = pending or {}
        doc_id = candidate.get("_id")
        for fields in self.unique_indexes.get(collection, ()):
            values = _index_values(candidate, fields)
            for other_id, other in self.collections[collection].items():
                other = pending.get(other_id, other)
                if other_id != doc_id and _index_values(other, fields) == values:
                    raise DuplicateDocumentError(
                        f"Document {doc_id} violates unique index {list(fields)} on {collection}"
                    )
