# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Abstract document store interface for NoSQL backends."""

from abc import ABC, abstractmethod
from typing import Any


class DocumentStoreError(Exception):
    """Base exception for document store errors."""
    pass


class DocumentStoreNotConnectedError(DocumentStoreError):
    """Exception raised when attempting operations on a disconnected store."""
    pass


class DocumentStoreConnectionError(DocumentStoreError):
    """Exception raised when connection to the document store fails."""
    pass


class DocumentNotFoundError(DocumentStoreError):
    """Exception raised when a document is not found."""
    pass


class DuplicateDocumentError(DocumentStoreError):
    """Exception raised when an insert violates a unique constraint."""
    pass


SortSpec = list[tuple[str, int]]


class DocumentStore(ABC):
    """Abstract base class for document storage backends.

    Filters use the MongoDB query dialect restricted to top-level fields and
    the operators ``$eq``, ``$ne``, ``$lt``, ``$lte``, ``$gt``, ``$gte``,
    ``$in`` and ``$exists``. Every backend must honour that subset exactly so
    that conditional writes behave identically in tests and production.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the document store.

        Raises:
            DocumentStoreConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the document store."""
        pass

    @abstractmethod
    def insert_document(self, collection: str, doc: dict[str, Any]) -> str:
        """Insert a document into the specified collection.

        Args:
            collection: Name of the collection/table
            doc: Document data as dictionary

        Returns:
            Document ID as string

        Raises:
            DuplicateDocumentError: If the document ID already exists
            DocumentStoreError: If insertion fails
        """
        pass

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a document by its ID.

        Args:
            collection: Name of the collection/table
            doc_id: Document ID

        Returns:
            Document data as dictionary, or None if not found
        """
        pass

    @abstractmethod
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
            collection: Name of the collection/table
            filter_dict: Filter criteria as dictionary
            limit: Maximum number of documents to return (0 means no limit)
            sort: Optional list of (field, direction) pairs, direction 1 or -1
            skip: Number of matching documents to skip

        Returns:
            List of matching documents
        """
        pass

    @abstractmethod
    def count_documents(self, collection: str, filter_dict: dict[str, Any]) -> int:
        """Count documents matching the filter criteria."""
        pass

    @abstractmethod
    def update_document(
        self, collection: str, doc_id: str, patch: dict[str, Any]
    ) -> None:
        """Update a document with the provided patch.

        Args:
            collection: Name of the collection/table
            doc_id: Document ID
            patch: Update data as dictionary

        Raises:
            DocumentNotFoundError: If document does not exist
            DocumentStoreError: If update operation fails
        """
        pass

    @abstractmethod
    def update_document_if(
        self,
        collection: str,
        doc_id: str,
        expected: dict[str, Any],
        patch: dict[str, Any],
    ) -> bool:
        """Atomically apply a patch only if the document matches ``expected``.

        This is the compare-and-swap primitive. The match and the write happen
        as one operation on the backend.

        Args:
            collection: Name of the collection/table
            doc_id: Document ID
            expected: Filter the current document must satisfy
            patch: Update data applied when the condition holds

        Returns:
            True if the patch was applied, False if the condition did not hold
            or the document does not exist
        """
        pass

    @abstractmethod
    def update_documents(
        self, collection: str, filter_dict: dict[str, Any], patch: dict[str, Any]
    ) -> int:
        """Apply a patch to every document matching the filter.

        Each document is matched and written atomically; the set of documents
        as a whole is not.

        Returns:
            Number of documents modified
        """
        pass

    @abstractmethod
    def increment_document(
        self,
        collection: str,
        doc_id: str,
        increments: dict[str, int],
        patch: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Atomically increment numeric fields (and optionally set others).

        Args:
            collection: Name of the collection/table
            doc_id: Document ID
            increments: Field name to increment amount
            patch: Additional fields to set in the same write

        Returns:
            The document as it is after the update

        Raises:
            DocumentNotFoundError: If document does not exist
        """
        pass

    @abstractmethod
    def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document by its ID.

        Args:
            collection: Name of the collection/table
            doc_id: Document ID

        Raises:
            DocumentNotFoundError: If document does not exist
            DocumentStoreError: If delete operation fails
        """
        pass

    def ensure_index(
        self,
        collection: str,
        keys: list[str],
        unique: bool = False,
        expire_after_seconds: int | None = None,
    ) -> None:
        """Create an index if the backend supports indexes.

        Backends without indexes ignore the call.
        """
        return None


def create_document_store(
    store_type: str | None = None,
    **kwargs
) -> DocumentStore:
    """Factory function to create a document store.

    Args:
        store_type: Type of document store ("mongodb", "inmemory").
                   If None, reads from DOCUMENT_STORE_TYPE environment variable (defaults to "inmemory")
        **kwargs: Additional store-specific arguments. For MongoDB, if not provided,
                 will read from corresponding environment variables.

    Returns:
        DocumentStore instance

    Raises:
        ValueError: If store_type is not recognized
    """
    import os

    if store_type is None:
        store_type = os.getenv("DOCUMENT_STORE_TYPE", "inmemory")

    if store_type == "mongodb":
        from .mongo_document_store import MongoDocumentStore

        # Explicit parameters take precedence over environment variables
        mongo_kwargs = {
            "host": kwargs.pop("host", None) or os.getenv("DOCUMENT_DATABASE_HOST", "localhost"),
            "port": kwargs.pop("port", None) or int(os.getenv("DOCUMENT_DATABASE_PORT", "27017")),
            "database": kwargs.pop("database", None) or os.getenv("DOCUMENT_DATABASE_NAME", "system_config"),
        }

        username = kwargs.pop("username", None) or os.getenv("DOCUMENT_DATABASE_USER")
        if username is not None:
            mongo_kwargs["username"] = username

        password = kwargs.pop("password", None) or os.getenv("DOCUMENT_DATABASE_PASSWORD")
        if password is not None:
            mongo_kwargs["password"] = password

        mongo_kwargs.update(kwargs)
        return MongoDocumentStore(**mongo_kwargs)
    elif store_type == "inmemory":
        from .inmemory_document_store import InMemoryDocumentStore
        return InMemoryDocumentStore()
    else:
        raise ValueError(f"Unknown store_type: {store_type}")
