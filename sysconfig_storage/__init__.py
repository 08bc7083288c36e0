# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Document storage adapter for the system config service.

Provides the document store abstraction consumed by the config, secret,
audit and subscription components, with in-memory and MongoDB backends.
"""

__version__ = "0.1.0"

from .document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreConnectionError,
    DocumentStoreError,
    DocumentStoreNotConnectedError,
    DuplicateDocumentError,
    create_document_store,
)
from .inmemory_document_store import InMemoryDocumentStore, matches_filter
from .mongo_document_store import MongoDocumentStore

__all__ = [
    # Version
    "__version__",
    # Document Stores
    "DocumentStore",
    "MongoDocumentStore",
    "InMemoryDocumentStore",
    "create_document_store",
    "matches_filter",
    # Exceptions
    "DocumentStoreError",
    "DocumentStoreNotConnectedError",
    "DocumentStoreConnectionError",
    "DocumentNotFoundError",
    "DuplicateDocumentError",
]
