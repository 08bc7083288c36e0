# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Error taxonomy for the system config service."""

from collections.abc import Iterator
from contextlib import contextmanager

from sysconfig_storage import DocumentStoreError


class ServiceError(Exception):
    """Base class for errors raised by the service components."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Bad or missing input. Raised before any state is written."""

    status_code = 400


class NotFoundError(ServiceError):
    """Unknown id, key or version."""

    status_code = 404


class ConflictError(ServiceError):
    """Duplicate key on create, or a lost compare-and-swap race."""

    status_code = 409


class IntegrityError(ServiceError):
    """Authenticated decryption failed.

    The message never says why (wrong key, truncation or tampering).
    """

    status_code = 500

    def __init__(self, message: str = "ciphertext failed integrity check"):
        super().__init__(message)


class ConfigurationError(ServiceError):
    """Invalid process-level setup, such as an encryption key of the wrong size."""

    status_code = 500


class DeliveryError(ServiceError):
    """A webhook delivery attempt failed. Never surfaces to the writer."""

    status_code = 502

    def __init__(self, message: str = "", status: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class InternalError(ServiceError):
    """Unexpected storage or runtime fault."""

    status_code = 500


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate document store failures into :class:`InternalError`."""
    try:
        yield
    except DocumentStoreError as e:
        raise InternalError(f"storage failure during {operation}") from e
