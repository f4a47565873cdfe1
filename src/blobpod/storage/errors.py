"""blobpod object storage error types.

Provides typed exceptions for flat object store operations. The resource
layer normalizes ``ObjectNotFoundError`` into an HTTP-facing not-found error;
every other storage error propagates to the caller unchanged.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        key: Object key associated with the operation (if applicable).
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key:
            return f"{self.message} key={self.key}"
        return self.message


class ObjectNotFoundError(ObjectStorageError):
    """Raised when no object is stored under the requested key."""

    def __init__(self, message: str = "Object not found", *, key: str | None = None) -> None:
        super().__init__(message, key=key)


class ObjectExistsError(ObjectStorageError):
    """Raised when a put without overwrite targets an existing key."""

    def __init__(self, message: str = "Object already exists", *, key: str | None = None) -> None:
        super().__init__(message, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the storage backend cannot complete an operation.

    This covers I/O, authentication and network failures as opposed to
    logical outcomes such as a missing key. It is never retried.

    Attributes:
        cause: The underlying exception, if any.
        status_code: HTTP status returned by a remote backend, if any.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        key: str | None = None,
        cause: Exception | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, key=key)
        self.cause = cause
        self.status_code = status_code


class StorageConfigError(Exception):
    """Raised when object store configuration is invalid."""
