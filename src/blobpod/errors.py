"""blobpod resource-level error handling.

Provides the HTTP-flavoured error family raised by the resource layer. A
hosting server maps ``status_code``/``code`` onto its own responses; storage
backend failures are not part of this family and surface unchanged as
``blobpod.storage.errors.StorageBackendError``.
"""

from __future__ import annotations

from typing import Any


class ResourceHttpError(Exception):
    """Resource error with a structured, HTTP-mappable envelope.

    Attributes:
        status_code: HTTP status code (e.g., 400, 404, 415).
        code: Machine-readable error code (e.g., "not_found").
        message: Human-readable error message.
        details: Optional dict with additional error context.
    """

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the error envelope as a dict."""
        return {"code": self.code, "message": self.message, "details": self.details}


class BadRequestHttpError(ResourceHttpError):
    """The identifier or request is malformed (e.g., traversal segments)."""

    status_code = 400
    code = "bad_request"
    default_message = "Bad request"


class NotFoundHttpError(ResourceHttpError):
    """Nothing of the requested kind exists for the identifier."""

    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class UnsupportedMediaTypeHttpError(ResourceHttpError):
    """The representation cannot be stored by this accessor."""

    status_code = 415
    code = "unsupported_media_type"
    default_message = "Unsupported media type"


class InternalServerError(ResourceHttpError):
    """Unexpected failure inside the resource layer."""


class MetadataParseError(InternalServerError):
    """A metadata sidecar could not be parsed."""

    code = "metadata_parse_error"
    default_message = "Unable to parse resource metadata"
