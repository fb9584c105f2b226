"""
Shared error handling for the catalog access layer.

Only a ``GenerationFailure`` with no cached manifest to fall back on is ever
meant to reach callers of the manifest layer; the other types are absorbed
by the fallback chain or by row exclusion.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class CatalogException(Exception):
    """Base exception for catalog services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(CatalogException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class TransientFetchError(CatalogException):
    """Remote manifest endpoint unreachable, timed out or answered non-success."""

    def __init__(self, message: str = "Manifest fetch failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSIENT_FETCH_ERROR", message, details)


class ManifestFormatError(TransientFetchError):
    """Remote manifest document could not be parsed into a valid manifest."""

    def __init__(self, message: str = "Malformed manifest document", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "MANIFEST_FORMAT_ERROR"


class DataIntegrityError(CatalogException):
    """A product row cannot produce a valid static product."""

    def __init__(self, product_id: str, message: str = "Invalid product row", details: Optional[Dict[str, Any]] = None):
        super().__init__("DATA_INTEGRITY_ERROR", f"{product_id}: {message}", details)
        self.product_id = product_id


class GenerationFailure(CatalogException):
    """The datastore query backing manifest generation failed."""

    def __init__(self, message: str = "Manifest generation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("GENERATION_FAILURE", message, details)
