"""
Shared error handling for the catalog cache service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class CatalogCacheException(Exception):
    """Base exception for the catalog cache service."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class OriginError(CatalogCacheException):
    """Transport or status errors from the upstream catalog API."""

    def __init__(self, message: str = "Origin request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("ORIGIN_ERROR", f"origin: {message}", details)


class RecordValidationError(CatalogCacheException):
    """Incomplete or malformed catalog record."""

    def __init__(self, message: str = "Record validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class StoreError(CatalogCacheException):
    """Key-value store errors."""

    def __init__(self, message: str = "Store operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class MalformedInputError(CatalogCacheException):
    """Bad slug, id or stream id supplied by a caller."""

    def __init__(self, message: str = "Malformed input", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_INPUT", message, details)


class VerificationError(CatalogCacheException):
    """Post-run verification found incomplete cached records."""

    def __init__(self, message: str = "Cache verification failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VERIFICATION_FAILED", message, details)
