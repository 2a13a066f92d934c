"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from actionatlas.config.errors import ErrorCode, ActionAtlasError

    raise ActionAtlasError(ErrorCode.SEARCH_INVALID_QUERY, "query cannot be empty")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Configuration errors
    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"
    SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"
    SEARCH_VECTOR_LENGTH_MISMATCH = "SEARCH_VECTOR_LENGTH_MISMATCH"

    # Embedding errors
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    EMBEDDING_INVALID = "EMBEDDING_INVALID"

    # Geocoding errors
    GEOCODING_FAILED = "GEOCODING_FAILED"
    GEOCODING_INVALID_INPUT = "GEOCODING_INVALID_INPUT"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class ActionAtlasError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class ConfigurationError(ActionAtlasError):
    """A provider credential or required setting is missing."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.CONFIGURATION_MISSING, message, details)


class SearchValidationError(ActionAtlasError, ValueError):
    """Search input failed validation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INVALID_QUERY, message, details)


class VectorLengthError(ActionAtlasError, ValueError):
    """Two vectors that must be compared have different lengths."""

    def __init__(self, length_a: int, length_b: int) -> None:
        super().__init__(
            ErrorCode.SEARCH_VECTOR_LENGTH_MISMATCH,
            f"Vectors must have the same length. Got {length_a} and {length_b}",
            {"length_a": length_a, "length_b": length_b},
        )


class VectorIndexUnavailableError(ActionAtlasError):
    """The store's native vector search primitive cannot serve queries."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INDEX_UNAVAILABLE, message, details)


class EmbeddingError(ActionAtlasError):
    """Embedding generation errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.EMBEDDING_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class GeocodingError(ActionAtlasError):
    """Geocoding provider errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.GEOCODING_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class LLMError(ActionAtlasError):
    """LLM/model errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)


class StorageError(ActionAtlasError):
    """Storage/database errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
    ) -> None:
        super().__init__(code, message, details)
