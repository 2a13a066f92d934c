"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    ActionAtlasError,
    ConfigurationError,
    EmbeddingError,
    ErrorCode,
    GeocodingError,
    LLMError,
    SearchValidationError,
    StorageError,
    VectorIndexUnavailableError,
    VectorLengthError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "ActionAtlasError",
    "ConfigurationError",
    "SearchValidationError",
    "VectorLengthError",
    "VectorIndexUnavailableError",
    "EmbeddingError",
    "GeocodingError",
    "LLMError",
    "StorageError",
]
