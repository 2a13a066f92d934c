"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .faiss import FAISSIndex
from .gemini import GeminiClient
from .google_maps import GeocodingClient
from .openai import OpenAIEmbeddingClient
from .sqlite import SQLiteRepository

__all__ = [
    "FAISSIndex",
    "GeminiClient",
    "GeocodingClient",
    "OpenAIEmbeddingClient",
    "SQLiteRepository",
]
