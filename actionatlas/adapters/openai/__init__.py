"""
OpenAI Adapter - Text embeddings.
"""

from .client import EMBEDDING_DIMENSIONS, OpenAIEmbeddingClient, validate_embedding

__all__ = ["OpenAIEmbeddingClient", "validate_embedding", "EMBEDDING_DIMENSIONS"]
