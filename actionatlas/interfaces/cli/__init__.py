"""
CLI Interface - Command-line tools for ActionAtlas.

Provides commands for:
- Database setup and activity ingestion
- Embedding backfill and vector index builds
- Location-aware search
"""

from .main import app, main

__all__ = ["app", "main"]
