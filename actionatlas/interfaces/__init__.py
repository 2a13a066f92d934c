"""
Interfaces - User-facing applications.

- cli: Command-line interface
"""

__all__ = ["cli"]
