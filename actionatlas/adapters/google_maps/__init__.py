"""
Google Maps Adapter - Address geocoding.
"""

from .client import GeocodingClient
from .models import GeocodingResult

__all__ = ["GeocodingClient", "GeocodingResult"]
