"""
Google Maps Models - Geocoding result types.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GeocodingResult(BaseModel):
    """Single geocoding match."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    formatted_address: str
    place_id: str | None = None

    model_config = {"frozen": True}
