"""
Geocoding Client - Google Maps Geocoding API over HTTP.

Features:
- Async HTTP client (httpx)
- Input validation before any network call
- ZERO_RESULTS mapped to an empty list
- Provider status and message surfaced in errors
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from actionatlas.config.errors import ConfigurationError, ErrorCode, GeocodingError

from .models import GeocodingResult

logger = logging.getLogger(__name__)

__all__ = ["GeocodingClient", "MAX_ADDRESS_LENGTH"]

MAX_ADDRESS_LENGTH = 500
DEFAULT_BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingClient:
    """
    Google Maps geocoding client.

    Callers with an optional credential should check ``is_available()``
    before calling ``geocode``.

    Example:
        >>> client = GeocodingClient(api_key="...")
        >>> place = await client.geocode_first("Paris, France", language="fr")
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize geocoding client.

        Args:
            api_key: Google Maps API key (None/empty disables geocoding)
            base_url: Geocoding endpoint
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self._api_key = api_key or None
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def is_available(self) -> bool:
        """Whether a provider credential is configured."""
        return self._api_key is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def _validate(address: str, language: str) -> None:
        if not address or not address.strip():
            raise GeocodingError(
                "address cannot be empty",
                code=ErrorCode.GEOCODING_INVALID_INPUT,
            )
        if len(address) > MAX_ADDRESS_LENGTH:
            raise GeocodingError(
                f"address exceeds maximum length of {MAX_ADDRESS_LENGTH} characters",
                {"length": len(address)},
                code=ErrorCode.GEOCODING_INVALID_INPUT,
            )
        if not language or len(language) != 2:
            raise GeocodingError(
                "language must be a valid 2-letter ISO language code",
                {"language": language},
                code=ErrorCode.GEOCODING_INVALID_INPUT,
            )

    async def geocode(self, address: str, language: str = "en") -> list[GeocodingResult]:
        """
        Geocode an address.

        Args:
            address: Address text, e.g. "Paris, France"
            language: ISO 639-1 code for result formatting

        Returns:
            Matches in provider order (empty when nothing matched)

        Raises:
            ConfigurationError: No API key configured
            GeocodingError: Invalid input, HTTP failure or provider error status
        """
        if self._api_key is None:
            raise ConfigurationError(
                "GOOGLE_MAPS_API_KEY is not set. Please set it to use geocoding services."
            )
        self._validate(address, language)

        client = await self._get_client()
        params = {"address": address, "language": language, "key": self._api_key}

        try:
            response = await client.get(self.base_url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GeocodingError(
                f"Geocoding request failed with status {e.response.status_code}",
                {"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise GeocodingError(f"Geocoding request failed: {e}") from e

        data: dict[str, Any] = response.json()
        status = data.get("status")

        if status == "ZERO_RESULTS":
            logger.debug("Geocoding: no match for '%s'", address[:50])
            return []
        if status != "OK":
            message = data.get("error_message") or "Unknown error"
            raise GeocodingError(
                f"Geocoding failed with status {status}: {message}",
                {"status": status, "error_message": message},
            )

        return [
            GeocodingResult(
                latitude=item["geometry"]["location"]["lat"],
                longitude=item["geometry"]["location"]["lng"],
                formatted_address=item["formatted_address"],
                place_id=item.get("place_id"),
            )
            for item in data.get("results", [])
        ]

    async def geocode_first(
        self, address: str, language: str = "en"
    ) -> GeocodingResult | None:
        """Geocode and return the first match, or None."""
        results = await self.geocode(address, language)
        return results[0] if results else None

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
