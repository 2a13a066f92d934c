"""
Location Query Analyzer - Detect location intent in free-text queries.

A failed analysis never fails a search: provider errors are logged and
reported as "no location".
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .models import LocationExtraction

if TYPE_CHECKING:
    from actionatlas.adapters.gemini import GeminiClient

logger = logging.getLogger(__name__)

__all__ = ["LocationQueryAnalyzer", "has_valid_location", "LOCATION_SYSTEM_PROMPT"]

LOCATION_SYSTEM_PROMPT = """You are an expert at detecting if a user query is related to a location.
If the user is asking for recommendations near a specific location, return the formatted location and the related ISO 639-1 alpha-2 language code.
The formatted address must look like "Address (if any), City, State, Country"; it is used for a geocoding request.
Otherwise, return null for both fields.

Respond with a JSON object with exactly two keys: "formatted_address" and "language".

Examples:
- "volunteer opportunities in Paris" -> {"formatted_address": "Paris, France", "language": "fr"}
- "help elderly in New York City" -> {"formatted_address": "New York, NY, USA", "language": "en"}
- "environmental activities near me" -> {"formatted_address": null, "language": null}
- "tutoring in downtown Seattle" -> {"formatted_address": "Seattle, WA, USA", "language": "en"}
- "animal shelter London" -> {"formatted_address": "London, UK", "language": "en"}
- "I want to help" -> {"formatted_address": null, "language": null}"""


def has_valid_location(result: LocationExtraction) -> bool:
    """True iff both address and language were extracted."""
    return bool(result.formatted_address) and bool(result.language)


class LocationQueryAnalyzer:
    """
    LLM-backed location intent extraction.

    Example:
        >>> analyzer = LocationQueryAnalyzer(gemini)
        >>> await analyzer.analyze("volunteer in Paris")
        LocationExtraction(formatted_address='Paris, France', language='fr')
    """

    def __init__(
        self,
        llm_client: GeminiClient,
        system_prompt: str = LOCATION_SYSTEM_PROMPT,
    ) -> None:
        self._llm = llm_client
        self._system_prompt = system_prompt

    async def analyze(self, query: str) -> LocationExtraction:
        """
        Extract a geocodable address and its language from a query.

        Returns:
            LocationExtraction, with both fields None when no location was
            found or the provider failed
        """
        try:
            data = await self._llm.generate_json(
                prompt=query,
                system_instruction=self._system_prompt,
            )
            if isinstance(data, dict) and "formattedAddress" in data:
                data = {
                    "formatted_address": data.get("formattedAddress"),
                    "language": data.get("language"),
                }
            result = LocationExtraction.model_validate(data)
        except ValidationError as e:
            logger.warning("Location analyzer returned malformed output: %s", e)
            return LocationExtraction()
        except Exception as e:
            logger.error("Location analyzer failed for query '%s': %s", query[:50], e)
            return LocationExtraction()

        language = result.language.strip().lower() if result.language else None
        address = result.formatted_address.strip() if result.formatted_address else None

        logger.debug("Location analysis: '%s' -> %s (%s)", query[:50], address, language)
        return LocationExtraction(formatted_address=address or None, language=language or None)
