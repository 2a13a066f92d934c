"""
Gemini Client - Google Gemini API client for short structured prompts.

This is the only place that calls the Gemini API.

Authentication:
- Uses an explicit API key when configured
- Otherwise falls back to Application Default Credentials
  (`gcloud auth application-default login`)

Features:
- Async operations via worker threads
- Rate limiting (60 RPM default)
- Automatic retries with exponential backoff
- JSON responses
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import google.generativeai as genai
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from actionatlas.config.errors import ErrorCode, LLMError

from .models import GeminiConfig, GeminiResponse

logger = logging.getLogger(__name__)

__all__ = ["GeminiClient", "RateLimitError", "GeminiAPIError"]


class GeminiAPIError(LLMError):
    """Gemini API error."""


class RateLimitError(LLMError):
    """Rate limit exceeded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, code=ErrorCode.LLM_RATE_LIMITED)


class GeminiClient:
    """
    Gemini API client.

    Example:
        >>> client = GeminiClient(GeminiConfig(api_key="..."))
        >>> data = await client.generate_json("volunteer in Paris", system_instruction=PROMPT)
    """

    def __init__(
        self,
        config: GeminiConfig | None = None,
    ) -> None:
        """
        Initialize Gemini client.

        Args:
            config: Client configuration. Uses defaults (ADC auth) if None.
        """
        self.config = config or GeminiConfig()

        if self.config.api_key:
            genai.configure(api_key=self.config.api_key)

        # Rate limiting state
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

        # Model instances keyed by response mime type (lazy loaded)
        self._models: dict[str, genai.GenerativeModel] = {}

        logger.info(
            "GeminiClient initialized: model=%s, auth=%s",
            self.config.model,
            "api_key" if self.config.api_key else "adc",
        )

    def _get_model(self, response_mime_type: str = "text/plain") -> genai.GenerativeModel:
        """Get or create model instance."""
        if response_mime_type not in self._models:
            self._models[response_mime_type] = genai.GenerativeModel(
                model_name=self.config.model,
                generation_config={
                    "temperature": self.config.temperature,
                    "max_output_tokens": self.config.max_output_tokens,
                    "response_mime_type": response_mime_type,
                },
            )
        return self._models[response_mime_type]

    async def _check_rate_limit(self) -> None:
        """Enforce rate limiting."""
        async with self._rate_lock:
            now = time.time()
            # Remove requests older than 1 minute
            self._request_times = [t for t in self._request_times if now - t < 60]

            if len(self._request_times) >= self.config.rate_limit_rpm:
                wait_time = 60 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.warning("Rate limit reached, waiting %.1fs", wait_time)
                    await asyncio.sleep(wait_time)

            self._request_times.append(now)

    @retry(
        retry=retry_if_exception_type((GeminiAPIError, ConnectionError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        response_mime_type: str = "text/plain",
    ) -> GeminiResponse:
        """
        Generate text from prompt.

        Args:
            prompt: User prompt
            system_instruction: Optional system instruction
            response_mime_type: Response format ("text/plain" or "application/json")

        Returns:
            GeminiResponse with generated text

        Raises:
            GeminiAPIError: API call failed
            RateLimitError: Rate limit exceeded
        """
        await self._check_rate_limit()

        try:
            model = self._get_model(response_mime_type)

            contents = []
            if system_instruction:
                contents.append({"role": "user", "parts": [system_instruction]})
                contents.append({"role": "model", "parts": ["Understood."]})
            contents.append({"role": "user", "parts": [prompt]})

            response = await asyncio.to_thread(
                model.generate_content,
                contents,
                request_options={"timeout": self.config.timeout_seconds},
            )

            text = response.text if hasattr(response, "text") else str(response)

            usage = getattr(response, "usage_metadata", None)
            prompt_tokens = getattr(usage, "prompt_token_count", 0) if usage else 0
            completion_tokens = (
                getattr(usage, "candidates_token_count", 0) if usage else 0
            )

            return GeminiResponse(
                text=text,
                model=self.config.model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        except Exception as e:
            error_msg = str(e).lower()
            if "429" in error_msg or "rate" in error_msg:
                raise RateLimitError(f"Rate limit exceeded: {e}") from e
            raise GeminiAPIError(f"Gemini API error: {e}") from e

    async def generate_json(
        self,
        prompt: str,
        system_instruction: str | None = None,
    ) -> dict[str, Any]:
        """
        Generate JSON response.

        Args:
            prompt: User prompt
            system_instruction: Optional system instruction

        Returns:
            Parsed JSON dict

        Raises:
            json.JSONDecodeError: No JSON object in the response
        """
        response = await self.generate(
            prompt=prompt,
            system_instruction=system_instruction,
            response_mime_type="application/json",
        )

        try:
            return json.loads(response.text)
        except json.JSONDecodeError:
            # Try to extract JSON from response
            text = response.text
            start = text.find("{")
            end = text.rfind("}") + 1
            if start >= 0 and end > start:
                return json.loads(text[start:end])
            raise
