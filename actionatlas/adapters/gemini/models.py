"""
Gemini Models - Request/Response types for Gemini API.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GeminiConfig(BaseModel):
    """Configuration for Gemini client."""

    model: str = Field(default="gemini-2.0-flash")
    api_key: str | None = Field(default=None, repr=False)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1024)
    timeout_seconds: int = Field(default=30)
    rate_limit_rpm: int = Field(default=60)

    model_config = {"frozen": True}


class GeminiResponse(BaseModel):
    """Generic Gemini API response."""

    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    finish_reason: str = "STOP"
