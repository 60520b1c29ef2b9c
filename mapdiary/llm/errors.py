"""Errors raised at the AI text-generation boundary."""

from __future__ import annotations

from mapdiary.errors import MapDiaryError


class AIGatewayError(MapDiaryError):
    """The generation backend failed or returned something unusable."""


class QuotaExceededError(AIGatewayError):
    """Rate limit or quota exhausted (HTTP 429 / RESOURCE_EXHAUSTED). Retryable."""


class AIResponseError(AIGatewayError):
    """The response could not be parsed into the expected shape."""


class GeminiInitializationError(AIGatewayError):
    """Raised when Gemini model cannot be initialized."""
