"""LLM access: Gemini backend, prompts and the retrying AI gateway."""

from __future__ import annotations

from mapdiary.llm.errors import (
    AIGatewayError,
    AIResponseError,
    GeminiInitializationError,
    QuotaExceededError,
)
from mapdiary.llm.gateway import AIGateway
from mapdiary.llm.schemas import DiarySummary, FinancialItem, ReportContent

__all__ = [
    "AIGateway",
    "AIGatewayError",
    "AIResponseError",
    "DiarySummary",
    "FinancialItem",
    "GeminiInitializationError",
    "QuotaExceededError",
    "ReportContent",
]
