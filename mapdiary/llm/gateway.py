"""
AI Gateway - idea lists, diary summaries and period reports from a text backend.

The backend is any callable ``(prompt, json_response) -> str``; production uses
GeminiTextBackend. Only QuotaExceededError is retried, with exponential
backoff (base delay doubling per attempt) up to a fixed attempt count. Other
failures propagate on the first attempt.

Failure posture differs per operation:
- idea generation returns whatever items came back (possibly none)
- summarize_diary never raises for AI failures; it returns a placeholder
- generate_report raises so the scheduled caller can decide
"""

from __future__ import annotations

import json
import re
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from pydantic import BaseModel, ValidationError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mapdiary.config import (
    LLM_BASE_DELAY,
    LLM_CONTEXT_IDEA_LIMIT,
    LLM_MARKDOWN_MAX_CHARS,
    LLM_MAX_ATTEMPTS,
    LLM_MAX_DELAY,
    LLM_TOPIC_IDEA_LIMIT,
)
from mapdiary.llm.errors import AIGatewayError, AIResponseError, QuotaExceededError
from mapdiary.llm.prompts import (
    context_ideas_prompt,
    diary_summary_prompt,
    report_prompt,
    topic_ideas_prompt,
)
from mapdiary.llm.schemas import DiarySummary, ReportContent
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter, log_event, time_block

logger = get_logger(__name__)

TextBackend = Callable[[str, bool], str]
SchemaT = TypeVar("SchemaT", bound=BaseModel)

FALLBACK_SUMMARY = "요약을 생성하지 못했습니다. 잠시 후 다시 시도해 주세요."
FALLBACK_EMOTION = "⚠️"


def split_ideas(text: str, limit: int) -> list[str]:
    """Comma-separated response -> first ``limit`` non-empty trimmed items."""
    ideas = [idea.strip() for idea in (text or "").split(",")]
    return [idea for idea in ideas if idea][:limit]


def parse_json_response(text: str, schema: type[SchemaT]) -> SchemaT:
    """
    Parse a JSON response (optionally wrapped in a ``` fence) into ``schema``.

    Raises:
        AIResponseError: On invalid JSON or missing/invalid fields
    """
    json_text = (text or "").strip()
    if json_text.startswith("```"):
        json_text = re.sub(r"^```(?:json)?\n?", "", json_text)
        json_text = re.sub(r"\n?```$", "", json_text)

    try:
        data = json.loads(json_text)
        return schema.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        counter("llm.parse_error")
        logger.warning("Failed to parse %s response: %s", schema.__name__, e)
        raise AIResponseError(f"Malformed {schema.__name__} response: {e}") from e


def _truncate(markdown: str) -> str:
    if len(markdown) <= LLM_MARKDOWN_MAX_CHARS:
        return markdown
    logger.info("Truncating markdown from %d to %d chars", len(markdown), LLM_MARKDOWN_MAX_CHARS)
    return markdown[:LLM_MARKDOWN_MAX_CHARS]


class AIGateway:
    """
    Retry-wrapped access to the generation backend.

    Args:
        backend: ``(prompt, json_response) -> text``. Defaults to Gemini.
        max_attempts: Total attempts including the first
        base_delay: First backoff delay in seconds; doubles each retry
        max_delay: Cap on a single backoff delay
        sleep: Injected for tests
    """

    def __init__(
        self,
        backend: TextBackend | None = None,
        max_attempts: int = LLM_MAX_ATTEMPTS,
        base_delay: float = LLM_BASE_DELAY,
        max_delay: float = LLM_MAX_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if backend is None:
            from mapdiary.llm.gemini import GeminiTextBackend

            backend = GeminiTextBackend()
        self.backend = backend
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def _log_retry(self, retry_state: RetryCallState) -> None:
        counter("llm.quota_retry")
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "LLM quota exceeded (attempt %d/%d), retrying in %.1fs",
            retry_state.attempt_number,
            self.max_attempts,
            delay,
        )

    def _call(self, prompt: str, operation: str, json_response: bool = False) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay, min=self.base_delay, max=self.max_delay
            ),
            retry=retry_if_exception_type(QuotaExceededError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        with time_block(f"llm.{operation}.latency"):
            try:
                text = retrying(self.backend, prompt, json_response)
            except QuotaExceededError:
                counter("llm.quota_exhausted")
                logger.error("LLM quota retries exhausted for %s", operation)
                raise
        counter(f"llm.{operation}.success")
        return text

    # ------------------------------------------------------------------
    # Ideas
    # ------------------------------------------------------------------

    def generate_topic_ideas(self, topic: str) -> list[str]:
        """Up to five sub-topics for a single node title."""
        prompt = topic_ideas_prompt(topic=topic, count=LLM_TOPIC_IDEA_LIMIT)
        text = self._call(prompt, "topic_ideas")
        return split_ideas(text, LLM_TOPIC_IDEA_LIMIT)

    def generate_ideas(
        self,
        topic: str,
        context_path: Sequence[str] = (),
        exclusions: Sequence[str] = (),
        content: str = "",
    ) -> list[str]:
        """Up to three child ideas, given the path to the node and existing children."""
        prompt = context_ideas_prompt(
            topic=topic,
            count=LLM_CONTEXT_IDEA_LIMIT,
            context_path=list(context_path),
            exclusions=list(exclusions),
            content=content or "",
        )
        text = self._call(prompt, "context_ideas")
        return split_ideas(text, LLM_CONTEXT_IDEA_LIMIT)

    # ------------------------------------------------------------------
    # Structured
    # ------------------------------------------------------------------

    def summarize_diary(self, markdown: str) -> DiarySummary:
        """
        Summary, mood emoji and money items for one diary.

        Best effort: any AI failure (including exhausted retries and
        malformed JSON) yields the placeholder summary with a warning emoji.
        """
        prompt = diary_summary_prompt(markdown=_truncate(markdown))
        try:
            text = self._call(prompt, "summarize_diary", json_response=True)
            return parse_json_response(text, DiarySummary)
        except AIGatewayError as e:
            counter("llm.summarize_diary.fallback")
            log_event("llm.summarize_diary.fallback", error=type(e).__name__)
            return DiarySummary(summary=FALLBACK_SUMMARY, emotion=FALLBACK_EMOTION)

    def generate_report(self, period_type: str, period_label: str, markdown: str) -> ReportContent:
        """
        Chronological/thematic/summary text and an emoji for a period.

        Raises:
            AIGatewayError: On backend failure or malformed response
        """
        prompt = report_prompt(
            period_type=period_type, period_label=period_label, markdown=_truncate(markdown)
        )
        text = self._call(prompt, "generate_report", json_response=True)
        return parse_json_response(text, ReportContent)
