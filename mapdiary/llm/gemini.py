"""
Gemini Model Manager - Singleton for shared model instance, plus the text
backend the AI gateway calls.

Supports two backends:
  1. Vertex AI SDK (production) - uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev) - uses GOOGLE_API_KEY
"""

from __future__ import annotations

import os
from functools import lru_cache

from mapdiary.infrastructure.settings import (
    GEMINI_LOCATION,
    GEMINI_MAX_TOKENS,
    GEMINI_MODEL,
    GEMINI_TEMPERATURE,
    GOOGLE_CLOUD_PROJECT,
)
from mapdiary.llm.errors import AIGatewayError, GeminiInitializationError, QuotaExceededError
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter

logger = get_logger(__name__)

_QUOTA_MARKERS = ("429", "resource_exhausted", "resource exhausted", "quota")


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create shared Gemini model instance.

    Tries Vertex AI SDK first (production). Falls back to google-generativeai
    with GOOGLE_API_KEY for local development.

    Raises:
        GeminiInitializationError: If model cannot be initialized
    """
    project = GOOGLE_CLOUD_PROJECT or os.getenv("GOOGLE_CLOUD_PROJECT")

    if project:
        try:
            import vertexai
            from vertexai.generative_models import GenerativeModel

            vertexai.init(project=project, location=GEMINI_LOCATION or "us-central1")
            model = GenerativeModel(GEMINI_MODEL)

            logger.info(
                "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
                project,
                GEMINI_LOCATION,
                GEMINI_MODEL,
            )
            return model

        except ImportError:
            logger.info("Vertex AI SDK not installed, trying google-generativeai fallback")

    # Fallback: google-generativeai with API key (local dev)
    api_key = os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise GeminiInitializationError(
            "Neither GOOGLE_CLOUD_PROJECT nor GOOGLE_API_KEY is set. "
            "Configure Vertex AI or set GOOGLE_API_KEY."
        )

    try:
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(GEMINI_MODEL)

        logger.info("Initialized Gemini model (google-generativeai): model=%s", GEMINI_MODEL)
        return model

    except ImportError as e:
        raise GeminiInitializationError(
            "No Gemini SDK available. Install google-cloud-aiplatform or google-generativeai."
        ) from e
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e


def _is_quota_error(error: Exception) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in _QUOTA_MARKERS)


class GeminiTextBackend:
    """
    ``prompt -> text`` call against the shared Gemini model.

    Rate-limit failures surface as QuotaExceededError so the gateway can
    retry them; everything else becomes AIGatewayError and is not retried.
    """

    def __init__(
        self,
        temperature: float = GEMINI_TEMPERATURE,
        max_tokens: int = GEMINI_MAX_TOKENS,
    ):
        self.temperature = temperature
        self.max_tokens = max_tokens

    def __call__(self, prompt: str, json_response: bool = False) -> str:
        from google.api_core.exceptions import ResourceExhausted, TooManyRequests

        model = get_gemini_model()

        generation_config = {
            "temperature": self.temperature,
            "max_output_tokens": self.max_tokens,
        }
        if json_response:
            generation_config["response_mime_type"] = "application/json"

        try:
            response = model.generate_content(prompt, generation_config=generation_config)
            return response.text
        except (ResourceExhausted, TooManyRequests) as e:
            counter("llm.rate_limited")
            logger.warning("LLM rate limited (429): %s", e)
            raise QuotaExceededError(f"LLM rate limited: {e}") from e
        except Exception as e:
            if _is_quota_error(e):
                counter("llm.rate_limited")
                logger.warning("LLM quota exceeded: %s", e)
                raise QuotaExceededError(f"LLM quota exceeded: {e}") from e
            counter("llm.backend_error")
            logger.error("LLM call failed: %s", e)
            raise AIGatewayError(f"LLM call failed: {e}") from e
