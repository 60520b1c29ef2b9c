"""
Environment settings for the mapdiary service.

Read once at import. Values that tests change per case (database path,
diary timezone) are looked up at call time by their modules instead.
"""

from __future__ import annotations

import os

# Environment
ENV = os.getenv("MAPDIARY_ENV", "development")
DEBUG = ENV == "development"
LOG_LEVEL = os.getenv("MAPDIARY_LOG_LEVEL", "INFO")

# HTTP server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Gemini: Vertex AI when a project is set, the API-key SDK otherwise
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", "")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "2048"))
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.9"))

# Identity comes from the X-User-Id header and is not verified here
AUTH_REQUIRED = os.getenv("AUTH_REQUIRED", "false").lower() == "true"
DEFAULT_USER_ID = os.getenv("MAPDIARY_DEFAULT_USER", "default")


def is_development() -> bool:
    return ENV == "development"


def get_env(key: str, default: str | None = None) -> str | None:
    """Read an optional variable that has no module-level constant."""
    return os.getenv(key, default)
