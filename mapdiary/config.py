"""Centralized configuration for the mapdiary backend.

Re-exports everything from mapdiary.infrastructure.settings so existing imports
continue to work, then adds typed constants for database, layout, LLM and API
settings.  Environment variable overrides use safe defaults so the app starts
without extra env configuration.
"""

from __future__ import annotations

import os

from mapdiary.infrastructure.settings import *  # noqa: F401, F403

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("MAPDIARY_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("MAPDIARY_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("MAPDIARY_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("MAPDIARY_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("MAPDIARY_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("MAPDIARY_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("MAPDIARY_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("MAPDIARY_DB_RETRY_JITTER", "0.1"))

# --- Layout ---
# Shared by single-child and batch placement.
LAYOUT_SLOT_WIDTH: float = 220.0
LAYOUT_VERTICAL_GAP: float = 150.0
LAYOUT_MAX_SLOT_SEARCH: int = 100

# --- Graph ---
NODE_PREVIEW_CHARS: int = 30
DEFAULT_NODE_TYPE: str = "diary"
UNTITLED_LABEL: str = "제목 없음"
ROOT_NODE_LABEL: str = "나의 다이어리"
CHILD_NODE_LABEL: str = "새로운 생각"

# --- LLM ---
LLM_MAX_ATTEMPTS: int = int(os.getenv("MAPDIARY_LLM_MAX_ATTEMPTS", "3"))
LLM_BASE_DELAY: float = float(os.getenv("MAPDIARY_LLM_BASE_DELAY", "2.0"))
LLM_MAX_DELAY: float = float(os.getenv("MAPDIARY_LLM_MAX_DELAY", "30.0"))
LLM_TOPIC_IDEA_LIMIT: int = 5
LLM_CONTEXT_IDEA_LIMIT: int = 3
LLM_MARKDOWN_MAX_CHARS: int = 30000

# --- API ---
API_LIST_LIMIT_DEFAULT: int = 100
API_LIST_LIMIT_MAX: int = 500
