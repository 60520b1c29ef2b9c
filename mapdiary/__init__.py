"""MapDiary - mind-map diary with AI summaries"""

from __future__ import annotations

__version__ = "1.0.0"
