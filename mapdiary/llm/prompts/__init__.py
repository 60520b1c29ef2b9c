"""
Prompt templates for the AI gateway.

Each prompt is a ``.txt`` file next to this module using ``str.format``
fields; literal braces in the JSON examples are doubled. Templates are read
once per process.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def load_template(name: str) -> str:
    """
    Raises:
        FileNotFoundError: If ``{name}.txt`` does not exist
    """
    path = PROMPTS_DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8")


def render(name: str, **fields: object) -> str:
    return load_template(name).format(**fields)


def topic_ideas_prompt(topic: str, count: int) -> str:
    return render("topic_ideas_prompt", topic=topic, count=count)


def context_ideas_prompt(
    topic: str,
    count: int,
    context_path: list[str],
    exclusions: list[str],
    content: str,
) -> str:
    return render(
        "context_ideas_prompt",
        topic=topic,
        count=count,
        context_path=" > ".join(context_path) if context_path else topic,
        exclusions=", ".join(exclusions) if exclusions else "(none)",
        content=content.strip() or "(none)",
    )


def diary_summary_prompt(markdown: str) -> str:
    return render("diary_summary_prompt", markdown=markdown)


def report_prompt(period_type: str, period_label: str, markdown: str) -> str:
    return render(
        "report_prompt", period_type=period_type, period_label=period_label, markdown=markdown
    )
