"""Date helpers for store timestamps, diary titles and daily date keys."""

from __future__ import annotations

import os
import re
from datetime import UTC, date, datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_TITLE_DATE_RE = re.compile(r"(\d{2,4})년\s*(\d{1,2})월\s*(\d{1,2})일")


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def local_timezone() -> tzinfo:
    """Timezone used for diary dates (MAPDIARY_TIMEZONE, default UTC)."""
    name = os.getenv("MAPDIARY_TIMEZONE")
    return ZoneInfo(name) if name else UTC


def to_datetime(value: Any) -> datetime | None:
    """
    Coerce a stored timestamp into an aware datetime.

    Accepts datetimes (naive ones are taken as UTC), ISO-8601 strings,
    ``{"seconds": ...}`` mappings and epoch seconds. Anything unparseable
    yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    if isinstance(value, dict) and "seconds" in value:
        return datetime.fromtimestamp(float(value["seconds"]), tz=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(float(value), tz=UTC)
    return None


def timestamp_or_epoch(value: Any) -> datetime:
    return to_datetime(value) or EPOCH


def format_date_key(value: datetime | date) -> str:
    """YYYY-MM-DD in the diary timezone."""
    if isinstance(value, datetime):
        value = value.astimezone(local_timezone()).date()
    return value.isoformat()


def extract_date_from_title(title: str | None) -> date | None:
    """Parse ``2024년 8월 15일`` style dates out of a map title."""
    if not title:
        return None
    match = _TITLE_DATE_RE.search(title)
    if not match:
        return None
    raw_year = int(match.group(1))
    year = 2000 + raw_year if raw_year < 100 else raw_year
    try:
        return date(year, int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def default_map_title(now: datetime) -> str:
    local = now.astimezone(local_timezone())
    return f"{local.year}년 {local.month}월 {local.day}일의 기록"
