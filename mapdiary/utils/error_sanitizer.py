"""
HTTP error detail sanitizing.

Domain errors carry store paths, document ids and SQLite messages that have
no place in a response body. Only short plain 4xx messages reach the client;
anything else becomes the generic text for its status code.
"""

from __future__ import annotations

import re

from mapdiary.observability.logging import get_logger

logger = get_logger(__name__)

_SENSITIVE = re.compile(
    "|".join(
        [
            r"users/[^\s]+",  # collection paths carry the user id
            r"[0-9a-f]{20}",  # store-assigned document ids
            r"/[^\s]+\.py|[A-Za-z]:\\[^\s]+",
            r"Traceback \(most recent call last\)|File \".*\", line \d+",
            r"sqlite3?\.|no such (table|column)|constraint failed",
            r"Bearer [A-Za-z0-9._-]+|AIza[0-9A-Za-z_-]+",
            r"mapdiary\.[a-z_.]+",
        ]
    ),
    re.IGNORECASE,
)

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    404: "Resource not found.",
    422: "Invalid data format.",
    500: "An internal error occurred. Please try again later.",
    502: "The AI service failed to respond. Please try again later.",
}

PASS_THROUGH_STATUSES = frozenset({400, 404, 422})
MAX_DETAIL_LENGTH = 100


def generic_message(status_code: int) -> str:
    return GENERIC_MESSAGES.get(status_code, "An error occurred.")


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Client-safe detail for ``message``.

    Short single-line messages for 400/404/422 pass through unless they
    contain a path, id, key or database detail.
    """
    if not message or status_code not in PASS_THROUGH_STATUSES:
        return generic_message(status_code)
    if len(message) >= MAX_DETAIL_LENGTH or "\n" in message:
        return generic_message(status_code)
    if _SENSITIVE.search(message):
        logger.debug("Sanitized %d error detail", status_code)
        return generic_message(status_code)
    return message
