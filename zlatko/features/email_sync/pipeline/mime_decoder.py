"""
Gmail MIME payload decoding.

Gmail returns bodies as base64url without padding; older payloads and test
fixtures use the standard alphabet. Both decode here.
"""

import base64
import re
from typing import Any

from zlatko.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TEXT_MIME_TYPES = ("text/plain", "text/html")

_WHITESPACE_RE = re.compile(r"\s+")


def decode_base64_data(data: str) -> str:
    """Decode URL-safe or standard base64 (padding optional) to UTF-8 text."""
    normalized = _WHITESPACE_RE.sub("", data).replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized).decode("utf-8", errors="replace")


def _first_text_part(parts: list[dict[str, Any]]) -> str | None:
    # Depth-first, in order: a part's own text beats its children
    for part in parts:
        data = (part.get("body") or {}).get("data")
        if part.get("mimeType") in TEXT_MIME_TYPES and data:
            return decode_base64_data(data)

        nested = part.get("parts")
        if nested:
            found = _first_text_part(nested)
            if found is not None:
                return found
    return None


def decode_body(payload: dict[str, Any] | None) -> str:
    """
    Extract the readable body of a Gmail message payload.

    The first text/plain or text/html part carrying data wins; a single-part
    payload returns its own body. Returns "" when nothing decodes.
    """
    try:
        if not payload:
            return ""

        parts = payload.get("parts")
        if parts:
            return _first_text_part(parts) or ""

        data = (payload.get("body") or {}).get("data")
        return decode_base64_data(data) if data else ""

    except Exception as e:
        logger.debug("Email body decoding failed", error=str(e), error_type=type(e).__name__)
        return ""
