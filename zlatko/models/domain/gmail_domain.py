"""
Gmail Domain Models
Wraps the Gmail API message resource for the sync pipeline.
"""

from typing import Any


class GmailMessage:
    """Domain model for a Gmail message fetched in `full` format."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.thread_id = data.get("threadId")
        self.payload: dict[str, Any] = data.get("payload") or {}

        self._parse_headers()

    def _parse_headers(self):
        """Index headers by lowercased name; the first occurrence wins."""
        self.headers: dict[str, str] = {}
        for header in self.payload.get("headers", []):
            name = (header.get("name") or "").lower()
            if name and name not in self.headers:
                self.headers[name] = header.get("value", "")

    def get_header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def sender(self) -> str:
        return self.get_header("from", "")

    @property
    def date(self) -> str | None:
        return self.get_header("date")

    def __repr__(self) -> str:
        return f"GmailMessage(id={self.id!r}, thread_id={self.thread_id!r})"
