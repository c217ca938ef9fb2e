"""
Header interpretation for imported mail: addresses, direction, author, date.
"""

import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from zlatko.features.email_sync.domain import DIRECTION_INBOUND, DIRECTION_OUTBOUND

_ANGLE_ADDRESS_RE = re.compile(r"<(.+?)>")


def extract_email_address(header: str | None) -> str:
    """`Name <addr>` yields `addr`; anything else is returned unchanged."""
    if not header:
        return ""
    match = _ANGLE_ADDRESS_RE.search(header)
    return match.group(1) if match else header


def classify_direction(from_header: str | None, prospect_email: str) -> str:
    """
    Inbound when the prospect address occurs in the sender address.

    Substring match, case-insensitive: `bob@acme.com` also matches
    `bob@acme.com.evil.org`.
    """
    sender = extract_email_address(from_header).lower()
    return DIRECTION_INBOUND if prospect_email.lower() in sender else DIRECTION_OUTBOUND


def resolve_author(direction: str, from_header: str | None, internal_identity: str) -> str:
    if direction == DIRECTION_OUTBOUND:
        return internal_identity
    return from_header or ""


def parse_message_date(value: str | None, fallback: datetime) -> datetime:
    """RFC 2822 Date header to an aware datetime; naive dates are UTC."""
    if not value:
        return fallback
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return fallback
    if parsed is None:
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
