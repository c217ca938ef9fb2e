from datetime import UTC, datetime, timedelta, timezone

from zlatko.features.email_sync.pipeline.classifier import (
    classify_direction,
    extract_email_address,
    parse_message_date,
    resolve_author,
)

FALLBACK = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def test_extract_email_address_from_display_name():
    assert extract_email_address("Bob Smith <bob@acme.com>") == "bob@acme.com"


def test_extract_email_address_bare_and_empty():
    assert extract_email_address("bob@acme.com") == "bob@acme.com"
    assert extract_email_address(None) == ""


def test_classify_direction_is_case_insensitive_inbound():
    assert classify_direction("Bob <BOB@Acme.com>", "bob@acme.com") == "inbound"


def test_classify_direction_outbound():
    assert classify_direction("Me <me@zlatko.io>", "bob@acme.com") == "outbound"


def test_classify_direction_keeps_substring_semantics():
    assert classify_direction("x <bob@acme.com.evil.org>", "bob@acme.com") == "inbound"


def test_resolve_author():
    assert resolve_author("outbound", "Me <me@zlatko.io>", "Aleksandar") == "Aleksandar"
    assert resolve_author("inbound", "Bob <bob@acme.com>", "Aleksandar") == "Bob <bob@acme.com>"


def test_parse_message_date_rfc2822():
    parsed = parse_message_date("Tue, 14 May 2024 09:30:00 +0200", FALLBACK)
    assert parsed == datetime(2024, 5, 14, 9, 30, tzinfo=timezone(timedelta(hours=2)))


def test_parse_message_date_falls_back():
    assert parse_message_date(None, FALLBACK) == FALLBACK
    assert parse_message_date("not a date", FALLBACK) == FALLBACK
