import pytest

from voicehook.utils import (
    escape_cdata,
    format_order_date,
    is_valid_email,
    is_valid_order_reference,
    localized_value,
    normalize_phone,
    parse_positive_int,
    phone_like_pattern,
    phones_match,
    sanitize_search_query,
)


def test_escape_cdata_splits_terminator():
    assert escape_cdata("hello ]]> world") == "hello ]]]]><![CDATA[> world"
    assert escape_cdata("no markers") == "no markers"
    assert escape_cdata(None) == ""


@pytest.mark.parametrize("reference, expected", [
    ("XKBKNABJK", True),
    ("xkbknabjk", True),
    ("ABC123DEF", True),
    ("ABC12", False),
    ("ABC123DEF4", False),
    ("ABC-23DEF", False),
    ("", False),
    (None, False),
])
def test_order_reference_validation(reference, expected):
    assert is_valid_order_reference(reference) is expected


@pytest.mark.parametrize("email, expected", [
    ("jane@example.com", True),
    ("first.last+tag@shop.co.uk", True),
    ("jane@example", False),
    ("jane example@x.com", False),
    ("jane@exa|mple.com", False),
    ("[jane]@example.com", False),
    ("", False),
])
def test_email_validation(email, expected):
    assert is_valid_email(email) is expected


def test_sanitize_search_query_removes_filter_syntax():
    assert sanitize_search_query("[1|5]") == "15"
    assert sanitize_search_query("  rtx, 4080 ") == "rtx 4080"
    assert sanitize_search_query(None) == ""


def test_normalize_phone_keeps_digits():
    assert normalize_phone("+357 99-123 456") == "35799123456"
    assert normalize_phone(None) == ""


def test_phone_like_pattern_spans_separators():
    assert phone_like_pattern("+357 99-123 456") == "%9%9%1%2%3%4%5%6%"
    assert phone_like_pattern("123456") == "%1%2%3%4%5%6%"


def test_phones_match_by_trailing_digits():
    assert phones_match("+357 99-123 456", "35799123456")
    assert phones_match("99 123 456", "+357 99123456")
    assert not phones_match("99 123 457", "35799123456")
    assert not phones_match("", "35799123456")
    assert not phones_match("456", "123456")


def test_localized_value_variants():
    field = [{"id": "1", "value": "Graphics card"}, {"id": "2", "value": "Carte graphique"}]

    assert localized_value(field, 2) == "Carte graphique"
    assert localized_value(field, 9) == "Graphics card"
    assert localized_value("plain") == "plain"
    assert localized_value(None) is None
    assert localized_value([]) is None


def test_parse_positive_int():
    assert parse_positive_int("42") == 42
    assert parse_positive_int(7) == 7
    assert parse_positive_int("0") is None
    assert parse_positive_int("-3") is None
    assert parse_positive_int("abc") is None
    assert parse_positive_int(None) is None


def test_format_order_date():
    assert format_order_date("2024-03-05 14:22:10") == "05/03/2024"
    assert format_order_date("2024-03-05") == "05/03/2024"
    assert format_order_date("yesterday") == "yesterday"
    assert format_order_date(None) == ""
