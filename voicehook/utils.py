"""Validation and formatting helpers shared by the tool handlers.

Everything here runs before any upstream call: inputs the shop would reject
(or that would change the meaning of a webservice filter) are caught early so
the caller hears a corrective message instead of a generic failure.
"""
from __future__ import annotations

import html
import re
from datetime import datetime
from typing import Any, Optional

ORDER_REFERENCE_PATTERN = re.compile(r"^[A-Z0-9]{9}$", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"^[^\s@\[\]|,]+@[^\s@\[\]|,]+\.[^\s@\[\]|,]+$")
# Characters with meaning inside ``filter[...]`` values: ranges, OR lists.
FILTER_INJECTION_PATTERN = re.compile(r"[\[\]|,]")
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
MIN_PHONE_DIGITS = 6
# Trailing digits matched against stored numbers; country prefixes vary.
PHONE_MATCH_DIGITS = 8


def is_valid_order_reference(reference: str | None) -> bool:
    """Shop order references are nine letters or digits."""
    return bool(reference) and bool(ORDER_REFERENCE_PATTERN.match(reference))


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def sanitize_search_query(text: str | None) -> str:
    """Strip filter syntax characters from user text bound for a filter."""
    if not text:
        return ""
    return FILTER_INJECTION_PATTERN.sub("", text).strip()


def normalize_phone(phone: str | None) -> str:
    """Digits only, so "+357 99-123 456" and "35799123456" compare equal."""
    return re.sub(r"\D", "", phone or "")


def phone_like_pattern(digits: str) -> str:
    """LIKE pattern matching the trailing digits whatever separators sit between.

    ``"35799123456"`` -> ``"%9%9%1%2%3%4%5%6%"``, which matches a stored
    ``"+357 99-123 456"``. Candidates still need :func:`phones_match`.
    """
    tail = normalize_phone(digits)[-PHONE_MATCH_DIGITS:]
    return "%" + "%".join(tail) + "%"


def phones_match(stored: str | None, spoken: str | None) -> bool:
    """Compare two numbers by digits, tolerating a missing country prefix."""
    a, b = normalize_phone(stored), normalize_phone(spoken)
    if len(a) < MIN_PHONE_DIGITS or len(b) < MIN_PHONE_DIGITS:
        return False
    return a.endswith(b) or b.endswith(a)


def escape_cdata(text: str | None) -> str:
    """Split any ``]]>`` so user text cannot close a CDATA section early."""
    if not text:
        return ""
    return text.replace("]]>", "]]]]><![CDATA[>")


def localized_value(field: Any, language_id: int = 1) -> Optional[str]:
    """Pick the requested language from a multilingual webservice field.

    The shop returns either a plain string or a list of ``{"id", "value"}``
    entries; unknown languages fall back to the first entry.
    """
    if field is None:
        return None
    if isinstance(field, str):
        return field
    if isinstance(field, list):
        for entry in field:
            if isinstance(entry, dict) and str(entry.get("id")) == str(language_id):
                return entry.get("value") or None
        if field and isinstance(field[0], dict):
            return field[0].get("value") or None
    return None


def parse_positive_int(value: Any) -> Optional[int]:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def format_order_date(value: str | None) -> str:
    """``2024-03-05 14:22:10`` -> ``05/03/2024``; unparseable input is echoed."""
    if not value:
        return ""
    try:
        return datetime.strptime(value[:19], "%Y-%m-%d %H:%M:%S").strftime("%d/%m/%Y")
    except ValueError:
        try:
            return datetime.strptime(value[:10], "%Y-%m-%d").strftime("%d/%m/%Y")
        except ValueError:
            return value


def strip_html(text: str | None) -> str:
    """Plain text from a shop description: tags dropped, entities decoded."""
    if not text:
        return ""
    plain = html.unescape(HTML_TAG_PATTERN.sub(" ", text))
    return " ".join(plain.split())
