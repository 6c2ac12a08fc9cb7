"""Text transforms that keep product names short and pronounceable."""
from __future__ import annotations

import re
from typing import List, Tuple

# Order matters: processor models contain digit+letter runs that the generic
# unit rules would otherwise rewrite.
_SPEECH_RULES: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bi(\d+)-(\d+)G(\d+)\b", re.IGNORECASE), r"i\1 \2 G \3"),
    (re.compile(r"\bi(\d+)-(\d+)\b", re.IGNORECASE), r"i\1 \2"),
    # "G8" is a model, not grams.
    (re.compile(r"\bG(\d+)\b", re.IGNORECASE), r"G \1"),
    (re.compile(r"(\d+)\s*GB\b", re.IGNORECASE), r"\1 gigabytes"),
    (re.compile(r"(\d+)\s*TB\b", re.IGNORECASE), r"\1 terabytes"),
    (re.compile(r"(\d+)\s*MB\b", re.IGNORECASE), r"\1 megabytes"),
    (re.compile(r"\bDDR(\d+)\b", re.IGNORECASE), r"D D R \1"),
)

SPELLED_ACRONYMS = ("SSD", "HDD", "LCD", "LED", "USB", "HDMI")
_ACRONYM_RULES = tuple(
    (re.compile(rf"\b{acronym}\b", re.IGNORECASE), " ".join(acronym)) for acronym in SPELLED_ACRONYMS
)

_LISTING_SPLIT_RE = re.compile(r"[\s,\-–]+")
_TECH_TOKEN_RES = (
    re.compile(r"^\d+\s*(GB|TB|MB|mm|cm|MHz|W|mAh)", re.IGNORECASE),
    re.compile(r"^\d+x\d+", re.IGNORECASE),
    re.compile(r"^(RGB|LED|LCD|USB|HDMI|DDR\d)", re.IGNORECASE),
)
MIN_LISTING_WORDS = 3
MAX_LISTING_WORDS = 5


def make_speech_friendly(text: str) -> str:
    """Rewrite technical shorthand so a speech synthesizer reads it naturally.

    ``"Intel i5-1145G7 16GB DDR4 SSD"`` becomes
    ``"Intel i5 1145 G 7 16 gigabytes D D R 4 S S D"``. Text without any of
    the patterns is returned unchanged.
    """
    if not text:
        return text
    result = text
    for pattern, replacement in _SPEECH_RULES:
        result = pattern.sub(replacement, result)
    for pattern, replacement in _ACRONYM_RULES:
        result = pattern.sub(replacement, result)
    return result


def _is_technical_token(token: str) -> bool:
    return any(pattern.search(token) for pattern in _TECH_TOKEN_RES)


def shorten_for_listing(name: str) -> str:
    """Keep brand and model only: at most five words, cut before technical details.

    Technical details (sizes, resolutions, connector names) usually start after the
    model, so the name is cut at the first technical word, never below three
    words.
    """
    words: List[str] = [word for word in _LISTING_SPLIT_RE.split(name or "") if word]
    cutoff = len(words)
    for index, word in enumerate(words):
        if _is_technical_token(word):
            cutoff = max(MIN_LISTING_WORDS, index)
            break
    return " ".join(words[: min(cutoff, MAX_LISTING_WORDS)])


def format_price(value, symbol: str = "€") -> str:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        amount = 0.0
    return f"{symbol}{amount:.2f}"
