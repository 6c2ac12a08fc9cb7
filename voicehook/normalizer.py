"""Query normalization and search-variation generation.

A caller on the phone says something like "sixteen gig RTX fifty series"; the
transcript arrives as ``"16gb rtx 50 series"``. The upstream catalog only
supports substring matching on product names, so a single literal query
rarely hits. :func:`normalize_query` turns the utterance into a ranked list of
alternative phrasings that the search engine fans out over:

    1) clean the text (ASCII fold, lowercase, strip punctuation),
    2) extract significant terms (no stop words, no 1-letter tokens),
    3) expand GPU series ("rtx 50" -> "RTX 5070", ...) and memory sizes
       ("16gb" -> "16GB", "16 GB"),
    4) pair each recognized brand with the leading non-brand terms,
    5) add lone brand names and model numbers as their own variations.

The function is pure: the same input and vocabulary always give the same
result.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, List, Tuple

from unidecode import unidecode

from .vocabulary import SearchVocabulary

logger = logging.getLogger(__name__)

_QUOTE_RE = re.compile(r"[\"'`]")
# Keep letters/digits/whitespace plus hyphen and dot ("i5-12400", "2.5").
_DISALLOWED_RE = re.compile(r"[^a-z0-9\s\-.]+")
_MEMORY_RE = re.compile(r"\b(\d+)\s*(gb|tb|mb)\b")
_DIGIT_RE = re.compile(r"\d")

_DEFAULT_VOCABULARY = SearchVocabulary()


@dataclass(frozen=True)
class NormalizedQuery:
    original: str
    terms: List[str] = field(default_factory=list)
    variations: List[str] = field(default_factory=list)
    brands: List[str] = field(default_factory=list)

    @property
    def has_brand(self) -> bool:
        return bool(self.brands)


@lru_cache(maxsize=16)
def _gpu_series_pattern(prefixes: Tuple[str, ...]) -> re.Pattern[str] | None:
    if not prefixes:
        return None
    alternatives = "|".join(re.escape(prefix) for prefix in prefixes)
    return re.compile(rf"\b({alternatives})\s*(\d{{2}})\b(?:\s*(?:series|line)\b)?")


def clean_text(text: str) -> str:
    """Lowercase, ASCII-fold and strip punctuation, collapsing whitespace."""
    folded = unidecode(text or "").lower().strip()
    unquoted = _QUOTE_RE.sub("", folded)
    cleaned = _DISALLOWED_RE.sub(" ", unquoted)
    return " ".join(cleaned.split())


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


def extract_terms(cleaned: str, vocabulary: SearchVocabulary) -> List[str]:
    terms = []
    for token in cleaned.split():
        token = vocabulary.brand_aliases.get(token, token)
        if len(token) < 2 or token in vocabulary.stop_words:
            continue
        terms.append(token)
    return _dedupe(terms)


def _gpu_variations(cleaned: str, vocabulary: SearchVocabulary) -> List[str]:
    pattern = _gpu_series_pattern(tuple(vocabulary.gpu_prefixes))
    if pattern is None:
        return []
    variations = []
    for match in pattern.finditer(cleaned):
        prefix, generation = match.group(1).upper(), match.group(2)
        variations.extend(f"{prefix} {generation}{suffix}" for suffix in vocabulary.gpu_suffixes)
    return variations


def _memory_variations(cleaned: str) -> List[str]:
    variations = []
    for match in _MEMORY_RE.finditer(cleaned):
        size, unit = match.group(1), match.group(2).upper()
        variations.append(f"{size}{unit}")
        variations.append(f"{size} {unit}")
    return variations


def normalize_query(text: str, vocabulary: SearchVocabulary | None = None) -> NormalizedQuery:
    """Derive search terms and ranked variations from a raw utterance.

    The cleaned query always comes first so the most literal phrasing is
    searched before any heuristic expansion. Blank input yields empty
    ``terms`` and ``variations``.
    """

    vocab = vocabulary or _DEFAULT_VOCABULARY
    cleaned = clean_text(text)
    if not cleaned:
        logger.debug("normalize_query empty after cleaning raw=%r", text)
        return NormalizedQuery(original=text or "")

    terms = extract_terms(cleaned, vocab)
    variations: List[str] = [cleaned]
    joined_terms = " ".join(terms)
    if joined_terms and joined_terms != cleaned:
        variations.append(joined_terms)

    variations.extend(_gpu_variations(cleaned, vocab))
    variations.extend(_memory_variations(cleaned))

    brands = [term for term in terms if term in vocab.brands]
    non_brand_terms = [term for term in terms if term not in vocab.brands]
    for brand in brands:
        for term in non_brand_terms[:2]:
            variations.append(f"{brand} {term}")

    for term in terms:
        if term in vocab.brands or _DIGIT_RE.search(term):
            variations.append(term)

    normalized = NormalizedQuery(
        original=text,
        terms=terms,
        variations=_dedupe(variations),
        brands=brands,
    )
    logger.debug(
        "normalize_query raw=%r cleaned=%r terms=%s brands=%s variations=%s",
        text,
        cleaned,
        normalized.terms,
        normalized.brands,
        normalized.variations,
    )
    return normalized
