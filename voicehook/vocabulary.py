"""Domain vocabulary used by query normalization and brand filtering.

The tables here are tuned for a consumer-electronics catalog. They are data,
not logic: a deployment can replace any of them with a JSON file referenced by
``VOCABULARY_PATH``. Keys missing from the file keep their built-in defaults.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, FrozenSet, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_STOP_WORDS = frozenset(
    {
        "a",
        "an",
        "the",
        "and",
        "or",
        "for",
        "to",
        "of",
        "in",
        "on",
        "at",
        "by",
        "with",
        "from",
        "is",
        "are",
        "am",
        "be",
        "do",
        "does",
        "have",
        "has",
        "me",
        "my",
        "we",
        "you",
        "your",
        "it",
        "its",
        "this",
        "that",
        "these",
        "those",
        "there",
        "any",
        "some",
        "please",
        "can",
        "could",
        "would",
        "like",
        "want",
        "wanna",
        "need",
        "looking",
        "look",
        "find",
        "search",
        "searching",
        "get",
        "show",
        "tell",
        "about",
        "what",
        "which",
        "how",
        "much",
        "got",
        "also",
        # Domain noise words: they never narrow an electronics search.
        "series",
        "line",
        "model",
        "type",
        "kind",
        "version",
        "gen",
        "generation",
    }
)

DEFAULT_BRANDS = frozenset(
    {
        "nvidia",
        "geforce",
        "rtx",
        "gtx",
        "amd",
        "radeon",
        "ryzen",
        "intel",
        "asus",
        "msi",
        "gigabyte",
        "aorus",
        "asrock",
        "palit",
        "zotac",
        "pny",
        "gainward",
        "inno3d",
        "evga",
        "sapphire",
        "powercolor",
        "xfx",
        "corsair",
        "kingston",
        "hyperx",
        "crucial",
        "samsung",
        "seagate",
        "wd",
        "sandisk",
        "lexar",
        "logitech",
        "razer",
        "steelseries",
        "nzxt",
        "thermaltake",
        "deepcool",
        "noctua",
        "lenovo",
        "hp",
        "dell",
        "acer",
        "apple",
        "lg",
        "sony",
        "philips",
        "benq",
        "aoc",
        "xiaomi",
        "huawei",
        "microsoft",
        "netgear",
    }
)

# Speech-to-text frequently produces these spellings for brand names.
DEFAULT_BRAND_ALIASES: Dict[str, str] = {
    "nvidea": "nvidia",
    "nvidya": "nvidia",
    "invidia": "nvidia",
    "gigabite": "gigabyte",
    "corsaire": "corsair",
    "a.m.d": "amd",
    "a.m.d.": "amd",
    "m.s.i": "msi",
    "m.s.i.": "msi",
    "r.t.x": "rtx",
    "g.t.x": "gtx",
}

DEFAULT_GPU_PREFIXES: Tuple[str, ...] = ("rtx", "gtx", "radeon")
DEFAULT_GPU_SUFFIXES: Tuple[str, ...] = ("60", "70", "80", "90", "70 ti", "80 super")
# Words after which a product name describes what the item is used with
# ("cable compatible with RTX laptops"), not who made it.
DEFAULT_ACCESSORY_MARKERS: Tuple[str, ...] = ("compatible", "for", "fits", "with")


class SearchVocabulary(BaseModel):
    """Word tables consumed by :func:`voicehook.normalizer.normalize_query`."""

    model_config = ConfigDict(frozen=True)

    stop_words: FrozenSet[str] = Field(default=DEFAULT_STOP_WORDS)
    brands: FrozenSet[str] = Field(default=DEFAULT_BRANDS)
    brand_aliases: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BRAND_ALIASES))
    gpu_prefixes: Tuple[str, ...] = DEFAULT_GPU_PREFIXES
    gpu_suffixes: Tuple[str, ...] = DEFAULT_GPU_SUFFIXES
    # A brand must appear within this many leading characters of a product
    # name, and before any accessory marker, for the product to count as
    # that brand's own.
    brand_position_window: int = Field(default=50, ge=1)
    accessory_markers: Tuple[str, ...] = DEFAULT_ACCESSORY_MARKERS

    @field_validator("stop_words", "brands", mode="before")
    @classmethod
    def _lowercase_words(cls, value):
        return frozenset(str(word).strip().lower() for word in value if str(word).strip())

    @field_validator("gpu_prefixes", "accessory_markers", mode="before")
    @classmethod
    def _lowercase_prefixes(cls, value):
        return tuple(str(prefix).strip().lower() for prefix in value if str(prefix).strip())

    @field_validator("brand_aliases", mode="before")
    @classmethod
    def _lowercase_aliases(cls, value):
        return {str(k).strip().lower(): str(v).strip().lower() for k, v in dict(value).items()}


def load_vocabulary(path: str | Path | None = None) -> SearchVocabulary:
    """Load a vocabulary from a JSON file, or the built-in tables without one."""
    if not path:
        return SearchVocabulary()
    file_path = Path(path)
    with file_path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    vocabulary = SearchVocabulary.model_validate(raw)
    logger.info(
        "Loaded vocabulary from %s with %s brands, %s stop words, %s GPU suffixes",
        file_path,
        len(vocabulary.brands),
        len(vocabulary.stop_words),
        len(vocabulary.gpu_suffixes),
    )
    return vocabulary
