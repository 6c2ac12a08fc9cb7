"""Multi-strategy product search on top of the shop's substring filter.

The shop can only answer "which product names contain this text". One
literal query rarely matches how people talk, so the engine searches several
phrasings produced by :func:`voicehook.normalizer.normalize_query` and ranks
products by how many distinct phrasings matched them.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from time import perf_counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import ProductSummary
from .normalizer import NormalizedQuery, normalize_query
from .speech import format_price, make_speech_friendly, shorten_for_listing
from .state import ProductDetail, ServiceState
from .upstream import UpstreamError
from .utils import localized_value, sanitize_search_query

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
MAX_LIMIT = 10
# Fewer candidates than this after the first phrasing -> try more phrasings.
MIN_CANDIDATES = 5
MIN_CANDIDATES_WITH_BRAND = 10
ADDITIONAL_VARIATIONS = slice(1, 4)
FALLBACK_VARIATIONS = slice(4, 7)
MIN_BRAND_FETCH = 15
PRODUCT_FIELDS = ("id", "name", "price")

EMPTY_QUERY_MESSAGE = "Please tell me which product you are looking for."
NO_TERMS_MESSAGE = "I couldn't pick out a product name from that. Could you describe it differently?"


class SearchFailure(Exception):
    """Search finished without anything to offer; ``message`` is speakable."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class _SearchRun:
    executed: int = 0
    cache_hits: int = 0
    failures: int = 0
    scores: Dict[int, int] = field(default_factory=dict)


def search_cache_key(variation: str) -> str:
    return " ".join(variation.lower().split())


def clamp_limit(limit) -> int:
    try:
        value = int(limit) if limit is not None else DEFAULT_LIMIT
    except (TypeError, ValueError):
        value = DEFAULT_LIMIT
    return max(1, min(value, MAX_LIMIT))


def _speakable_brand(brand: str) -> str:
    return brand.upper() if len(brand) <= 4 else brand.title()


@lru_cache(maxsize=16)
def _accessory_marker_pattern(markers: Tuple[str, ...]) -> re.Pattern[str] | None:
    if not markers:
        return None
    return re.compile(r"\b(?:" + "|".join(re.escape(marker) for marker in markers) + r")\b")


def name_has_brand(name: str, brands: Iterable[str], window: int, markers: Sequence[str] = ()) -> bool:
    """True when a brand term is part of the product's own name.

    Only the first ``window`` characters count, and only the part before the
    first accessory marker ("compatible", "for", ...).
    """
    head = (name or "").lower()[:window]
    pattern = _accessory_marker_pattern(tuple(markers))
    if pattern is not None:
        head = pattern.split(head, maxsplit=1)[0]
    return any(brand in head for brand in brands)


def _product_detail(product: dict, state: ServiceState) -> ProductDetail:
    name = localized_value(product.get("name"), state.settings.prestashop_language_id) or "Unknown product"
    return ProductDetail(name=name, price=format_price(product.get("price"), state.settings.currency_symbol))


async def get_product_detail(state: ServiceState, product_id: int) -> Optional[ProductDetail]:
    """Name and price for one product via the product cache; ``None`` if unknown."""

    async def fetch() -> Optional[ProductDetail]:
        product = await state.client.get_product(product_id, PRODUCT_FIELDS)
        if not product:
            return None
        return _product_detail(product, state)

    return await state.product_cache.get_or_fetch(int(product_id), fetch)


class ProductSearchService:
    def __init__(self, state: ServiceState) -> None:
        self.state = state

    async def search(self, raw_query: str | None, limit=None) -> List[ProductSummary]:
        """Search the catalog for a spoken product description.

        Raises :class:`SearchFailure` when there is nothing to return and
        :class:`~voicehook.upstream.UpstreamError` when the detail fetch fails.
        """
        query = (raw_query or "").strip()
        if not query:
            raise SearchFailure(EMPTY_QUERY_MESSAGE)
        size = clamp_limit(limit)

        if query.isascii() and query.isdigit():
            direct = await self._lookup_by_id(int(query))
            if direct is not None:
                logger.info("search q=%r resolved as product id", query)
                return [direct]

        normalized = normalize_query(query, self.state.vocabulary)
        return await self.search_normalized(normalized, size)

    async def _lookup_by_id(self, product_id: int) -> Optional[ProductSummary]:
        if product_id <= 0:
            return None
        try:
            detail = await get_product_detail(self.state, product_id)
        except UpstreamError as exc:
            logger.info("direct product lookup failed id=%s: %s; falling back to text search", product_id, exc)
            return None
        if detail is None:
            return None
        return ProductSummary(
            id=product_id,
            name=make_speech_friendly(detail.name),
            price=detail.price,
            url=self.state.product_url(product_id),
        )

    async def _run_variation(self, variation: str, run: _SearchRun) -> List[int]:
        key = search_cache_key(variation)
        cached = self.state.search_cache.get(key)
        if cached is not None:
            run.cache_hits += 1
            return cached
        term = sanitize_search_query(variation)
        if not term:
            return []
        run.executed += 1
        try:
            ids = await self.state.client.search_product_ids(term, self.state.settings.search_variation_limit)
        except UpstreamError as exc:
            run.failures += 1
            logger.warning("variation search failed variation=%r: %s", variation, exc)
            return []
        self.state.search_cache.set(key, ids)
        return ids

    async def _run_batch(self, variations: Sequence[str], run: _SearchRun) -> None:
        if not variations:
            return
        results = await asyncio.gather(*(self._run_variation(v, run) for v in variations))
        for ids in results:
            self._accumulate(run.scores, ids)

    @staticmethod
    def _accumulate(scores: Dict[int, int], ids: Iterable[int]) -> None:
        for product_id in dict.fromkeys(ids):
            scores[product_id] = scores.get(product_id, 0) + 1

    async def search_normalized(self, normalized: NormalizedQuery, limit: int) -> List[ProductSummary]:
        variations = normalized.variations
        if not variations:
            raise SearchFailure(NO_TERMS_MESSAGE)

        t0 = perf_counter()
        run = _SearchRun()
        self._accumulate(run.scores, await self._run_variation(variations[0], run))

        threshold = MIN_CANDIDATES_WITH_BRAND if normalized.has_brand else MIN_CANDIDATES
        if len(run.scores) < threshold and len(variations) > 1:
            await self._run_batch(variations[ADDITIONAL_VARIATIONS], run)
        if not run.scores and len(variations) > 4:
            await self._run_batch(variations[FALLBACK_VARIATIONS], run)
        t1 = perf_counter()

        if not run.scores:
            searched = ", ".join(normalized.terms[:3]) or normalized.original
            logger.info(
                "timing: total=%.2fms q=%r results=0 executed=%s cache_hits=%s failures=%s",
                (t1 - t0) * 1000,
                normalized.original,
                run.executed,
                run.cache_hits,
                run.failures,
            )
            raise SearchFailure(f"I couldn't find any products matching {searched}.")

        # sorted() is stable, so equal scores keep first-seen order.
        ranked = sorted(run.scores, key=lambda product_id: -run.scores[product_id])
        fetch_limit = max(limit * 3, MIN_BRAND_FETCH) if normalized.has_brand else limit
        selected = ranked[:fetch_limit]

        products = await self.state.client.get_products(selected, PRODUCT_FIELDS)
        t2 = perf_counter()
        by_id: Dict[int, dict] = {}
        for product in products:
            try:
                by_id[int(product["id"])] = product
            except (KeyError, TypeError, ValueError):
                continue
        details = []
        for product_id in selected:
            if product_id in by_id:
                detail = _product_detail(by_id[product_id], self.state)
                self.state.product_cache.set(product_id, detail)
                details.append((product_id, detail))

        if normalized.has_brand:
            vocabulary = self.state.vocabulary
            own_brand = [
                item
                for item in details
                if name_has_brand(
                    item[1].name,
                    normalized.brands,
                    vocabulary.brand_position_window,
                    vocabulary.accessory_markers,
                )
            ]
            if not own_brand:
                brands = " or ".join(_speakable_brand(brand) for brand in normalized.brands)
                logger.info(
                    "brand filter removed all candidates q=%r brands=%s candidates=%s",
                    normalized.original,
                    normalized.brands,
                    len(details),
                )
                raise SearchFailure(f"I couldn't find any {brands} products matching that.")
            details = own_brand
        details = details[:limit]

        is_list = len(details) > 1
        results = [
            ProductSummary(
                id=product_id,
                name=shorten_for_listing(detail.name) if is_list else make_speech_friendly(detail.name),
                price=detail.price,
                url=self.state.product_url(product_id),
                score=run.scores[product_id],
            )
            for product_id, detail in details
        ]
        t3 = perf_counter()
        logger.info(
            "timing: total=%.2fms variations=%.2fms details=%.2fms post=%.2fms q=%r candidates=%s results=%s "
            "executed=%s cache_hits=%s failures=%s brands=%s",
            (t3 - t0) * 1000,
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
            (t3 - t2) * 1000,
            normalized.original,
            len(run.scores),
            len(results),
            run.executed,
            run.cache_hits,
            run.failures,
            normalized.brands,
        )
        return results
