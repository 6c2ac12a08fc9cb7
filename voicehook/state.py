"""Per-process state shared by every request handler."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

import httpx

from .cache import CacheBackend, CarrierNameCache, InMemoryCache
from .config import Settings
from .rate_limit import SlidingWindowRateLimiter
from .upstream import PrestaShopClient
from .vocabulary import SearchVocabulary, load_vocabulary

logger = logging.getLogger(__name__)


@dataclass
class ProductDetail:
    name: str
    price: str


@dataclass
class ServiceState:
    settings: Settings
    vocabulary: SearchVocabulary
    client: PrestaShopClient
    search_cache: CacheBackend[str, List[int]]
    product_cache: CacheBackend[int, ProductDetail]
    carrier_cache: CarrierNameCache
    rate_limiter: SlidingWindowRateLimiter

    def product_url(self, product_id: int) -> str:
        return f"{self.settings.shop_url.rstrip('/')}/index.php?id_product={product_id}&controller=product"

    def cache_stats(self) -> Dict[str, int]:
        return {
            "search_cache": len(self.search_cache),
            "product_cache": len(self.product_cache),
            "carrier_cache": len(self.carrier_cache),
            "rate_limited_clients": len(self.rate_limiter),
        }

    async def aclose(self) -> None:
        await self.client.aclose()


def build_state(
    config: Settings,
    *,
    vocabulary: SearchVocabulary | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ServiceState:
    """Construct caches, limiter and client once per process."""
    vocab = vocabulary or load_vocabulary(config.vocabulary_path or None)
    state = ServiceState(
        settings=config,
        vocabulary=vocab,
        client=PrestaShopClient.from_settings(config, transport=transport),
        search_cache=InMemoryCache(
            config.search_cache_ttl_seconds,
            config.search_cache_max_entries,
            name="search_cache",
        ),
        product_cache=InMemoryCache(
            config.product_cache_ttl_seconds,
            config.product_cache_max_entries,
            name="product_cache",
        ),
        carrier_cache=CarrierNameCache(config.carrier_cache_ttl_seconds),
        rate_limiter=SlidingWindowRateLimiter(config.rate_limit_requests, config.rate_limit_window_ms),
    )
    logger.info(
        "Service state ready upstream=%s b2b=%s brands=%s",
        state.client.base_url,
        state.client.b2b_url,
        len(vocab.brands),
    )
    return state
