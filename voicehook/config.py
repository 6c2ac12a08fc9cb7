"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    prestashop_url: str = _get_env("PRESTASHOP_URL", "http://localhost/api")
    # Stock reads go to the B2B shop when it is configured.
    prestashop_b2b_url: str = _get_env("PRESTASHOP_B2B_URL", "")
    prestashop_api_key: str = _get_env("PRESTASHOP_API_KEY", "")
    prestashop_language_id: int = int(_get_env("PRESTASHOP_LANGUAGE_ID", "1"))
    shop_url: str = _get_env("SHOP_URL", "http://localhost")
    currency_symbol: str = _get_env("CURRENCY_SYMBOL", "€")
    webhook_secret: str = _get_env("WEBHOOK_SECRET", "")
    webhook_signature_header: str = _get_env("WEBHOOK_SIGNATURE_HEADER", "x-webhook-signature")
    upstream_timeout_seconds: float = float(_get_env("UPSTREAM_TIMEOUT_SECONDS", "5"))
    tool_timeout_seconds: float = float(_get_env("TOOL_TIMEOUT_SECONDS", "15"))
    slow_tool_threshold_ms: float = float(_get_env("SLOW_TOOL_THRESHOLD_MS", "1500"))
    rate_limit_requests: int = int(_get_env("RATE_LIMIT_REQUESTS", "100"))
    rate_limit_window_ms: int = int(_get_env("RATE_LIMIT_WINDOW_MS", "60000"))
    # Only honour X-Forwarded-For behind a proxy that overwrites it.
    trust_forwarded_for: bool = _get_env("TRUST_FORWARDED_FOR", "false").lower() in ("1", "true", "yes")
    search_cache_ttl_seconds: float = float(_get_env("SEARCH_CACHE_TTL_SECONDS", "30"))
    search_cache_max_entries: int = int(_get_env("SEARCH_CACHE_MAX_ENTRIES", "200"))
    product_cache_ttl_seconds: float = float(_get_env("PRODUCT_CACHE_TTL_SECONDS", "300"))
    product_cache_max_entries: int = int(_get_env("PRODUCT_CACHE_MAX_ENTRIES", "100"))
    carrier_cache_ttl_seconds: float = float(_get_env("CARRIER_CACHE_TTL_SECONDS", "3600"))
    search_variation_limit: int = int(_get_env("SEARCH_VARIATION_LIMIT", "20"))
    vocabulary_path: str = _get_env("VOCABULARY_PATH", "")
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
