"""PrestaShop webservice client.

Every outbound call goes through :class:`PrestaShopClient`: Basic auth with the
API key as username, ``output_format=JSON``, an explicit timeout, and field
selection via ``display=[...]`` so the shop never serializes full resources.
No call is retried.
"""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 500


class UpstreamError(Exception):
    """A call to the shop API failed (non-2xx, network error, bad payload)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamTimeout(UpstreamError):
    """A call to the shop API did not finish within the configured timeout."""


def display_fields(fields: Iterable[str]) -> str:
    return "[" + ",".join(fields) + "]"


def id_filter(ids: Iterable[int]) -> str:
    return "[" + "|".join(str(value) for value in ids) + "]"


class PrestaShopClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        b2b_url: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.b2b_url = (b2b_url or base_url).rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            auth=httpx.BasicAuth(api_key, ""),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Settings, transport: httpx.AsyncBaseTransport | None = None) -> "PrestaShopClient":
        return cls(
            config.prestashop_url,
            config.prestashop_api_key,
            b2b_url=config.prestashop_b2b_url or None,
            timeout=config.upstream_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, resource: str, b2b: bool) -> str:
        base = self.b2b_url if b2b else self.base_url
        return f"{base}/{resource.lstrip('/')}"

    async def _send(self, method: str, resource: str, *, b2b: bool = False, **kwargs: Any) -> httpx.Response:
        url = self._url(resource, b2b)
        started = perf_counter()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("upstream timeout method=%s resource=%s after=%.1fs", method, resource, self.timeout)
            raise UpstreamTimeout(f"Upstream timeout after {self.timeout}s", None) from exc
        except httpx.HTTPError as exc:
            logger.error("upstream request failed method=%s resource=%s error=%s", method, resource, exc)
            raise UpstreamError(f"Upstream request failed: {exc.__class__.__name__}") from exc
        elapsed_ms = (perf_counter() - started) * 1000
        if response.status_code >= 400:
            logger.error(
                "upstream error method=%s resource=%s status=%s body=%s",
                method,
                resource,
                response.status_code,
                response.text[:ERROR_BODY_LIMIT],
            )
            raise UpstreamError(f"Upstream error: {response.status_code}", response.status_code)
        logger.debug(
            "upstream method=%s resource=%s status=%s took=%.1fms",
            method,
            resource,
            response.status_code,
            elapsed_ms,
        )
        return response

    async def get_json(
        self,
        resource: str,
        params: Mapping[str, Any] | None = None,
        *,
        b2b: bool = False,
    ) -> Dict[str, Any]:
        query = dict(params or {})
        query["output_format"] = "JSON"
        response = await self._send("GET", resource, b2b=b2b, params=query)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("Upstream returned invalid JSON", response.status_code) from exc
        # Empty collections come back as a bare ``[]``.
        return data if isinstance(data, dict) else {}

    async def list_resource(
        self,
        resource: str,
        *,
        filters: Mapping[str, Any] | None = None,
        display: Iterable[str] | str | None = None,
        sort: str | None = None,
        limit: int | str | None = None,
        b2b: bool = False,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        for name, value in (filters or {}).items():
            params[f"filter[{name}]"] = value
        if display is not None:
            params["display"] = display if isinstance(display, str) else display_fields(display)
        if sort:
            params["sort"] = sort
        if limit is not None:
            params["limit"] = limit
        data = await self.get_json(resource, params, b2b=b2b)
        items = data.get(resource) or []
        if isinstance(items, dict):
            items = [items]
        return list(items)

    async def get_product(self, product_id: int, fields: Iterable[str] = ("id", "name", "price")) -> Optional[Dict[str, Any]]:
        """Fetch one product; ``None`` when the shop has no such id."""
        try:
            data = await self.get_json(f"products/{int(product_id)}", {"display": display_fields(fields)})
        except UpstreamError as exc:
            if exc.status_code == 404:
                return None
            raise
        products = data.get("products")
        if isinstance(products, list) and products:
            return products[0]
        return data.get("product") or None

    async def get_products(self, product_ids: Iterable[int], fields: Iterable[str] = ("id", "name", "price")) -> List[Dict[str, Any]]:
        ids = list(product_ids)
        if not ids:
            return []
        return await self.list_resource(
            "products",
            filters={"id": id_filter(ids)},
            display=fields,
            limit=len(ids),
        )

    async def search_product_ids(self, term: str, limit: int) -> List[int]:
        """Ids of products whose name contains ``term`` (shop-side LIKE)."""
        products = await self.list_resource(
            "products",
            filters={"name": f"%{term}%"},
            display=("id",),
            limit=limit,
        )
        ids: List[int] = []
        for product in products:
            try:
                ids.append(int(product["id"]))
            except (KeyError, TypeError, ValueError):
                continue
        return ids

    async def get_stock_quantity(self, product_id: int) -> Optional[int]:
        stocks = await self.list_resource(
            "stock_availables",
            filters={"id_product": int(product_id), "id_product_attribute": 0},
            display=("quantity",),
            b2b=True,
        )
        if not stocks:
            return None
        try:
            return int(stocks[0].get("quantity", 0))
        except (TypeError, ValueError):
            return 0

    async def list_carriers(self) -> Dict[int, str]:
        carriers = await self.list_resource("carriers", display=("id", "name"))
        names: Dict[int, str] = {}
        for carrier in carriers:
            try:
                names[int(carrier["id"])] = carrier.get("name") or "Standard shipping"
            except (KeyError, TypeError, ValueError):
                continue
        return names

    async def create_message(self, xml: str) -> str:
        response = await self._send(
            "POST",
            "messages",
            content=xml.encode("utf-8"),
            headers={"Content-Type": "application/xml"},
        )
        return response.text
