"""Shared fixtures: an in-memory shop served through ``httpx.MockTransport``."""
from __future__ import annotations

import re
from typing import Dict, List

import httpx
import pytest

from voicehook.config import Settings
from voicehook.state import build_state

BASE_URL = "http://shop.test/api"


def like(pattern: str, value: str) -> bool:
    """SQL LIKE on the raw stored string: ``%`` is any run of characters."""
    regex = ".*".join(re.escape(part) for part in pattern.split("%"))
    return re.fullmatch(regex, value or "", re.IGNORECASE | re.DOTALL) is not None


class FakeShop:
    """Answers the webservice calls the service makes, from plain lists.

    ``match="substring"`` mimics the shop's LIKE filter; ``match="any_word"``
    mimics a search that returns products matching any word of the query.
    """

    def __init__(self, products: List[dict] | None = None, *, match: str = "substring") -> None:
        self.products: Dict[int, dict] = {int(p["id"]): p for p in products or []}
        self.match = match
        self.stock: Dict[int, int] = {}
        self.orders: List[dict] = []
        self.customers: List[dict] = []
        self.addresses: List[dict] = []
        self.order_carriers: List[dict] = []
        self.carriers: List[dict] = []
        self.messages: List[str] = []
        self.requests: List[httpx.Request] = []
        self.fail_terms: set[str] = set()
        self.fail_resources: set[str] = set()
        self.transport = httpx.MockTransport(self.handle)

    def add_product(self, product_id: int, name: str, price: float = 0.0, **extra) -> None:
        self.products[product_id] = {"id": product_id, "name": name, "price": price, **extra}

    # Introspection helpers

    def name_searches(self) -> List[str]:
        return [r.url.params["filter[name]"] for r in self.requests if "filter[name]" in r.url.params]

    def requests_for(self, resource: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.split("/api/", 1)[1].split("/")[0] == resource]

    # Responses

    @staticmethod
    def _listing(key: str, items: List[dict]) -> httpx.Response:
        return httpx.Response(200, json={key: items} if items else [])

    def _product_payload(self, product: dict) -> dict:
        return {
            "id": product["id"],
            "name": [{"id": "1", "value": product["name"]}, {"id": "2", "value": "other language"}],
            "price": f"{float(product.get('price', 0)):.6f}",
            "description_short": [{"id": "1", "value": product.get("description", "")}],
            "active": product.get("active", "1"),
            "available_for_order": product.get("available_for_order", "1"),
        }

    def _name_matches(self, term: str, name: str) -> bool:
        needle = term.strip("%").lower()
        haystack = name.lower()
        if self.match == "any_word":
            return any(word in haystack for word in needle.split())
        return needle in haystack

    @staticmethod
    def _limit(params: httpx.QueryParams, items: List[dict]) -> List[dict]:
        limit = params.get("limit")
        return items[: int(limit)] if limit else items

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split("/api/", 1)[1]
        resource, _, item = path.partition("/")
        params = request.url.params

        if resource in self.fail_resources:
            return httpx.Response(500, text="internal shop error")
        if request.method == "POST" and resource == "messages":
            self.messages.append(request.content.decode("utf-8"))
            return httpx.Response(201, text="<prestashop><message><id>1</id></message></prestashop>")

        if resource == "products":
            if item:
                product = self.products.get(int(item))
                if product is None:
                    return httpx.Response(404, json={"errors": [{"code": 404}]})
                return self._listing("products", [self._product_payload(product)])
            if "filter[name]" in params:
                term = params["filter[name]"]
                if term.strip("%").lower() in self.fail_terms:
                    return httpx.Response(503, text="search backend unavailable")
                found = [{"id": p["id"]} for p in self.products.values() if self._name_matches(term, p["name"])]
                return self._listing("products", self._limit(params, found))
            if "filter[id]" in params:
                wanted = {int(v) for v in params["filter[id]"].strip("[]").split("|") if v}
                # Deliberately ascending id order, not the requested order.
                found = [self._product_payload(p) for pid, p in sorted(self.products.items()) if pid in wanted]
                return self._listing("products", found)
            return self._listing("products", [self._product_payload(p) for p in self.products.values()])

        if resource == "stock_availables":
            pid = int(params["filter[id_product]"])
            if pid not in self.stock:
                return self._listing("stock_availables", [])
            return self._listing("stock_availables", [{"quantity": str(self.stock[pid])}])

        if resource == "orders":
            orders = list(self.orders)
            if "filter[reference]" in params:
                orders = [o for o in orders if o["reference"] == params["filter[reference]"]]
            if "filter[id_customer]" in params:
                orders = [o for o in orders if str(o["id_customer"]) == str(params["filter[id_customer]"])]
            if params.get("sort") == "[id_DESC]":
                orders.sort(key=lambda o: int(o["id"]), reverse=True)
            elif params.get("sort") == "[date_add_DESC]":
                orders.sort(key=lambda o: o["date_add"], reverse=True)
            return self._listing("orders", self._limit(params, orders))

        if resource == "customers":
            found = [c for c in self.customers if c["email"] == params.get("filter[email]")]
            return self._listing("customers", found)

        if resource == "addresses":
            for field in ("phone", "phone_mobile"):
                key = f"filter[{field}]"
                if key in params:
                    found = [
                        {"id_customer": a["id_customer"], field: a.get(field, "")}
                        for a in self.addresses
                        if like(params[key], a.get(field, ""))
                    ]
                    return self._listing("addresses", self._limit(params, found))
            return self._listing("addresses", [])

        if resource == "order_carriers":
            found = [c for c in self.order_carriers if str(c["id_order"]) == str(params.get("filter[id_order]"))]
            return self._listing("order_carriers", found)

        if resource == "carriers":
            return self._listing("carriers", self.carriers)

        return httpx.Response(404, json={"errors": [{"code": 404}]})


def make_settings(**overrides) -> Settings:
    values = dict(
        prestashop_url=BASE_URL,
        prestashop_b2b_url="",
        prestashop_api_key="TESTKEY",
        shop_url="https://shop.test",
        currency_symbol="€",
        webhook_secret="",
        vocabulary_path="",
        trust_forwarded_for=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def shop() -> FakeShop:
    return FakeShop()


@pytest.fixture
def state(shop: FakeShop):
    return build_state(make_settings(), transport=shop.transport)
