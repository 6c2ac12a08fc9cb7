"""Tool handlers invoked by the voice assistant.

Each handler takes the shared :class:`~voicehook.state.ServiceState` and the
tool arguments, and returns a small JSON-serializable dict. "Nothing found"
and invalid input are ordinary ``{"success": False, "message": ...}`` results;
upstream failures are logged and turned into an apologetic message.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .search_service import ProductSearchService, SearchFailure, get_product_detail
from .speech import format_price, make_speech_friendly, shorten_for_listing
from .state import ServiceState
from .upstream import UpstreamError
from .utils import (
    MIN_PHONE_DIGITS,
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
    strip_html,
)

logger = logging.getLogger(__name__)

ToolResult = Dict[str, Any]

ORDER_STATES: Dict[int, str] = {
    1: "awaiting check payment",
    2: "payment accepted",
    3: "being processed",
    4: "shipped",
    5: "delivered",
    6: "cancelled",
    7: "refunded",
    8: "payment error",
    9: "being prepared",
    10: "awaiting bank transfer",
    11: "payment accepted",
    12: "on backorder",
    13: "awaiting COD validation",
    14: "delivered and paid",
    15: "invoice sent",
    17: "ready for pickup",
    19: "partially refunded",
    20: "awaiting payment capture",
    21: "awaiting SEPA payment",
}
MAX_ORDER_ITEMS = 5
MAX_ORDER_HISTORY = 10
PHONE_CANDIDATE_LIMIT = 20
PRODUCT_INFO_FIELDS = ("id", "name", "description_short", "price", "active", "available_for_order")
TICKET_SIGNATURE = "[Created via voice agent]"
SUPPORT_FALLBACK_MESSAGE = (
    "I was unable to create the support ticket automatically. "
    "Please email our support team or call during business hours."
)


def _failure(message: str) -> ToolResult:
    logger.debug("tool declined message=%r", message)
    return {"success": False, "message": message}


def _text_arg(args: Dict[str, Any], name: str) -> str:
    value = args.get(name)
    return str(value).strip() if value is not None else ""


# Orders


async def _latest_order_for_customer(state: ServiceState, customer_id: Any) -> Optional[Dict[str, Any]]:
    orders = await state.client.list_resource(
        "orders",
        filters={"id_customer": customer_id},
        display="full",
        sort="[id_DESC]",
        limit=1,
    )
    return orders[0] if orders else None


async def _customer_id_by_phone(state: ServiceState, digits: str) -> Optional[Any]:
    # Numbers are stored as typed ("+357 99-123 456"): match the digits loosely
    # upstream, then compare digit strings here. Landline and mobile are
    # searched at once.
    pattern = phone_like_pattern(digits)
    fields = ("phone", "phone_mobile")
    results = await asyncio.gather(
        *(
            state.client.list_resource(
                "addresses",
                filters={field: pattern},
                display=("id_customer", field),
                limit=PHONE_CANDIDATE_LIMIT,
            )
            for field in fields
        )
    )
    for field, addresses in zip(fields, results):
        for address in addresses:
            customer_id = address.get("id_customer")
            if customer_id and str(customer_id) != "0" and phones_match(address.get(field), digits):
                return customer_id
    return None


async def _order_items(state: ServiceState, order: Dict[str, Any]) -> List[str]:
    rows = (order.get("associations") or {}).get("order_rows") or []
    if isinstance(rows, dict):
        rows = [rows]
    items: List[str] = []
    for row in rows[:MAX_ORDER_ITEMS]:
        name = row.get("product_name")
        if not name:
            product_id = parse_positive_int(row.get("product_id"))
            detail = await get_product_detail(state, product_id) if product_id else None
            name = detail.name if detail else None
        if not name:
            continue
        quantity = parse_positive_int(row.get("product_quantity")) or 1
        short = shorten_for_listing(name)
        items.append(f"{quantity}x {short}" if quantity > 1 else short)
    return items


async def get_order_status(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    reference = _text_arg(args, "reference").upper()
    email = _text_arg(args, "email")
    phone = _text_arg(args, "phone")

    try:
        if reference:
            if not is_valid_order_reference(reference):
                return _failure("That order reference doesn't look right. References are nine letters or digits.")
            orders = await state.client.list_resource("orders", filters={"reference": reference}, display="full")
            if not orders:
                return _failure(f"No order found with reference {reference}")
            order = orders[0]
        elif email:
            if not is_valid_email(email):
                return _failure("That email address doesn't look right. Could you spell it again?")
            customers = await state.client.list_resource("customers", filters={"email": email}, display=("id",))
            if not customers:
                return _failure(f"No customer found with email {email}")
            order = await _latest_order_for_customer(state, customers[0].get("id"))
            if order is None:
                return _failure("No orders found for this customer")
        elif phone:
            digits = normalize_phone(phone)
            if len(digits) < MIN_PHONE_DIGITS:
                return _failure("That phone number seems too short. Could you repeat it?")
            customer_id = await _customer_id_by_phone(state, digits)
            if customer_id is None:
                return _failure("No customer found with that phone number")
            order = await _latest_order_for_customer(state, customer_id)
            if order is None:
                return _failure("No orders found for this customer")
        else:
            return _failure("Please provide an order reference number, email address or phone number")

        items = await _order_items(state, order)
    except UpstreamError as exc:
        logger.error("getOrderStatus upstream failure: %s", exc)
        return _failure("Unable to retrieve order information. Please try again.")

    state_id = parse_positive_int(order.get("current_state"))
    result: ToolResult = {
        "success": True,
        "reference": order.get("reference"),
        "status": ORDER_STATES.get(state_id, "unknown") if state_id else "unknown",
        "total": format_price(order.get("total_paid"), state.settings.currency_symbol),
        "date": format_order_date(order.get("date_add")),
        "payment": order.get("payment"),
    }
    if items:
        result["items"] = items
        result["item_count"] = len(items)
    return result


async def lookup_order(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    """One order by reference, or the recent order history of a customer."""
    reference = _text_arg(args, "order_reference")
    email = _text_arg(args, "customer_email")

    if reference:
        return await get_order_status(state, {"reference": reference})
    if not email:
        return _failure("Please provide either an order reference or customer email")
    if not is_valid_email(email):
        return _failure("That email address doesn't look right. Could you spell it again?")

    try:
        customers = await state.client.list_resource(
            "customers",
            filters={"email": email},
            display=("id", "firstname", "lastname"),
        )
        if not customers:
            return _failure(f"No customer found with email {email}")
        customer = customers[0]
        orders = await state.client.list_resource(
            "orders",
            filters={"id_customer": customer.get("id")},
            display=("id", "reference", "total_paid", "date_add"),
            sort="[date_add_DESC]",
            limit=MAX_ORDER_HISTORY,
        )
    except UpstreamError as exc:
        logger.error("lookupOrder upstream failure: %s", exc)
        return _failure("Unable to look up orders. Please try again.")

    if not orders:
        return _failure(f"No orders found for {email}")
    name = " ".join(part for part in (customer.get("firstname"), customer.get("lastname")) if part)
    return {
        "success": True,
        "customer_name": name,
        "orders": [
            {
                "id": parse_positive_int(order.get("id")),
                "reference": order.get("reference"),
                "total": format_price(order.get("total_paid"), state.settings.currency_symbol),
                "date": format_order_date(order.get("date_add")),
            }
            for order in orders
        ],
        "order_count": len(orders),
    }


# Products


async def check_product_stock(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    raw_id = args.get("product_id")
    product_name = _text_arg(args, "product_name")

    try:
        if raw_id not in (None, ""):
            product_id = parse_positive_int(raw_id)
            if product_id is None:
                return _failure("The product number should be a positive whole number.")
        elif product_name:
            term = sanitize_search_query(product_name)
            ids = await state.client.search_product_ids(term, 1) if term else []
            if not ids:
                return _failure(f'No product found matching "{product_name}"')
            product_id = ids[0]
        else:
            return _failure("Please tell me the product name or product number")

        detail = await get_product_detail(state, product_id)
        if detail is None:
            return _failure(f"Product {product_id} not found")
        quantity = await state.client.get_stock_quantity(product_id)
    except UpstreamError as exc:
        logger.error("checkProductStock upstream failure: %s", exc)
        return _failure("Unable to check product availability. Please try again.")

    if quantity is None:
        return _failure("Unable to check stock for this product")
    return {
        "success": True,
        "product_id": product_id,
        "name": make_speech_friendly(detail.name),
        "price": detail.price,
        "quantity": quantity,
        "in_stock": quantity > 0,
        "message": (
            f"Yes, we have {quantity} units in stock"
            if quantity > 0
            else "Sorry, this product is currently out of stock"
        ),
    }


async def search_products(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    query = _text_arg(args, "query")
    try:
        products = await ProductSearchService(state).search(query, args.get("limit"))
    except SearchFailure as exc:
        return _failure(exc.message)
    except UpstreamError as exc:
        logger.error("searchProducts upstream failure: %s", exc)
        return _failure("Unable to search products. Please try again.")
    return {
        "success": True,
        "count": len(products),
        "products": [product.model_dump() for product in products],
        "message": f"Found {len(products)} product{'s' if len(products) != 1 else ''}",
    }


async def get_product_info(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    product_id = parse_positive_int(args.get("product_id"))
    if product_id is None:
        return _failure("The product number should be a positive whole number.")

    try:
        product = await state.client.get_product(product_id, PRODUCT_INFO_FIELDS)
        if product is None:
            return _failure(f"Product {product_id} not found")
        quantity = await state.client.get_stock_quantity(product_id)
    except UpstreamError as exc:
        logger.error("getProductInfo upstream failure: %s", exc)
        return _failure("Unable to get product information. Please try again.")

    language_id = state.settings.prestashop_language_id
    name = localized_value(product.get("name"), language_id) or "Unknown product"
    quantity = quantity or 0
    return {
        "success": True,
        "product": {
            "id": product_id,
            "name": make_speech_friendly(name),
            "description": strip_html(localized_value(product.get("description_short"), language_id)),
            "price": format_price(product.get("price"), state.settings.currency_symbol),
            "in_stock": quantity > 0,
            "quantity_available": quantity,
            "active": str(product.get("active")) == "1",
            "available_for_order": str(product.get("available_for_order")) == "1",
        },
    }


# Shipping


async def get_tracking_info(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    reference = _text_arg(args, "reference").upper()
    raw_order_id = args.get("order_id")

    try:
        if raw_order_id not in (None, ""):
            order_id = parse_positive_int(raw_order_id)
            if order_id is None:
                return _failure("The order number should be a positive whole number.")
        elif reference:
            if not is_valid_order_reference(reference):
                return _failure("That order reference doesn't look right. References are nine letters or digits.")
            orders = await state.client.list_resource("orders", filters={"reference": reference}, display=("id",))
            if not orders:
                return _failure(f"No order found with reference {reference}")
            order_id = orders[0].get("id")
        else:
            return _failure("Please provide an order reference number")

        links = await state.client.list_resource(
            "order_carriers",
            filters={"id_order": order_id},
            display=("id_carrier", "tracking_number"),
        )
        if not links:
            return _failure("No shipping information available yet for this order")
        link = links[0]
        carrier_id = parse_positive_int(link.get("id_carrier"))
        carrier = (
            await state.carrier_cache.lookup(carrier_id, state.client.list_carriers)
            if carrier_id
            else state.carrier_cache.default_name
        )
    except UpstreamError as exc:
        logger.error("getTrackingInfo upstream failure: %s", exc)
        return _failure("Unable to retrieve tracking information. Please try again.")

    tracking_number = (link.get("tracking_number") or "").strip()
    return {
        "success": True,
        "carrier": carrier,
        "tracking_number": tracking_number or "Not yet assigned",
        "has_tracking": bool(tracking_number),
        "message": (
            f"Your order is being shipped via {carrier}. Tracking number: {tracking_number}"
            if tracking_number
            else f"Your order is being prepared for shipping via {carrier}. Tracking will be available soon."
        ),
    }


# Support


def build_message_xml(message: str, order_id: int | None = None, customer_id: Any = None) -> str:
    customer = f"\n    <id_customer>{customer_id}</id_customer>" if customer_id else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<prestashop>\n"
        "  <message>\n"
        f"    <id_order>{order_id or ''}</id_order>{customer}\n"
        f"    <message><![CDATA[{escape_cdata(message)}]]></message>\n"
        "    <private>0</private>\n"
        "  </message>\n"
        "</prestashop>"
    )


async def create_support_ticket(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    message = _text_arg(args, "message")
    email = _text_arg(args, "customer_email")
    raw_order_id = args.get("order_id")

    if not message:
        return _failure("Please tell me briefly what the problem is so I can pass it on.")
    if email and not is_valid_email(email):
        return _failure("That email address doesn't look right. Could you spell it again?")
    order_id = None
    if raw_order_id not in (None, ""):
        order_id = parse_positive_int(raw_order_id)
        if order_id is None:
            return _failure("The order number should be a positive whole number.")

    body = message
    if email:
        body = f"{body}\n\nCustomer email: {email}"
    body = f"{body}\n\n{TICKET_SIGNATURE}"

    try:
        customer_id = None
        if email:
            customers = await state.client.list_resource("customers", filters={"email": email}, display=("id",))
            customer_id = customers[0].get("id") if customers else None
        await state.client.create_message(build_message_xml(body, order_id, customer_id))
    except UpstreamError as exc:
        logger.error("createSupportTicket upstream failure: %s", exc)
        return _failure(SUPPORT_FALLBACK_MESSAGE)

    logger.info("support ticket created order_id=%s customer_id=%s", order_id, customer_id)
    return {
        "success": True,
        "message": "I have created a support ticket for you. Our team will follow up within 24 hours.",
    }


async def verify_customer(state: ServiceState, args: Dict[str, Any]) -> ToolResult:
    """Confirm an account exists for the email the caller gave."""
    email = _text_arg(args, "email")
    if not is_valid_email(email):
        return _failure("That email address doesn't look right. Could you spell it again?")

    try:
        customers = await state.client.list_resource(
            "customers",
            filters={"email": email},
            display=("id", "firstname", "lastname", "email"),
        )
    except UpstreamError as exc:
        logger.error("verifyCustomer upstream failure: %s", exc)
        return _failure("Unable to verify the account right now. Please try again.")

    if not customers:
        return {"success": False, "found": False, "message": f"No account found with email {email}"}
    customer = customers[0]
    return {
        "success": True,
        "found": True,
        "customer": {
            "first_name": customer.get("firstname"),
            "last_name": customer.get("lastname"),
            "email": customer.get("email"),
        },
    }
