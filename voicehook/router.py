"""Tool-call dispatch and the voice platform's request/response envelopes."""
from __future__ import annotations

import asyncio
import json
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, List, Mapping

from . import tools
from .models import ToolCall, ToolCallResponse, ToolCallResult
from .state import ServiceState

logger = logging.getLogger(__name__)

ToolHandler = Callable[[ServiceState, Dict[str, Any]], Awaitable[Dict[str, Any]]]

GENERIC_FAILURE_MESSAGE = "Sorry, something went wrong on our side. Please try again."
TIMEOUT_FAILURE_MESSAGE = "Sorry, that is taking longer than expected. Please try again in a moment."

DEFAULT_TOOLS: Dict[str, ToolHandler] = {
    "getOrderStatus": tools.get_order_status,
    "checkProductStock": tools.check_product_stock,
    "getTrackingInfo": tools.get_tracking_info,
    "searchProducts": tools.search_products,
    "createSupportTicket": tools.create_support_ticket,
    "lookupOrder": tools.lookup_order,
    "getProductInfo": tools.get_product_info,
    "verifyCustomer": tools.verify_customer,
    # Per-tool webhook paths use snake_case names.
    "get_order_status": tools.get_order_status,
    "check_product_stock": tools.check_product_stock,
    "get_tracking_info": tools.get_tracking_info,
    "search_products": tools.search_products,
    "create_support_ticket": tools.create_support_ticket,
    "lookup_order": tools.lookup_order,
    "get_product_info": tools.get_product_info,
    "verify_customer": tools.verify_customer,
}


def parse_arguments(raw: Any) -> Dict[str, Any]:
    """Tool arguments arrive either as an object or as a JSON-encoded string."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("tool arguments are not valid JSON: %r", raw[:200])
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def extract_tool_calls(body: Any) -> List[ToolCall]:
    """Pull tool calls out of a webhook body; anything else yields ``[]``."""
    if not isinstance(body, dict):
        return []
    message = body.get("message")
    if not isinstance(message, dict):
        return []
    raw_calls = message.get("toolCalls") or message.get("toolCallList") or []
    calls: List[ToolCall] = []
    for raw in raw_calls:
        if not isinstance(raw, dict):
            continue
        function = raw.get("function") if isinstance(raw.get("function"), dict) else {}
        name = function.get("name") or raw.get("name")
        if not name:
            continue
        arguments = function.get("arguments") if "arguments" in function else raw.get("arguments")
        call_id = raw.get("id")
        calls.append(
            ToolCall(
                id=str(call_id) if call_id is not None else None,
                name=str(name),
                arguments=parse_arguments(arguments),
            )
        )
    return calls


def wrap_results(calls: List[ToolCall], results: List[Dict[str, Any]]) -> ToolCallResponse:
    return ToolCallResponse(
        results=[
            ToolCallResult(toolCallId=call.id, result=json.dumps(result, ensure_ascii=False))
            for call, result in zip(calls, results)
        ]
    )


class ToolRouter:
    """Map tool names to handlers and run them under a uniform policy.

    A handler never takes the call down: exceptions and deadline overruns
    become a generic failure result, since an error mid-call leaves the
    caller listening to silence.
    """

    def __init__(
        self,
        handlers: Mapping[str, ToolHandler] | None = None,
        *,
        timeout_seconds: float = 15.0,
        slow_threshold_ms: float = 1500.0,
    ) -> None:
        self.handlers: Dict[str, ToolHandler] = dict(DEFAULT_TOOLS if handlers is None else handlers)
        self.timeout_seconds = timeout_seconds
        self.slow_threshold_ms = slow_threshold_ms

    async def dispatch(self, state: ServiceState, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        handler = self.handlers.get(name)
        if handler is None:
            logger.warning("unknown tool requested name=%s", name)
            return {"success": False, "message": f"Unknown function: {name}"}

        started = perf_counter()
        try:
            result = await asyncio.wait_for(handler(state, arguments), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("tool timed out name=%s after=%.1fs", name, self.timeout_seconds)
            result = {"success": False, "message": TIMEOUT_FAILURE_MESSAGE}
        except Exception:
            logger.exception("tool failed name=%s", name)
            result = {"success": False, "message": GENERIC_FAILURE_MESSAGE}
        elapsed_ms = (perf_counter() - started) * 1000

        if elapsed_ms > self.slow_threshold_ms:
            logger.warning("slow tool name=%s took=%.2fms threshold=%.0fms", name, elapsed_ms, self.slow_threshold_ms)
        else:
            logger.info("timing: tool=%s total=%.2fms success=%s", name, elapsed_ms, result.get("success"))
        return result

    async def dispatch_all(self, state: ServiceState, calls: List[ToolCall]) -> ToolCallResponse:
        results = [await self.dispatch(state, call.name, call.arguments) for call in calls]
        return wrap_results(calls, results)
