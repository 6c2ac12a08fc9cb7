"""FastAPI application exposing the voice-platform webhooks."""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import settings
from .router import ToolRouter, extract_tool_calls, parse_arguments
from .security import SignatureError, verify_signature
from .state import ServiceState, build_state

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# Force a predictable logging setup even when run under uvicorn, so timing
# and upstream error lines are visible. ``force=True`` replaces uvicorn's
# default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(name).setLevel(LOG_LEVEL)
# httpx logs every request at INFO; upstream.py already logs what matters.
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def client_id(request: Request) -> str:
    if get_service(request).settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded.strip():
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_service(request: Request) -> ServiceState:
    return request.app.state.service


async def enforce_rate_limit(request: Request) -> None:
    decision = get_service(request).rate_limiter.admit(client_id(request))
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many requests",
            headers={
                "Retry-After": str(decision.retry_after_seconds),
                "X-RateLimit-Remaining": str(decision.remaining),
            },
        )


async def enforce_signature(request: Request) -> None:
    service = get_service(request)
    secret = service.settings.webhook_secret
    if not secret:
        return
    body = await request.body()
    header = service.settings.webhook_signature_header
    try:
        verify_signature(body, request.headers.get(header), secret)
    except SignatureError as exc:
        logger.warning("rejected webhook client=%s reason=%s", client_id(request), exc)
        raise HTTPException(status_code=401, detail="Unauthorized") from exc


async def read_json(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc


def create_app(state: ServiceState | None = None, router: ToolRouter | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        service = state or build_state(settings)
        app.state.service = service
        app.state.router = router or ToolRouter(
            timeout_seconds=service.settings.tool_timeout_seconds,
            slow_threshold_ms=service.settings.slow_tool_threshold_ms,
        )
        if not service.settings.webhook_secret:
            logger.warning("WEBHOOK_SECRET is not set; webhook signatures are not verified")
        try:
            yield
        finally:
            if state is None:
                await service.aclose()

    app = FastAPI(title="Voice Commerce Webhook", lifespan=lifespan)
    guards = [Depends(enforce_rate_limit), Depends(enforce_signature)]

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health")
    async def health(request: Request) -> dict:
        return {"status": "ok", "caches": get_service(request).cache_stats()}

    @app.post("/webhook", dependencies=guards)
    async def webhook(request: Request) -> dict:
        body = await read_json(request)
        calls = extract_tool_calls(body)
        if not calls:
            return {"ok": True}
        response = await request.app.state.router.dispatch_all(get_service(request), calls)
        return response.model_dump()

    @app.post("/tools/{tool_name}", dependencies=guards)
    async def tool(tool_name: str, request: Request) -> dict:
        body = await read_json(request)
        if isinstance(body, dict) and "args" in body:
            arguments = parse_arguments(body.get("args"))
        else:
            arguments = body if isinstance(body, dict) else {}
        return await request.app.state.router.dispatch(get_service(request), tool_name, arguments)

    return app


app = create_app()
