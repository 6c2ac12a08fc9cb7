"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from time import perf_counter
from typing import Iterable

from voicehook.config import settings
from voicehook.normalizer import normalize_query
from voicehook.search_service import ProductSearchService, SearchFailure
from voicehook.state import build_state
from voicehook.upstream import UpstreamError

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"
# Anything slower than this is noticeable as dead air on a call.
LATENCY_BUDGET_MS = 800


async def perform_query(query: str, limit: int) -> dict:
    state = build_state(settings)
    variations = normalize_query(query, state.vocabulary).variations
    started = perf_counter()
    try:
        products = await ProductSearchService(state).search(query, limit)
        payload = {"results": [p.model_dump() | {"score": p.score} for p in products], "error": None}
    except (SearchFailure, UpstreamError) as exc:
        payload = {"results": [], "error": getattr(exc, "message", str(exc))}
    finally:
        await state.aclose()
    payload["eta_ms"] = (perf_counter() - started) * 1000
    payload["variations"] = variations
    return payload


def pretty_print_response(query: str, payload: dict, show_variations: bool = False) -> None:
    results = payload.get("results", [])
    eta = float(payload.get("eta_ms", 0))
    color = GREEN if eta < LATENCY_BUDGET_MS else RED
    print(f"Query: {query} | results: {len(results)} | ETA: {color}{eta:.1f} ms{RESET}")
    if show_variations:
        for variation in payload.get("variations", []):
            print(f"  ~ {variation}")
    if payload.get("error"):
        print(f"  {RED}{payload['error']}{RESET}")
    for idx, item in enumerate(results, start=1):
        score = item.get("score")
        score_repr = str(score) if score is not None else "-"
        print(f"  {idx:02d}. score={score_repr} | {item.get('id')} | {item.get('price')} | {item.get('name')}")


def interactive_shell(limit: int, show_variations: bool) -> None:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        pretty_print_response(query, asyncio.run(perform_query(query, limit)), show_variations)


def batch_mode(file_path: Path, limit: int, show_variations: bool) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            pretty_print_response(query, asyncio.run(perform_query(query, limit)), show_variations)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the product search")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--limit", type=int, default=5, help="Maximum number of products to return")
    parser.add_argument("--variations", action="store_true", help="Print the generated search variations")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.batch:
        batch_mode(args.batch, args.limit, args.variations)
        return 0
    if args.query:
        pretty_print_response(args.query, asyncio.run(perform_query(args.query, args.limit)), args.variations)
        return 0
    interactive_shell(args.limit, args.variations)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
