"""Pydantic models for webhook envelopes and tool payloads."""
from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    id: str | None = None
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    toolCallId: str | None = None
    result: str


class ToolCallResponse(BaseModel):
    results: list[ToolCallResult]


class ProductSummary(BaseModel):
    id: int
    name: str
    price: str
    url: str
    score: int | None = Field(default=None, exclude=True)
