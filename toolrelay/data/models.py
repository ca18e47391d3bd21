# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Audit record models.

Write-once snapshots of one request lifecycle:
- RequestRecord: what the caller sent
- ResponseRecord: what the gateway answered (or the error)
- TokenUsageRecord: summed usage and cost
- ToolCallRecord: one per executed tool call

Serialized payloads (messages, tools, arguments) are stored as JSON text.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from ..core.async_base import utcnow


@dataclass(frozen=True)
class RequestRecord:
    id: str
    model: str
    messages: str
    stream: bool = False
    user_id: str | None = None
    tools: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResponseRecord:
    id: str
    request_id: str
    content: str
    response_time_ms: int
    tool_calls: str | None = None
    finish_reason: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TokenUsageRecord:
    request_id: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: Decimal = Decimal(0)
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cost"] = str(self.cost)
        return data


@dataclass(frozen=True)
class ToolCallRecord:
    request_id: str
    tool_id: str
    tool_name: str
    arguments: str
    success: bool
    execution_time_ms: int
    result: str | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "RequestRecord",
    "ResponseRecord",
    "TokenUsageRecord",
    "ToolCallRecord",
]
