# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Audit store contract and the in-process implementation.

Append-only and keyed by request id. Concurrent requests only ever
append, so writers never interfere with each other.
"""

import dataclasses
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any

from .models import RequestRecord, ResponseRecord, TokenUsageRecord, ToolCallRecord

logger = logging.getLogger(__name__)


class AuditStore(ABC):
    """Persistence for audit records."""

    async def initialize(self) -> None:
        """Prepare the backing storage."""
        return None

    async def close(self) -> None:
        """Release the backing storage."""
        return None

    # Writes

    @abstractmethod
    async def add_request(self, record: RequestRecord) -> RequestRecord:
        pass

    @abstractmethod
    async def add_response(self, record: ResponseRecord) -> ResponseRecord:
        pass

    @abstractmethod
    async def add_token_usage(self, record: TokenUsageRecord) -> TokenUsageRecord:
        pass

    @abstractmethod
    async def add_tool_call(self, record: ToolCallRecord) -> ToolCallRecord:
        pass

    # Reads

    @abstractmethod
    async def find_requests(self, **where: Any) -> list[RequestRecord]:
        pass

    @abstractmethod
    async def find_responses(self, **where: Any) -> list[ResponseRecord]:
        pass

    @abstractmethod
    async def find_token_usage(self, **where: Any) -> list[TokenUsageRecord]:
        pass

    @abstractmethod
    async def find_tool_calls(self, **where: Any) -> list[ToolCallRecord]:
        pass

    async def get_request(self, request_id: str) -> RequestRecord | None:
        found = await self.find_requests(id=request_id)
        return found[0] if found else None

    async def get_response(self, response_id: str) -> ResponseRecord | None:
        found = await self.find_responses(id=response_id)
        return found[0] if found else None


def matches(record: Any, where: dict[str, Any]) -> bool:
    """
    Field equality filter.

    `created_after` / `created_before` bound `created_at` instead.
    """
    for key, value in where.items():
        if key == "created_after":
            if record.created_at < value:
                return False
        elif key == "created_before":
            if record.created_at > value:
                return False
        elif getattr(record, key) != value:
            return False
    return True


class InMemoryAuditStore(AuditStore):
    """
    Audit store held in process memory.

    Per-kind lists plus a request-id index. Ids of usage and tool-call
    records auto-increment from 1.
    """

    def __init__(self):
        self._requests: list[RequestRecord] = []
        self._responses: list[ResponseRecord] = []
        self._usage: list[TokenUsageRecord] = []
        self._tool_calls: list[ToolCallRecord] = []
        self._by_request: dict[str, list[Any]] = {}
        self._usage_ids = itertools.count(1)
        self._tool_call_ids = itertools.count(1)

    def _index(self, request_id: str, record: Any) -> None:
        self._by_request.setdefault(request_id, []).append(record)

    async def add_request(self, record: RequestRecord) -> RequestRecord:
        self._requests.append(record)
        self._index(record.id, record)
        return record

    async def add_response(self, record: ResponseRecord) -> ResponseRecord:
        self._responses.append(record)
        self._index(record.request_id, record)
        return record

    async def add_token_usage(self, record: TokenUsageRecord) -> TokenUsageRecord:
        record = dataclasses.replace(record, id=next(self._usage_ids))
        self._usage.append(record)
        self._index(record.request_id, record)
        return record

    async def add_tool_call(self, record: ToolCallRecord) -> ToolCallRecord:
        record = dataclasses.replace(record, id=next(self._tool_call_ids))
        self._tool_calls.append(record)
        self._index(record.request_id, record)
        return record

    async def find_requests(self, **where: Any) -> list[RequestRecord]:
        return [r for r in self._requests if matches(r, where)]

    async def find_responses(self, **where: Any) -> list[ResponseRecord]:
        return [r for r in self._responses if matches(r, where)]

    async def find_token_usage(self, **where: Any) -> list[TokenUsageRecord]:
        return [r for r in self._usage if matches(r, where)]

    async def find_tool_calls(self, **where: Any) -> list[ToolCallRecord]:
        return [r for r in self._tool_calls if matches(r, where)]

    def records_for(self, request_id: str) -> list[Any]:
        """Every record written for one request, in write order."""
        return list(self._by_request.get(request_id, []))

    def count(self) -> dict[str, int]:
        return {
            "requests": len(self._requests),
            "responses": len(self._responses),
            "token_usage": len(self._usage),
            "tool_calls": len(self._tool_calls),
        }


def create_audit_store(url: str, echo: bool = False) -> AuditStore:
    """memory:// selects the in-process store; anything else is a SQLAlchemy URL."""
    if url.startswith("memory"):
        logger.info("Using in-memory audit store")
        return InMemoryAuditStore()

    from .sql import SQLAlchemyAuditStore

    return SQLAlchemyAuditStore(url, echo=echo)


__all__ = [
    "AuditStore",
    "InMemoryAuditStore",
    "create_audit_store",
    "matches",
]
