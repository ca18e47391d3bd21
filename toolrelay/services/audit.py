# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Audit Recorder

Persists the checkpoints of one request lifecycle:
1. request entry: the request record
2. after each tool batch: one tool-call record per request/result pair
3. DONE: the response record and the token usage record with cost
4. any failure: a response record with finish_reason "error"
5. client disconnect mid-stream: a response record with finish_reason "cancelled"

Every checkpoint is best-effort. A store failure is logged and never
changes the outcome of the request.
"""

import json
import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from ..core.async_orchestrator import LoopResult
from ..core.conversation import ToolCallRequest, ToolCallResult
from ..core.pricing import calculate_cost
from ..data.models import RequestRecord, ResponseRecord, TokenUsageRecord, ToolCallRecord
from ..data.store import AuditStore
from ..observability.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class AuditRecorder:
    """Writes audit records for requests through an AuditStore."""

    def __init__(self, store: AuditStore, metrics: MetricsRegistry | None = None):
        self.store = store
        self.metrics = metrics

    async def record_request(
        self,
        request_id: str,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        stream: bool = False,
        user_id: str | None = None,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> RequestRecord | None:
        record = RequestRecord(
            id=request_id,
            model=model,
            messages=_dumps(list(messages)),
            stream=stream,
            user_id=user_id,
            tools=_dumps(list(tools)) if tools is not None else None,
        )
        try:
            return await self.store.add_request(record)
        except Exception as e:
            logger.error(f"Failed to record request {request_id}: {e}", exc_info=True)
            return None

    async def record_tool_calls(
        self,
        request_id: str,
        batch: Sequence[ToolCallRequest],
        results: Sequence[ToolCallResult],
        duration_ms: int,
    ) -> list[ToolCallRecord]:
        """One record per request; duration is the wall-clock of the whole batch."""
        by_id = {r.tool_call_id: r for r in results}
        written = []
        for tc in batch:
            result = by_id.get(tc.id)
            record = ToolCallRecord(
                request_id=request_id,
                tool_id=tc.id,
                tool_name=tc.name,
                arguments=tc.arguments,
                result=result.content_text if result else None,
                success=result.success if result else False,
                execution_time_ms=duration_ms,
            )
            try:
                written.append(await self.store.add_tool_call(record))
            except Exception as e:
                logger.error(f"Failed to record tool call {tc.id} of {request_id}: {e}")
        return written

    async def record_success(
        self,
        request_id: str,
        model: str,
        result: LoopResult,
        body: Mapping[str, Any],
        response_time_ms: int,
    ) -> TokenUsageRecord | None:
        """Write the response record and the usage record with its cost."""
        usage = result.usage
        cost = calculate_cost(model, usage.prompt_tokens, usage.completion_tokens)

        response = ResponseRecord(
            id=str(uuid.uuid4()),
            request_id=request_id,
            content=_dumps(dict(body)),
            tool_calls=_dumps(result.tools_used) if result.tools_used else None,
            finish_reason=str(result.finish_reason),
            response_time_ms=response_time_ms,
        )
        usage_record = TokenUsageRecord(
            request_id=request_id,
            model=model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            cost=cost,
        )

        if self.metrics:
            self.metrics.record_tokens(model, usage.prompt_tokens, usage.completion_tokens)

        try:
            await self.store.add_response(response)
            stored = await self.store.add_token_usage(usage_record)
        except Exception as e:
            logger.error(f"Failed to record response for {request_id}: {e}", exc_info=True)
            return None

        logger.info(
            f"Request {request_id} completed: {usage.total_tokens} tokens, "
            f"{len(result.tools_used)} tool calls, cost ${cost:.6f}"
        )
        return stored

    async def record_failure(
        self,
        request_id: str,
        error: BaseException,
        response_time_ms: int,
    ) -> ResponseRecord | None:
        record = ResponseRecord(
            id=str(uuid.uuid4()),
            request_id=request_id,
            content=_dumps({"error": getattr(error, "message", None) or str(error)}),
            finish_reason="error",
            error=f"{type(error).__name__}: {error}",
            response_time_ms=response_time_ms,
        )
        try:
            return await self.store.add_response(record)
        except Exception as e:
            logger.error(f"Failed to record error response for {request_id}: {e}")
            return None

    async def record_cancelled(
        self, request_id: str, response_time_ms: int
    ) -> ResponseRecord | None:
        """Checkpoint for a stream the client abandoned before DONE."""
        record = ResponseRecord(
            id=str(uuid.uuid4()),
            request_id=request_id,
            content=_dumps({"error": "Client disconnected"}),
            finish_reason="cancelled",
            response_time_ms=response_time_ms,
        )
        try:
            return await self.store.add_response(record)
        except Exception as e:
            logger.error(f"Failed to record cancelled response for {request_id}: {e}")
            return None


__all__ = ["AuditRecorder"]
