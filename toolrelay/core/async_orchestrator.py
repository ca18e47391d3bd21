# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Tool-Call Orchestration Loop

Drives one ConversationState through repeated model / tool calls:

    INIT -> AWAIT_MODEL -> HAS_TOOL_CALLS -> INVOKE_TOOLS -> AWAIT_MODEL ...
                        -> NO_TOOL_CALLS  -> DONE

Extra terminal states:
- TOOLS_UNAVAILABLE: invoke() returned nothing for a non-empty batch
- MAX_ITERATIONS: the model still wanted tools after the last allowed call
- CANCELLED: the caller went away; checked after every external call

Strictly sequential: one model call or one tool batch in flight at a time.
Model failures and ToolProviderError propagate; a failing individual tool
is fed back to the model as a failed result.
"""

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from toolrelay_core import InternalError

from ..observability.logging import log_tool_batch
from ..observability.metrics import MetricsRegistry
from .conversation import ConversationState, Message, ToolCallRequest, ToolCallResult, Usage
from .providers_async import AsyncModelProvider, Completion, SamplingParams
from .tools import ToolProvider

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], Awaitable[bool]]


# ============================================================
# LOOP EVENTS
# ============================================================


class FinishReason(StrEnum):
    """Why the loop ended, when it was not the model's own finish reason."""

    STOP = "stop"
    TOOLS_UNAVAILABLE = "tools_unavailable"
    MAX_ITERATIONS = "max_iterations"
    CANCELLED = "cancelled"
    ERROR = "error"


class LoopEventType(StrEnum):
    ITERATION_START = "iteration_start"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_CALLS = "tool_calls"
    TOOL_RESULTS = "tool_results"
    DONE = "done"


@dataclass
class LoopResult:
    """Final outcome of one loop run."""

    final_message: Message | None
    finish_reason: str
    state: ConversationState
    model: str = ""

    @property
    def content(self) -> str:
        """Every non-empty assistant text fragment, in order."""
        return "".join(self.state.assistant_fragments)

    @property
    def final_content(self) -> str:
        """Text of the last assistant turn only."""
        return self.final_message.text if self.final_message else ""

    @property
    def tool_calls(self) -> list[ToolCallRequest]:
        return list(self.state.tool_call_requests)

    @property
    def tools_used(self) -> list[str]:
        return list(self.state.tool_names_used)

    @property
    def usage(self) -> Usage:
        return self.state.usage

    @property
    def iterations(self) -> int:
        return self.state.iterations


@dataclass
class LoopEvent:
    """Event emitted while the loop runs."""

    type: LoopEventType
    iteration: int = 0
    completion: Completion | None = None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_results: list[ToolCallResult] = field(default_factory=list)
    duration_ms: int = 0
    result: LoopResult | None = None

    @property
    def tool_names(self) -> list[str]:
        return [tc.name for tc in self.tool_calls]


# ============================================================
# TOOL-CALL LOOP
# ============================================================


class ToolCallLoop:
    """
    Sole owner of iteration control, termination and usage accumulation.

    Usage:
        loop = ToolCallLoop(model_provider, tool_provider, max_iterations=25)
        async for event in loop.run(state, model="openai/gpt-4o"):
            ...

        result = await loop.run_to_completion(state, model="openai/gpt-4o")
    """

    def __init__(
        self,
        model_provider: AsyncModelProvider,
        tool_provider: ToolProvider,
        max_iterations: int | None = 25,
        metrics: MetricsRegistry | None = None,
    ):
        self.model_provider = model_provider
        self.tool_provider = tool_provider
        self.max_iterations = max_iterations
        self.metrics = metrics

    async def run(
        self,
        state: ConversationState,
        model: str,
        params: SamplingParams | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> AsyncIterator[LoopEvent]:
        """Run the loop, yielding events; the last event is always DONE."""
        iteration = 0
        last_message: Message | None = None

        async def done(reason: str) -> LoopEvent:
            result = LoopResult(
                final_message=last_message,
                finish_reason=reason,
                state=state,
                model=model,
            )
            logger.info(
                f"Tool-call loop finished: {reason} after {state.iterations} model calls, "
                f"tools={state.tool_names_used}"
            )
            if self.metrics:
                self.metrics.record_loop(str(reason), state.iterations)
            return LoopEvent(type=LoopEventType.DONE, iteration=iteration, result=result)

        while True:
            if is_cancelled and await is_cancelled():
                yield await done(FinishReason.CANCELLED)
                return

            iteration += 1
            yield LoopEvent(type=LoopEventType.ITERATION_START, iteration=iteration)

            completion = await self._call_model(state, model, params)
            last_message = completion.message
            state.append_assistant(completion.message)
            state.add_usage(completion.usage)
            yield LoopEvent(
                type=LoopEventType.ASSISTANT_MESSAGE,
                iteration=iteration,
                completion=completion,
            )

            batch = list(completion.message.tool_calls)
            if not batch:
                reason = completion.finish_reason
                if not reason or reason == "tool_calls":
                    reason = FinishReason.STOP
                yield await done(reason)
                return

            if self.max_iterations is not None and iteration >= self.max_iterations:
                logger.warning(
                    f"Model still requested {len(batch)} tool calls after "
                    f"{self.max_iterations} iterations; stopping"
                )
                yield await done(FinishReason.MAX_ITERATIONS)
                return

            if is_cancelled and await is_cancelled():
                yield await done(FinishReason.CANCELLED)
                return

            state.record_dispatch(batch)
            yield LoopEvent(type=LoopEventType.TOOL_CALLS, iteration=iteration, tool_calls=batch)

            start = time.perf_counter()
            raw_results = await self.tool_provider.invoke(batch)
            duration_ms = int((time.perf_counter() - start) * 1000)

            if not raw_results:
                logger.warning(f"Tool provider returned no results for {len(batch)} tool calls")
                yield await done(FinishReason.TOOLS_UNAVAILABLE)
                return

            results = self.correlate(batch, raw_results)
            state.append_tool_results(results)
            log_tool_batch(
                [tc.name for tc in batch], sum(1 for r in results if not r.success), duration_ms
            )

            if self.metrics:
                names = {tc.id: tc.name for tc in batch}
                for r in results:
                    self.metrics.record_tool_call(names[r.tool_call_id], r.success)

            yield LoopEvent(
                type=LoopEventType.TOOL_RESULTS,
                iteration=iteration,
                tool_calls=batch,
                tool_results=results,
                duration_ms=duration_ms,
            )

    async def run_to_completion(
        self,
        state: ConversationState,
        model: str,
        params: SamplingParams | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> LoopResult:
        """Run the loop and return only its result."""
        result = None
        async for event in self.run(state, model, params, is_cancelled):
            if event.type == LoopEventType.DONE:
                result = event.result
        if result is None:
            raise InternalError("Tool-call loop ended without a result")
        return result

    async def _call_model(
        self,
        state: ConversationState,
        model: str,
        params: SamplingParams | None,
    ) -> Completion:
        start = time.perf_counter()
        success = False
        try:
            completion = await self.model_provider.complete(
                state.messages, state.tool_schema, model, params
            )
            success = True
            return completion
        finally:
            if self.metrics:
                self.metrics.record_model_call(
                    str(self.model_provider.backend), success, time.perf_counter() - start
                )

    @staticmethod
    def correlate(
        batch: list[ToolCallRequest],
        results: list[ToolCallResult],
    ) -> list[ToolCallResult]:
        """
        Match results to requests by tool_call_id.

        Returns exactly one result per request, in request order. Results
        for unknown or already-answered ids are dropped; requests nobody
        answered get a failed result so the model sees every call resolved.
        """
        requested = {tc.id for tc in batch}
        by_id: dict[str, ToolCallResult] = {}
        for result in results:
            if result.tool_call_id not in requested:
                logger.warning(f"Dropping tool result for unknown call id {result.tool_call_id!r}")
                continue
            if result.tool_call_id in by_id:
                logger.warning(f"Dropping duplicate tool result for {result.tool_call_id!r}")
                continue
            by_id[result.tool_call_id] = result

        ordered = []
        for tc in batch:
            result = by_id.get(tc.id)
            if result is None:
                logger.warning(f"No result for tool call {tc.id} ({tc.name})")
                result = ToolCallResult(
                    tool_call_id=tc.id,
                    content=json.dumps({"error": f"Tool {tc.name} returned no result"}),
                    success=False,
                )
            ordered.append(result)
        return ordered


__all__ = [
    "FinishReason",
    "LoopEventType",
    "LoopEvent",
    "LoopResult",
    "ToolCallLoop",
]
