# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Chat Completion Service

Runs one chat-completions request end to end:

    validate -> record request -> resolve tool schema -> ToolCallLoop
             -> emitter (atomic or incremental) -> record outcome

prepare() does everything that can fail before output begins, so a
streaming response only starts once the loop is ready to run.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from toolrelay_core import InputValidationError

from ..core.async_orchestrator import CancelCheck, LoopEventType, LoopResult, ToolCallLoop
from ..core.conversation import ConversationState, Message, ToolDescriptor
from ..core.providers_async import AsyncModelProvider, SamplingParams
from ..core.tools import ToolSelection
from ..observability.logging import set_request_context
from .emitter import AtomicEmitter, IncrementalEmitter

if TYPE_CHECKING:
    from .container import ServiceContainer

logger = logging.getLogger(__name__)

# Disconnect records still being written after their request was cancelled
_pending_writes: set[asyncio.Future] = set()


# ============================================================
# REQUEST TYPES
# ============================================================


@dataclass
class ChatRequest:
    """A validated chat-completions request."""

    model: str
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] | None = None
    stream: bool = False
    params: SamplingParams = field(default_factory=SamplingParams)

    @property
    def user(self) -> str | None:
        return self.params.user


@dataclass
class PreparedRun:
    """Everything the loop needs, resolved before any output is sent."""

    request_id: str
    request: ChatRequest
    state: ConversationState
    model_provider: AsyncModelProvider
    started: float
    created: int

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


def new_request_id() -> str:
    return str(uuid.uuid4())


# ============================================================
# SERVICE
# ============================================================


class ChatCompletionService:
    """
    Chat completions over the tool-call loop.

    Usage:
        service = container.chat_service()
        run = await service.prepare(request)
        body = await service.complete(run)

        # Streaming
        async for chunk in service.stream(run, is_cancelled):
            ...
    """

    def __init__(self, container: "ServiceContainer"):
        self.container = container
        self.recorder = container.recorder
        self.production = container.settings.is_production

    def _loop(self, model_provider: AsyncModelProvider) -> ToolCallLoop:
        return ToolCallLoop(
            model_provider=model_provider,
            tool_provider=self.container.tool_provider,
            max_iterations=self.container.settings.loop.max_iterations,
            metrics=self.container.metrics,
        )

    @staticmethod
    def build_messages(raw: list[Mapping[str, Any]]) -> list[Message]:
        try:
            return [Message.from_dict(m) for m in raw]
        except (ValueError, AttributeError, TypeError) as e:
            raise InputValidationError(str(e), field="messages") from e

    @staticmethod
    def build_tools(raw: list[Mapping[str, Any]]) -> list[ToolDescriptor]:
        try:
            return [ToolDescriptor.from_dict(t) for t in raw]
        except (ValueError, AttributeError, TypeError) as e:
            raise InputValidationError(str(e), field="tools") from e

    async def prepare(
        self,
        request: ChatRequest,
        request_id: str | None = None,
        user_id: str | None = None,
        selection: ToolSelection | None = None,
        record_messages: list[dict[str, Any]] | None = None,
    ) -> PreparedRun:
        """
        Validate, record the request and resolve the tool schema.

        Caller-supplied tools win; otherwise the tool provider is asked
        with `selection` (dynamic discovery by default).
        """
        started = time.perf_counter()
        messages = self.build_messages(request.messages)
        caller_tools = self.build_tools(request.tools) if request.tools is not None else None

        request_id = request_id or new_request_id()
        set_request_context(completion_id=request_id)

        logger.info(
            f"Chat completion request: model={request.model} messages={len(messages)} "
            f"stream={request.stream} caller_tools={caller_tools is not None}"
        )

        await self.recorder.record_request(
            request_id=request_id,
            model=request.model,
            messages=record_messages if record_messages is not None else request.messages,
            stream=request.stream,
            user_id=user_id or request.user,
            tools=request.tools,
        )

        try:
            model_provider = self.container.model_provider
            if caller_tools is not None:
                tools = caller_tools
            else:
                tools = await self.container.tool_provider.list_tools(selection)
        except Exception as e:
            logger.error(f"Failed to prepare request {request_id}: {e}")
            await self.recorder.record_failure(
                request_id, e, int((time.perf_counter() - started) * 1000)
            )
            raise

        return PreparedRun(
            request_id=request_id,
            request=request,
            state=ConversationState(messages, tools),
            model_provider=model_provider,
            started=started,
            created=int(time.time()),
        )

    async def run(
        self,
        prepared: PreparedRun,
        is_cancelled: CancelCheck | None = None,
    ) -> tuple[LoopResult, dict[str, Any]]:
        """Run the loop to completion; returns the result and the response body."""
        emitter = AtomicEmitter(prepared.request_id, prepared.request.model, prepared.created)
        loop = self._loop(prepared.model_provider)
        result = None

        try:
            async for event in loop.run(
                prepared.state, prepared.request.model, prepared.request.params, is_cancelled
            ):
                if event.type == LoopEventType.TOOL_RESULTS:
                    await self.recorder.record_tool_calls(
                        prepared.request_id, event.tool_calls, event.tool_results, event.duration_ms
                    )
                elif event.type == LoopEventType.DONE:
                    result = event.result
        except Exception as e:
            logger.error(f"Chat completion {prepared.request_id} failed: {e}")
            await self.recorder.record_failure(prepared.request_id, e, prepared.elapsed_ms())
            raise

        body = emitter.render(result, prepared.elapsed_ms())
        await self.recorder.record_success(
            prepared.request_id,
            prepared.request.model,
            result,
            body,
            body["response_time_ms"],
        )
        return result, body

    async def complete(self, prepared: PreparedRun) -> dict[str, Any]:
        """Atomic mode: the `chat.completion` body."""
        _, body = await self.run(prepared)
        return body

    async def stream(
        self,
        prepared: PreparedRun,
        is_cancelled: CancelCheck | None = None,
    ) -> AsyncIterator[str]:
        """
        Incremental mode: SSE chunks, always ending with [DONE].

        If the client goes away mid-stream the server cancels this
        generator or closes it; a "cancelled" response record is still
        written before the cancellation propagates.
        """
        emitter = IncrementalEmitter(prepared.request_id, prepared.request.model, prepared.created)
        atomic = AtomicEmitter(prepared.request_id, prepared.request.model, prepared.created)
        loop = self._loop(prepared.model_provider)
        finished = False

        try:
            yield emitter.start()

            try:
                async for event in loop.run(
                    prepared.state, prepared.request.model, prepared.request.params, is_cancelled
                ):
                    if event.type == LoopEventType.TOOL_RESULTS:
                        await self.recorder.record_tool_calls(
                            prepared.request_id,
                            event.tool_calls,
                            event.tool_results,
                            event.duration_ms,
                        )

                    for chunk in emitter.handle(event):
                        yield chunk

                    if event.type == LoopEventType.DONE:
                        body = atomic.render(event.result, prepared.elapsed_ms())
                        await self.recorder.record_success(
                            prepared.request_id,
                            prepared.request.model,
                            event.result,
                            body,
                            body["response_time_ms"],
                        )
                        finished = True
            except Exception as e:
                logger.error(
                    f"Streaming completion {prepared.request_id} failed: {e}", exc_info=True
                )
                await self.recorder.record_failure(prepared.request_id, e, prepared.elapsed_ms())
                finished = True
                yield emitter.error(e, self.production)

            yield emitter.done()
        except (asyncio.CancelledError, GeneratorExit):
            if not finished:
                logger.warning(f"Client disconnected from stream {prepared.request_id}")
                await self._record_disconnect(prepared)
            raise

    async def _record_disconnect(self, prepared: PreparedRun) -> None:
        # The enclosing task may be cancelled again while waiting, so the
        # write runs as its own task and is left to finish on its own.
        write = asyncio.ensure_future(
            self.recorder.record_cancelled(prepared.request_id, prepared.elapsed_ms())
        )
        _pending_writes.add(write)
        write.add_done_callback(_pending_writes.discard)
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            logger.debug(f"Cancelled record for {prepared.request_id} left writing in background")


__all__ = [
    "ChatRequest",
    "PreparedRun",
    "ChatCompletionService",
    "new_request_id",
]
