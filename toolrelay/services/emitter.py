# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Response Emitter

Renders a loop run in the chat-completions wire format:
- AtomicEmitter: one `chat.completion` body after DONE
- IncrementalEmitter: Server-Sent Events of `chat.completion.chunk`

Stream order is fixed: start chunk, one annotation per tool dispatch,
final content, finish chunk (with usage), then the [DONE] sentinel.
A failure after the stream began becomes an error chunk plus [DONE].
"""

import json
import time
import traceback
from typing import Any

from toolrelay_core import RelayError

from ..core.async_orchestrator import LoopEvent, LoopEventType, LoopResult

DONE_SENTINEL = "data: [DONE]\n\n"


def sse(payload: dict[str, Any]) -> str:
    """Format as Server-Sent Event."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def tool_annotation(tool_names: list[str]) -> str:
    return f"\n[Using tools: {', '.join(tool_names)}]\n"


# ============================================================
# ERROR BODIES
# ============================================================


GENERIC_SERVER_ERROR = "Internal server error"


def error_status(error: BaseException) -> int:
    return error.status_code if isinstance(error, RelayError) else 500


def error_body(error: BaseException, production: bool = False) -> dict[str, Any]:
    """
    OpenAI-style error body for any exception.

    Unclassified exceptions map to internal_error. In production, 5xx
    messages are replaced; outside production the stack is included.
    """
    if isinstance(error, RelayError):
        status, error_type, code = error.status_code, error.error_type, error.code
        message = error.message
    else:
        status, error_type, code = 500, "internal_server_error", "internal_error"
        message = str(error) or type(error).__name__

    if production and status >= 500:
        message = GENERIC_SERVER_ERROR

    body: dict[str, Any] = {"message": message, "type": error_type, "code": code}
    if not production:
        body["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return {"error": body}


# ============================================================
# ATOMIC
# ============================================================


class AtomicEmitter:
    """Builds the single `chat.completion` response body."""

    def __init__(self, completion_id: str, model: str, created: int | None = None):
        self.completion_id = completion_id
        self.model = model
        self.created = created or int(time.time())

    def render(self, result: LoopResult, response_time_ms: int) -> dict[str, Any]:
        return {
            "id": self.completion_id,
            "object": "chat.completion",
            "created": self.created,
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "message": {
                        "role": "assistant",
                        "content": result.content,
                        "tool_calls": [tc.to_dict() for tc in result.tool_calls],
                    },
                    "finish_reason": str(result.finish_reason),
                }
            ],
            "usage": result.usage.to_dict(),
            "tools_used": result.tools_used,
            "response_time_ms": response_time_ms,
        }


# ============================================================
# INCREMENTAL
# ============================================================


class IncrementalEmitter:
    """
    Produces SSE strings for one streamed completion.

    Usage:
        emitter = IncrementalEmitter(completion_id, model)
        yield emitter.start()
        async for event in loop.run(...):
            for chunk in emitter.handle(event):
                yield chunk
        yield emitter.done()
    """

    def __init__(self, completion_id: str, model: str, created: int | None = None):
        self.completion_id = completion_id
        self.model = model
        self.created = created or int(time.time())
        self.result: LoopResult | None = None

    def chunk(
        self,
        delta: dict[str, Any],
        finish_reason: str | None = None,
        **extra: Any,
    ) -> str:
        return sse(
            {
                "id": self.completion_id,
                "object": "chat.completion.chunk",
                "created": self.created,
                "model": self.model,
                "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
                **extra,
            }
        )

    def start(self) -> str:
        return self.chunk({"role": "assistant", "content": ""})

    def handle(self, event: LoopEvent) -> list[str]:
        """Chunks to send for one loop event, possibly none."""
        if event.type == LoopEventType.TOOL_CALLS:
            return [self.chunk({"content": tool_annotation(event.tool_names)})]

        if event.type == LoopEventType.DONE and event.result is not None:
            self.result = event.result
            return self.finish(event.result)

        return []

    def finish(self, result: LoopResult) -> list[str]:
        chunks = []
        if result.content:
            chunks.append(self.chunk({"content": result.content}))
        chunks.append(
            self.chunk(
                {},
                finish_reason=str(result.finish_reason),
                usage=result.usage.to_dict(),
                tools_used=result.tools_used,
            )
        )
        return chunks

    def error(self, error: BaseException, production: bool = False) -> str:
        return sse(error_body(error, production))

    def done(self) -> str:
        return DONE_SENTINEL


__all__ = [
    "DONE_SENTINEL",
    "GENERIC_SERVER_ERROR",
    "AtomicEmitter",
    "IncrementalEmitter",
    "error_body",
    "error_status",
    "sse",
    "tool_annotation",
]
