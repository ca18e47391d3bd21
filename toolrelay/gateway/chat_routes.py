# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Chat Completion Routes

OpenAI-compatible `POST /v1/chat/completions` (also served at
`/chat/completions`). Tool calls are resolved server-side; the client
only ever sees the final answer, plus `[Using tools: ...]` annotations
when streaming.
"""

import logging
from typing import Any

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.providers_async import SamplingParams
from ..services.container import ServiceContainer
from ..services.orchestrator import ChatRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Chat"])


# ============================================================
# REQUEST MODEL
# ============================================================


class ChatCompletionRequest(BaseModel):
    """Request body for chat completions."""

    model_config = ConfigDict(extra="ignore")

    model: str = Field(..., min_length=1)
    messages: list[dict[str, Any]] = Field(..., min_length=1)
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)
    stream: bool = False
    stop: str | list[str] | None = None
    presence_penalty: float | None = Field(default=None, ge=-2, le=2)
    frequency_penalty: float | None = Field(default=None, ge=-2, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)
    n: int | None = Field(default=None, gt=0)
    user: str | None = None

    def to_chat_request(self) -> ChatRequest:
        return ChatRequest(
            model=self.model,
            messages=self.messages,
            tools=self.tools,
            stream=self.stream,
            params=SamplingParams(
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stop=self.stop,
                presence_penalty=self.presence_penalty,
                frequency_penalty=self.frequency_penalty,
                top_p=self.top_p,
                n=self.n,
                user=self.user,
                tool_choice=self.tool_choice,
            ),
        )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


# ============================================================
# ENDPOINTS
# ============================================================


@router.post("/v1/chat/completions")
@router.post("/chat/completions", include_in_schema=False)
async def chat_completions(
    body: ChatCompletionRequest,
    request: Request,
    user_id: str | None = Header(default=None, alias="user-id"),
):
    """
    Chat completion with server-side tool execution.

    With `stream: true` the response is `text/event-stream`; errors that
    happen before the stream starts are still returned as JSON.
    """
    service = get_container(request).chat_service()
    prepared = await service.prepare(
        body.to_chat_request(),
        user_id=body.user or user_id,
    )

    if body.stream:
        return StreamingResponse(
            service.stream(prepared, is_cancelled=request.is_disconnected),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    return JSONResponse(content=await service.complete(prepared))


__all__ = ["router", "ChatCompletionRequest", "get_container"]
