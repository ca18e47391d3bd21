# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Async Model Providers using Official SDKs

Submits a conversation plus tool schema upstream and returns one completion.
- openai.AsyncOpenAI against the OpenRouter endpoint (default backend)
- anthropic.AsyncAnthropic for `sk-ant-` credentials

The backend is a pure function of the credential. Neither SDK retries
(max_retries=0); failures map onto the provider exception family.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from toolrelay_core import (
    ModelAuthError,
    ProviderConfigError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)

from ..observability.logging import log_llm_request
from .conversation import Message, Role, ToolCallRequest, ToolDescriptor, Usage
from .settings import ANTHROPIC_KEY_PREFIX, LLMSettings

logger = logging.getLogger(__name__)


# ============================================================
# BACKEND SELECTION
# ============================================================


class ModelBackend(StrEnum):
    """Upstream model API."""

    OPENROUTER = "openrouter"
    ANTHROPIC = "anthropic"


ANTHROPIC_MODEL_PREFIX = "anthropic/"


def select_backend(api_key: str | None) -> ModelBackend:
    """Pick the upstream backend from the credential shape."""
    if api_key and api_key.startswith(ANTHROPIC_KEY_PREFIX):
        return ModelBackend.ANTHROPIC
    return ModelBackend.OPENROUTER


def translate_model_name(backend: ModelBackend, model: str) -> str:
    """
    Map a requested model name to the one the backend expects.

    OpenRouter takes vendor-namespaced names as-is; the Anthropic API
    wants the bare model id.
    """
    if backend == ModelBackend.ANTHROPIC and model.startswith(ANTHROPIC_MODEL_PREFIX):
        return model[len(ANTHROPIC_MODEL_PREFIX) :]
    return model


# ============================================================
# DATA TYPES
# ============================================================


@dataclass
class SamplingParams:
    """Optional generation parameters forwarded upstream."""

    temperature: float | None = None
    max_tokens: int | None = None
    stop: str | list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    top_p: float | None = None
    n: int | None = None
    user: str | None = None
    tool_choice: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Set fields only."""
        return {
            key: value
            for key, value in {
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
                "stop": self.stop,
                "presence_penalty": self.presence_penalty,
                "frequency_penalty": self.frequency_penalty,
                "top_p": self.top_p,
                "n": self.n,
                "user": self.user,
                "tool_choice": self.tool_choice,
            }.items()
            if value is not None
        }


@dataclass
class Completion:
    """One assistant turn plus its usage."""

    message: Message
    usage: Usage = field(default_factory=Usage)
    finish_reason: str = "stop"
    model: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return self.message.has_tool_calls


# ============================================================
# ABSTRACT PROVIDER
# ============================================================


class AsyncModelProvider(ABC):
    """
    Abstract base for async model providers.

    complete() times and logs every call; subclasses implement _complete().
    """

    backend: ModelBackend

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier."""
        pass

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDescriptor] = (),
        model: str = "",
        params: SamplingParams | None = None,
    ) -> Completion:
        """Submit the conversation and return one assistant turn."""
        upstream_model = translate_model_name(self.backend, model)
        start = time.perf_counter()
        try:
            completion = await self._complete(
                list(messages), list(tools), upstream_model, params or SamplingParams()
            )
        except ProviderError as e:
            log_llm_request(
                provider=self.name,
                model=upstream_model,
                tokens_input=0,
                tokens_output=0,
                duration_ms=(time.perf_counter() - start) * 1000,
                success=False,
                error=e.message,
            )
            raise

        log_llm_request(
            provider=self.name,
            model=upstream_model,
            tokens_input=completion.usage.prompt_tokens,
            tokens_output=completion.usage.completion_tokens,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        return completion

    @abstractmethod
    async def _complete(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor],
        model: str,
        params: SamplingParams,
    ) -> Completion:
        pass

    async def close(self) -> None:
        """Cleanup resources."""
        return None


def _http_client(proxy_url: str | None, timeout: float):
    """httpx client routed through the proxy, None when no proxy is set."""
    if not proxy_url:
        return None

    import httpx

    logger.info(f"Routing model traffic through proxy {proxy_url}")
    return httpx.AsyncClient(proxy=proxy_url, timeout=timeout)


def _map_sdk_error(sdk, e: Exception, provider: str) -> ProviderError:
    """Translate an openai/anthropic SDK exception (same class names in both)."""
    if isinstance(e, sdk.AuthenticationError):
        return ModelAuthError(f"Authentication failed: {e}", provider=provider, original_error=e)
    if isinstance(e, sdk.RateLimitError):
        retry_after = None
        header = e.response.headers.get("retry-after") if e.response is not None else None
        if header and header.isdigit():
            retry_after = int(header)
        return ProviderRateLimitError(
            f"Rate limit exceeded: {e}", retry_after=retry_after, provider=provider
        )
    if isinstance(e, sdk.APITimeoutError):
        return ProviderTimeoutError(f"Request timed out: {e}", provider=provider)
    if isinstance(e, sdk.APIConnectionError):
        return ProviderConnectionError(f"Failed to connect: {e}", provider=provider)
    if isinstance(e, sdk.APIStatusError):
        return ProviderResponseError(
            f"API error: {e.status_code} - {e.message}", provider=provider
        )
    return ProviderResponseError(f"Unexpected API error: {e}", provider=provider, original_error=e)


# ============================================================
# OPENROUTER PROVIDER (OpenAI SDK)
# ============================================================


class AsyncOpenRouterProvider(AsyncModelProvider):
    """
    OpenAI-compatible provider pointed at OpenRouter.

    Messages and tools are already in OpenAI wire shape and pass through
    unchanged.
    """

    backend = ModelBackend.OPENROUTER

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 300.0,
        proxy_url: str | None = None,
    ):
        self._api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.proxy_url = proxy_url
        self._client = None

    @property
    def name(self) -> str:
        return "openrouter"

    def _get_client(self):
        """Lazy client initialization."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise ProviderError(
                    "openai package not installed. Run: pip install openai", provider=self.name
                ) from e

            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                http_client=_http_client(self.proxy_url, self.timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the async client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _complete(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor],
        model: str,
        params: SamplingParams,
    ) -> Completion:
        import openai

        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            **params.to_dict(),
        }
        if tools:
            kwargs["tools"] = [t.to_dict() for t in tools]
        else:
            kwargs.pop("tool_choice", None)

        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise _map_sdk_error(openai, e, self.name) from e

        return self._parse_response(response, model)

    def _parse_response(self, response, model: str) -> Completion:
        """Parse OpenAI response to internal format."""
        if not getattr(response, "choices", None):
            raise ProviderResponseError("Upstream returned no choices", provider=self.name)

        choice = response.choices[0]
        raw = choice.message

        tool_calls = [
            ToolCallRequest(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in raw.tool_calls or []
        ]

        usage = Usage()
        if response.usage is not None:
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return Completion(
            message=Message(role=Role.ASSISTANT, content=raw.content, tool_calls=tool_calls),
            usage=usage,
            finish_reason=choice.finish_reason or ("tool_calls" if tool_calls else "stop"),
            model=response.model or model,
        )


# ============================================================
# ANTHROPIC PROVIDER (Official SDK)
# ============================================================


# Anthropic stop_reason -> OpenAI finish_reason
_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_use": "tool_calls",
    "max_tokens": "length",
}


class AsyncAnthropicProvider(AsyncModelProvider):
    """
    Anthropic Messages API provider.

    Converts the OpenAI-shaped conversation on the way out:
    - system messages hoisted into `system`
    - assistant tool calls become tool_use blocks
    - consecutive tool messages become one user turn of tool_result blocks
    and converts the reply back into an OpenAI-shaped assistant Message.
    """

    backend = ModelBackend.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 300.0,
        proxy_url: str | None = None,
        default_max_tokens: int = 4096,
    ):
        self._api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.proxy_url = proxy_url
        self.default_max_tokens = default_max_tokens
        self._client = None

    @property
    def name(self) -> str:
        return "anthropic"

    def _get_client(self):
        """Lazy client initialization."""
        if self._client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ProviderError(
                    "anthropic package not installed. Run: pip install anthropic",
                    provider=self.name,
                ) from e

            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                http_client=_http_client(self.proxy_url, self.timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the async client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _complete(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor],
        model: str,
        params: SamplingParams,
    ) -> Completion:
        import anthropic

        client = self._get_client()
        system, converted = self._convert_messages(messages)

        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": params.max_tokens or self.default_max_tokens,
            "messages": converted,
        }
        if system:
            kwargs["system"] = system
        if params.temperature is not None:
            # Anthropic accepts 0-1
            kwargs["temperature"] = min(params.temperature, 1.0)
        if params.top_p is not None:
            kwargs["top_p"] = params.top_p
        if params.stop:
            kwargs["stop_sequences"] = [params.stop] if isinstance(params.stop, str) else params.stop
        if params.user:
            kwargs["metadata"] = {"user_id": params.user}
        if tools:
            kwargs["tools"] = self._convert_tools(tools)
            tool_choice = self._convert_tool_choice(params.tool_choice)
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise _map_sdk_error(anthropic, e, self.name) from e

        return self._parse_response(response, model)

    def _convert_messages(self, messages: list[Message]) -> tuple[str, list[dict[str, Any]]]:
        """Convert OpenAI-shaped messages to (system, Anthropic messages)."""
        system_parts: list[str] = []
        converted: list[dict[str, Any]] = []

        def append(role: str, blocks: list[dict[str, Any]]) -> None:
            # The Messages API requires alternating roles
            if converted and converted[-1]["role"] == role:
                converted[-1]["content"].extend(blocks)
            else:
                converted.append({"role": role, "content": blocks})

        for msg in messages:
            if msg.role == Role.SYSTEM:
                if msg.text:
                    system_parts.append(msg.text)

            elif msg.role == Role.TOOL:
                append(
                    "user",
                    [
                        {
                            "type": "tool_result",
                            "tool_use_id": msg.tool_call_id,
                            "content": msg.text,
                        }
                    ],
                )

            elif msg.role == Role.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if msg.text:
                    blocks.append({"type": "text", "text": msg.text})
                for tc in msg.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.id,
                            "name": tc.name,
                            "input": tc.parsed_arguments(),
                        }
                    )
                if blocks:
                    append("assistant", blocks)

            else:
                if isinstance(msg.content, list):
                    blocks = [
                        item if isinstance(item, dict) else {"type": "text", "text": str(item)}
                        for item in msg.content
                    ]
                else:
                    blocks = [{"type": "text", "text": msg.text}]
                append("user", blocks)

        return "\n\n".join(system_parts), converted

    def _convert_tools(self, tools: list[ToolDescriptor]) -> list[dict[str, Any]]:
        """Convert tools to Anthropic format."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": dict(tool.parameters) or {"type": "object", "properties": {}},
            }
            for tool in tools
        ]

    def _convert_tool_choice(self, tool_choice: Any) -> dict[str, Any] | None:
        if tool_choice is None:
            return None
        if tool_choice == "auto":
            return {"type": "auto"}
        if tool_choice == "required":
            return {"type": "any"}
        if tool_choice == "none":
            return {"type": "none"}
        if isinstance(tool_choice, dict):
            name = (tool_choice.get("function") or {}).get("name")
            if name:
                return {"type": "tool", "name": name}
        logger.debug(f"Ignoring unsupported tool_choice {tool_choice!r}")
        return None

    def _parse_response(self, response, model: str) -> Completion:
        """Parse Anthropic response to internal format."""
        text_parts = []
        tool_calls = []

        for block in response.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCallRequest(id=block.id, name=block.name, arguments=json.dumps(block.input))
                )

        usage = Usage()
        if response.usage is not None:
            prompt = response.usage.input_tokens or 0
            completion = response.usage.output_tokens or 0
            usage = Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)

        finish_reason = _STOP_REASONS.get(response.stop_reason or "", response.stop_reason or "stop")

        return Completion(
            message=Message(
                role=Role.ASSISTANT,
                content="".join(text_parts) or None,
                tool_calls=tool_calls,
            ),
            usage=usage,
            finish_reason=finish_reason,
            model=response.model or model,
        )


# ============================================================
# PROVIDER FACTORY
# ============================================================


def create_model_provider(settings: LLMSettings) -> AsyncModelProvider:
    """
    Create the model provider for the configured credential.

    Raises:
        ProviderConfigError: If no credential is configured
    """
    if not settings.api_key:
        raise ProviderConfigError("llm", "OPENROUTER_API_KEY is not set")

    backend = select_backend(settings.api_key)
    logger.info(f"Using {backend} model backend")

    if backend == ModelBackend.ANTHROPIC:
        return AsyncAnthropicProvider(
            api_key=settings.api_key,
            base_url=settings.anthropic_base_url,
            timeout=float(settings.request_timeout),
            proxy_url=settings.proxy_url,
            default_max_tokens=settings.default_max_tokens,
        )

    return AsyncOpenRouterProvider(
        api_key=settings.api_key,
        base_url=settings.openrouter_base_url,
        timeout=float(settings.request_timeout),
        proxy_url=settings.proxy_url,
    )


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ModelBackend",
    "select_backend",
    "translate_model_name",
    "SamplingParams",
    "Completion",
    "AsyncModelProvider",
    "AsyncOpenRouterProvider",
    "AsyncAnthropicProvider",
    "create_model_provider",
]
