# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Tool Provider Client

Lists tools and executes tool-call batches against the external
tool service through its SDK:
- unifai.Tools (package `unifai-sdk`) for discovery and execution

Contract:
- list_tools() failures raise ToolProviderError, never retried here
- invoke() returns one result per request in arbitrary order; callers
  correlate by tool_call_id
- a failing individual tool is a ToolCallResult(success=False), not an
  exception; only a failure of the batch call itself raises
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from toolrelay_core import ToolProviderError

from .async_base import timeout_context
from .conversation import ToolCallRequest, ToolCallResult, ToolDescriptor
from .settings import ToolSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSelection:
    """Which tools the provider should expose."""

    dynamic_tools: bool = True
    static_toolkits: tuple[str, ...] | None = None
    static_actions: tuple[str, ...] | None = None

    @classmethod
    def from_lists(
        cls,
        dynamic_tools: bool = True,
        static_toolkits: Sequence[str] | None = None,
        static_actions: Sequence[str] | None = None,
    ) -> "ToolSelection":
        return cls(
            dynamic_tools=dynamic_tools,
            static_toolkits=tuple(static_toolkits) if static_toolkits else None,
            static_actions=tuple(static_actions) if static_actions else None,
        )

    @classmethod
    def from_csv(
        cls,
        static_toolkits: str | None = None,
        static_actions: str | None = None,
        dynamic_tools: bool = True,
    ) -> "ToolSelection":
        """Parse comma-separated query parameters."""

        def split(value: str | None) -> list[str] | None:
            if not value:
                return None
            return [item.strip() for item in value.split(",") if item.strip()] or None

        return cls.from_lists(dynamic_tools, split(static_toolkits), split(static_actions))


# ============================================================
# ABSTRACT PROVIDER
# ============================================================


class ToolProvider(ABC):
    """Discovers and executes tools on behalf of the loop."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier."""
        pass

    @abstractmethod
    async def list_tools(self, selection: ToolSelection | None = None) -> list[ToolDescriptor]:
        """Return the tool schema for `selection`."""
        pass

    @abstractmethod
    async def invoke(self, batch: Sequence[ToolCallRequest]) -> list[ToolCallResult]:
        """Execute a batch of tool calls."""
        pass

    async def close(self) -> None:
        """Release provider resources."""
        return None


# ============================================================
# RESULT PARSING
# ============================================================


def _field(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(key, default)
    return getattr(item, key, default)


def infer_success(content: Any) -> bool:
    """A payload carrying an `error` key (as JSON or a mapping) is a failure."""
    payload = content
    if isinstance(content, str):
        try:
            payload = json.loads(content)
        except json.JSONDecodeError:
            return True
    if isinstance(payload, Mapping):
        return not payload.get("error")
    return True


def parse_tool_result(item: Any) -> ToolCallResult | None:
    """Convert one SDK result into a ToolCallResult, None if uncorrelatable."""
    tool_call_id = _field(item, "tool_call_id")
    if not tool_call_id:
        logger.warning(f"Dropping tool result without tool_call_id: {item!r}")
        return None

    content = _field(item, "content", "")
    success = _field(item, "success")
    if success is None:
        success = infer_success(content)

    return ToolCallResult(tool_call_id=str(tool_call_id), content=content, success=bool(success))


# ============================================================
# UNIFAI PROVIDER (Official SDK)
# ============================================================


class UnifAIToolProvider(ToolProvider):
    """
    Tool provider backed by the UnifAI SDK.

    Usage:
        provider = UnifAIToolProvider(api_key="...")
        tools = await provider.list_tools(ToolSelection(dynamic_tools=True))
        results = await provider.invoke(assistant_message.tool_calls)
    """

    def __init__(
        self,
        api_key: str,
        invoke_timeout: float = 120.0,
        default_selection: ToolSelection | None = None,
    ):
        self._api_key = api_key
        self.invoke_timeout = invoke_timeout
        self.default_selection = default_selection or ToolSelection()
        self._client = None

    @property
    def name(self) -> str:
        return "unifai"

    def _get_client(self):
        """Lazy client initialization."""
        if self._client is None:
            try:
                import unifai
            except ImportError as e:
                raise ToolProviderError(
                    "unifai-sdk package not installed. Run: pip install unifai-sdk",
                    operation="init",
                ) from e

            self._client = unifai.Tools(api_key=self._api_key)
        return self._client

    @staticmethod
    def _sdk_tool_calls(batch: Sequence[ToolCallRequest]) -> list:
        """The SDK reads `id` and `function.name/arguments` as attributes."""
        from unifai.tools.tools import OpenAIToolCall

        return [OpenAIToolCall.model_validate(tc.to_dict()) for tc in batch]

    async def close(self) -> None:
        """Close the SDK's HTTP client."""
        if self._client is not None:
            await self._client._api.client.aclose()
            self._client = None

    async def list_tools(self, selection: ToolSelection | None = None) -> list[ToolDescriptor]:
        selection = selection or self.default_selection
        client = self._get_client()

        try:
            raw_tools = await client.get_tools(
                dynamic_tools=selection.dynamic_tools,
                static_toolkits=list(selection.static_toolkits)
                if selection.static_toolkits
                else None,
                static_actions=list(selection.static_actions) if selection.static_actions else None,
            )
        except Exception as e:
            logger.error(f"Failed to list UnifAI tools: {e}")
            raise ToolProviderError(
                "Failed to list tools", operation="list_tools", original_error=e
            ) from e

        if not isinstance(raw_tools, list):
            raise ToolProviderError(
                f"Tool listing returned {type(raw_tools).__name__}, expected a list",
                operation="list_tools",
            )

        try:
            tools = [ToolDescriptor.from_dict(t) for t in raw_tools]
        except (ValueError, AttributeError, TypeError) as e:
            raise ToolProviderError(
                f"Malformed tool schema: {e}", operation="list_tools", original_error=e
            ) from e

        logger.info(f"Loaded {len(tools)} tools from UnifAI")
        return tools

    async def invoke(self, batch: Sequence[ToolCallRequest]) -> list[ToolCallResult]:
        if not batch:
            return []

        client = self._get_client()
        start = time.perf_counter()

        try:
            async with timeout_context(self.invoke_timeout, "tool invocation"):
                raw_results = await client.call_tools(self._sdk_tool_calls(batch))
        except TimeoutError as e:
            raise ToolProviderError(
                f"Tool invocation timed out after {self.invoke_timeout}s",
                operation="invoke",
            ) from e
        except Exception as e:
            logger.error(f"Failed to call UnifAI tools: {e}")
            raise ToolProviderError(
                "Failed to invoke tools", operation="invoke", original_error=e
            ) from e

        results = [r for r in (parse_tool_result(item) for item in raw_results or []) if r]

        logger.debug(
            f"UnifAI executed {len(batch)} tool calls -> {len(results)} results "
            f"in {(time.perf_counter() - start) * 1000:.1f}ms"
        )
        return results


def create_tool_provider(settings: ToolSettings) -> ToolProvider:
    """Create the tool provider for the configured credential."""
    if not settings.api_key:
        logger.warning("UNIFAI_AGENT_API_KEY not configured; tool calls will be rejected upstream")

    return UnifAIToolProvider(
        api_key=settings.api_key or "",
        invoke_timeout=settings.invoke_timeout,
        default_selection=ToolSelection(dynamic_tools=settings.dynamic_tools),
    )


__all__ = [
    "ToolSelection",
    "ToolProvider",
    "UnifAIToolProvider",
    "create_tool_provider",
    "infer_success",
    "parse_tool_result",
]
