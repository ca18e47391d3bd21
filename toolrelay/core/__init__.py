# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Core Module

- Settings: environment-driven configuration
- Conversation: messages, tool calls, usage
- Tools: tool provider client (UnifAI)
- Async Providers: SDK-based model clients (OpenRouter, Anthropic)
- ToolCallLoop: the model/tool orchestration loop

All imports are lazy so that importing settings does not pull in the
model SDKs.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .async_orchestrator import (
        FinishReason as FinishReason,
    )
    from .async_orchestrator import (
        LoopEvent as LoopEvent,
    )
    from .async_orchestrator import (
        LoopResult as LoopResult,
    )
    from .async_orchestrator import (
        ToolCallLoop as ToolCallLoop,
    )
    from .conversation import (
        ConversationState as ConversationState,
    )
    from .conversation import (
        Message as Message,
    )
    from .conversation import (
        ToolCallRequest as ToolCallRequest,
    )
    from .conversation import (
        ToolCallResult as ToolCallResult,
    )
    from .conversation import (
        Usage as Usage,
    )
    from .providers_async import (
        AsyncModelProvider as AsyncModelProvider,
    )
    from .providers_async import (
        create_model_provider as create_model_provider,
    )
    from .settings import Settings as Settings
    from .settings import get_settings as get_settings
    from .tools import (
        ToolProvider as ToolProvider,
    )
    from .tools import (
        create_tool_provider as create_tool_provider,
    )

# Map attribute names to (module, name) for lazy loading
_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    # Settings
    "Settings": (".settings", "Settings"),
    "get_settings": (".settings", "get_settings"),
    # Conversation
    "ConversationState": (".conversation", "ConversationState"),
    "Message": (".conversation", "Message"),
    "ToolCallRequest": (".conversation", "ToolCallRequest"),
    "ToolCallResult": (".conversation", "ToolCallResult"),
    "Usage": (".conversation", "Usage"),
    # Providers
    "AsyncModelProvider": (".providers_async", "AsyncModelProvider"),
    "create_model_provider": (".providers_async", "create_model_provider"),
    "ToolProvider": (".tools", "ToolProvider"),
    "create_tool_provider": (".tools", "create_tool_provider"),
    # Loop
    "ToolCallLoop": (".async_orchestrator", "ToolCallLoop"),
    "LoopEvent": (".async_orchestrator", "LoopEvent"),
    "LoopResult": (".async_orchestrator", "LoopResult"),
    "FinishReason": (".async_orchestrator", "FinishReason"),
}

__all__ = list(_LAZY_IMPORTS.keys())


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path, __name__)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
