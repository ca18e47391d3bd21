# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Toolrelay - OpenAI-Compatible Tool-Calling Gateway

Accepts chat-completion requests, runs the model, executes any tool
calls it asks for against a tool provider, feeds the results back, and
repeats until the model answers without tools. The client sees a single
chat completion (or one SSE stream) for the whole exchange.

Quick Start:
    from toolrelay import create_app

    app = create_app()

    # or: toolrelay serve --port 3000

Architecture:

    client -> gateway (FastAPI) -> ChatCompletionService
                                     |
                                     +-> ToolCallLoop
                                     |     +-> model provider (OpenRouter / Anthropic)
                                     |     +-> tool provider (UnifAI)
                                     +-> emitter (JSON or SSE)
                                     +-> audit recorder (SQL / memory)

All imports are lazy; import toolrelay does not load FastAPI or the
model SDKs.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

__version__ = "1.0.0"

if TYPE_CHECKING:
    from .core.settings import Settings as Settings
    from .core.settings import get_settings as get_settings
    from .gateway.app import create_app as create_app
    from .services.container import ServiceContainer as ServiceContainer

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Settings": (".core.settings", "Settings"),
    "get_settings": (".core.settings", "get_settings"),
    "create_app": (".gateway.app", "create_app"),
    "ServiceContainer": (".services.container", "ServiceContainer"),
}

__all__ = [
    "__version__",
    *_LAZY_IMPORTS.keys(),
]


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path, __name__)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
