# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Gateway Module

FastAPI surface: chat completions, token analysis, health and metrics.
"""

from .app import build_lifecycle, create_app
from .chat_routes import ChatCompletionRequest
from .errors import format_validation_errors, register_exception_handlers
from .request_context import RequestContextMiddleware

__all__ = [
    # App
    "create_app",
    "build_lifecycle",
    # Requests
    "ChatCompletionRequest",
    # Errors
    "register_exception_handlers",
    "format_validation_errors",
    # Middleware
    "RequestContextMiddleware",
]
