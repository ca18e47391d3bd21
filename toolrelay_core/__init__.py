# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Toolrelay Core - Shared Primitives

Modules:
    exceptions: Structured exception hierarchy
"""

__version__ = "1.0.0"

from .exceptions.hierarchy import (
    ConfigurationError,
    InputValidationError,
    InternalError,
    ModelAuthError,
    ModelUnavailableError,
    ProviderAuthenticationError,
    ProviderConfigError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
    RelayError,
    ToolProviderError,
)

__all__ = [
    "__version__",
    "RelayError",
    "InternalError",
    "InputValidationError",
    "ProviderError",
    "ModelAuthError",
    "ProviderAuthenticationError",
    "ModelUnavailableError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ToolProviderError",
    "ConfigurationError",
    "ProviderConfigError",
]
