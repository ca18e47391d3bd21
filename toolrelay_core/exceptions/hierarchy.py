# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Exception Hierarchy

Structured exceptions for the gateway and its collaborators.
All exceptions include context via `details` dict, and carry the
HTTP status, OpenAI error `type` and `code` used when they reach a client.
"""

from typing import Any


class RelayError(Exception):
    """
    Base exception for all Toolrelay errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
    """

    status_code: int = 500
    error_type: str = "internal_server_error"
    code: str = "internal_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InternalError(RelayError):
    """Unclassified failure."""

    pass


# ============================================================
# REQUEST ERRORS
# ============================================================


class InputValidationError(RelayError):
    """Request body failed validation."""

    status_code = 400
    error_type = "invalid_request_error"
    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, **kwargs):
        details = kwargs.get("details", {})
        if field:
            details["field"] = field
        super().__init__(message, details)


# ============================================================
# PROVIDER ERRORS
# ============================================================


class ProviderError(RelayError):
    """Base class for model provider errors."""

    status_code = 502
    error_type = "api_error"
    code = "model_error"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        original_error: Exception | None = None,
        **kwargs,
    ):
        details = kwargs.get("details", {})
        if provider:
            details["provider"] = provider
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, details)


class ModelAuthError(ProviderError):
    """Upstream rejected the configured credential. Never retried."""

    status_code = 401
    error_type = "authentication_error"
    code = "auth_error"


# Name kept in line with the provider error family
ProviderAuthenticationError = ModelAuthError


class ModelUnavailableError(ProviderError):
    """Upstream model could not produce a completion."""

    code = "model_unavailable"


class ProviderConnectionError(ModelUnavailableError):
    """Failed to connect to provider."""

    pass


class ProviderTimeoutError(ModelUnavailableError):
    """Provider did not answer before the deadline."""

    pass


class ProviderRateLimitError(ModelUnavailableError):
    """Provider rate limit exceeded."""

    def __init__(self, message: str, retry_after: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        if retry_after is not None:
            self.details["retry_after_seconds"] = retry_after


class ProviderResponseError(ModelUnavailableError):
    """Invalid or unexpected response from provider."""

    pass


# ============================================================
# TOOL PROVIDER ERRORS
# ============================================================


class ToolProviderError(RelayError):
    """Tool listing or batch invocation failed as a whole."""

    status_code = 500
    error_type = "api_error"
    code = "tool_provider_error"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        original_error: Exception | None = None,
        **kwargs,
    ):
        details = kwargs.get("details", {})
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, details)


# ============================================================
# CONFIGURATION ERRORS
# ============================================================


class ConfigurationError(RelayError):
    """Configuration is invalid or missing."""

    code = "configuration_error"


class ProviderConfigError(ConfigurationError):
    """Provider configuration error."""

    def __init__(self, provider: str, message: str, **kwargs):
        super().__init__(
            f"Provider '{provider}' configuration error: {message}",
            details={"provider": provider, **kwargs.get("details", {})},
        )


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    # Base
    "RelayError",
    "InternalError",
    # Request
    "InputValidationError",
    # Provider
    "ProviderError",
    "ModelAuthError",
    "ProviderAuthenticationError",
    "ModelUnavailableError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    # Tool
    "ToolProviderError",
    # Configuration
    "ConfigurationError",
    "ProviderConfigError",
]
