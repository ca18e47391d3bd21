# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Observability - Structured Logging

One log line per event, tagged with the gateway's correlation ids:
- request_id: the HTTP request (X-Request-ID)
- completion_id: the chat completion / audit request record
- user_id: caller-supplied user, when present

Credentials this service handles (model keys, the UnifAI key, proxy and
database URLs) are masked in messages and in `extra` fields.
"""

import json
import logging
import re
import sys
import traceback
from collections.abc import Sequence
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# ============================================================
# CONTEXT VARIABLES
# ============================================================

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
completion_id_var: ContextVar[str | None] = ContextVar("completion_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)

_CONTEXT_VARS = {
    "request_id": request_id_var,
    "completion_id": completion_id_var,
    "user_id": user_id_var,
}


def set_request_context(
    request_id: str | None = None,
    completion_id: str | None = None,
    user_id: str | None = None,
):
    """Tag subsequent log lines of this task; None leaves a value unchanged."""
    values = {"request_id": request_id, "completion_id": completion_id, "user_id": user_id}
    for name, value in values.items():
        if value:
            _CONTEXT_VARS[name].set(value)


def clear_request_context():
    for var in _CONTEXT_VARS.values():
        var.set(None)


def get_request_context() -> dict[str, str | None]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


# ============================================================
# CREDENTIAL MASKING
# ============================================================

# Keys whose values are never logged
SENSITIVE_KEYS = ("api_key", "apikey", "authorization", "password", "secret")

# OpenRouter / Anthropic / OpenAI keys and bearer tokens; first characters kept
_KEY_PATTERN = re.compile(r"\b(sk-(?:or-v1-|ant-|proj-)?[A-Za-z0-9]{2})[A-Za-z0-9_\-]{8,}")
_BEARER_PATTERN = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)

# user:password@ in proxy and database URLs
_URL_PASSWORD_PATTERN = re.compile(r"(://[^:/@\s]+):[^@/\s]+@")


def mask_url(url: str) -> str:
    """Hide the password part of a URL (proxy, database)."""
    return _URL_PASSWORD_PATTERN.sub(r"\1:***@", url)


def mask_text(text: str) -> str:
    """Mask credential-shaped substrings in free text."""
    text = _KEY_PATTERN.sub(r"\1...[REDACTED]", text)
    text = _BEARER_PATTERN.sub(r"\1[REDACTED]", text)
    return mask_url(text)


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """Recursively mask sensitive keys and credential-shaped strings."""
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]"
            if any(s in str(key).lower() for s in SENSITIVE_KEYS)
            else mask_sensitive_data(value, depth + 1, max_depth)
            for key, value in data.items()
        }
    if isinstance(data, list | tuple):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]
    if isinstance(data, str):
        return mask_text(data)
    return data


def mask_secret(value: str | None) -> str:
    """Short display form of a credential."""
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "[REDACTED]"
    return f"{value[:6]}...[REDACTED]"


# ============================================================
# FORMATTERS
# ============================================================

# Attributes every LogRecord carries; anything else came in via `extra`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """
    Single-line JSON for log aggregators.

    Fields: timestamp, level, logger, message, the correlation ids that
    are set, `source` (module:function:line), `error` when exc_info is
    present, and `extra` for anything passed through `extra=`.
    """

    def __init__(self, mask_sensitive: bool = True):
        super().__init__()
        self.mask_sensitive = mask_sensitive

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": mask_text(message) if self.mask_sensitive else message,
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update({k: v for k, v in get_request_context().items() if v})

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "stack": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        extra = _extra_fields(record)
        if extra:
            entry["extra"] = mask_sensitive_data(extra) if self.mask_sensitive else extra

        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Readable lines for development; ids shortened inline."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_request_context()
        tags = []
        if ctx["request_id"]:
            tags.append(f"req={ctx['request_id'][:8]}")
        if ctx["completion_id"]:
            tags.append(f"cmpl={ctx['completion_id'][-8:]}")
        if ctx["user_id"]:
            tags.append(f"user={ctx['user_id']}")
        prefix = f"[{' '.join(tags)}] " if tags else ""

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"

        timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%H:%M:%S.%f")[:-3]
        line = f"{timestamp} {level:8} {record.name} {prefix}{mask_text(record.getMessage())}"

        if record.exc_info:
            line = f"{line}\n{''.join(traceback.format_exception(*record.exc_info))}"
        return line


# ============================================================
# CONFIGURATION
# ============================================================

# Client libraries that log every HTTP exchange at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "unifai", "sqlalchemy.engine")


def configure_logging(level: str = "INFO", format: str = "json", mask_sensitive: bool = True):
    """
    Install one stdout handler on the root logger.

    `format` is "json" (production) or "human" (development). Colors are
    used only when stdout is a terminal.
    """
    if format == "json":
        formatter: logging.Formatter = JSONFormatter(mask_sensitive=mask_sensitive)
    else:
        formatter = HumanFormatter(use_colors=sys.stdout.isatty())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


# ============================================================
# EVENT HELPERS
# ============================================================

_request_logger = logging.getLogger("toolrelay.request")
_llm_logger = logging.getLogger("toolrelay.llm")
_tools_logger = logging.getLogger("toolrelay.tools")


def log_request_end(method: str, path: str, status_code: int, duration_ms: float):
    """One line per HTTP request; 4xx as WARNING, 5xx as ERROR."""
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    _request_logger.log(
        level,
        f"{method} {path} -> {status_code} ({duration_ms:.1f}ms)",
        extra={"event": "request_end", "status_code": status_code, "duration_ms": duration_ms},
    )


def log_llm_request(
    provider: str,
    model: str,
    tokens_input: int,
    tokens_output: int,
    duration_ms: float,
    success: bool = True,
    error: str | None = None,
):
    """One line per upstream model call."""
    if success:
        message = (
            f"Model call {provider}/{model}: {tokens_input}+{tokens_output} tokens "
            f"in {duration_ms:.1f}ms"
        )
    else:
        message = f"Model call {provider}/{model} failed after {duration_ms:.1f}ms: {error}"

    _llm_logger.log(
        logging.INFO if success else logging.ERROR,
        message,
        extra={
            "event": "llm_request",
            "provider": provider,
            "model": model,
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "duration_ms": duration_ms,
            "success": success,
        },
    )


def log_tool_batch(tool_names: Sequence[str], failed: int, duration_ms: int):
    """One line per executed tool batch."""
    _tools_logger.log(
        logging.WARNING if failed else logging.INFO,
        f"Tool batch [{', '.join(tool_names)}]: {len(tool_names) - failed} ok, "
        f"{failed} failed ({duration_ms}ms)",
        extra={
            "event": "tool_batch",
            "tools": list(tool_names),
            "failed": failed,
            "duration_ms": duration_ms,
        },
    )


__all__ = [
    # Context
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "request_id_var",
    "completion_id_var",
    "user_id_var",
    # Masking
    "mask_sensitive_data",
    "mask_secret",
    "mask_text",
    "mask_url",
    # Formatting
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Events
    "log_request_end",
    "log_llm_request",
    "log_tool_batch",
]
