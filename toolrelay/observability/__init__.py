# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Observability Module

Components:
- metrics: Prometheus metrics registry
- logging: Structured logging with request context
"""

from .logging import (
    HumanFormatter,
    JSONFormatter,
    clear_request_context,
    configure_logging,
    get_request_context,
    log_llm_request,
    log_request_end,
    log_tool_batch,
    mask_secret,
    mask_sensitive_data,
    mask_text,
    mask_url,
    set_request_context,
)
from .metrics import (
    ITERATION_BUCKETS,
    LATENCY_BUCKETS,
    MetricsRegistry,
    init_metrics,
)

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "log_request_end",
    "log_llm_request",
    "log_tool_batch",
    "mask_secret",
    "mask_sensitive_data",
    "mask_text",
    "mask_url",
    # Metrics
    "MetricsRegistry",
    "init_metrics",
    "LATENCY_BUCKETS",
    "ITERATION_BUCKETS",
]
