# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Observability - Metrics Module

Prometheus metrics for:
- Request latency and throughput
- Upstream model call performance
- Tool call outcomes
- Token usage
- Tool-call loop depth

Each MetricsRegistry owns its own CollectorRegistry so that several
application instances (one per test, for example) can coexist.
"""

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

logger = logging.getLogger(__name__)


# ============================================================
# METRIC DEFINITIONS
# ============================================================

# Default buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
)

# Loop iteration buckets
ITERATION_BUCKETS = (1, 2, 3, 4, 5, 8, 12, 16, 25, 50)


class MetricsRegistry:
    """
    Central metrics registry for Toolrelay.
    """

    def __init__(self, namespace: str = "toolrelay", registry: CollectorRegistry | None = None):
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()
        self._init_prometheus_metrics()

    def _init_prometheus_metrics(self):
        """Initialize Prometheus metrics."""
        ns = self.namespace
        reg = self.registry

        # ============================================================
        # HTTP REQUEST METRICS
        # ============================================================

        self.http_requests_total = Counter(
            f"{ns}_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=reg,
        )

        self.http_request_duration_seconds = Histogram(
            f"{ns}_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=LATENCY_BUCKETS,
            registry=reg,
        )

        # ============================================================
        # MODEL METRICS
        # ============================================================

        self.model_calls_total = Counter(
            f"{ns}_model_calls_total",
            "Upstream model calls",
            ["backend", "status"],
            registry=reg,
        )

        self.model_call_duration_seconds = Histogram(
            f"{ns}_model_call_duration_seconds",
            "Upstream model call duration in seconds",
            ["backend"],
            buckets=LATENCY_BUCKETS,
            registry=reg,
        )

        self.tokens_total = Counter(
            f"{ns}_tokens_total",
            "Tokens consumed",
            ["model", "direction"],
            registry=reg,
        )

        # ============================================================
        # TOOL METRICS
        # ============================================================

        self.tool_calls_total = Counter(
            f"{ns}_tool_calls_total",
            "Tool calls executed",
            ["tool_name", "status"],
            registry=reg,
        )

        self.loop_iterations = Histogram(
            f"{ns}_loop_iterations",
            "Model calls per tool-call loop",
            ["finish_reason"],
            buckets=ITERATION_BUCKETS,
            registry=reg,
        )

        # ============================================================
        # APP INFO
        # ============================================================

        self.app_info = Info(f"{ns}_app", "Application information", registry=reg)

    # ============================================================
    # RECORDING HELPERS
    # ============================================================

    def set_app_info(self, version: str, environment: str):
        self.app_info.info({"version": version, "environment": environment})

    def record_http_request(
        self, method: str, endpoint: str, status_code: int, duration_seconds: float
    ):
        """Record an HTTP request."""
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()
        self.http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

    def record_model_call(self, backend: str, success: bool, duration_seconds: float):
        """Record one upstream model call."""
        self.model_calls_total.labels(
            backend=backend, status="success" if success else "error"
        ).inc()
        self.model_call_duration_seconds.labels(backend=backend).observe(duration_seconds)

    def record_tokens(self, model: str, prompt_tokens: int, completion_tokens: int):
        """Record token usage for one request."""
        if prompt_tokens:
            self.tokens_total.labels(model=model, direction="prompt").inc(prompt_tokens)
        if completion_tokens:
            self.tokens_total.labels(model=model, direction="completion").inc(completion_tokens)

    def record_tool_call(self, tool_name: str, success: bool):
        """Record a tool execution."""
        self.tool_calls_total.labels(
            tool_name=tool_name, status="success" if success else "error"
        ).inc()

    def record_loop(self, finish_reason: str, iterations: int):
        """Record a finished tool-call loop."""
        self.loop_iterations.labels(finish_reason=finish_reason).observe(iterations)

    def generate_latest(self) -> bytes:
        """Generate Prometheus exposition format."""
        return generate_latest(self.registry)

    def content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


def init_metrics(
    namespace: str = "toolrelay",
    app_version: str = "0.0.0",
    environment: str = "development",
) -> MetricsRegistry:
    """Create a metrics registry with application info set."""
    metrics = MetricsRegistry(namespace=namespace)
    metrics.set_app_info(version=app_version, environment=environment)
    logger.info("Metrics initialized")
    return metrics


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "MetricsRegistry",
    "init_metrics",
    "LATENCY_BUCKETS",
    "ITERATION_BUCKETS",
]
