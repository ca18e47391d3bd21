# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Health Check and Metrics Endpoints

- /health  - liveness, no dependency checks
- /metrics - Prometheus exposition of the app's registry
"""

import logging

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from ..core.async_base import utcnow
from .chat_routes import get_container

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Returns 200 while the process is serving."""
    settings = get_container(request).settings
    return HealthResponse(
        status="ok",
        timestamp=utcnow().isoformat().replace("+00:00", "Z"),
        version=settings.app_version,
    )


@router.get("/metrics")
async def prometheus_metrics(request: Request):
    """
    Metrics in Prometheus format.

    Prometheus config:
        - job_name: 'toolrelay'
          static_configs:
            - targets: ['localhost:3000']
          metrics_path: '/metrics'
    """
    metrics = get_container(request).metrics
    return Response(content=metrics.generate_latest(), media_type=metrics.content_type())


__all__ = ["router", "HealthResponse"]
