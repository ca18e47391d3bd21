# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Token Analysis Routes

- POST /v1/tokenAnalysis/analyze - run an analysis, publish it under /public
- GET  /v1/tokenAnalysis/tools   - tools available to the analysis
"""

import logging

from fastapi import APIRouter, Header, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from ..core.tools import ToolSelection
from .chat_routes import get_container

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/tokenAnalysis", tags=["Token Analysis"])


class AnalyzeRequest(BaseModel):
    """Request body for a token analysis."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query: str = Field(..., min_length=1)
    static_toolkits: list[str] | None = Field(default=None, alias="staticToolkits")
    static_actions: list[str] | None = Field(default=None, alias="staticActions")


@router.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    request: Request,
    user_id: str | None = Header(default=None, alias="user-id"),
):
    """Run the analysis and return the public URL of the generated page."""
    service = get_container(request).analysis_service()
    report = await service.analyze(
        body.query,
        static_toolkits=body.static_toolkits,
        static_actions=body.static_actions,
        user_id=user_id,
    )
    return report.to_dict(str(request.base_url))


@router.get("/tools")
async def list_tools(
    request: Request,
    static_toolkits: str | None = Query(default=None, alias="staticToolkits"),
    static_actions: str | None = Query(default=None, alias="staticActions"),
):
    """List tools, optionally narrowed by comma-separated toolkits/actions."""
    service = get_container(request).analysis_service()
    selection = ToolSelection.from_csv(static_toolkits, static_actions)
    tools = await service.list_tools(selection.static_toolkits, selection.static_actions)
    return {"success": True, "tools": tools, "count": len(tools)}


__all__ = ["router", "AnalyzeRequest"]
