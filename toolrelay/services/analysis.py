# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Token Analysis Service

Runs a fixed crypto-token analysis prompt through the tool-call loop and
publishes the model's answer as a static HTML page under the public
directory. The answer is treated as opaque markup.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles

from toolrelay_core import InternalError

from ..core.async_base import epoch_ms, utcnow
from ..core.tools import ToolSelection
from .orchestrator import ChatRequest

if TYPE_CHECKING:
    from .container import ServiceContainer

logger = logging.getLogger(__name__)

TOKEN_ANALYSIS_PROMPT = """
You are a specialized AI assistant for comprehensive cryptocurrency token analysis.
Your task is to perform multi-dimensional analysis of cryptocurrency tokens (like BTC, ETH, BNB, etc.) using available tools.

When analyzing crypto tokens, you should:
1. Search for relevant cryptocurrency market data and analysis tools
2. Gather real-time price data, trading volume, and market capitalization
3. Analyze historical price trends, patterns, and technical indicators
4. Examine tokenomics: total supply, circulating supply, inflation rate
5. Assess market sentiment, social media buzz, and community activity
6. Provide insights on fundamental analysis: use cases, partnerships, development activity
7. Generate comprehensive reports with charts and visualizations when possible
8. Compare with similar tokens in the same category/sector

Always use tools to gather current data rather than relying on potentially outdated information.
Format your final response as a comprehensive HTML report with charts, tables, and detailed analysis.
Focus on actionable insights for investors and traders.
""".strip()

EMPTY_ANALYSIS = "Token analysis completed, but no content was generated"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def report_file_name() -> str:
    return f"analysis-{epoch_ms()}-{random_suffix()}.html"


def render_html(answer: str, lang: str = "en") -> str:
    return f'<!DOCTYPE html>\n<html lang="{lang}">\n{answer}\n</html>'


@dataclass
class AnalysisReport:
    """A published analysis page."""

    request_id: str
    file_name: str
    path: Path
    content: str
    finish_reason: str
    tools_used: list[str]
    timestamp: datetime

    def to_dict(self, base_url: str) -> dict[str, Any]:
        return {
            "success": True,
            "url": f"{base_url.rstrip('/')}/public/{self.file_name}",
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
        }


class TokenAnalysisService:
    """
    Crypto-token analysis over the shared tool-call loop.

    Usage:
        service = container.analysis_service()
        report = await service.analyze("Analyze ETH", static_toolkits=["coingecko"])
    """

    def __init__(self, container: "ServiceContainer"):
        self.container = container
        self.settings = container.settings.analysis
        self.public_dir = Path(self.settings.public_dir)

    async def list_tools(
        self,
        static_toolkits: list[str] | None = None,
        static_actions: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        selection = ToolSelection.from_lists(True, static_toolkits, static_actions)
        tools = await self.container.tool_provider.list_tools(selection)
        return [
            {"name": t.name, "description": t.description, "type": t.type or "function"}
            for t in tools
        ]

    async def analyze(
        self,
        query: str,
        static_toolkits: list[str] | None = None,
        static_actions: list[str] | None = None,
        user_id: str | None = None,
    ) -> AnalysisReport:
        chat = self.container.chat_service()
        request = ChatRequest(
            model=self.settings.model,
            messages=[
                {"role": "system", "content": TOKEN_ANALYSIS_PROMPT},
                {"role": "user", "content": query},
            ],
        )

        logger.info(
            f"Starting token analysis: query={query[:100]!r} "
            f"toolkits={static_toolkits} actions={static_actions}"
        )

        prepared = await chat.prepare(
            request,
            request_id=f"crypto-token-analysis-{epoch_ms()}-{random_suffix()}",
            user_id=user_id or "anonymous",
            selection=ToolSelection.from_lists(True, static_toolkits, static_actions),
            record_messages=[{"role": "user", "content": query}],
        )
        result, _ = await chat.run(prepared)

        answer = result.final_content or EMPTY_ANALYSIS
        file_name = report_file_name()
        path = await self.write_report(file_name, answer)

        return AnalysisReport(
            request_id=prepared.request_id,
            file_name=file_name,
            path=path,
            content=answer,
            finish_reason=str(result.finish_reason),
            tools_used=result.tools_used,
            timestamp=utcnow(),
        )

    async def write_report(self, file_name: str, answer: str) -> Path:
        """Write the page and wait for it to land before returning."""
        path = self.public_dir / file_name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(render_html(answer))
        except OSError as e:
            logger.error(f"Failed to write analysis page {path}: {e}")
            raise InternalError("Failed to generate static page", details={"path": str(path)}) from e

        logger.info(f"Analysis page written: {path}")
        return path


__all__ = [
    "TOKEN_ANALYSIS_PROMPT",
    "EMPTY_ANALYSIS",
    "AnalysisReport",
    "TokenAnalysisService",
    "render_html",
    "report_file_name",
]
