# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Service Container

Process-wide collaborators, created lazily and shared by every request:
model provider, tool provider, audit store, metrics. Tests pass fakes
in through the constructor.
"""

import logging

from ..core.providers_async import AsyncModelProvider, create_model_provider
from ..core.settings import Settings, get_settings
from ..core.tools import ToolProvider, create_tool_provider
from ..data.store import AuditStore, create_audit_store
from ..observability.metrics import MetricsRegistry, init_metrics
from .analysis import TokenAnalysisService
from .audit import AuditRecorder
from .orchestrator import ChatCompletionService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Holds the shared collaborators of one application instance."""

    def __init__(
        self,
        settings: Settings | None = None,
        model_provider: AsyncModelProvider | None = None,
        tool_provider: ToolProvider | None = None,
        store: AuditStore | None = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.settings = settings or get_settings()
        self._model_provider = model_provider
        self._tool_provider = tool_provider
        self.store = store or create_audit_store(
            self.settings.database.url, echo=self.settings.database.echo
        )
        self.metrics = metrics or init_metrics(
            app_version=self.settings.app_version,
            environment=self.settings.environment,
        )
        self.recorder = AuditRecorder(self.store, self.metrics)

    @property
    def model_provider(self) -> AsyncModelProvider:
        """Created on first use; raises ProviderConfigError without a credential."""
        if self._model_provider is None:
            self._model_provider = create_model_provider(self.settings.llm)
        return self._model_provider

    @property
    def tool_provider(self) -> ToolProvider:
        if self._tool_provider is None:
            self._tool_provider = create_tool_provider(self.settings.tools)
        return self._tool_provider

    def chat_service(self) -> ChatCompletionService:
        return ChatCompletionService(self)

    def analysis_service(self) -> TokenAnalysisService:
        return TokenAnalysisService(self)

    async def startup(self) -> None:
        await self.store.initialize()

    async def shutdown(self) -> None:
        if self._model_provider is not None:
            await self._model_provider.close()
        if self._tool_provider is not None:
            await self._tool_provider.close()
        await self.store.close()


__all__ = ["ServiceContainer"]
