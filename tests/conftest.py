"""
Toolrelay Test Suite - Shared Fixtures
======================================

Scripted fakes for the two upstreams (model and tool provider), plus a
settings/container/app stack wired to them with an in-memory audit store.
"""

import json
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from fastapi.testclient import TestClient

from toolrelay.core.conversation import (
    Message,
    Role,
    ToolCallRequest,
    ToolCallResult,
    ToolDescriptor,
    Usage,
)
from toolrelay.core.providers_async import (
    AsyncModelProvider,
    Completion,
    ModelBackend,
    SamplingParams,
)
from toolrelay.core.settings import (
    AnalysisSettings,
    DatabaseSettings,
    LLMSettings,
    LoopSettings,
    ObservabilitySettings,
    Settings,
    ToolSettings,
)
from toolrelay.core.tools import ToolProvider, ToolSelection
from toolrelay.data.store import InMemoryAuditStore
from toolrelay.gateway.app import create_app
from toolrelay.observability.metrics import MetricsRegistry
from toolrelay.services.container import ServiceContainer

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def tool_call(call_id: str, name: str, arguments: dict[str, Any] | None = None) -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=json.dumps(arguments or {}))


def completion(
    content: str | None = None,
    tool_calls: Sequence[ToolCallRequest] = (),
    usage: tuple[int, int, int] = (10, 5, 15),
    finish_reason: str | None = None,
) -> Completion:
    """One scripted assistant turn."""
    return Completion(
        message=Message(role=Role.ASSISTANT, content=content, tool_calls=list(tool_calls)),
        usage=Usage(*usage),
        finish_reason=finish_reason or ("tool_calls" if tool_calls else "stop"),
    )


def result(call_id: str, content: Any, success: bool = True) -> ToolCallResult:
    return ToolCallResult(tool_call_id=call_id, content=content, success=success)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeModelProvider(AsyncModelProvider):
    """Returns scripted completions in order; an Exception entry is raised."""

    backend = ModelBackend.OPENROUTER

    def __init__(self, script: Sequence[Completion | Exception] = ()):
        self.script = list(script)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    async def _complete(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor],
        model: str,
        params: SamplingParams,
    ) -> Completion:
        self.calls.append(
            {
                "messages": [m.to_dict() for m in messages],
                "tools": [t.name for t in tools],
                "model": model,
                "params": params,
            }
        )
        if not self.script:
            raise AssertionError("FakeModelProvider script exhausted")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    async def close(self) -> None:
        self.closed = True


class FakeToolProvider(ToolProvider):
    """
    Scripted tool provider.

    `results` is a list of batches (one per invoke) or a callable taking
    the batch.
    """

    def __init__(
        self,
        tools: Sequence[ToolDescriptor] = (),
        results: list[list[ToolCallResult]] | Callable[..., list[ToolCallResult]] | None = None,
        list_error: Exception | None = None,
        invoke_error: Exception | None = None,
    ):
        self.tools = list(tools)
        self.results = results if results is not None else []
        self.list_error = list_error
        self.invoke_error = invoke_error
        self.invocations: list[list[ToolCallRequest]] = []
        self.selections: list[ToolSelection | None] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake-tools"

    async def list_tools(self, selection: ToolSelection | None = None) -> list[ToolDescriptor]:
        self.selections.append(selection)
        if self.list_error:
            raise self.list_error
        return list(self.tools)

    async def invoke(self, batch: Sequence[ToolCallRequest]) -> list[ToolCallResult]:
        self.invocations.append(list(batch))
        if self.invoke_error:
            raise self.invoke_error
        if callable(self.results):
            return self.results(batch)
        if not self.results:
            return []
        return self.results.pop(0)

    async def close(self) -> None:
        self.closed = True


LOOKUP_TOOL = ToolDescriptor(
    name="lookup",
    description="Look up a value",
    parameters={"type": "object", "properties": {"key": {"type": "string"}}},
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def public_dir(tmp_path):
    return tmp_path / "public"


@pytest.fixture
def settings(public_dir):
    return Settings(
        environment="test",
        llm=LLMSettings(api_key="sk-or-test-key"),
        tools=ToolSettings(api_key="unifai-test-key"),
        loop=LoopSettings(max_iterations=25),
        database=DatabaseSettings(url="memory://"),
        analysis=AnalysisSettings(public_dir=str(public_dir)),
        observability=ObservabilitySettings(log_level="WARNING", log_format="human"),
    )


@pytest.fixture
def model_provider():
    return FakeModelProvider()


@pytest.fixture
def tool_provider():
    return FakeToolProvider(tools=[LOOKUP_TOOL])


@pytest.fixture
def store():
    return InMemoryAuditStore()


@pytest.fixture
def metrics():
    return MetricsRegistry()


@pytest.fixture
def container(settings, model_provider, tool_provider, store, metrics):
    return ServiceContainer(
        settings=settings,
        model_provider=model_provider,
        tool_provider=tool_provider,
        store=store,
        metrics=metrics,
    )


@pytest.fixture
def app(settings, container):
    return create_app(settings=settings, container=container)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
