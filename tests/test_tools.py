"""
Tool Provider Tests
===================

Result parsing and the UnifAI client wrapper, first against a stub client,
then against the real SDK client with its HTTP layer replaced.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from toolrelay.core.tools import (
    ToolSelection,
    UnifAIToolProvider,
    infer_success,
    parse_tool_result,
)
from toolrelay_core import ToolProviderError

from conftest import tool_call


class StubUnifAI:
    """Records calls; returns or raises what it is given."""

    def __init__(self, tools=None, results=None, error=None, delay=0.0):
        self.tools = tools if tools is not None else []
        self.results = results if results is not None else []
        self.error = error
        self.delay = delay
        self.get_tools_kwargs = None
        self.call_tools_args = []

    async def get_tools(self, **kwargs):
        self.get_tools_kwargs = kwargs
        if self.error:
            raise self.error
        return self.tools

    async def call_tools(self, tool_calls):
        self.call_tools_args.append(tool_calls)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.results


def provider_with(stub, **kwargs):
    provider = UnifAIToolProvider(api_key="k", **kwargs)
    provider._client = stub
    return provider


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestResultParsing:
    def test_error_payload_is_failure(self):
        assert infer_success('{"error": "boom"}') is False
        assert infer_success({"error": "boom"}) is False

    def test_plain_content_is_success(self):
        assert infer_success("42") is True
        assert infer_success("not json at all") is True
        assert infer_success('{"value": 1}') is True

    def test_parse_dict_result(self):
        parsed = parse_tool_result({"role": "tool", "tool_call_id": "a", "content": "42"})
        assert parsed.tool_call_id == "a"
        assert parsed.content == "42"
        assert parsed.success is True

    def test_parse_object_result_with_explicit_success(self):
        parsed = parse_tool_result(SimpleNamespace(tool_call_id="a", content="x", success=False))
        assert parsed.success is False

    def test_result_without_id_is_dropped(self):
        assert parse_tool_result({"content": "orphan"}) is None

    def test_selection_from_csv(self):
        selection = ToolSelection.from_csv("coingecko, dexscreener", "", dynamic_tools=False)
        assert selection.static_toolkits == ("coingecko", "dexscreener")
        assert selection.static_actions is None
        assert selection.dynamic_tools is False


# ---------------------------------------------------------------------------
# UnifAI provider
# ---------------------------------------------------------------------------


class TestUnifAIToolProvider:
    @pytest.mark.asyncio
    async def test_list_tools_forwards_selection(self):
        stub = StubUnifAI(
            tools=[{"type": "function", "function": {"name": "search", "description": "s"}}]
        )
        provider = provider_with(stub)

        tools = await provider.list_tools(ToolSelection.from_lists(True, ["coingecko"], None))

        assert [t.name for t in tools] == ["search"]
        assert stub.get_tools_kwargs == {
            "dynamic_tools": True,
            "static_toolkits": ["coingecko"],
            "static_actions": None,
        }

    @pytest.mark.asyncio
    async def test_list_tools_failure_raises(self):
        provider = provider_with(StubUnifAI(error=RuntimeError("down")))
        with pytest.raises(ToolProviderError) as exc:
            await provider.list_tools()
        assert exc.value.code == "tool_provider_error"

    @pytest.mark.asyncio
    async def test_malformed_schema_raises(self):
        provider = provider_with(StubUnifAI(tools=[{"type": "function", "function": {}}]))
        with pytest.raises(ToolProviderError):
            await provider.list_tools()

    @pytest.mark.asyncio
    async def test_empty_batch_skips_upstream(self):
        stub = StubUnifAI()
        provider = provider_with(stub)
        assert await provider.invoke([]) == []
        assert stub.call_tools_args == []

    @pytest.mark.asyncio
    async def test_invoke_sends_openai_tool_calls(self):
        stub = StubUnifAI(
            results=[
                {"role": "tool", "tool_call_id": "b", "content": '{"error": "nope"}'},
                {"role": "tool", "tool_call_id": "a", "content": "42"},
            ]
        )
        provider = provider_with(stub)

        results = await provider.invoke([tool_call("a", "lookup"), tool_call("b", "lookup")])

        sent = stub.call_tools_args[0]
        assert [tc.id for tc in sent] == ["a", "b"]
        assert sent[0].function.name == "lookup"
        by_id = {r.tool_call_id: r for r in results}
        assert by_id["a"].success is True
        assert by_id["b"].success is False

    @pytest.mark.asyncio
    async def test_invoke_outage_raises(self):
        provider = provider_with(StubUnifAI(error=ConnectionError("reset")))
        with pytest.raises(ToolProviderError) as exc:
            await provider.invoke([tool_call("a", "lookup")])
        assert exc.value.details.get("operation") == "invoke"

    @pytest.mark.asyncio
    async def test_invoke_timeout_raises(self):
        provider = provider_with(StubUnifAI(delay=1.0), invoke_timeout=0.01)
        with pytest.raises(ToolProviderError, match="timed out"):
            await provider.invoke([tool_call("a", "lookup")])


class TestUnifAISDKContract:
    """The real `unifai.Tools` client with only its HTTP layer replaced."""

    @pytest.fixture
    def sdk_provider(self):
        unifai = pytest.importorskip("unifai")
        provider = UnifAIToolProvider(api_key="k")
        provider._client = unifai.Tools(api_key="k")
        return provider

    @pytest.mark.asyncio
    async def test_invoke_through_sdk(self, sdk_provider):
        sent = []

        async def call_tool(arguments):
            sent.append(arguments)
            return {"price": 42}

        sdk_provider._client._api.call_tool = call_tool

        results = await sdk_provider.invoke([tool_call("a", "lookup", {"key": "eth"})])

        assert sent == [{"action": "lookup", "key": "eth"}]
        assert len(results) == 1
        assert results[0].tool_call_id == "a"
        assert json.loads(results[0].content) == {"price": 42}
        assert results[0].success is True

    @pytest.mark.asyncio
    async def test_upstream_failure_becomes_failed_result(self, sdk_provider):
        async def call_tool(arguments):
            raise RuntimeError("action not found")

        sdk_provider._client._api.call_tool = call_tool

        [result] = await sdk_provider.invoke([tool_call("a", "lookup")])

        assert result.success is False
        assert "action not found" in json.loads(result.content)["error"]

    @pytest.mark.asyncio
    async def test_close_releases_http_client(self, sdk_provider):
        http_client = sdk_provider._client._api.client

        await sdk_provider.close()

        assert http_client.is_closed
        assert sdk_provider._client is None
        # Closing twice is harmless
        await sdk_provider.close()
