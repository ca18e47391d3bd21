"""
Model Provider Tests
====================

Backend selection, model-name translation, wire conversion for both SDK
backends, and SDK error mapping. SDK clients are replaced with stubs that
capture the request keyword arguments.
"""

from types import SimpleNamespace

import httpx
import openai
import pytest

from toolrelay.core.conversation import Message, Role, ToolDescriptor
from toolrelay.core.providers_async import (
    AsyncAnthropicProvider,
    AsyncOpenRouterProvider,
    ModelBackend,
    SamplingParams,
    _map_sdk_error,
    create_model_provider,
    select_backend,
    translate_model_name,
)
from toolrelay.core.settings import LLMSettings
from toolrelay_core import (
    ModelAuthError,
    ProviderConfigError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)

from conftest import LOOKUP_TOOL, tool_call


class CapturingCreate:
    """Async stand-in for an SDK `create` method."""

    def __init__(self, response):
        self.response = response
        self.kwargs = None

    async def __call__(self, **kwargs):
        self.kwargs = kwargs
        return self.response


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


class TestBackendSelection:
    def test_anthropic_prefix(self):
        assert select_backend("sk-ant-abc") == ModelBackend.ANTHROPIC

    def test_everything_else_is_openrouter(self):
        assert select_backend("sk-or-v1-abc") == ModelBackend.OPENROUTER
        assert select_backend(None) == ModelBackend.OPENROUTER

    def test_anthropic_strips_vendor_prefix(self):
        assert (
            translate_model_name(ModelBackend.ANTHROPIC, "anthropic/claude-3-7-sonnet-20250219")
            == "claude-3-7-sonnet-20250219"
        )

    def test_openrouter_keeps_name(self):
        assert translate_model_name(ModelBackend.OPENROUTER, "anthropic/x") == "anthropic/x"

    def test_factory_requires_credential(self):
        with pytest.raises(ProviderConfigError):
            create_model_provider(LLMSettings(api_key=None))

    def test_factory_picks_backend_from_key(self):
        provider = create_model_provider(LLMSettings(api_key="sk-ant-test"))
        assert isinstance(provider, AsyncAnthropicProvider)

        provider = create_model_provider(LLMSettings(api_key="sk-or-test"))
        assert isinstance(provider, AsyncOpenRouterProvider)


def test_sampling_params_only_set_fields():
    params = SamplingParams(temperature=0.2, max_tokens=100)
    assert params.to_dict() == {"temperature": 0.2, "max_tokens": 100}


# ---------------------------------------------------------------------------
# OpenRouter
# ---------------------------------------------------------------------------


def openai_response(content="hi", tool_calls=None, usage=(10, 5, 15), finish_reason="stop"):
    return SimpleNamespace(
        model="upstream-model",
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ],
        usage=SimpleNamespace(
            prompt_tokens=usage[0], completion_tokens=usage[1], total_tokens=usage[2]
        )
        if usage
        else None,
    )


def stub_openai(provider, response):
    create = CapturingCreate(response)
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return create


class TestOpenRouterProvider:
    @pytest.mark.asyncio
    async def test_passes_wire_messages_and_tools(self):
        provider = AsyncOpenRouterProvider(api_key="k")
        create = stub_openai(provider, openai_response())
        messages = [Message(role=Role.USER, content="hi")]

        result = await provider.complete(
            messages, [LOOKUP_TOOL], "openai/gpt-4o", SamplingParams(temperature=0.5)
        )

        assert create.kwargs["model"] == "openai/gpt-4o"
        assert create.kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert create.kwargs["tools"][0]["function"]["name"] == "lookup"
        assert create.kwargs["temperature"] == 0.5
        assert result.message.content == "hi"
        assert result.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_tool_choice_dropped_without_tools(self):
        provider = AsyncOpenRouterProvider(api_key="k")
        create = stub_openai(provider, openai_response())

        await provider.complete(
            [Message(role=Role.USER, content="hi")], [], "m", SamplingParams(tool_choice="auto")
        )

        assert "tools" not in create.kwargs
        assert "tool_choice" not in create.kwargs

    @pytest.mark.asyncio
    async def test_parses_tool_calls_and_missing_usage(self):
        provider = AsyncOpenRouterProvider(api_key="k")
        raw_call = SimpleNamespace(
            id="a", function=SimpleNamespace(name="lookup", arguments='{"key": "x"}')
        )
        stub_openai(
            provider,
            openai_response(content=None, tool_calls=[raw_call], usage=None, finish_reason=None),
        )

        result = await provider.complete([Message(role=Role.USER, content="hi")], [], "m")

        assert result.has_tool_calls
        assert result.message.tool_calls[0].parsed_arguments() == {"key": "x"}
        assert result.finish_reason == "tool_calls"
        assert result.usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_no_choices_is_response_error(self):
        provider = AsyncOpenRouterProvider(api_key="k")
        stub_openai(provider, SimpleNamespace(model="m", choices=[], usage=None))
        with pytest.raises(ProviderResponseError):
            await provider.complete([Message(role=Role.USER, content="hi")], [], "m")


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropicConversion:
    def test_system_hoisted_and_tool_turns_converted(self):
        provider = AsyncAnthropicProvider(api_key="sk-ant-x")
        messages = [
            Message(role=Role.SYSTEM, content="be brief"),
            Message(role=Role.USER, content="hi"),
            Message(
                role=Role.ASSISTANT,
                content="checking",
                tool_calls=[tool_call("a", "lookup", {"key": "x"}), tool_call("b", "lookup")],
            ),
            Message(role=Role.TOOL, content="1", tool_call_id="a"),
            Message(role=Role.TOOL, content="2", tool_call_id="b"),
        ]

        system, converted = provider._convert_messages(messages)

        assert system == "be brief"
        assert [m["role"] for m in converted] == ["user", "assistant", "user"]
        assistant_blocks = converted[1]["content"]
        assert assistant_blocks[0] == {"type": "text", "text": "checking"}
        assert assistant_blocks[1] == {
            "type": "tool_use",
            "id": "a",
            "name": "lookup",
            "input": {"key": "x"},
        }
        # Consecutive tool results share one user turn
        assert [b["tool_use_id"] for b in converted[2]["content"]] == ["a", "b"]

    def test_empty_schema_gets_object_default(self):
        provider = AsyncAnthropicProvider(api_key="sk-ant-x")
        converted = provider._convert_tools([ToolDescriptor(name="ping")])
        assert converted[0]["input_schema"] == {"type": "object", "properties": {}}

    def test_tool_choice_mapping(self):
        provider = AsyncAnthropicProvider(api_key="sk-ant-x")
        assert provider._convert_tool_choice("required") == {"type": "any"}
        assert provider._convert_tool_choice(
            {"type": "function", "function": {"name": "lookup"}}
        ) == {"type": "tool", "name": "lookup"}

    @pytest.mark.asyncio
    async def test_request_and_response(self):
        provider = AsyncAnthropicProvider(api_key="sk-ant-x", default_max_tokens=512)
        response = SimpleNamespace(
            model="claude-3-7-sonnet-20250219",
            content=[
                SimpleNamespace(type="text", text="let me look"),
                SimpleNamespace(type="tool_use", id="t1", name="lookup", input={"key": "x"}),
            ],
            usage=SimpleNamespace(input_tokens=12, output_tokens=4),
            stop_reason="tool_use",
        )
        create = CapturingCreate(response)
        provider._client = SimpleNamespace(messages=SimpleNamespace(create=create))

        result = await provider.complete(
            [Message(role=Role.USER, content="hi")],
            [LOOKUP_TOOL],
            "anthropic/claude-3-7-sonnet-20250219",
            SamplingParams(temperature=1.5, stop="END"),
        )

        assert create.kwargs["model"] == "claude-3-7-sonnet-20250219"
        assert create.kwargs["max_tokens"] == 512
        assert create.kwargs["temperature"] == 1.0
        assert create.kwargs["stop_sequences"] == ["END"]
        assert result.message.content == "let me look"
        assert result.message.tool_calls[0].name == "lookup"
        assert result.finish_reason == "tool_calls"
        assert result.usage.total_tokens == 16


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


class TestErrorMapping:
    def test_authentication(self):
        err = openai.AuthenticationError(
            "bad key", response=httpx.Response(401, request=REQUEST), body=None
        )
        mapped = _map_sdk_error(openai, err, "openrouter")
        assert isinstance(mapped, ModelAuthError)
        assert mapped.status_code == 401
        assert mapped.code == "auth_error"

    def test_rate_limit_reads_retry_after(self):
        err = openai.RateLimitError(
            "slow down",
            response=httpx.Response(429, headers={"retry-after": "7"}, request=REQUEST),
            body=None,
        )
        mapped = _map_sdk_error(openai, err, "openrouter")
        assert isinstance(mapped, ProviderRateLimitError)
        assert mapped.details["retry_after_seconds"] == 7
        assert mapped.code == "model_unavailable"

    def test_timeout(self):
        mapped = _map_sdk_error(openai, openai.APITimeoutError(request=REQUEST), "openrouter")
        assert isinstance(mapped, ProviderTimeoutError)

    def test_other_status(self):
        err = openai.InternalServerError(
            "upstream broke", response=httpx.Response(500, request=REQUEST), body=None
        )
        mapped = _map_sdk_error(openai, err, "openrouter")
        assert isinstance(mapped, ProviderResponseError)
        assert mapped.status_code == 502
