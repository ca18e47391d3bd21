"""
Conversation State Tests
========================

Wire parsing of messages/tool calls/tool schema, usage arithmetic, and the
append-only ConversationState.
"""

import pytest

from toolrelay.core.conversation import (
    ConversationState,
    Message,
    Role,
    ToolCallRequest,
    ToolCallResult,
    ToolDescriptor,
    Usage,
)

from conftest import tool_call

# ---------------------------------------------------------------------------
# Wire parsing
# ---------------------------------------------------------------------------


class TestToolCallRequest:
    def test_from_openai_shape(self):
        tc = ToolCallRequest.from_dict(
            {"id": "a", "type": "function", "function": {"name": "lookup", "arguments": '{"k": 1}'}}
        )
        assert tc.id == "a"
        assert tc.name == "lookup"
        assert tc.parsed_arguments() == {"k": 1}

    def test_object_arguments_are_serialized(self):
        tc = ToolCallRequest.from_dict({"id": "a", "function": {"name": "x", "arguments": {"k": 1}}})
        assert tc.arguments == '{"k": 1}'

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            ToolCallRequest.from_dict({"function": {"name": "x"}})

    def test_malformed_arguments_parse_to_empty(self):
        tc = ToolCallRequest(id="a", name="x", arguments="not json")
        assert tc.parsed_arguments() == {}

    def test_to_dict_round_shape(self):
        tc = ToolCallRequest(id="a", name="x", arguments="{}")
        assert tc.to_dict() == {
            "id": "a",
            "type": "function",
            "function": {"name": "x", "arguments": "{}"},
        }


class TestMessage:
    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Message.from_dict({"role": "robot", "content": "hi"})

    def test_text_of_content_parts(self):
        msg = Message.from_dict(
            {"role": "user", "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}
        )
        assert msg.text == "ab"

    def test_extra_keys_preserved(self):
        msg = Message.from_dict({"role": "user", "content": "hi", "cache_control": {"x": 1}})
        assert msg.to_dict()["cache_control"] == {"x": 1}

    def test_tool_result_message(self):
        msg = ToolCallResult(tool_call_id="a", content={"v": 42}).to_message()
        assert msg.role == Role.TOOL
        assert msg.tool_call_id == "a"
        assert msg.content == '{"v": 42}'


class TestToolDescriptor:
    def test_nested_function_shape(self):
        tool = ToolDescriptor.from_dict(
            {
                "type": "function",
                "function": {"name": "lookup", "description": "d", "parameters": {"type": "object"}},
            }
        )
        assert tool.name == "lookup"
        assert tool.parameters == {"type": "object"}

    def test_flat_shape(self):
        tool = ToolDescriptor.from_dict({"name": "lookup", "description": "d"})
        assert tool.to_dict()["function"]["name"] == "lookup"

    def test_missing_name_rejected(self):
        with pytest.raises(ValueError):
            ToolDescriptor.from_dict({"type": "function", "function": {"description": "x"}})


def test_usage_is_summed_componentwise():
    total = Usage(10, 5, 15) + Usage(3, 2, 5)
    assert total == Usage(13, 7, 20)


# ---------------------------------------------------------------------------
# ConversationState
# ---------------------------------------------------------------------------


class TestConversationState:
    def make_state(self):
        return ConversationState.from_wire([{"role": "user", "content": "hi"}])

    def test_messages_are_read_only_view(self):
        state = self.make_state()
        assert isinstance(state.messages, tuple)
        assert len(state.messages) == 1

    def test_append_assistant_rejects_other_roles(self):
        state = self.make_state()
        with pytest.raises(ValueError):
            state.append_assistant(Message(role=Role.USER, content="x"))

    def test_append_assistant_tracks_fragments_and_requests(self):
        state = self.make_state()
        state.append_assistant(
            Message(role=Role.ASSISTANT, content="thinking", tool_calls=[tool_call("a", "lookup")])
        )
        assert state.iterations == 1
        assert state.assistant_fragments == ["thinking"]
        assert [tc.id for tc in state.tool_call_requests] == ["a"]
        # Names are recorded only when a batch is dispatched
        assert state.tool_names_used == []

    def test_record_dispatch_keeps_emission_order(self):
        state = self.make_state()
        state.record_dispatch([tool_call("a", "b_tool"), tool_call("b", "a_tool")])
        state.record_dispatch([tool_call("c", "b_tool")])
        assert state.tool_names_used == ["b_tool", "a_tool", "b_tool"]

    def test_pending_tool_calls_shrink_as_results_arrive(self):
        state = self.make_state()
        state.append_assistant(
            Message(
                role=Role.ASSISTANT,
                tool_calls=[tool_call("a", "lookup"), tool_call("b", "lookup")],
            )
        )
        assert [tc.id for tc in state.pending_tool_calls()] == ["a", "b"]

        state.append_tool_results([ToolCallResult("b", "2")])
        assert [tc.id for tc in state.pending_tool_calls()] == ["a"]

    def test_result_without_pending_request_rejected(self):
        state = self.make_state()
        state.append_assistant(Message(role=Role.ASSISTANT, tool_calls=[tool_call("a", "lookup")]))
        with pytest.raises(ValueError):
            state.append_tool_results([ToolCallResult("zzz", "x")])

    def test_snapshot(self):
        state = self.make_state()
        state.add_usage(Usage(1, 2, 3))
        snap = state.snapshot()
        assert snap["usage"] == {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}
        assert snap["messages"] == [{"role": "user", "content": "hi"}]
