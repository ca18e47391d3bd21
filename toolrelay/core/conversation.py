# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Conversation State

Data model for one request lifecycle:
- Message / ToolCallRequest / ToolCallResult in OpenAI chat wire shape
- ToolDescriptor for the tool schema handed to the model
- Usage counters summed across every model call
- ConversationState, owned by a single ToolCallLoop run

Tool arguments and schemas are opaque payloads; only the fields the
loop inspects (id, name, tool_call_id) are validated.
"""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

# ============================================================
# ROLES
# ============================================================


class Role(StrEnum):
    """Message author role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


_KNOWN_MESSAGE_KEYS = {"role", "content", "tool_calls", "tool_call_id", "name"}


# ============================================================
# TOOL CALLS
# ============================================================


@dataclass(frozen=True)
class ToolCallRequest:
    """A model-issued request to run one tool."""

    id: str
    name: str
    arguments: str = "{}"
    type: str = "function"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolCallRequest":
        """Parse an OpenAI `tool_calls[]` entry."""
        function = data.get("function") or {}
        call_id = data.get("id")
        name = function.get("name") or data.get("name")
        if not call_id or not name:
            raise ValueError(f"Tool call is missing id or name: {dict(data)!r}")

        arguments = function.get("arguments", data.get("arguments", "{}"))
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)

        return cls(
            id=str(call_id),
            name=str(name),
            arguments=arguments or "{}",
            type=data.get("type", "function"),
        )

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the arguments payload, `{}` if it is not a JSON object."""
        try:
            value = json.loads(self.arguments)
        except (json.JSONDecodeError, TypeError):
            return {}
        return value if isinstance(value, dict) else {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of one tool call, correlated by `tool_call_id`."""

    tool_call_id: str
    content: Any
    success: bool = True

    @property
    def content_text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, default=str)

    def to_message(self) -> "Message":
        return Message(
            role=Role.TOOL,
            content=self.content_text,
            tool_call_id=self.tool_call_id,
        )


# ============================================================
# MESSAGES
# ============================================================


@dataclass
class Message:
    """One chat message in OpenAI wire shape."""

    role: str
    content: Any = None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        role = data.get("role")
        if role not in {r.value for r in Role}:
            raise ValueError(f"Unsupported message role: {role!r}")

        return cls(
            role=role,
            content=data.get("content"),
            tool_calls=[ToolCallRequest.from_dict(tc) for tc in data.get("tool_calls") or []],
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_MESSAGE_KEYS},
        )

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0

    @property
    def text(self) -> str:
        """Plain-text view of the content."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            parts = []
            for item in self.content:
                if isinstance(item, dict) and item.get("type") == "text":
                    parts.append(item.get("text", ""))
                elif isinstance(item, str):
                    parts.append(item)
            return "".join(parts)
        return str(self.content)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {**self.extra, "role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data


# ============================================================
# TOOL SCHEMA
# ============================================================


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable tool: name, description and parameter schema."""

    name: str
    description: str = ""
    parameters: Mapping[str, Any] = field(default_factory=dict)
    type: str = "function"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolDescriptor":
        """Accept both `{"type":"function","function":{...}}` and flat shapes."""
        function = data.get("function") if isinstance(data.get("function"), Mapping) else data
        name = function.get("name")
        if not name or not isinstance(name, str):
            raise ValueError(f"Tool descriptor has no name: {dict(data)!r}")

        parameters = function.get("parameters", function.get("input_schema")) or {}
        if not isinstance(parameters, Mapping):
            raise ValueError(f"Tool {name!r} has a non-object parameter schema")

        return cls(
            name=name,
            description=function.get("description") or "",
            parameters=dict(parameters),
            type=data.get("type", "function"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters),
            },
        }


# ============================================================
# USAGE
# ============================================================


@dataclass(frozen=True)
class Usage:
    """Token usage reported by the model provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


# ============================================================
# CONVERSATION STATE
# ============================================================


class ConversationState:
    """
    Message log and counters for one request.

    messages and tool_names_used are append-only; tool_schema is fixed
    at construction; usage only grows.
    """

    def __init__(
        self,
        messages: Iterable[Message],
        tool_schema: Iterable[ToolDescriptor] = (),
    ):
        self._messages: list[Message] = list(messages)
        self.tool_schema: tuple[ToolDescriptor, ...] = tuple(tool_schema)
        self.usage = Usage()
        self.tool_names_used: list[str] = []
        self.tool_call_requests: list[ToolCallRequest] = []
        self.assistant_fragments: list[str] = []
        self.iterations = 0

    @classmethod
    def from_wire(
        cls,
        messages: Iterable[Mapping[str, Any]],
        tools: Iterable[Mapping[str, Any]] = (),
    ) -> "ConversationState":
        return cls(
            messages=[Message.from_dict(m) for m in messages],
            tool_schema=[ToolDescriptor.from_dict(t) for t in tools],
        )

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last_message(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def add_usage(self, usage: Usage) -> None:
        self.usage = self.usage + usage

    def append_assistant(self, message: Message) -> None:
        """Append one assistant turn and record the tool calls it requests."""
        if message.role != Role.ASSISTANT:
            raise ValueError(f"Expected an assistant message, got {message.role!r}")

        self._messages.append(message)
        self.iterations += 1
        if message.text:
            self.assistant_fragments.append(message.text)
        self.tool_call_requests.extend(message.tool_calls)

    def record_dispatch(self, batch: Iterable[ToolCallRequest]) -> None:
        """Record tool names of a batch about to be invoked, in emission order."""
        self.tool_names_used.extend(tc.name for tc in batch)

    def pending_tool_calls(self) -> list[ToolCallRequest]:
        """Requests of the latest assistant turn that have no result yet."""
        for index in range(len(self._messages) - 1, -1, -1):
            message = self._messages[index]
            if message.role == Role.ASSISTANT:
                answered = {
                    m.tool_call_id for m in self._messages[index + 1 :] if m.role == Role.TOOL
                }
                return [tc for tc in message.tool_calls if tc.id not in answered]
        return []

    def append_tool_results(self, results: Iterable[ToolCallResult]) -> None:
        """Append results that answer pending requests of the latest turn."""
        pending = {tc.id for tc in self.pending_tool_calls()}
        for result in results:
            if result.tool_call_id not in pending:
                raise ValueError(f"Tool result {result.tool_call_id!r} has no pending request")
            pending.discard(result.tool_call_id)
            self._messages.append(result.to_message())

    def to_wire(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    def snapshot(self) -> dict[str, Any]:
        return {
            "messages": self.to_wire(),
            "tools": [t.to_dict() for t in self.tool_schema],
            "usage": self.usage.to_dict(),
            "tool_names_used": list(self.tool_names_used),
            "iterations": self.iterations,
        }


__all__ = [
    "Role",
    "Message",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "Usage",
    "ConversationState",
]
