"""Conversation messages, tool calls, and the provider and tool interfaces."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Permission(Enum):
    """How a tool call is approved before it runs."""

    ALLOW = "allow"
    ASK = "ask"
    ASK_ONCE = "ask_once"
    DENY = "deny"


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass
class ToolCall:
    """A request from the model to run one tool."""

    id: str
    name: str
    arguments: Any = field(default_factory=dict)

    @property
    def arguments_json(self) -> str:
        """The arguments as compact JSON text."""
        return _compact_json(self.arguments)


@dataclass
class ToolResult:
    """The outcome of one tool call."""

    tool_call_id: str
    output: str
    success: bool


@dataclass
class ToolDefinition:
    """What a tool offers to the model and how it is approved."""

    name: str
    description: str
    parameters: Any
    permission: Permission


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT_TOOL_CALLS = "assistant_tool_calls"
    TOOL_RESULT = "tool_result"


@dataclass(frozen=True)
class Message:
    """One message of a conversation with the model."""

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(Role.USER, content=content)

    @classmethod
    def assistant_tool_calls(cls, tool_calls: Iterable[ToolCall]) -> Message:
        return cls(Role.ASSISTANT_TOOL_CALLS, tool_calls=tuple(tool_calls))

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> Message:
        return cls(Role.TOOL_RESULT, content=content, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class ProviderResponse:
    """A model reply: either final text or a batch of tool calls."""

    text: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.tool_calls is None):
            raise ValueError("a provider response holds either text or tool calls")
        if self.tool_calls is not None:
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @property
    def is_text(self) -> bool:
        return self.text is not None


class Provider(ABC):
    """A chat model backend that can request tool calls."""

    @abstractmethod
    async def chat_with_tools(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition],
    ) -> ProviderResponse:
        """Send the conversation and return the model's reply."""


class Tool(ABC):
    """A capability the agent can run on the model's behalf."""

    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Describe the tool."""

    @abstractmethod
    def execute(self, args: Any) -> str:
        """Run the tool; raise on failure."""

    @abstractmethod
    def match_target(self, args: Any) -> str:
        """The text that permission rules and blocklists are matched against."""


def format_messages_for_detail(messages: Iterable[Message]) -> str:
    """Render a conversation as readable text for detail output."""
    parts: list[str] = []
    for message in messages:
        match message.role:
            case Role.SYSTEM:
                parts.append(f"[system]\n{message.content}\n")
            case Role.USER:
                parts.append(f"[user]\n{message.content}\n")
            case Role.ASSISTANT_TOOL_CALLS:
                parts.append("[assistant_tool_calls]\n")
                if message.content is not None:
                    parts.append(f"{message.content}\n")
                parts.extend(
                    f"- {call.name}({call.arguments_json}) id={call.id}\n"
                    for call in message.tool_calls
                )
            case Role.TOOL_RESULT:
                parts.append(f"[tool_result]\nid={message.tool_call_id}\n{message.content}\n")
    return "".join(parts).rstrip()


def format_tool_calls_for_detail(tool_calls: Sequence[ToolCall]) -> str:
    """Render requested tool calls as readable text for detail output."""
    if not tool_calls:
        return "Tool calls requested: none"
    lines = "".join(
        f"- {call.name}({call.arguments_json}) id={call.id}\n" for call in tool_calls
    )
    return ("Tool calls requested:\n" + lines).rstrip()