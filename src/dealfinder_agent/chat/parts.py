"""
Chat message model.

A message is an ordered tuple of parts. Parts form a closed set:

- TextPart: plain text written by the user or the assistant
- ToolCallPart: one tool invocation with its input and (eventual) output
- OpaquePart: anything else (reasoning, step markers), carried verbatim

Messages are immutable once appended to a history; rewriting a message
(e.g. during compaction) produces a new Message.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Union

TOOL_TYPE_PREFIX = "tool-"
DYNAMIC_TOOL_TYPE = "dynamic-tool"


class ToolCallState(str, Enum):
    """Lifecycle state of a tool call."""
    PENDING = "pending"
    OUTPUT_AVAILABLE = "output-available"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any) -> "ToolCallState":
        if value == cls.OUTPUT_AVAILABLE.value:
            return cls.OUTPUT_AVAILABLE
        if value in (cls.FAILED.value, "output-error"):
            return cls.FAILED
        return cls.PENDING


@dataclass(frozen=True)
class TextPart:
    """A plain text part."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolCallPart:
    """A tool invocation and its result."""

    tool_name: str
    call_id: str
    state: ToolCallState = ToolCallState.PENDING
    input: dict[str, Any] = field(default_factory=dict)
    output: Any = None
    dynamic: bool = False

    @property
    def is_complete(self) -> bool:
        return self.state is ToolCallState.OUTPUT_AVAILABLE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": DYNAMIC_TOOL_TYPE if self.dynamic else f"{TOOL_TYPE_PREFIX}{self.tool_name}",
            "toolCallId": self.call_id,
            "state": self.state.value,
            "input": self.input,
        }
        if self.dynamic:
            data["toolName"] = self.tool_name
        if self.output is not None:
            data["output"] = self.output
        return data


@dataclass(frozen=True)
class OpaquePart:
    """A part that is never summarized, only kept or dropped verbatim."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.data, "type": self.type}


Part = Union[TextPart, ToolCallPart, OpaquePart]


def part_from_dict(data: dict[str, Any]) -> Part:
    """Build a typed part from its wire representation."""
    part_type = str(data.get("type", ""))

    if part_type == "text":
        return TextPart(text=str(data.get("text", "")))

    if part_type == DYNAMIC_TOOL_TYPE or part_type.startswith(TOOL_TYPE_PREFIX):
        dynamic = part_type == DYNAMIC_TOOL_TYPE
        tool_name = str(data.get("toolName", "")) if dynamic else part_type[len(TOOL_TYPE_PREFIX):]
        raw_input = data.get("input")
        return ToolCallPart(
            tool_name=tool_name,
            call_id=str(data.get("toolCallId", "")),
            state=ToolCallState.parse(data.get("state")),
            input=raw_input if isinstance(raw_input, dict) else {},
            output=data.get("output"),
            dynamic=dynamic,
        )

    rest = {k: v for k, v in data.items() if k != "type"}
    return OpaquePart(type=part_type, data=rest)


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    id: str
    role: Literal["user", "assistant", "system"]
    parts: tuple[Part, ...] = ()
    created_at: datetime | None = None

    @property
    def text(self) -> str:
        """All text parts joined with spaces."""
        return " ".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    def with_parts(self, parts: list[Part] | tuple[Part, ...]) -> "Message":
        return replace(self, parts=tuple(parts))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        created_at = data.get("createdAt")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        elif not isinstance(created_at, datetime):
            created_at = None

        parts = tuple(part_from_dict(p) for p in data.get("parts", []) if isinstance(p, dict))
        return cls(
            id=str(data.get("id", "")),
            role=data.get("role", "user"),
            parts=parts,
            created_at=created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "parts": [p.to_dict() for p in self.parts],
        }
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        return data
