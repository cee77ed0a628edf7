"""Event model for the agent engine's message stream.

The engine yields a mix of SDK message objects. This module converts them
into a small tagged union of dataclasses that the rest of the package works
with, so the executor, edit tracker and renderer never touch SDK types.

Raw wire dictionaries (``{"type": "assistant", "message": {...}}``) are
accepted as well; they are what the engine CLI emits for message kinds the
SDK does not model, such as tool progress updates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

import claude_agent_sdk as sdk

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Tag for each event variant."""

    ASSISTANT = "assistant"
    USER = "user"
    TOOL_PROGRESS = "tool_progress"
    RESULT = "result"


@dataclass(frozen=True)
class TextBlock:
    """Natural-language output from the agent."""

    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation requested by the agent."""

    name: str
    input: dict = field(default_factory=dict)
    id: str = ""


@dataclass(frozen=True)
class ThinkingBlock:
    """Extended-thinking output."""

    thinking: str


Block = Union[TextBlock, ToolUseBlock, ThinkingBlock]


@dataclass
class AssistantEvent:
    """An assistant turn with its content blocks."""

    content: list[Block] = field(default_factory=list)
    type: EventType = field(default=EventType.ASSISTANT, init=False)


@dataclass
class UserEvent:
    """A user turn, usually carrying a tool result."""

    tool_result: Optional[dict] = None
    type: EventType = field(default=EventType.USER, init=False)


@dataclass
class ToolProgressEvent:
    """Progress ping for a long-running tool."""

    tool_name: str
    elapsed_seconds: float = 0.0
    type: EventType = field(default=EventType.TOOL_PROGRESS, init=False)


@dataclass
class ResultEvent:
    """Terminal summary of an engine call."""

    turns: int = 0
    duration_ms: int = 0
    cost_usd: float = 0.0
    is_error: bool = False
    errors: list[str] = field(default_factory=list)
    type: EventType = field(default=EventType.RESULT, init=False)


AgentEvent = Union[AssistantEvent, UserEvent, ToolProgressEvent, ResultEvent]


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _block_from_dict(data: dict) -> Optional[Block]:
    block_type = data.get("type")
    if block_type == "thinking" and isinstance(data.get("thinking"), str):
        return ThinkingBlock(thinking=data["thinking"])
    if block_type == "tool_use" and isinstance(data.get("name"), str):
        tool_input = data.get("input")
        return ToolUseBlock(
            name=data["name"],
            input=tool_input if isinstance(tool_input, dict) else {},
            id=str(data.get("id", "")),
        )
    if isinstance(data.get("text"), str):
        return TextBlock(text=data["text"])
    return None


def _block_from_sdk(block: Any) -> Optional[Block]:
    if isinstance(block, sdk.TextBlock):
        return TextBlock(text=block.text)
    if isinstance(block, sdk.ThinkingBlock):
        return ThinkingBlock(thinking=block.thinking)
    if isinstance(block, sdk.ToolUseBlock):
        tool_input = block.input if isinstance(block.input, dict) else {}
        return ToolUseBlock(name=block.name, input=tool_input, id=block.id)
    if isinstance(block, dict):
        return _block_from_dict(block)
    return None


def _blocks(content: Any) -> list[Block]:
    if not isinstance(content, list):
        return []
    blocks = []
    for raw in content:
        block = _block_from_sdk(raw)
        if block is not None:
            blocks.append(block)
    return blocks


def _from_dict(message: dict) -> Optional[AgentEvent]:
    msg_type = message.get("type")
    if msg_type == "assistant":
        inner = message.get("message")
        content = inner.get("content") if isinstance(inner, dict) else message.get("content")
        return AssistantEvent(content=_blocks(content))
    if msg_type == "user":
        result = message.get("tool_use_result")
        return UserEvent(tool_result=result if isinstance(result, dict) else None)
    if msg_type == "tool_progress":
        return ToolProgressEvent(
            tool_name=str(message.get("tool_name", "")),
            elapsed_seconds=_as_float(message.get("elapsed_time_seconds")),
        )
    if msg_type == "result":
        errors = message.get("errors")
        return ResultEvent(
            turns=_as_int(message.get("num_turns")),
            duration_ms=_as_int(message.get("duration_ms")),
            cost_usd=_as_float(message.get("total_cost_usd")),
            is_error=bool(message.get("is_error", False)),
            errors=[str(e) for e in errors] if isinstance(errors, list) else [],
        )
    return None


def normalize_message(message: Any) -> Optional[AgentEvent]:
    """Convert one engine message into an event.

    Args:
        message: An SDK message object or a raw wire dictionary.

    Returns:
        The matching event, or None for messages that carry nothing the
        review loop uses (system messages, stream deltas, malformed data).
    """
    if isinstance(message, sdk.AssistantMessage):
        return AssistantEvent(content=_blocks(message.content))

    if isinstance(message, sdk.UserMessage):
        result = getattr(message, "tool_use_result", None)
        return UserEvent(tool_result=result if isinstance(result, dict) else None)

    if isinstance(message, sdk.ResultMessage):
        errors = []
        if message.is_error and message.result:
            errors.append(str(message.result))
        return ResultEvent(
            turns=_as_int(message.num_turns),
            duration_ms=_as_int(message.duration_ms),
            cost_usd=_as_float(message.total_cost_usd),
            is_error=bool(message.is_error),
            errors=errors,
        )

    if isinstance(message, dict):
        return _from_dict(message)

    logger.debug(f"Skipping unhandled engine message: {type(message).__name__}")
    return None
