"""Tests for engine message normalization."""

from __future__ import annotations

import claude_agent_sdk as sdk

from reviewagent.events import (
    AssistantEvent,
    EventType,
    ResultEvent,
    TextBlock,
    ThinkingBlock,
    ToolProgressEvent,
    ToolUseBlock,
    UserEvent,
    normalize_message,
)


class TestNormalizeSdkMessages:
    """Tests for converting SDK message objects."""

    def test_assistant_message(self) -> None:
        """Test text, thinking and tool-use blocks."""
        message = sdk.AssistantMessage(
            content=[
                sdk.ThinkingBlock(thinking="Let me look.", signature="sig"),
                sdk.ToolUseBlock(id="tu_1", name="Edit", input={"file_path": "a.py"}),
                sdk.TextBlock(text="Fixed it.\nALL_CLEAR"),
            ],
            model="claude-sonnet-4-5-20250929",
        )

        event = normalize_message(message)

        assert isinstance(event, AssistantEvent)
        assert event.type == EventType.ASSISTANT
        assert event.content == [
            ThinkingBlock(thinking="Let me look."),
            ToolUseBlock(name="Edit", input={"file_path": "a.py"}, id="tu_1"),
            TextBlock(text="Fixed it.\nALL_CLEAR"),
        ]

    def test_result_message(self) -> None:
        """Test the terminal summary."""
        message = sdk.ResultMessage(
            subtype="success",
            duration_ms=1500,
            duration_api_ms=1200,
            is_error=False,
            num_turns=4,
            session_id="s1",
            total_cost_usd=0.0123,
        )

        event = normalize_message(message)

        assert isinstance(event, ResultEvent)
        assert event.turns == 4
        assert event.duration_ms == 1500
        assert event.cost_usd == 0.0123
        assert event.is_error is False
        assert event.errors == []

    def test_result_message_error(self) -> None:
        """Test an error result carries its message."""
        message = sdk.ResultMessage(
            subtype="error_max_turns",
            duration_ms=10,
            duration_api_ms=5,
            is_error=True,
            num_turns=50,
            session_id="s1",
            total_cost_usd=None,
            result="max turns reached",
        )

        event = normalize_message(message)

        assert isinstance(event, ResultEvent)
        assert event.is_error is True
        assert event.cost_usd == 0.0
        assert event.errors == ["max turns reached"]


class TestNormalizeDicts:
    """Tests for converting raw wire dictionaries."""

    def test_assistant(self) -> None:
        """Test an assistant message with nested content."""
        event = normalize_message({
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": "Hello"},
                    {"type": "tool_use", "id": "t1", "name": "Write", "input": {"file_path": "b.py"}},
                    {"type": "thinking", "thinking": "..."},
                    {"type": "image"},
                    "garbage",
                ]
            },
        })

        assert isinstance(event, AssistantEvent)
        assert event.content == [
            TextBlock(text="Hello"),
            ToolUseBlock(name="Write", input={"file_path": "b.py"}, id="t1"),
            ThinkingBlock(thinking="..."),
        ]

    def test_assistant_without_content(self) -> None:
        """Test a partial assistant message."""
        event = normalize_message({"type": "assistant", "message": {"content": None}})
        assert isinstance(event, AssistantEvent)
        assert event.content == []

    def test_tool_use_with_bad_input(self) -> None:
        """Test that a non-dict tool input becomes empty."""
        event = normalize_message({
            "type": "assistant",
            "message": {"content": [{"type": "tool_use", "name": "Edit", "input": "oops"}]},
        })
        assert event.content == [ToolUseBlock(name="Edit", input={}, id="")]

    def test_user_tool_result(self) -> None:
        """Test a tool result with stderr."""
        event = normalize_message({"type": "user", "tool_use_result": {"stderr": "boom"}})
        assert event == UserEvent(tool_result={"stderr": "boom"})

    def test_user_without_result(self) -> None:
        """Test a user message with no tool result."""
        event = normalize_message({"type": "user", "tool_use_result": "text"})
        assert event == UserEvent(tool_result=None)

    def test_tool_progress(self) -> None:
        """Test a progress update."""
        event = normalize_message({"type": "tool_progress", "tool_name": "Bash", "elapsed_time_seconds": 12})
        assert event == ToolProgressEvent(tool_name="Bash", elapsed_seconds=12.0)

    def test_result(self) -> None:
        """Test a result dictionary with errors."""
        event = normalize_message({
            "type": "result",
            "num_turns": "3",
            "duration_ms": 2000,
            "total_cost_usd": "bad",
            "is_error": True,
            "errors": ["rate limited"],
        })
        assert event == ResultEvent(turns=3, duration_ms=2000, cost_usd=0.0, is_error=True, errors=["rate limited"])

    def test_unknown_types_are_skipped(self) -> None:
        """Test system messages and junk."""
        assert normalize_message({"type": "system", "subtype": "init"}) is None
        assert normalize_message({"no": "type"}) is None
        assert normalize_message(None) is None
        assert normalize_message(["assistant"]) is None
        assert normalize_message("assistant") is None
