"""Tracking of file mutations in the agent's event stream.

Counts the Edit/Write tool invocations the agent makes during a pass and
remembers which files they touched, so the next pass can be pointed at
exactly those files.
"""

from __future__ import annotations

from typing import Any, Optional

from .events import EventType, ToolUseBlock

# Tool names of the engine's file mutation primitives.
MUTATING_TOOLS = frozenset({"Edit", "Write"})


def is_mutating_block(block: Any, mutating_tools: frozenset[str] = MUTATING_TOOLS) -> bool:
    """Check whether a content block is a file-modifying tool call."""
    return isinstance(block, ToolUseBlock) and block.name in mutating_tools


def edited_file_path(block: ToolUseBlock) -> Optional[str]:
    """Return the ``file_path`` a mutating block targets, if it names one."""
    tool_input = block.input
    if not isinstance(tool_input, dict):
        return None
    file_path = tool_input.get("file_path")
    if isinstance(file_path, str) and file_path:
        return file_path
    return None


def collect_edits(
    event: Any,
    edited_files: set[str],
    mutating_tools: frozenset[str] = MUTATING_TOOLS,
) -> int:
    """Count mutating tool calls in one event.

    File paths of the mutating calls are added to ``edited_files``, which
    the caller owns. Malformed events count as zero.

    Args:
        event: An event from the engine stream.
        edited_files: Accumulating set of touched file paths.
        mutating_tools: Tool names that modify files.

    Returns:
        Number of mutating tool calls in this event.
    """
    if getattr(event, "type", None) != EventType.ASSISTANT:
        return 0
    content = getattr(event, "content", None)
    if not isinstance(content, list):
        return 0

    count = 0
    for block in content:
        if not is_mutating_block(block, mutating_tools):
            continue
        count += 1
        file_path = edited_file_path(block)
        if file_path:
            edited_files.add(file_path)
    return count


class EditTracker:
    """Running edit count and touched-file set for a single pass."""

    def __init__(self, mutating_tools: frozenset[str] = MUTATING_TOOLS):
        self.mutating_tools = mutating_tools
        self.edit_count = 0
        self.edited_files: set[str] = set()

    def observe(self, event: Any) -> int:
        """Record one event and return the number of edits it contained."""
        increment = collect_edits(event, self.edited_files, self.mutating_tools)
        self.edit_count += increment
        return increment
