"""Text helpers for terminal output.

Small, dependency-free string utilities shared by the status parser and the
event renderer.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0B-\x1F\x7F-\x9F]")
CONTROL_CHAR_KEEP_WS_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
WHITESPACE_CHAR_PATTERN = re.compile(r"[\r\n\t]")

DEFAULT_TERMINAL_WIDTH = 100
TOOL_DISPLAY_PADDING = 20


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI CSI escape sequences (colors, cursor moves, erases) from text."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


def truncate(value: str, max_length: int) -> str:
    """Truncate a string to ``max_length`` characters plus an ellipsis."""
    if len(value) <= max_length:
        return value
    return value[:max(max_length, 0)] + "..."


def sanitize(value: Any) -> str:
    """Render a value as a single clean line for tool call summaries."""
    text = str(value)
    text = ANSI_ESCAPE_PATTERN.sub("", text)
    text = WHITESPACE_CHAR_PATTERN.sub(" ", text)
    text = CONTROL_CHAR_PATTERN.sub("", text)
    return text.strip()


def strip_control_chars(text: str) -> str:
    """Drop ANSI codes and control characters but keep newlines and tabs."""
    text = ANSI_ESCAPE_PATTERN.sub("", text)
    return CONTROL_CHAR_KEEP_WS_PATTERN.sub("", text)


def _with_path(prefix: str, tool_input: dict) -> str:
    if tool_input.get("path"):
        return f"{prefix} in {sanitize(tool_input['path'])}"
    return prefix


ToolFormatter = Callable[[dict], str]

TOOL_FORMATTERS: dict[str, ToolFormatter] = {
    "Bash": lambda i: f"Bash > {sanitize(i.get('command', ''))}",
    "Read": lambda i: f"Read > {sanitize(i.get('file_path', ''))}",
    "Write": lambda i: f"Write > {sanitize(i.get('file_path', ''))}",
    "Edit": lambda i: f"Edit > {sanitize(i.get('file_path', ''))}",
    "Glob": lambda i: _with_path(f"Glob > {sanitize(i.get('pattern', ''))}", i),
    "Grep": lambda i: _with_path(f'Grep > "{sanitize(i.get("pattern", ""))}"', i),
    "WebSearch": lambda i: f'WebSearch > "{sanitize(i.get("query", ""))}"',
    "WebFetch": lambda i: f"WebFetch > {sanitize(i.get('url', ''))}",
}


def format_tool_call(name: str, tool_input: dict, width: int = DEFAULT_TERMINAL_WIDTH) -> str:
    """Format a tool invocation as a one-line summary.

    Known tools get a compact ``Tool > argument`` form. Anything else falls
    back to the JSON-encoded input, truncated to fit the terminal.

    Args:
        name: Tool name as reported by the engine.
        tool_input: Tool input mapping.
        width: Terminal width in columns.

    Returns:
        Summary line without color markup.
    """
    formatter = TOOL_FORMATTERS.get(name)
    if formatter is not None:
        return formatter(tool_input)

    max_width = max(width - TOOL_DISPLAY_PADDING, 10)
    try:
        encoded = json.dumps(tool_input, default=str)
    except (TypeError, ValueError):
        encoded = str(tool_input)
    return f"{name} > {truncate(encoded, max_width)}"


def short_path(file_path: str) -> str:
    """Return the last two path segments of a file path."""
    segments = file_path.split("/")
    if len(segments) >= 2:
        return "/".join(segments[-2:])
    return file_path
