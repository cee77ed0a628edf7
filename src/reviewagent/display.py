"""Terminal rendering of the agent's event stream with Rich."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.text import Text

from .events import (
    AgentEvent,
    AssistantEvent,
    Block,
    ResultEvent,
    TextBlock,
    ThinkingBlock,
    ToolProgressEvent,
    ToolUseBlock,
    UserEvent,
)
from .formatting import format_tool_call, short_path, strip_control_chars

logger = logging.getLogger(__name__)

MAX_DIFF_LINES = 30
MAX_THINKING_CHARS = 1000


class EventRenderer:
    """Renders engine events and loop progress to a Rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    # -------------------------------------------------------------------------
    # Engine events
    # -------------------------------------------------------------------------

    def render(self, event: AgentEvent) -> None:
        """Render a single engine event."""
        if isinstance(event, AssistantEvent):
            for block in event.content:
                self.render_block(block)
        elif isinstance(event, UserEvent):
            self.render_tool_result(event)
        elif isinstance(event, ToolProgressEvent):
            self.console.print(Text(f"⏳ {event.tool_name} ({event.elapsed_seconds:g}s)", style="yellow"))
        elif isinstance(event, ResultEvent):
            self.render_result(event)

    def render_block(self, block: Block) -> None:
        """Render one content block of an assistant turn."""
        if isinstance(block, ThinkingBlock):
            thinking = block.thinking
            if len(thinking) > MAX_THINKING_CHARS:
                thinking = thinking[:MAX_THINKING_CHARS - 3] + "..."
            self.console.print()
            self.console.print("[dim]💭 Thinking:[/dim]")
            self.console.print(Text(thinking, style="dim"))
            self.console.print()
        elif isinstance(block, ToolUseBlock):
            summary = format_tool_call(block.name, block.input, self.console.width)
            self.console.print()
            self.console.print(Text(f"🔧 {summary}", style="cyan"))
            if block.name == "Edit":
                self.render_edit_diff(block.input)
        elif isinstance(block, TextBlock):
            self.render_text(block.text)

    def render_text(self, text: str) -> None:
        """Render agent prose as Markdown, falling back to plain text."""
        try:
            self.console.print(Markdown(text))
        except Exception as e:
            logger.debug("Markdown rendering failed", exc_info=True)
            self.console.print(f"[yellow]⚠ Markdown rendering failed: {escape(str(e))}[/yellow]")
            self.console.print(Text(strip_control_chars(text)))

    def render_edit_diff(self, tool_input: dict) -> None:
        """Show an Edit call as a short red/green diff."""
        old = tool_input.get("old_string")
        new = tool_input.get("new_string")
        if not isinstance(old, str) or not isinstance(new, str):
            return

        file_path = tool_input.get("file_path")
        path = short_path(file_path) if isinstance(file_path, str) else "unknown"

        old_lines = old.split("\n")
        new_lines = new.split("\n")
        total = len(old_lines) + len(new_lines)
        truncated = total > MAX_DIFF_LINES
        max_old = MAX_DIFF_LINES // 2 if truncated else len(old_lines)
        max_new = MAX_DIFF_LINES // 2 if truncated else len(new_lines)

        self.console.print(Text(f"  ┌─ {path}", style="dim"))
        for line in old_lines[:max_old]:
            self.console.print(Text(f"  - {line}", style="red"))
        for line in new_lines[:max_new]:
            self.console.print(Text(f"  + {line}", style="green"))
        if truncated:
            self.console.print(Text(f"  ... {total - MAX_DIFF_LINES} more lines", style="dim"))
        self.console.print(Text("  └─", style="dim"))

    def render_tool_result(self, event: UserEvent) -> None:
        """Show stderr from a tool result, if any."""
        if not event.tool_result:
            return
        stderr = event.tool_result.get("stderr")
        if isinstance(stderr, str) and stderr.strip():
            self.console.print(Text(f"   {stderr.strip()}", style="red"))

    def render_result(self, event: ResultEvent) -> None:
        """Show the end-of-call summary."""
        self.console.print()
        if event.is_error:
            detail = ", ".join(event.errors) if event.errors else "unknown error"
            self.console.print(Text(f"❌ Failed: {detail}", style="red"))
        else:
            self.console.print("[green]✅ Done[/green]")
        self.console.print(f"   Turns: {event.turns}")
        self.console.print(f"   Duration: {event.duration_ms / 1000:.1f}s")
        self.console.print(f"   Cost: ${event.cost_usd:.4f}")

    # -------------------------------------------------------------------------
    # Loop progress
    # -------------------------------------------------------------------------

    def pass_started(self, pass_index: int, max_passes: int) -> None:
        """Header shown before each recursive pass."""
        self.console.print()
        self.console.rule(f"Pass {pass_index}/{max_passes}", style="magenta")

    def pass_completed(self, pass_index: int, edit_count: int) -> None:
        """Summary line after each recursive pass."""
        self.console.rule(f"Pass {pass_index} complete: {edit_count} file edit(s) applied", style="cyan")

    def edits_applied(self, edit_count: int) -> None:
        """Summary line after a single fix pass."""
        self.console.rule(f"{edit_count} file edit(s) applied", style="cyan")

    def all_clear(self) -> None:
        self.console.print()
        self.console.rule("[green]All critical issues resolved[/green]", style="green")

    def stopped_no_edits(self, status: str) -> None:
        self.console.print(f"[yellow]⚠ No edits were made - stopping early (last status: {status}).[/yellow]")

    def max_passes_reached(self, max_passes: int, status: str) -> None:
        self.console.print()
        self.console.rule(
            f"[yellow]Reached max passes ({max_passes}). Some critical issues may remain "
            f"(last status: {status}).[/yellow]",
            style="yellow",
        )
