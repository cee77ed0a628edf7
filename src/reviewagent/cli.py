"""CLI entrypoint for review-agent.

The ``review`` command runs the agent in one of three modes:
1. plain review (default) - a single pass that only reports
2. ``--fix`` - a single pass that applies fixes
3. ``--fix-recursive`` - review, fix and re-review until the agent reports
   no critical issues or ``--max-passes`` is reached
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .agent import ReviewOutcome, run_review
from .config import (
    MAX_PASSES_LIMIT,
    VALID_MODELS,
    VALID_PERMISSION_MODES,
    VALID_TOOLS,
    ConfigurationError,
    ReviewConfig,
    parse_tools,
)
from .display import EventRenderer
from .engine import AgentQueryError, ClaudeAgentEngine, MockAgentEngine
from .loop import LoopState
from .prompts import PromptAssets, PromptLoadError, ReviewMode

# Initialize Typer app
app = typer.Typer(
    name="review-agent",
    help="Code review and audit agent powered by Claude.",
    add_completion=False,
)

console = Console()

EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2

DEFAULT_PROMPT = (
    "Explore all the files in the current directory. List them and provide a brief summary of "
    "what this project is about. Then review all source files for bugs, security issues, and code quality."
)


def setup_logging(verbose: bool = False, log_level: str = "WARNING") -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: If True, set DEBUG level; otherwise use log_level.
        log_level: Level name such as INFO or WARNING.
    """
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"review-agent version {__version__}")
        raise typer.Exit()


def _fail(message: str, code: int, show_trace: bool = False) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(message)}")
    if show_trace:
        console.print_exception()
    raise typer.Exit(code)


def confirm_bypass(config: ReviewConfig) -> None:
    """Require explicit confirmation before running with bypassPermissions.

    Raises:
        ConfigurationError: If the environment does not allow bypass mode.
        typer.Exit: If the user does not confirm.
    """
    if not config.confirm_bypass:
        raise ConfigurationError(
            "bypassPermissions mode requires CONFIRM_BYPASS_PERMISSIONS=1 environment variable. "
            "Example: CONFIRM_BYPASS_PERMISSIONS=1 review-agent review --fix -p bypassPermissions \"Review this\""
        )
    if not sys.stdin.isatty():
        raise ConfigurationError("bypassPermissions mode requires an interactive terminal (no piped input).")

    console.print("[yellow]⚠ WARNING: Running in bypassPermissions mode.[/yellow]")
    console.print("[yellow]⚠ Files may be modified without confirmation.[/yellow]")
    console.print(f"[yellow]⚠ Working directory: {escape(str(config.cwd))}[/yellow]")

    answer = typer.prompt("Type 'yes' to confirm", default="", show_default=False)
    if answer.strip().lower() != "yes":
        console.print("[red]Aborted.[/red]")
        raise typer.Exit(EXIT_RUNTIME_ERROR)


def _resolve_mode(fix: bool, fix_recursive: bool) -> ReviewMode:
    if fix_recursive:
        return ReviewMode.FIX_RECURSIVE
    if fix:
        return ReviewMode.FIX
    return ReviewMode.REVIEW


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Code review and audit agent powered by Claude."""
    pass


@app.command()
def review(
    prompt: Optional[str] = typer.Argument(
        None,
        help="The prompt to send to the agent (default: explore and review the current directory).",
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Model to use.",
    ),
    tools: Optional[str] = typer.Option(
        None,
        "--tools",
        "-t",
        help="Comma-separated allowed tools.",
    ),
    permission_mode: Optional[str] = typer.Option(
        None,
        "--permission-mode",
        "-p",
        help="Permission mode: default, acceptEdits, bypassPermissions.",
    ),
    max_turns: Optional[int] = typer.Option(
        None,
        "--max-turns",
        help="Maximum agent turns per pass.",
    ),
    fix: bool = typer.Option(
        False,
        "--fix",
        help="Apply recommended fixes to source files.",
    ),
    fix_recursive: bool = typer.Option(
        False,
        "--fix-recursive",
        help="Review, fix, and re-review until no critical issues remain.",
    ),
    max_passes: Optional[int] = typer.Option(
        None,
        "--max-passes",
        help=f"Max review passes for --fix-recursive (default: 5, at most {MAX_PASSES_LIMIT}).",
    ),
    cwd: Optional[Path] = typer.Option(
        None,
        "--cwd",
        help="Working directory for the agent.",
    ),
    mock: bool = typer.Option(
        False,
        "--mock",
        help="Run against a canned mock engine (no API calls).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose output.",
    ),
) -> None:
    """Review the code in a working directory, optionally fixing what is found.

    Examples:
        # Review the current directory:
        review-agent review

        # Apply fixes in a single pass:
        review-agent review --fix "Review src/ for security issues"

        # Fix and re-review until clean, at most 3 passes:
        review-agent review --fix-recursive --max-passes 3
    """
    try:
        config = ReviewConfig.from_env(cwd.resolve() if cwd else None)

        if model is not None:
            config.model = model
        if tools is not None:
            config.allowed_tools = parse_tools(tools)
        if permission_mode is not None:
            config.permission_mode = permission_mode
        if max_turns is not None:
            config.max_turns = max_turns
        if max_passes is not None:
            config.max_passes = max_passes
        if mock:
            config.mock_mode = True
    except ConfigurationError as e:
        _fail(str(e), EXIT_CONFIG_ERROR)

    setup_logging(verbose, config.log_level)
    logger = logging.getLogger(__name__)
    show_trace = verbose or config.debug

    # Validate configuration
    errors = config.validate()
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  - {escape(error)}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    for warning in config.warnings():
        console.print(f"[yellow]⚠ Warning: {escape(warning)}[/yellow]")

    if config.permission_mode == "bypassPermissions":
        try:
            confirm_bypass(config)
        except ConfigurationError as e:
            _fail(str(e), EXIT_CONFIG_ERROR)

    try:
        assets = PromptAssets.load(config.prompts_dir, config.skills_dir)
    except PromptLoadError as e:
        _fail(str(e), EXIT_RUNTIME_ERROR, show_trace)

    mode = _resolve_mode(fix, fix_recursive)
    engine = MockAgentEngine() if config.mock_mode else ClaudeAgentEngine()
    renderer = EventRenderer(console)

    logger.debug(f"Mode: {mode.value}, model: {config.model}, cwd: {config.cwd}")

    try:
        outcome = asyncio.run(
            run_review(prompt or DEFAULT_PROMPT, config, assets, engine, mode, renderer)
        )
    except ConfigurationError as e:
        _fail(str(e), EXIT_CONFIG_ERROR)
    except AgentQueryError as e:
        _fail(str(e), EXIT_RUNTIME_ERROR, show_trace)

    _display_outcome(outcome)


def _display_outcome(outcome: ReviewOutcome) -> None:
    """Print the closing note for a run.

    Loop outcomes other than all-clear are warnings, not failures.
    """
    loop_result = outcome.loop_result
    if loop_result is None:
        return

    passes = f"{loop_result.passes} pass(es)"
    if loop_result.state == LoopState.ALL_CLEAR:
        console.print(f"[green]Review finished clean after {passes}.[/green]")
    elif loop_result.state == LoopState.STOPPED_NO_EDITS:
        console.print(
            f"[yellow]Stopped after {passes}: the agent made no edits and did not report ALL_CLEAR. "
            "Issues may remain.[/yellow]"
        )
    else:
        console.print(f"[yellow]Stopped after {passes}. Issues may remain.[/yellow]")


@app.command("list-tools")
def list_tools() -> None:
    """List the tools, models and permission modes the agent accepts."""
    table = Table(title="Accepted Values")
    table.add_column("Setting", style="cyan")
    table.add_column("Values")

    table.add_row("--tools", ", ".join(VALID_TOOLS))
    table.add_row("--model", ", ".join(VALID_MODELS))
    table.add_row("--permission-mode", ", ".join(VALID_PERMISSION_MODES))

    console.print(table)
