"""Single pass execution against the agent engine.

A pass submits one prompt, drains the engine's event stream in order and
reduces it to a :class:`PassResult`: the agent's last words, how many
file edits it made, and which files those edits touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol

from .config import ConfigurationError
from .display import EventRenderer
from .edits import EditTracker
from .engine import AgentQueryError, EngineOptions
from .events import AgentEvent, AssistantEvent, TextBlock
from .prompts import sanitize_prompt

logger = logging.getLogger(__name__)


class AgentEngine(Protocol):
    """Anything that turns a prompt into a stream of events."""

    def submit(self, prompt: str, options: EngineOptions) -> AsyncIterator[AgentEvent]:
        ...


@dataclass(frozen=True)
class PassResult:
    """Outcome of one pass."""

    last_text: str = ""
    edit_count: int = 0
    edited_files: frozenset[str] = field(default_factory=frozenset)


def extract_last_text(event: AgentEvent) -> Optional[str]:
    """Return the last non-empty text block of an assistant event."""
    if not isinstance(event, AssistantEvent):
        return None
    text = None
    for block in event.content:
        if isinstance(block, TextBlock) and isinstance(block.text, str) and block.text.strip():
            text = block.text
    return text


class PassExecutor:
    """Runs one prompt through the engine and collects the result."""

    def __init__(
        self,
        engine: AgentEngine,
        options: EngineOptions,
        renderer: Optional[EventRenderer] = None,
    ):
        """Initialize the executor.

        Args:
            engine: Engine to submit prompts to.
            options: Engine options used for every pass.
            renderer: Optional renderer for live output.
        """
        self.engine = engine
        self.options = options
        self.renderer = renderer

    async def execute(self, prompt: str) -> PassResult:
        """Run a single pass.

        Args:
            prompt: Instruction for the agent.

        Returns:
            PassResult for this pass.

        Raises:
            ConfigurationError: If the prompt is empty after sanitizing.
            AgentQueryError: If the engine call or its stream fails.
        """
        clean_prompt = sanitize_prompt(prompt)
        if not clean_prompt.strip():
            raise ConfigurationError("Prompt cannot be empty")

        tracker = EditTracker()
        last_text = ""

        try:
            async for event in self.engine.submit(clean_prompt, self.options):
                tracker.observe(event)
                self._render(event)
                text = extract_last_text(event)
                if text is not None:
                    last_text = text
        except AgentQueryError:
            raise
        except Exception as e:
            raise AgentQueryError(f"Agent query failed: {e}") from e

        logger.debug(
            f"Pass finished: {tracker.edit_count} edit(s) across {len(tracker.edited_files)} file(s)"
        )
        return PassResult(
            last_text=last_text,
            edit_count=tracker.edit_count,
            edited_files=frozenset(tracker.edited_files),
        )

    def _render(self, event: AgentEvent) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer.render(event)
        except Exception as e:
            logger.warning(f"Failed to render {type(event).__name__}: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
