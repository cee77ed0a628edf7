"""Agent engine integration.

Wraps ``claude_agent_sdk.query`` behind a small interface: submit a prompt
plus options, get back an async iterator of normalized events. The mock
engine replays scripted events for tests and ``--mock`` runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

import claude_agent_sdk as sdk

from .events import AgentEvent, AssistantEvent, ResultEvent, TextBlock, normalize_message

logger = logging.getLogger(__name__)


class AgentQueryError(Exception):
    """Exception raised when the engine call or its stream fails."""

    pass


@dataclass
class EngineOptions:
    """Options passed to the engine for every pass."""

    model: str
    allowed_tools: list[str]
    permission_mode: str = "acceptEdits"
    system_prompt_append: str = ""
    max_turns: Optional[int] = None
    cwd: Optional[str] = None
    # Only project-level settings are loaded; run on trusted projects only.
    setting_sources: list[str] = field(default_factory=lambda: ["project"])

    def to_sdk(self) -> sdk.ClaudeAgentOptions:
        """Build the SDK options object."""
        kwargs = {
            "model": self.model,
            "allowed_tools": list(self.allowed_tools),
            "permission_mode": self.permission_mode,
            "setting_sources": list(self.setting_sources),
            "system_prompt": {
                "type": "preset",
                "preset": "claude_code",
                "append": self.system_prompt_append,
            },
        }
        if self.max_turns:
            kwargs["max_turns"] = self.max_turns
        if self.cwd:
            kwargs["cwd"] = self.cwd
        return sdk.ClaudeAgentOptions(**kwargs)


class ClaudeAgentEngine:
    """Runs prompts through the Claude agent SDK."""

    async def submit(self, prompt: str, options: EngineOptions) -> AsyncIterator[AgentEvent]:
        """Submit a prompt and yield normalized events in emission order.

        Args:
            prompt: Instruction text for the agent.
            options: Engine options for this call.

        Yields:
            Events converted from SDK messages; messages with nothing
            relevant are skipped.

        Raises:
            AgentQueryError: If the SDK call or its stream fails.
        """
        logger.debug(f"Submitting prompt ({len(prompt)} chars) to model {options.model}")
        try:
            async for message in sdk.query(prompt=prompt, options=options.to_sdk()):
                event = normalize_message(message)
                if event is not None:
                    yield event
        except (sdk.ClaudeSDKError, OSError) as e:
            raise AgentQueryError(f"Agent query failed: {e}") from e


ScriptStep = Union[AgentEvent, BaseException]


class MockAgentEngine:
    """Mock engine that replays scripted events, for tests and dry runs."""

    def __init__(self, scripts: Optional[list[list[ScriptStep]]] = None):
        """Initialize the mock engine.

        Args:
            scripts: One list of steps per call. A step is either an event
                to yield or an exception to raise at that point. When calls
                outnumber scripts, the last script is replayed.
        """
        self.scripts = scripts if scripts is not None else [default_mock_script()]
        self.prompts: list[str] = []
        self.options: list[EngineOptions] = []

    @property
    def call_count(self) -> int:
        """Number of prompts submitted so far."""
        return len(self.prompts)

    async def submit(self, prompt: str, options: EngineOptions) -> AsyncIterator[AgentEvent]:
        """Yield the scripted events for this call."""
        index = min(len(self.prompts), len(self.scripts) - 1)
        self.prompts.append(prompt)
        self.options.append(options)
        if index < 0:
            return
        for step in self.scripts[index]:
            if isinstance(step, BaseException):
                raise step
            yield step


def default_mock_script() -> list[ScriptStep]:
    """Canned review pass used by ``--mock``."""
    return [
        AssistantEvent(content=[TextBlock(text="Mock review complete. No issues found.\n\nALL_CLEAR")]),
        ResultEvent(turns=1, duration_ms=0, cost_usd=0.0),
    ]
