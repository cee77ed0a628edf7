"""Recursive review -> fix -> re-review loop.

Each pass asks the agent to fix what it finds. As long as a pass edits
files, the next pass re-reviews exactly those files. The loop ends when the
agent declares all-clear without needing further edits, when a pass makes
no edits at all, or when the pass budget runs out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .config import DEFAULT_MAX_PASSES, MAX_PASSES_LIMIT, ConfigurationError
from .display import EventRenderer
from .executor import PassExecutor, PassResult
from .prompts import FIX_PROMPT_PREFIX, build_re_review_prompt
from .status import ReviewStatus, classify

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """Terminal states of the recursive loop."""

    ALL_CLEAR = "all_clear"
    MAX_PASSES_REACHED = "max_passes_reached"
    STOPPED_NO_EDITS = "stopped_no_edits"


@dataclass(frozen=True)
class LoopResult:
    """Outcome of a recursive fix run."""

    state: LoopState
    passes: int
    status: ReviewStatus
    last_result: Optional[PassResult] = None

    @property
    def success(self) -> bool:
        """True when the agent reported no remaining critical issues."""
        return self.state == LoopState.ALL_CLEAR


def validate_max_passes(value: Any) -> int:
    """Check that a pass budget is an integer within 1..MAX_PASSES_LIMIT.

    Raises:
        ConfigurationError: If the value is not an acceptable integer.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"max passes must be an integer, got {value!r}")
    if not 1 <= value <= MAX_PASSES_LIMIT:
        raise ConfigurationError(f"max passes must be between 1 and {MAX_PASSES_LIMIT}, got {value}")
    return value


class LoopController:
    """Sequences passes until the agent is done or the budget is spent."""

    def __init__(
        self,
        executor: PassExecutor,
        max_passes: int = DEFAULT_MAX_PASSES,
        renderer: Optional[EventRenderer] = None,
    ):
        self.executor = executor
        self.max_passes = max_passes
        self.renderer = renderer

    async def run(self, instruction: str) -> LoopResult:
        """Run the loop for an instruction.

        Args:
            instruction: The user's review request.

        Returns:
            LoopResult describing how the loop ended.

        Raises:
            ConfigurationError: If max_passes is invalid; no pass is run.
            AgentQueryError: If any pass fails at the engine level.
        """
        max_passes = validate_max_passes(self.max_passes)

        result = await self._run_pass(1, max_passes, FIX_PROMPT_PREFIX + instruction)

        for pass_index in range(2, max_passes + 1):
            if result.edit_count == 0:
                status = classify(result.last_text)
                if status == ReviewStatus.ALL_CLEAR:
                    return self._finish(LoopState.ALL_CLEAR, pass_index - 1, status, result)
                return self._finish(LoopState.STOPPED_NO_EDITS, pass_index - 1, status, result)

            prompt = build_re_review_prompt(result.edited_files)
            result = await self._run_pass(pass_index, max_passes, prompt)

        status = classify(result.last_text)
        if status == ReviewStatus.ALL_CLEAR:
            return self._finish(LoopState.ALL_CLEAR, max_passes, status, result)
        return self._finish(LoopState.MAX_PASSES_REACHED, max_passes, status, result)

    async def _run_pass(self, pass_index: int, max_passes: int, prompt: str) -> PassResult:
        logger.info(f"Pass {pass_index}/{max_passes} started")
        if self.renderer is not None:
            self.renderer.pass_started(pass_index, max_passes)

        result = await self.executor.execute(prompt)

        logger.info(
            f"Pass {pass_index}/{max_passes} complete: {result.edit_count} edit(s), "
            f"{len(result.edited_files)} file(s)"
        )
        if self.renderer is not None:
            self.renderer.pass_completed(pass_index, result.edit_count)
        return result

    def _finish(
        self,
        state: LoopState,
        passes: int,
        status: ReviewStatus,
        result: PassResult,
    ) -> LoopResult:
        logger.info(f"Loop finished after {passes} pass(es): {state.value} (last status: {status.value})")
        if self.renderer is not None:
            if state == LoopState.ALL_CLEAR:
                self.renderer.all_clear()
            elif state == LoopState.STOPPED_NO_EDITS:
                self.renderer.stopped_no_edits(status.value)
            else:
                self.renderer.max_passes_reached(self.max_passes, status.value)
        return LoopResult(state=state, passes=passes, status=status, last_result=result)
