"""Run modes for a review: plain review, single fix pass, recursive fixing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import ReviewConfig
from .display import EventRenderer
from .engine import EngineOptions
from .executor import AgentEngine, PassExecutor, PassResult
from .loop import LoopController, LoopResult
from .prompts import FIX_PROMPT_PREFIX, PromptAssets, ReviewMode, validate_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """What a run produced. Exactly one of the results is set."""

    mode: ReviewMode
    pass_result: Optional[PassResult] = None
    loop_result: Optional[LoopResult] = None


def build_engine_options(config: ReviewConfig, assets: PromptAssets, mode: ReviewMode) -> EngineOptions:
    """Translate configuration into engine options for a run mode."""
    return EngineOptions(
        model=config.model,
        allowed_tools=list(config.allowed_tools),
        permission_mode=config.permission_mode,
        system_prompt_append=assets.system_prompt_append(mode),
        max_turns=config.max_turns,
        cwd=str(config.cwd),
    )


async def run_review(
    prompt: str,
    config: ReviewConfig,
    assets: PromptAssets,
    engine: AgentEngine,
    mode: ReviewMode = ReviewMode.REVIEW,
    renderer: Optional[EventRenderer] = None,
) -> ReviewOutcome:
    """Run a review in the given mode.

    Args:
        prompt: The user's instruction.
        config: Validated run configuration.
        assets: System prompt and skills loaded at startup.
        engine: Engine to run passes on.
        mode: Review, single fix pass, or recursive fixing.
        renderer: Optional renderer for live output.

    Returns:
        ReviewOutcome with the pass or loop result.

    Raises:
        ConfigurationError: For an invalid prompt or pass budget.
        AgentQueryError: If the engine fails.
    """
    validate_prompt(prompt, config.max_prompt_length)

    options = build_engine_options(config, assets, mode)
    executor = PassExecutor(engine, options, renderer)
    logger.debug(f"Starting {mode.value} run with model {config.model}")

    if mode == ReviewMode.FIX_RECURSIVE:
        controller = LoopController(executor, config.max_passes, renderer)
        return ReviewOutcome(mode=mode, loop_result=await controller.run(prompt))

    if mode == ReviewMode.FIX:
        result = await executor.execute(FIX_PROMPT_PREFIX + prompt)
        if renderer is not None:
            renderer.edits_applied(result.edit_count)
        return ReviewOutcome(mode=mode, pass_result=result)

    return ReviewOutcome(mode=mode, pass_result=await executor.execute(prompt))
