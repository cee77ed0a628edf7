"""Tests for the recursive fix loop."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, call

import pytest

from reviewagent.config import ConfigurationError
from reviewagent.display import EventRenderer
from reviewagent.engine import AgentQueryError, EngineOptions, MockAgentEngine
from reviewagent.events import AssistantEvent, ResultEvent, TextBlock, ToolUseBlock
from reviewagent.executor import PassExecutor
from reviewagent.loop import LoopController, LoopResult, LoopState, validate_max_passes
from reviewagent.prompts import FIX_PROMPT_PREFIX
from reviewagent.status import ReviewStatus


def edits(*paths: str) -> AssistantEvent:
    return AssistantEvent(content=[
        ToolUseBlock(name="Edit", input={"file_path": p, "old_string": "a", "new_string": "b"}) for p in paths
    ])


def says(text: str) -> AssistantEvent:
    return AssistantEvent(content=[TextBlock(text=text)])


def run_loop(
    scripts: list,
    options: EngineOptions,
    max_passes: int = 5,
    renderer=None,
) -> tuple[LoopResult, MockAgentEngine]:
    engine = MockAgentEngine(scripts)
    controller = LoopController(PassExecutor(engine, options), max_passes=max_passes, renderer=renderer)
    return asyncio.run(controller.run("Review the repo")), engine


class TestValidateMaxPasses:
    """Tests for validate_max_passes function."""

    @pytest.mark.parametrize("value", [1, 5, 100])
    def test_valid(self, value: int) -> None:
        """Test accepted budgets."""
        assert validate_max_passes(value) == value

    @pytest.mark.parametrize("value", [0, -1, 101, True, False, "3", 2.0, None])
    def test_invalid(self, value) -> None:
        """Test rejected budgets."""
        with pytest.raises(ConfigurationError, match="max passes"):
            validate_max_passes(value)


class TestLoopController:
    """Tests for LoopController."""

    def test_edits_then_all_clear(self, engine_options: EngineOptions) -> None:
        """Test a fix pass followed by a clean re-review."""
        result, engine = run_loop(
            [
                [edits("a.py", "b.py", "a.py"), says("Fixed three issues.\nCRITICAL_REMAINING: 0"), ResultEvent(turns=4)],
                [says("Checked again.\nALL_CLEAR"), ResultEvent(turns=1)],
            ],
            engine_options,
        )

        assert result.state == LoopState.ALL_CLEAR
        assert result.passes == 2
        assert result.status == ReviewStatus.ALL_CLEAR
        assert result.success is True
        assert engine.call_count == 2
        assert "- a.py\n- b.py\n" in engine.prompts[1]
        assert engine.prompts[1].count("- a.py") == 1

    def test_first_prompt_is_prefixed(self, engine_options: EngineOptions) -> None:
        """Test the first pass wraps the user's instruction."""
        _, engine = run_loop([[says("ALL_CLEAR")]], engine_options)

        assert engine.prompts == [FIX_PROMPT_PREFIX + "Review the repo"]

    def test_re_review_prompt_is_prefixed(self, engine_options: EngineOptions) -> None:
        """Test follow-up passes stay in fix mode."""
        _, engine = run_loop([[edits("a.py")], [says("ALL_CLEAR")]], engine_options)

        assert engine.prompts[1].startswith(FIX_PROMPT_PREFIX + "Re-review the following files")

    def test_clean_first_pass(self, engine_options: EngineOptions) -> None:
        """Test that no edits plus ALL_CLEAR stops after one pass."""
        result, engine = run_loop([[says("Nothing to fix.\nALL_CLEAR")]], engine_options)

        assert result.state == LoopState.ALL_CLEAR
        assert result.passes == 1
        assert engine.call_count == 1

    def test_always_edits_hits_max_passes(self, engine_options: EngineOptions) -> None:
        """Test an agent that edits on every pass and never clears."""
        result, engine = run_loop(
            [[edits("a.py"), says("CRITICAL_REMAINING: 2")]],
            engine_options,
            max_passes=3,
        )

        assert result.state == LoopState.MAX_PASSES_REACHED
        assert result.passes == 3
        assert result.status == ReviewStatus.CRITICAL_REMAINING
        assert result.success is False
        assert engine.call_count == 3

    def test_edits_and_all_clear_on_last_pass(self, engine_options: EngineOptions) -> None:
        """Test the final pass reporting ALL_CLEAR after editing."""
        result, engine = run_loop(
            [[edits("a.py"), says("CRITICAL_REMAINING: 1")], [edits("a.py"), says("ALL_CLEAR")]],
            engine_options,
            max_passes=2,
        )

        assert result.state == LoopState.ALL_CLEAR
        assert result.passes == 2
        assert engine.call_count == 2

    def test_no_edits_with_unparseable_status(self, engine_options: EngineOptions) -> None:
        """Test that a non-conforming status line stops early."""
        result, engine = run_loop([[says("looks fine, CRITICAL_REMAINING: 1")]], engine_options)

        assert result.state == LoopState.STOPPED_NO_EDITS
        assert result.passes == 1
        assert result.status == ReviewStatus.UNKNOWN
        assert engine.call_count == 1

    def test_no_edits_with_criticals_remaining(self, engine_options: EngineOptions) -> None:
        """Test an agent that reports criticals but fixes nothing."""
        result, engine = run_loop(
            [[edits("a.py"), says("CRITICAL_REMAINING: 2")], [says("Can't fix these.\nCRITICAL_REMAINING: 2")]],
            engine_options,
        )

        assert result.state == LoopState.STOPPED_NO_EDITS
        assert result.passes == 2
        assert result.status == ReviewStatus.CRITICAL_REMAINING
        assert engine.call_count == 2

    def test_edits_with_all_clear_still_re_reviews(self, engine_options: EngineOptions) -> None:
        """Test that a pass which edited files is always re-reviewed."""
        result, engine = run_loop(
            [[edits("a.py"), says("ALL_CLEAR")], [says("ALL_CLEAR")]],
            engine_options,
        )

        assert result.state == LoopState.ALL_CLEAR
        assert result.passes == 2
        assert engine.call_count == 2

    def test_single_pass_budget(self, engine_options: EngineOptions) -> None:
        """Test max_passes=1 never issues a second call."""
        result, engine = run_loop(
            [[edits("a.py"), says("CRITICAL_REMAINING: 1")]],
            engine_options,
            max_passes=1,
        )

        assert result.state == LoopState.MAX_PASSES_REACHED
        assert result.passes == 1
        assert engine.call_count == 1

    def test_single_pass_budget_all_clear(self, engine_options: EngineOptions) -> None:
        """Test max_passes=1 with a clean result."""
        result, _ = run_loop([[edits("a.py"), says("ALL_CLEAR")]], engine_options, max_passes=1)

        assert result.state == LoopState.ALL_CLEAR
        assert result.passes == 1

    def test_edits_without_paths_use_generic_prompt(self, engine_options: EngineOptions) -> None:
        """Test a re-review when the edits carried no file paths."""
        _, engine = run_loop(
            [[AssistantEvent(content=[ToolUseBlock(name="Write", input={})])], [says("ALL_CLEAR")]],
            engine_options,
        )

        assert "Re-review all source files that were just modified." in engine.prompts[1]

    def test_last_result_is_final_pass(self, engine_options: EngineOptions) -> None:
        """Test that the loop result carries the last pass."""
        result, _ = run_loop([[edits("x.py")], [says("done\nALL_CLEAR")]], engine_options)

        assert result.last_result is not None
        assert result.last_result.last_text == "done\nALL_CLEAR"
        assert result.last_result.edit_count == 0

    @pytest.mark.parametrize("max_passes", [0, 101, True, "3"])
    def test_invalid_max_passes_makes_no_calls(self, engine_options: EngineOptions, max_passes) -> None:
        """Test that a bad budget fails before any engine call."""
        engine = MockAgentEngine([[says("ALL_CLEAR")]])
        controller = LoopController(PassExecutor(engine, engine_options), max_passes=max_passes)

        with pytest.raises(ConfigurationError):
            asyncio.run(controller.run("Review"))

        assert engine.call_count == 0

    def test_engine_failure_propagates(self, engine_options: EngineOptions) -> None:
        """Test that a transport error in a later pass aborts the loop."""
        engine = MockAgentEngine([[edits("a.py")], [TimeoutError("timed out")]])
        controller = LoopController(PassExecutor(engine, engine_options), max_passes=5)

        with pytest.raises(AgentQueryError, match="timed out"):
            asyncio.run(controller.run("Review"))

        assert engine.call_count == 2

    def test_renderer_progress(self, engine_options: EngineOptions) -> None:
        """Test pass headers, summaries and the final banner."""
        renderer = MagicMock(spec=EventRenderer)

        run_loop([[edits("a.py", "b.py")], [says("ALL_CLEAR")]], engine_options, renderer=renderer)

        assert renderer.pass_started.call_args_list == [call(1, 5), call(2, 5)]
        assert renderer.pass_completed.call_args_list == [call(1, 2), call(2, 0)]
        renderer.all_clear.assert_called_once()
        renderer.max_passes_reached.assert_not_called()

    def test_renderer_max_passes_banner(self, engine_options: EngineOptions) -> None:
        """Test the banner when the budget runs out."""
        renderer = MagicMock(spec=EventRenderer)

        run_loop([[edits("a.py"), says("nope")]], engine_options, max_passes=2, renderer=renderer)

        renderer.max_passes_reached.assert_called_once_with(2, "unknown")

    def test_renderer_stopped_banner(self, engine_options: EngineOptions) -> None:
        """Test the banner when a pass makes no edits."""
        renderer = MagicMock(spec=EventRenderer)

        run_loop([[says("CRITICAL_REMAINING: 4")]], engine_options, renderer=renderer)

        renderer.stopped_no_edits.assert_called_once_with("critical_remaining")
