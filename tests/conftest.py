"""Shared test fixtures for review-agent tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from reviewagent.config import ReviewConfig
from reviewagent.engine import EngineOptions
from reviewagent.prompts import PromptAssets

ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "REVIEW_AGENT_MODEL",
    "REVIEW_AGENT_MAX_PASSES",
    "REVIEW_AGENT_LOG_LEVEL",
    "REVIEW_AGENT_MOCK_MODE",
    "REVIEW_AGENT_PROMPTS_DIR",
    "REVIEW_AGENT_SKILLS_DIR",
    "MAX_PROMPT_LENGTH",
    "CONFIRM_BYPASS_PERMISSIONS",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests from the developer's environment and .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("reviewagent.config.load_dotenv", lambda: None)


@pytest.fixture
def temp_repo(tmp_path: Path) -> Path:
    """Create a temporary repository structure to review."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text('print("Hello, World!")\n')
    (tmp_path / "src" / "util.py").write_text("def add(a, b):\n    return a - b\n")
    return tmp_path


@pytest.fixture
def prompts_dir(tmp_path: Path) -> Path:
    """Create a prompts directory with a system prompt."""
    directory = tmp_path / "prompts"
    directory.mkdir()
    (directory / "system.md").write_text("You are a code reviewer.")
    return directory


@pytest.fixture
def skills_dir(tmp_path: Path) -> Path:
    """Create a skills directory with two skill files."""
    directory = tmp_path / "skills"
    directory.mkdir()
    (directory / "b-security.md").write_text("  Check for injection.  \n")
    (directory / "a-severity.md").write_text("Critical means must-fix.\n")
    (directory / "notes.txt").write_text("not a skill")
    return directory


@pytest.fixture
def prompt_assets() -> PromptAssets:
    """In-memory prompt assets."""
    return PromptAssets(system_prompt="You are a code reviewer.", skills="\n\nSkill text.")


@pytest.fixture
def engine_options() -> EngineOptions:
    """Engine options for executor tests."""
    return EngineOptions(
        model="claude-sonnet-4-5-20250929",
        allowed_tools=["Read", "Edit", "Write"],
        system_prompt_append="You are a code reviewer.",
    )


@pytest.fixture
def mock_config(temp_repo: Path) -> ReviewConfig:
    """Create a mock-mode configuration rooted at the temp repo."""
    return ReviewConfig(
        anthropic_api_key="test-key",
        cwd=temp_repo,
        mock_mode=True,
    )
