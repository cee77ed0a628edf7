"""Configuration management for review-agent."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
VALID_MODELS = ("claude-sonnet-4-5-20250929", "claude-opus-4-6", "claude-opus-4")

VALID_TOOLS = ("Read", "Edit", "Glob", "Grep", "Write", "Bash")
DEFAULT_TOOLS = VALID_TOOLS

VALID_PERMISSION_MODES = ("default", "acceptEdits", "bypassPermissions")
DEFAULT_PERMISSION_MODE = "acceptEdits"

DEFAULT_MAX_PASSES = 5
MAX_PASSES_LIMIT = 100

DEFAULT_MAX_PROMPT_LENGTH = 50000
MAX_PROMPT_LENGTH_CAP = 100000

SETTINGS_FILENAME = ".review-agent.yaml"

API_KEY_PATTERN = re.compile(r"^sk-ant-[a-zA-Z0-9_-]{40,}$")

PACKAGE_DIR = Path(__file__).parent


class ConfigurationError(ValueError):
    """Exception raised for invalid options or inputs, before any engine call."""

    pass


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def parse_max_prompt_length(raw: Optional[str]) -> int:
    """Parse MAX_PROMPT_LENGTH, falling back to the default and capping it.

    Args:
        raw: Raw environment value, or None when unset.

    Returns:
        Maximum prompt length in characters.
    """
    if not raw:
        return DEFAULT_MAX_PROMPT_LENGTH
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_MAX_PROMPT_LENGTH
    if parsed < 1:
        return DEFAULT_MAX_PROMPT_LENGTH
    return min(parsed, MAX_PROMPT_LENGTH_CAP)


def parse_tools(raw: str) -> list[str]:
    """Parse a comma-separated tool list.

    Raises:
        ConfigurationError: If any tool name is not allowed.
    """
    tools = [t.strip() for t in raw.split(",") if t.strip()]
    invalid = [t for t in tools if t not in VALID_TOOLS]
    if invalid:
        raise ConfigurationError(f"Invalid tools: {', '.join(invalid)}")
    return tools


@dataclass
class ReviewSettings:
    """Per-project defaults read from .review-agent.yaml."""

    model: Optional[str] = None
    tools: Optional[list[str]] = None
    permission_mode: Optional[str] = None
    max_turns: Optional[int] = None
    max_passes: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> ReviewSettings:
        """Create ReviewSettings from dictionary."""
        tools = data.get("tools")
        if isinstance(tools, str):
            tools = [t.strip() for t in tools.split(",") if t.strip()]
        elif isinstance(tools, list):
            tools = [str(t) for t in tools]
        elif tools is not None:
            raise ConfigurationError(f"tools must be a list or comma-separated string, got {tools!r}")
        return cls(
            model=data.get("model"),
            tools=tools or None,
            permission_mode=data.get("permission_mode"),
            max_turns=data.get("max_turns"),
            max_passes=data.get("max_passes"),
        )

    @classmethod
    def load_from_file(cls, directory: Path) -> ReviewSettings:
        """Load settings from YAML file, or defaults if it doesn't exist."""
        settings_path = directory / SETTINGS_FILENAME
        if settings_path.exists():
            try:
                with open(settings_path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Failed to parse {settings_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"{settings_path} must contain a mapping")
            return cls.from_dict(data)
        return cls()


@dataclass
class ReviewConfig:
    """Configuration settings for a review run."""

    # API Keys
    anthropic_api_key: Optional[str] = None

    # Engine Settings
    model: str = DEFAULT_MODEL
    allowed_tools: list[str] = field(default_factory=lambda: list(DEFAULT_TOOLS))
    permission_mode: str = DEFAULT_PERMISSION_MODE
    max_turns: Optional[int] = None
    cwd: Path = field(default_factory=Path.cwd)

    # Loop Settings
    max_passes: int = DEFAULT_MAX_PASSES
    max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH

    # Prompt text locations
    prompts_dir: Path = PACKAGE_DIR / "prompts"
    skills_dir: Path = PACKAGE_DIR / "skills"

    # Runtime Settings
    log_level: str = "WARNING"
    mock_mode: bool = False
    debug: bool = False
    confirm_bypass: bool = False

    @classmethod
    def from_env(cls, cwd: Optional[Path] = None) -> ReviewConfig:
        """Load configuration from environment variables and the settings file.

        Args:
            cwd: Optional working directory. Defaults to CWD.

        Returns:
            ReviewConfig instance populated from environment.
        """
        load_dotenv()

        workdir = Path(cwd) if cwd else Path.cwd()
        settings = ReviewSettings.load_from_file(workdir) if workdir.is_dir() else ReviewSettings()

        max_passes = _env_int("REVIEW_AGENT_MAX_PASSES")

        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("REVIEW_AGENT_MODEL") or settings.model or DEFAULT_MODEL,
            allowed_tools=settings.tools or list(DEFAULT_TOOLS),
            permission_mode=settings.permission_mode or DEFAULT_PERMISSION_MODE,
            max_turns=settings.max_turns,
            cwd=workdir,
            max_passes=max_passes if max_passes is not None else (settings.max_passes or DEFAULT_MAX_PASSES),
            max_prompt_length=parse_max_prompt_length(os.getenv("MAX_PROMPT_LENGTH")),
            prompts_dir=Path(os.getenv("REVIEW_AGENT_PROMPTS_DIR", str(PACKAGE_DIR / "prompts"))),
            skills_dir=Path(os.getenv("REVIEW_AGENT_SKILLS_DIR", str(PACKAGE_DIR / "skills"))),
            log_level=os.getenv("REVIEW_AGENT_LOG_LEVEL", "WARNING"),
            mock_mode=_env_flag("REVIEW_AGENT_MOCK_MODE"),
            debug=bool(os.getenv("DEBUG")),
            confirm_bypass=os.getenv("CONFIRM_BYPASS_PERMISSIONS") == "1",
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of validation error messages. Empty if valid.
        """
        errors = []

        # API key not required in mock mode
        if not self.mock_mode and not (self.anthropic_api_key or "").strip():
            errors.append("ANTHROPIC_API_KEY is not set or empty")

        if self.model not in VALID_MODELS:
            errors.append(f"Invalid model: {self.model}")

        invalid_tools = [t for t in self.allowed_tools if t not in VALID_TOOLS]
        if invalid_tools:
            errors.append(f"Invalid tools: {', '.join(invalid_tools)}")

        if self.permission_mode not in VALID_PERMISSION_MODES:
            errors.append(
                f"Invalid permission mode: {self.permission_mode}. "
                f"Must be one of: {', '.join(VALID_PERMISSION_MODES)}"
            )

        if isinstance(self.max_passes, bool) or not isinstance(self.max_passes, int) \
                or not 1 <= self.max_passes <= MAX_PASSES_LIMIT:
            errors.append(f"--max-passes must be an integer between 1 and {MAX_PASSES_LIMIT}")

        if self.max_turns is not None and (not isinstance(self.max_turns, int) or self.max_turns <= 0):
            errors.append("--max-turns must be a positive integer")

        if not self.cwd.is_dir():
            errors.append(f"Working directory does not exist: {self.cwd}")

        return errors

    def warnings(self) -> list[str]:
        """Return non-fatal configuration problems."""
        warnings = []
        key = (self.anthropic_api_key or "").strip()
        if key and not API_KEY_PATTERN.match(key):
            warnings.append("ANTHROPIC_API_KEY may have an invalid format (expected sk-ant-...)")
        return warnings
