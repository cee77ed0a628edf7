"""Prompt text loading and prompt construction for review-agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

from jinja2 import Template

from .config import ConfigurationError
from .formatting import strip_control_chars

logger = logging.getLogger(__name__)


class ReviewMode(str, Enum):
    """How a run treats the issues it finds."""

    REVIEW = "review"
    FIX = "fix"
    FIX_RECURSIVE = "fix_recursive"


FIX_PROMPT_PREFIX = (
    "IMPORTANT: You are in fix mode. You MUST apply fixes using the Edit tool - do not just report issues. "
    "For each bug or issue you find, immediately call the Edit tool to fix it in the source file. "
    "Do NOT ask the user if they want fixes applied - apply them directly.\n\n"
)

FIX_MODE_INSTRUCTIONS = """

## Fix Mode

Fix mode is enabled. You MUST apply fixes, not just report them.

### Process
1. Review the code and identify Critical and Warning issues.
2. For EACH issue found, immediately use the Edit tool to fix it in the source file.
3. After all edits are applied, output a summary listing every file you changed and what you fixed.

### Rules
- Fix Critical and Warning issues. Skip Suggestions unless they are trivial.
- Make the smallest possible change for each fix. Do not refactor surrounding code.
- You MUST call the Edit tool for each fix. Do not just describe the fix, apply it.
"""

FIX_RECURSIVE_INSTRUCTIONS = """

## Recursive Fix Mode

Recursive fix mode is enabled. You MUST apply fixes, not just report them.

### Process
1. Review the code and identify Critical and Warning issues.
2. For EACH issue found, immediately use the Edit tool to fix it in the source file.
3. After all edits are applied, output a summary in this exact format:

### Fixes Applied
- **file.py:LINE** - description of what was fixed

If no fixes were needed, write: "No fixes needed."

4. On your VERY LAST line of output (after everything else), write ONLY one of these two status markers on its own line:
  - CRITICAL_REMAINING: N  (where N is the count of Critical issues you could NOT fix)
  - ALL_CLEAR  (if zero Critical issues remain after your fixes)

### Rules
- You MUST call the Edit tool for each fix. Do not just describe the fix, apply it.
- Fix Critical and Warning issues. Skip Suggestions.
- Make the smallest possible change. Do not refactor surrounding code.
- The status marker must be the VERY LAST line, with nothing after it.
"""

RE_REVIEW_TEMPLATE = Template(
    "{% if files %}"
    "Re-review the following files that were just modified:\n"
    "{% for path in files %}- {{ path }}\n{% endfor %}"
    "{% else %}"
    "Re-review all source files that were just modified.\n"
    "{% endif %}"
    "Check if the fixes introduced new issues. "
    "Fix any remaining Critical or Warning issues."
)


class PromptLoadError(Exception):
    """Exception raised when packaged prompt text cannot be read."""

    pass


def load_system_prompt(prompts_dir: Path) -> str:
    """Read ``system.md`` from the prompts directory.

    Raises:
        PromptLoadError: If the file is missing or unreadable.
    """
    prompt_path = prompts_dir / "system.md"
    try:
        return prompt_path.read_text(encoding="utf-8")
    except OSError as e:
        raise PromptLoadError(
            f"Failed to load system prompt from {prompt_path}. Ensure prompts/system.md exists.\nCause: {e}"
        ) from e


def load_skills(skills_dir: Path) -> str:
    """Concatenate every markdown skill file, sorted by name.

    A missing skills directory means no skills.

    Returns:
        Skill text prefixed with a blank line, or an empty string.
    """
    if not skills_dir.is_dir():
        logger.debug(f"No skills directory at {skills_dir}")
        return ""

    skill_files = sorted(p for p in skills_dir.iterdir() if p.suffix == ".md" and p.is_file())
    if not skill_files:
        return ""

    try:
        parts = [p.read_text(encoding="utf-8").strip() for p in skill_files]
    except OSError as e:
        raise PromptLoadError(f"Failed to read skills directory: {e}") from e

    logger.debug(f"Loaded {len(skill_files)} skill file(s) from {skills_dir}")
    return "\n\n" + "\n\n".join(parts)


def get_fix_instructions(mode: ReviewMode) -> str:
    """Return the extra system prompt section for a run mode."""
    if mode == ReviewMode.FIX_RECURSIVE:
        return FIX_RECURSIVE_INSTRUCTIONS
    if mode == ReviewMode.FIX:
        return FIX_MODE_INSTRUCTIONS
    return ""


@dataclass(frozen=True)
class PromptAssets:
    """System prompt and skill text, loaded once per process.

    Load it at startup with :meth:`load` and pass the instance down to
    whatever builds engine options.
    """

    system_prompt: str
    skills: str = ""

    @classmethod
    def load(cls, prompts_dir: Path, skills_dir: Path) -> PromptAssets:
        """Read the system prompt and skills from disk."""
        return cls(
            system_prompt=load_system_prompt(prompts_dir),
            skills=load_skills(skills_dir),
        )

    def system_prompt_append(self, mode: ReviewMode) -> str:
        """Text appended to the engine's preset system prompt."""
        return self.system_prompt + self.skills + get_fix_instructions(mode)


def sanitize_prompt(prompt: str) -> str:
    """Strip control characters other than tab, newline and carriage return."""
    return strip_control_chars(prompt)


def validate_prompt(prompt: str, max_length: int) -> None:
    """Check a user prompt before any engine call.

    Raises:
        ConfigurationError: If the prompt is empty or too long.
    """
    if not prompt or not prompt.strip():
        raise ConfigurationError("Prompt cannot be empty")
    if len(prompt) > max_length:
        raise ConfigurationError(f"Prompt exceeds maximum length of {max_length} characters")


def build_re_review_prompt(edited_files: Iterable[str]) -> str:
    """Build the instruction for a follow-up pass.

    Args:
        edited_files: Paths the previous pass modified. When empty, the
            prompt asks for a re-review of everything just modified.

    Returns:
        Prompt text including the fix-mode prefix.
    """
    files = sorted(set(edited_files))
    return FIX_PROMPT_PREFIX + RE_REVIEW_TEMPLATE.render(files=files)
