"""Status line parsing for agent transcripts.

The agent is asked to finish every recursive-fix pass with a single status
marker on its last line, either ``ALL_CLEAR`` or ``CRITICAL_REMAINING: N``.
The agent does not always follow that convention, so anything that does not
match exactly is reported as ``UNKNOWN`` rather than guessed at.
"""

from __future__ import annotations

import re
from enum import Enum

from .formatting import strip_ansi_codes

ALL_CLEAR_MARKER = "ALL_CLEAR"

# At most 6 ASCII digits; anything else is treated as garbage.
CRITICAL_REMAINING_PATTERN = re.compile(r"^CRITICAL_REMAINING:\s*([0-9]{1,6})$", re.IGNORECASE)


class ReviewStatus(str, Enum):
    """Outcome declared by the agent at the end of a pass."""

    ALL_CLEAR = "all_clear"
    CRITICAL_REMAINING = "critical_remaining"
    UNKNOWN = "unknown"


def last_non_empty_line(text: str) -> str:
    """Return the last line of ``text`` that is not blank, stripped."""
    for line in reversed(text.splitlines()):
        stripped = line.strip()
        if stripped:
            return stripped
    return ""


def classify(text: str) -> ReviewStatus:
    """Classify an agent transcript by its final status line.

    Args:
        text: Free text emitted by the agent, possibly multi-line and
            possibly containing ANSI color codes.

    Returns:
        ``ALL_CLEAR`` for ``ALL_CLEAR`` or ``CRITICAL_REMAINING: 0``,
        ``CRITICAL_REMAINING`` for a positive count, ``UNKNOWN`` otherwise.
    """
    if not isinstance(text, str):
        return ReviewStatus.UNKNOWN

    trimmed = text.strip()
    if not trimmed:
        return ReviewStatus.UNKNOWN

    line = strip_ansi_codes(last_non_empty_line(trimmed)).upper().strip()
    if line == ALL_CLEAR_MARKER:
        return ReviewStatus.ALL_CLEAR

    match = CRITICAL_REMAINING_PATTERN.match(line)
    if match:
        remaining = int(match.group(1))
        return ReviewStatus.ALL_CLEAR if remaining == 0 else ReviewStatus.CRITICAL_REMAINING

    return ReviewStatus.UNKNOWN
