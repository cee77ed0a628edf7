"""Main entry point for running review-agent as a module.

Usage:
    python -m reviewagent --help
    python -m reviewagent review "Review src/ for security issues"
    python -m reviewagent review --fix-recursive --max-passes 3
"""

from __future__ import annotations

from .cli import app

if __name__ == "__main__":
    app()
