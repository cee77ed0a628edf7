"""Review agent: drives a coding agent through review, fix and re-review passes."""

__version__ = "1.0.0"
