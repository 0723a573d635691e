"""ccview - local browser for Claude Code conversation logs."""

__version__ = "1.0.0"
