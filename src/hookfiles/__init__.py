"""
Readers and writers for the JSON files the Claude Code hook scripts leave in
the status directory.
"""

__all__ = ["status_files"]
