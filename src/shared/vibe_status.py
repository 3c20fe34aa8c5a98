from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class VibeStatus(str, Enum):
    """
    Current operational state of a Claude Code session.

    Values are the wire strings written by the hook scripts and stored in
    remote records; they must never change.
    """

    WORKING = "working"
    IDLE = "idle"
    NEEDS_INPUT = "needs_input"
    NOT_RUNNING = "not_running"

    @classmethod
    def from_wire(cls, value: Any) -> Optional["VibeStatus"]:
        """Decode a wire string; returns None for anything outside the fixed set."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def short_name(self) -> str:
        return _SHORT_NAMES[self]

    @property
    def emoji(self) -> str:
        return _EMOJI[self]


_DISPLAY_NAMES = {
    VibeStatus.WORKING: "Working",
    VibeStatus.IDLE: "Ready",
    VibeStatus.NEEDS_INPUT: "Needs Input",
    VibeStatus.NOT_RUNNING: "Not Running",
}

_SHORT_NAMES = {
    VibeStatus.WORKING: "Working...",
    VibeStatus.IDLE: "Ready",
    VibeStatus.NEEDS_INPUT: "Input needed",
    VibeStatus.NOT_RUNNING: "Not running",
}

_EMOJI = {
    VibeStatus.WORKING: "⚙️",
    VibeStatus.IDLE: "✅",
    VibeStatus.NEEDS_INPUT: "❓",
    VibeStatus.NOT_RUNNING: "⭕",
}
