"""
Shared data models for VibeStatus session and prompt records.

These are immutable value objects exchanged between the desktop host and the
mobile companion through a remote key-value record store.
"""

from .prompt import PromptData, PromptRecord
from .record import RemoteRecord
from .session import SessionInfo, SessionRecord, StatusData
from .vibe_status import VibeStatus

__all__ = [
    "PromptData",
    "PromptRecord",
    "RemoteRecord",
    "SessionInfo",
    "SessionRecord",
    "StatusData",
    "VibeStatus",
]
