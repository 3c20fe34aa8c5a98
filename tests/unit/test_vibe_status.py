from __future__ import annotations

import pytest

from shared.vibe_status import VibeStatus


@pytest.mark.parametrize(
    "status,wire",
    [
        (VibeStatus.WORKING, "working"),
        (VibeStatus.IDLE, "idle"),
        (VibeStatus.NEEDS_INPUT, "needs_input"),
        (VibeStatus.NOT_RUNNING, "not_running"),
    ],
)
def test_wire_string_roundtrip(status, wire):
    assert status.value == wire
    assert VibeStatus.from_wire(wire) is status


@pytest.mark.parametrize("value", ["", "Working", "needsInput", "notRunning", "done", None, 1])
def test_from_wire_rejects_unknown_values(value):
    assert VibeStatus.from_wire(value) is None


def test_presentation_strings():
    assert VibeStatus.IDLE.display_name == "Ready"
    assert VibeStatus.NEEDS_INPUT.display_name == "Needs Input"
    assert VibeStatus.WORKING.short_name == "Working..."
    assert VibeStatus.NOT_RUNNING.short_name == "Not running"
    assert VibeStatus.NEEDS_INPUT.emoji == "❓"


def test_presentation_is_total():
    for status in VibeStatus:
        assert status.display_name
        assert status.short_name
        assert status.emoji
