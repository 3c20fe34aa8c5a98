from __future__ import annotations

from datetime import datetime, timezone

import pytest

from shared.prompt import PromptData, PromptRecord
from shared.record import RemoteRecord


TS = datetime(2025, 9, 5, 12, 30, tzinfo=timezone.utc)
ANSWERED_AT = datetime(2025, 9, 5, 12, 31, tzinfo=timezone.utc)


def _prompt(**overrides) -> PromptRecord:
    fields = dict(
        id="p-1",
        session_id="abc123",
        project="api",
        prompt_message="Allow edit to main.py?",
        notification_type="permission_prompt",
        transcript_path="/home/me/.claude/t.jsonl",
        transcript_excerpt="user: fix it",
        timestamp=TS,
        pid=4242,
    )
    fields.update(overrides)
    return PromptRecord(**fields)


def test_unanswered_roundtrip():
    prompt = _prompt()
    rec = prompt.to_record()
    assert rec.record_type == "Prompt"
    assert rec.record_name == "p-1"
    assert rec.get_int("responded") == 0
    assert "responseText" not in rec
    assert "respondedAt" not in rec
    assert PromptRecord.from_record(rec) == prompt


def test_answered_roundtrip():
    prompt = _prompt().with_response("yes", device_name="phone", at=ANSWERED_AT)
    rec = prompt.to_record()
    assert rec.get_int("responded") == 1
    assert rec.get_str("responseText") == "yes"
    assert rec.get_datetime("respondedAt") == ANSWERED_AT
    assert rec.get_str("respondedFromDevice") == "phone"
    assert PromptRecord.from_record(rec) == prompt


def test_optional_fields_omitted_when_absent():
    rec = _prompt(transcript_path=None, transcript_excerpt=None, pid=None).to_record()
    for name in ("transcriptPath", "transcriptExcerpt", "pid", "responseText", "respondedAt", "respondedFromDevice"):
        assert name not in rec


@pytest.mark.parametrize(
    "missing", ["promptId", "sessionId", "project", "promptMessage", "notificationType", "timestamp"]
)
def test_missing_required_field_fails_decode(missing):
    rec = _prompt().to_record()
    del rec.fields[missing]
    assert PromptRecord.from_record(rec) is None


@pytest.mark.parametrize("wire,expected", [(1, True), (0, False), (2, False), (-1, False), ("1", False)])
def test_responded_wire_decoding(wire, expected):
    rec = _prompt().to_record()
    rec.fields["responded"] = wire
    decoded = PromptRecord.from_record(rec)
    assert decoded is not None
    assert decoded.responded is expected


def test_missing_responded_decodes_false():
    rec = _prompt().to_record()
    del rec.fields["responded"]
    assert PromptRecord.from_record(rec).responded is False


def test_is_responded_ignores_flag():
    # Flag set without response fields: accepted as-is, but not considered answered
    flagged_only = _prompt(responded=True)
    assert flagged_only.is_responded is False
    assert PromptRecord.from_record(flagged_only.to_record()) == flagged_only

    fields_only = _prompt(response_text="no", responded_at=ANSWERED_AT)
    assert fields_only.is_responded is True
    assert fields_only.responded is False

    assert _prompt(response_text="no").is_responded is False


def test_with_response_returns_new_value():
    prompt = _prompt()
    answered = prompt.with_response("continue", device_name="phone", at=ANSWERED_AT)

    assert prompt.responded is False
    assert prompt.response_text is None
    assert answered.responded is True
    assert answered.is_responded is True
    assert answered.responded_from_device == "phone"


def test_update_record_keeps_change_tag_and_existing_fields():
    rec = _prompt().to_record()
    rec.change_tag = '"v7"'
    _prompt().with_response("y", device_name="phone", at=ANSWERED_AT).update_record(rec)

    assert rec.change_tag == '"v7"'
    assert rec.get_int("responded") == 1
    assert rec.get_str("transcriptPath") == "/home/me/.claude/t.jsonl"


def test_prompt_data_from_hook_json():
    raw = (
        '{"session_id":"abc123","project":"api","prompt_message":"Continue?",'
        '"notification_type":"idle_prompt","transcript_path":"","transcript_excerpt":"",'
        '"timestamp":"2025-09-05T12:30:00Z","pid":4242}'
    )
    data = PromptData.from_json(raw)
    assert data.session_id == "abc123"
    assert data.timestamp == "2025-09-05T12:30:00Z"

    prompt = data.to_prompt_record("p-9")
    assert prompt.id == "p-9"
    assert prompt.timestamp == TS
    assert prompt.transcript_path is None
    assert prompt.transcript_excerpt is None
    assert prompt.responded is False
    assert prompt.is_responded is False


def test_prompt_data_generates_id_and_falls_back_to_now():
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    data = PromptData(
        session_id="s",
        project="p",
        prompt_message="m",
        notification_type="idle_prompt",
        timestamp="yesterday",
    )
    prompt = data.to_prompt_record(now=now)
    assert prompt.timestamp == now
    assert prompt.id
    assert prompt.id != data.to_prompt_record(now=now).id


def test_prompt_data_requires_core_fields():
    with pytest.raises(ValueError):
        PromptData.from_json('{"session_id":"abc123","project":"api"}')


def test_empty_record_fails_decode():
    rec = RemoteRecord(record_type="Prompt", record_name="p-1")
    assert PromptRecord.from_record(rec) is None


def test_naive_datetimes_are_stored_as_utc():
    prompt = _prompt(timestamp=datetime(2025, 9, 5, 12, 30)).with_response(
        "y", device_name="phone", at=datetime(2025, 9, 5, 12, 31)
    )
    assert prompt.timestamp == TS
    assert prompt.responded_at == ANSWERED_AT
    assert PromptRecord.from_record(prompt.to_record()) == prompt

    data = PromptData(
        session_id="s", project="p", prompt_message="m", notification_type="n", timestamp="2025-09-05T12:30:00"
    )
    assert data.to_prompt_record("p1").timestamp.tzinfo is not None
