from __future__ import annotations

from datetime import datetime, timezone

import pytest

from shared.record import RemoteRecord


def test_typed_accessors_reject_mismatched_types():
    rec = RemoteRecord(record_type="Session", record_name="s1")
    rec["name"] = "api"
    rec["count"] = 3

    assert rec.get_str("name") == "api"
    assert rec.get_int("name") is None
    assert rec.get_int("count") == 3
    assert rec.get_str("count") is None
    assert rec.get_datetime("count") is None
    assert rec.get_str("missing") is None


def test_bool_is_not_an_int_field():
    rec = RemoteRecord(record_type="Prompt", record_name="p1", fields={"responded": True})
    assert rec.get_int("responded") is None

    with pytest.raises(TypeError):
        rec["responded"] = True


def test_set_rejects_none_and_floats():
    rec = RemoteRecord(record_type="Session", record_name="s1")
    with pytest.raises(TypeError):
        rec["pid"] = None
    with pytest.raises(TypeError):
        rec["pid"] = 1.5


def test_json_document_preserves_field_types():
    ts = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    rec = RemoteRecord(record_type="Session", record_name="s1", fields={"a": "x", "b": 7, "c": ts})

    back = RemoteRecord.from_json(rec.to_json(), change_tag='"etag"')
    assert back.record_type == "Session"
    assert back.record_name == "s1"
    assert back.fields == {"a": "x", "b": 7, "c": ts}
    assert back.change_tag == '"etag"'


@pytest.mark.parametrize(
    "doc",
    [
        [],
        {"recordName": "x", "fields": {}},
        {"recordType": "Session", "recordName": "x", "fields": {"a": "plain"}},
        {"recordType": "Session", "recordName": "x", "fields": {"a": {"i": "7"}}},
        {"recordType": "Session", "recordName": "x", "fields": {"a": {"d": "not-a-date"}}},
        {"recordType": "Session", "recordName": "x", "fields": {"a": {"q": 1}}},
    ],
)
def test_from_document_rejects_malformed(doc):
    with pytest.raises(ValueError):
        RemoteRecord.from_document(doc)


def test_integer_fields_are_limited_to_64_bits():
    rec = RemoteRecord(record_type="Session", record_name="s1")
    rec["pid"] = 2**63 - 1
    rec["low"] = -(2**63)
    with pytest.raises(ValueError):
        rec["pid"] = 2**63
    with pytest.raises(ValueError):
        rec["low"] = -(2**63) - 1
    assert rec.get_int("pid") == 2**63 - 1


def test_get_datetime_takes_naive_values_as_utc():
    rec = RemoteRecord(record_type="Session", record_name="s1", fields={"ts": datetime(2025, 1, 2, 3, 4)})
    assert rec.get_datetime("ts") == datetime(2025, 1, 2, 3, 4, tzinfo=timezone.utc)
    assert rec.get_datetime("ts").tzinfo is not None
