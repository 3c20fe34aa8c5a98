from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Union

FieldValue = Union[str, int, datetime]

# One-letter type tags used by the JSON document encoding
_TAG_STR = "s"
_TAG_INT = "i"
_TAG_DATE = "d"

# The store keeps integers as signed 64-bit values
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def as_utc(value: datetime) -> datetime:
    """Return `value` with naive datetimes taken as UTC."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


@dataclass
class RemoteRecord:
    """
    A record in the remote key-value store.

    Fields
    - record_type: schema name, e.g. "Session" or "Prompt".
    - record_name: external identity of the record (the model's id).
    - fields: field name -> primitive value (str, int or datetime).
    - change_tag: opaque metadata owned by the store (e.g., an S3 ETag).
      Models never read or write it; updating a fetched record in place keeps
      it so the store can detect concurrent writes.
    """

    record_type: str
    record_name: str
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    change_tag: Optional[str] = None

    def __getitem__(self, name: str) -> Optional[FieldValue]:
        return self.fields.get(name)

    def __setitem__(self, name: str, value: FieldValue) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def set(self, name: str, value: FieldValue) -> None:
        if isinstance(value, bool) or not isinstance(value, (str, int, datetime)):
            raise TypeError(f"Unsupported value type for field {name!r}: {type(value).__name__}")
        if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"Integer field {name!r} is outside the 64-bit range: {value}")
        self.fields[name] = value

    # -------- Typed accessors --------
    def get_str(self, name: str) -> Optional[str]:
        val = self.fields.get(name)
        return val if isinstance(val, str) else None

    def get_int(self, name: str) -> Optional[int]:
        val = self.fields.get(name)
        # bool is a subclass of int but never a valid integer field
        if isinstance(val, bool) or not isinstance(val, int):
            return None
        return val

    def get_datetime(self, name: str) -> Optional[datetime]:
        val = self.fields.get(name)
        return as_utc(val) if isinstance(val, datetime) else None

    # -------- JSON document codec --------
    def to_document(self) -> Dict[str, Any]:
        encoded: Dict[str, Dict[str, Any]] = {}
        for name, value in self.fields.items():
            if isinstance(value, datetime):
                encoded[name] = {_TAG_DATE: value.isoformat()}
            elif isinstance(value, str):
                encoded[name] = {_TAG_STR: value}
            else:
                encoded[name] = {_TAG_INT: value}
        return {
            "recordType": self.record_type,
            "recordName": self.record_name,
            "fields": encoded,
        }

    def to_json(self) -> bytes:
        # Deterministic JSON: stable key order, no extra whitespace
        return json.dumps(self.to_document(), separators=(",", ":"), sort_keys=True).encode("utf-8")

    @classmethod
    def from_document(cls, doc: Dict[str, Any], *, change_tag: Optional[str] = None) -> "RemoteRecord":
        """Rebuild a record from `to_document()` output.

        Raises ValueError when the document does not have the expected shape.
        """
        if not isinstance(doc, dict):
            raise ValueError("Record document must be a JSON object")
        record_type = doc.get("recordType")
        record_name = doc.get("recordName")
        raw_fields = doc.get("fields", {})
        if not isinstance(record_type, str) or not isinstance(record_name, str):
            raise ValueError("Record document is missing recordType/recordName")
        if not isinstance(raw_fields, dict):
            raise ValueError("Record document fields must be a JSON object")

        record = cls(record_type=record_type, record_name=record_name, change_tag=change_tag)
        for name, tagged in raw_fields.items():
            if not isinstance(tagged, dict) or len(tagged) != 1:
                raise ValueError(f"Malformed field {name!r} in record {record_name!r}")
            tag, value = next(iter(tagged.items()))
            if tag == _TAG_DATE and isinstance(value, str):
                record.fields[name] = datetime.fromisoformat(value)
            elif tag == _TAG_STR and isinstance(value, str):
                record.fields[name] = value
            elif tag == _TAG_INT and isinstance(value, int) and not isinstance(value, bool):
                record.fields[name] = value
            else:
                raise ValueError(f"Malformed field {name!r} in record {record_name!r}")
        return record

    @classmethod
    def from_json(cls, data: bytes, *, change_tag: Optional[str] = None) -> "RemoteRecord":
        return cls.from_document(json.loads(data.decode("utf-8")), change_tag=change_tag)
