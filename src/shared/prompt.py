from __future__ import annotations

from datetime import UTC, datetime
from typing import ClassVar, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import PROMPT_RECORD_TYPE
from .record import RemoteRecord, as_utc


class PromptRecord(BaseModel):
    """
    A Claude Code prompt waiting for (or holding) a user response.

    The prompt is written by the host when Claude needs input; the response
    fields are written later by whichever device answers it.

    Notes
    - `responded` duplicates "response_text and responded_at are set" so the
      store can filter on a single field. Nothing enforces the two agree;
      `is_responded` only looks at the response fields.
    - The store has no boolean type: `responded` travels as the integer 1 or 0.
    """

    model_config = ConfigDict(frozen=True)

    record_type: ClassVar[str] = PROMPT_RECORD_TYPE

    id: str = Field(description="Unique prompt id")
    session_id: str = Field(description="Id of the session this prompt belongs to")
    project: str
    prompt_message: str = Field(description="The question or prompt from Claude")
    notification_type: str = Field(description='Hook notification type, e.g. "idle_prompt"')
    transcript_path: Optional[str] = None
    transcript_excerpt: Optional[str] = Field(default=None, description="Last few messages for context")
    timestamp: datetime
    pid: Optional[int] = None

    response_text: Optional[str] = None
    responded_at: Optional[datetime] = None
    responded_from_device: Optional[str] = None
    responded: bool = False

    @field_validator("timestamp", "responded_at")
    @classmethod
    def _datetimes_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def is_responded(self) -> bool:
        return self.response_text is not None and self.responded_at is not None

    def with_response(self, text: str, *, device_name: str, at: Optional[datetime] = None) -> "PromptRecord":
        """Return an answered copy with all response fields and the flag set together."""
        return self.model_copy(
            update={
                "response_text": text,
                "responded_at": as_utc(at) if at is not None else datetime.now(UTC),
                "responded_from_device": device_name,
                "responded": True,
            }
        )

    @classmethod
    def from_record(cls, record: RemoteRecord) -> Optional["PromptRecord"]:
        """Decode a remote record; returns None if any required field is absent or mistyped."""
        prompt_id = record.get_str("promptId")
        session_id = record.get_str("sessionId")
        project = record.get_str("project")
        prompt_message = record.get_str("promptMessage")
        notification_type = record.get_str("notificationType")
        timestamp = record.get_datetime("timestamp")
        if (
            prompt_id is None
            or session_id is None
            or project is None
            or prompt_message is None
            or notification_type is None
            or timestamp is None
        ):
            return None

        return cls(
            id=prompt_id,
            session_id=session_id,
            project=project,
            prompt_message=prompt_message,
            notification_type=notification_type,
            transcript_path=record.get_str("transcriptPath"),
            transcript_excerpt=record.get_str("transcriptExcerpt"),
            timestamp=timestamp,
            pid=record.get_int("pid"),
            response_text=record.get_str("responseText"),
            responded_at=record.get_datetime("respondedAt"),
            responded_from_device=record.get_str("respondedFromDevice"),
            responded=record.get_int("responded") == 1,
        )

    def to_record(self) -> RemoteRecord:
        record = RemoteRecord(record_type=PROMPT_RECORD_TYPE, record_name=self.id)
        self.update_record(record)
        return record

    def update_record(self, record: RemoteRecord) -> None:
        """Write this prompt's fields onto an existing record, keeping its store metadata."""
        record["promptId"] = self.id
        record["sessionId"] = self.session_id
        record["project"] = self.project
        record["promptMessage"] = self.prompt_message
        record["notificationType"] = self.notification_type
        record["timestamp"] = self.timestamp

        optional = {
            "transcriptPath": self.transcript_path,
            "transcriptExcerpt": self.transcript_excerpt,
            "pid": self.pid,
            "responseText": self.response_text,
            "respondedAt": self.responded_at,
            "respondedFromDevice": self.responded_from_device,
        }
        for name, value in optional.items():
            if value is not None:
                record[name] = value

        record["responded"] = 1 if self.responded else 0


class PromptData(BaseModel):
    """
    Raw prompt JSON as written by the hook script to vibestatus-prompt-<session_id>.json.

    `timestamp` is kept as the string the hook wrote; it is parsed only when
    building a PromptRecord.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    project: str
    prompt_message: str
    notification_type: str
    transcript_path: Optional[str] = None
    transcript_excerpt: Optional[str] = None
    timestamp: str
    pid: Optional[int] = None

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "PromptData":
        try:
            return cls.model_validate_json(data)
        except ValidationError as ex:
            raise ValueError(f"Invalid prompt JSON: {ex.error_count()} error(s)") from ex

    def parsed_timestamp(self) -> Optional[datetime]:
        try:
            return datetime.fromisoformat(self.timestamp)
        except ValueError:
            return None

    def to_prompt_record(self, prompt_id: Optional[str] = None, *, now: Optional[datetime] = None) -> PromptRecord:
        """Build an unanswered PromptRecord; falls back to `now` if the timestamp does not parse."""
        timestamp = self.parsed_timestamp()
        if timestamp is None:
            timestamp = now if now is not None else datetime.now(UTC)
        return PromptRecord(
            id=prompt_id or str(uuid4()),
            session_id=self.session_id,
            project=self.project,
            prompt_message=self.prompt_message,
            notification_type=self.notification_type,
            # Shell hooks write "" for missing values
            transcript_path=self.transcript_path or None,
            transcript_excerpt=self.transcript_excerpt or None,
            timestamp=timestamp,
            pid=self.pid,
        )
