from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import SESSION_RECORD_TYPE, UNKNOWN_PROJECT
from .record import RemoteRecord, as_utc
from .vibe_status import VibeStatus


class SessionRecord(BaseModel):
    """
    One Claude Code session as stored in the remote record store.

    Remote fields
    - sessionId, status, project, timestamp, macDeviceName: always written.
    - pid: written only when known; an absent pid leaves no field at all.
    """

    model_config = ConfigDict(frozen=True)

    record_type: ClassVar[str] = SESSION_RECORD_TYPE

    id: str = Field(description="Session id, unique per Claude Code session")
    status: VibeStatus
    project: str
    timestamp: datetime
    pid: Optional[int] = Field(default=None, description="Claude process id, if known")
    mac_device_name: str = Field(description="Name of the host that observed the session")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_record(cls, record: RemoteRecord) -> Optional["SessionRecord"]:
        """Decode a remote record; returns None if any required field is absent or mistyped."""
        session_id = record.get_str("sessionId")
        status = VibeStatus.from_wire(record.get_str("status"))
        project = record.get_str("project")
        timestamp = record.get_datetime("timestamp")
        mac_device_name = record.get_str("macDeviceName")
        if (
            session_id is None
            or status is None
            or project is None
            or timestamp is None
            or mac_device_name is None
        ):
            return None

        return cls(
            id=session_id,
            status=status,
            project=project,
            timestamp=timestamp,
            pid=record.get_int("pid"),
            mac_device_name=mac_device_name,
        )

    def to_record(self) -> RemoteRecord:
        record = RemoteRecord(record_type=SESSION_RECORD_TYPE, record_name=self.id)
        self.update_record(record)
        return record

    def update_record(self, record: RemoteRecord) -> None:
        """Write this session's fields onto an existing record, keeping its store metadata."""
        record["sessionId"] = self.id
        record["status"] = self.status.value
        record["project"] = self.project
        record["timestamp"] = self.timestamp
        record["macDeviceName"] = self.mac_device_name
        if self.pid is not None:
            record["pid"] = self.pid

    def to_info(self) -> "SessionInfo":
        return SessionInfo.from_session(self)


class SessionInfo(BaseModel):
    """Reduced projection of a session for local display."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: VibeStatus
    project: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_session(cls, record: SessionRecord) -> "SessionInfo":
        return cls(
            id=record.id,
            status=record.status,
            project=record.project,
            timestamp=record.timestamp,
        )


class StatusData(BaseModel):
    """
    Raw status JSON as written by the hook script to vibestatus-<session_id>.json.

    Example
        {"state":"working","project":"api","timestamp":"2025-01-01T10:00:00Z","pid":4242}
    """

    model_config = ConfigDict(frozen=True)

    state: VibeStatus
    message: Optional[str] = None
    timestamp: Optional[datetime] = None
    project: Optional[str] = None
    pid: Optional[int] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Hooks may write timestamps without an offset; those are UTC
        return as_utc(value) if value is not None else None

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "StatusData":
        try:
            return cls.model_validate_json(data)
        except ValidationError as ex:
            raise ValueError(f"Invalid status JSON: {ex.error_count()} error(s)") from ex

    def to_session_info(self, session_id: str, *, now: datetime) -> SessionInfo:
        return SessionInfo(
            id=session_id,
            status=self.state,
            project=self.project if self.project is not None else UNKNOWN_PROJECT,
            timestamp=self.timestamp if self.timestamp is not None else now,
        )

    def to_session_record(self, session_id: str, *, mac_device_name: str, now: datetime) -> SessionRecord:
        return SessionRecord(
            id=session_id,
            status=self.state,
            project=self.project if self.project is not None else UNKNOWN_PROJECT,
            timestamp=self.timestamp if self.timestamp is not None else now,
            pid=self.pid,
            mac_device_name=mac_device_name,
        )
