from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional

from shared.constants import (
    DEFAULT_STATUS_DIR,
    ENV_STATUS_DIR,
    PID_CHECK_MIN_AGE_SECONDS,
    PROMPT_FILE_PREFIX,
    RESPONSE_FILE_EXTENSION,
    RESPONSE_FILE_PREFIX,
    SESSION_TIMEOUT_SECONDS,
    STATUS_FILE_EXTENSION,
    STATUS_FILE_PREFIX,
)
from shared.prompt import PromptData
from shared.record import as_utc
from shared.session import SessionInfo, StatusData
from shared.vibe_status import VibeStatus

logger = logging.getLogger(__name__)


def default_status_dir() -> Path:
    base = os.environ.get(ENV_STATUS_DIR)
    return Path(base) if base else Path(DEFAULT_STATUS_DIR)


def session_id_from_filename(name: str) -> str:
    """Example: "vibestatus-abc123.json" -> "abc123". Other names are returned unchanged."""
    if name.startswith(STATUS_FILE_PREFIX) and name.endswith(STATUS_FILE_EXTENSION):
        return name[len(STATUS_FILE_PREFIX) : -len(STATUS_FILE_EXTENSION)]
    return name


def status_file_path(directory: Path, session_id: str) -> Path:
    return directory / f"{STATUS_FILE_PREFIX}{session_id}{STATUS_FILE_EXTENSION}"


def prompt_file_path(directory: Path, session_id: str) -> Path:
    return directory / f"{PROMPT_FILE_PREFIX}{session_id}{STATUS_FILE_EXTENSION}"


def response_file_path(directory: Path, session_id: str) -> Path:
    return directory / f"{RESPONSE_FILE_PREFIX}{session_id}{RESPONSE_FILE_EXTENSION}"


def _is_status_file(name: str) -> bool:
    return (
        name.startswith(STATUS_FILE_PREFIX)
        and not name.startswith(PROMPT_FILE_PREFIX)
        and name.endswith(STATUS_FILE_EXTENSION)
    )


def _is_process_running(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by someone else
        return True
    return True


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as ex:
        logger.warning("Failed to remove %s: %s", path, ex)


def _age_seconds(now: datetime, ts: datetime) -> float:
    return (as_utc(now) - as_utc(ts)).total_seconds()


@dataclass
class StatusScan:
    sessions: List[SessionInfo] = field(default_factory=list)
    error_count: int = 0


def read_status_files(
    directory: Optional[Path] = None,
    *,
    now: Optional[datetime] = None,
    session_timeout: float = SESSION_TIMEOUT_SECONDS,
) -> StatusScan:
    """
    Decode every hook status file in `directory`.

    - Empty files are skipped; undecodable ones only bump `error_count`.
    - Files at least `session_timeout` seconds old are deleted.
    - Files older than a minute whose pid is no longer alive are deleted.
    - Missing timestamp/project default to `now` and "Unknown".
    """
    directory = directory or default_status_dir()
    now = now if now is not None else datetime.now(UTC)
    scan = StatusScan()

    try:
        names = sorted(os.listdir(directory))
    except OSError as ex:
        logger.warning("Cannot list status directory %s: %s", directory, ex)
        scan.error_count = 1
        return scan

    for name in names:
        if not _is_status_file(name):
            continue
        path = directory / name
        try:
            data = path.read_bytes()
            if not data.strip():
                continue
            status = StatusData.from_json(data)
        except (OSError, ValueError) as ex:
            scan.error_count += 1
            logger.debug("Failed to decode %s: %s", name, ex)
            continue

        info = status.to_session_info(session_id_from_filename(name), now=now)
        age = _age_seconds(now, info.timestamp)
        if age >= session_timeout:
            _remove_quietly(path)
            continue
        if age > PID_CHECK_MIN_AGE_SECONDS and status.pid and not _is_process_running(status.pid):
            _remove_quietly(path)
            continue

        scan.sessions.append(info)

    return scan


def read_prompt_files(directory: Optional[Path] = None) -> List[PromptData]:
    """Decode every hook prompt file in `directory`; undecodable files are logged and skipped."""
    directory = directory or default_status_dir()
    prompts: List[PromptData] = []
    try:
        names = sorted(os.listdir(directory))
    except OSError as ex:
        logger.warning("Cannot list status directory %s: %s", directory, ex)
        return prompts

    for name in names:
        if not (name.startswith(PROMPT_FILE_PREFIX) and name.endswith(STATUS_FILE_EXTENSION)):
            continue
        try:
            prompts.append(PromptData.from_json((directory / name).read_bytes()))
        except (OSError, ValueError) as ex:
            logger.warning("Skipping unreadable prompt file %s: %s", name, ex)
    return prompts


def delete_prompt_file(directory: Optional[Path], session_id: str) -> None:
    _remove_quietly(prompt_file_path(directory or default_status_dir(), session_id))


def write_working_status(
    directory: Optional[Path],
    session_id: str,
    *,
    project: str,
    pid: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Path:
    """Rewrite a session's status file to "working" after its prompt was answered."""
    path = status_file_path(directory or default_status_dir(), session_id)
    ts = now if now is not None else datetime.now(UTC)
    payload = {
        "state": VibeStatus.WORKING.value,
        "project": project,
        "timestamp": ts.isoformat(timespec="seconds"),
        "pid": pid if pid is not None else 0,
    }
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(payload, separators=(",", ":")), encoding="utf-8")
    os.replace(tmp, path)
    return path


def write_response_file(directory: Optional[Path], session_id: str, response_text: str) -> Path:
    """Leave an answer that could not be delivered to the terminal in vibestatus-response-<session_id>.txt."""
    path = response_file_path(directory or default_status_dir(), session_id)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(response_text, encoding="utf-8")
    os.replace(tmp, path)
    logger.info("Wrote response for session %s to %s", session_id, path)
    return path
