from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Set

from botocore.exceptions import ClientError

from shared.constants import PROMPT_RECORD_TYPE, SESSION_EXPIRATION_SECONDS, SESSION_RECORD_TYPE
from shared.prompt import PromptRecord
from shared.record import RemoteRecord, as_utc
from shared.session import SessionInfo, SessionRecord

from .s3_records import OptimisticLockError, S3RecordStore

logger = logging.getLogger(__name__)


class RecordSync:
    """
    Session and prompt sync operations on top of a record store.

    The store only needs `fetch`, `save`, `delete` and `query` with the
    `S3RecordStore` signatures, so tests can pass an in-memory fake.

    Records that fail to decode are skipped (and logged) rather than failing
    a whole fetch.
    """

    def __init__(self, store: S3RecordStore, *, expiration_seconds: int = SESSION_EXPIRATION_SECONDS) -> None:
        self._store = store
        self._expiration = timedelta(seconds=expiration_seconds)
        # session id -> "id:status" of the last upload
        self._last_uploaded: Dict[str, str] = {}

    # --------------- Sessions ---------------
    def upload_session(self, session: SessionRecord) -> str:
        """Create or update the remote session record; returns the new change tag."""
        existing = self._store.fetch(SESSION_RECORD_TYPE, session.id)
        if existing is None:
            etag = self._store.save(session.to_record())
        else:
            session.update_record(existing)
            etag = self._store.save(existing, if_match=existing.change_tag)
        logger.info("Uploaded session %s (%s) status=%s", session.id, session.project, session.status.value)
        return etag

    def upload_sessions(self, sessions: Iterable[SessionRecord]) -> int:
        count = 0
        for session in sessions:
            self.upload_session(session)
            count += 1
        return count

    def upload_changed_sessions(
        self,
        sessions: Iterable[SessionInfo],
        *,
        device_name: str,
        now: Optional[datetime] = None,
    ) -> List[SessionRecord]:
        """Upload only sessions whose status changed since the previous call.

        Every uploaded record is stamped with `now`; pid is not carried over.
        Sessions missing from `sessions` are forgotten so a later reappearance
        uploads again.
        """
        ts = now if now is not None else datetime.now(UTC)
        changed: List[SessionRecord] = []
        seen: Set[str] = set()
        for info in sessions:
            seen.add(info.id)
            status_key = f"{info.id}:{info.status.value}"
            if self._last_uploaded.get(info.id) == status_key:
                continue
            changed.append(
                SessionRecord(
                    id=info.id,
                    status=info.status,
                    project=info.project,
                    timestamp=ts,
                    pid=None,
                    mac_device_name=device_name,
                )
            )
            self._last_uploaded[info.id] = status_key

        self._last_uploaded = {k: v for k, v in self._last_uploaded.items() if k in seen}

        if changed:
            self.upload_sessions(changed)
            logger.info("Uploaded %d changed sessions", len(changed))
        return changed

    def fetch_sessions(self, *, now: Optional[datetime] = None) -> List[SessionRecord]:
        """Sessions updated within the expiration window, newest first."""
        cutoff = as_utc(now if now is not None else datetime.now(UTC)) - self._expiration
        sessions: List[SessionRecord] = []
        for record in self._store.query(SESSION_RECORD_TYPE):
            session = SessionRecord.from_record(record)
            if session is None:
                logger.warning("Skipping malformed session record %s", record.record_name)
                continue
            if session.timestamp >= cutoff:
                sessions.append(session)
        sessions.sort(key=lambda s: s.timestamp, reverse=True)
        logger.info("Fetched %d active sessions", len(sessions))
        return sessions

    def delete_session(self, session_id: str) -> bool:
        deleted = self._store.delete(SESSION_RECORD_TYPE, session_id)
        if deleted:
            logger.info("Deleted session %s", session_id)
        else:
            logger.debug("Session %s already deleted", session_id)
        return deleted

    def delete_sessions(self, session_ids: Iterable[str]) -> int:
        return sum(1 for sid in session_ids if self.delete_session(sid))

    def cleanup_stale_sessions(self, keeping: Set[str], *, now: Optional[datetime] = None) -> List[str]:
        """Delete remote sessions whose id is not in `keeping`; returns the deleted ids."""
        stale = [s.id for s in self.fetch_sessions(now=now) if s.id not in keeping]
        if stale:
            self.delete_sessions(stale)
            logger.info("Cleaned up %d stale sessions", len(stale))
        return stale

    # --------------- Prompts ---------------
    def upload_prompt(self, prompt: PromptRecord) -> str:
        etag = self._store.save(prompt.to_record())
        logger.info("Uploaded prompt %s for session %s", prompt.id, prompt.session_id)
        return etag

    def fetch_pending_prompts(self) -> List[PromptRecord]:
        """Prompts stored with `responded == 0`, newest first."""
        prompts = self._decode_prompts(lambda r: r.get_int("responded") == 0)
        prompts.sort(key=lambda p: p.timestamp, reverse=True)
        logger.info("Fetched %d pending prompts", len(prompts))
        return prompts

    def fetch_responses(self, session_id: str) -> List[PromptRecord]:
        """Answered prompts of one session, most recently answered first."""
        prompts = [
            p
            for p in self._decode_prompts(lambda r: r.get_int("responded") == 1)
            if p.session_id == session_id
        ]
        # Flagged records without respondedAt sort last
        prompts.sort(key=lambda p: (p.responded_at is not None, p.responded_at or p.timestamp), reverse=True)
        logger.info("Fetched %d responses for session %s", len(prompts), session_id)
        return prompts

    def submit_response(
        self,
        prompt_id: str,
        response_text: str,
        *,
        device_name: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Mark a prompt as answered. Returns False if the prompt is missing or the write fails."""
        try:
            record = self._store.fetch(PROMPT_RECORD_TYPE, prompt_id)
        except (ClientError, ValueError) as ex:
            logger.error("Failed to fetch prompt %s: %s", prompt_id, ex)
            return False
        if record is None:
            logger.warning("Cannot submit response: prompt %s not found", prompt_id)
            return False
        prompt = PromptRecord.from_record(record)
        if prompt is None:
            logger.warning("Cannot submit response: prompt %s is malformed", prompt_id)
            return False

        answered = prompt.with_response(response_text, device_name=device_name, at=now)
        answered.update_record(record)
        try:
            self._store.save(record, if_match=record.change_tag)
        except (ClientError, OptimisticLockError) as ex:
            logger.error("Failed to submit response for prompt %s: %s", prompt_id, ex)
            return False
        logger.info("Saved response for prompt %s from %s", prompt_id, device_name)
        return True

    def delete_prompt(self, prompt_id: str) -> bool:
        deleted = self._store.delete(PROMPT_RECORD_TYPE, prompt_id)
        if deleted:
            logger.info("Deleted prompt %s", prompt_id)
        return deleted

    def _decode_prompts(self, where: Callable[[RemoteRecord], bool]) -> List[PromptRecord]:
        prompts: List[PromptRecord] = []
        for record in self._store.query(PROMPT_RECORD_TYPE):
            if not where(record):
                continue
            prompt = PromptRecord.from_record(record)
            if prompt is None:
                logger.warning("Skipping malformed prompt record %s", record.record_name)
                continue
            prompts.append(prompt)
        return prompts
