"""Session store that keeps each session as a JSONL event log plus a metadata file.

Layout under the store directory::

    <dir>/<session-id>.jsonl      append-only event log
    <dir>/<session-id>.meta.json  session identity, used for listing
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from agentinfra.events import Content, Event, _parse_time

logger = logging.getLogger(__name__)

_MAX_LINE_BYTES = 1024 * 1024
_META_SUFFIX = ".meta.json"


class SessionStoreError(Exception):
    """Raised when the session store cannot complete an operation."""


class SessionNotFoundError(SessionStoreError):
    """Raised when a requested session does not exist."""


class StateKeyNotFoundError(SessionStoreError, KeyError):
    """Raised when a state key is not present."""


class SessionState:
    """Thread-safe key/value state attached to a session."""

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock if lock is not None else threading.RLock()
        self._values: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        with self._lock:
            try:
                return self._values[key]
            except KeyError:
                raise StateKeyNotFoundError(key) from None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def items(self) -> list[tuple[str, Any]]:
        """Return a snapshot of all key/value pairs."""
        with self._lock:
            return list(self._values.items())


class Session:
    """An in-memory view of a stored session."""

    def __init__(
        self,
        app_name: str,
        user_id: str,
        session_id: str,
        events: Iterable[Event] = (),
        last_update_time: datetime | None = None,
    ) -> None:
        self.app_name = app_name
        self.user_id = user_id
        self.id = session_id
        self._lock = threading.RLock()
        self._events = list(events)
        self._last_update_time = last_update_time
        self.state = SessionState(self._lock)

    @property
    def events(self) -> tuple[Event, ...]:
        with self._lock:
            return tuple(self._events)

    @property
    def last_update_time(self) -> datetime | None:
        with self._lock:
            return self._last_update_time

    def append(self, event: Event) -> None:
        """Add an event and move the update time to the event's timestamp."""
        with self._lock:
            self._events.append(event)
            self._last_update_time = event.timestamp

    def event_at(self, index: int) -> Event | None:
        """Return the event at index, or None when out of range."""
        with self._lock:
            if 0 <= index < len(self._events):
                return self._events[index]
            return None


def strip_thought_signatures(content: Content | None) -> Content | None:
    """Return a copy of content with every thought signature removed."""
    if content is None:
        return None
    return replace(
        content,
        parts=[
            replace(part, thought_signature=None) if part.thought_signature else part
            for part in content.parts
        ],
    )


class JSONLSessionService:
    """Session service persisting sessions as JSONL files under a directory."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)
        self._write_lock = threading.Lock()

    def _meta_path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}{_META_SUFFIX}"

    def _jsonl_path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.jsonl"

    def create(self, app_name: str, user_id: str, session_id: str | None = None) -> Session:
        if not app_name or not user_id:
            raise ValueError(
                f"app_name and user_id are required, got app_name: {app_name!r}, user_id: {user_id!r}"
            )
        session_id = session_id or str(uuid.uuid4())

        if self._meta_path(session_id).exists():
            return Session(app_name, user_id, session_id)

        now = datetime.now(timezone.utc)
        meta = {
            "app_name": app_name,
            "user_id": user_id,
            "session_id": session_id,
            "created_at": now.isoformat(),
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._meta_path(session_id).write_text(json.dumps(meta), encoding="utf-8")
            self._jsonl_path(session_id).touch()
        except OSError as exc:
            raise SessionStoreError(f"create session {session_id!r}: {exc}") from exc

        return Session(app_name, user_id, session_id, last_update_time=now)

    def get(
        self, app_name: str, user_id: str, session_id: str, num_recent_events: int = 0
    ) -> Session:
        if not app_name or not user_id or not session_id:
            raise ValueError("app_name, user_id, session_id are required")

        try:
            raw = self._meta_path(session_id).read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SessionNotFoundError(f"session {session_id!r} not found") from None
        except OSError as exc:
            raise SessionStoreError(f"read meta for {session_id!r}: {exc}") from exc
        try:
            meta = json.loads(raw)
            if not isinstance(meta, dict):
                raise ValueError("metadata must be a JSON object")
        except ValueError as exc:
            raise SessionStoreError(f"unmarshal meta for {session_id!r}: {exc}") from exc

        events = self._replay(session_id)
        if num_recent_events > 0:
            events = events[-num_recent_events:]

        return Session(
            meta.get("app_name", ""),
            meta.get("user_id", ""),
            meta.get("session_id", ""),
            events=events,
        )

    def _replay(self, session_id: str) -> list[Event]:
        """Read every event from the session log, skipping corrupt lines."""
        try:
            handle = self._jsonl_path(session_id).open("rb")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise SessionStoreError(f"open jsonl for {session_id!r}: {exc}") from exc

        events: list[Event] = []
        with handle:
            for line_number, raw_line in enumerate(handle, start=1):
                line = raw_line.rstrip(b"\n").rstrip(b"\r")
                if len(line) >= _MAX_LINE_BYTES:
                    raise SessionStoreError(
                        f"scan jsonl for {session_id!r}: line {line_number} too long"
                    )
                if not line:
                    continue
                try:
                    events.append(Event.from_dict(json.loads(line)))
                except (ValueError, TypeError) as exc:
                    logger.warning(
                        "sessionstore: skipping corrupt JSONL line session_id=%s line=%d error=%s",
                        session_id,
                        line_number,
                        exc,
                    )
        return events

    def list(self, app_name: str, user_id: str = "") -> list[Session]:
        if not app_name:
            raise ValueError("app_name is required")

        try:
            names = sorted(os.listdir(self.directory))
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise SessionStoreError(f"read dir {str(self.directory)!r}: {exc}") from exc

        sessions: list[Session] = []
        for name in names:
            path = self.directory / name
            if not name.endswith(_META_SUFFIX) or path.is_dir():
                continue
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("sessionstore: skipping unreadable meta file file=%s error=%s", name, exc)
                continue
            try:
                meta = json.loads(raw)
                if not isinstance(meta, dict):
                    raise ValueError("metadata must be a JSON object")
                created_at = _parse_time(meta.get("created_at"))
            except ValueError as exc:
                logger.warning("sessionstore: skipping corrupt meta file file=%s error=%s", name, exc)
                continue

            if meta.get("app_name") != app_name:
                continue
            if user_id and meta.get("user_id") != user_id:
                continue
            sessions.append(
                Session(
                    meta.get("app_name", ""),
                    meta.get("user_id", ""),
                    meta.get("session_id", ""),
                    last_update_time=created_at,
                )
            )
        return sessions

    def delete(self, app_name: str, user_id: str, session_id: str) -> None:
        if not app_name or not user_id or not session_id:
            raise ValueError("app_name, user_id, session_id are required")

        errors: list[str] = []
        for path in (self._jsonl_path(session_id), self._meta_path(session_id)):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                errors.append(str(exc))
        if errors:
            raise SessionStoreError(f"delete session {session_id!r}: {'; '.join(errors)}")

    def append_event(self, session: Session, event: Event) -> None:
        if session is None:
            raise ValueError("session is None")
        if event is None:
            raise ValueError("event is None")
        if event.partial:
            return

        session.append(event)

        stored = replace(event, content=strip_thought_signatures(event.content))
        line = (json.dumps(stored.to_dict()) + "\n").encode("utf-8")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SessionStoreError(f"ensure dir: {exc}") from exc

        path = self._jsonl_path(session.id)
        with self._write_lock:
            try:
                fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
            except OSError as exc:
                raise SessionStoreError(f"open jsonl for append: {exc}") from exc
            try:
                view = memoryview(line)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            except OSError as exc:
                raise SessionStoreError(f"write event: {exc}") from exc
            finally:
                os.close(fd)