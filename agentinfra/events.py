"""Conversation events and the JSON form they take in session logs."""

from __future__ import annotations

import base64
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_PART_KEYS = frozenset({"text", "thought", "thoughtSignature"})
_FRACTION = re.compile(r"\.(\d+)")


def _expect(value: Any, kind: type, name: str) -> Any:
    if not isinstance(value, kind):
        raise ValueError(f"{name} must be {kind.__name__}, got {type(value).__name__}")
    return value


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_time(value: Any) -> datetime | None:
    if value is None:
        return None
    text = _expect(value, str, "timestamp")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # Normalise fractional seconds to the six digits datetime understands.
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass
class Part:
    """One piece of message content: text, a thought, or any other payload."""

    text: str = ""
    thought: bool = False
    thought_signature: bytes | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        if self.text:
            data["text"] = self.text
        if self.thought:
            data["thought"] = True
        if self.thought_signature:
            data["thoughtSignature"] = base64.b64encode(self.thought_signature).decode("ascii")
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Part:
        _expect(data, dict, "part")
        signature = data.get("thoughtSignature")
        return cls(
            text=_expect(data.get("text") or "", str, "text"),
            thought=_expect(data.get("thought") or False, bool, "thought"),
            thought_signature=(
                base64.b64decode(_expect(signature, str, "thoughtSignature"), validate=True)
                if signature
                else None
            ),
            extra={k: v for k, v in data.items() if k not in _PART_KEYS},
        )


@dataclass
class Content:
    """A message: the role that produced it and its parts."""

    role: str = ""
    parts: list[Part] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.parts:
            data["parts"] = [part.to_dict() for part in self.parts]
        if self.role:
            data["role"] = self.role
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Content:
        _expect(data, dict, "content")
        parts = _expect(data.get("parts") or [], list, "parts")
        return cls(
            role=_expect(data.get("role") or "", str, "role"),
            parts=[Part.from_dict(part) for part in parts],
        )


@dataclass
class Event:
    """One entry in a session's conversation history."""

    id: str = ""
    invocation_id: str = ""
    author: str = ""
    branch: str = ""
    content: Content | None = None
    partial: bool = False
    turn_complete: bool = False
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ID": self.id,
            "Timestamp": _format_time(self.timestamp),
            "InvocationID": self.invocation_id,
            "Branch": self.branch,
            "Author": self.author,
            "Partial": self.partial,
            "TurnComplete": self.turn_complete,
            "Content": self.content.to_dict() if self.content is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        _expect(data, dict, "event")
        content = data.get("Content")
        return cls(
            id=_expect(data.get("ID") or "", str, "ID"),
            invocation_id=_expect(data.get("InvocationID") or "", str, "InvocationID"),
            author=_expect(data.get("Author") or "", str, "Author"),
            branch=_expect(data.get("Branch") or "", str, "Branch"),
            content=Content.from_dict(content) if content is not None else None,
            partial=_expect(data.get("Partial") or False, bool, "Partial"),
            turn_complete=_expect(data.get("TurnComplete") or False, bool, "TurnComplete"),
            timestamp=_parse_time(data.get("Timestamp")),
        )


def new_event(invocation_id: str) -> Event:
    """Return a fresh event with a unique id and the current time."""
    return Event(
        id=str(uuid.uuid4()),
        invocation_id=invocation_id,
        timestamp=datetime.now(timezone.utc),
    )