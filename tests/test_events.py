import json
from datetime import datetime, timezone

import pytest

from agentinfra.events import Content, Event, Part, new_event


def test_part_round_trip_keeps_signature_bytes():
    part = Part(text="thinking reply", thought=True, thought_signature=b"opaque-sig-bytes")
    again = Part.from_dict(json.loads(json.dumps(part.to_dict())))
    assert again == part


def test_part_uses_camel_case_signature_key():
    data = Part(thought=True, thought_signature=b"opaque-sig-bytes").to_dict()
    assert "thoughtSignature" in data
    assert data["thought"] is True


def test_part_omits_empty_fields():
    assert Part(text="hello").to_dict() == {"text": "hello"}


def test_part_keeps_unknown_keys():
    data = {"text": "x", "functionCall": {"name": "f", "args": {"a": 1}}}
    part = Part.from_dict(data)
    assert part.extra == {"functionCall": {"name": "f", "args": {"a": 1}}}
    assert part.to_dict() == data


def test_part_rejects_non_object():
    with pytest.raises(ValueError):
        Part.from_dict("hello")


def test_content_round_trip():
    content = Content(role="model", parts=[Part(text="a"), Part(text="b")])
    assert Content.from_dict(content.to_dict()) == content


def test_event_uses_field_names_as_keys():
    event = Event(author="agent", content=Content(role="model", parts=[Part(text="hi")]))
    data = event.to_dict()
    assert data["Author"] == "agent"
    assert data["Content"] == {"parts": [{"text": "hi"}], "role": "model"}


def test_event_round_trip_through_json():
    event = new_event("inv-1")
    event.author = "user"
    event.partial = True
    event.content = Content(role="user", parts=[Part(text="hello")])
    again = Event.from_dict(json.loads(json.dumps(event.to_dict())))
    assert again == event


def test_event_parses_utc_suffix_and_long_fraction():
    event = Event.from_dict({"Timestamp": "2024-01-02T03:04:05.123456789Z"})
    assert event.timestamp == datetime(2024, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)


def test_event_without_content_stays_empty():
    event = Event.from_dict({"Author": "agent", "Content": None})
    assert event.content is None
    assert event.author == "agent"


def test_event_rejects_wrong_types():
    with pytest.raises(ValueError):
        Event.from_dict({"Author": 5})
    with pytest.raises(ValueError):
        Event.from_dict(["not", "an", "object"])


def test_new_event_fills_identity_and_time():
    first = new_event("inv-1")
    second = new_event("inv-1")
    assert first.invocation_id == "inv-1"
    assert first.id and first.id != second.id
    assert first.timestamp is not None and first.timestamp.tzinfo is not None