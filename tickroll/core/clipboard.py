"""Clipboard payloads: JSON text tagged with the kind of events it holds.

``{"type": "note_events" | "control_events" | "tempo_events", "events": [...]}``

Ticks in a payload are relative to the earliest copied event.  Parsing is
strict; anything that does not match the expected tag and schema raises
:class:`~tickroll.core.events.ClipboardFormatError` and the caller pastes
nothing.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from .constants import ARRANGE_NOTES, CONTROL_EVENTS, NOTE_EVENTS, TEMPO_EVENTS
from .events import (
    ClipboardFormatError,
    ControllerEvent,
    NoteEvent,
    PitchBendEvent,
    TempoEvent,
    TrackEvent,
    event_from_dict,
    event_to_dict,
)

# Event kinds each payload type may carry
PAYLOAD_KINDS: dict[str, frozenset[str]] = {
    NOTE_EVENTS: frozenset({NoteEvent.kind}),
    CONTROL_EVENTS: frozenset({ControllerEvent.kind, PitchBendEvent.kind}),
    TEMPO_EVENTS: frozenset({TempoEvent.kind}),
}


class ClipboardPort(Protocol):
    """System clipboard, reduced to plain text."""

    def read_text(self) -> str: ...

    def write_text(self, text: str) -> None: ...


class MemoryClipboard:
    """In-process clipboard for tests and headless use."""

    def __init__(self, text: str = "") -> None:
        self._text = text

    def read_text(self) -> str:
        return self._text

    def write_text(self, text: str) -> None:
        self._text = text


def _relative(events: Sequence[TrackEvent], origin: int) -> list[dict[str, Any]]:
    result = []
    for e in events:
        data = event_to_dict(e)
        data["tick"] = e.tick - origin
        result.append(data)
    return result


def make_payload(payload_type: str, events: Sequence[TrackEvent]) -> str:
    """Serialize *events* with ticks relative to the earliest one."""
    if payload_type not in PAYLOAD_KINDS:
        raise ValueError(f"unknown clipboard type: {payload_type!r}")
    origin = min((e.tick for e in events), default=0)
    return json.dumps({"type": payload_type, "events": _relative(events, origin)})


def _load(text: str, payload_type: str) -> dict[str, Any]:
    if not text:
        raise ClipboardFormatError("clipboard is empty")
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ClipboardFormatError(f"clipboard is not JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ClipboardFormatError("clipboard payload must be an object")
    if obj.get("type") != payload_type:
        raise ClipboardFormatError(f"expected {payload_type!r}, got {obj.get('type')!r}")
    return obj


def _parse_events(raw: Any, allowed: frozenset[str]) -> list[TrackEvent]:
    if not isinstance(raw, list):
        raise ClipboardFormatError("events must be a list")
    events = [event_from_dict(item) for item in raw]
    for e in events:
        if e.kind not in allowed:
            raise ClipboardFormatError(f"{e.kind} events are not allowed here")
        if e.tick < 0:
            raise ClipboardFormatError("relative ticks must not be negative")
    return events


def parse_clipboard_payload(text: str, payload_type: str) -> list[TrackEvent]:
    """Events of a *payload_type* payload, ticks still relative.

    Raises:
        ClipboardFormatError: not JSON, wrong tag, or any event fails the
            schema.  Nothing is returned partially.
    """
    if payload_type not in PAYLOAD_KINDS:
        raise ValueError(f"unknown clipboard type: {payload_type!r}")
    obj = _load(text, payload_type)
    return _parse_events(obj.get("events"), PAYLOAD_KINDS[payload_type])


# ── Arrange view (several tracks at once) ───────────────────


def make_arrange_payload(
    track_events: Mapping[int, Sequence[TrackEvent]], from_tick: int, from_track_index: int,
) -> str:
    """Serialize per-track events relative to the selection's top-left corner."""
    tracks = {
        str(index - from_track_index): _relative(events, from_tick)
        for index, events in track_events.items()
    }
    return json.dumps({"type": ARRANGE_NOTES, "tracks": tracks})


def parse_arrange_payload(text: str) -> dict[int, list[TrackEvent]]:
    """Relative track offset → events.  Conductor events are never included."""
    obj = _load(text, ARRANGE_NOTES)
    tracks = obj.get("tracks")
    if not isinstance(tracks, dict):
        raise ClipboardFormatError("tracks must be an object")
    allowed = PAYLOAD_KINDS[NOTE_EVENTS] | PAYLOAD_KINDS[CONTROL_EVENTS]
    result: dict[int, list[TrackEvent]] = {}
    for key, raw in tracks.items():
        try:
            offset = int(key)
        except ValueError as e:
            raise ClipboardFormatError(f"bad track offset {key!r}") from e
        if offset < 0:
            raise ClipboardFormatError("track offsets must not be negative")
        result[offset] = _parse_events(raw, allowed)
    return result
