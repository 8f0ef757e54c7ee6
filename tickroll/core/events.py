"""Track events as a tagged union.

Pure Python, no Qt dependency.  Every event kind is a dataclass carrying a
``kind`` tag, and code that has to treat kinds differently goes through a
``match`` with ``assert_never`` in the fallthrough, so a new kind cannot be
added without every dispatch site noticing.

Numeric fields are clamped to their MIDI range when an event is written to
a track (see :func:`clamp_event`), never when it is constructed.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar, assert_never

import mido

from .constants import (
    CHANNEL_MAX,
    CONTROLLER_MAX,
    CONTROLLER_MIN,
    MAX_NOTE_NUMBER,
    PITCH_BEND_CENTER,
    PITCH_BEND_MAX,
    PITCH_BEND_MIN,
    VELOCITY_MAX,
    VELOCITY_MIN,
)


class ClipboardFormatError(ValueError):
    """Raised when serialized event data does not match the event schema."""


# ── Event kinds ─────────────────────────────────────────────


@dataclass
class NoteEvent:
    """A note spanning ``duration`` ticks."""

    kind: ClassVar[str] = "note"

    tick: int
    note_number: int
    velocity: int = 100
    duration: int = 120
    id: int = -1


@dataclass
class ControllerEvent:
    """A control change (CC) value."""

    kind: ClassVar[str] = "controller"

    tick: int
    controller_type: int
    value: int
    id: int = -1


@dataclass
class PitchBendEvent:
    """A 14-bit pitch bend value (center = 8192)."""

    kind: ClassVar[str] = "pitchBend"

    tick: int
    value: int = PITCH_BEND_CENTER
    id: int = -1


@dataclass
class TempoEvent:
    """A set-tempo meta event.  Lives on the conductor track only."""

    kind: ClassVar[str] = "tempo"

    tick: int
    microseconds_per_beat: int
    id: int = -1


@dataclass
class TimeSignatureEvent:
    """A time signature meta event.  Lives on the conductor track only."""

    kind: ClassVar[str] = "timeSignature"

    tick: int
    numerator: int = 4
    denominator: int = 4
    id: int = -1


TrackEvent = NoteEvent | ControllerEvent | PitchBendEvent | TempoEvent | TimeSignatureEvent

EVENT_CLASSES: dict[str, type] = {
    cls.kind: cls
    for cls in (NoteEvent, ControllerEvent, PitchBendEvent, TempoEvent, TimeSignatureEvent)
}

# Kinds that only the conductor track may carry
CONDUCTOR_KINDS = frozenset({TempoEvent.kind, TimeSignatureEvent.kind})


# ── Predicates ──────────────────────────────────────────────


def is_note_event(e: TrackEvent) -> bool:
    return isinstance(e, NoteEvent)


def is_tempo_event(e: TrackEvent) -> bool:
    return isinstance(e, TempoEvent)


def is_pitch_bend_event(e: TrackEvent) -> bool:
    return isinstance(e, PitchBendEvent)


def is_controller_event_with_type(controller_type: int) -> Callable[[TrackEvent], bool]:
    def predicate(e: TrackEvent) -> bool:
        return isinstance(e, ControllerEvent) and e.controller_type == controller_type

    return predicate


def is_control_event(e: TrackEvent) -> bool:
    """Controller and pitch bend events, the contents of the control pane."""
    return isinstance(e, ControllerEvent | PitchBendEvent)


# ── Clamping ────────────────────────────────────────────────


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _clamp_int(value: float, lo: int, hi: int) -> int:
    return int(clamp(math.floor(value), lo, hi))


def _power_of_two(value: int) -> int:
    value = _clamp_int(value, 1, 128)
    return 1 << (value.bit_length() - 1)


def clamp_event(e: TrackEvent) -> TrackEvent:
    """Return a copy of *e* with every numeric field inside its domain.

    Ticks are floored to integers and clamped at 0.
    """
    tick = max(0, math.floor(e.tick))
    match e:
        case NoteEvent():
            return dataclasses.replace(
                e,
                tick=tick,
                note_number=_clamp_int(e.note_number, 0, MAX_NOTE_NUMBER),
                velocity=_clamp_int(e.velocity, VELOCITY_MIN, VELOCITY_MAX),
                duration=max(1, math.floor(e.duration)),
            )
        case ControllerEvent():
            return dataclasses.replace(
                e,
                tick=tick,
                controller_type=_clamp_int(e.controller_type, CONTROLLER_MIN, CONTROLLER_MAX),
                value=_clamp_int(e.value, CONTROLLER_MIN, CONTROLLER_MAX),
            )
        case PitchBendEvent():
            return dataclasses.replace(
                e, tick=tick, value=_clamp_int(e.value, PITCH_BEND_MIN, PITCH_BEND_MAX),
            )
        case TempoEvent():
            return dataclasses.replace(
                e, tick=tick, microseconds_per_beat=max(1, math.floor(e.microseconds_per_beat)),
            )
        case TimeSignatureEvent():
            return dataclasses.replace(
                e,
                tick=tick,
                numerator=max(1, math.floor(e.numerator)),
                denominator=_power_of_two(e.denominator),
            )
        case _:
            assert_never(e)


# ── Tempo helpers ───────────────────────────────────────────


def bpm_to_usec_per_beat(bpm: float) -> int:
    """Convert BPM to microseconds per beat.  BPM below 1 counts as 1."""
    return mido.bpm2tempo(max(1.0, bpm))


def usec_per_beat_to_bpm(usec: float) -> float:
    return mido.tempo2bpm(usec) if usec > 0 else 0.0


# ── Serialization (clipboard schema) ────────────────────────

_FIELD_NAMES: dict[str, tuple[str, ...]] = {
    cls.kind: tuple(f.name for f in dataclasses.fields(cls))
    for cls in EVENT_CLASSES.values()
}


def event_to_dict(e: TrackEvent) -> dict[str, Any]:
    data: dict[str, Any] = {"kind": e.kind}
    data.update(dataclasses.asdict(e))
    return data


def event_from_dict(data: Any) -> TrackEvent:
    """Build an event from its dict form.

    Raises:
        ClipboardFormatError: unknown kind, missing field, or a field that
            is not a number.
    """
    if not isinstance(data, dict):
        raise ClipboardFormatError(f"event must be an object, got {type(data).__name__}")
    kind = data.get("kind")
    cls = EVENT_CLASSES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise ClipboardFormatError(f"unknown event kind: {kind!r}")

    kwargs: dict[str, Any] = {}
    for name in _FIELD_NAMES[kind]:
        if name not in data:
            if name == "id":
                continue
            raise ClipboardFormatError(f"{kind} event is missing {name!r}")
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise ClipboardFormatError(f"{kind}.{name} must be a number")
        if not math.isfinite(value):
            raise ClipboardFormatError(f"{kind}.{name} must be finite")
        kwargs[name] = value
    return cls(**kwargs)


# ── MIDI conversion ─────────────────────────────────────────


def to_midi_messages(e: TrackEvent, channel: int = 0) -> list[mido.Message | mido.MetaMessage]:
    """Messages that play *e* immediately (note_on only for notes)."""
    channel = _clamp_int(channel, 0, CHANNEL_MAX)
    match e:
        case NoteEvent():
            return [mido.Message("note_on", channel=channel, note=e.note_number, velocity=e.velocity)]
        case ControllerEvent():
            return [mido.Message(
                "control_change", channel=channel, control=e.controller_type, value=e.value,
            )]
        case PitchBendEvent():
            # mido uses a signed pitch (-8192..8191)
            return [mido.Message("pitchwheel", channel=channel, pitch=e.value - PITCH_BEND_CENTER)]
        case TempoEvent():
            return [mido.MetaMessage("set_tempo", tempo=e.microseconds_per_beat)]
        case TimeSignatureEvent():
            return [mido.MetaMessage(
                "time_signature", numerator=e.numerator, denominator=e.denominator,
            )]
        case _:
            assert_never(e)


# ── Value event types (control pane modes) ──────────────────


@dataclass(frozen=True, slots=True)
class ValueEventType:
    """A control pane mode: which events it edits and their value range.

    ``name`` is ``"velocity"``, ``"pitchBend"`` or ``"controller"``; the
    last one also carries ``controller_type``.
    """

    name: str
    controller_type: int = 0

    @classmethod
    def velocity(cls) -> ValueEventType:
        return cls("velocity")

    @classmethod
    def pitch_bend(cls) -> ValueEventType:
        return cls("pitchBend")

    @classmethod
    def controller(cls, controller_type: int) -> ValueEventType:
        return cls("controller", controller_type)

    @property
    def value_range(self) -> tuple[int, int]:
        if self.name == "velocity":
            return VELOCITY_MIN, VELOCITY_MAX
        if self.name == "pitchBend":
            return PITCH_BEND_MIN, PITCH_BEND_MAX
        return CONTROLLER_MIN, CONTROLLER_MAX

    @property
    def max_value(self) -> int:
        return self.value_range[1]

    def predicate(self) -> Callable[[TrackEvent], bool]:
        if self.name == "velocity":
            return is_note_event
        if self.name == "pitchBend":
            return is_pitch_bend_event
        return is_controller_event_with_type(self.controller_type)

    def factory(self) -> Callable[[int], TrackEvent]:
        """Event constructor taking the value; tick is filled in later."""
        if self.name == "velocity":
            raise ValueError("velocity is edited on notes, not created as events")
        if self.name == "pitchBend":
            return lambda value: PitchBendEvent(tick=0, value=value)
        controller_type = self.controller_type
        return lambda value: ControllerEvent(tick=0, controller_type=controller_type, value=value)
