"""Editing actions: range fills, batch value changes, event creation.

Pure Python, no Qt dependency.  Every action that changes a track takes
its collaborators as arguments (track, quantizer, history, player), calls
``history.push_history()`` once before the first change, and wraps
multi-step changes in one ``track.transaction``.

Actions that find nothing to act on (no track, no ids) return quietly.
The ones a view only offers when a track is bound raise
:class:`TrackNotSelectedError` instead: getting there without a track is a
bug in the caller.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import assert_never

from .constants import (
    CONTROLLER_MAX,
    CONTROLLER_MIN,
    DEFAULT_MAX_BPM,
    MAX_NOTE_NUMBER,
    PITCH_BEND_MAX,
    PITCH_BEND_MIN,
    VELOCITY_MAX,
    VELOCITY_MIN,
)
from .events import (
    ControllerEvent,
    NoteEvent,
    PitchBendEvent,
    TempoEvent,
    TimeSignatureEvent,
    TrackEvent,
    bpm_to_usec_per_beat,
    is_note_event,
    is_tempo_event,
    usec_per_beat_to_bpm,
)
from .history import HistoryStore
from .player import Player
from .quantizer import Quantizer
from .track import Song, Track


class TrackNotSelectedError(RuntimeError):
    """An action that needs a bound track was invoked without one."""


def require_track(track: Track | None) -> Track:
    if track is None:
        raise TrackNotSelectedError("selected track is undefined")
    return track


def _existing(track: Track, event_ids: Iterable[int]) -> list[TrackEvent]:
    result = []
    for event_id in event_ids:
        e = track.get_event_by_id(event_id)
        if e is not None:
            result.append(e)
    return result


# ── Linear interpolation ────────────────────────────────────


def interpolator(
    start_tick: float, start_value: float, end_tick: float, end_value: float,
) -> Callable[[float], int]:
    """Floored value of the line through both points, clamped between them.

    A vertical line (equal ticks) yields *end_value* everywhere.
    """
    if start_tick == end_tick:
        return lambda tick: math.floor(end_value)
    lo, hi = min(start_value, end_value), max(start_value, end_value)
    slope = (end_value - start_value) / (end_tick - start_tick)

    def value_at(tick: float) -> int:
        v = (tick - start_tick) * slope + start_value
        return math.floor(min(hi, max(lo, v)))

    return value_at


def update_events_in_range(
    track: Track | None,
    quantizer: Quantizer,
    predicate: Callable[[TrackEvent], bool],
    factory: Callable[[int], TrackEvent],
    start_tick: float,
    start_value: float,
    end_tick: float,
    end_value: float,
) -> list[TrackEvent]:
    """Replace the events of one lane under a drag with a grid-snapped ramp.

    Events matching *predicate* between the dragged ticks (widened to the
    quantized bounds) are removed — except one sitting exactly on
    *start_tick*, which the same gesture may just have created — and one
    ``factory(value)`` event is inserted per grid tick.  Returns the
    inserted events.
    """
    track = require_track(track)

    min_tick, max_tick = min(start_tick, end_tick), max(start_tick, end_tick)
    q_start = quantizer.floor(max(0, min_tick))
    q_end = quantizer.floor(max(0, max_tick))
    value_at = interpolator(start_tick, start_value, end_tick, end_value)

    lo, hi = min(min_tick, q_start), max(max_tick, q_end)
    removed = [
        e.id for e in track.events
        if predicate(e) and e.tick != start_tick and lo <= e.tick <= hi
    ]
    new_events = [
        dataclasses.replace(factory(value_at(tick)), tick=tick)
        for tick in quantizer.grid_ticks(q_start, q_end)
    ]

    def apply(it: Track) -> list[TrackEvent]:
        it.remove_events(removed)
        return it.add_events(new_events)

    return track.transaction(apply)


def update_velocities_in_range(
    track: Track | None,
    selected_note_ids: Sequence[int],
    start_tick: float,
    start_value: float,
    end_tick: float,
    end_value: float,
) -> None:
    """Ramp the velocity of notes under a velocity-lane drag.

    Only selected notes are touched when there is a selection; otherwise
    every note in the dragged tick range.
    """
    if track is None:
        return
    value_at = interpolator(start_tick, start_value, end_tick, end_value)
    min_tick, max_tick = min(start_tick, end_tick), max(start_tick, end_tick)

    notes = _existing(track, selected_note_ids) if selected_note_ids else track.filter_events(is_note_event)
    updates = [
        {"id": n.id, "velocity": value_at(n.tick)}
        for n in notes
        if isinstance(n, NoteEvent) and min_tick <= n.tick <= max_tick
    ]
    track.transaction(lambda it: it.update_events(updates))


# ── Batch value transforms ──────────────────────────────────


@dataclass(frozen=True, slots=True)
class SetValue:
    value: float


@dataclass(frozen=True, slots=True)
class AddValue:
    value: float


@dataclass(frozen=True, slots=True)
class MultiplyValue:
    value: float


ValueOperation = SetValue | AddValue | MultiplyValue


def apply_operation(op: ValueOperation, value: float, lo: float, hi: float) -> int:
    """Result of *op* on *value*, floored and clamped to ``[lo, hi]``."""
    match op:
        case SetValue(amount):
            result = amount
        case AddValue(amount):
            result = value + amount
        case MultiplyValue(factor):
            result = value * factor
        case _:
            assert_never(op)
    return int(min(hi, max(lo, math.floor(result))))


def _transformed_fields(e: TrackEvent, op: ValueOperation, max_bpm: float) -> dict | None:
    match e:
        case NoteEvent():
            return {"velocity": apply_operation(op, e.velocity, VELOCITY_MIN, VELOCITY_MAX)}
        case ControllerEvent():
            return {"value": apply_operation(op, e.value, CONTROLLER_MIN, CONTROLLER_MAX)}
        case PitchBendEvent():
            return {"value": apply_operation(op, e.value, PITCH_BEND_MIN, PITCH_BEND_MAX)}
        case TempoEvent():
            bpm = apply_operation(op, usec_per_beat_to_bpm(e.microseconds_per_beat), 1, max_bpm)
            return {"microseconds_per_beat": bpm_to_usec_per_beat(bpm)}
        case TimeSignatureEvent():
            return None
        case _:
            assert_never(e)


def transform_values(
    track: Track | None,
    history: HistoryStore,
    event_ids: Sequence[int],
    op: ValueOperation,
    max_bpm: float = DEFAULT_MAX_BPM,
) -> list[TrackEvent]:
    """Apply *op* to the value field of every selected event.

    Notes change velocity, controllers and pitch bends their value, tempo
    events their BPM.  Time signatures have no value and are skipped.
    """
    if track is None or not event_ids:
        return []
    updates = []
    for e in _existing(track, event_ids):
        fields = _transformed_fields(e, op, max_bpm)
        if fields is not None:
            updates.append({"id": e.id, **fields})
    if not updates:
        return []
    history.push_history()
    return track.transaction(lambda it: it.update_events(updates))


def change_notes_velocity(
    track: Track | None, history: HistoryStore, note_ids: Sequence[int], velocity: int,
) -> None:
    if track is None or not note_ids:
        return
    history.push_history()
    track.update_events([{"id": i, "velocity": velocity} for i in note_ids])


# ── Create / change / delete ────────────────────────────────


def create_event(
    track: Track | None,
    quantizer: Quantizer,
    player: Player,
    history: HistoryStore,
    event: TrackEvent,
    tick: float | None = None,
) -> int:
    """Insert *event* at *tick* (or the playback position), snapped to the grid.

    An explicit *tick* means the user placed the event by hand, so it is
    also played right away.
    """
    track = require_track(track)
    history.push_history()
    at = player.position if tick is None else tick
    created = track.create_or_update(
        dataclasses.replace(event, tick=quantizer.round(max(0, at)), id=-1),
    )
    if tick is not None:
        player.send_event(created, track.channel or 0)
    return created.id


def create_or_update_control_value(
    track: Track | None,
    player: Player,
    history: HistoryStore,
    selected_event_ids: Sequence[int],
    event: ControllerEvent | PitchBendEvent,
) -> None:
    """Set the value of the selected control events, or insert one at the playhead."""
    if track is None:
        return
    history.push_history()
    selected = _existing(track, selected_event_ids)
    if selected:
        track.update_events([{"id": e.id, "value": event.value} for e in selected])
    else:
        track.create_or_update(dataclasses.replace(event, tick=player.position, id=-1))


def change_tempo(song: Song, history: HistoryStore, event_id: int, microseconds_per_beat: int) -> None:
    track = song.conductor_track
    if track is None:
        return
    history.push_history()
    track.update_event(event_id, microseconds_per_beat=microseconds_per_beat)


def delete_events(track: Track | None, history: HistoryStore, event_ids: Sequence[int]) -> None:
    if track is None or not event_ids:
        return
    history.push_history()
    track.remove_events(event_ids)


def move_events(
    track: Track, event_ids: Sequence[int], delta_tick: int, delta_note_number: int = 0,
) -> None:
    """Shift events in time (and notes in pitch) without touching history.

    Gestures call this on every mouse move after pushing history once on
    mouse down.
    """
    updates = []
    for e in _existing(track, event_ids):
        fields: dict = {"id": e.id, "tick": max(0, e.tick + delta_tick)}
        if isinstance(e, NoteEvent):
            fields["note_number"] = min(MAX_NOTE_NUMBER, max(0, e.note_number + delta_note_number))
        updates.append(fields)
    track.transaction(lambda it: it.update_events(updates))


def transpose_notes(
    track: Track | None, history: HistoryStore, note_ids: Sequence[int], semitones: int,
) -> None:
    if track is None or not note_ids or semitones == 0:
        return
    history.push_history()
    notes = [e for e in _existing(track, note_ids) if isinstance(e, NoteEvent)]
    track.transaction(lambda it: it.update_events(
        {"id": n.id, "note_number": n.note_number + semitones} for n in notes
    ))


def quantize_events(
    track: Track | None, quantizer: Quantizer, history: HistoryStore, event_ids: Sequence[int],
) -> None:
    """Snap the start of each event to the nearest grid tick."""
    if track is None or not event_ids:
        return
    history.push_history()
    events = _existing(track, event_ids)
    track.transaction(lambda it: it.update_events(
        {"id": e.id, "tick": quantizer.round(e.tick)} for e in events
    ))


def tempo_factory(bpm: int) -> TempoEvent:
    """Range-fill factory for the tempo graph; *bpm* becomes µs per beat."""
    return TempoEvent(tick=0, microseconds_per_beat=bpm_to_usec_per_beat(bpm))


def update_tempo_in_range(
    song: Song,
    quantizer: Quantizer,
    start_tick: float,
    start_bpm: float,
    end_tick: float,
    end_bpm: float,
) -> list[TrackEvent]:
    return update_events_in_range(
        song.conductor_track, quantizer, is_tempo_event, tempo_factory,
        start_tick, start_bpm, end_tick, end_bpm,
    )
