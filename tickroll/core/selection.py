"""Rectangular selections in domain coordinates and membership tests.

All ranges are half-open — ``[from, to)`` — so an event sitting exactly on
the border shared by two adjacent selections belongs to only one of them.
Selections are always normalized (``from <= to``), whatever direction the
user dragged in.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .events import NoteEvent, TrackEvent
from .transform import ArrangePoint, NotePoint


@dataclass(frozen=True, slots=True)
class Selection:
    """Piano roll selection: ``[from_tick, to_tick) × [from_note_number, to_note_number)``."""

    from_tick: float
    from_note_number: float
    to_tick: float
    to_note_number: float

    @classmethod
    def from_points(cls, a: NotePoint, b: NotePoint) -> Selection:
        return cls(
            from_tick=min(a.tick, b.tick),
            from_note_number=min(a.note_number, b.note_number),
            to_tick=max(a.tick, b.tick),
            to_note_number=max(a.note_number, b.note_number),
        )

    def is_empty(self) -> bool:
        """A click without a drag."""
        return self.from_tick == self.to_tick and self.from_note_number == self.to_note_number

    def contains(self, tick: float, note_number: float) -> bool:
        return (
            self.from_tick <= tick < self.to_tick
            and self.from_note_number <= note_number < self.to_note_number
        )

    def moved(self, delta_tick: float, delta_note_number: float) -> Selection:
        return Selection(
            self.from_tick + delta_tick,
            self.from_note_number + delta_note_number,
            self.to_tick + delta_tick,
            self.to_note_number + delta_note_number,
        )


@dataclass(frozen=True, slots=True)
class ControlSelection:
    """Tick-only selection used by the control pane and tempo graph."""

    from_tick: float
    to_tick: float

    @classmethod
    def from_ticks(cls, a: float, b: float) -> ControlSelection:
        return cls(min(a, b), max(a, b))

    def is_empty(self) -> bool:
        return self.from_tick == self.to_tick

    def contains(self, tick: float) -> bool:
        return self.from_tick <= tick < self.to_tick


@dataclass(frozen=True, slots=True)
class ArrangeSelection:
    """Tick range across a block of whole track rows ``[from_track_index, to_track_index)``."""

    from_tick: float
    from_track_index: int
    to_tick: float
    to_track_index: int

    @classmethod
    def from_points(cls, a: ArrangePoint, b: ArrangePoint) -> ArrangeSelection:
        """Every row touched by the drag is included."""
        return cls(
            from_tick=min(a.tick, b.tick),
            from_track_index=math.floor(min(a.track_index, b.track_index)),
            to_tick=max(a.tick, b.tick),
            to_track_index=math.floor(max(a.track_index, b.track_index)) + 1,
        )

    @property
    def start(self) -> ArrangePoint:
        return ArrangePoint(self.from_tick, self.from_track_index)

    @property
    def track_count(self) -> int:
        return self.to_track_index - self.from_track_index

    def is_empty(self) -> bool:
        return self.from_tick == self.to_tick

    def moved(self, delta: ArrangePoint) -> ArrangeSelection:
        return ArrangeSelection(
            self.from_tick + delta.tick,
            self.from_track_index + int(delta.track_index),
            self.to_tick + delta.tick,
            self.to_track_index + int(delta.track_index),
        )

    def clamped(self, track_count: int) -> ArrangeSelection:
        """Keep the rows inside ``[0, track_count)`` and ticks at >= 0."""
        from_index = max(0, min(self.from_track_index, track_count))
        to_index = max(from_index, min(self.to_track_index, track_count))
        return ArrangeSelection(
            max(0, self.from_tick), from_index, max(0, self.to_tick), to_index,
        )


# ── Membership ──────────────────────────────────────────────


def events_in_selection(events: Iterable[TrackEvent], selection: Selection) -> list[NoteEvent]:
    """Notes whose start ``(tick, note_number)`` lies inside *selection*."""
    return [
        e for e in events
        if isinstance(e, NoteEvent) and selection.contains(e.tick, e.note_number)
    ]


def control_events_in_selection(
    events: Iterable[TrackEvent], selection: ControlSelection,
) -> list[TrackEvent]:
    """Events (already filtered to one lane) whose tick lies in *selection*."""
    return [e for e in events if selection.contains(e.tick)]


def arrange_events_in_selection(
    track_events: Sequence[Sequence[TrackEvent]], selection: ArrangeSelection,
) -> dict[int, list[TrackEvent]]:
    """Per-track-index events in the tick range of the selected rows.

    *track_events* is indexed like the song's track list.  Rows with no
    matching events are left out of the result.
    """
    result: dict[int, list[TrackEvent]] = {}
    last = min(selection.to_track_index, len(track_events))
    for index in range(max(0, selection.from_track_index), last):
        events = [e for e in track_events[index] if selection.from_tick <= e.tick < selection.to_tick]
        if events:
            result[index] = events
    return result
