"""Pixel ↔ domain coordinate transforms, one per editor view.

Pure Python, no Qt dependency.  All views share the horizontal mapping
``x = tick * pixels_per_tick * scale_x``; they differ in what the vertical
axis means:

- piano roll: note number rows (127 at the top)
- control pane: a controller / pitch bend / velocity value
- tempo graph: BPM
- arrange view: track rows

Every view offers a *fractional* point query, used while dragging so that
deltas never accumulate rounding error, and an integral one for commits.
Transforms are immutable; a zoom or resize builds a new one.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from .constants import (
    KEY_HEIGHT,
    MAX_NOTE_NUMBER,
    NUMBER_OF_KEYS,
    PIXELS_PER_TICK,
    TRACK_HEIGHT,
)
from .events import NoteEvent, TrackEvent

# ── Points & rects ──────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)


@dataclass(frozen=True, slots=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def contains(self, p: Point) -> bool:
        return self.x <= p.x < self.x + self.width and self.y <= p.y < self.y + self.height


@dataclass(frozen=True, slots=True)
class NotePoint:
    tick: float
    note_number: float


@dataclass(frozen=True, slots=True)
class ValuePoint:
    tick: float
    value: float


@dataclass(frozen=True, slots=True)
class TempoPoint:
    tick: float
    bpm: float


@dataclass(frozen=True, slots=True)
class ArrangePoint:
    tick: float
    track_index: float

    def __sub__(self, other: ArrangePoint) -> ArrangePoint:
        return ArrangePoint(self.tick - other.tick, self.track_index - other.track_index)

    def clamped(self, max_track_index: float) -> ArrangePoint:
        """Keep the point inside ``[0, max_track_index]`` rows and at tick >= 0."""
        return ArrangePoint(
            max(0, self.tick),
            min(max_track_index, max(0, self.track_index)),
        )


# ── Horizontal axis ─────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TickTransform:
    """tick ↔ x mapping shared by every view."""

    pixels_per_tick: float = PIXELS_PER_TICK
    scale_x: float = 1.0

    @property
    def _ppt(self) -> float:
        return self.pixels_per_tick * self.scale_x

    def get_x(self, tick: float) -> float:
        return tick * self._ppt

    def get_tick(self, x: float) -> float:
        return x / self._ppt

    def tick_range(self, scroll_left: float, canvas_width: float) -> tuple[float, float]:
        """Visible ``[start, end)`` tick window for a scroll offset."""
        start = self.get_tick(scroll_left)
        return start, start + self.get_tick(canvas_width)


# ── Piano roll ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class NoteCoordTransform(TickTransform):
    pixels_per_key: float = KEY_HEIGHT
    max_note_number: int = MAX_NOTE_NUMBER

    @classmethod
    def create(cls, scale_x: float = 1.0, scale_y: float = 1.0) -> NoteCoordTransform:
        return cls(PIXELS_PER_TICK, scale_x, KEY_HEIGHT * scale_y, MAX_NOTE_NUMBER)

    def get_y(self, note_number: float) -> float:
        """Top edge of the row for *note_number*."""
        return (self.max_note_number - note_number) * self.pixels_per_key

    def get_note_number_fractional(self, y: float) -> float:
        return self.max_note_number - y / self.pixels_per_key

    def get_note_number(self, y: float) -> int:
        return math.ceil(self.get_note_number_fractional(y))

    def get_note_point_fractional(self, pos: Point) -> NotePoint:
        return NotePoint(self.get_tick(pos.x), self.get_note_number_fractional(pos.y))

    def get_note_point(self, pos: Point) -> NotePoint:
        return NotePoint(round(self.get_tick(pos.x)), self.get_note_number(pos.y))

    def get_max_y(self) -> float:
        return (self.max_note_number + 1) * self.pixels_per_key

    def get_rect(self, note: NoteEvent) -> Rect:
        return Rect(
            self.get_x(note.tick),
            self.get_y(note.note_number),
            self.get_x(note.duration),
            self.pixels_per_key,
        )

    def get_drum_rect(self, note: NoteEvent) -> Rect:
        """Square marker centered on the note start (rhythm tracks)."""
        size = self.pixels_per_key
        return Rect(self.get_x(note.tick) - size / 2, self.get_y(note.note_number), size, size)


# ── Control pane ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ControlCoordTransform(TickTransform):
    """Value axis for controller, pitch bend and velocity lanes.

    ``line_width`` pixels of padding keep the max/min lines visible.
    """

    max_value: float = 127
    height: float = 120
    line_width: float = 1.0

    @property
    def _body(self) -> float:
        return self.height - self.line_width * 2

    def get_y(self, value: float) -> float:
        return (1 - value / self.max_value) * self._body + self.line_width

    def get_value(self, y: float) -> float:
        return (1 - (y - self.line_width) / self._body) * self.max_value

    def from_position(self, pos: Point) -> ValuePoint:
        return ValuePoint(self.get_tick(pos.x), self.get_value(pos.y))

    def from_position_integral(self, pos: Point) -> ValuePoint:
        value = min(self.max_value, max(0, round(self.get_value(pos.y))))
        return ValuePoint(round(self.get_tick(pos.x)), value)

    def to_position(self, tick: float, value: float) -> Point:
        return Point(self.get_x(tick), self.get_y(value))

    def get_rect(self, tick: float, value: float, radius: float = 3.0) -> Rect:
        """Handle rect centered on a value point."""
        p = self.to_position(tick, value)
        return Rect(p.x - radius, p.y - radius, radius * 2, radius * 2)


# ── Tempo graph ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TempoCoordTransform(TickTransform):
    max_bpm: float = 500
    height: float = 240

    def get_y(self, bpm: float) -> float:
        return (1 - bpm / self.max_bpm) * self.height

    def get_bpm(self, y: float) -> float:
        return (1 - y / self.height) * self.max_bpm

    def from_position(self, pos: Point) -> TempoPoint:
        return TempoPoint(self.get_tick(pos.x), self.get_bpm(pos.y))

    def from_position_integral(self, pos: Point) -> TempoPoint:
        bpm = min(self.max_bpm, max(0, round(self.get_bpm(pos.y))))
        return TempoPoint(round(self.get_tick(pos.x)), bpm)

    def get_rect(self, tick: float, bpm: float, radius: float = 3.0) -> Rect:
        x, y = self.get_x(tick), self.get_y(bpm)
        return Rect(x - radius, y - radius, radius * 2, radius * 2)


# ── Arrange view ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ArrangeCoordTransform(TickTransform):
    track_height: float = TRACK_HEIGHT

    def get_y(self, track_index: float) -> float:
        return track_index * self.track_height

    def get_track_index_fractional(self, y: float) -> float:
        return y / self.track_height

    def get_arrange_point_fractional(self, pos: Point) -> ArrangePoint:
        return ArrangePoint(self.get_tick(pos.x), self.get_track_index_fractional(pos.y))

    def get_arrange_point(self, pos: Point) -> ArrangePoint:
        """Integral point: rounded tick, the row containing *pos*."""
        return ArrangePoint(
            round(self.get_tick(pos.x)),
            math.floor(self.get_track_index_fractional(pos.y)),
        )

    def get_rect(self, track_index: int, note: NoteEvent) -> Rect:
        """A note drawn as a thin bar inside its track row."""
        key_height = self.track_height / NUMBER_OF_KEYS
        return Rect(
            self.get_x(note.tick),
            self.get_y(track_index) + (MAX_NOTE_NUMBER - note.note_number) * key_height,
            self.get_x(note.duration),
            key_height,
        )


# ── Windowing ───────────────────────────────────────────────


def event_overlaps(e: TrackEvent, start: float, end: float) -> bool:
    """True if *e* is (partly) inside the tick range ``[start, end)``."""
    if isinstance(e, NoteEvent):
        return e.tick < end and e.tick + e.duration > start
    return start <= e.tick < end


def windowed_events(
    events: Iterable[TrackEvent],
    transform: TickTransform,
    scroll_left: float,
    canvas_width: float,
) -> list[TrackEvent]:
    """Events the renderer needs for the visible window, in input order."""
    start, end = transform.tick_range(scroll_left, canvas_width)
    return [e for e in events if event_overlaps(e, start, end)]
