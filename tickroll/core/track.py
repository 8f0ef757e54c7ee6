"""Tracks (id-keyed event stores) and the song that owns them.

Pure Python, no Qt dependency.

A :class:`Track` is the only thing allowed to change its events.  Reads
return copies, ordered by tick with ties kept in insertion order.  Every
write publishes one change notification, except inside
:meth:`Track.transaction`, which publishes once at the end — or not at
all if the transaction raised, in which case every change made inside it
is rolled back before the exception propagates.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import math
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .constants import DEFAULT_MICROSECONDS_PER_BEAT, DEFAULT_TIMEBASE
from .events import (
    CONDUCTOR_KINDS,
    NoteEvent,
    TempoEvent,
    TimeSignatureEvent,
    TrackEvent,
    clamp_event,
)
from .observable import Publisher, Subscription

log = logging.getLogger(__name__)

R = TypeVar("R")


class InvalidEventError(ValueError):
    """An event that no track may hold, or not this one.

    Signals a caller bug (e.g. a tempo event sent to an instrument track),
    not bad user data.
    """


@dataclass
class TrackState:
    """Everything needed to put a track back the way it was."""

    events: list[TrackEvent]
    last_event_id: int
    name: str
    channel: int | None
    is_rhythm_track: bool


class Track:
    """Ordered, id-keyed event collection with transactional writes."""

    def __init__(
        self,
        name: str = "",
        channel: int | None = None,
        is_conductor_track: bool = False,
        is_rhythm_track: bool = False,
    ) -> None:
        self.name = name
        self.channel = channel
        self.is_conductor_track = is_conductor_track
        self.is_rhythm_track = is_rhythm_track

        # Storage order is insertion order; ``events`` sorts stably on read
        self._events: list[TrackEvent] = []
        self._last_event_id = -1
        self._sorted: list[TrackEvent] | None = None

        self._publisher = Publisher()
        self._transaction_depth = 0
        self._dirty = False

    def __repr__(self) -> str:
        return f"Track(name={self.name!r}, events={len(self._events)})"

    # ── Reads ───────────────────────────────────────────────

    @property
    def events(self) -> list[TrackEvent]:
        """Copies of all events, ascending by tick, stable on insertion."""
        if self._sorted is None:
            self._sorted = sorted(self._events, key=lambda e: e.tick)
        return [copy.copy(e) for e in self._sorted]

    def filter_events(self, predicate: Callable[[TrackEvent], bool]) -> list[TrackEvent]:
        return [e for e in self.events if predicate(e)]

    def get_event_by_id(self, event_id: int) -> TrackEvent | None:
        index = self._index_of(event_id)
        return None if index < 0 else copy.copy(self._events[index])

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def end_of_track(self) -> int:
        """Tick where the last event (including note tails) ends."""
        end = 0
        for e in self._events:
            tail = e.tick + e.duration if isinstance(e, NoteEvent) else e.tick
            end = max(end, tail)
        return end

    def _index_of(self, event_id: int) -> int:
        for i, e in enumerate(self._events):
            if e.id == event_id:
                return i
        return -1

    # ── Notifications ───────────────────────────────────────

    def subscribe(self, listener: Callable[[], None]) -> Subscription:
        return self._publisher.subscribe(listener)

    def _changed(self) -> None:
        self._sorted = None
        if self._transaction_depth > 0:
            self._dirty = True
        else:
            self._publisher.publish()

    # ── Writes ──────────────────────────────────────────────

    def _validate(self, e: TrackEvent) -> None:
        if not math.isfinite(e.tick):
            raise InvalidEventError(f"tick must be finite, got {e.tick!r}")
        if e.kind in CONDUCTOR_KINDS and not self.is_conductor_track:
            raise InvalidEventError(f"{e.kind} events belong on the conductor track")

    def _new_id(self) -> int:
        self._last_event_id += 1
        return self._last_event_id

    def _insert(self, candidate: TrackEvent) -> TrackEvent:
        self._validate(candidate)
        e = clamp_event(dataclasses.replace(candidate, id=self._new_id()))
        self._events.append(e)
        return e

    def create_or_update(self, candidate: TrackEvent) -> TrackEvent:
        """Replace the event with ``candidate.id``, or insert it with a new id."""
        index = self._index_of(candidate.id) if candidate.id >= 0 else -1
        if index < 0:
            e = self._insert(candidate)
        else:
            self._validate(candidate)
            e = clamp_event(candidate)
            self._events[index] = e
        self._changed()
        return copy.copy(e)

    def add_event(self, candidate: TrackEvent) -> TrackEvent:
        """Insert *candidate* under a fresh id, ignoring ``candidate.id``."""
        e = self._insert(candidate)
        self._changed()
        return copy.copy(e)

    def add_events(self, candidates: Iterable[TrackEvent]) -> list[TrackEvent]:
        with self._transaction():
            return [self.add_event(c) for c in candidates]

    def update_event(self, event_id: int, **fields: Any) -> TrackEvent | None:
        """Apply *fields* to one event.  Returns None if the id is unknown."""
        index = self._index_of(event_id)
        if index < 0:
            return None
        fields.pop("id", None)
        updated = dataclasses.replace(self._events[index], **fields)
        self._validate(updated)
        self._events[index] = clamp_event(updated)
        self._changed()
        return copy.copy(self._events[index])

    def update_events(self, updates: Iterable[dict[str, Any]]) -> list[TrackEvent]:
        """Batched :meth:`update_event`; unknown ids are skipped."""
        result = []
        with self._transaction():
            for fields in updates:
                fields = dict(fields)
                e = self.update_event(fields.pop("id"), **fields)
                if e is not None:
                    result.append(e)
        return result

    def remove_event(self, event_id: int) -> None:
        self.remove_events([event_id])

    def remove_events(self, event_ids: Iterable[int]) -> None:
        to_remove = set(event_ids)
        kept = [e for e in self._events if e.id not in to_remove]
        if len(kept) != len(self._events):
            self._events = kept
            self._changed()

    def clear(self) -> None:
        if self._events:
            self._events = []
            self._changed()

    def set_name(self, name: str) -> None:
        self.name = name
        self._changed()

    def set_channel(self, channel: int | None) -> None:
        self.channel = channel
        self._changed()

    # ── Transactions ────────────────────────────────────────

    def transaction(self, fn: Callable[[Track], R]) -> R:
        """Run ``fn(self)`` as one atomic change.

        Listeners hear about it once, after ``fn`` returns.  If ``fn``
        raises, the track is restored to its state before the call and
        nobody is notified.  Nested calls join the outermost transaction.
        """
        with self._transaction():
            return fn(self)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        if self._transaction_depth > 0:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        saved = self.save_state()
        self._transaction_depth = 1
        self._dirty = False
        try:
            yield
        except BaseException:
            self.restore_state(saved)
            self._dirty = False
            log.warning("Rolled back transaction on %r", self, exc_info=True)
            raise
        finally:
            self._transaction_depth = 0
        if self._dirty:
            self._dirty = False
            self._publisher.publish()

    # ── History support ─────────────────────────────────────

    def save_state(self) -> TrackState:
        # Stored events are never mutated in place, a shallow list copy is enough
        return TrackState(
            events=list(self._events),
            last_event_id=self._last_event_id,
            name=self.name,
            channel=self.channel,
            is_rhythm_track=self.is_rhythm_track,
        )

    def restore_state(self, state: TrackState) -> None:
        self._events = list(state.events)
        self._last_event_id = state.last_event_id
        self.name = state.name
        self.channel = state.channel
        self.is_rhythm_track = state.is_rhythm_track
        self._changed()


# ── Song ────────────────────────────────────────────────────


@dataclass
class SongState:
    tracks: list[tuple[Track, TrackState]] = field(default_factory=list)


class Song:
    """The tracks of one piece and its timebase."""

    def __init__(self, timebase: int = DEFAULT_TIMEBASE) -> None:
        self.timebase = timebase
        self._tracks: list[Track] = []
        self._publisher = Publisher()

    @classmethod
    def create_default(cls, timebase: int = DEFAULT_TIMEBASE, num_tracks: int = 1) -> Song:
        """A conductor track (120 BPM, 4/4) plus *num_tracks* instrument tracks."""
        song = cls(timebase)
        conductor = Track(name="Conductor", is_conductor_track=True)
        conductor.add_event(TempoEvent(tick=0, microseconds_per_beat=DEFAULT_MICROSECONDS_PER_BEAT))
        conductor.add_event(TimeSignatureEvent(tick=0, numerator=4, denominator=4))
        song.add_track(conductor)
        for i in range(num_tracks):
            song.add_track(Track(name=f"Track {i + 1}", channel=i))
        return song

    @property
    def tracks(self) -> list[Track]:
        return list(self._tracks)

    @property
    def track_count(self) -> int:
        return len(self._tracks)

    @property
    def conductor_track(self) -> Track | None:
        for t in self._tracks:
            if t.is_conductor_track:
                return t
        return None

    def get_track(self, index: int) -> Track | None:
        if 0 <= index < len(self._tracks):
            return self._tracks[index]
        return None

    def track_index(self, track: Track) -> int:
        for i, t in enumerate(self._tracks):
            if t is track:
                return i
        return -1

    def add_track(self, track: Track, index: int | None = None) -> Track:
        if track.is_conductor_track and self.conductor_track is not None:
            raise InvalidEventError("a song has at most one conductor track")
        if index is None:
            self._tracks.append(track)
        else:
            self._tracks.insert(index, track)
        self._publisher.publish()
        return track

    def remove_track(self, index: int) -> None:
        if 0 <= index < len(self._tracks):
            self._tracks.pop(index)
            self._publisher.publish()

    def subscribe(self, listener: Callable[[], None]) -> Subscription:
        """Notified when tracks are added, removed or restored."""
        return self._publisher.subscribe(listener)

    def save_state(self) -> SongState:
        return SongState([(t, t.save_state()) for t in self._tracks])

    def restore_state(self, state: SongState) -> None:
        self._tracks = [t for t, _ in state.tracks]
        for t, track_state in state.tracks:
            t.restore_state(track_state)
        self._publisher.publish()
