"""Mouse gestures as small state machines.

Pure Python, no Qt dependency.  A gesture object lives for exactly one
``down → move* → up`` sequence and moves through
``IDLE → DRAGGING → SETTLED``; everything it remembers between callbacks
(origin, last point, the events it grabbed) is a field on that object, so
a new gesture always starts from scratch.

Widgets forward pointer moves and releases to an :class:`InputSource`.
:meth:`DragGesture.begin` registers with it and the registration is
removed when the pointer is released, or when the widget goes away and
calls :meth:`InputSource.cancel_all` — a drag never outlives its editor.

Each gesture is one history step: the first ``push_history`` inside it
snapshots, later ones are no-ops.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Callable
from enum import Enum

from .arrange import move_events_between_tracks, select_events_in_arrange_selection
from .constants import MAX_NOTE_NUMBER
from .editing import (
    require_track,
    tempo_factory,
    update_events_in_range,
    update_tempo_in_range,
    update_velocities_in_range,
)
from .editor_state import EditorContext
from .events import (
    NoteEvent,
    TempoEvent,
    bpm_to_usec_per_beat,
    clamp,
    usec_per_beat_to_bpm,
)
from .selection import ArrangeSelection, ControlSelection, Selection, events_in_selection
from .transform import ArrangePoint, NotePoint, Point

log = logging.getLogger(__name__)


class GestureState(Enum):
    IDLE = 0
    DRAGGING = 1
    SETTLED = 2


# ── Input source ────────────────────────────────────────────


class DragHandle:
    """One registration of move/up callbacks with an :class:`InputSource`."""

    def __init__(
        self,
        source: InputSource,
        on_move: Callable[[Point], None],
        on_up: Callable[[Point], None] | None,
        on_cancel: Callable[[], None] | None,
    ) -> None:
        self._source = source
        self.on_move = on_move
        self.on_up = on_up
        self.on_cancel = on_cancel

    @property
    def active(self) -> bool:
        return self in self._source._drags

    def detach(self) -> None:
        if self in self._source._drags:
            self._source._drags.remove(self)


class InputSource:
    """Routes pointer moves and releases to the drags currently observing them."""

    def __init__(self) -> None:
        self._drags: list[DragHandle] = []

    @property
    def active_count(self) -> int:
        return len(self._drags)

    def observe_drag(
        self,
        on_move: Callable[[Point], None],
        on_up: Callable[[Point], None] | None = None,
        on_cancel: Callable[[], None] | None = None,
    ) -> DragHandle:
        handle = DragHandle(self, on_move, on_up, on_cancel)
        self._drags.append(handle)
        return handle

    def pointer_move(self, pos: Point) -> None:
        for handle in list(self._drags):
            handle.on_move(pos)

    def pointer_up(self, pos: Point) -> None:
        for handle in list(self._drags):
            # Detach first: an exception in on_up must not leave the drag registered
            handle.detach()
            if handle.on_up is not None:
                handle.on_up(pos)

    def cancel_all(self) -> None:
        """Drop every drag without calling ``on_up`` (editor teardown)."""
        drags, self._drags = self._drags, []
        for handle in drags:
            if handle.on_cancel is not None:
                handle.on_cancel()


# ── Base gesture ────────────────────────────────────────────


class DragGesture:
    """Base class; subclasses implement ``on_down``, ``on_move`` and ``on_up``."""

    def __init__(self, ctx: EditorContext) -> None:
        self.ctx = ctx
        self.state = GestureState.IDLE
        self.start_pos = Point(0, 0)
        self._handle: DragHandle | None = None

    def begin(self, source: InputSource, pos: Point) -> None:
        if self.state is not GestureState.IDLE:
            raise RuntimeError(f"{type(self).__name__} can only be started once")
        self.state = GestureState.DRAGGING
        self.start_pos = pos
        self.ctx.history.begin_gesture()
        try:
            self.on_down(pos)
        except BaseException:
            self._settle()
            raise
        if self.state is GestureState.DRAGGING:
            self._handle = source.observe_drag(self._move, self._up, self._settle)

    def finish(self) -> None:
        """End the gesture from inside ``on_down`` when there is nothing to drag."""
        self._settle()

    def _move(self, pos: Point) -> None:
        if self.state is GestureState.DRAGGING:
            self.on_move(pos, pos - self.start_pos)

    def _up(self, pos: Point) -> None:
        try:
            if self.state is GestureState.DRAGGING:
                self.on_up(pos)
        finally:
            self._settle()

    def _settle(self) -> None:
        if self.state is GestureState.DRAGGING:
            self.state = GestureState.SETTLED
            self.ctx.history.end_gesture()
        if self._handle is not None:
            self._handle.detach()
            self._handle = None

    def on_down(self, pos: Point) -> None:
        pass

    def on_move(self, pos: Point, delta: Point) -> None:
        pass

    def on_up(self, pos: Point) -> None:
        pass

    def _jump_to(self, tick: float) -> None:
        """Move the playhead to a clicked tick, unless playing."""
        player = self.ctx.player
        if not player.is_playing:
            player.set_position(max(0, tick))


# ── Piano roll ──────────────────────────────────────────────


class NoteSelectionGesture(DragGesture):
    """Rubber-band selection of notes; a plain click clears the selection."""

    def on_down(self, pos: Point) -> None:
        pr = self.ctx.piano_roll
        quantizer = pr.quantizer.get()
        start = pr.transform.get().get_note_point_fractional(pos)
        self._start = dataclasses.replace(start, tick=quantizer.round(max(0, start.tick)))
        self._jump_to(self._start.tick)
        self.ctx.control_pane.selected_event_ids.set(())
        pr.selected_note_ids.set(())
        pr.selection.set(Selection.from_points(self._start, self._start))

    def on_move(self, pos: Point, delta: Point) -> None:
        pr = self.ctx.piano_roll
        end = pr.transform.get().get_note_point_fractional(pos)
        end = dataclasses.replace(end, tick=pr.quantizer.get().round(max(0, end.tick)))
        pr.selection.set(Selection.from_points(self._start, end))

    def on_up(self, pos: Point) -> None:
        pr = self.ctx.piano_roll
        selection = pr.selection.get()
        if selection is None:
            return
        if selection.is_empty():
            pr.reset_selection()
            return
        events = pr.track.events()
        pr.selected_note_ids.set(tuple(e.id for e in events_in_selection(events, selection)))


class MoveNotesGesture(DragGesture):
    """Drag the selected notes (or the one under the pointer) in time and pitch.

    Positions are recomputed from the notes' original positions on every
    move, snapping the grabbed note to the grid; the others keep their
    offsets to it.
    """

    def __init__(self, ctx: EditorContext, hit_note_id: int) -> None:
        super().__init__(ctx)
        self.hit_note_id = hit_note_id
        self._originals: list[NoteEvent] = []

    def on_down(self, pos: Point) -> None:
        pr = self.ctx.piano_roll
        track = require_track(pr.selected_track)
        selected = pr.selected_note_ids.get()
        if self.hit_note_id not in selected:
            selected = (self.hit_note_id,)
            pr.selected_note_ids.set(selected)
        self._originals = [
            e for e in (track.get_event_by_id(i) for i in selected) if isinstance(e, NoteEvent)
        ]
        hit = next((e for e in self._originals if e.id == self.hit_note_id), None)
        if hit is None:
            self.finish()
            return
        self._hit = hit
        self._start = pr.transform.get().get_note_point_fractional(pos)
        self.ctx.history.push_history()

    def on_move(self, pos: Point, delta: Point) -> None:
        pr = self.ctx.piano_roll
        track = pr.selected_track
        if track is None:
            return
        now = pr.transform.get().get_note_point_fractional(pos)
        delta_tick = now.tick - self._start.tick
        quantized_delta = pr.quantizer.get().round(max(0, self._hit.tick + delta_tick)) - self._hit.tick
        delta_note = round(now.note_number - self._start.note_number)
        updates = [
            {
                "id": n.id,
                "tick": max(0, n.tick + quantized_delta),
                "note_number": min(MAX_NOTE_NUMBER, max(0, n.note_number + delta_note)),
            }
            for n in self._originals
        ]
        track.transaction(lambda it: it.update_events(updates))


class CreateNoteGesture(DragGesture):
    """Pencil: click adds a note at the grid cell, dragging right stretches it."""

    def on_down(self, pos: Point) -> None:
        pr = self.ctx.piano_roll
        track = require_track(pr.selected_track)
        quantizer = pr.quantizer.get()
        point: NotePoint = pr.transform.get().get_note_point(pos)
        if not 0 <= point.note_number <= MAX_NOTE_NUMBER:
            self.finish()
            return
        self.ctx.history.push_history()
        tick = quantizer.floor(max(0, point.tick))
        unit = max(1, math.floor(quantizer.unit))
        note = track.create_or_update(NoteEvent(
            tick=tick,
            note_number=int(point.note_number),
            velocity=pr.new_note_velocity,
            duration=unit,
        ))
        self._note = note
        self._unit = unit
        self.ctx.player.send_event(note, track.channel or 0)
        pr.selected_note_ids.set((note.id,))

    def on_move(self, pos: Point, delta: Point) -> None:
        pr = self.ctx.piano_roll
        track = pr.selected_track
        if track is None:
            return
        end = pr.quantizer.get().round(pr.transform.get().get_tick(pos.x))
        duration = max(self._unit, end - self._note.tick)
        track.update_event(self._note.id, duration=duration)

    def on_up(self, pos: Point) -> None:
        track = self.ctx.piano_roll.selected_track
        channel = track.channel if track is not None and track.channel is not None else 0
        self.ctx.player.stop_note(self._note.note_number, channel)


# ── Control pane ────────────────────────────────────────────


class ControlSelectionGesture(DragGesture):
    """Tick-range selection of the control lane's events."""

    def on_down(self, pos: Point) -> None:
        cp = self.ctx.control_pane
        pr = self.ctx.piano_roll
        cp.selected_event_ids.set(())
        pr.reset_selection()
        self._start_tick = cp.quantizer.get().round(max(0, cp.transform.get().get_tick(pos.x)))
        self._jump_to(self._start_tick)
        cp.selection.set(ControlSelection(self._start_tick, self._start_tick))

    def on_move(self, pos: Point, delta: Point) -> None:
        cp = self.ctx.control_pane
        end_tick = cp.quantizer.get().round(max(0, cp.transform.get().get_tick(pos.x)))
        cp.selection.set(ControlSelection.from_ticks(self._start_tick, end_tick))

    def on_up(self, pos: Point) -> None:
        cp = self.ctx.control_pane
        selection = cp.selection.get()
        ids: tuple[int, ...] = ()
        if selection is not None:
            ids = tuple(e.id for e in cp.lane_events() if selection.contains(e.tick))
        cp.selected_event_ids.set(ids)
        cp.selection.set(None)


class ControlPencilGesture(DragGesture):
    """Draw a controller / pitch bend curve, or a velocity ramp over notes."""

    def on_down(self, pos: Point) -> None:
        cp = self.ctx.control_pane
        track = require_track(cp.track.get())
        mode = cp.mode.get()
        transform = cp.transform.get()
        self.ctx.history.push_history()

        p = transform.from_position(pos)
        value = clamp(p.value, *mode.value_range)
        self._last_tick, self._last_value = p.tick, value

        if mode.name == "velocity":
            update_velocities_in_range(
                track, self.ctx.piano_roll.selected_note_ids.get(), p.tick, value, p.tick, value,
            )
            return
        created = track.create_or_update(dataclasses.replace(
            mode.factory()(math.floor(value)),
            tick=cp.quantizer.get().round(max(0, p.tick)),
        ))
        self.ctx.player.send_event(created, track.channel or 0)

    def on_move(self, pos: Point, delta: Point) -> None:
        cp = self.ctx.control_pane
        track = cp.track.get()
        if track is None:
            return
        mode = cp.mode.get()
        p = cp.transform.get().from_position(pos)
        value = clamp(p.value, *mode.value_range)
        if mode.name == "velocity":
            update_velocities_in_range(
                track, self.ctx.piano_roll.selected_note_ids.get(),
                self._last_tick, self._last_value, p.tick, value,
            )
        else:
            update_events_in_range(
                track, cp.quantizer.get(), mode.predicate(), mode.factory(),
                self._last_tick, self._last_value, p.tick, value,
            )
        self._last_tick, self._last_value = p.tick, value


# ── Tempo graph ─────────────────────────────────────────────


class TempoPencilGesture(DragGesture):
    """Draw tempo changes on the conductor track."""

    def on_down(self, pos: Point) -> None:
        te = self.ctx.tempo_editor
        track = require_track(self.ctx.song.conductor_track)
        transform = te.transform.get()
        self.ctx.history.push_history()

        p = transform.from_position(pos)
        bpm = clamp(p.bpm, 0, transform.max_bpm)
        track.create_or_update(dataclasses.replace(
            tempo_factory(round(bpm)), tick=te.quantizer.get().round(max(0, p.tick)),
        ))
        self._last_tick, self._last_bpm = p.tick, bpm

    def on_move(self, pos: Point, delta: Point) -> None:
        te = self.ctx.tempo_editor
        transform = te.transform.get()
        p = transform.from_position(pos)
        bpm = clamp(p.bpm, 0, transform.max_bpm)
        update_tempo_in_range(
            self.ctx.song, te.quantizer.get(), self._last_tick, self._last_bpm, p.tick, bpm,
        )
        self._last_tick, self._last_bpm = p.tick, bpm


class TempoSelectionGesture(DragGesture):
    """Tick-range selection of tempo events."""

    def on_down(self, pos: Point) -> None:
        te = self.ctx.tempo_editor
        te.selected_event_ids.set(())
        self._start_tick = te.quantizer.get().round(max(0, te.transform.get().get_tick(pos.x)))
        self._jump_to(self._start_tick)
        te.selection.set(ControlSelection(self._start_tick, self._start_tick))

    def on_move(self, pos: Point, delta: Point) -> None:
        te = self.ctx.tempo_editor
        end_tick = te.quantizer.get().round(max(0, te.transform.get().get_tick(pos.x)))
        te.selection.set(ControlSelection.from_ticks(self._start_tick, end_tick))

    def on_up(self, pos: Point) -> None:
        te = self.ctx.tempo_editor
        selection = te.selection.get()
        track = self.ctx.song.conductor_track
        ids: tuple[int, ...] = ()
        if selection is not None and track is not None:
            ids = tuple(
                e.id for e in track.events
                if isinstance(e, TempoEvent) and selection.contains(e.tick)
            )
        te.selected_event_ids.set(ids)
        te.selection.set(None)


class TempoDragSelectionGesture(DragGesture):
    """Move the selected tempo events in time and BPM together."""

    def __init__(self, ctx: EditorContext, hit_event_id: int) -> None:
        super().__init__(ctx)
        self.hit_event_id = hit_event_id
        self._events: list[TempoEvent] = []

    def on_down(self, pos: Point) -> None:
        te = self.ctx.tempo_editor
        track = require_track(self.ctx.song.conductor_track)
        selected = te.selected_event_ids.get()
        if self.hit_event_id not in selected:
            selected = (self.hit_event_id,)
            te.selected_event_ids.set(selected)
        self._events = [
            e for e in (track.get_event_by_id(i) for i in selected) if isinstance(e, TempoEvent)
        ]
        dragged = next((e for e in self._events if e.id == self.hit_event_id), None)
        if dragged is None:
            self.finish()
            return
        self._dragged = dragged
        self._start = te.transform.get().from_position(pos)
        self.ctx.history.push_history()

    def on_move(self, pos: Point, delta: Point) -> None:
        te = self.ctx.tempo_editor
        track = self.ctx.song.conductor_track
        if track is None:
            return
        transform = te.transform.get()
        p = transform.from_position(pos)
        delta_tick = p.tick - self._start.tick
        quantized_delta = te.quantizer.get().round(self._dragged.tick + delta_tick) - self._dragged.tick
        delta_bpm = p.bpm - self._start.bpm
        updates = [
            {
                "id": e.id,
                "tick": max(0, math.floor(e.tick + quantized_delta)),
                "microseconds_per_beat": bpm_to_usec_per_beat(clamp(
                    usec_per_beat_to_bpm(e.microseconds_per_beat) + delta_bpm, 0, transform.max_bpm,
                )),
            }
            for e in self._events
        ]
        track.transaction(lambda it: it.update_events(updates))


# ── Arrange view ────────────────────────────────────────────


class ArrangeSelectionGesture(DragGesture):
    """Select a tick range over whole track rows."""

    def on_down(self, pos: Point) -> None:
        av = self.ctx.arrange_view
        av.reset_selection()
        self._start = av.transform.get().get_arrange_point_fractional(pos)
        tick = av.quantizer.get().round(max(0, self._start.tick))
        self._jump_to(tick)
        index = math.floor(self._start.track_index)
        if 0 <= index < self.ctx.song.track_count:
            av.selected_track_index.set(index)

    def on_move(self, pos: Point, delta: Point) -> None:
        av = self.ctx.arrange_view
        quantizer = av.quantizer.get()
        end = av.transform.get().get_arrange_point_fractional(pos)
        track_count = self.ctx.song.track_count
        max_index = max(0, track_count - 1)
        a = ArrangePoint(quantizer.round(max(0, self._start.tick)), self._start.track_index)
        b = ArrangePoint(quantizer.round(max(0, end.tick)), end.track_index)
        selection = ArrangeSelection.from_points(a.clamped(max_index), b.clamped(max_index))
        av.selection.set(selection.clamped(track_count))

    def on_up(self, pos: Point) -> None:
        av = self.ctx.arrange_view
        av.selected_event_ids.set(select_events_in_arrange_selection(self.ctx.song, av.selection.get()))


class ArrangeMoveSelectionGesture(DragGesture):
    """Drag an arrange selection (and its events) to another time and rows.

    History is pushed on the first actual move, so a click on the
    selection does not create an undo step.
    """

    def __init__(self, ctx: EditorContext, selection_origin: Point) -> None:
        super().__init__(ctx)
        self.selection_origin = selection_origin
        self._moved = False

    def on_down(self, pos: Point) -> None:
        if self.ctx.arrange_view.selection.get() is None:
            self.finish()

    def on_move(self, pos: Point, delta: Point) -> None:
        av = self.ctx.arrange_view
        selection = av.selection.get()
        if selection is None:
            return
        if (delta.x != 0 or delta.y != 0) and not self._moved:
            self._moved = True
            self.ctx.history.push_history()

        point = av.transform.get().get_arrange_point_fractional(self.selection_origin + delta)
        point = ArrangePoint(av.quantizer.get().round(max(0, point.tick)), round(point.track_index))
        point = point.clamped(self.ctx.song.track_count - selection.track_count)

        move = point - selection.start
        if move.tick == 0 and move.track_index == 0:
            return
        av.selected_event_ids.set(
            move_events_between_tracks(self.ctx.song, av.selected_event_ids.get(), move),
        )
        av.selection.set(selection.moved(move))


