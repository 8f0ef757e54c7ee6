"""Tests for gesture — drag registration and the editing gestures.

Default transforms: piano roll ``x = tick * 0.1``, ``y = (127 - note) * 16``;
arrange rows are 64 px high; the control pane maps 0..127 onto 120 px with a
1 px border; the tempo graph maps 0..500 BPM onto 240 px.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tickroll.core.editing import TrackNotSelectedError
from tickroll.core.events import ControllerEvent, NoteEvent, TempoEvent, ValueEventType
from tickroll.core.gesture import (
    ArrangeMoveSelectionGesture,
    ArrangeSelectionGesture,
    ControlPencilGesture,
    ControlSelectionGesture,
    CreateNoteGesture,
    DragGesture,
    GestureState,
    InputSource,
    MoveNotesGesture,
    NoteSelectionGesture,
    TempoDragSelectionGesture,
    TempoPencilGesture,
    TempoSelectionGesture,
)
from tickroll.core.selection import ArrangeSelection
from tickroll.core.transform import Point


def note_y(note_number: float) -> float:
    """Vertical middle of a piano roll row."""
    return (127 - note_number) * 16 + 8


def drag(gesture: DragGesture, source: InputSource, start: Point, *moves: Point) -> None:
    gesture.begin(source, start)
    for p in moves:
        source.pointer_move(p)
    source.pointer_up(moves[-1] if moves else start)


@pytest.fixture
def source():
    return InputSource()


# ── Input source ────────────────────────────────────────────


class TestInputSource:
    def test_move_and_up_reach_handle(self, source):
        moves, ups = [], []
        handle = source.observe_drag(moves.append, ups.append)
        source.pointer_move(Point(1, 2))
        source.pointer_up(Point(3, 4))
        assert moves == [Point(1, 2)]
        assert ups == [Point(3, 4)]
        assert not handle.active
        assert source.active_count == 0

    def test_up_detaches_even_if_callback_raises(self, source):
        def boom(pos):
            raise RuntimeError("boom")

        source.observe_drag(lambda p: None, boom)
        with pytest.raises(RuntimeError):
            source.pointer_up(Point(0, 0))
        assert source.active_count == 0

    def test_cancel_all_skips_up(self, source):
        on_up, on_cancel = MagicMock(), MagicMock()
        source.observe_drag(lambda p: None, on_up, on_cancel)
        source.cancel_all()
        on_up.assert_not_called()
        on_cancel.assert_called_once()
        assert source.active_count == 0

    def test_detach(self, source):
        handle = source.observe_drag(lambda p: None)
        handle.detach()
        handle.detach()
        assert source.active_count == 0


class TestDragGesture:
    def test_lifecycle(self, ctx, source):
        gesture = NoteSelectionGesture(ctx)
        assert gesture.state is GestureState.IDLE
        gesture.begin(source, Point(0, 0))
        assert gesture.state is GestureState.DRAGGING
        assert source.active_count == 1
        source.pointer_up(Point(0, 0))
        assert gesture.state is GestureState.SETTLED
        assert source.active_count == 0

    def test_cannot_begin_twice(self, ctx, source):
        gesture = NoteSelectionGesture(ctx)
        gesture.begin(source, Point(0, 0))
        with pytest.raises(RuntimeError):
            gesture.begin(source, Point(0, 0))

    def test_cancel_settles(self, ctx, source):
        gesture = NoteSelectionGesture(ctx)
        gesture.begin(source, Point(0, 0))
        source.cancel_all()
        assert gesture.state is GestureState.SETTLED

    def test_failing_down_does_not_leak(self, ctx, source):
        ctx.piano_roll.track.set(None)
        with pytest.raises(TrackNotSelectedError):
            CreateNoteGesture(ctx).begin(source, Point(0, note_y(60)))
        assert source.active_count == 0
        # Outside any gesture every push is its own step again
        ctx.history.push_history()
        ctx.history.push_history()
        assert ctx.history.undo_depth == 2


# ── Piano roll ──────────────────────────────────────────────


class TestNoteSelection:
    def test_rubber_band(self, ctx, source):
        track = ctx.selected_track
        a = track.add_event(NoteEvent(120, 60))
        b = track.add_event(NoteEvent(240, 62))
        track.add_event(NoteEvent(600, 60))

        drag(NoteSelectionGesture(ctx), source, Point(0, (127 - 64) * 16), Point(48, (127 - 58) * 16))

        assert set(ctx.piano_roll.selected_note_ids.get()) == {a.id, b.id}
        assert ctx.player.position == 0

    def test_click_clears_selection(self, ctx, source):
        ctx.piano_roll.selected_note_ids.set((5,))
        drag(NoteSelectionGesture(ctx), source, Point(30, note_y(60)))
        assert ctx.piano_roll.selected_note_ids.get() == ()
        assert ctx.piano_roll.selection.get() is None

    def test_clears_control_selection(self, ctx, source):
        ctx.control_pane.selected_event_ids.set((1,))
        NoteSelectionGesture(ctx).begin(source, Point(0, 0))
        assert ctx.control_pane.selected_event_ids.get() == ()

    def test_does_not_touch_history(self, ctx, source):
        drag(NoteSelectionGesture(ctx), source, Point(0, 0), Point(50, 50))
        assert not ctx.history.can_undo


class TestMoveNotes:
    def test_snaps_and_transposes(self, ctx, source):
        track = ctx.selected_track
        a = track.add_event(NoteEvent(120, 60))
        start = Point(13, 1080)
        drag(MoveNotesGesture(ctx, a.id), source, start, Point(37, 1048))
        moved = track.get_event_by_id(a.id)
        assert (moved.tick, moved.note_number) == (360, 62)
        assert ctx.piano_roll.selected_note_ids.get() == (a.id,)

    def test_selected_notes_move_together(self, ctx, source):
        track = ctx.selected_track
        a = track.add_event(NoteEvent(120, 60))
        b = track.add_event(NoteEvent(240, 64))
        ctx.piano_roll.selected_note_ids.set((a.id, b.id))
        drag(MoveNotesGesture(ctx, a.id), source, Point(13, 1080), Point(25, 1080))
        assert track.get_event_by_id(a.id).tick == 240
        assert track.get_event_by_id(b.id).tick == 360

    def test_one_undo_step(self, ctx, source):
        track = ctx.selected_track
        a = track.add_event(NoteEvent(120, 60))
        drag(MoveNotesGesture(ctx, a.id), source, Point(13, 1080),
             Point(25, 1080), Point(37, 1080), Point(49, 1080))
        assert ctx.history.undo_depth == 1
        ctx.history.undo()
        assert track.get_event_by_id(a.id).tick == 120

    def test_missing_note_finishes_immediately(self, ctx, source):
        gesture = MoveNotesGesture(ctx, 999)
        gesture.begin(source, Point(0, 0))
        assert gesture.state is GestureState.SETTLED
        assert source.active_count == 0
        assert not ctx.history.can_undo


class TestCreateNote:
    def test_click_creates_grid_note(self, ctx, source):
        drag(CreateNoteGesture(ctx), source, Point(13, 1080))
        [note] = ctx.selected_track.events
        assert (note.tick, note.note_number, note.duration) == (120, 60, 120)
        assert note.velocity == ctx.piano_roll.new_note_velocity
        assert ctx.piano_roll.selected_note_ids.get() == (note.id,)

    def test_drag_stretches(self, ctx, source):
        drag(CreateNoteGesture(ctx), source, Point(13, 1080), Point(48, 1080))
        [note] = ctx.selected_track.events
        assert note.duration == 360

    def test_duration_never_below_unit(self, ctx, source):
        drag(CreateNoteGesture(ctx), source, Point(13, 1080), Point(0, 1080))
        assert ctx.selected_track.events[0].duration == 120

    def test_undo_removes_note(self, ctx, source):
        drag(CreateNoteGesture(ctx), source, Point(13, 1080), Point(48, 1080))
        assert ctx.history.undo_depth == 1
        ctx.history.undo()
        assert ctx.selected_track.event_count == 0

    def test_feedback_note_released(self, ctx, source):
        output = MagicMock()
        output.closed = False
        ctx.player._output = output
        drag(CreateNoteGesture(ctx), source, Point(13, 1080))
        types = [c.args[0].type for c in output.send.call_args_list]
        assert types == ["note_on", "note_off"]


# ── Control pane ────────────────────────────────────────────


class TestControlSelection:
    def test_selects_lane_events_in_range(self, ctx, source):
        track = ctx.selected_track
        a = track.add_event(ControllerEvent(120, 7, 1))
        b = track.add_event(ControllerEvent(360, 7, 1))
        track.add_event(ControllerEvent(600, 7, 1))
        track.add_event(ControllerEvent(240, 1, 1))
        ctx.control_pane.mode.set(ValueEventType.controller(7))

        drag(ControlSelectionGesture(ctx), source, Point(0, 10), Point(48, 10))

        assert ctx.control_pane.selected_event_ids.get() == (a.id, b.id)
        assert ctx.control_pane.selection.get() is None

    def test_resets_note_selection(self, ctx, source):
        ctx.piano_roll.selected_note_ids.set((1,))
        ControlSelectionGesture(ctx).begin(source, Point(0, 0))
        assert ctx.piano_roll.selected_note_ids.get() == ()


class TestControlPencil:
    def test_draws_controller_ramp(self, ctx, source):
        ctx.control_pane.mode.set(ValueEventType.controller(7))
        # y=1 → 127, y=119 → 0
        drag(ControlPencilGesture(ctx), source, Point(12, 1), Point(48, 119))

        events = ctx.selected_track.events
        assert all(isinstance(e, ControllerEvent) and e.controller_type == 7 for e in events)
        assert [(e.tick, e.value) for e in events if e.tick > 120] == [(240, 84), (360, 42), (480, 0)]
        assert any(e.tick == 120 and e.value == 127 for e in events)
        assert ctx.history.undo_depth == 1

    def test_velocity_mode_edits_notes(self, ctx, source):
        track = ctx.selected_track
        a = track.add_event(NoteEvent(0, 60))
        b = track.add_event(NoteEvent(240, 60))
        drag(ControlPencilGesture(ctx), source, Point(0, 1), Point(30, 1))
        assert track.get_event_by_id(a.id).velocity == 127
        assert track.get_event_by_id(b.id).velocity == 127
        assert track.event_count == 2

        ctx.history.undo()
        assert track.get_event_by_id(b.id).velocity == 100


# ── Tempo graph ─────────────────────────────────────────────


class TestTempoGestures:
    def test_pencil_creates_tempo(self, ctx, source):
        # y=120 is half of 500 BPM
        drag(TempoPencilGesture(ctx), source, Point(24, 120))
        tempos = [e for e in ctx.song.conductor_track.events if isinstance(e, TempoEvent)]
        assert (tempos[-1].tick, tempos[-1].microseconds_per_beat) == (240, 240_000)

    def test_selection(self, ctx, source):
        conductor = ctx.song.conductor_track
        first = next(e for e in conductor.events if isinstance(e, TempoEvent))
        conductor.add_event(TempoEvent(960, 400_000))
        drag(TempoSelectionGesture(ctx), source, Point(0, 0), Point(48, 0))
        assert ctx.tempo_editor.selected_event_ids.get() == (first.id,)

    def test_drag_moves_tick_and_bpm(self, ctx, source):
        conductor = ctx.song.conductor_track
        tempo = next(e for e in conductor.events if isinstance(e, TempoEvent))
        # 120 BPM sits at y=182.4, 150 BPM at y=168
        drag(TempoDragSelectionGesture(ctx, tempo.id), source, Point(0, 182.4), Point(24, 168))
        moved = conductor.get_event_by_id(tempo.id)
        assert moved.tick == 240
        assert moved.microseconds_per_beat == pytest.approx(400_000, abs=2)
        assert ctx.history.undo_depth == 1


# ── Arrange view ────────────────────────────────────────────


class TestArrangeGestures:
    def test_selection_over_rows(self, ctx, source):
        a = ctx.song.get_track(1).add_event(NoteEvent(100, 60))
        b = ctx.song.get_track(2).add_event(NoteEvent(200, 60))
        drag(ArrangeSelectionGesture(ctx), source, Point(0, 74), Point(48, 138))

        av = ctx.arrange_view
        assert av.selection.get() == ArrangeSelection(0, 1, 480, 3)
        assert av.selected_event_ids.get() == {1: (a.id,), 2: (b.id,)}
        assert av.selected_track_index.get() == 1

    def test_move_in_time(self, ctx, source):
        t1, t2 = ctx.song.get_track(1), ctx.song.get_track(2)
        a = t1.add_event(NoteEvent(100, 60))
        b = t2.add_event(NoteEvent(200, 60))
        av = ctx.arrange_view
        av.selection.set(ArrangeSelection(0, 1, 480, 3))
        av.selected_event_ids.set({1: (a.id,), 2: (b.id,)})

        drag(ArrangeMoveSelectionGesture(ctx, Point(0, 64)), source, Point(100, 100), Point(124, 100))

        assert t1.get_event_by_id(a.id).tick == 340
        assert t2.get_event_by_id(b.id).tick == 440
        assert av.selection.get() == ArrangeSelection(240, 1, 720, 3)
        assert ctx.history.undo_depth == 1

    def test_move_down_a_row(self, ctx, source):
        t1, t2 = ctx.song.get_track(1), ctx.song.get_track(2)
        a = t1.add_event(NoteEvent(100, 60))
        av = ctx.arrange_view
        av.selection.set(ArrangeSelection(0, 1, 480, 2))
        av.selected_event_ids.set({1: (a.id,)})

        drag(ArrangeMoveSelectionGesture(ctx, Point(0, 64)), source, Point(10, 80), Point(10, 144))

        assert t1.event_count == 0
        [moved] = t2.events
        assert av.selected_event_ids.get() == {2: (moved.id,)}
        assert av.selection.get().from_track_index == 2

    def test_click_without_move_is_not_an_undo_step(self, ctx, source):
        av = ctx.arrange_view
        av.selection.set(ArrangeSelection(0, 1, 480, 2))
        drag(ArrangeMoveSelectionGesture(ctx, Point(0, 64)), source, Point(10, 80))
        assert not ctx.history.can_undo

    def test_no_selection_finishes(self, ctx, source):
        gesture = ArrangeMoveSelectionGesture(ctx, Point(0, 0))
        gesture.begin(source, Point(0, 0))
        assert gesture.state is GestureState.SETTLED
