"""Tests for the piano roll widget (offscreen)."""

from __future__ import annotations

import pytest
from PyQt6.QtCore import QPoint, QPointF, Qt
from PyQt6.QtGui import QCloseEvent, QHideEvent, QKeyEvent, QMouseEvent, QWheelEvent

from tickroll.core.events import NoteEvent
from tickroll.gui.widgets.piano_roll import PianoRollWidget


def _mouse(kind, x: float, y: float) -> QMouseEvent:
    released = kind == QMouseEvent.Type.MouseButtonRelease
    buttons = Qt.MouseButton.NoButton if released else Qt.MouseButton.LeftButton
    return QMouseEvent(
        kind,
        QPointF(x, y),
        Qt.MouseButton.LeftButton,
        buttons,
        Qt.KeyboardModifier.NoModifier,
    )


def _key(key, modifiers=Qt.KeyboardModifier.NoModifier) -> QKeyEvent:
    return QKeyEvent(QKeyEvent.Type.KeyPress, key, modifiers)


class TestPianoRollWidget:
    @pytest.fixture(autouse=True)
    def _setup_app(self, qapp):
        """Ensure QApplication exists."""

    @pytest.fixture
    def roll(self, ctx):
        widget = PianoRollWidget(ctx)
        widget.resize(800, 600)
        return widget

    def test_pencil_click_creates_note(self, roll, ctx):
        roll.set_pencil_mode(True)
        assert roll.pencil_mode
        changed = []
        roll.notes_changed.connect(lambda: changed.append(1))

        roll.mousePressEvent(_mouse(QMouseEvent.Type.MouseButtonPress, 13, 1080))
        roll.mouseReleaseEvent(_mouse(QMouseEvent.Type.MouseButtonRelease, 13, 1080))

        [note] = ctx.selected_track.events
        assert (note.tick, note.note_number) == (120, 60)
        assert changed
        assert roll.active_gesture is None

    def test_click_on_note_moves_it(self, roll, ctx):
        a = ctx.selected_track.add_event(NoteEvent(120, 60))
        roll.mousePressEvent(_mouse(QMouseEvent.Type.MouseButtonPress, 13, 1080))
        roll.mouseMoveEvent(_mouse(QMouseEvent.Type.MouseMove, 25, 1080))
        roll.mouseReleaseEvent(_mouse(QMouseEvent.Type.MouseButtonRelease, 25, 1080))
        assert ctx.selected_track.get_event_by_id(a.id).tick == 240

    def test_hide_cancels_drag(self, roll, ctx):
        roll.mousePressEvent(_mouse(QMouseEvent.Type.MouseButtonPress, 0, 0))
        assert roll.input_source.active_count == 1
        roll.hideEvent(QHideEvent())
        assert roll.input_source.active_count == 0
        assert roll.active_gesture is None

    def test_no_track_ignores_press(self, roll, ctx):
        ctx.piano_roll.track.set(None)
        roll.mousePressEvent(_mouse(QMouseEvent.Type.MouseButtonPress, 0, 0))
        assert roll.input_source.active_count == 0

    def test_close_disposes_subscriptions(self, roll, ctx):
        before = ctx.player.position_value.listener_count
        roll.closeEvent(QCloseEvent())
        assert ctx.player.position_value.listener_count == before - 1

    def test_paint(self, roll, ctx):
        track = ctx.selected_track
        a = track.add_event(NoteEvent(0, 60))
        track.add_event(NoteEvent(240, 64))
        ctx.piano_roll.selected_note_ids.set((a.id,))
        assert not roll.grab().isNull()

    def test_ctrl_wheel_zooms(self, roll, ctx):
        event = QWheelEvent(
            QPointF(100, 100),
            QPointF(100, 100),
            QPoint(0, 0),
            QPoint(0, 120),
            Qt.MouseButton.NoButton,
            Qt.KeyboardModifier.ControlModifier,
            Qt.ScrollPhase.NoScrollPhase,
            False,
        )
        roll.wheelEvent(event)
        assert ctx.piano_roll.transform.get().scale_x > 1.0


class TestPianoRollKeys:
    @pytest.fixture(autouse=True)
    def _setup_app(self, qapp):
        """Ensure QApplication exists."""

    @pytest.fixture
    def roll(self, ctx):
        return PianoRollWidget(ctx)

    @pytest.fixture
    def note(self, ctx):
        note = ctx.selected_track.add_event(NoteEvent(0, 60))
        ctx.piano_roll.selected_note_ids.set((note.id,))
        return note

    def test_copy_paste_at_playhead(self, roll, ctx, note):
        ctrl = Qt.KeyboardModifier.ControlModifier
        roll.keyPressEvent(_key(Qt.Key.Key_C, ctrl))
        ctx.player.set_position(480)
        roll.keyPressEvent(_key(Qt.Key.Key_V, ctrl))

        assert [e.tick for e in ctx.selected_track.events] == [0, 480]
        [pasted_id] = ctx.piano_roll.selected_note_ids.get()
        assert ctx.selected_track.get_event_by_id(pasted_id).tick == 480

    def test_delete(self, roll, ctx, note):
        roll.keyPressEvent(_key(Qt.Key.Key_Delete))
        assert ctx.selected_track.event_count == 0
        assert ctx.piano_roll.selected_note_ids.get() == ()

    def test_transpose_and_undo(self, roll, ctx, note):
        roll.keyPressEvent(_key(Qt.Key.Key_Up, Qt.KeyboardModifier.ShiftModifier))
        assert ctx.selected_track.get_event_by_id(note.id).note_number == 72

        roll.keyPressEvent(_key(Qt.Key.Key_Z, Qt.KeyboardModifier.ControlModifier))
        assert ctx.selected_track.get_event_by_id(note.id).note_number == 60

        roll.keyPressEvent(_key(Qt.Key.Key_Y, Qt.KeyboardModifier.ControlModifier))
        assert ctx.selected_track.get_event_by_id(note.id).note_number == 72

    def test_escape_clears_selection(self, roll, ctx, note):
        roll.keyPressEvent(_key(Qt.Key.Key_Escape))
        assert ctx.piano_roll.selected_note_ids.get() == ()
