"""Piano roll widget — paints the selected track's notes and feeds mouse drags to gestures."""

from __future__ import annotations

import logging

from PyQt6.QtCore import QLineF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QPainter, QPen
from PyQt6.QtWidgets import QWidget

from ...core.clipboard_actions import (
    copy_selection,
    cut_selection,
    delete_selection,
    duplicate_selection,
    paste_selection,
)
from ...core.constants import KEY_HEIGHT, MAX_NOTE_NUMBER, NOTE_EVENTS
from ...core.editing import quantize_events, transpose_notes
from ...core.editor_state import EditorContext
from ...core.events import NoteEvent
from ...core.gesture import (
    CreateNoteGesture,
    DragGesture,
    InputSource,
    MoveNotesGesture,
    NoteSelectionGesture,
)
from ...core.observable import Subscription
from ...core.transform import Point, Rect
from ..theme import (
    BG_INK,
    BG_SCROLL,
    DIVIDER,
    GRID_BAR,
    GRID_BEAT,
    NOTE_FILL,
    NOTE_SELECTED,
    PLAYHEAD,
    SELECTION_BORDER,
)

log = logging.getLogger(__name__)

_BLACK_KEYS = frozenset({1, 3, 6, 8, 10})
_MIN_GRID_SPACING = 4.0  # px; finer grids are not drawn
_ZOOM_STEP = 1.15
_MIN_SCALE_X = 0.1
_MAX_SCALE_X = 20.0


def _to_qrect(r: Rect) -> QRectF:
    return QRectF(r.x, r.y, r.width, r.height)


class PianoRollWidget(QWidget):
    """Note editor for the context's selected track.

    Mouse drags start a gesture from :mod:`tickroll.core.gesture`; moves
    and releases go through this widget's :class:`InputSource`.  Hiding or
    closing the widget cancels any drag still in progress.
    """

    selection_changed = pyqtSignal()
    notes_changed = pyqtSignal()

    def __init__(self, ctx: EditorContext, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._ctx = ctx
        self._input = InputSource()
        self._gesture: DragGesture | None = None
        self._scroll_y: float = 0.0
        self._pencil_mode: bool = False

        pr = ctx.piano_roll
        self._subscriptions: list[Subscription] = [
            pr.windowed_events.subscribe(self.update),
            pr.selection.subscribe(self.update),
            pr.selected_note_ids.subscribe(self._on_selection_changed),
            pr.track.subscribe(self.notes_changed.emit),
            ctx.player.position_value.subscribe(self.update),
        ]

        self.setMinimumHeight(120)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

    # ── Properties ──────────────────────────────────────────

    @property
    def input_source(self) -> InputSource:
        return self._input

    @property
    def active_gesture(self) -> DragGesture | None:
        return self._gesture

    def set_pencil_mode(self, enabled: bool) -> None:
        self._pencil_mode = enabled
        self.setCursor(Qt.CursorShape.CrossCursor if enabled else Qt.CursorShape.ArrowCursor)

    @property
    def pencil_mode(self) -> bool:
        return self._pencil_mode

    # ── Coordinate helpers ──────────────────────────────────

    def _content_pos(self, x: float, y: float) -> Point:
        """Widget pixel → canvas pixel (what the transforms expect)."""
        return Point(x + self._ctx.scroll.scroll_left.get(), y + self._scroll_y)

    def _note_at(self, p: Point) -> NoteEvent | None:
        transform = self._ctx.piano_roll.transform.get()
        # Topmost (last painted) note wins
        for e in reversed(self._ctx.piano_roll.windowed_events.get()):
            if isinstance(e, NoteEvent) and transform.get_rect(e).contains(p):
                return e
        return None

    def _on_selection_changed(self) -> None:
        self.selection_changed.emit()
        self.update()

    # ── Mouse events ────────────────────────────────────────

    def mousePressEvent(self, event) -> None:  # noqa: N802
        if event.button() != Qt.MouseButton.LeftButton:
            return
        if self._ctx.piano_roll.selected_track is None:
            return
        # A press while a drag is still registered (release lost outside the window)
        self._input.cancel_all()

        pos = event.position()
        p = self._content_pos(pos.x(), pos.y())
        hit = self._note_at(p)
        if self._pencil_mode and hit is None:
            gesture: DragGesture = CreateNoteGesture(self._ctx)
        elif hit is not None:
            gesture = MoveNotesGesture(self._ctx, hit.id)
        else:
            gesture = NoteSelectionGesture(self._ctx)
        self._gesture = gesture
        log.debug("Starting %s", type(gesture).__name__)
        gesture.begin(self._input, p)
        self.update()

    def mouseMoveEvent(self, event) -> None:  # noqa: N802
        if self._input.active_count == 0:
            return
        pos = event.position()
        self._input.pointer_move(self._content_pos(pos.x(), pos.y()))
        self.update()

    def mouseReleaseEvent(self, event) -> None:  # noqa: N802
        if event.button() != Qt.MouseButton.LeftButton:
            return
        pos = event.position()
        self._input.pointer_up(self._content_pos(pos.x(), pos.y()))
        self._gesture = None
        self.update()

    def wheelEvent(self, event) -> None:  # noqa: N802
        delta = event.angleDelta().y()
        ctrl = bool(event.modifiers() & Qt.KeyboardModifier.ControlModifier)
        shift = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
        pr = self._ctx.piano_roll
        scroll = self._ctx.scroll

        if ctrl:
            # Horizontal zoom around the mouse position
            t = pr.transform.get()
            mouse_x = event.position().x()
            mouse_tick = t.get_tick(mouse_x + scroll.scroll_left.get())
            factor = _ZOOM_STEP if delta > 0 else 1 / _ZOOM_STEP
            scale_x = max(_MIN_SCALE_X, min(_MAX_SCALE_X, t.scale_x * factor))
            pr.set_zoom(scale_x, t.pixels_per_key / KEY_HEIGHT)
            scroll.scroll_left.set(max(0.0, pr.transform.get().get_x(mouse_tick) - mouse_x))
        elif shift:
            scroll.scroll_left.set(max(0.0, scroll.scroll_left.get() - delta * 0.5))
        else:
            self._set_scroll_y(self._scroll_y - delta * 0.5)
        self.update()

    def _set_scroll_y(self, value: float) -> None:
        max_y = self._ctx.piano_roll.transform.get().get_max_y()
        self._scroll_y = max(0.0, min(max(0.0, max_y - self.height()), value))

    # ── Keyboard ────────────────────────────────────────────

    def keyPressEvent(self, event) -> None:  # noqa: N802
        ctx = self._ctx
        pr = ctx.piano_roll
        track = pr.selected_track
        ids = pr.selected_note_ids.get()
        ctrl = bool(event.modifiers() & Qt.KeyboardModifier.ControlModifier)
        shift = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
        key = event.key()

        if ctrl:
            if key == Qt.Key.Key_C:
                copy_selection(track, ids, ctx.clipboard, NOTE_EVENTS)
                return
            if key == Qt.Key.Key_X:
                cut_selection(track, ctx.history, ids, ctx.clipboard, NOTE_EVENTS)
                pr.reset_selection()
                return
            if key == Qt.Key.Key_V:
                new_ids = paste_selection(
                    track, ctx.history, ctx.clipboard, NOTE_EVENTS, ctx.player.position,
                )
                if new_ids:
                    pr.selected_note_ids.set(tuple(new_ids))
                return
            if key == Qt.Key.Key_D:
                new_ids = duplicate_selection(track, ctx.history, ids)
                if new_ids:
                    pr.selected_note_ids.set(tuple(new_ids))
                return
            if key == Qt.Key.Key_Z:
                if shift:
                    ctx.history.redo()
                else:
                    ctx.history.undo()
                return
            if key == Qt.Key.Key_Y:
                ctx.history.redo()
                return

        if key in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
            delete_selection(track, ctx.history, ids)
            pr.reset_selection()
            return
        if key in (Qt.Key.Key_Up, Qt.Key.Key_Down):
            step = 12 if shift else 1
            transpose_notes(track, ctx.history, ids, step if key == Qt.Key.Key_Up else -step)
            return
        if key == Qt.Key.Key_Q:
            quantize_events(track, pr.quantizer.get(), ctx.history, ids)
            return
        if key == Qt.Key.Key_Escape:
            pr.reset_selection()
            return

        super().keyPressEvent(event)

    # ── Lifecycle ───────────────────────────────────────────

    def resizeEvent(self, event) -> None:  # noqa: N802
        super().resizeEvent(event)
        self._ctx.scroll.canvas_width.set(float(self.width()))
        self._set_scroll_y(self._scroll_y)

    def hideEvent(self, event) -> None:  # noqa: N802
        self._input.cancel_all()
        self._gesture = None
        super().hideEvent(event)

    def closeEvent(self, event) -> None:  # noqa: N802
        self._input.cancel_all()
        self._gesture = None
        for sub in self._subscriptions:
            sub.dispose()
        self._subscriptions.clear()
        super().closeEvent(event)

    # ── Painting ────────────────────────────────────────────

    def paintEvent(self, event) -> None:  # noqa: N802
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        w, h = self.width(), self.height()
        painter.fillRect(0, 0, w, h, QColor(BG_INK))

        pr = self._ctx.piano_roll
        transform = pr.transform.get()
        scroll_left = self._ctx.scroll.scroll_left.get()
        painter.translate(-scroll_left, -self._scroll_y)

        # Key rows
        key_h = transform.pixels_per_key
        for note_number in range(MAX_NOTE_NUMBER + 1):
            y = transform.get_y(note_number)
            if y + key_h < self._scroll_y or y > self._scroll_y + h:
                continue
            if note_number % 12 in _BLACK_KEYS:
                painter.fillRect(QRectF(scroll_left, y, w, key_h), QColor(BG_SCROLL))
            elif note_number % 12 in (0, 5):
                painter.setPen(QPen(QColor(DIVIDER), 0.5))
                painter.drawLine(QLineF(scroll_left, y + key_h, scroll_left + w, y + key_h))

        # Grid
        quantizer = pr.quantizer.get()
        start_tick, end_tick = transform.tick_range(scroll_left, w)
        beat = self._ctx.song.timebase
        top, bottom = self._scroll_y, self._scroll_y + h
        if transform.get_x(quantizer.unit) >= _MIN_GRID_SPACING:
            for tick in quantizer.grid_ticks(quantizer.floor(max(0, start_tick)), quantizer.ceil(end_tick)):
                x = transform.get_x(tick)
                color = GRID_BAR if tick % (beat * 4) == 0 else GRID_BEAT if tick % beat == 0 else DIVIDER
                painter.setPen(QPen(QColor(color), 1.0 if tick % beat == 0 else 0.5))
                painter.drawLine(int(x), int(top), int(x), int(bottom))

        # Notes
        selected = set(pr.selected_note_ids.get())
        track = pr.selected_track
        drum = track is not None and track.is_rhythm_track
        painter.setPen(QPen(QColor(BG_INK), 1.0))
        for e in pr.windowed_events.get():
            if not isinstance(e, NoteEvent):
                continue
            rect = transform.get_drum_rect(e) if drum else transform.get_rect(e)
            color = QColor(NOTE_SELECTED if e.id in selected else NOTE_FILL)
            color.setAlphaF(0.4 + 0.6 * e.velocity / 127)
            painter.setBrush(color)
            if drum:
                painter.drawEllipse(_to_qrect(rect))
            else:
                painter.drawRoundedRect(_to_qrect(rect), 2, 2)

        # Rubber band
        selection = pr.selection.get()
        if selection is not None:
            x0, x1 = transform.get_x(selection.from_tick), transform.get_x(selection.to_tick)
            y0, y1 = transform.get_y(selection.to_note_number), transform.get_y(selection.from_note_number)
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.setPen(QPen(QColor(SELECTION_BORDER), 1.0, Qt.PenStyle.DashLine))
            painter.drawRect(QRectF(x0, y0, x1 - x0, y1 - y0))

        # Playhead
        x = transform.get_x(self._ctx.player.position)
        painter.setPen(QPen(QColor(PLAYHEAD), 1.5))
        painter.drawLine(int(x), int(top), int(x), int(bottom))

        painter.end()
