"""Undo/redo snapshots of a song.

Actions call :meth:`HistoryStore.push_history` once before their first
mutation.  A gesture (mouse down → up) may run several actions; between
:meth:`begin_gesture` and :meth:`end_gesture` only the first push takes a
snapshot, so the whole gesture undoes as one step.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from .constants import MAX_HISTORY
from .observable import Publisher
from .track import Song, SongState

log = logging.getLogger(__name__)


class HistoryStore:
    """Bounded undo/redo stacks of :class:`SongState` snapshots."""

    def __init__(self, song: Song, max_depth: int = MAX_HISTORY) -> None:
        self._song = song
        self._max_depth = max_depth
        self._undo_stack: list[SongState] = []
        self._redo_stack: list[SongState] = []
        self._gesture_depth = 0
        self._gesture_pushed = False
        self.changed = Publisher()

    @property
    def can_undo(self) -> bool:
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._redo_stack) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    def push_history(self) -> None:
        """Snapshot the song unless this gesture already did."""
        if self._gesture_depth > 0:
            if self._gesture_pushed:
                return
            self._gesture_pushed = True
        self._undo_stack.append(self._song.save_state())
        if len(self._undo_stack) > self._max_depth:
            self._undo_stack.pop(0)
        self._redo_stack.clear()
        self.changed.publish()

    def undo(self) -> None:
        if not self._undo_stack:
            return
        self._redo_stack.append(self._song.save_state())
        self._song.restore_state(self._undo_stack.pop())
        self.changed.publish()

    def redo(self) -> None:
        if not self._redo_stack:
            return
        self._undo_stack.append(self._song.save_state())
        self._song.restore_state(self._redo_stack.pop())
        self.changed.publish()

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()
        self.changed.publish()

    # ── Gestures ────────────────────────────────────────────

    def begin_gesture(self) -> None:
        if self._gesture_depth == 0:
            self._gesture_pushed = False
        self._gesture_depth += 1

    def end_gesture(self) -> None:
        if self._gesture_depth == 0:
            log.debug("end_gesture() without begin_gesture()")
            return
        self._gesture_depth -= 1
        if self._gesture_depth == 0:
            self._gesture_pushed = False

    @contextmanager
    def gesture(self) -> Iterator[None]:
        self.begin_gesture()
        try:
            yield
        finally:
            self.end_gesture()
