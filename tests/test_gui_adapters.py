"""Tests for the Qt clipboard adapter and the theme."""

from __future__ import annotations

import pytest

from tickroll.core.clipboard_actions import copy_selection, paste_selection
from tickroll.core.constants import NOTE_EVENTS
from tickroll.core.events import NoteEvent
from tickroll.gui.clipboard import QtClipboard
from tickroll.gui.theme import BG_INK, apply_theme, get_stylesheet


class TestQtClipboard:
    @pytest.fixture(autouse=True)
    def _setup_app(self, qapp):
        """Ensure QApplication exists."""

    def test_text_round_trip(self):
        clipboard = QtClipboard()
        clipboard.write_text("hello")
        assert clipboard.read_text() == "hello"

    def test_copy_paste_through_system_clipboard(self, track, history):
        a = track.add_event(NoteEvent(100, 60))
        clipboard = QtClipboard()
        assert copy_selection(track, [a.id], clipboard, NOTE_EVENTS)
        paste_selection(track, history, clipboard, NOTE_EVENTS, 960)
        assert [e.tick for e in track.events] == [100, 960]


class TestTheme:
    def test_stylesheet_uses_palette(self):
        assert BG_INK in get_stylesheet()

    def test_apply(self, qapp):
        apply_theme(qapp)
        assert qapp.styleSheet() == get_stylesheet()
