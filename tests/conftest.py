"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest

# Widget tests run headless
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from tickroll.core.clipboard import MemoryClipboard  # noqa: E402
from tickroll.core.editor_state import EditorContext  # noqa: E402
from tickroll.core.history import HistoryStore  # noqa: E402
from tickroll.core.quantizer import Quantizer  # noqa: E402
from tickroll.core.track import Song  # noqa: E402


@pytest.fixture(scope="session")
def qapp():
    """Provide a QApplication instance for the entire test session."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def song():
    """Conductor track + two instrument tracks at 480 ticks per beat."""
    return Song.create_default(timebase=480, num_tracks=2)


@pytest.fixture
def track(song):
    """First instrument track of ``song``."""
    return song.get_track(1)


@pytest.fixture
def history(song):
    return HistoryStore(song)


@pytest.fixture
def quantizer():
    """480 / 4 = 120-tick grid."""
    return Quantizer(timebase=480, denominator=4)


@pytest.fixture
def ctx(song):
    return EditorContext(song, clipboard=MemoryClipboard(), quantizer=Quantizer(480, 4))
