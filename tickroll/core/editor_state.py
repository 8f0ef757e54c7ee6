"""Per-view editor state, constructed explicitly and passed around.

Pure Python, no Qt dependency.  Each view (piano roll, control pane,
tempo graph, arrange view) keeps its zoom, quantizer, selection and
selected event ids in :class:`~tickroll.core.observable.Observable` cells.
Derived lists such as the windowed events are :class:`Computed` values over
those cells and the bound track, so a widget only repaints when something
it reads changed.

:class:`EditorContext` bundles the song, history, player and clipboard
with the four view states; the application builds one and hands it to
the widgets and gestures that need it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .clipboard import ClipboardPort, MemoryClipboard
from .config import ConfigManager
from .constants import (
    CONTROL_PANE_HEIGHT,
    DEFAULT_MAX_BPM,
    DEFAULT_VELOCITY,
    KEY_HEIGHT,
    TEMPO_GRAPH_HEIGHT,
)
from .events import TrackEvent, ValueEventType
from .history import HistoryStore
from .observable import Computed, Observable, Publisher, Subscription
from .player import Player
from .quantizer import Quantizer
from .selection import ArrangeSelection, ControlSelection, Selection
from .track import Song, Track
from .transform import (
    ArrangeCoordTransform,
    ControlCoordTransform,
    NoteCoordTransform,
    TempoCoordTransform,
    TickTransform,
    windowed_events,
)


class BoundTrack:
    """The track a view edits, re-publishing that track's changes.

    Subscribers hear both "a different track was bound" and "the bound
    track's events changed".
    """

    def __init__(self, track: Track | None = None) -> None:
        self._track: Track | None = None
        self._track_sub: Subscription | None = None
        self.changed = Publisher()
        self.set(track)

    def get(self) -> Track | None:
        return self._track

    def set(self, track: Track | None) -> None:
        if track is self._track and track is not None:
            return
        if self._track_sub is not None:
            self._track_sub.dispose()
            self._track_sub = None
        self._track = track
        if track is not None:
            self._track_sub = track.subscribe(self.changed.publish)
        self.changed.publish()

    def subscribe(self, listener) -> Subscription:
        return self.changed.subscribe(listener)

    def events(self) -> list[TrackEvent]:
        return [] if self._track is None else self._track.events


@dataclass
class ScrollState:
    scroll_left: Observable[float] = field(default_factory=lambda: Observable(0.0))
    canvas_width: Observable[float] = field(default_factory=lambda: Observable(800.0))


def _windowed(
    bound: BoundTrack, transform: Observable, scroll: ScrollState,
) -> Computed[list[TrackEvent]]:
    def compute() -> list[TrackEvent]:
        t: TickTransform = transform.get()
        return windowed_events(
            bound.events(), t, scroll.scroll_left.get(), scroll.canvas_width.get(),
        )

    return Computed(compute, [bound, transform, scroll.scroll_left, scroll.canvas_width])


class PianoRollState:
    def __init__(self, quantizer: Quantizer, scroll: ScrollState, track: Track | None = None) -> None:
        self.track = BoundTrack(track)
        self.quantizer: Observable[Quantizer] = Observable(quantizer)
        self.transform: Observable[NoteCoordTransform] = Observable(NoteCoordTransform.create())
        self.scroll = scroll
        self.selection: Observable[Selection | None] = Observable(None)
        self.selected_note_ids: Observable[tuple[int, ...]] = Observable(())
        self.new_note_velocity = DEFAULT_VELOCITY
        self.windowed_events = _windowed(self.track, self.transform, scroll)

    @property
    def selected_track(self) -> Track | None:
        return self.track.get()

    def set_zoom(self, scale_x: float, scale_y: float) -> None:
        self.transform.set(NoteCoordTransform.create(scale_x, scale_y))

    def reset_selection(self) -> None:
        self.selection.set(None)
        self.selected_note_ids.set(())


class ControlPaneState:
    def __init__(self, quantizer: Observable[Quantizer], scroll: ScrollState, track: BoundTrack) -> None:
        self.track = track
        self.quantizer = quantizer
        self.scroll = scroll
        self.mode: Observable[ValueEventType] = Observable(ValueEventType.velocity())
        self.transform: Observable[ControlCoordTransform] = Observable(
            ControlCoordTransform(max_value=127, height=CONTROL_PANE_HEIGHT),
        )
        self.selection: Observable[ControlSelection | None] = Observable(None)
        self.selected_event_ids: Observable[tuple[int, ...]] = Observable(())
        self.windowed_events = _windowed(track, self.transform, scroll)
        self.mode.subscribe(self._on_mode_changed)

    def _on_mode_changed(self) -> None:
        t = self.transform.get()
        self.transform.set(ControlCoordTransform(
            t.pixels_per_tick, t.scale_x, self.mode.get().max_value, t.height, t.line_width,
        ))
        self.selected_event_ids.set(())

    def lane_events(self) -> list[TrackEvent]:
        """Events of the current mode on the bound track."""
        predicate = self.mode.get().predicate()
        return [e for e in self.track.events() if predicate(e)]


class TempoEditorState:
    def __init__(self, quantizer: Quantizer, scroll: ScrollState, max_bpm: float = DEFAULT_MAX_BPM) -> None:
        self.quantizer: Observable[Quantizer] = Observable(quantizer)
        self.scroll = scroll
        self.transform: Observable[TempoCoordTransform] = Observable(
            TempoCoordTransform(max_bpm=max_bpm, height=TEMPO_GRAPH_HEIGHT),
        )
        self.selection: Observable[ControlSelection | None] = Observable(None)
        self.selected_event_ids: Observable[tuple[int, ...]] = Observable(())


class ArrangeViewState:
    def __init__(self, quantizer: Quantizer, scroll: ScrollState) -> None:
        self.quantizer: Observable[Quantizer] = Observable(quantizer)
        self.scroll = scroll
        self.transform: Observable[ArrangeCoordTransform] = Observable(ArrangeCoordTransform())
        self.selection: Observable[ArrangeSelection | None] = Observable(None)
        # track index → selected event ids on that track
        self.selected_event_ids: Observable[dict[int, tuple[int, ...]]] = Observable({})
        self.selected_track_index: Observable[int] = Observable(0)

    def reset_selection(self) -> None:
        self.selection.set(None)
        self.selected_event_ids.set({})


class EditorContext:
    """Everything an editing gesture or keyboard command may touch."""

    def __init__(
        self,
        song: Song,
        player: Player | None = None,
        clipboard: ClipboardPort | None = None,
        quantizer: Quantizer | None = None,
        max_bpm: float = DEFAULT_MAX_BPM,
    ) -> None:
        self.song = song
        self.history = HistoryStore(song)
        self.player = player if player is not None else Player()
        self.clipboard = clipboard if clipboard is not None else MemoryClipboard()
        if quantizer is None:
            quantizer = Quantizer(timebase=song.timebase)

        self.scroll = ScrollState()
        first_track = next((t for t in song.tracks if not t.is_conductor_track), None)
        self.piano_roll = PianoRollState(quantizer, self.scroll, first_track)
        self.control_pane = ControlPaneState(
            self.piano_roll.quantizer, self.scroll, self.piano_roll.track,
        )
        self.tempo_editor = TempoEditorState(quantizer, self.scroll, max_bpm)
        self.arrange_view = ArrangeViewState(quantizer, self.scroll)

    @classmethod
    def from_config(
        cls,
        config: ConfigManager,
        song: Song | None = None,
        player: Player | None = None,
        clipboard: ClipboardPort | None = None,
    ) -> EditorContext:
        if song is None:
            song = Song.create_default(int(config.get("editor.timebase", 480)))
        ctx = cls(
            song,
            player=player,
            clipboard=clipboard,
            quantizer=Quantizer.from_config(config, song.timebase),
            max_bpm=float(config.get("tempo.max_bpm", DEFAULT_MAX_BPM)),
        )
        ctx.piano_roll.new_note_velocity = int(config.get("editor.new_note_velocity", DEFAULT_VELOCITY))
        ctx.piano_roll.set_zoom(
            float(config.get("editor.scale_x", 1.0)), float(config.get("editor.scale_y", 1.0)),
        )
        return ctx

    def save_to_config(self, config: ConfigManager) -> None:
        """Write the grid, zoom and new-note velocity back as preferences."""
        pr = self.piano_roll
        transform = pr.transform.get()
        pr.quantizer.get().save_to_config(config)
        config.update({
            "editor.new_note_velocity": pr.new_note_velocity,
            "editor.scale_x": transform.scale_x,
            "editor.scale_y": transform.pixels_per_key / KEY_HEIGHT,
        })

    @property
    def selected_track(self) -> Track | None:
        return self.piano_roll.selected_track

    def select_track(self, index: int) -> None:
        track = self.song.get_track(index)
        if track is None or track is self.piano_roll.selected_track:
            return
        self.piano_roll.track.set(track)
        self.piano_roll.reset_selection()
        self.control_pane.selected_event_ids.set(())
        self.arrange_view.selected_track_index.set(index)
