"""Tests for editor_state — bound tracks, derived windows and the context."""

from __future__ import annotations

import pytest

from tickroll.core.config import ConfigManager
from tickroll.core.editor_state import BoundTrack, EditorContext
from tickroll.core.events import ControllerEvent, NoteEvent, ValueEventType
from tickroll.core.quantizer import Quantizer, effective_denominator
from tickroll.core.track import Song, Track


class TestBoundTrack:
    def test_republishes_track_changes(self):
        track = Track()
        bound = BoundTrack(track)
        calls = []
        bound.subscribe(lambda: calls.append(1))
        track.add_event(NoteEvent(0, 60))
        assert calls == [1]

    def test_rebinding_drops_old_track(self):
        old, new = Track(), Track()
        bound = BoundTrack(old)
        calls = []
        bound.subscribe(lambda: calls.append(1))
        bound.set(new)
        assert len(calls) == 1
        old.add_event(NoteEvent(0, 60))
        assert len(calls) == 1
        new.add_event(NoteEvent(0, 60))
        assert len(calls) == 2

    def test_unbound_has_no_events(self):
        assert BoundTrack().events() == []


class TestWindowedEvents:
    def test_only_visible_events(self, ctx):
        track = ctx.selected_track
        visible = track.add_event(NoteEvent(100, 60))
        track.add_event(NoteEvent(9000, 60))
        # 800 px at 0.1 px/tick → ticks [0, 8000)
        assert [e.id for e in ctx.piano_roll.windowed_events.get()] == [visible.id]

    def test_recomputed_on_scroll(self, ctx):
        track = ctx.selected_track
        track.add_event(NoteEvent(100, 60))
        far = track.add_event(NoteEvent(9000, 60))
        ctx.piano_roll.windowed_events.get()
        ctx.scroll.scroll_left.set(900.0)
        assert [e.id for e in ctx.piano_roll.windowed_events.get()] == [far.id]

    def test_notifies_on_track_edit(self, ctx):
        calls = []
        ctx.piano_roll.windowed_events.subscribe(lambda: calls.append(1))
        ctx.selected_track.add_event(NoteEvent(0, 60))
        assert calls


class TestControlPane:
    def test_mode_change_rescales_and_clears(self, ctx):
        cp = ctx.control_pane
        cp.selected_event_ids.set((1, 2))
        cp.mode.set(ValueEventType.pitch_bend())
        assert cp.transform.get().max_value == 16383
        assert cp.selected_event_ids.get() == ()

    def test_lane_events(self, ctx):
        track = ctx.selected_track
        cc7 = track.add_event(ControllerEvent(0, 7, 1))
        track.add_event(ControllerEvent(0, 1, 1))
        track.add_event(NoteEvent(0, 60))
        ctx.control_pane.mode.set(ValueEventType.controller(7))
        assert [e.id for e in ctx.control_pane.lane_events()] == [cc7.id]


class TestEditorContext:
    def test_binds_first_instrument_track(self, song):
        ctx = EditorContext(song)
        assert ctx.selected_track is song.get_track(1)

    def test_conductor_only_song_has_no_track(self):
        song = Song()
        song.add_track(Track(is_conductor_track=True))
        assert EditorContext(song).selected_track is None

    def test_select_track_resets_selection(self, ctx):
        ctx.piano_roll.selected_note_ids.set((3,))
        ctx.select_track(2)
        assert ctx.selected_track is ctx.song.get_track(2)
        assert ctx.piano_roll.selected_note_ids.get() == ()
        assert ctx.arrange_view.selected_track_index.get() == 2

    def test_select_missing_track_ignored(self, ctx):
        before = ctx.selected_track
        ctx.select_track(99)
        assert ctx.selected_track is before

    def test_from_config(self, tmp_path):
        config = ConfigManager(config_dir=tmp_path)
        config.set("editor.quantize_denominator", 4)
        config.set("editor.new_note_velocity", 80)
        config.set("tempo.max_bpm", 300)

        ctx = EditorContext.from_config(config)

        assert ctx.song.timebase == 480
        assert ctx.piano_roll.quantizer.get().unit == 120
        assert ctx.piano_roll.new_note_velocity == 80
        assert ctx.tempo_editor.transform.get().max_bpm == 300

    def test_save_to_config_round_trip(self, tmp_path):
        ctx = EditorContext(Song.create_default(timebase=480))
        ctx.piano_roll.quantizer.set(Quantizer(480, effective_denominator(8, dotted=True)))
        ctx.piano_roll.set_zoom(2.0, 1.5)
        ctx.piano_roll.new_note_velocity = 90
        ctx.save_to_config(ConfigManager(config_dir=tmp_path))

        restored = EditorContext.from_config(ConfigManager(config_dir=tmp_path))

        assert restored.piano_roll.quantizer.get().unit == pytest.approx(90)
        transform = restored.piano_roll.transform.get()
        assert (transform.scale_x, transform.pixels_per_key) == (2.0, 24.0)
        assert restored.piano_roll.new_note_velocity == 90

    def test_views_share_scroll(self, ctx):
        ctx.scroll.scroll_left.set(120.0)
        assert ctx.control_pane.scroll.scroll_left.get() == 120.0
        assert ctx.arrange_view.scroll is ctx.piano_roll.scroll
