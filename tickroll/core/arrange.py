"""Arrange view actions: multi-track selections, moves, copy and paste.

Selected events are tracked per track index.  Tempo and time signature
events stay on the conductor track; arrange operations leave them alone.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping, Sequence

from .clipboard import ClipboardPort, make_arrange_payload, parse_arrange_payload
from .editing import move_events
from .events import CONDUCTOR_KINDS, ClipboardFormatError, TrackEvent
from .history import HistoryStore
from .selection import ArrangeSelection, arrange_events_in_selection
from .track import Song
from .transform import ArrangePoint

log = logging.getLogger(__name__)

SelectedIds = dict[int, tuple[int, ...]]


def _movable(e: TrackEvent) -> bool:
    return e.kind not in CONDUCTOR_KINDS


def events_in_arrange_selection(song: Song, selection: ArrangeSelection) -> dict[int, list[TrackEvent]]:
    """Movable events inside *selection*, keyed by track index."""
    found = arrange_events_in_selection([t.events for t in song.tracks], selection)
    result = {}
    for index, events in found.items():
        events = [e for e in events if _movable(e)]
        if events:
            result[index] = events
    return result


def select_events_in_arrange_selection(song: Song, selection: ArrangeSelection | None) -> SelectedIds:
    if selection is None:
        return {}
    return {
        index: tuple(e.id for e in events)
        for index, events in events_in_arrange_selection(song, selection).items()
    }


def move_events_between_tracks(
    song: Song, selected: Mapping[int, Sequence[int]], delta: ArrangePoint,
) -> SelectedIds:
    """Shift the selected events by ``delta.tick`` and ``delta.track_index`` rows.

    Events that change track are removed from the source and re-added to
    the destination under new ids.  Returns the selection after the move.
    """
    delta_tick = int(delta.tick)
    delta_rows = int(delta.track_index)
    if delta_rows == 0:
        for index, ids in selected.items():
            track = song.get_track(index)
            if track is not None and ids:
                move_events(track, ids, delta_tick)
        return {index: tuple(ids) for index, ids in selected.items()}

    result: SelectedIds = {}
    for index, ids in selected.items():
        source = song.get_track(index)
        target = song.get_track(index + delta_rows)
        if source is None or target is None:
            log.debug("Skipping move from track %d by %d rows", index, delta_rows)
            continue
        events = [e for e in (source.get_event_by_id(i) for i in ids) if e is not None and _movable(e)]
        if not events:
            continue
        moved = [dataclasses.replace(e, tick=max(0, e.tick + delta_tick), id=-1) for e in events]
        source.remove_events([e.id for e in events])
        added = target.add_events(moved)
        result[index + delta_rows] = tuple(e.id for e in added)
    return result


def copy_arrange_selection(song: Song, selection: ArrangeSelection | None, clipboard: ClipboardPort) -> bool:
    if selection is None:
        return False
    track_events = events_in_arrange_selection(song, selection)
    if not track_events:
        return False
    clipboard.write_text(make_arrange_payload(
        track_events, int(selection.from_tick), selection.from_track_index,
    ))
    return True


def paste_arrange_selection(
    song: Song,
    history: HistoryStore,
    clipboard: ClipboardPort,
    position: int,
    selected_track_index: int,
) -> SelectedIds:
    """Paste copied rows starting at *selected_track_index*, origin at *position*.

    Rows that would land past the last track, or on the conductor track,
    are dropped.
    """
    try:
        payload = parse_arrange_payload(clipboard.read_text())
    except ClipboardFormatError as e:
        log.debug("Ignoring clipboard contents: %s", e)
        return {}

    targets = []
    for offset, events in sorted(payload.items()):
        track = song.get_track(selected_track_index + offset)
        if track is None or track.is_conductor_track or not events:
            continue
        targets.append((selected_track_index + offset, track, events))
    if not targets:
        return {}

    history.push_history()
    result: SelectedIds = {}
    for index, track, events in targets:
        shifted = [dataclasses.replace(e, tick=e.tick + position, id=-1) for e in events]
        added = track.add_events(shifted)
        result[index] = tuple(e.id for e in added)
    return result


def delete_arrange_selection(
    song: Song, history: HistoryStore, selected: Mapping[int, Sequence[int]],
) -> None:
    if not any(selected.values()):
        return
    history.push_history()
    for index, ids in selected.items():
        track = song.get_track(index)
        if track is not None:
            track.remove_events(ids)
