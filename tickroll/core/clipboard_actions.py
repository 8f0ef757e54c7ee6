"""Copy, paste, duplicate and delete for note, control and tempo selections.

Pasting parses the whole payload before touching the track; a payload
that fails validation pastes nothing.  Pasted and duplicated events always
get fresh ids.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence

from .clipboard import ClipboardPort, make_payload, parse_clipboard_payload
from .events import ClipboardFormatError, NoteEvent, TrackEvent
from .history import HistoryStore
from .track import Track

log = logging.getLogger(__name__)


def _selected_events(track: Track, event_ids: Sequence[int]) -> list[TrackEvent]:
    events = [track.get_event_by_id(i) for i in event_ids]
    return [e for e in events if e is not None]


def copy_selection(
    track: Track | None,
    event_ids: Sequence[int],
    clipboard: ClipboardPort,
    payload_type: str,
) -> bool:
    """Write the selected events to *clipboard*.  False if there was nothing to copy."""
    if track is None or not event_ids:
        return False
    events = _selected_events(track, event_ids)
    if not events:
        return False
    clipboard.write_text(make_payload(payload_type, events))
    return True


def paste_selection(
    track: Track | None,
    history: HistoryStore,
    clipboard: ClipboardPort,
    payload_type: str,
    position: int,
) -> list[int]:
    """Insert the clipboard's events with their origin at *position*.

    Returns the new ids (empty when the clipboard holds nothing usable).
    """
    if track is None:
        return []
    try:
        events = parse_clipboard_payload(clipboard.read_text(), payload_type)
    except ClipboardFormatError as e:
        log.debug("Ignoring clipboard contents: %s", e)
        return []
    if not events:
        return []

    history.push_history()
    shifted = [dataclasses.replace(e, tick=e.tick + position, id=-1) for e in events]
    created = track.transaction(lambda it: [it.create_or_update(e) for e in shifted])
    return [e.id for e in created]


def selection_span(events: Sequence[TrackEvent]) -> int:
    """Ticks from the first event's start to the last event's end (notes include duration)."""
    if not events:
        return 0
    start = min(e.tick for e in events)
    end = max(e.tick + e.duration if isinstance(e, NoteEvent) else e.tick for e in events)
    return end - start


def duplicate_selection(
    track: Track | None, history: HistoryStore, event_ids: Sequence[int],
) -> list[int]:
    """Copy the selection right after itself.  Returns the ids of the copies."""
    if track is None or not event_ids:
        return []
    events = _selected_events(track, event_ids)
    if not events:
        return []
    history.push_history()
    delta = selection_span(events)
    copies = [dataclasses.replace(e, tick=e.tick + delta, id=-1) for e in events]
    created = track.transaction(lambda it: [it.create_or_update(e) for e in copies])
    return [e.id for e in created]


def delete_selection(track: Track | None, history: HistoryStore, event_ids: Sequence[int]) -> None:
    if track is None or not event_ids:
        return
    history.push_history()
    track.remove_events(event_ids)


def cut_selection(
    track: Track | None,
    history: HistoryStore,
    event_ids: Sequence[int],
    clipboard: ClipboardPort,
    payload_type: str,
) -> None:
    if copy_selection(track, event_ids, clipboard, payload_type):
        delete_selection(track, history, event_ids)
