"""Playback position and live MIDI feedback.

The editor never drives the transport.  It reads the current tick (paste
anchor, "create event now"), moves the position when the user clicks while
stopped, and can play a single event immediately through a mido output
port so edits are audible.
"""

from __future__ import annotations

import logging

import mido

from .events import TrackEvent, to_midi_messages
from .observable import Observable

log = logging.getLogger(__name__)


class Player:
    """Current playback position plus an optional MIDI feedback port."""

    def __init__(self, output: mido.ports.BaseOutput | None = None) -> None:
        self._output = output
        self.position_value: Observable[int] = Observable(0)
        self._is_playing = False

    @property
    def position(self) -> int:
        return self.position_value.get()

    def set_position(self, tick: int) -> None:
        self.position_value.set(max(0, int(tick)))

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    def set_playing(self, playing: bool) -> None:
        """Set by the transport, never by the editor."""
        self._is_playing = playing

    # ── MIDI feedback ───────────────────────────────────────

    @property
    def has_output(self) -> bool:
        return self._output is not None and not getattr(self._output, "closed", False)

    def open_output(self, port_name: str) -> bool:
        """Open *port_name* for feedback.  Returns False if it can't be opened."""
        self.close_output()
        try:
            self._output = mido.open_output(port_name)
        except (OSError, ValueError, ImportError):
            log.exception("Failed to open MIDI output %s", port_name)
            self._output = None
            return False
        log.info("MIDI feedback on %s", port_name)
        return True

    def close_output(self) -> None:
        if self._output is not None:
            try:
                self._output.close()
            except OSError:
                log.debug("Error closing MIDI output", exc_info=True)
            self._output = None

    def send_event(self, event: TrackEvent, channel: int = 0) -> None:
        """Play *event* right away.  Meta events are not sent to devices."""
        if not self.has_output:
            return
        for msg in to_midi_messages(event, channel):
            if msg.is_meta:
                continue
            try:
                self._output.send(msg)  # type: ignore[union-attr]
            except OSError:
                log.exception("Failed to send %s", msg)
                return

    @staticmethod
    def list_output_ports() -> list[str]:
        return mido.get_output_names()  # type: ignore[no-any-return]

    def stop_note(self, note_number: int, channel: int = 0) -> None:
        """Release a note started by :meth:`send_event`."""
        if not self.has_output:
            return
        try:
            self._output.send(mido.Message(  # type: ignore[union-attr]
                "note_off", channel=channel, note=note_number, velocity=0,
            ))
        except OSError:
            log.exception("Failed to stop note %d", note_number)
