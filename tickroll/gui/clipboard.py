"""System clipboard adapter for the core clipboard actions."""

from __future__ import annotations

from PyQt6.QtWidgets import QApplication


class QtClipboard:
    """:class:`~tickroll.core.clipboard.ClipboardPort` backed by ``QApplication.clipboard()``.

    Requires a running QApplication.
    """

    def read_text(self) -> str:
        clipboard = QApplication.clipboard()
        return clipboard.text() if clipboard is not None else ""

    def write_text(self, text: str) -> None:
        clipboard = QApplication.clipboard()
        if clipboard is not None:
            clipboard.setText(text)
