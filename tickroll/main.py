"""Entry point: QApplication startup with a piano roll over a new song."""

from __future__ import annotations

import logging
import sys

from PyQt6.QtWidgets import QApplication, QMainWindow, QMessageBox

from .core.config import get_config
from .core.editor_state import EditorContext
from .core.player import Player


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    app = QApplication(sys.argv)
    app.setApplicationName("tickroll")
    app.setOrganizationName("tickroll")

    from .gui.theme import apply_theme
    apply_theme(app)

    config = get_config()

    # Live feedback is optional; the editor works without an output port
    player = Player()
    port_name = config.get("midi.output_port", "")
    if port_name and config.get("midi.send_feedback", True):
        player.open_output(port_name)

    from .gui.clipboard import QtClipboard
    from .gui.widgets.piano_roll import PianoRollWidget

    ctx = EditorContext.from_config(config, player=player, clipboard=QtClipboard())

    window = QMainWindow()
    window.setWindowTitle("tickroll")
    window.setCentralWidget(PianoRollWidget(ctx))
    window.resize(1200, 720)
    window.show()

    # Global exception handler
    def exception_hook(exctype, value, tb):
        import traceback
        traceback_str = "".join(traceback.format_exception(exctype, value, tb))
        logging.error("Unhandled exception:\n%s", traceback_str)

        msg = QMessageBox()
        msg.setIcon(QMessageBox.Icon.Critical)
        msg.setWindowTitle("tickroll")
        msg.setText("An unexpected error occurred. The application will close.")
        msg.setInformativeText(str(value))
        msg.setDetailedText(traceback_str)
        msg.exec()

        sys.__excepthook__(exctype, value, tb)
        sys.exit(1)

    sys.excepthook = exception_hook

    exit_code = app.exec()
    ctx.save_to_config(config)
    player.close_output()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
