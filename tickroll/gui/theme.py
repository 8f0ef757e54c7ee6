"""Dark editor palette and application stylesheet."""

from __future__ import annotations

from PyQt6.QtWidgets import QApplication

# --- Backgrounds ---
BG_INK = "#0A0E14"  # main canvas
BG_SCROLL = "#15191F"  # alternating (black key) rows

# --- Accents ---
ACCENT_GOLD = "#D4AF37"
ACCENT_BLUE = "#4A90E2"
ACCENT_RED = "#C84B31"

# --- Grid & text ---
DIVIDER = "#1E2D3D"
GRID_BEAT = "#2C3444"
GRID_BAR = "#404759"
TEXT_PRIMARY = "#E8E6E3"

NOTE_FILL = ACCENT_BLUE
NOTE_SELECTED = ACCENT_GOLD
SELECTION_BORDER = ACCENT_GOLD
PLAYHEAD = ACCENT_RED

FONT_FAMILY = '"Noto Sans", "Inter", sans-serif'


def get_stylesheet() -> str:
    return f"""
    QMainWindow, QWidget {{
        background-color: {BG_INK};
        color: {TEXT_PRIMARY};
        font-family: {FONT_FAMILY};
        font-size: 13px;
    }}
    QScrollBar:horizontal {{
        background: {BG_SCROLL};
        height: 10px;
    }}
    QScrollBar::handle:horizontal {{
        background: {GRID_BAR};
        border-radius: 4px;
    }}
    """


def apply_theme(app: QApplication) -> None:
    app.setStyle("Fusion")
    app.setStyleSheet(get_stylesheet())
