"""Timebase, layout and MIDI value range constants."""

# Ticks per quarter note for new songs
DEFAULT_TIMEBASE = 480

# Quantize grid denominators offered by the quantize selector
QUANTIZE_DENOMINATORS = (1, 2, 4, 8, 16, 32, 64, 128)
DEFAULT_QUANTIZE_DENOMINATOR = 4

# Layout (pixels)
PIXELS_PER_TICK = 0.1
KEY_HEIGHT = 16
TRACK_HEIGHT = 64
CONTROL_PANE_HEIGHT = 120
TEMPO_GRAPH_HEIGHT = 240

# MIDI value ranges (inclusive)
MAX_NOTE_NUMBER = 127
NUMBER_OF_KEYS = MAX_NOTE_NUMBER + 1
VELOCITY_MIN = 1
VELOCITY_MAX = 127
CONTROLLER_MIN = 0
CONTROLLER_MAX = 127
PITCH_BEND_MIN = 0
PITCH_BEND_MAX = 16383
PITCH_BEND_CENTER = 8192
CHANNEL_MAX = 15

DEFAULT_VELOCITY = 100

# Tempo
DEFAULT_BPM = 120.0
DEFAULT_MAX_BPM = 500
DEFAULT_MICROSECONDS_PER_BEAT = 500_000

# Undo depth
MAX_HISTORY = 100

# Clipboard payload tags
NOTE_EVENTS = "note_events"
CONTROL_EVENTS = "control_events"
TEMPO_EVENTS = "tempo_events"
ARRANGE_NOTES = "arrange_notes"
