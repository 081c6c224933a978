# --- Configuration ---
# Hotkeys are pynput Key names; key_listener resolves them (e.g. 'f9' -> Key.f9).
PLAY_PAUSE_HOTKEY = 'f9'
RESTART_HOTKEY = 'f10'
EDIT_HOTKEY = 'f8'
TEMPO_FOCUS_HOTKEY = 'f7'
TEMPO_UP_HOTKEY = 'page_up'
TEMPO_DOWN_HOTKEY = 'page_down'
CLEAR_SHEET_HOTKEY = 'f12'
EXIT_HOTKEY = 'esc'

# --- Keyboard Range Definition ---
OCTAVES = [2, 3, 4, 5, 6]
NOTES_IN_OCTAVE = [
    'C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B',
]
# Closes the top of the range so the keyboard ends on a white key
CLOSING_NOTE = 'C7'

# Labels are handed out in catalog order: naturals draw from WHITE_LABELS,
# sharps from BLACK_LABELS.
WHITE_LABELS = [
    '1', '2', '3', '4', '5', '6', '7', '8', '9', '0',
    'q', 'w', 'e', 'r', 't', 'y', 'u', 'i', 'o', 'p',
    'a', 's', 'd', 'f', 'g', 'h', 'j', 'k', 'l', 'z',
    'x', 'c', 'v', 'b', 'n', 'm',
]
BLACK_LABELS = [
    '!', '@', '$', '%', '^', '*', '(', 'Q', 'W', 'E',
    'T', 'Y', 'I', 'O', 'P', 'S', 'D', 'G', 'H', 'J',
    'L', 'Z', 'C', 'V', 'B',
]

# --- Timing ---
CHORD_WINDOW_SEC = 0.05   # presses closer than this form one chord
PAUSE_POLL_SEC = 0.05     # how often a paused playback loop re-checks its state
MS_PER_TOKEN_AT_1_BPM = 30000.0  # eighth note: half of 60000 / bpm

# --- Tempo ---
MIN_BPM = 100
MAX_BPM = 300
DEFAULT_BPM = 100
BPM_STEP = 25

# --- Audio ---
DEFAULT_MIDI_PORT_NAME = None
DEFAULT_VOLUME = 0.8
NOTE_RELEASE_SEC = 1.0
SAMPLES_DIR = "samples/piano"

# Recorded samples (Salamander set), sharps spelled with 's' (e.g. 'F#4' ->
# 'Fs4.mp3'). Notes without a file are pitch-shifted from the nearest
# recorded one.
NOTE_SAMPLE_MAP = {
    f"{name}{octave}": f"{name.replace('#', 's')}{octave}.mp3"
    for octave in OCTAVES[:-1]
    for name in ('C', 'D#', 'F#')
}
NOTE_SAMPLE_MAP['C6'] = "C6.mp3"
