import threading

from keymap import KeyMap
from piano import PianoSession, SessionStatus

HIGHLIGHT_OPEN = '>'
HIGHLIGHT_CLOSE = '<'


def render_sheet(text: str, highlight: tuple[int, int] | None, cursor: int = 0, editing: bool = False) -> str:
    """The sheet with the sounding token wrapped in > <, or a | at the cursor when nothing sounds."""
    if editing:
        return text + '_'
    if highlight is not None:
        start, end = highlight
        return text[:start] + HIGHLIGHT_OPEN + text[start:end] + HIGHLIGHT_CLOSE + text[end:]
    if 0 < cursor < len(text):
        return text[:cursor] + '|' + text[cursor:]
    return text


def render_keyboard(key_map: KeyMap, pressed: frozenset[str]) -> str:
    """One row of labels in catalog order; held keys are shown in brackets."""
    cells = []
    for binding in key_map.bindings:
        label = binding.label
        cells.append(f"[{label}]" if label in pressed else label)
    return ' '.join(cells)


def render_status(status: SessionStatus, key_map: KeyMap) -> str:
    playback = status.playback
    tempo = f"BPM: {status.tempo_raw}_" if status.tempo_focused else f"BPM: {playback.bpm}"
    mode = "EDIT" if status.editing else playback.state.value.upper()
    lines = [
        f"[{mode}] {tempo}",
        f"Sheet: {render_sheet(playback.sheet, playback.highlight, playback.cursor, status.editing)}",
    ]
    if status.pressed:
        lines.append(f"Keys:  {render_keyboard(key_map, status.pressed)}")
    return '\n'.join(lines)


class ConsoleView:
    """Prints the session whenever something visible changes."""

    def __init__(self):
        self.session: PianoSession | None = None
        self._last = None
        self._lock = threading.Lock()

    def attach(self, session: PianoSession):
        self.session = session
        session.on_update = self.refresh

    def refresh(self):
        if self.session is None:
            return
        text = render_status(self.session.snapshot(), self.session.key_map)
        with self._lock:
            if text == self._last:
                return
            self._last = text
        print(text)
