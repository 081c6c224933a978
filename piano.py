import sys
import threading
from dataclasses import dataclass
from typing import Callable

from chord_buffer import ChordBuffer
from config import CHORD_WINDOW_SEC
from keymap import KeyMap, default_key_map
from player import PlaybackStatus, Player, wait_unless_cancelled
from playback.base import AudioEngine
from tempo import TempoController


@dataclass(frozen=True)
class SessionStatus:
    playback: PlaybackStatus
    pressed: frozenset[str]
    editing: bool
    tempo_raw: str
    tempo_focused: bool


class PianoSession:
    """The recording/editing session behind one piano keyboard.

    Owns the sheet text, the set of held keys and edit mode, and routes input
    to the audio engine, the chord buffer and the player.
    """

    def __init__(self, backend: AudioEngine, key_map: KeyMap | None = None,
                 tempo: TempoController | None = None, chord_window_sec: float = CHORD_WINDOW_SEC,
                 timer_factory=threading.Timer, wait=wait_unless_cancelled,
                 on_update: Callable[[], None] | None = None):
        self.key_map = key_map or default_key_map()
        self.tempo = tempo if tempo is not None else TempoController()
        self.on_update = on_update
        self.player = Player(backend, key_map=self.key_map, tempo=self.tempo, wait=wait,
                             on_update=self._notify)
        self.chord_buffer = ChordBuffer(self._record, window_sec=chord_window_sec,
                                        sort_labels=self.key_map.sort_labels,
                                        timer_factory=timer_factory)
        self.editing = False
        self._sheet = ''
        # physical key code -> label, so two keys producing one label stay distinct
        self._pressed: dict[object, str] = {}
        self._lock = threading.RLock()

    @property
    def sheet(self) -> str:
        with self._lock:
            return self._sheet

    @property
    def pressed_labels(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pressed.values())

    def snapshot(self) -> SessionStatus:
        with self._lock:
            return SessionStatus(
                playback=self.player.snapshot(),
                pressed=frozenset(self._pressed.values()),
                editing=self.editing,
                tempo_raw=self.tempo.raw,
                tempo_focused=self.tempo.has_focus,
            )

    # --- Piano input ---

    def key_down(self, code, label: str, is_repeat: bool = False) -> bool:
        """A physical key went down. Returns True if it sounded a note."""
        with self._lock:
            if self.editing or is_repeat or code in self._pressed:
                return False
            if not self.key_map.is_label(label):
                return False
            self._pressed[code] = label
        self._play_manual(label)
        return True

    def key_up(self, code, labels=()) -> bool:
        """A physical key went up.

        Some platforms report a different code for the release when Shift
        changed in between ('!' down, '1' up). If `code` is not held, the
        first held key showing one of `labels` is released instead.
        """
        with self._lock:
            label = self._pressed.pop(code, None)
            if label is None:
                for held_code, held_label in self._pressed.items():
                    if held_label in labels and not self._is_pointer(held_code):
                        label = self._pressed.pop(held_code)
                        break
        if label is None:
            return False
        self.chord_buffer.release(label)
        self._notify()
        return True

    def pointer_down(self, label: str) -> bool:
        with self._lock:
            if self.editing or not self.key_map.is_label(label):
                return False
            self._pressed[('pointer', label)] = label
        self._play_manual(label)
        return True

    def pointer_up(self, label: str) -> bool:
        return self.key_up(('pointer', label))

    @staticmethod
    def _is_pointer(code) -> bool:
        return isinstance(code, tuple) and code[:1] == ('pointer',)

    def release_all(self):
        """Forget every held key, e.g. when focus moves away from the keyboard."""
        with self._lock:
            had_keys = bool(self._pressed)
            self._pressed.clear()
        if had_keys:
            self._notify()

    def _play_manual(self, label: str):
        self.player.interrupt()
        self.player.trigger_label(label)
        self.chord_buffer.press(label)
        self._notify()

    def _record(self, token: str):
        with self._lock:
            self._sheet += token
            sheet = self._sheet
        self.player.set_sheet(sheet)

    # --- Sheet editing ---

    def toggle_edit(self) -> bool:
        with self._lock:
            entering = not self.editing
        if entering:
            self.chord_buffer.flush()
            self.release_all()
        with self._lock:
            self.editing = entering
        self.player.restart()
        print("Edit mode on." if entering else "Edit mode off.")
        self._notify()
        return entering

    def edit_sheet(self, text: str) -> bool:
        """A direct edit of the sheet text; only allowed in edit mode."""
        with self._lock:
            if not self.editing:
                return False
            self._sheet = text
        self.player.set_sheet(text)
        return True

    def paste_sheet(self, text: str):
        """Replaces the whole sheet and rewinds playback."""
        with self._lock:
            self._sheet = text
        self.player.replace_sheet(text)

    def clear_sheet(self):
        self.chord_buffer.cancel()
        self.paste_sheet('')

    # --- Tempo field ---

    def focus_tempo(self):
        self.release_all()
        self.tempo.focus()
        self._notify()

    def type_tempo(self, char: str) -> bool:
        accepted = self.tempo.type_digit(char)
        if accepted:
            self._notify()
        return accepted

    def tempo_backspace(self):
        self.tempo.backspace()
        self._notify()

    def commit_tempo(self) -> int:
        bpm = self.tempo.commit()
        self._notify()
        return bpm

    # --- Transport ---

    def play(self, block: bool = False) -> bool:
        return self.player.play(block=block)

    def pause(self) -> bool:
        return self.player.pause()

    def toggle_playback(self) -> bool:
        return self.player.toggle()

    def restart(self):
        self.player.restart()

    def close(self):
        self.chord_buffer.cancel()
        self.player.cleanup()

    def _notify(self):
        if self.on_update is None:
            return
        try:
            self.on_update()
        except Exception as e:
            print(f"Error updating display: {e}", file=sys.stderr)
