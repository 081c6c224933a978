import sys
import threading

from pynput import keyboard

from config import (
    CLEAR_SHEET_HOTKEY,
    EDIT_HOTKEY,
    EXIT_HOTKEY,
    PLAY_PAUSE_HOTKEY,
    RESTART_HOTKEY,
    TEMPO_DOWN_HOTKEY,
    TEMPO_FOCUS_HOTKEY,
    TEMPO_UP_HOTKEY,
)
from piano import PianoSession


def hotkey(*names: str) -> frozenset:
    return frozenset(keyboard.Key[name] for name in names)


PLAY_PAUSE_HOTKEY_COMBINATION = hotkey(PLAY_PAUSE_HOTKEY)
RESTART_HOTKEY_COMBINATION = hotkey(RESTART_HOTKEY)
EDIT_HOTKEY_COMBINATION = hotkey(EDIT_HOTKEY)
TEMPO_FOCUS_HOTKEY_COMBINATION = hotkey(TEMPO_FOCUS_HOTKEY)
TEMPO_UP_HOTKEY_COMBINATION = hotkey(TEMPO_UP_HOTKEY)
TEMPO_DOWN_HOTKEY_COMBINATION = hotkey(TEMPO_DOWN_HOTKEY)
CLEAR_SHEET_HOTKEY_COMBINATION = hotkey(CLEAR_SHEET_HOTKEY)
EXIT_HOTKEY_COMBINATION = hotkey(EXIT_HOTKEY)


# US layout: unshifted and shifted character of each symbol key
_SHIFTED_SYMBOLS = "`~1!2@3#4$5%6^7&8*9(0)-_=+[{]}\\|;:'\",<.>/?"
SHIFT_PAIRS = dict(zip(_SHIFTED_SYMBOLS[::2], _SHIFTED_SYMBOLS[1::2]))
SHIFT_PAIRS.update({shifted: plain for plain, shifted in list(SHIFT_PAIRS.items())})


def key_code(key):
    """Identity of the physical key.

    The virtual key code where pynput has one. On Windows and macOS it does
    not change with Shift; on X11 it is the keysym, which does ('1' is 0x31,
    '!' is 0x21), so releases also carry the Shift pair of their character.
    """
    vk = getattr(key, 'vk', None)
    if vk is not None:
        return vk
    return key


def key_char(key) -> str | None:
    return getattr(key, 'char', None)


def shift_pair(char: str) -> str | None:
    """The character the same key types with Shift toggled ('q' <-> 'Q', '1' <-> '!')."""
    if char.isalpha():
        swapped = char.swapcase()
        return swapped if swapped != char else None
    return SHIFT_PAIRS.get(char)


class KeyboardListener:
    """Feeds global keyboard events into a PianoSession.

    Character keys play the piano (or type into the sheet in edit mode, or
    into the tempo field while it has focus); function keys drive playback.
    """

    def __init__(self, session: PianoSession):
        self.session = session
        self.current_pressed_keys = set()
        self.listener_thread: threading.Thread | None = None
        self._stop_listening = threading.Event()
        self._listener_instance: keyboard.Listener | None = None

    def _on_press(self, key):
        """Callback for key press events."""
        if isinstance(key, keyboard.Key):
            self.current_pressed_keys.add(key)
            return
        char = key_char(key)
        if char is None:
            return
        if self.session.tempo.has_focus:
            self.session.type_tempo(char)
            return
        if self.session.editing:
            self.session.edit_sheet(self.session.sheet + char)
            return
        self.session.key_down(key_code(key), char)

    def _on_release(self, key):
        """Callback for key release events. Handles hotkey logic."""
        if not isinstance(key, keyboard.Key):
            char = key_char(key)
            labels = (char, shift_pair(char)) if char else ()
            self.session.key_up(key_code(key), labels)
            return

        pressed_combination = frozenset(self.current_pressed_keys)
        try:
            self.current_pressed_keys.remove(key)
        except KeyError:
            # Key might have been pressed before the listener started
            pass

        if self.session.tempo.has_focus:
            self._handle_tempo_key(key)
            return
        if self.session.editing and key == keyboard.Key.backspace:
            self.session.edit_sheet(self.session.sheet[:-1])
            return

        if pressed_combination == PLAY_PAUSE_HOTKEY_COMBINATION:
            print("Hotkey: Play/Pause")
            self.session.toggle_playback()
        elif pressed_combination == RESTART_HOTKEY_COMBINATION:
            print("Hotkey: Restart")
            self.session.restart()
        elif pressed_combination == EDIT_HOTKEY_COMBINATION:
            print("Hotkey: Toggle Edit")
            self.session.toggle_edit()
        elif pressed_combination == TEMPO_FOCUS_HOTKEY_COMBINATION:
            print("Hotkey: Tempo (type digits, Enter to apply)")
            self.session.focus_tempo()
        elif pressed_combination == TEMPO_UP_HOTKEY_COMBINATION:
            print(f"Tempo: {self.session.tempo.increase()} BPM")
        elif pressed_combination == TEMPO_DOWN_HOTKEY_COMBINATION:
            print(f"Tempo: {self.session.tempo.decrease()} BPM")
        elif pressed_combination == CLEAR_SHEET_HOTKEY_COMBINATION:
            print("Hotkey: Clear Sheet")
            self.session.clear_sheet()
        elif pressed_combination == EXIT_HOTKEY_COMBINATION:
            print("Hotkey: Exit")
            self.stop()

    def _handle_tempo_key(self, key):
        if key == keyboard.Key.backspace:
            self.session.tempo_backspace()
        elif key in (keyboard.Key.enter, keyboard.Key.esc) or key in TEMPO_FOCUS_HOTKEY_COMBINATION:
            self.session.commit_tempo()

    def _run_listener(self):
        """Internal method to run the listener loop."""
        print("Starting pynput listener...")
        try:
            self._listener_instance = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
            self._listener_instance.start()
            print("pynput listener started.")
            self._listener_instance.join()
        except Exception as e:
            print(f"Error in keyboard listener thread: {e}", file=sys.stderr)
            if self._listener_instance:
                try:
                    self._listener_instance.stop()
                except Exception as stop_e:
                    print(f"Error trying to stop listener after error: {stop_e}", file=sys.stderr)
        finally:
            print("pynput listener stopped.")
            self.session.close()

    def start(self):
        """Starts the keyboard listener in a separate thread."""
        if self.listener_thread and self.listener_thread.is_alive():
            print("Listener already running.")
            return
        self._stop_listening.clear()
        self.listener_thread = threading.Thread(target=self._run_listener, daemon=True)
        self.listener_thread.start()

    def stop(self):
        """Stops the keyboard listener thread."""
        if not self.listener_thread or not self.listener_thread.is_alive():
            print("Listener not running.")
            return
        print("Stopping keyboard listener...")
        self._stop_listening.set()
        if self._listener_instance:
            try:
                self._listener_instance.stop()
            except Exception as e:
                print(f"Error sending stop signal to pynput listener: {e}")

    def join(self):
        """Waits for the listener thread to complete."""
        if self.listener_thread and self.listener_thread.is_alive():
            self.listener_thread.join()
