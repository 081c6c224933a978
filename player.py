import enum
import sys
import threading
from dataclasses import dataclass
from typing import Callable

from config import MS_PER_TOKEN_AT_1_BPM, PAUSE_POLL_SEC
from keymap import KeyMap, default_key_map
from playback.base import AudioEngine
from sheet import Token, decode_token
from tempo import TempoController


class PlaybackState(enum.Enum):
    IDLE = 'idle'
    PLAYING = 'playing'
    PAUSED = 'paused'


@dataclass(frozen=True)
class PlaybackStatus:
    state: PlaybackState
    sheet: str
    cursor: int
    highlight: tuple[int, int] | None
    bpm: int


def token_delay_sec(token: Token, bpm: float) -> float:
    """Seconds to wait after sounding `token`.

    Chords and stray brackets get the full eighth-note interval, single notes
    half of it.
    """
    delay_ms = MS_PER_TOKEN_AT_1_BPM / bpm
    if token.is_single:
        delay_ms /= 2
    return delay_ms / 1000.0


def wait_unless_cancelled(cancel: threading.Event, seconds: float) -> bool:
    """Sleeps for `seconds`; returns False as soon as `cancel` is set."""
    return not cancel.wait(seconds)


class Player:
    """Walks the sheet token by token, sounding notes at the current tempo.

    States: IDLE -> PLAYING <-> PAUSED, back to IDLE at the end of the sheet
    or on restart. Each playback run owns a cancellation event and each token
    a wake event; pause sets the wake event, restart sets both, so the token
    wait ends as soon as playback leaves PLAYING. The loop re-checks the
    state before touching the cursor, the highlight or the audio engine.
    """

    def __init__(self, backend: AudioEngine, key_map: KeyMap | None = None,
                 tempo: TempoController | None = None, poll_sec: float = PAUSE_POLL_SEC,
                 wait: Callable[[threading.Event, float], bool] = wait_unless_cancelled,
                 on_update: Callable[[], None] | None = None):
        self.backend = backend
        self.key_map = key_map or default_key_map()
        self.tempo = tempo if tempo is not None else TempoController()
        self.tempo.player = self
        self.poll_sec = poll_sec
        self.wait = wait
        self.on_update = on_update

        self._lock = threading.RLock()
        self._sheet = ''
        self._cursor = 0
        self._highlight: tuple[int, int] | None = None
        self._state = PlaybackState.IDLE
        self._cancel: threading.Event | None = None
        # Set to cut the current token's wait short (pause, restart)
        self._wake: threading.Event | None = None
        self._loop_running = False
        self.playback_thread: threading.Thread | None = None

    # --- Read-only state for the presentation layer ---

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._state

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    @property
    def is_paused(self) -> bool:
        return self.state == PlaybackState.PAUSED

    @property
    def sheet(self) -> str:
        with self._lock:
            return self._sheet

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def highlight(self) -> tuple[int, int] | None:
        with self._lock:
            return self._highlight

    def snapshot(self) -> PlaybackStatus:
        with self._lock:
            return PlaybackStatus(self._state, self._sheet, self._cursor, self._highlight, self.tempo.bpm)

    # --- Sheet changes ---

    def set_sheet(self, text: str):
        """The sheet was edited in place; active playback pauses."""
        with self._lock:
            self._sheet = text
            self._cursor = min(self._cursor, len(text))
            if self._state == PlaybackState.PLAYING:
                print("Sheet changed during playback. Paused.")
                self._pause_locked()
        self._notify()

    def replace_sheet(self, text: str):
        """The sheet was swapped for a new one (e.g. pasted); start over."""
        with self._lock:
            self._restart_locked()
            self._sheet = text
        self._notify()

    # --- Transport ---

    def play(self, block: bool = False) -> bool:
        """Starts playback, or resumes it when paused.

        With `block=True` the loop runs in the calling thread and returns when
        the run ends; otherwise it runs on a daemon thread.
        """
        with self._lock:
            if self._state == PlaybackState.PLAYING:
                print("Playback is already running.")
                return False
            if self._state == PlaybackState.PAUSED and self._loop_running:
                self._state = PlaybackState.PLAYING
                if self._wake is not None:
                    self._wake.clear()
                print("Playback Resumed.")
                cancel = None
            else:
                if not self._sheet:
                    print("Sheet is empty. Nothing to play.")
                    return False
                if self._cursor >= len(self._sheet):
                    self._cursor = 0
                cancel = self._begin_run_locked()
        self._notify()
        if cancel is not None:
            self._start_loop(cancel, block)
        return True

    def resume(self) -> bool:
        if self.state != PlaybackState.PAUSED:
            return False
        return self.play()

    def pause(self) -> bool:
        with self._lock:
            if self._state != PlaybackState.PLAYING:
                return False
            self._pause_locked()
        print("Playback Paused.")
        self._notify()
        return True

    def toggle(self) -> bool:
        if self.is_playing:
            return self.pause()
        return self.play()

    def interrupt(self) -> bool:
        """Manual playing takes priority over the sheet: pause if running."""
        return self.pause()

    def restart(self):
        """Back to IDLE at the top of the sheet. Safe to call in any state."""
        with self._lock:
            was_idle = self._state == PlaybackState.IDLE and self._cursor == 0 and self._highlight is None
            self._restart_locked()
        if not was_idle:
            print("Playback restarted.")
            self._notify()

    def cleanup(self):
        print("Cleaning up Player...")
        self.restart()
        thread = self.playback_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            try:
                thread.join(timeout=0.2)
            except Exception as e:
                print(f"Warning: Error joining playback thread: {e}")
        self.backend.stop()
        print("Player cleanup complete.")

    # --- Manual play ---

    def trigger_label(self, label: str) -> bool:
        note_name = self.key_map.note_for(label)
        if note_name is None:
            return False
        self._trigger(note_name)
        return True

    # --- Internals ---

    def _pause_locked(self):
        self._state = PlaybackState.PAUSED
        self._highlight = None
        if self._wake is not None:
            self._wake.set()

    def _restart_locked(self):
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None
        if self._wake is not None:
            self._wake.set()
            self._wake = None
        self._loop_running = False
        self._state = PlaybackState.IDLE
        self._cursor = 0
        self._highlight = None

    def _begin_run_locked(self) -> threading.Event:
        if self._cancel is not None:
            self._cancel.set()
        if self._wake is not None:
            self._wake.set()
            self._wake = None
        cancel = threading.Event()
        self._cancel = cancel
        self._loop_running = True
        self._state = PlaybackState.PLAYING
        return cancel

    def _start_loop(self, cancel: threading.Event, block: bool):
        if block:
            self._playback_loop(cancel)
            return
        try:
            self.playback_thread = threading.Thread(target=self._playback_loop, args=(cancel,), daemon=True)
            self.playback_thread.start()
        except Exception as e:
            print(f"Error starting playback thread: {e}", file=sys.stderr)
            with self._lock:
                if self._cancel is cancel:
                    self._restart_locked()

    def _playback_loop(self, cancel: threading.Event):
        """Runs one playback pass; exits on cancel or at the end of the sheet."""
        print("Playback thread started.")
        try:
            while True:
                with self._lock:
                    if cancel.is_set():
                        break
                    paused = self._state == PlaybackState.PAUSED
                    if not paused:
                        if self._cursor >= len(self._sheet):
                            print("Reached end of sheet.")
                            self._restart_locked()
                            finished = True
                        else:
                            finished = False
                            token = decode_token(self._sheet, self._cursor)
                            self._highlight = token.span
                            bpm = self.tempo.bpm
                            wake = threading.Event()
                            self._wake = wake
                if paused:
                    if not self.wait(cancel, self.poll_sec):
                        break
                    continue
                if finished:
                    self._notify()
                    break

                self._notify()
                if not self._sound_token(token, cancel):
                    if cancel.is_set():
                        break
                    # Paused before the token sounded; it plays on resume
                    continue
                # Returns early when a pause or restart sets `wake`
                self.wait(wake, token_delay_sec(token, bpm))

                with self._lock:
                    if cancel.is_set():
                        break
                    if self._wake is wake:
                        self._wake = None
                    self._cursor = min(token.end, len(self._sheet))
                    self._highlight = None
                self._notify()
        except Exception as e:
            print(f"Unexpected error during playback loop: {e}", file=sys.stderr)
            with self._lock:
                if self._cancel is cancel:
                    self._restart_locked()
        print("Playback thread finished.")

    def _sound_token(self, token: Token, cancel: threading.Event) -> bool:
        """Sounds every label of `token`; False if playback stopped first."""
        for label in token.labels:
            with self._lock:
                if cancel.is_set() or self._state != PlaybackState.PLAYING:
                    return False
            note_name = self.key_map.note_for(label)
            if note_name is not None:
                self._trigger(note_name)
        return True

    def _trigger(self, note_name: str):
        try:
            self.backend.ensure_started()
            self.backend.trigger(note_name)
        except Exception as e:
            print(f"Error triggering note '{note_name}': {e}", file=sys.stderr)

    def _notify(self):
        if self.on_update is None:
            return
        try:
            self.on_update()
        except Exception as e:
            print(f"Error updating display: {e}", file=sys.stderr)
