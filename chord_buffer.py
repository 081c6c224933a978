import sys
import threading
from typing import Callable

from config import CHORD_WINDOW_SEC
from sheet import encode_chord


class ChordBuffer:
    """Groups presses that start within one debounce window into a single chord.

    Every press restarts the window, so a chord closes only once no new press
    has arrived for `window_sec`. Releases do not affect grouping.
    """

    def __init__(self, on_chord: Callable[[str], None], window_sec: float = CHORD_WINDOW_SEC,
                 sort_labels=sorted, timer_factory=threading.Timer):
        self.on_chord = on_chord
        self.window_sec = window_sec
        self.sort_labels = sort_labels
        self.timer_factory = timer_factory
        self._labels: set[str] = set()
        self._timer = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def press(self, label: str):
        with self._lock:
            self._labels.add(label)
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = self.timer_factory(self.window_sec, self._on_timer, args=[self._generation])
            timer.daemon = True
            self._timer = timer
        timer.start()

    def release(self, label: str):
        # Grouping is decided at press time only.
        pass

    def _on_timer(self, generation: int):
        with self._lock:
            # Superseded by a later press whose timer is still counting down.
            if generation != self._generation or self._timer is None:
                return
            labels = self._take_locked()
        self._emit(labels)

    def flush(self) -> str | None:
        """Closes the pending chord now and emits its sheet token."""
        with self._lock:
            labels = self._take_locked()
        return self._emit(labels)

    def _take_locked(self) -> set[str]:
        labels = self._labels
        self._labels = set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return labels

    def _emit(self, labels: set[str]) -> str | None:
        if not labels:
            return None
        token = encode_chord(labels, self.sort_labels)
        try:
            self.on_chord(token)
        except Exception as e:
            print(f"Error recording chord '{token}': {e}", file=sys.stderr)
        return token

    def cancel(self):
        """Drops the pending chord without recording it."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._labels = set()
