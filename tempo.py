from config import BPM_STEP, DEFAULT_BPM, MAX_BPM, MIN_BPM


def clamp_bpm(value, min_bpm: int = MIN_BPM, max_bpm: int = MAX_BPM) -> int:
    """Clamps a typed tempo into range; anything non-numeric becomes the minimum."""
    try:
        bpm = int(value)
    except (TypeError, ValueError):
        return min_bpm
    return max(min_bpm, min(max_bpm, bpm))


class TempoController:
    """Effective tempo plus the raw text of the tempo field while it is being edited.

    The player reads `bpm` on every token, so a committed change applies to
    the next token. While the field has focus playback is held paused, and it
    resumes on commit only if it was running when focus was taken.
    """

    def __init__(self, bpm: int = DEFAULT_BPM, min_bpm: int = MIN_BPM, max_bpm: int = MAX_BPM, player=None):
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm
        self.bpm = clamp_bpm(bpm, min_bpm, max_bpm)
        self.raw = str(self.bpm)
        self.has_focus = False
        self.player = player
        self._resume_on_commit = False

    def focus(self):
        if self.has_focus:
            return
        self.has_focus = True
        self.raw = str(self.bpm)
        self._resume_on_commit = False
        if self.player is not None and self.player.is_playing:
            self._resume_on_commit = self.player.pause()

    def edit(self, raw: str) -> bool:
        """Replaces the raw text. Rejected unless it is digits only (empty is fine)."""
        if raw and not (raw.isascii() and raw.isdigit()):
            return False
        self.raw = raw
        return True

    def type_digit(self, char: str) -> bool:
        return self.edit(self.raw + char)

    def backspace(self):
        self.raw = self.raw[:-1]

    def commit(self) -> int:
        """Applies the raw text (on blur or Enter) and returns the effective bpm."""
        self.bpm = clamp_bpm(self.raw, self.min_bpm, self.max_bpm)
        self.raw = str(self.bpm)
        was_focused = self.has_focus
        self.has_focus = False
        if was_focused and self._resume_on_commit and self.player is not None and self.player.is_paused:
            self.player.resume()
        self._resume_on_commit = False
        print(f"Tempo: {self.bpm} BPM")
        return self.bpm

    def set_bpm(self, bpm) -> int:
        self.bpm = clamp_bpm(bpm, self.min_bpm, self.max_bpm)
        if not self.has_focus:
            self.raw = str(self.bpm)
        return self.bpm

    def step(self, delta: int) -> int:
        return self.set_bpm(self.bpm + delta)

    def increase(self) -> int:
        return self.step(BPM_STEP)

    def decrease(self) -> int:
        return self.step(-BPM_STEP)
