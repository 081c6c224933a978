import abc


class AudioEngine(abc.ABC):
    """Abstract base class for the things that can make a note audible."""

    @property
    @abc.abstractmethod
    def is_ready(self) -> bool:
        """True once the engine has finished loading and can sound notes."""
        pass

    @abc.abstractmethod
    def start(self):
        """Begin initialization. Loading may finish later; see `is_ready`."""
        pass

    @abc.abstractmethod
    def stop(self):
        """Silence everything and release the output device."""
        pass

    def ensure_started(self):
        """Make sure the output is running before the first note. Optional."""
        pass

    @abc.abstractmethod
    def trigger(self, note_name: str, volume: float | None = None):
        """Sound one note, e.g. 'C#4'.

        Must return quietly (no exception) when the engine is not ready yet
        or the note cannot be sounded.

        Args:
            note_name: Pitch name with octave from the key map catalog.
            volume: The volume level (0.0 to 1.0); engine default when None.
        """
        pass
