import os
import sys
import threading

try:
    import numpy as np
    import pygame
except ImportError as e:
    print(f"Error: {e.name} library not found.", file=sys.stderr)
    print("Please install it using: pip install pygame numpy", file=sys.stderr)
    sys.exit(1)

try:
    from music21 import pitch
except ImportError:
    print("Error: music21 library not found.", file=sys.stderr)
    print("Please install it using: pip install music21", file=sys.stderr)
    sys.exit(1)

from config import DEFAULT_VOLUME, NOTE_SAMPLE_MAP, SAMPLES_DIR
from keymap import build_notes
from playback.base import AudioEngine


def sample_key(note_name: str) -> str:
    """Sharp-based spelling used by NOTE_SAMPLE_MAP (e.g. 'E-4' -> 'D#4')."""
    note_pitch = pitch.Pitch(note_name)
    name = note_pitch.name
    octave = note_pitch.octave
    if '-' in name:
        enharmonic_pitch = note_pitch.getEnharmonic()
        name = enharmonic_pitch.name
        octave = enharmonic_pitch.octave
    return f"{name}{octave}"


def pitch_shift(sound, semitones: int):
    """Resamples `sound` so it plays `semitones` higher (or lower when negative)."""
    if semitones == 0:
        return sound
    samples = pygame.sndarray.array(sound)
    ratio = 2 ** (semitones / 12.0)
    length = int(samples.shape[0] / ratio)
    if length < 2:
        return sound
    source = np.arange(samples.shape[0])
    positions = np.linspace(0, samples.shape[0] - 1, length)
    if samples.ndim == 1:
        shifted = np.interp(positions, source, samples)
    else:
        shifted = np.stack([np.interp(positions, source, samples[:, c]) for c in range(samples.shape[1])], axis=1)
    return pygame.sndarray.make_sound(np.ascontiguousarray(shifted.astype(samples.dtype)))


class SampleAudioEngine(AudioEngine):
    """Plays pre-recorded audio files through the pygame mixer.

    Notes without their own file are pitch-shifted from the nearest recorded
    sample once loading finishes.
    """

    def __init__(self, samples_dir: str = SAMPLES_DIR, sample_map: dict[str, str] = NOTE_SAMPLE_MAP,
                 notes: list[str] | None = None, volume: float = DEFAULT_VOLUME, verbose: bool = True):
        self.samples_dir = samples_dir
        self.sample_map = sample_map
        self.notes = list(notes) if notes is not None else build_notes()
        self.volume = volume
        self.verbose = verbose
        self.samples: dict[str, pygame.mixer.Sound | None] = {}
        self.mixer_started = False
        self.mixer_failed = False
        # Set when loading finished or was given up
        self._loaded = threading.Event()
        self._load_thread: threading.Thread | None = None
        print("SampleAudioEngine created. Call start() to initialize pygame and load samples.")

    @property
    def is_ready(self) -> bool:
        return self.mixer_started and self._loaded.is_set()

    def start(self):
        """Initialize the pygame mixer and load samples on a background thread."""
        if self._load_thread is not None:
            return
        self.mixer_failed = False
        self._loaded.clear()
        self.ensure_started()
        if not self.mixer_started:
            return
        self._load_thread = threading.Thread(target=self._load_samples, daemon=True)
        self._load_thread.start()

    def wait_until_ready(self, timeout: float | None = None) -> bool:
        """True once loading is over, including when the mixer could not start."""
        return self._loaded.wait(timeout)

    def ensure_started(self):
        if self.mixer_started or self.mixer_failed:
            return
        print("Initializing pygame mixer...")
        try:
            pygame.mixer.init()
            pygame.mixer.set_num_channels(32)
            self.mixer_started = True
            print("Pygame mixer initialized with 32 channels.")
        except Exception as e:
            self.mixer_failed = True
            self._loaded.set()
            print(f"Error initializing pygame mixer: {e}", file=sys.stderr)
            print("Sample playback will be silent.", file=sys.stderr)

    def _load_samples(self):
        print(f"Loading samples from '{self.samples_dir}'...")
        loaded_count = 0
        missing_count = 0
        error_count = 0

        if not os.path.isdir(self.samples_dir):
            print(f"Warning: Samples directory not found: '{self.samples_dir}'", file=sys.stderr)
            print("Cannot load any samples.", file=sys.stderr)
            self._loaded.set()
            return

        for note_name, filename in self.sample_map.items():
            file_path = os.path.join(self.samples_dir, filename)
            if os.path.exists(file_path):
                try:
                    self.samples[note_name] = pygame.mixer.Sound(file_path)
                    loaded_count += 1
                except Exception as e:
                    print(f"Error loading sample '{filename}' for note '{note_name}': {e}", file=sys.stderr)
                    self.samples[note_name] = None
                    error_count += 1
            else:
                print(f"Warning: Sample file missing for note '{note_name}': '{file_path}'", file=sys.stderr)
                self.samples[note_name] = None
                missing_count += 1

        print(f"Sample loading complete. Loaded: {loaded_count}, Missing: {missing_count}, Errors: {error_count}")
        if loaded_count == 0:
            print("Warning: No samples were loaded successfully. Playback will be silent.", file=sys.stderr)
        else:
            self._fill_missing()
        self._loaded.set()

    def _fill_missing(self):
        recorded = {pitch.Pitch(name).midi: sound for name, sound in self.samples.items() if sound is not None}
        shifted_count = 0
        for note_name in self.notes:
            if self.samples.get(note_name) is not None:
                continue
            midi = pitch.Pitch(note_name).midi
            # Nearest recorded sample, the lower one on a tie
            source_midi = min(recorded, key=lambda m: (abs(m - midi), m))
            try:
                self.samples[note_name] = pitch_shift(recorded[source_midi], midi - source_midi)
                shifted_count += 1
            except Exception as e:
                print(f"Error pitch-shifting a sample for note '{note_name}': {e}", file=sys.stderr)
        if shifted_count:
            print(f"Pitch-shifted samples for {shifted_count} notes.")

    def stop(self):
        """Stop all currently playing sounds."""
        if not self.mixer_started:
            return
        print("Stopping all sample sounds...")
        try:
            pygame.mixer.stop()
        except Exception as e:
            print(f"Error stopping pygame mixer: {e}", file=sys.stderr)

    def trigger(self, note_name: str, volume: float | None = None):
        if not self.is_ready:
            return
        try:
            key = sample_key(note_name)
        except Exception:
            print(f"Warning: '{note_name}' is not a pitch name. Skipping.", file=sys.stderr)
            return
        sound = self.samples.get(key)
        if sound is None:
            if self.verbose:
                print(f"Warning: Sample for '{key}' not loaded. Skipping.", file=sys.stderr)
            return
        try:
            sound.set_volume(self.volume if volume is None else volume)
            sound.play()
            if self.verbose:
                print(f"Playing Sample: {note_name} -> File: '{self.sample_map.get(key)}'")
        except Exception as e:
            print(f"Error playing sample for key '{key}': {e}", file=sys.stderr)
