import sys
from dataclasses import dataclass
from functools import lru_cache

try:
    from music21 import pitch
except ImportError:
    print("Error: music21 library not found.", file=sys.stderr)
    print("Please install it using: pip install music21", file=sys.stderr)
    sys.exit(1)

from config import BLACK_LABELS, CLOSING_NOTE, NOTES_IN_OCTAVE, OCTAVES, WHITE_LABELS


class KeyMapError(ValueError):
    """Raised when the label pools cannot cover the note catalog."""


@dataclass(frozen=True)
class KeyBinding:
    note: str
    label: str
    color: str  # 'white' or 'black'
    position: int  # index in the ascending note catalog

    @property
    def is_black(self) -> bool:
        return self.color == 'black'


def build_notes(octaves=OCTAVES, closing_note=CLOSING_NOTE) -> list[str]:
    """Every pitch class of every octave in order, then the closing note."""
    notes = [f"{name}{octave}" for octave in octaves for name in NOTES_IN_OCTAVE]
    if closing_note:
        notes.append(closing_note)
    return notes


class KeyMap:
    """Bidirectional note <-> label table with white/black classification."""

    def __init__(self, bindings: list[KeyBinding]):
        self.bindings = tuple(bindings)
        self._by_label = {b.label: b for b in self.bindings}
        self._by_note = {b.note: b for b in self.bindings}

    def __len__(self):
        return len(self.bindings)

    @property
    def notes(self) -> list[str]:
        return [b.note for b in self.bindings]

    @property
    def labels(self) -> list[str]:
        return [b.label for b in self.bindings]

    def for_label(self, label: str) -> KeyBinding | None:
        return self._by_label.get(label)

    def for_note(self, note: str) -> KeyBinding | None:
        return self._by_note.get(note)

    def note_for(self, label: str) -> str | None:
        binding = self._by_label.get(label)
        return binding.note if binding else None

    def label_for(self, note: str) -> str | None:
        binding = self._by_note.get(note)
        return binding.label if binding else None

    def position_of(self, note: str) -> int | None:
        binding = self._by_note.get(note)
        return binding.position if binding else None

    def is_label(self, label: str) -> bool:
        return label in self._by_label

    def white_keys(self) -> list[KeyBinding]:
        return [b for b in self.bindings if not b.is_black]

    def black_keys(self) -> list[KeyBinding]:
        return [b for b in self.bindings if b.is_black]

    def white_keys_before(self, note: str) -> int:
        """Number of white keys left of `note`; used to place black keys on screen."""
        position = self.position_of(note)
        if position is None:
            raise KeyError(note)
        return sum(1 for b in self.bindings[:position] if not b.is_black)

    @staticmethod
    def sort_labels(labels) -> list[str]:
        """Fixed input-layout order, independent of the order keys arrived in."""
        return sorted(labels)


def build_key_map(octaves=OCTAVES, white_labels=WHITE_LABELS, black_labels=BLACK_LABELS,
                  closing_note=CLOSING_NOTE) -> KeyMap:
    notes = build_notes(octaves, closing_note)

    previous_midi = None
    for note_name in notes:
        midi = pitch.Pitch(note_name).midi
        if previous_midi is not None and midi <= previous_midi:
            raise KeyMapError(f"Note catalog is not ascending at '{note_name}'")
        previous_midi = midi

    white_notes = [n for n in notes if '#' not in n]
    black_notes = [n for n in notes if '#' in n]
    if len(white_labels) < len(white_notes):
        raise KeyMapError(f"Need {len(white_notes)} white labels, got {len(white_labels)}")
    if len(black_labels) < len(black_notes):
        raise KeyMapError(f"Need {len(black_notes)} black labels, got {len(black_labels)}")

    white_iter = iter(white_labels)
    black_iter = iter(black_labels)
    bindings = []
    for position, note_name in enumerate(notes):
        if '#' in note_name:
            bindings.append(KeyBinding(note_name, next(black_iter), 'black', position))
        else:
            bindings.append(KeyBinding(note_name, next(white_iter), 'white', position))

    seen = set()
    for binding in bindings:
        if binding.label in seen:
            raise KeyMapError(f"Label '{binding.label}' is bound to more than one note")
        seen.add(binding.label)

    return KeyMap(bindings)


@lru_cache(maxsize=None)
def default_key_map() -> KeyMap:
    return build_key_map()
