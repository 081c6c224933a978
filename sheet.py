"""Sheet notation.

A sheet is plain text: a single note is written as its key label, a chord
as its labels between brackets, e.g. ``ab[cd]e``. A ``[`` with no closing
``]`` after it is kept as a one-character token so that half-typed sheets
still play.
"""
from dataclasses import dataclass

CHORD_OPEN = '['
CHORD_CLOSE = ']'

NOTE = 'note'
CHORD = 'chord'
MALFORMED = 'malformed'


@dataclass(frozen=True)
class Token:
    kind: str
    labels: str
    start: int
    end: int  # exclusive

    @property
    def span(self) -> tuple[int, int]:
        return self.start, self.end

    @property
    def is_single(self) -> bool:
        return self.kind == NOTE


def decode_token(text: str, index: int) -> Token:
    """Decodes the token starting at `index`. Always consumes at least one character."""
    char = text[index]
    if char == CHORD_OPEN:
        close_index = text.find(CHORD_CLOSE, index + 1)
        if close_index == -1:
            return Token(MALFORMED, char, index, index + 1)
        return Token(CHORD, text[index + 1:close_index], index, close_index + 1)
    return Token(NOTE, char, index, index + 1)


def decode(text: str) -> list[Token]:
    tokens = []
    index = 0
    while index < len(text):
        token = decode_token(text, index)
        tokens.append(token)
        index = token.end
    return tokens


def encode_chord(labels, sort_labels=sorted) -> str:
    """Text for one chord event: the bare label, or the sorted labels in brackets."""
    ordered = list(sort_labels(labels))
    if not ordered:
        raise ValueError("A chord needs at least one label")
    if len(ordered) == 1:
        return ordered[0]
    return CHORD_OPEN + ''.join(ordered) + CHORD_CLOSE


def encode(tokens) -> str:
    parts = []
    for token in tokens:
        if token.kind == CHORD:
            parts.append(CHORD_OPEN + token.labels + CHORD_CLOSE)
        else:
            parts.append(token.labels)
    return ''.join(parts)
