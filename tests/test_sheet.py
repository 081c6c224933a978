import unittest

from sheet import CHORD, MALFORMED, NOTE, Token, decode, decode_token, encode, encode_chord


class TestDecode(unittest.TestCase):
    def test_notes_and_chords(self):
        tokens = decode("ab[cd]e")
        self.assertEqual([t.kind for t in tokens], [NOTE, NOTE, CHORD, NOTE])
        self.assertEqual([t.labels for t in tokens], ['a', 'b', 'cd', 'e'])
        self.assertEqual([t.span for t in tokens], [(0, 1), (1, 2), (2, 6), (6, 7)])

    def test_unmatched_open_bracket_is_one_character(self):
        token = decode_token("[ab", 0)
        self.assertEqual(token, Token(MALFORMED, '[', 0, 1))
        self.assertEqual([t.labels for t in decode("[ab")], ['[', 'a', 'b'])

    def test_later_close_bracket_still_closes_chord(self):
        tokens = decode("[a[b]c")
        self.assertEqual(tokens[0].kind, CHORD)
        self.assertEqual(tokens[0].labels, 'a[b')
        self.assertEqual(tokens[1].labels, 'c')

    def test_stray_close_bracket_and_unknown_characters_are_single_tokens(self):
        tokens = decode("]~ ")
        self.assertEqual([t.kind for t in tokens], [NOTE, NOTE, NOTE])
        self.assertEqual(tokens[-1].end, 3)

    def test_empty_chord(self):
        tokens = decode("[]")
        self.assertEqual(tokens, [Token(CHORD, '', 0, 2)])

    def test_empty_text(self):
        self.assertEqual(decode(""), [])

    def test_every_character_is_consumed(self):
        for text in ["[", "[[", "[[]", "a[", "[]]", "[a]b[c"]:
            tokens = decode(text)
            self.assertEqual(tokens[0].start, 0)
            self.assertEqual(tokens[-1].end, len(text))
            for left, right in zip(tokens, tokens[1:]):
                self.assertEqual(left.end, right.start)


class TestEncode(unittest.TestCase):
    def test_single_label_is_bare(self):
        self.assertEqual(encode_chord({'a'}), 'a')

    def test_chord_is_sorted_and_bracketed(self):
        self.assertEqual(encode_chord(['d', 'c']), '[cd]')
        self.assertEqual(encode_chord({'q', '!', '1'}), '[!1q]')

    def test_empty_chord_rejected(self):
        with self.assertRaises(ValueError):
            encode_chord([])

    def test_decode_of_encoded_chord_gives_same_labels(self):
        for labels in [{'a'}, {'a', 's'}, {'Q', 'w', '3', '%'}]:
            token = decode(encode_chord(labels))[0]
            self.assertEqual(set(token.labels), labels)

    def test_encode_inverts_decode_for_well_formed_text(self):
        for text in ["", "a", "ab[cd]e", "[!1q]t[T]", "[]"]:
            self.assertEqual(encode(decode(text)), text)


if __name__ == '__main__':
    unittest.main()
