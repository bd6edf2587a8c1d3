from __future__ import annotations

import unittest

from chasm_lang import escape_char, escape_string, unescape_string


class EscapeTests(unittest.TestCase):
    def test_printable_ascii_passes_through(self) -> None:
        self.assertEqual(escape_string("Hello, world!"), "Hello, world!")

    def test_simple_escapes(self) -> None:
        self.assertEqual(escape_string('a"b\\c'), 'a\\"b\\\\c')
        self.assertEqual(escape_string("\b\f\n\r\t\0"), "\\b\\f\\n\\r\\t\\0")

    def test_non_ascii_uses_uppercase_hex(self) -> None:
        self.assertEqual(escape_string("café"), "caf\\u00E9")
        self.assertEqual(escape_string("\x7f"), "\\u007F")
        self.assertEqual(escape_string("\x01"), "\\u0001")

    def test_supplementary_character_becomes_surrogate_pair(self) -> None:
        self.assertEqual(escape_string("\U0001F600"), "\\uD83D\\uDE00")
        self.assertEqual(escape_char("\U0001F600"), "\\uD83D\\uDE00")

    def test_unescape_reverses_escape(self) -> None:
        for text in ["", "plain", 'q"uote', "tab\there", "é中", "nul\0byte"]:
            with self.subTest(text=text):
                self.assertEqual(unescape_string(escape_string(text)), text)

    def test_unescape_keeps_surrogates_separate(self) -> None:
        self.assertEqual(unescape_string("\\uD83D\\uDE00"), "\ud83d\ude00")
        self.assertEqual(len(unescape_string(escape_string("😀"))), 2)

    def test_unescape_accepts_lowercase_hex(self) -> None:
        self.assertEqual(unescape_string("\\u00e9"), "é")

    def test_malformed_escapes_return_none(self) -> None:
        for text in ["\\q", "\\u12", "\\u12G4", "trailing\\", "\\x41"]:
            with self.subTest(text=text):
                self.assertIsNone(unescape_string(text))


if __name__ == "__main__":
    unittest.main(verbosity=2)
