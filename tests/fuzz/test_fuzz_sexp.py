import math
import unittest

import pytest

import chasm_lang
from chasm_lang.sexp_printer import format_double

hypothesis = pytest.importorskip("hypothesis")
strategies = hypothesis.strategies

from tests.trace_runner import class_to_text, text_to_class  # noqa: E402

_BMP_TEXT = strategies.text(alphabet=strategies.characters(max_codepoint=0xFFFF))


class FuzzTests(unittest.TestCase):
    @hypothesis.given(_BMP_TEXT)
    def test_fuzz_escape_round_trip(self, text: str) -> None:
        escaped = chasm_lang.escape_string(text)
        self.assertTrue(all(0x20 <= ord(c) < 0x7F for c in escaped))
        self.assertEqual(chasm_lang.unescape_string(escaped), text)

    @hypothesis.given(strategies.text())
    def test_fuzz_parser_stability(self, trash_text: str) -> None:
        try:
            parser = chasm_lang.ClassParser(trash_text)
            while parser.read(chasm_lang.ClassVisitor()):
                pass
        except chasm_lang.ChasmError:
            # Expected failure path for invalid documents.
            return

    @hypothesis.given(strategies.floats(allow_nan=False))
    def test_fuzz_double_text_round_trip(self, value: float) -> None:
        parsed = chasm_lang.SExpParser(format_double(value)).double_val()
        self.assertEqual(parsed, value)
        self.assertEqual(math.copysign(1.0, parsed), math.copysign(1.0, value))

    @hypothesis.given(strategies.integers(min_value=-(2**63), max_value=2**63 - 1))
    def test_fuzz_long_text_round_trip(self, value: int) -> None:
        self.assertEqual(chasm_lang.SExpParser(str(value)).long_val(), value)

    @hypothesis.settings(max_examples=50, deadline=None)
    @hypothesis.given(_BMP_TEXT)
    def test_fuzz_string_constant_survives_class_file(self, value: str) -> None:
        text = (
            "(class 52 () S null java/lang/Object ()\n"
            f' (field (static) s "Ljava/lang/String;" null "{chasm_lang.escape_string(value)}"))\n'
        )
        self.assertEqual(class_to_text(text_to_class(text)), text)


if __name__ == "__main__":
    unittest.main(verbosity=2)
