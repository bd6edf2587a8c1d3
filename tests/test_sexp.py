from __future__ import annotations

import math
import unittest
from io import StringIO

from chasm_lang import GrammaticalError, IoError, LexicalError, SExpParser, SExpPrinter
from chasm_lang.sexp_printer import format_double, format_float


class LexerTests(unittest.TestCase):
    def test_reads_every_token_kind(self) -> None:
        p = SExpParser("(a \"b\" 'c' 12 -3 1.5 2.5f)")
        p.begin()
        self.assertEqual(p.sym(), "a")
        self.assertEqual(p.str_val(), "b")
        self.assertEqual(p.char_val(), "c")
        self.assertEqual(p.long_val(), 12)
        self.assertEqual(p.long_val(), -3)
        self.assertEqual(p.double_val(), 1.5)
        self.assertEqual(p.float_val(), 2.5)
        self.assertFalse(p.more())
        p.end()
        self.assertTrue(p.at_end())

    def test_null_symbol_reads_as_none(self) -> None:
        p = SExpParser("null null null")
        self.assertIsNone(p.sym())
        self.assertIsNone(p.str_val())
        self.assertIsNone(p.syms())

    def test_symbol_list(self) -> None:
        p = SExpParser("(public static final)")
        self.assertEqual(p.syms(), ["public", "static", "final"])

    def test_integers_wrap_to_requested_width(self) -> None:
        p = SExpParser("4294967297 200 40000 9223372036854775808")
        self.assertEqual(p.int_val(), 1)
        self.assertEqual(p.byte_val(), -56)
        self.assertEqual(p.short_val(), -25536)
        self.assertEqual(p.long_val(), -9223372036854775808)

    def test_special_doubles(self) -> None:
        p = SExpParser("Infinity -Infinity NaN")
        self.assertEqual(p.double_val(), math.inf)
        self.assertEqual(p.double_val(), -math.inf)
        self.assertTrue(math.isnan(p.double_val()))

    def test_float_rounds_to_single_precision(self) -> None:
        p = SExpParser("0.1 1e40")
        self.assertNotEqual(p.float_val(), 0.1)
        self.assertEqual(p.float_val(), math.inf)

    def test_booleans(self) -> None:
        p = SExpParser("true false 1")
        self.assertTrue(p.is_bool_val())
        self.assertTrue(p.bool_val())
        self.assertFalse(p.bool_val())
        with self.assertRaises(GrammaticalError):
            p.bool_val()

    def test_escapes_are_decoded(self) -> None:
        p = SExpParser('"tab\\there \\u00e9" \'\\n\'')
        self.assertEqual(p.str_val(), "tab\there \u00e9")
        self.assertEqual(p.char_val(), "\n")

    def test_skip_descends_into_lists(self) -> None:
        p = SExpParser("(a (b (c d)) e) f")
        p.skip()
        self.assertEqual(p.sym(), "f")

    def test_invalid_escape_is_lexical(self) -> None:
        p = SExpParser('\n\n "\\q"')
        with self.assertRaises(LexicalError) as ctx:
            p.str_val()
        self.assertEqual(ctx.exception.line, 3)
        self.assertIn("Invalid escape", ctx.exception.message)

    def test_unterminated_string(self) -> None:
        p = SExpParser('(a "never closed')
        p.begin()
        p.sym()
        with self.assertRaises(LexicalError) as ctx:
            p.str_val()
        self.assertIn("Unterminated", str(ctx.exception))

    def test_character_literal_length(self) -> None:
        with self.assertRaises(LexicalError):
            SExpParser("'ab'").char_val()
        with self.assertRaises(LexicalError):
            SExpParser("''").char_val()

    def test_malformed_number(self) -> None:
        with self.assertRaises(LexicalError):
            SExpParser("1-2").long_val()

    def test_wrong_token_is_grammatical(self) -> None:
        p = SExpParser("(field x)")
        with self.assertRaises(GrammaticalError) as ctx:
            p.block("class")
        self.assertIn("Expected class", ctx.exception.message)
        self.assertEqual(ctx.exception.line, 1)

    def test_read_failure_is_io_error(self) -> None:
        class _Broken:
            def read(self):
                raise OSError("disk gone")

        with self.assertRaises(IoError):
            SExpParser(_Broken())


class PrinterTests(unittest.TestCase):
    def _printer(self):
        out = StringIO()
        return out, SExpPrinter(out)

    def test_nested_block_indentation(self) -> None:
        out, p = self._printer()
        p.block("a")
        p.sym("b")
        p.indent()
        p.block("c")
        p.val(1)
        p.end_line()
        p.block("d")
        p.end_line()
        p.unindent()
        p.end_line()
        p.close()
        self.assertEqual(out.getvalue(), "(a b\n (c 1)\n (d))\n")

    def test_values(self) -> None:
        out, p = self._printer()
        p.begin()
        p.val(None)
        p.val(True)
        p.val(False)
        p.val(-7)
        p.val("x\n\"")
        p.syms(["p", "q"])
        p.syms(None)
        p.end()
        self.assertEqual(out.getvalue(), '(null true false -7 "x\\n\\"" (p q) null)')

    def test_character_values(self) -> None:
        out, p = self._printer()
        p.val_char("a")
        p.val_char("'")
        p.val_char("\t")
        self.assertEqual(out.getvalue(), "'a' '\\u0027' '\\t'")

    def test_unprintable_value(self) -> None:
        _, p = self._printer()
        with self.assertRaises(TypeError):
            p.val(object())

    def test_close_without_output_writes_nothing(self) -> None:
        out, p = self._printer()
        p.close()
        self.assertEqual(out.getvalue(), "")

    def test_double_formatting(self) -> None:
        self.assertEqual(format_double(1.0), "1.0")
        self.assertEqual(format_double(100.0), "100.0")
        self.assertEqual(format_double(0.001), "0.001")
        self.assertEqual(format_double(1e-4), "1.0E-4")
        self.assertEqual(format_double(1e10), "1.0E10")
        self.assertEqual(format_double(1.5e7), "1.5E7")
        self.assertEqual(format_double(-0.0), "-0.0")
        self.assertEqual(format_double(math.inf), "Infinity")
        self.assertEqual(format_double(-math.inf), "-Infinity")
        self.assertEqual(format_double(math.nan), "NaN")

    def test_float_formatting_uses_shortest_single_digits(self) -> None:
        p = SExpParser("0.1")
        self.assertEqual(format_float(p.float_val()), "0.1")
        self.assertEqual(format_float(3.0), "3.0")

    def test_printed_numbers_read_back(self) -> None:
        for value in [0.1, 2.5e-300, 1.7976931348623157e308, 123456789.125, -42.0]:
            with self.subTest(value=value):
                self.assertEqual(SExpParser(format_double(value)).double_val(), value)


if __name__ == "__main__":
    unittest.main(verbosity=2)
