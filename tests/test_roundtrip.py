from __future__ import annotations

import unittest

from chasm_lang import ClassParser, ClassReader, ClassWriter
from tests.trace_runner import class_to_text, print_text, read_fixture, text_to_class


CANONICAL_FIXTURES = ["hello.chasm", "counter.chasm"]


def _class_to_class(data: bytes) -> bytes:
    writer = ClassWriter()
    ClassReader(data).accept(writer)
    return writer.to_bytes()


class RoundTripTests(unittest.TestCase):
    def test_text_to_class_to_text_is_identity_on_canonical_documents(self) -> None:
        for name in CANONICAL_FIXTURES:
            with self.subTest(fixture=name):
                canonical = read_fixture(name)
                self.assertEqual(class_to_text(text_to_class(canonical)), canonical)

    def test_text_to_text_is_identity_on_canonical_documents(self) -> None:
        for name in CANONICAL_FIXTURES:
            with self.subTest(fixture=name):
                canonical = read_fixture(name)
                self.assertEqual(print_text(ClassParser(canonical)), canonical)

    def test_class_to_class_is_byte_identical(self) -> None:
        for name in CANONICAL_FIXTURES:
            with self.subTest(fixture=name):
                data = text_to_class(read_fixture(name))
                self.assertEqual(_class_to_class(data), data)
                self.assertEqual(_class_to_class(_class_to_class(data)), data)

    def test_reformatting_converges(self) -> None:
        messy = " ".join(read_fixture("hello.chasm").split())
        self.assertEqual(class_to_text(text_to_class(messy)), read_fixture("hello.chasm"))

    def test_string_constants_survive_both_directions(self) -> None:
        text = (
            "(class 52 () S null java/lang/Object ()\n"
            ' (field (static) s "Ljava/lang/String;" null "nul\\0 tab\\t \\u00E9 \\uD83D\\uDE00"))\n'
        )
        self.assertEqual(class_to_text(text_to_class(text)), text)


if __name__ == "__main__":
    unittest.main(verbosity=2)
