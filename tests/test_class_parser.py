from __future__ import annotations

import unittest

from chasm_lang import (
    ClassParser,
    ClassVisitor,
    GrammaticalError,
    Handle,
    Int,
    Long,
    SemanticError,
    TypeRef,
)
from chasm_lang import opcodes as op
from tests.trace_runner import code_events, read_fixture, trace_text


def _method(body: str, access: str = "public static", name: str = "f", desc: str = "(I)I") -> str:
    return (
        f'(class 52 (public) T null java/lang/Object ()\n (method ({access}) {name} "{desc}" null null\n'
        f"  (code\n{body}\n)))"
    )


class ClassParserTests(unittest.TestCase):
    def test_class_header(self) -> None:
        events = trace_text(read_fixture("counter.chasm"))
        self.assertEqual(
            events[0],
            ("class", 52, op.ACC_PUBLIC | op.ACC_SUPER, "demo/Counter", None, "java/lang/Object", ["java/lang/Runnable"]),
        )
        self.assertEqual(events[1], ("source", "Counter.java", None))
        self.assertEqual(events[-1], ("end",))

    def test_field_constants(self) -> None:
        events = trace_text(read_fixture("counter.chasm"))
        fields = [e for e in events if e[0] == "field" and isinstance(e[1], int) and e[2] in ("LIMIT", "count")]
        self.assertEqual(fields[0], ("field", op.ACC_FINAL | op.ACC_PRIVATE | op.ACC_STATIC, "LIMIT", "I", None, Int(10)))
        self.assertEqual(fields[1], ("field", op.ACC_PRIVATE, "count", "J", None, None))

    def test_version_carries_minor_in_high_bits(self) -> None:
        events = trace_text("(class 196653 () T null java/lang/Object ())")
        self.assertEqual(events[0][1] & 0xFFFF, 45)
        self.assertEqual(events[0][1] >> 16, 3)

    def test_access_flags_are_order_insensitive(self) -> None:
        a = trace_text("(class 52 (super public final) T null java/lang/Object ())")
        b = trace_text("(class 52 (final public super super) T null java/lang/Object ())")
        self.assertEqual(a[0], b[0])

    def test_lookupswitch_preserves_key_order(self) -> None:
        text = _method(
            "(iload 0)\n(lookupswitch L9 ((9 La) (1 Lb) (5 Lc)))\n"
            "(label La) (iconst_1) (ireturn)\n"
            "(label Lb) (iconst_2) (ireturn)\n"
            "(label Lc) (iconst_3) (ireturn)\n"
            "(label L9) (iconst_0) (ireturn)\n(maxs 1 1)"
        )
        events = code_events(trace_text(text), "f")
        self.assertIn(("lookupswitch", "L0", [9, 1, 5], ["L1", "L2", "L3"]), events)

    def test_tableswitch(self) -> None:
        events = code_events(trace_text(read_fixture("counter.chasm")), "pick")
        self.assertIn(("tableswitch", 1, 2, "L0", ["L1", "L2"]), events)

    def test_invokedynamic(self) -> None:
        events = code_events(trace_text(read_fixture("counter.chasm")), "make")
        indy = events[1]
        self.assertEqual(indy[0], "indy")
        self.assertEqual(indy[1:3], ("run", "()Ljava/lang/Runnable;"))
        self.assertEqual(indy[3].tag, op.H_INVOKESTATIC)
        self.assertEqual(indy[3].owner, "java/lang/invoke/LambdaMetafactory")
        self.assertEqual(
            indy[4],
            [TypeRef("()V"), Handle(op.H_INVOKESTATIC, "demo/Counter", "lambda$0", "()V", False), TypeRef("()V")],
        )

    def test_invokedynamic_without_arguments(self) -> None:
        text = _method(
            '(invokedynamic x "()V" (H invokestatic B bsm "()V" false) null)\n(return)\n(maxs 0 0)',
            desc="()V",
        )
        events = code_events(trace_text(text), "f")
        self.assertIsNone(events[1][4])

    def test_invokestatic_interface_flag(self) -> None:
        text = _method(
            '(invokestatic I a "()V" true)\n(invokestatic C b "()V")\n'
            '(invokeinterface I c "()V")\n(invokevirtual C d "()V")\n(return)\n(maxs 0 0)',
            desc="()V",
        )
        events = code_events(trace_text(text), "f")
        flags = [e[-1] for e in events if e[0] == "invoke"]
        self.assertEqual(flags, [True, False, True, False])

    def test_frames(self) -> None:
        events = code_events(trace_text(read_fixture("counter.chasm")), "run")
        frames = [e for e in events if e[0] == "frame"]
        self.assertEqual(frames, [("frame", op.F_APPEND, [op.INTEGER], []), ("frame", op.F_CHOP, [op.INTEGER], [])])

    def test_frame_with_uninitialized_label_and_strings(self) -> None:
        text = _method(
            "(label L0)\n(new java/lang/Object)\n(dup)\n(label L1)\n"
            '(frame full ("T" I N) (L0 L0 U))\n(pop2)\n(return)\n(maxs 2 1)',
            desc="()V",
        )
        events = code_events(trace_text(text), "f")
        frame = [e for e in events if e[0] == "frame"][0]
        self.assertEqual(frame, ("frame", op.F_FULL, ["T", op.INTEGER, op.NULL], ["L0", "L0", op.UNINITIALIZED_THIS]))

    def test_compact_instruction_forms(self) -> None:
        text = _method(
            "(iload 0)\n(newarray I)\n(checkcast \"[I\")\n(anewarray java/lang/String)\n"
            '(multianewarray "[[I" 2)\n(ldc "text")\n(ldc (F 1.5))\n(ldc (T "LT;"))\n(iinc 0 -1)\n(ireturn)\n(maxs 3 1)'
        )
        events = code_events(trace_text(text), "f")
        self.assertIn(("int", op.NEWARRAY, 10), events)
        self.assertIn(("type", op.CHECKCAST, "[I"), events)
        self.assertIn(("type", op.ANEWARRAY, "java/lang/String"), events)
        self.assertIn(("multianewarray", "[[I", 2), events)
        self.assertIn(("ldc", "text"), events)
        self.assertIn(("ldc", TypeRef("LT;")), events)
        self.assertIn(("iinc", 0, -1), events)

    def test_ldc_long(self) -> None:
        events = code_events(trace_text(read_fixture("counter.chasm")), "big")
        self.assertEqual(events[1], ("ldc", Long(5000000000)))

    def test_multiple_classes_in_one_document(self) -> None:
        text = "(class 52 () A null java/lang/Object ())\n(class 52 () B null java/lang/Object ())"
        parser = ClassParser(text)
        names = []

        class _Names(ClassVisitor):
            def visit(self, version, access, name, signature, super_name, interfaces):
                names.append(name)

        self.assertTrue(parser.read(_Names()))
        self.assertFalse(parser.read(_Names()))
        self.assertEqual(names, ["A", "B"])

    def test_custom_attribute_parses_to_placeholder(self) -> None:
        events = trace_text("(class 52 () A null java/lang/Object ()\n (attribute))")
        self.assertIn(("attribute", None), events)


class ClassParserErrorTests(unittest.TestCase):
    def _assert_error(self, text: str, kind: type, fragment: str, line: int | None = None) -> None:
        with self.assertRaises(kind) as ctx:
            trace_text(text)
        self.assertIn(fragment, ctx.exception.message)
        if line is not None:
            self.assertEqual(ctx.exception.line, line)

    def test_undefined_label(self) -> None:
        text = _method("(goto L7)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, SemanticError, "Undefined label L7", line=4)

    def test_label_placed_twice(self) -> None:
        text = _method("(label L0)\n(nop)\n(label L0)\n(return)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, SemanticError, "Label L0 placed twice", line=6)

    def test_label_names_must_start_with_l(self) -> None:
        text = _method("(goto X0)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, GrammaticalError, "Expected label")

    def test_frame_cardinality(self) -> None:
        text = _method('(label L0)\n(frame same1 () ())\n(return)\n(maxs 0 0)', desc="()V")
        self._assert_error(text, SemanticError, "Frame same1 cannot have 0 locals and 0 stack items")
        text = _method("(label L0)\n(frame append (I I I I) ())\n(return)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, SemanticError, "Frame append")

    def test_unknown_frame_type(self) -> None:
        text = _method("(label L0)\n(frame odd () ())\n(return)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, GrammaticalError, "Invalid frame type")

    def test_field_constant_must_match_descriptor(self) -> None:
        base = '(class 52 () A null java/lang/Object ()\n (field () x "{}" null {}))'
        self._assert_error(base.format("J", "(I 1)"), SemanticError, "does not match field type J", line=2)
        self._assert_error(base.format("I", '"s"'), SemanticError, "String constant")
        trace_text(base.format("Z", "(I 1)"))
        trace_text(base.format("Ljava/lang/String;", '"ok"'))

    def test_unknown_instruction(self) -> None:
        text = _method("(frobnicate 1)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, GrammaticalError, "Unknown instruction frobnicate", line=4)

    def test_unknown_access_token(self) -> None:
        self._assert_error("(class 52 (publik) A null java/lang/Object ())", GrammaticalError, "Invalid access token")

    def test_unknown_class_child(self) -> None:
        self._assert_error("(class 52 () A null java/lang/Object ()\n (bogus))", GrammaticalError, "Unexpected symbol")

    def test_invalid_value_tag(self) -> None:
        text = _method("(ldc (Q 1))\n(maxs 0 0)", desc="()V")
        self._assert_error(text, GrammaticalError, "Invalid value type Q")

    def test_invalid_handle_tag(self) -> None:
        text = _method('(ldc (H callme A b "()V" false))\n(maxs 0 0)', desc="()V")
        self._assert_error(text, GrammaticalError, "Invalid tag")

    def test_invalid_newarray_type(self) -> None:
        text = _method("(newarray string)\n(maxs 0 0)", desc="()V")
        self._assert_error(text, GrammaticalError, "Invalid array type")


if __name__ == "__main__":
    unittest.main(verbosity=2)
