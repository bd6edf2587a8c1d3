from __future__ import annotations

import io
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

# We import the entrypoint script specifically to test it
import chasm
from tests.trace_runner import read_fixture, text_to_class


class EntrypointTests(unittest.TestCase):
    def test_main_translates_text_to_class(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = os.path.join(td, "Hello.chasm")
            out = os.path.join(td, "Hello.class")
            with open(src, "w", encoding="utf-8") as f:
                f.write(read_fixture("hello.chasm"))

            with patch.object(sys, "argv", ["chasm", src, out]), patch.object(
                chasm.sys, "exit", side_effect=AssertionError("exit should not be called")
            ):
                chasm.main()
            with open(out, "rb") as f:
                self.assertEqual(f.read(), text_to_class(read_fixture("hello.chasm")))

    def test_main_accepts_explicit_argv(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = os.path.join(td, "Hello.class")
            out = os.path.join(td, "Hello.txt")
            with open(src, "wb") as f:
                f.write(text_to_class(read_fixture("hello.chasm")))
            chasm.main([src, out])
            with open(out, encoding="utf-8") as f:
                self.assertEqual(f.read(), read_fixture("hello.chasm"))

    def test_verify_flag_reports_through_console(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = os.path.join(td, "Hello.chasm")
            out = os.path.join(td, "Hello.class")
            with open(src, "w", encoding="utf-8") as f:
                f.write(read_fixture("hello.chasm"))

            buf = io.StringIO()
            with redirect_stdout(buf):
                chasm.main(["--verify", src, out])
            self.assertIn("verified", buf.getvalue())

    def test_main_exits_on_error(self) -> None:
        missing_path = os.path.join(tempfile.gettempdir(), "no_such_file.chasm")
        err = io.StringIO()
        with patch.object(chasm.sys, "exit", side_effect=SystemExit(1)) as exit_mock, redirect_stderr(err):
            with self.assertRaises(SystemExit):
                chasm.main([missing_path])
        exit_mock.assert_called_once_with(1)
        self.assertIn("FATAL ERROR", err.getvalue())

    def test_main_reports_semantic_errors_with_line(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = os.path.join(td, "bad.chasm")
            with open(src, "w", encoding="utf-8") as f:
                f.write('(class 52 () A null java/lang/Object ()\n (method () m "()V" null null\n  (code\n   (goto L3))))')
            err = io.StringIO()
            with redirect_stderr(err), self.assertRaises(SystemExit) as ctx:
                chasm.main([src])
            self.assertEqual(ctx.exception.code, 1)
            self.assertIn("Undefined label L3 at line 4", err.getvalue())

    def test_console_output_can_be_redirected_through_module_print(self) -> None:
        seen = []
        with patch.object(chasm, "print", seen.append, create=True):
            chasm.ConsoleIO().emit("+", "entry")
        self.assertEqual(seen, ["+ entry"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
