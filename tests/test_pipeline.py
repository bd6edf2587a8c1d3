from __future__ import annotations

import os
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest import mock

from chasm_lang import (
    ChasmError,
    ClassFormatError,
    ClassInput,
    ClassOutput,
    IOHandler,
    Pipeline,
    PipelineOptions,
    SemanticError,
)
from chasm_lang.pipeline import EPOCH, NullOutput, run
from tests.trace_runner import class_to_text, read_fixture, text_to_class


class _RecordingIO(IOHandler):
    def __init__(self):
        self.lines: list[tuple[str, str]] = []

    def emit(self, symbol: str, message: str) -> None:
        self.lines.append((symbol, message))


class _Source(ClassInput):
    def __init__(self, count: int, fail_at: int | None = None):
        self.count = count
        self.fail_at = fail_at
        self.read_calls = 0
        self.closed = False

    def read(self, visitor) -> bool:
        self.read_calls += 1
        if self.read_calls == self.fail_at:
            raise ChasmError("boom")
        visitor.visit(52, 0, f"C{self.read_calls}", None, "java/lang/Object", None)
        visitor.visit_end()
        return self.read_calls < self.count

    def close(self) -> None:
        self.closed = True


class _Sink(ClassOutput):
    def __init__(self, limit: int | None = None):
        self.limit = limit
        self.handed_out = 0
        self.closed = False

    def write(self):
        if self.limit is not None and self.handed_out >= self.limit:
            return None
        self.handed_out += 1
        return NullOutput().write()

    def close(self) -> None:
        self.closed = True


class RunLoopTests(unittest.TestCase):
    def test_reads_until_source_is_exhausted(self) -> None:
        source, sink = _Source(3), _Sink()
        run(source, sink)
        self.assertEqual(source.read_calls, 3)
        self.assertTrue(source.closed)
        self.assertTrue(sink.closed)

    def test_stops_when_sink_is_full(self) -> None:
        source, sink = _Source(5), _Sink(limit=1)
        run(source, sink)
        self.assertEqual(source.read_calls, 1)

    def test_closes_both_on_error(self) -> None:
        source, sink = _Source(3, fail_at=2), _Sink()
        with self.assertRaises(ChasmError):
            run(source, sink)
        self.assertTrue(source.closed)
        self.assertTrue(sink.closed)


class PipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.io = _RecordingIO()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _pipeline(self, **options) -> Pipeline:
        return Pipeline(PipelineOptions(**options), io_handler=self.io)

    def _write_text(self, name: str, fixture: str) -> Path:
        path = self.tmp / name
        path.write_text(read_fixture(fixture), encoding="utf-8")
        return path

    def test_text_to_class(self) -> None:
        src = self._write_text("Hello.chasm", "hello.chasm")
        out = self.tmp / "Hello.class"
        self._pipeline().process(str(src), str(out))
        self.assertEqual(out.read_bytes(), text_to_class(read_fixture("hello.chasm")))

    def test_class_to_text(self) -> None:
        src = self.tmp / "Counter.class"
        src.write_bytes(text_to_class(read_fixture("counter.chasm")))
        out = self.tmp / "Counter.chasm"
        self._pipeline().process(str(src), str(out))
        self.assertEqual(out.read_text(encoding="utf-8"), read_fixture("counter.chasm"))

    def test_text_to_text_keeps_every_class(self) -> None:
        src = self.tmp / "both.chasm"
        src.write_text(read_fixture("hello.chasm") + read_fixture("counter.chasm"), encoding="utf-8")
        out = self.tmp / "both.out"
        self._pipeline().process(str(src), str(out))
        self.assertEqual(out.read_text(encoding="utf-8"), read_fixture("hello.chasm") + read_fixture("counter.chasm"))

    def test_null_output_only_checks_input(self) -> None:
        src = self._write_text("Hello.chasm", "hello.chasm")
        self._pipeline().process(str(src))
        self.assertEqual(sorted(os.listdir(self.tmp)), ["Hello.chasm"])

    def test_text_errors_propagate_and_leave_no_output(self) -> None:
        src = self.tmp / "bad.chasm"
        src.write_text('(class 52 () A null java/lang/Object ()\n (field () x "J" null (I 1)))', encoding="utf-8")
        out = self.tmp / "A.class"
        with self.assertRaises(SemanticError):
            self._pipeline().process(str(src), str(out))
        self.assertFalse(out.exists())

    def test_writer_errors_name_the_method(self) -> None:
        src = self.tmp / "bad.chasm"
        src.write_text(
            '(class 52 () A null java/lang/Object ()\n (method (static) drop "()V" null null\n  (code\n(pop)\n(return))))',
            encoding="utf-8",
        )
        with self.assertRaises(ClassFormatError) as ctx:
            self._pipeline(compute_maxs=True).process(str(src), str(self.tmp / "A.class"))
        self.assertIn("processing method drop", str(ctx.exception))
        self.assertIn("Stack underflow", str(ctx.exception))
        self.assertFalse((self.tmp / "A.class").exists())

    def test_jar_output_and_input(self) -> None:
        src = self.tmp / "both.chasm"
        src.write_text(read_fixture("counter.chasm") + read_fixture("hello.chasm"), encoding="utf-8")
        jar = self.tmp / "out.jar"
        self._pipeline().process(str(src), str(jar))

        with zipfile.ZipFile(jar) as archive:
            infos = {info.filename: info for info in archive.infolist()}
            self.assertEqual(sorted(infos), ["Hello.class", "demo/", "demo/Counter.class"])
            for info in infos.values():
                self.assertEqual(info.date_time, EPOCH)
            self.assertEqual(archive.read("Hello.class"), text_to_class(read_fixture("hello.chasm")))
        self.assertIn(("+", "demo/Counter.class"), self.io.lines)

        out = self.tmp / "all.chasm"
        self._pipeline().process(str(jar), str(out))
        # entries are replayed in sorted order
        self.assertEqual(out.read_text(encoding="utf-8"), read_fixture("hello.chasm") + read_fixture("counter.chasm"))

    def test_jar_output_is_reproducible(self) -> None:
        src = self._write_text("Counter.chasm", "counter.chasm")
        first, second = self.tmp / "a.jar", self.tmp / "b.jar"
        self._pipeline().process(str(src), str(first))
        self._pipeline().process(str(src), str(second))
        self.assertEqual(first.read_bytes(), second.read_bytes())

    def test_empty_jar(self) -> None:
        jar = self.tmp / "empty.jar"
        with zipfile.ZipFile(jar, "w") as archive:
            archive.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
        with self.assertRaises(ChasmError) as ctx:
            self._pipeline().process(str(jar))
        self.assertIn("No class found", str(ctx.exception))

    def test_verify_reports_each_class(self) -> None:
        src = self._write_text("Hello.chasm", "hello.chasm")
        out = self.tmp / "Hello.class"
        self._pipeline(verify=True).process(str(src), str(out))
        self.assertIn(("✓", f"verified {out}"), self.io.lines)

    def test_verify_rejects_malformed_class(self) -> None:
        src = self.tmp / "Broken.class"
        src.write_bytes(text_to_class(read_fixture("hello.chasm"))[:-5])
        with self.assertRaises(ClassFormatError):
            self._pipeline(verify=True).process(str(src))

    def test_compute_maxs_option(self) -> None:
        src = self.tmp / "Counter.chasm"
        src.write_text(read_fixture("counter.chasm").replace("(maxs 5 2)", "(maxs 0 0)"), encoding="utf-8")
        out = self.tmp / "Counter.class"
        self._pipeline(compute_maxs=True).process(str(src), str(out))
        self.assertEqual(class_to_text(out.read_bytes()), read_fixture("counter.chasm"))

    def test_missing_input(self) -> None:
        with self.assertRaises(OSError):
            self._pipeline().process(str(self.tmp / "missing.class"))


class PipelineOptionsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        options = PipelineOptions()
        self.assertFalse(options.compute_maxs)
        self.assertFalse(options.verify)

    def test_from_env(self) -> None:
        with mock.patch.dict(os.environ, {"CHASM_COMPUTE_MAXS": "yes", "CHASM_VERIFY": "0"}):
            options = PipelineOptions.from_env()
        self.assertTrue(options.compute_maxs)
        self.assertFalse(options.verify)


if __name__ == "__main__":
    unittest.main(verbosity=2)
