"""Routes files to the matching class producer and sink and runs them together."""

import zipfile
from typing import List, Optional

from .bytecode_reader import ClassReader
from .bytecode_writer import ClassWriter
from .class_parser import ClassParser
from .class_printer import ClassPrinter
from .exceptions import ChasmError, ClassFormatError
from .interfaces import ClassInput, ClassOutput, ConsoleIO, IOHandler
from .models import PipelineOptions
from .visitor import ClassVisitor, MethodVisitor

# DOS epoch, the earliest timestamp a zip entry can carry
EPOCH = (1980, 1, 1, 0, 0, 0)


class _DebugMethodVisitor(MethodVisitor):
    def __init__(self, owner: "DebugVisitor", delegate: Optional[MethodVisitor]):
        super().__init__(delegate)
        self.owner = owner

    def visit_end(self):
        try:
            super().visit_end()
        except ClassFormatError as e:
            raise ClassFormatError(
                f"Class writer failed while processing method {self.owner.last_method}.\nInvalid bytecode? {e}"
            ) from e


class DebugVisitor(ClassVisitor):
    """Remembers the method being written so writer faults can name it."""

    def __init__(self, delegate: ClassVisitor):
        super().__init__(delegate)
        self.last_method: Optional[str] = None

    def visit_method(self, access, name, descriptor, signature, exceptions):
        self.last_method = name
        return _DebugMethodVisitor(self, super().visit_method(access, name, descriptor, signature, exceptions))

    def visit_end(self):
        self.last_method = None
        super().visit_end()


class NullOutput(ClassOutput):
    """Accepts any number of classes and keeps nothing."""

    def write(self) -> ClassVisitor:
        return ClassVisitor()


class BytecodeInput(ClassInput):
    def __init__(self, data: bytes, pipeline: "Pipeline", origin: str = "<bytes>"):
        self.data = data
        if pipeline.options.verify:
            pipeline.verify_class(data, origin)

    def read(self, visitor: ClassVisitor) -> bool:
        ClassReader(self.data).accept(visitor)
        return False


class BytecodeOutput(ClassOutput):
    """Writes a single class file once the class has been visited completely."""

    def __init__(self, path: str, pipeline: "Pipeline"):
        self.path = path
        self.pipeline = pipeline
        self.writer = ClassWriter(compute_maxs=pipeline.options.compute_maxs)
        self._visitor: Optional[ClassVisitor] = DebugVisitor(self.writer)

    def write(self) -> Optional[ClassVisitor]:
        v = self._visitor
        self._visitor = None
        return v

    def close(self) -> None:
        if not self.writer.complete:
            return
        data = self.writer.to_bytes()
        if self.pipeline.options.verify:
            self.pipeline.verify_class(data, self.path)
        with open(self.path, "wb") as f:
            f.write(data)


class JarInput(ClassInput):
    """Replays every ``.class`` entry of an archive in sorted order."""

    def __init__(self, path: str, pipeline: "Pipeline"):
        self.pipeline = pipeline
        self.archive = zipfile.ZipFile(path)
        self.names: List[str] = sorted(n for n in self.archive.namelist() if n.endswith(".class"))

    def read(self, visitor: ClassVisitor) -> bool:
        if not self.names:
            raise ChasmError("No class found in jar file")
        name = self.names.pop(0)
        BytecodeInput(self.archive.read(name), self.pipeline, name).read(visitor)
        return bool(self.names)

    def close(self) -> None:
        self.archive.close()


class JarOutput(ClassVisitor, ClassOutput):
    """Stores each visited class as ``<internal name>.class`` with a fixed timestamp."""

    def __init__(self, path: str, pipeline: "Pipeline"):
        super().__init__()
        self.pipeline = pipeline
        self.archive = zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED)
        self.directories = set()
        self.writer: Optional[ClassWriter] = None
        self.entry: Optional[str] = None

    def write(self) -> ClassVisitor:
        return self

    def _create_parent_dirs(self, entry: str) -> None:
        parts = entry.split("/")[:-1]
        for i in range(1, len(parts) + 1):
            directory = "/".join(parts[:i]) + "/"
            if directory not in self.directories:
                self.directories.add(directory)
                self.archive.writestr(zipfile.ZipInfo(directory, date_time=EPOCH), b"")

    def visit(self, version, access, name, signature, super_name, interfaces):
        self.entry = name + ".class"
        self._create_parent_dirs(self.entry)
        self.writer = ClassWriter(compute_maxs=self.pipeline.options.compute_maxs)
        self.delegate = DebugVisitor(self.writer)
        super().visit(version, access, name, signature, super_name, interfaces)

    def visit_end(self):
        super().visit_end()
        self.delegate = None
        data = self.writer.to_bytes()
        if self.pipeline.options.verify:
            self.pipeline.verify_class(data, self.entry)
        info = zipfile.ZipInfo(self.entry, date_time=EPOCH)
        info.compress_type = zipfile.ZIP_DEFLATED
        self.archive.writestr(info, data)
        self.pipeline.io.emit("+", self.entry)

    def close(self) -> None:
        self.archive.close()


class Pipeline:
    """Connects an input file to an output file through the visitor protocol."""

    def __init__(self, options: Optional[PipelineOptions] = None, io_handler: Optional[IOHandler] = None):
        self.options = options or PipelineOptions()
        self.io = io_handler or ConsoleIO()

    def process(self, input_path: str, output_path: Optional[str] = None) -> None:
        source = self.select_input(input_path)
        try:
            sink = self.select_output(output_path)
        except BaseException:
            source.close()
            raise
        run(source, sink)

    def verify_class(self, data: bytes, origin: str) -> None:
        """Re-read ``data`` and re-encode it; any fault surfaces as :class:`ClassFormatError`."""
        writer = ClassWriter()
        ClassReader(data).accept(writer)
        writer.to_bytes()
        self.io.emit("✓", f"verified {origin}")

    def select_input(self, path: str) -> ClassInput:
        if path.endswith(".class"):
            with open(path, "rb") as f:
                return BytecodeInput(f.read(), self, path)
        if path.endswith(".jar"):
            return JarInput(path, self)
        f = open(path, "r", encoding="utf-8")
        try:
            return ClassParser(f)
        except BaseException:
            f.close()
            raise

    def select_output(self, path: Optional[str]) -> ClassOutput:
        if path is None:
            return NullOutput()
        if path.endswith(".class"):
            return BytecodeOutput(path, self)
        if path.endswith(".jar"):
            return JarOutput(path, self)
        return ClassPrinter(open(path, "w", encoding="utf-8", newline="\n"))


def run(source: ClassInput, sink: ClassOutput) -> None:
    """Feed every class of ``source`` to ``sink``; both are closed on every exit path."""
    try:
        v = sink.write()
        while True:
            more = source.read(v)
            v = sink.write()
            if not (more and v is not None):
                break
    finally:
        try:
            source.close()
        finally:
            sink.close()
