from __future__ import annotations

from io import StringIO
from pathlib import Path

from chasm_lang import ClassParser, ClassPrinter, ClassReader, ClassVisitor, ClassWriter, Label, MethodVisitor


ROOT = Path(__file__).resolve().parents[1]
FIXTURES = ROOT / "tests" / "fixtures"


def read_fixture(name: str) -> str:
    fixture_path = FIXTURES / name
    if not fixture_path.exists():
        raise FileNotFoundError(f"Missing fixture: {fixture_path}")
    return fixture_path.read_text(encoding="utf-8")


def print_text(source: ClassReader | ClassParser) -> str:
    """Replay every class of ``source`` through a printer and return the document."""
    out = StringIO()
    printer = ClassPrinter(out)
    if isinstance(source, ClassReader):
        source.accept(printer)
    else:
        while source.read(printer):
            pass
    printer.p.close()
    return out.getvalue()


def text_to_class(text: str, compute_maxs: bool = False) -> bytes:
    writer = ClassWriter(compute_maxs=compute_maxs)
    ClassParser(text).read(writer)
    return writer.to_bytes()


def class_to_text(data: bytes) -> str:
    return print_text(ClassReader(data))


class _TraceMethod(MethodVisitor):
    def __init__(self, trace: "TraceVisitor"):
        super().__init__()
        self.trace = trace
        self.names: dict[Label, str] = {}

    def _name(self, label: Label) -> str:
        # labels are compared by identity; record them by order of first use
        if label not in self.names:
            self.names[label] = f"L{len(self.names)}"
        return self.names[label]

    def _norm(self, value):
        if isinstance(value, Label):
            return self._name(value)
        if isinstance(value, (list, tuple)):
            return [self._norm(v) for v in value]
        return value

    def _record(self, event: str, *args) -> None:
        self.trace.events.append((event,) + tuple(self._norm(a) for a in args))

    def visit_code(self):
        self._record("code")

    def visit_frame(self, frame_type, num_local, local, num_stack, stack):
        self._record("frame", frame_type, list(local)[:num_local], list(stack)[:num_stack])

    def visit_insn(self, opcode):
        self._record("insn", opcode)

    def visit_int_insn(self, opcode, operand):
        self._record("int", opcode, operand)

    def visit_var_insn(self, opcode, var):
        self._record("var", opcode, var)

    def visit_type_insn(self, opcode, type_name):
        self._record("type", opcode, type_name)

    def visit_field_insn(self, opcode, owner, name, descriptor):
        self._record("field", opcode, owner, name, descriptor)

    def visit_method_insn(self, opcode, owner, name, descriptor, is_interface):
        self._record("invoke", opcode, owner, name, descriptor, is_interface)

    def visit_invoke_dynamic_insn(self, name, descriptor, bootstrap, arguments):
        self._record("indy", name, descriptor, bootstrap, arguments)

    def visit_jump_insn(self, opcode, label):
        self._record("jump", opcode, label)

    def visit_label(self, label):
        self._record("label", label)

    def visit_ldc_insn(self, value):
        self._record("ldc", value)

    def visit_iinc_insn(self, var, increment):
        self._record("iinc", var, increment)

    def visit_table_switch_insn(self, low, high, default, labels):
        self._record("tableswitch", low, high, default, labels)

    def visit_lookup_switch_insn(self, default, keys, labels):
        self._record("lookupswitch", default, keys, labels)

    def visit_multi_anew_array_insn(self, descriptor, dimensions):
        self._record("multianewarray", descriptor, dimensions)

    def visit_try_catch_block(self, start, end, handler, type_name):
        self._record("try-catch", start, end, handler, type_name)

    def visit_local_variable(self, name, descriptor, signature, start, end, index):
        self._record("local", name, descriptor, signature, start, end, index)

    def visit_line_number(self, line, start):
        self._record("line", line, start)

    def visit_maxs(self, max_stack, max_locals):
        self._record("maxs", max_stack, max_locals)

    def visit_end(self):
        self._record("method-end")


class TraceVisitor(ClassVisitor):
    """Records the class and code events it receives as comparable tuples."""

    def __init__(self):
        super().__init__()
        self.events: list[tuple] = []

    def visit(self, version, access, name, signature, super_name, interfaces):
        self.events.append(("class", version, access, name, signature, super_name, interfaces))

    def visit_source(self, source, debug):
        self.events.append(("source", source, debug))

    def visit_field(self, access, name, descriptor, signature, value):
        self.events.append(("field", access, name, descriptor, signature, value))
        return None

    def visit_method(self, access, name, descriptor, signature, exceptions):
        self.events.append(("method", access, name, descriptor, signature, exceptions))
        return _TraceMethod(self)

    def visit_attribute(self, attribute):
        self.events.append(("attribute", attribute))

    def visit_end(self):
        self.events.append(("end",))


def trace_text(text: str) -> list[tuple]:
    trace = TraceVisitor()
    ClassParser(text).read(trace)
    return trace.events


def code_events(events: list[tuple], method: str) -> list[tuple]:
    """Return the recorded code events of ``method``, without the method header."""
    out: list[tuple] = []
    inside = False
    for event in events:
        if event[0] == "method":
            inside = event[2] == method
            continue
        if inside:
            if event[0] == "method-end":
                return out
            out.append(event)
    return out
