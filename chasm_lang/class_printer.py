"""Class visitor that writes the s-expression text form."""

from typing import IO, Dict, Optional, Sequence

from . import opcodes as op
from .interfaces import ClassOutput
from .models import Char, Float, Handle, IntArray, Label, Primitive, TypePath, TypeRef
from .sexp_printer import SExpPrinter
from .visitor import AnnotationVisitor, ClassVisitor, FieldVisitor, MethodVisitor, ModuleVisitor


def _flags(p: SExpPrinter, access: int, names: Sequence[str]) -> None:
    p.begin()
    for name in names:
        if access & op.ACCESS_BY_NAME[name]:
            p.sym(name)
    p.end()


def _type_path(type_path: Optional[TypePath]) -> Optional[str]:
    return None if type_path is None else str(type_path)


class _ValuePrinter:
    """Shared printing of generic constants and handles."""

    def __init__(self, p: SExpPrinter):
        self.p = p

    def handle(self, h: Handle) -> None:
        p = self.p
        p.block("H")
        p.sym(op.HANDLE_NAMES[h.tag])
        p.sym(h.owner)
        p.sym(h.name)
        p.indent()
        p.val(h.descriptor)
        p.val(h.is_interface)
        p.unindent()
        p.end()

    def generic(self, value) -> None:
        p = self.p
        if value is None or isinstance(value, str):
            p.val(value)
        elif isinstance(value, Primitive):
            p.block(value.tag)
            if isinstance(value, Char):
                p.val_char(value.value)
            elif isinstance(value, Float):
                p.val_float(value.value)
            else:
                p.val(value.value)
            p.end()
        elif isinstance(value, TypeRef):
            p.block("T")
            p.val(value.descriptor)
            p.end()
        elif isinstance(value, Handle):
            self.handle(value)
        elif isinstance(value, IntArray):
            p.block("[I")
            for x in value.values:
                p.val(x)
            p.end()
        else:
            raise ValueError(f"Invalid value {value!r} of type {type(value).__name__}")

    def generics(self, values: Optional[Sequence]) -> None:
        p = self.p
        if values is None:
            p.sym(None)
            return
        p.begin()
        p.indent()
        for value in values:
            self.generic(value)
            p.new_line()
        p.unindent()
        p.end()


class _AnnotationPrinter(AnnotationVisitor):
    def __init__(self, owner: "ClassPrinter", use_name: bool):
        super().__init__()
        self.owner = owner
        self.p = owner.p
        self.use_name = use_name

    def _open(self, keyword: str, name: Optional[str]) -> None:
        self.p.block(keyword)
        if self.use_name:
            self.p.sym(name)

    def visit(self, name, value):
        self._open("value", name)
        self.owner.values.generic(value)
        self.p.end_line()

    def visit_enum(self, name, descriptor, value):
        self._open("enum", name)
        self.p.val(descriptor)
        self.p.sym(value)
        self.p.end_line()

    def visit_annotation(self, name, descriptor):
        self._open("annotation", name)
        self.p.val(descriptor)
        self.p.indent()
        return self.owner.annotation_printer

    def visit_array(self, name):
        self._open("array", name)
        self.p.indent()
        return self.owner.nameless_annotation_printer

    def visit_end(self):
        self.p.unindent()
        self.p.end_line()


class _ModulePrinter(ModuleVisitor):
    def __init__(self, p: SExpPrinter):
        super().__init__()
        self.p = p

    def visit_main_class(self, main_class):
        self.p.block("mainclass")
        self.p.sym(main_class)
        self.p.end_line()

    def visit_package(self, package):
        self.p.block("package")
        self.p.sym(package)
        self.p.end_line()

    def visit_require(self, module, access, version):
        self.p.block("require")
        self.p.sym(module)
        _flags(self.p, access, op.REQUIRE_FLAGS)
        self.p.val(version)
        self.p.end_line()

    def visit_export(self, package, access, modules):
        self._package_entry("export", package, access, modules)

    def visit_open(self, package, access, modules):
        self._package_entry("open", package, access, modules)

    def _package_entry(self, keyword, package, access, modules):
        self.p.block(keyword)
        self.p.sym(package)
        _flags(self.p, access, op.EXPORT_FLAGS)
        self.p.syms(modules)
        self.p.end_line()

    def visit_use(self, service):
        self.p.block("use")
        self.p.sym(service)
        self.p.end_line()

    def visit_provide(self, service, providers):
        self.p.block("provide")
        self.p.sym(service)
        self.p.syms(providers)
        self.p.end_line()

    def visit_end(self):
        self.p.unindent()
        self.p.end_line()


class _FieldPrinter(FieldVisitor):
    def __init__(self, owner: "ClassPrinter"):
        super().__init__()
        self.owner = owner

    def visit_annotation(self, descriptor, visible):
        return self.owner.visit_annotation(descriptor, visible)

    def visit_type_annotation(self, type_ref, type_path, descriptor, visible):
        return self.owner.visit_type_annotation(type_ref, type_path, descriptor, visible)

    def visit_attribute(self, attribute):
        self.owner.visit_attribute(attribute)

    def visit_end(self):
        self.owner.p.unindent()
        self.owner.p.end_line()


class _MethodPrinter(MethodVisitor):
    def __init__(self, owner: "ClassPrinter"):
        super().__init__()
        self.owner = owner
        self.p = owner.p
        self.labels: Dict[Label, str] = {}
        self.has_code = False

    def _label(self, label: Label) -> None:
        name = self.labels.get(label)
        if name is None:
            name = f"L{len(self.labels)}"
            self.labels[label] = name
        self.p.sym(name)

    def _labels(self, labels: Sequence[Label]) -> None:
        self.p.begin()
        for label in labels:
            self._label(label)
        self.p.end()

    def _simple(self, keyword: str, *values) -> None:
        self.p.block(keyword)
        for value in values:
            self.p.val(value)
        self.p.end_line()

    # --- METHOD METADATA ---

    def visit_parameter(self, name, access):
        self.p.block("param")
        self.p.sym(name)
        _flags(self.p, access, op.PARAM_FLAGS)
        self.p.end_line()

    def visit_annotation_default(self):
        self.p.block("default")
        self.p.indent()
        return self.owner.nameless_annotation_printer

    def visit_annotation(self, descriptor, visible):
        return self.owner.visit_annotation(descriptor, visible)

    def visit_type_annotation(self, type_ref, type_path, descriptor, visible):
        return self.owner.visit_type_annotation(type_ref, type_path, descriptor, visible)

    def visit_annotable_parameter_count(self, count, visible):
        self._simple("annotable-param-count", count, visible)

    def visit_parameter_annotation(self, parameter, descriptor, visible):
        self.p.block("param-annotation")
        self.p.val(parameter)
        self.p.val(descriptor)
        self.p.val(visible)
        self.p.indent()
        return self.owner.annotation_printer

    def visit_attribute(self, attribute):
        self.owner.visit_attribute(attribute)

    # --- CODE ---

    def visit_code(self):
        self.has_code = True
        self.p.block("code")
        self.p.indent()

    def _frame_items(self, count: int, items: Sequence) -> None:
        p = self.p
        p.begin()
        for item in list(items or ())[:count]:
            if item is None or isinstance(item, str):
                p.val(item)
            elif isinstance(item, Label):
                self._label(item)
            elif item in op.ITEM_NAMES:
                p.sym(op.ITEM_NAMES[item])
            else:
                raise ValueError(f"Invalid frame item {item!r}")
        p.end()

    def visit_frame(self, frame_type, num_local, local, num_stack, stack):
        self.p.block("frame")
        self.p.sym(op.FRAME_NAMES[frame_type])
        self._frame_items(num_local, local)
        self._frame_items(num_stack, stack)
        self.p.end_line()

    def visit_insn(self, opcode):
        self.p.block(op.OPCODES[opcode])
        self.p.end_line()

    def visit_int_insn(self, opcode, operand):
        self.p.block(op.OPCODES[opcode])
        if opcode == op.NEWARRAY:
            self.p.sym(op.ARRAY_TAGS[operand])
        else:
            self.p.val(operand)
        self.p.end_line()

    def visit_var_insn(self, opcode, var):
        self._simple(op.OPCODES[opcode], var)

    def visit_type_insn(self, opcode, type_name):
        self.p.block(op.OPCODES[opcode])
        if opcode in (op.NEW, op.ANEWARRAY):
            self.p.sym(type_name)
        else:
            self.p.val(type_name)
        self.p.end_line()

    def visit_field_insn(self, opcode, owner, name, descriptor):
        self.p.block(op.OPCODES[opcode])
        self.p.sym(owner)
        self.p.sym(name)
        self.p.val(descriptor)
        self.p.end_line()

    def visit_method_insn(self, opcode, owner, name, descriptor, is_interface):
        self.visit_field_insn(opcode, owner, name, descriptor)

    def visit_invoke_dynamic_insn(self, name, descriptor, bootstrap, arguments):
        p = self.p
        p.block("invokedynamic")
        p.sym(name)
        p.val(descriptor)
        p.indent()
        self.owner.values.handle(bootstrap)
        p.new_line()
        self.owner.values.generics(arguments)
        p.unindent()
        p.end_line()

    def visit_jump_insn(self, opcode, label):
        self.p.block(op.OPCODES[opcode])
        self._label(label)
        self.p.end_line()

    def visit_label(self, label):
        self.p.block("label")
        self._label(label)
        self.p.end_line()

    def visit_ldc_insn(self, value):
        self.p.block("ldc")
        self.owner.values.generic(value)
        self.p.end_line()

    def visit_iinc_insn(self, var, increment):
        self._simple("iinc", var, increment)

    def visit_table_switch_insn(self, low, high, default, labels):
        self.p.block("tableswitch")
        self.p.val(low)
        self.p.val(high)
        self._label(default)
        self._labels(labels)
        self.p.end_line()

    def visit_lookup_switch_insn(self, default, keys, labels):
        p = self.p
        p.block("lookupswitch")
        self._label(default)
        p.begin()
        for key, label in zip(keys, labels):
            p.begin()
            p.val(key)
            self._label(label)
            p.end()
        p.end()
        p.end_line()

    def visit_multi_anew_array_insn(self, descriptor, dimensions):
        self._simple("multianewarray", descriptor, dimensions)

    def visit_insn_annotation(self, type_ref, type_path, descriptor, visible):
        return self.owner.type_annotation("insn-annotation", type_ref, type_path, descriptor, visible)

    def visit_try_catch_block(self, start, end, handler, type_name):
        self.p.block("try-catch")
        self._label(start)
        self._label(end)
        self._label(handler)
        self.p.val(type_name)
        self.p.end_line()

    def visit_try_catch_annotation(self, type_ref, type_path, descriptor, visible):
        return self.owner.type_annotation("try-catch-annotation", type_ref, type_path, descriptor, visible)

    def visit_local_variable(self, name, descriptor, signature, start, end, index):
        self.p.block("local")
        self.p.sym(name)
        self.p.val(descriptor)
        self.p.val(signature)
        self._label(start)
        self._label(end)
        self.p.val(index)
        self.p.end_line()

    def visit_local_variable_annotation(self, type_ref, type_path, start, end, index, descriptor, visible):
        p = self.p
        p.block("local-annotation")
        p.val(type_ref)
        p.val(_type_path(type_path))
        self._labels(start)
        self._labels(end)
        p.begin()
        for i in index:
            p.val(i)
        p.end()
        p.val(descriptor)
        p.val(visible)
        p.indent()
        return self.owner.annotation_printer

    def visit_line_number(self, line, start):
        self.p.block("line")
        self.p.val(line)
        self._label(start)
        self.p.end_line()

    def visit_maxs(self, max_stack, max_locals):
        self._simple("maxs", max_stack, max_locals)

    def visit_end(self):
        if self.has_code:
            self.p.unindent()
            self.p.end_line()
        self.p.unindent()
        self.p.end_line()


class ClassPrinter(ClassVisitor, ClassOutput):
    """Prints every visited class, one top-level form after another."""

    def __init__(self, out: IO[str]):
        super().__init__()
        self.out = out
        self.p = SExpPrinter(out)
        self.values = _ValuePrinter(self.p)
        self.annotation_printer = _AnnotationPrinter(self, True)
        self.nameless_annotation_printer = _AnnotationPrinter(self, False)
        self.field_printer = _FieldPrinter(self)
        self.module_printer = _ModulePrinter(self.p)

    def visit(self, version, access, name, signature, super_name, interfaces):
        p = self.p
        p.block("class")
        p.val(version)
        _flags(p, access, op.CLASS_FLAGS)
        p.sym(name)
        p.val(signature)
        p.sym(super_name)
        p.syms(interfaces)
        p.indent()

    def visit_source(self, source, debug):
        self.p.block("source")
        self.p.val(source)
        self.p.val(debug)
        self.p.end_line()

    def visit_module(self, name, access, version):
        self.p.block("module")
        self.p.sym(name)
        _flags(self.p, access, op.MODULE_FLAGS)
        self.p.val(version)
        self.p.indent()
        return self.module_printer

    def visit_outer_class(self, owner, name, descriptor):
        self.p.block("outer-class")
        self.p.val(owner)
        self.p.sym(name)
        self.p.val(descriptor)
        self.p.end_line()

    def visit_annotation(self, descriptor, visible):
        self.p.block("annotation")
        self.p.val(descriptor)
        self.p.val(visible)
        self.p.indent()
        return self.annotation_printer

    def type_annotation(self, keyword, type_ref, type_path, descriptor, visible) -> AnnotationVisitor:
        self.p.block(keyword)
        self.p.val(type_ref)
        self.p.val(_type_path(type_path))
        self.p.val(descriptor)
        self.p.val(visible)
        self.p.indent()
        return self.annotation_printer

    def visit_type_annotation(self, type_ref, type_path, descriptor, visible):
        return self.type_annotation("type-annotation", type_ref, type_path, descriptor, visible)

    def visit_attribute(self, attribute):
        # contents are not representable in text
        self.p.block("attribute")
        self.p.end_line()

    def visit_inner_class(self, name, outer_name, inner_name, access):
        self.p.block("inner-class")
        self.p.sym(name)
        self.p.sym(outer_name)
        self.p.sym(inner_name)
        _flags(self.p, access, op.INNER_FLAGS)
        self.p.end_line()

    def visit_field(self, access, name, descriptor, signature, value):
        p = self.p
        p.block("field")
        _flags(p, access, op.FIELD_FLAGS)
        p.sym(name)
        p.val(descriptor)
        p.val(signature)
        self.values.generic(value)
        p.indent()
        return self.field_printer

    def visit_method(self, access, name, descriptor, signature, exceptions):
        p = self.p
        p.block("method")
        _flags(p, access, op.METHOD_FLAGS)
        p.sym(name)
        p.val(descriptor)
        p.val(signature)
        p.syms(exceptions)
        p.indent()
        return _MethodPrinter(self)

    def visit_end(self):
        self.p.unindent()
        self.p.end_line()
        self.p.flush()

    def write(self) -> ClassVisitor:
        return self

    def close(self) -> None:
        self.p.close()
        self.out.close()
