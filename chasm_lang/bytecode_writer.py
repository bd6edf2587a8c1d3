"""Class visitor that assembles class-file bytes."""

import struct
from typing import Dict, List, Optional, Set, Tuple

from . import opcodes as op
from .analysis import compute_maxs
from .constant_pool import ConstantPool, encode_modified_utf8
from .descriptors import arguments_size, parse_method_descriptor
from .exceptions import ClassFormatError
from .models import (
    Attribute,
    Boolean,
    Byte,
    Char,
    Double,
    Float,
    Int,
    IntArray,
    Label,
    Long,
    Short,
    TypePath,
    TypeRef,
)
from .visitor import AnnotationVisitor, ClassVisitor, FieldVisitor, MethodVisitor, ModuleVisitor

MAGIC = 0xCAFEBABE

# target_info layouts keyed by the type reference sort
_TARGET_TYPE_INDEX = frozenset([0x00, 0x01, 0x16])
_TARGET_EMPTY = frozenset([0x13, 0x14, 0x15])
_TARGET_INDEX = frozenset([0x10, 0x11, 0x12, 0x17, 0x42])
_TARGET_OFFSET = frozenset([0x43, 0x44, 0x45, 0x46])
_TARGET_OFFSET_ARG = frozenset([0x47, 0x48, 0x49, 0x4A, 0x4B])

_PRIMITIVE_ELEMENT_TAGS = {Boolean: "Z", Byte: "B", Char: "C", Short: "S", Int: "I"}


def _invert_jump(opcode: int) -> int:
    """Conditional jump with the opposite test, e.g. ifeq for ifne."""
    if opcode in (op.IFNULL, op.IFNONNULL):
        return op.IFNULL + op.IFNONNULL - opcode
    return opcode + 1 if (opcode - op.IFEQ) % 2 == 0 else opcode - 1


def u1(v: int) -> bytes:
    return struct.pack(">B", v)


def u2(v: int) -> bytes:
    return struct.pack(">H", v)


def u4(v: int) -> bytes:
    return struct.pack(">I", v)


def type_path_bytes(type_path: Optional[TypePath]) -> bytes:
    steps = type_path.steps if type_path is not None else ()
    out = bytearray(u1(len(steps)))
    for kind, arg in steps:
        out += u1(kind) + u1(arg)
    return bytes(out)


def type_target_bytes(type_ref: int, offset: int = 0) -> bytes:
    """Encode the target_type and target_info of a type annotation."""
    sort = (type_ref >> 24) & 0xFF
    if sort in _TARGET_TYPE_INDEX:
        return u1(sort) + u1((type_ref >> 16) & 0xFF)
    if sort in _TARGET_EMPTY:
        return u1(sort)
    if sort in _TARGET_INDEX:
        return u1(sort) + u2((type_ref >> 8) & 0xFFFF)
    if sort in _TARGET_OFFSET:
        return u1(sort) + u2(offset)
    if sort in _TARGET_OFFSET_ARG:
        return u1(sort) + u2(offset) + u1(type_ref & 0xFF)
    raise ClassFormatError(f"Unsupported type annotation target 0x{sort:02x}")


class _AnnotationWriter(AnnotationVisitor):
    """Appends element values to a shared buffer and patches the pair count at the end."""

    def __init__(self, pool: ConstantPool, named: bool, out: bytearray, count_offset: int):
        super().__init__()
        self.pool = pool
        self.named = named
        self.out = out
        self.count_offset = count_offset
        self.count = 0

    def _name(self, name: Optional[str]) -> None:
        self.count += 1
        if self.named:
            self.out += u2(self.pool.add_utf8(name))

    def _const(self, tag: str, idx: int) -> None:
        self.out += tag.encode("ascii") + u2(idx)

    def visit(self, name, value):
        self._name(name)
        pool = self.pool
        if isinstance(value, str):
            self._const("s", pool.add_utf8(value))
        elif type(value) in _PRIMITIVE_ELEMENT_TAGS:
            self._const(_PRIMITIVE_ELEMENT_TAGS[type(value)], pool.add_constant(value))
        elif isinstance(value, Long):
            self._const("J", pool.add_long(value.value))
        elif isinstance(value, Float):
            self._const("F", pool.add_float(value.value))
        elif isinstance(value, Double):
            self._const("D", pool.add_double(value.value))
        elif isinstance(value, TypeRef):
            self._const("c", pool.add_utf8(value.descriptor))
        elif isinstance(value, IntArray):
            self.out += b"[" + u2(len(value.values))
            for x in value.values:
                self._const("I", pool.add_integer(x))
        else:
            raise ClassFormatError(f"Unsupported annotation value {value!r}")

    def visit_enum(self, name, descriptor, value):
        self._name(name)
        self.out += b"e" + u2(self.pool.add_utf8(descriptor)) + u2(self.pool.add_utf8(value))

    def visit_annotation(self, name, descriptor):
        self._name(name)
        self.out += b"@" + u2(self.pool.add_utf8(descriptor))
        offset = len(self.out)
        self.out += u2(0)
        return _AnnotationWriter(self.pool, True, self.out, offset)

    def visit_array(self, name):
        self._name(name)
        self.out += b"["
        offset = len(self.out)
        self.out += u2(0)
        return _AnnotationWriter(self.pool, False, self.out, offset)

    def visit_end(self):
        self.out[self.count_offset : self.count_offset + 2] = u2(self.count)


class _Annotations:
    """Visible and invisible annotations and type annotations of one element."""

    def __init__(self, pool: ConstantPool):
        self.pool = pool
        self.plain: Dict[bool, List[bytearray]] = {True: [], False: []}
        self.typed: Dict[bool, List[Tuple[bytes, bytearray]]] = {True: [], False: []}

    def annotation(self, descriptor: str, visible: bool) -> AnnotationVisitor:
        buf = bytearray(u2(self.pool.add_utf8(descriptor)) + u2(0))
        self.plain[visible].append(buf)
        return _AnnotationWriter(self.pool, True, buf, 2)

    def type_annotation(self, target: bytes, type_path, descriptor: str, visible: bool) -> AnnotationVisitor:
        buf = bytearray(type_path_bytes(type_path) + u2(self.pool.add_utf8(descriptor)))
        offset = len(buf)
        buf += u2(0)
        self.typed[visible].append((target, buf))
        return _AnnotationWriter(self.pool, True, buf, offset)

    def attributes(self, out: "_AttributeList") -> None:
        for visible, prefix in ((True, "RuntimeVisible"), (False, "RuntimeInvisible")):
            if self.plain[visible]:
                out.add(f"{prefix}Annotations", u2(len(self.plain[visible])) + b"".join(self.plain[visible]))
        for visible, prefix in ((True, "RuntimeVisible"), (False, "RuntimeInvisible")):
            if self.typed[visible]:
                body = b"".join(target + bytes(buf) for target, buf in self.typed[visible])
                out.add(f"{prefix}TypeAnnotations", u2(len(self.typed[visible])) + body)


class _AttributeList:
    def __init__(self, pool: ConstantPool):
        self.pool = pool
        self.items: List[bytes] = []

    def add(self, name: str, data: bytes) -> None:
        self.items.append(u2(self.pool.add_utf8(name)) + u4(len(data)) + bytes(data))

    def add_custom(self, attribute: Optional[Attribute]) -> None:
        if attribute is not None:
            self.add(attribute.name, attribute.data)

    def to_bytes(self) -> bytes:
        return u2(len(self.items)) + b"".join(self.items)


def _common_attributes(out: _AttributeList, access: int, signature_idx: int, version: int) -> None:
    if access & op.ACC_SYNTHETIC and (version & 0xFFFF) < 49:
        out.add("Synthetic", b"")
    if signature_idx:
        out.add("Signature", u2(signature_idx))
    if access & op.ACC_DEPRECATED:
        out.add("Deprecated", b"")


def _access_bits(access: int, version: int) -> int:
    access &= 0xFFFF
    if (version & 0xFFFF) < 49:
        access &= ~op.ACC_SYNTHETIC
    return access


class _FieldWriter(FieldVisitor):
    def __init__(self, cw: "ClassWriter", access, name, descriptor, signature, value):
        super().__init__()
        pool = cw.pool
        self.cw = cw
        self.access = access
        self.name_idx = pool.add_utf8(name)
        self.desc_idx = pool.add_utf8(descriptor)
        self.signature_idx = pool.add_utf8(signature) if signature is not None else 0
        self.value_idx = pool.add_constant(value) if value is not None else 0
        self.annotations = _Annotations(pool)
        self.custom: List[Attribute] = []

    def visit_annotation(self, descriptor, visible):
        return self.annotations.annotation(descriptor, visible)

    def visit_type_annotation(self, type_ref, type_path, descriptor, visible):
        return self.annotations.type_annotation(type_target_bytes(type_ref), type_path, descriptor, visible)

    def visit_attribute(self, attribute):
        if attribute is not None:
            self.custom.append(attribute)

    def to_bytes(self) -> bytes:
        version = self.cw.version
        attrs = _AttributeList(self.cw.pool)
        if self.value_idx:
            attrs.add("ConstantValue", u2(self.value_idx))
        _common_attributes(attrs, self.access, self.signature_idx, version)
        self.annotations.attributes(attrs)
        for attribute in self.custom:
            attrs.add_custom(attribute)
        return u2(_access_bits(self.access, version)) + u2(self.name_idx) + u2(self.desc_idx) + attrs.to_bytes()


class _MethodWriter(MethodVisitor):
    def __init__(self, cw: "ClassWriter", access, name, descriptor, signature, exceptions):
        super().__init__()
        pool = cw.pool
        self.cw = cw
        self.pool = pool
        self.access = access
        self.name = name
        self.descriptor = descriptor
        self.name_idx = pool.add_utf8(name)
        self.desc_idx = pool.add_utf8(descriptor)
        self.signature_idx = pool.add_utf8(signature) if signature is not None else 0
        self.exceptions = [pool.add_class(e) for e in exceptions or ()]
        self.parameters: List[Tuple[int, int]] = []
        self.default: Optional[bytearray] = None
        self.annotations = _Annotations(pool)
        self.annotable_counts: Dict[bool, int] = {}
        self.parameter_annotations: Dict[bool, Dict[int, List[bytearray]]] = {True: {}, False: {}}
        self.custom: List[Attribute] = []

        self.has_code = False
        self.records: List[tuple] = []
        # indices of jump records encoded with a 32-bit offset
        self.wide_jumps: Set[int] = set()
        self.last_insn = -1
        self.try_catch: List[Tuple[Label, Label, Label, int]] = []
        self.lines: List[Tuple[int, Label]] = []
        self.locals: List[Tuple[int, int, Optional[int], Label, Label, int]] = []
        self.max_stack = 0
        self.max_locals = 0
        self.code_annotations: Dict[bool, List[tuple]] = {True: [], False: []}
        self.code_custom: List[Attribute] = []
        self.code: Optional[bytes] = None

    # --- METHOD METADATA ---

    def visit_parameter(self, name, access):
        self.parameters.append((self.pool.add_utf8(name) if name is not None else 0, access))

    def visit_annotation_default(self):
        self.default = bytearray()
        return _DefaultWriter(self)

    def visit_annotation(self, descriptor, visible):
        return self.annotations.annotation(descriptor, visible)

    def visit_type_annotation(self, type_ref, type_path, descriptor, visible):
        return self.annotations.type_annotation(type_target_bytes(type_ref), type_path, descriptor, visible)

    def visit_annotable_parameter_count(self, count, visible):
        self.annotable_counts[visible] = count

    def visit_parameter_annotation(self, parameter, descriptor, visible):
        buf = bytearray(u2(self.pool.add_utf8(descriptor)) + u2(0))
        self.parameter_annotations[visible].setdefault(parameter, []).append(buf)
        return _AnnotationWriter(self.pool, True, buf, 2)

    def visit_attribute(self, attribute):
        if attribute is None:
            return
        if self.has_code:
            self.code_custom.append(attribute)
        else:
            self.custom.append(attribute)

    # --- CODE ---

    def _emit(self, record: tuple) -> None:
        self.last_insn = len(self.records)
        self.records.append(record)

    def visit_code(self):
        self.has_code = True

    def visit_frame(self, frame_type, num_local, local, num_stack, stack):
        self.records.append(("frame", None, frame_type, list(local or ())[:num_local], list(stack or ())[:num_stack]))

    def visit_insn(self, opcode):
        self._emit(("insn", opcode))

    def visit_int_insn(self, opcode, operand):
        self._emit(("int", opcode, operand))

    def visit_var_insn(self, opcode, var):
        self._emit(("var", opcode, var))

    def visit_type_insn(self, opcode, type_name):
        self._emit(("type", opcode, self.pool.add_class(type_name)))

    def visit_field_insn(self, opcode, owner, name, descriptor):
        self._emit(("field", opcode, self.pool.add_fieldref(owner, name, descriptor), descriptor))

    def visit_method_insn(self, opcode, owner, name, descriptor, is_interface):
        idx = self.pool.add_methodref(owner, name, descriptor, is_interface)
        self._emit(("method", opcode, idx, descriptor))

    def visit_invoke_dynamic_insn(self, name, descriptor, bootstrap, arguments):
        idx = self.pool.add_invoke_dynamic(name, descriptor, bootstrap, arguments or ())
        self._emit(("indy", op.INVOKEDYNAMIC, idx, descriptor))

    def visit_jump_insn(self, opcode, label):
        self._emit(("jump", opcode, label))

    def visit_label(self, label):
        self.records.append(("label", None, label))

    def visit_ldc_insn(self, value):
        idx = self.pool.add_constant(value)
        self._emit(("ldc", op.LDC, idx, self.pool.is_wide(idx)))

    def visit_iinc_insn(self, var, increment):
        self._emit(("iinc", op.IINC, var, increment))

    def visit_table_switch_insn(self, low, high, default, labels):
        self._emit(("tableswitch", op.TABLESWITCH, low, high, default, list(labels)))

    def visit_lookup_switch_insn(self, default, keys, labels):
        self._emit(("lookupswitch", op.LOOKUPSWITCH, default, list(keys), list(labels)))

    def visit_multi_anew_array_insn(self, descriptor, dimensions):
        self._emit(("multianewarray", op.MULTIANEWARRAY, self.pool.add_class(descriptor), dimensions))

    def _code_annotation(self, visible, entry, type_path, descriptor) -> AnnotationVisitor:
        buf = bytearray(type_path_bytes(type_path) + u2(self.pool.add_utf8(descriptor)))
        offset = len(buf)
        buf += u2(0)
        self.code_annotations[visible].append(entry + (buf,))
        return _AnnotationWriter(self.pool, True, buf, offset)

    def visit_insn_annotation(self, type_ref, type_path, descriptor, visible):
        if self.last_insn < 0:
            raise ClassFormatError(f"Instruction annotation before any instruction in {self.name}")
        return self._code_annotation(visible, ("insn", type_ref, self.last_insn), type_path, descriptor)

    def visit_try_catch_block(self, start, end, handler, type_name):
        type_idx = self.pool.add_class(type_name) if type_name is not None else 0
        self.try_catch.append((start, end, handler, type_idx))

    def visit_try_catch_annotation(self, type_ref, type_path, descriptor, visible):
        return self._code_annotation(visible, ("fixed", type_target_bytes(type_ref)), type_path, descriptor)

    def visit_local_variable(self, name, descriptor, signature, start, end, index):
        sig_idx = self.pool.add_utf8(signature) if signature is not None else None
        self.locals.append((self.pool.add_utf8(name), self.pool.add_utf8(descriptor), sig_idx, start, end, index))
        if self.cw.compute_maxs:
            size = 2 if descriptor[:1] in ("J", "D") else 1
            self.max_locals = max(self.max_locals, index + size)

    def visit_local_variable_annotation(self, type_ref, type_path, start, end, index, descriptor, visible):
        entry = ("locals", type_ref, list(start), list(end), list(index))
        return self._code_annotation(visible, entry, type_path, descriptor)

    def visit_line_number(self, line, start):
        self.lines.append((line, start))

    def visit_maxs(self, max_stack, max_locals):
        if not self.cw.compute_maxs:
            self.max_stack = max_stack
            self.max_locals = max_locals

    def visit_end(self):
        if self.has_code and self.records:
            self.code = self._assemble()

    # --- ASSEMBLY ---

    def _size(self, record: tuple, pos: int, wide: bool = False) -> int:
        kind = record[0]
        if kind in ("label", "frame"):
            return 0
        if kind == "jump" and wide:
            # goto_w/jsr_w, or an inverted conditional skipping over a goto_w
            return 5 if record[1] in (op.GOTO, op.JSR) else 8
        if kind == "insn":
            return 1
        if kind == "int":
            return 3 if record[1] == op.SIPUSH else 2
        if kind == "var":
            var = record[2]
            if var < 4 and record[1] != op.RET:
                return 1
            return 4 if var > 255 else 2
        if kind == "iinc":
            var, inc = record[2], record[3]
            return 6 if var > 255 or not -128 <= inc <= 127 else 3
        if kind == "ldc":
            return 3 if record[3] or record[2] > 255 else 2
        if kind in ("method", "indy"):
            return 5 if record[1] in (op.INVOKEINTERFACE, op.INVOKEDYNAMIC) else 3
        if kind == "multianewarray":
            return 4
        if kind == "tableswitch":
            return 1 + (3 - pos) % 4 + 12 + 4 * len(record[5])
        if kind == "lookupswitch":
            return 1 + (3 - pos) % 4 + 8 + 8 * len(record[3])
        return 3

    def _place(self) -> Tuple[List[int], Dict[Label, int], int]:
        offsets = []
        label_offsets: Dict[Label, int] = {}
        pos = 0
        for i, record in enumerate(self.records):
            offsets.append(pos)
            if record[0] == "label":
                label_offsets[record[2]] = pos
            pos += self._size(record, pos, i in self.wide_jumps)
        return offsets, label_offsets, pos

    def _layout(self) -> Tuple[List[int], Dict[Label, int], int]:
        """Place every record, widening jumps whose offset does not fit in 16 bits.

        Widening only grows the code, so jumps are re-checked until none is added.
        """
        while True:
            offsets, labels, length = self._place()
            grown = False
            for i, record in enumerate(self.records):
                if record[0] != "jump" or i in self.wide_jumps:
                    continue
                delta = self._resolve(labels, record[2]) - offsets[i]
                if not -32768 <= delta <= 32767:
                    self.wide_jumps.add(i)
                    grown = True
            if not grown:
                return offsets, labels, length

    def _resolve(self, labels: Dict[Label, int], label: Label) -> int:
        try:
            return labels[label]
        except KeyError:
            raise ClassFormatError(f"Undefined label in method {self.name}") from None

    def _branch(self, labels, label, pos: int, wide: bool = False) -> bytes:
        delta = self._resolve(labels, label) - pos
        return struct.pack(">i" if wide else ">h", delta)

    def _encode(self, index: int, record: tuple, pos: int, labels: Dict[Label, int]) -> bytes:
        kind, opcode = record[0], record[1]
        if kind in ("label", "frame"):
            return b""
        if kind == "insn":
            return u1(opcode)
        if kind == "int":
            if opcode == op.SIPUSH:
                return u1(opcode) + struct.pack(">h", record[2])
            if opcode == op.BIPUSH:
                return u1(opcode) + struct.pack(">b", record[2])
            return u1(opcode) + u1(record[2])
        if kind == "var":
            var = record[2]
            if var < 4 and opcode != op.RET:
                base = op.ILOAD_0 + ((opcode - op.ILOAD) << 2) if opcode < op.ISTORE else op.ISTORE_0 + ((opcode - op.ISTORE) << 2)
                return u1(base + var)
            if var > 255:
                return u1(op.WIDE) + u1(opcode) + u2(var)
            return u1(opcode) + u1(var)
        if kind == "iinc":
            var, inc = record[2], record[3]
            if var > 255 or not -128 <= inc <= 127:
                return u1(op.WIDE) + u1(op.IINC) + u2(var) + struct.pack(">h", inc)
            return u1(op.IINC) + u1(var) + struct.pack(">b", inc)
        if kind == "ldc":
            idx, wide = record[2], record[3]
            if wide:
                return u1(op.LDC2_W) + u2(idx)
            if idx > 255:
                return u1(op.LDC_W) + u2(idx)
            return u1(op.LDC) + u1(idx)
        if kind in ("type", "field"):
            return u1(opcode) + u2(record[2])
        if kind == "method":
            if opcode == op.INVOKEINTERFACE:
                return u1(opcode) + u2(record[2]) + u1(1 + arguments_size(record[3])) + u1(0)
            return u1(opcode) + u2(record[2])
        if kind == "indy":
            return u1(opcode) + u2(record[2]) + u2(0)
        if kind == "jump":
            if index not in self.wide_jumps:
                return u1(opcode) + self._branch(labels, record[2], pos)
            if opcode in (op.GOTO, op.JSR):
                return u1(opcode - op.GOTO + op.GOTO_W) + self._branch(labels, record[2], pos, True)
            skip = u1(_invert_jump(opcode)) + struct.pack(">h", 8)
            return skip + u1(op.GOTO_W) + self._branch(labels, record[2], pos + 3, True)
        if kind == "multianewarray":
            return u1(opcode) + u2(record[2]) + u1(record[3])
        padding = b"\0" * ((3 - pos) % 4)
        if kind == "tableswitch":
            low, high, default, targets = record[2], record[3], record[4], record[5]
            out = u1(opcode) + padding + self._branch(labels, default, pos, True)
            out += struct.pack(">ii", low, high)
            return out + b"".join(self._branch(labels, t, pos, True) for t in targets)
        default, keys, targets = record[2], record[3], record[4]
        out = u1(opcode) + padding + self._branch(labels, default, pos, True) + struct.pack(">i", len(keys))
        for key, target in zip(keys, targets):
            out += struct.pack(">i", key) + self._branch(labels, target, pos, True)
        return out

    def _verification_type(self, item, labels: Dict[Label, int]) -> bytes:
        if isinstance(item, str):
            return u1(7) + u2(self.pool.add_class(item))
        if isinstance(item, Label):
            return u1(8) + u2(self._resolve(labels, item))
        if item is None:
            return u1(op.TOP)
        return u1(item)

    def _stack_map(self, offsets: List[int], labels: Dict[Label, int]) -> Optional[bytes]:
        entries = []
        previous = -1
        for record, offset in zip(self.records, offsets):
            if record[0] != "frame":
                continue
            frame_type, local, stack = record[2], record[3], record[4]
            delta = offset - previous - 1
            if delta < 0:
                raise ClassFormatError(f"Two frames at offset {offset} in method {self.name}")
            previous = offset
            vt = lambda items: b"".join(self._verification_type(i, labels) for i in items)
            if frame_type == op.F_SAME:
                entry = u1(delta) if delta < 64 else u1(251) + u2(delta)
            elif frame_type == op.F_SAME1:
                entry = (u1(64 + delta) if delta < 64 else u1(247) + u2(delta)) + vt(stack)
            elif frame_type == op.F_CHOP:
                entry = u1(251 - len(local)) + u2(delta)
            elif frame_type == op.F_APPEND:
                entry = u1(251 + len(local)) + u2(delta) + vt(local)
            else:
                entry = u1(255) + u2(delta) + u2(len(local)) + vt(local) + u2(len(stack)) + vt(stack)
            entries.append(entry)
        if not entries:
            return None
        return u2(len(entries)) + b"".join(entries)

    def _code_annotation_bytes(self, entry: tuple, offsets: List[int], labels: Dict[Label, int]) -> bytes:
        kind = entry[0]
        if kind == "fixed":
            return entry[1] + bytes(entry[2])
        if kind == "insn":
            return type_target_bytes(entry[1], offsets[entry[2]]) + bytes(entry[3])
        type_ref, start, end, index, buf = entry[1], entry[2], entry[3], entry[4], entry[5]
        target = bytearray(u1((type_ref >> 24) & 0xFF) + u2(len(start)))
        for s, e, i in zip(start, end, index):
            s_off = self._resolve(labels, s)
            target += u2(s_off) + u2(self._resolve(labels, e) - s_off) + u2(i)
        return bytes(target) + bytes(buf)

    def _assemble(self) -> bytes:
        offsets, labels, length = self._layout()
        code = bytearray()
        for i, (record, pos) in enumerate(zip(self.records, offsets)):
            code += self._encode(i, record, pos, labels)
        if length > 0xFFFF:
            raise ClassFormatError(f"Method {self.name} code too large")

        if self.cw.compute_maxs:
            handlers = [handler for _, _, handler, _ in self.try_catch]
            max_stack, max_locals = compute_maxs(self.records, self.access, self.descriptor, handlers)
            self.max_stack = max_stack
            self.max_locals = max(self.max_locals, max_locals)

        out = bytearray(u2(self.max_stack) + u2(self.max_locals) + u4(len(code)) + code)
        out += u2(len(self.try_catch))
        for start, end, handler, type_idx in self.try_catch:
            out += u2(self._resolve(labels, start)) + u2(self._resolve(labels, end))
            out += u2(self._resolve(labels, handler)) + u2(type_idx)

        attrs = _AttributeList(self.pool)
        if self.lines:
            table = b"".join(u2(self._resolve(labels, label)) + u2(line) for line, label in self.lines)
            attrs.add("LineNumberTable", u2(len(self.lines)) + table)
        if self.locals:
            rows = []
            typed = []
            for name_idx, desc_idx, sig_idx, start, end, index in self.locals:
                s_off = self._resolve(labels, start)
                span = u2(s_off) + u2(self._resolve(labels, end) - s_off)
                rows.append(span + u2(name_idx) + u2(desc_idx) + u2(index))
                if sig_idx is not None:
                    typed.append(span + u2(name_idx) + u2(sig_idx) + u2(index))
            attrs.add("LocalVariableTable", u2(len(rows)) + b"".join(rows))
            if typed:
                attrs.add("LocalVariableTypeTable", u2(len(typed)) + b"".join(typed))
        stack_map = self._stack_map(offsets, labels)
        if stack_map is not None:
            attrs.add("StackMapTable", stack_map)
        for visible, prefix in ((True, "RuntimeVisible"), (False, "RuntimeInvisible")):
            entries = self.code_annotations[visible]
            if entries:
                body = b"".join(self._code_annotation_bytes(e, offsets, labels) for e in entries)
                attrs.add(f"{prefix}TypeAnnotations", u2(len(entries)) + body)
        for attribute in self.code_custom:
            attrs.add_custom(attribute)
        return bytes(out + attrs.to_bytes())

    def _parameter_annotations(self, attrs: _AttributeList) -> None:
        for visible, prefix in ((True, "RuntimeVisible"), (False, "RuntimeInvisible")):
            by_param = self.parameter_annotations[visible]
            if not by_param and visible not in self.annotable_counts:
                continue
            count = self.annotable_counts.get(visible)
            if count is None:
                count = len(parse_method_descriptor(self.descriptor)[0])
            count = max([count] + [p + 1 for p in by_param])
            body = bytearray(u1(count))
            for param in range(count):
                annotations = by_param.get(param, [])
                body += u2(len(annotations)) + b"".join(annotations)
            attrs.add(f"{prefix}ParameterAnnotations", body)

    def to_bytes(self) -> bytes:
        version = self.cw.version
        attrs = _AttributeList(self.pool)
        if self.code is not None:
            attrs.add("Code", self.code)
        if self.exceptions:
            attrs.add("Exceptions", u2(len(self.exceptions)) + b"".join(u2(e) for e in self.exceptions))
        _common_attributes(attrs, self.access, self.signature_idx, version)
        self.annotations.attributes(attrs)
        if self.default is not None:
            attrs.add("AnnotationDefault", self.default)
        self._parameter_annotations(attrs)
        if self.parameters:
            body = u1(len(self.parameters)) + b"".join(u2(n) + u2(a) for n, a in self.parameters)
            attrs.add("MethodParameters", body)
        for attribute in self.custom:
            attrs.add_custom(attribute)
        return u2(_access_bits(self.access, version)) + u2(self.name_idx) + u2(self.desc_idx) + attrs.to_bytes()


class _DefaultWriter(_AnnotationWriter):
    """Writes the single nameless element value of an annotation default."""

    def __init__(self, mw: _MethodWriter):
        super().__init__(mw.pool, False, mw.default, -1)

    def visit_end(self):
        pass


class _ModuleWriter(ModuleVisitor):
    def __init__(self, pool: ConstantPool, name: str, access: int, version: Optional[str]):
        super().__init__()
        self.pool = pool
        self.header = u2(pool.add_module(name)) + u2(access) + u2(pool.add_utf8(version) if version else 0)
        self.requires: List[bytes] = []
        self.exports: List[bytes] = []
        self.opens: List[bytes] = []
        self.uses: List[bytes] = []
        self.provides: List[bytes] = []
        self.packages: List[int] = []
        self.main_class = 0

    def visit_main_class(self, main_class):
        self.main_class = self.pool.add_class(main_class)

    def visit_package(self, package):
        self.packages.append(self.pool.add_package(package))

    def visit_require(self, module, access, version):
        version_idx = self.pool.add_utf8(version) if version else 0
        self.requires.append(u2(self.pool.add_module(module)) + u2(access) + u2(version_idx))

    def _targets(self, package, access, modules) -> bytes:
        modules = modules or []
        out = u2(self.pool.add_package(package)) + u2(access) + u2(len(modules))
        return out + b"".join(u2(self.pool.add_module(m)) for m in modules)

    def visit_export(self, package, access, modules):
        self.exports.append(self._targets(package, access, modules))

    def visit_open(self, package, access, modules):
        self.opens.append(self._targets(package, access, modules))

    def visit_use(self, service):
        self.uses.append(u2(self.pool.add_class(service)))

    def visit_provide(self, service, providers):
        out = u2(self.pool.add_class(service)) + u2(len(providers))
        self.provides.append(out + b"".join(u2(self.pool.add_class(p)) for p in providers))

    def attributes(self, attrs: _AttributeList) -> None:
        body = bytearray(self.header)
        for table in (self.requires, self.exports, self.opens, self.uses, self.provides):
            body += u2(len(table)) + b"".join(table)
        attrs.add("Module", body)
        if self.packages:
            attrs.add("ModulePackages", u2(len(self.packages)) + b"".join(u2(p) for p in self.packages))
        if self.main_class:
            attrs.add("ModuleMainClass", u2(self.main_class))


class ClassWriter(ClassVisitor):
    """Collects one class from visitor events; :meth:`to_bytes` returns the class file."""

    def __init__(self, compute_maxs: bool = False):
        super().__init__()
        self.compute_maxs = compute_maxs
        self.pool = ConstantPool()
        self.version = 0
        self.access = 0
        self.name = None
        self.this_class = 0
        self.super_class = 0
        self.interfaces: List[int] = []
        self.signature_idx = 0
        self.source_idx = 0
        self.debug: Optional[str] = None
        self.enclosing: Optional[Tuple[int, int]] = None
        self.annotations = _Annotations(self.pool)
        self.inner_classes: List[bytes] = []
        self.module: Optional[_ModuleWriter] = None
        self.custom: List[Attribute] = []
        self.fields: List[_FieldWriter] = []
        self.methods: List[_MethodWriter] = []
        self.complete = False

    def visit(self, version, access, name, signature, super_name, interfaces):
        pool = self.pool
        self.version = version
        self.access = access
        self.name = name
        self.this_class = pool.add_class(name)
        self.super_class = pool.add_class(super_name) if super_name is not None else 0
        self.interfaces = [pool.add_class(i) for i in interfaces or ()]
        self.signature_idx = pool.add_utf8(signature) if signature is not None else 0

    def visit_source(self, source, debug):
        if source is not None:
            self.source_idx = self.pool.add_utf8(source)
        self.debug = debug

    def visit_module(self, name, access, version):
        self.module = _ModuleWriter(self.pool, name, access, version)
        return self.module

    def visit_outer_class(self, owner, name, descriptor):
        nat = self.pool.add_name_and_type(name, descriptor) if name is not None and descriptor is not None else 0
        self.enclosing = (self.pool.add_class(owner), nat)

    def visit_annotation(self, descriptor, visible):
        return self.annotations.annotation(descriptor, visible)

    def visit_type_annotation(self, type_ref, type_path, descriptor, visible):
        return self.annotations.type_annotation(type_target_bytes(type_ref), type_path, descriptor, visible)

    def visit_attribute(self, attribute):
        if attribute is not None:
            self.custom.append(attribute)

    def visit_inner_class(self, name, outer_name, inner_name, access):
        pool = self.pool
        outer = pool.add_class(outer_name) if outer_name is not None else 0
        inner = pool.add_utf8(inner_name) if inner_name is not None else 0
        self.inner_classes.append(u2(pool.add_class(name)) + u2(outer) + u2(inner) + u2(access & 0xFFFF))

    def visit_field(self, access, name, descriptor, signature, value):
        fw = _FieldWriter(self, access, name, descriptor, signature, value)
        self.fields.append(fw)
        return fw

    def visit_method(self, access, name, descriptor, signature, exceptions):
        mw = _MethodWriter(self, access, name, descriptor, signature, exceptions)
        self.methods.append(mw)
        return mw

    def visit_end(self):
        self.complete = True

    def to_bytes(self) -> bytes:
        pool = self.pool
        body = bytearray()
        body += u2(_access_bits(self.access, self.version)) + u2(self.this_class) + u2(self.super_class)
        body += u2(len(self.interfaces)) + b"".join(u2(i) for i in self.interfaces)
        body += u2(len(self.fields)) + b"".join(f.to_bytes() for f in self.fields)
        body += u2(len(self.methods)) + b"".join(m.to_bytes() for m in self.methods)

        attrs = _AttributeList(pool)
        if self.source_idx:
            attrs.add("SourceFile", u2(self.source_idx))
        if self.debug is not None:
            attrs.add("SourceDebugExtension", encode_modified_utf8(self.debug))
        if self.enclosing is not None:
            attrs.add("EnclosingMethod", u2(self.enclosing[0]) + u2(self.enclosing[1]))
        _common_attributes(attrs, self.access, self.signature_idx, self.version)
        self.annotations.attributes(attrs)
        if self.inner_classes:
            attrs.add("InnerClasses", u2(len(self.inner_classes)) + b"".join(self.inner_classes))
        if self.module is not None:
            self.module.attributes(attrs)
        for attribute in self.custom:
            attrs.add_custom(attribute)
        if pool.bootstrap_methods:
            table = bytearray(u2(len(pool.bootstrap_methods)))
            for handle_idx, args in pool.bootstrap_methods:
                table += u2(handle_idx) + u2(len(args)) + b"".join(u2(a) for a in args)
            attrs.add("BootstrapMethods", table)
        body += attrs.to_bytes()

        out = bytearray(u4(MAGIC) + u2((self.version >> 16) & 0xFFFF) + u2(self.version & 0xFFFF))
        pool.write(out)
        return bytes(out + body)
