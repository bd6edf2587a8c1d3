"""Class-file parser that drives a :class:`ClassVisitor`."""

import struct
from typing import Dict, List, Optional, Tuple

from . import opcodes as op
from .constant_pool import ConstantPoolTag, decode_modified_utf8
from .descriptors import parse_method_descriptor
from .exceptions import ClassFormatError
from .models import (
    Attribute,
    Boolean,
    Byte,
    Char,
    Double,
    Float,
    Handle,
    Int,
    Label,
    Long,
    Short,
    TypePath,
    TypeRef,
)
from .visitor import AnnotationVisitor, ClassVisitor, MethodVisitor

MAGIC = 0xCAFEBABE

# attributes turned into visitor events; everything else is passed through as an Attribute
_CLASS_ATTRIBUTES = frozenset(
    [
        "SourceFile",
        "SourceDebugExtension",
        "Module",
        "ModulePackages",
        "ModuleMainClass",
        "EnclosingMethod",
        "Signature",
        "Deprecated",
        "Synthetic",
        "RuntimeVisibleAnnotations",
        "RuntimeInvisibleAnnotations",
        "RuntimeVisibleTypeAnnotations",
        "RuntimeInvisibleTypeAnnotations",
        "InnerClasses",
        "BootstrapMethods",
    ]
)
_FIELD_ATTRIBUTES = frozenset(
    [
        "ConstantValue",
        "Signature",
        "Deprecated",
        "Synthetic",
        "RuntimeVisibleAnnotations",
        "RuntimeInvisibleAnnotations",
        "RuntimeVisibleTypeAnnotations",
        "RuntimeInvisibleTypeAnnotations",
    ]
)
_METHOD_ATTRIBUTES = frozenset(
    [
        "Code",
        "Exceptions",
        "Signature",
        "Deprecated",
        "Synthetic",
        "RuntimeVisibleAnnotations",
        "RuntimeInvisibleAnnotations",
        "RuntimeVisibleTypeAnnotations",
        "RuntimeInvisibleTypeAnnotations",
        "RuntimeVisibleParameterAnnotations",
        "RuntimeInvisibleParameterAnnotations",
        "AnnotationDefault",
        "MethodParameters",
    ]
)
_CODE_ATTRIBUTES = frozenset(
    [
        "LineNumberTable",
        "LocalVariableTable",
        "LocalVariableTypeTable",
        "StackMapTable",
        "RuntimeVisibleTypeAnnotations",
        "RuntimeInvisibleTypeAnnotations",
    ]
)

_VISIBILITY = ((True, "RuntimeVisible"), (False, "RuntimeInvisible"))

_ELEMENT_PRIMITIVES = {"B": Byte, "S": Short, "I": Int, "J": Long}

_ARG_ITEMS = {"Z": op.INTEGER, "B": op.INTEGER, "C": op.INTEGER, "S": op.INTEGER, "I": op.INTEGER}
_ARG_ITEMS.update({"F": op.FLOAT, "J": op.LONG, "D": op.DOUBLE})


class _Attributes:
    """Name to (offset, length) for the attributes of one class, member or code block."""

    def __init__(self, reader: "ClassReader", offset: int):
        self.entries: List[Tuple[str, int, int]] = []
        count = reader.u2(offset)
        offset += 2
        for _ in range(count):
            name = reader.utf8(reader.u2(offset))
            length = reader.u4(offset + 2)
            self.entries.append((name, offset + 6, length))
            offset += 6 + length
        if offset > len(reader.data):
            raise ClassFormatError("Truncated class file")
        self.end = offset
        self.by_name: Dict[str, Tuple[int, int]] = {}
        for name, start, length in self.entries:
            self.by_name.setdefault(name, (start, length))

    def get(self, name: str) -> Optional[int]:
        entry = self.by_name.get(name)
        return None if entry is None else entry[0]

    def __contains__(self, name: str) -> bool:
        return name in self.by_name

    def custom(self, reader: "ClassReader", known) -> List[Attribute]:
        return [
            Attribute(name, bytes(reader.data[start : start + length]))
            for name, start, length in self.entries
            if name not in known
        ]


class ClassReader:
    """Reads one class file; :meth:`accept` replays it on a visitor."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        try:
            if self.u4(0) != MAGIC:
                raise ClassFormatError("Not a class file (bad magic number)")
            self._read_pool()
        except (struct.error, IndexError):
            raise ClassFormatError("Truncated class file") from None

    # --- PRIMITIVE READS ---

    def u1(self, offset: int) -> int:
        return self.data[offset]

    def s1(self, offset: int) -> int:
        return struct.unpack_from(">b", self.data, offset)[0]

    def u2(self, offset: int) -> int:
        return struct.unpack_from(">H", self.data, offset)[0]

    def s2(self, offset: int) -> int:
        return struct.unpack_from(">h", self.data, offset)[0]

    def u4(self, offset: int) -> int:
        return struct.unpack_from(">I", self.data, offset)[0]

    def s4(self, offset: int) -> int:
        return struct.unpack_from(">i", self.data, offset)[0]

    # --- CONSTANT POOL ---

    def _read_pool(self) -> None:
        count = self.u2(8)
        self.pool: List[Optional[tuple]] = [None] * count
        offset = 10
        i = 1
        while i < count:
            tag = self.u1(offset)
            if tag == ConstantPoolTag.UTF8:
                length = self.u2(offset + 1)
                self.pool[i] = (tag, decode_modified_utf8(self.data[offset + 3 : offset + 3 + length]))
                offset += 3 + length
            elif tag == ConstantPoolTag.INTEGER:
                self.pool[i] = (tag, self.s4(offset + 1))
                offset += 5
            elif tag == ConstantPoolTag.FLOAT:
                self.pool[i] = (tag, struct.unpack_from(">f", self.data, offset + 1)[0])
                offset += 5
            elif tag == ConstantPoolTag.LONG:
                self.pool[i] = (tag, struct.unpack_from(">q", self.data, offset + 1)[0])
                offset += 9
                i += 1
            elif tag == ConstantPoolTag.DOUBLE:
                self.pool[i] = (tag, struct.unpack_from(">d", self.data, offset + 1)[0])
                offset += 9
                i += 1
            elif tag in (
                ConstantPoolTag.CLASS,
                ConstantPoolTag.STRING,
                ConstantPoolTag.METHOD_TYPE,
                ConstantPoolTag.MODULE,
                ConstantPoolTag.PACKAGE,
            ):
                self.pool[i] = (tag, self.u2(offset + 1))
                offset += 3
            elif tag in (
                ConstantPoolTag.FIELDREF,
                ConstantPoolTag.METHODREF,
                ConstantPoolTag.INTERFACE_METHODREF,
                ConstantPoolTag.NAME_AND_TYPE,
                ConstantPoolTag.DYNAMIC,
                ConstantPoolTag.INVOKE_DYNAMIC,
            ):
                self.pool[i] = (tag, self.u2(offset + 1), self.u2(offset + 3))
                offset += 5
            elif tag == ConstantPoolTag.METHOD_HANDLE:
                self.pool[i] = (tag, self.u1(offset + 1), self.u2(offset + 2))
                offset += 4
            else:
                raise ClassFormatError(f"Unknown constant pool tag {tag} at index {i}")
            i += 1
        self.header = offset

    def _entry(self, idx: int, *tags: int) -> tuple:
        entry = self.pool[idx] if 0 < idx < len(self.pool) else None
        if entry is None or (tags and entry[0] not in tags):
            raise ClassFormatError(f"Invalid constant pool reference {idx}")
        return entry

    def utf8(self, idx: int) -> str:
        return self._entry(idx, ConstantPoolTag.UTF8)[1]

    def opt_utf8(self, idx: int) -> Optional[str]:
        return self.utf8(idx) if idx else None

    def class_name(self, idx: int) -> str:
        return self.utf8(self._entry(idx, ConstantPoolTag.CLASS)[1])

    def opt_class(self, idx: int) -> Optional[str]:
        return self.class_name(idx) if idx else None

    def name_and_type(self, idx: int) -> Tuple[str, str]:
        _, name, desc = self._entry(idx, ConstantPoolTag.NAME_AND_TYPE)
        return self.utf8(name), self.utf8(desc)

    def member_ref(self, idx: int) -> Tuple[str, str, str, bool]:
        tag, owner, nat = self._entry(
            idx, ConstantPoolTag.FIELDREF, ConstantPoolTag.METHODREF, ConstantPoolTag.INTERFACE_METHODREF
        )
        name, desc = self.name_and_type(nat)
        return self.class_name(owner), name, desc, tag == ConstantPoolTag.INTERFACE_METHODREF

    def handle(self, idx: int) -> Handle:
        _, kind, ref = self._entry(idx, ConstantPoolTag.METHOD_HANDLE)
        owner, name, desc, itf = self.member_ref(ref)
        return Handle(kind, owner, name, desc, itf)

    def constant(self, idx: int):
        entry = self._entry(idx)
        tag = entry[0]
        if tag == ConstantPoolTag.INTEGER:
            return Int(entry[1])
        if tag == ConstantPoolTag.FLOAT:
            return Float(entry[1])
        if tag == ConstantPoolTag.LONG:
            return Long(entry[1])
        if tag == ConstantPoolTag.DOUBLE:
            return Double(entry[1])
        if tag == ConstantPoolTag.STRING:
            return self.utf8(entry[1])
        if tag == ConstantPoolTag.CLASS:
            return TypeRef.from_internal_name(self.utf8(entry[1]))
        if tag == ConstantPoolTag.METHOD_TYPE:
            return TypeRef(self.utf8(entry[1]))
        if tag == ConstantPoolTag.METHOD_HANDLE:
            return self.handle(idx)
        raise ClassFormatError(f"Unsupported loadable constant with tag {tag} at index {idx}")

    # --- CLASS ---

    def accept(self, visitor: ClassVisitor) -> None:
        try:
            self._accept(visitor)
        except (struct.error, IndexError):
            raise ClassFormatError("Truncated class file") from None

    def _accept(self, v: ClassVisitor) -> None:
        minor, major = self.u2(4), self.u2(6)
        offset = self.header
        access = self.u2(offset)
        name = self.class_name(self.u2(offset + 2))
        super_name = self.opt_class(self.u2(offset + 4))
        interfaces = [self.class_name(self.u2(offset + 8 + 2 * i)) for i in range(self.u2(offset + 6))]
        offset += 8 + 2 * len(interfaces)

        fields_offset = offset
        offset = self._skip_members(offset)
        methods_offset = offset
        offset = self._skip_members(offset)
        attrs = _Attributes(self, offset)

        self.bootstrap_methods: List[Tuple[int, List[int]]] = []
        bsm = attrs.get("BootstrapMethods")
        if bsm is not None:
            pos = bsm + 2
            for _ in range(self.u2(bsm)):
                argc = self.u2(pos + 2)
                self.bootstrap_methods.append((self.u2(pos), [self.u2(pos + 4 + 2 * j) for j in range(argc)]))
                pos += 4 + 2 * argc

        signature = self._signature(attrs)
        v.visit(major | (minor << 16), access | self._pseudo_access(attrs), name, signature, super_name, interfaces)

        source = attrs.get("SourceFile")
        debug_entry = attrs.by_name.get("SourceDebugExtension")
        if source is not None or debug_entry is not None:
            debug = None
            if debug_entry is not None:
                start, length = debug_entry
                debug = decode_modified_utf8(self.data[start : start + length])
            v.visit_source(self.utf8(self.u2(source)) if source is not None else None, debug)

        if "Module" in attrs:
            self._read_module(v, attrs)

        enclosing = attrs.get("EnclosingMethod")
        if enclosing is not None:
            nat = self.u2(enclosing + 2)
            method_name, method_desc = self.name_and_type(nat) if nat else (None, None)
            v.visit_outer_class(self.class_name(self.u2(enclosing)), method_name, method_desc)

        self._read_annotations(attrs, v.visit_annotation)
        self._read_type_annotations(attrs, v.visit_type_annotation)
        for attribute in attrs.custom(self, _CLASS_ATTRIBUTES):
            v.visit_attribute(attribute)

        inner = attrs.get("InnerClasses")
        if inner is not None:
            pos = inner + 2
            for _ in range(self.u2(inner)):
                v.visit_inner_class(
                    self.class_name(self.u2(pos)),
                    self.opt_class(self.u2(pos + 2)),
                    self.opt_utf8(self.u2(pos + 4)),
                    self.u2(pos + 6),
                )
                pos += 8

        offset = fields_offset + 2
        for _ in range(self.u2(fields_offset)):
            offset = self._read_field(v, offset)
        offset = methods_offset + 2
        for _ in range(self.u2(methods_offset)):
            offset = self._read_method(v, offset, name)
        v.visit_end()

    def _skip_members(self, offset: int) -> int:
        count = self.u2(offset)
        offset += 2
        for _ in range(count):
            offset = _Attributes(self, offset + 6).end
        return offset

    def _pseudo_access(self, attrs: _Attributes) -> int:
        access = 0
        if "Deprecated" in attrs:
            access |= op.ACC_DEPRECATED
        if "Synthetic" in attrs:
            access |= op.ACC_SYNTHETIC
        return access

    def _signature(self, attrs: _Attributes) -> Optional[str]:
        sig = attrs.get("Signature")
        return self.utf8(self.u2(sig)) if sig is not None else None

    def _read_module(self, v: ClassVisitor, attrs: _Attributes) -> None:
        pos = attrs.get("Module")
        name = self.utf8(self._entry(self.u2(pos), ConstantPoolTag.MODULE)[1])
        mv = v.visit_module(name, self.u2(pos + 2), self.opt_utf8(self.u2(pos + 4)))
        if mv is None:
            return
        module_name = lambda idx: self.utf8(self._entry(idx, ConstantPoolTag.MODULE)[1])
        package_name = lambda idx: self.utf8(self._entry(idx, ConstantPoolTag.PACKAGE)[1])

        main = attrs.get("ModuleMainClass")
        if main is not None:
            mv.visit_main_class(self.class_name(self.u2(main)))
        packages = attrs.get("ModulePackages")
        if packages is not None:
            for i in range(self.u2(packages)):
                mv.visit_package(package_name(self.u2(packages + 2 + 2 * i)))

        pos += 6
        for _ in range(self.u2(pos)):
            mv.visit_require(module_name(self.u2(pos + 2)), self.u2(pos + 4), self.opt_utf8(self.u2(pos + 6)))
            pos += 6
        pos += 2
        for visit in (mv.visit_export, mv.visit_open):
            for _ in range(self.u2(pos)):
                package = package_name(self.u2(pos + 2))
                flags = self.u2(pos + 4)
                count = self.u2(pos + 6)
                targets = [module_name(self.u2(pos + 8 + 2 * j)) for j in range(count)]
                visit(package, flags, targets or None)
                pos += 6 + 2 * count
            pos += 2
        for _ in range(self.u2(pos)):
            mv.visit_use(self.class_name(self.u2(pos + 2)))
            pos += 2
        pos += 2
        for _ in range(self.u2(pos)):
            count = self.u2(pos + 4)
            providers = [self.class_name(self.u2(pos + 6 + 2 * j)) for j in range(count)]
            mv.visit_provide(self.class_name(self.u2(pos + 2)), providers)
            pos += 4 + 2 * count
        mv.visit_end()

    # --- MEMBERS ---

    def _read_field(self, v: ClassVisitor, offset: int) -> int:
        access = self.u2(offset)
        name = self.utf8(self.u2(offset + 2))
        desc = self.utf8(self.u2(offset + 4))
        attrs = _Attributes(self, offset + 6)
        value_pos = attrs.get("ConstantValue")
        value = self.constant(self.u2(value_pos)) if value_pos is not None else None
        fv = v.visit_field(access | self._pseudo_access(attrs), name, desc, self._signature(attrs), value)
        if fv is not None:
            self._read_annotations(attrs, fv.visit_annotation)
            self._read_type_annotations(attrs, fv.visit_type_annotation)
            for attribute in attrs.custom(self, _FIELD_ATTRIBUTES):
                fv.visit_attribute(attribute)
            fv.visit_end()
        return attrs.end

    def _read_method(self, v: ClassVisitor, offset: int, owner: str) -> int:
        access = self.u2(offset)
        name = self.utf8(self.u2(offset + 2))
        desc = self.utf8(self.u2(offset + 4))
        attrs = _Attributes(self, offset + 6)
        exceptions = None
        pos = attrs.get("Exceptions")
        if pos is not None:
            exceptions = [self.class_name(self.u2(pos + 2 + 2 * i)) for i in range(self.u2(pos))]
        mv = v.visit_method(access | self._pseudo_access(attrs), name, desc, self._signature(attrs), exceptions)
        if mv is None:
            return attrs.end

        pos = attrs.get("MethodParameters")
        if pos is not None:
            for i in range(self.u1(pos)):
                entry = pos + 1 + 4 * i
                mv.visit_parameter(self.opt_utf8(self.u2(entry)), self.u2(entry + 2))
        pos = attrs.get("AnnotationDefault")
        if pos is not None:
            av = mv.visit_annotation_default()
            self._element_value(av, pos, None)
            if av is not None:
                av.visit_end()
        self._read_annotations(attrs, mv.visit_annotation)
        self._read_type_annotations(attrs, mv.visit_type_annotation)
        for visible, prefix in _VISIBILITY:
            pos = attrs.get(f"{prefix}ParameterAnnotations")
            if pos is None:
                continue
            count = self.u1(pos)
            mv.visit_annotable_parameter_count(count, visible)
            pos += 1
            for parameter in range(count):
                n = self.u2(pos)
                pos += 2
                for _ in range(n):
                    desc_idx = self.u2(pos)
                    av = mv.visit_parameter_annotation(parameter, self.utf8(desc_idx), visible)
                    pos = self._annotation_body(av, pos + 2)
        for attribute in attrs.custom(self, _METHOD_ATTRIBUTES):
            mv.visit_attribute(attribute)

        code = attrs.get("Code")
        if code is not None:
            _CodeReader(self, mv, code, access, name, desc, owner).read()
        mv.visit_end()
        return attrs.end

    # --- ANNOTATIONS ---

    def _read_annotations(self, attrs: _Attributes, visit) -> None:
        for visible, prefix in _VISIBILITY:
            pos = attrs.get(f"{prefix}Annotations")
            if pos is None:
                continue
            count = self.u2(pos)
            pos += 2
            for _ in range(count):
                av = visit(self.utf8(self.u2(pos)), visible)
                pos = self._annotation_body(av, pos + 2)

    def type_annotation_target(self, pos: int) -> Tuple[int, int]:
        """Return the masked type reference and the offset of the type path."""
        sort = self.u1(pos)
        if sort in (0x00, 0x01, 0x16):
            return (sort << 24) | (self.u1(pos + 1) << 16), pos + 2
        if sort in (0x13, 0x14, 0x15):
            return sort << 24, pos + 1
        if sort in (0x10, 0x11, 0x12, 0x17, 0x42):
            return (sort << 24) | (self.u2(pos + 1) << 8), pos + 3
        if sort in (0x43, 0x44, 0x45, 0x46):
            return sort << 24, pos + 3
        if sort in (0x47, 0x48, 0x49, 0x4A, 0x4B):
            return (sort << 24) | self.u1(pos + 3), pos + 4
        if sort in (0x40, 0x41):
            return sort << 24, pos + 3 + 6 * self.u2(pos + 1)
        raise ClassFormatError(f"Unknown type annotation target 0x{sort:02x}")

    def type_path(self, pos: int) -> Tuple[Optional[TypePath], int]:
        length = self.u1(pos)
        steps = tuple((self.u1(pos + 1 + 2 * i), self.u1(pos + 2 + 2 * i)) for i in range(length))
        return (TypePath(steps) if steps else None), pos + 1 + 2 * length

    def _read_type_annotations(self, attrs: _Attributes, visit) -> None:
        for visible, prefix in _VISIBILITY:
            pos = attrs.get(f"{prefix}TypeAnnotations")
            if pos is None:
                continue
            count = self.u2(pos)
            pos += 2
            for _ in range(count):
                type_ref, pos = self.type_annotation_target(pos)
                type_path, pos = self.type_path(pos)
                av = visit(type_ref, type_path, self.utf8(self.u2(pos)), visible)
                pos = self._annotation_body(av, pos + 2)

    def _annotation_body(self, av: Optional[AnnotationVisitor], pos: int) -> int:
        """Read ``num_element_value_pairs`` pairs; returns the offset after them."""
        count = self.u2(pos)
        pos += 2
        for _ in range(count):
            name = self.utf8(self.u2(pos))
            pos = self._element_value(av, pos + 2, name)
        if av is not None:
            av.visit_end()
        return pos

    def _element_value(self, av: Optional[AnnotationVisitor], pos: int, name: Optional[str]) -> int:
        tag = chr(self.u1(pos))
        pos += 1
        if tag == "e":
            if av is not None:
                av.visit_enum(name, self.utf8(self.u2(pos)), self.utf8(self.u2(pos + 2)))
            return pos + 4
        if tag == "@":
            nested = av.visit_annotation(name, self.utf8(self.u2(pos))) if av is not None else None
            return self._annotation_body(nested, pos + 2)
        if tag == "[":
            count = self.u2(pos)
            pos += 2
            array = av.visit_array(name) if av is not None else None
            for _ in range(count):
                pos = self._element_value(array, pos, None)
            if array is not None:
                array.visit_end()
            return pos
        idx = self.u2(pos)
        if av is None:
            return pos + 2
        if tag == "s":
            value = self.utf8(idx)
        elif tag == "c":
            value = TypeRef(self.utf8(idx))
        elif tag == "Z":
            value = Boolean(self._entry(idx, ConstantPoolTag.INTEGER)[1])
        elif tag == "C":
            value = Char(self._entry(idx, ConstantPoolTag.INTEGER)[1])
        elif tag in _ELEMENT_PRIMITIVES:
            value = _ELEMENT_PRIMITIVES[tag](self._entry(idx)[1])
        elif tag == "F":
            value = Float(self._entry(idx, ConstantPoolTag.FLOAT)[1])
        elif tag == "D":
            value = Double(self._entry(idx, ConstantPoolTag.DOUBLE)[1])
        else:
            raise ClassFormatError(f"Unknown element value tag {tag!r}")
        av.visit(name, value)
        return pos + 2


class _CodeReader:
    """Decodes one Code attribute and replays it on a method visitor."""

    def __init__(self, reader: ClassReader, mv: MethodVisitor, offset: int, access: int, name, desc, owner):
        self.r = reader
        self.mv = mv
        self.max_stack = reader.u2(offset)
        self.max_locals = reader.u2(offset + 2)
        self.length = reader.u4(offset + 4)
        self.start = offset + 8
        self.end = self.start + self.length
        self.table_offset = self.end
        self.access = access
        self.name = name
        self.desc = desc
        self.owner = owner
        self.labels: Dict[int, Label] = {}

    def label(self, offset: int) -> Label:
        if not 0 <= offset <= self.length:
            raise ClassFormatError(f"Bad code offset {offset} in method {self.name}")
        label = self.labels.get(offset)
        if label is None:
            label = self.labels[offset] = Label()
        return label

    # --- DECODING ---

    def instructions(self):
        """Yield ``(offset, kind, opcode, operands)`` with compact forms normalized."""
        r = self.r
        pos = self.start
        while pos < self.end:
            offset = pos - self.start
            opcode = r.u1(pos)
            if op.ILOAD_0 <= opcode < op.ILOAD_0 + 20:
                base = opcode - op.ILOAD_0
                yield offset, "var", op.ILOAD + (base >> 2), (base & 3,)
                pos += 1
            elif op.ISTORE_0 <= opcode < op.ISTORE_0 + 20:
                base = opcode - op.ISTORE_0
                yield offset, "var", op.ISTORE + (base >> 2), (base & 3,)
                pos += 1
            elif opcode in op.INSN:
                yield offset, "insn", opcode, ()
                pos += 1
            elif opcode == op.BIPUSH:
                yield offset, "int", opcode, (r.s1(pos + 1),)
                pos += 2
            elif opcode == op.SIPUSH:
                yield offset, "int", opcode, (r.s2(pos + 1),)
                pos += 3
            elif opcode == op.NEWARRAY:
                yield offset, "int", opcode, (r.u1(pos + 1),)
                pos += 2
            elif opcode == op.LDC:
                yield offset, "ldc", opcode, (r.u1(pos + 1),)
                pos += 2
            elif opcode in (op.LDC_W, op.LDC2_W):
                yield offset, "ldc", op.LDC, (r.u2(pos + 1),)
                pos += 3
            elif opcode in op.VAR_INSN:
                yield offset, "var", opcode, (r.u1(pos + 1),)
                pos += 2
            elif opcode == op.IINC:
                yield offset, "iinc", opcode, (r.u1(pos + 1), r.s1(pos + 2))
                pos += 3
            elif opcode == op.WIDE:
                inner = r.u1(pos + 1)
                if inner == op.IINC:
                    yield offset, "iinc", inner, (r.u2(pos + 2), r.s2(pos + 4))
                    pos += 6
                elif inner in op.VAR_INSN:
                    yield offset, "var", inner, (r.u2(pos + 2),)
                    pos += 4
                else:
                    raise ClassFormatError(f"Invalid wide instruction at {offset} in method {self.name}")
            elif opcode in op.JUMP_INSN:
                yield offset, "jump", opcode, (offset + r.s2(pos + 1),)
                pos += 3
            elif opcode in (op.GOTO_W, op.JSR_W):
                yield offset, "jump", opcode - op.GOTO_W + op.GOTO, (offset + r.s4(pos + 1),)
                pos += 5
            elif opcode == op.TABLESWITCH:
                pos += 1 + (3 - offset) % 4
                default = offset + r.s4(pos)
                low, high = r.s4(pos + 4), r.s4(pos + 8)
                targets = [offset + r.s4(pos + 12 + 4 * i) for i in range(high - low + 1)]
                yield offset, "tableswitch", opcode, (low, high, default, targets)
                pos += 12 + 4 * len(targets)
            elif opcode == op.LOOKUPSWITCH:
                pos += 1 + (3 - offset) % 4
                default = offset + r.s4(pos)
                count = r.s4(pos + 4)
                keys = [r.s4(pos + 8 + 8 * i) for i in range(count)]
                targets = [offset + r.s4(pos + 12 + 8 * i) for i in range(count)]
                yield offset, "lookupswitch", opcode, (default, keys, targets)
                pos += 8 + 8 * count
            elif opcode in op.FIELD_INSN:
                yield offset, "field", opcode, (r.u2(pos + 1),)
                pos += 3
            elif opcode in op.METHOD_INSN:
                yield offset, "method", opcode, (r.u2(pos + 1),)
                pos += 5 if opcode == op.INVOKEINTERFACE else 3
            elif opcode == op.INVOKEDYNAMIC:
                yield offset, "indy", opcode, (r.u2(pos + 1),)
                pos += 5
            elif opcode in op.TYPE_INSN:
                yield offset, "type", opcode, (r.u2(pos + 1),)
                pos += 3
            elif opcode == op.MULTIANEWARRAY:
                yield offset, "multianewarray", opcode, (r.u2(pos + 1), r.u1(pos + 3))
                pos += 4
            else:
                raise ClassFormatError(f"Unknown opcode {opcode} at {offset} in method {self.name}")
        if pos != self.end:
            raise ClassFormatError(f"Truncated instruction in method {self.name}")

    # --- FRAMES ---

    def _initial_locals(self) -> List:
        items: List = []
        if not self.access & op.ACC_STATIC:
            items.append(op.UNINITIALIZED_THIS if self.name == "<init>" else self.owner)
        args, _ = parse_method_descriptor(self.desc)
        for arg in args:
            if arg in _ARG_ITEMS:
                items.append(_ARG_ITEMS[arg])
            elif arg.startswith("L"):
                items.append(arg[1:-1])
            else:
                items.append(arg)
        return items

    def _verification_items(self, pos: int, count: int) -> Tuple[List, int]:
        r = self.r
        items = []
        for _ in range(count):
            tag = r.u1(pos)
            if tag == 7:
                items.append(r.class_name(r.u2(pos + 1)))
                pos += 3
            elif tag == 8:
                items.append(self.label(r.u2(pos + 1)))
                pos += 3
            elif tag <= op.UNINITIALIZED_THIS:
                items.append(tag)
                pos += 1
            else:
                raise ClassFormatError(f"Invalid verification type {tag} in method {self.name}")
        return items, pos

    def _read_frames(self, pos: int) -> Dict[int, tuple]:
        r = self.r
        frames: Dict[int, tuple] = {}
        current = self._initial_locals()
        offset = -1
        count = r.u2(pos)
        pos += 2
        for _ in range(count):
            kind = r.u1(pos)
            pos += 1
            if kind < 64:
                delta, frame = kind, (op.F_SAME, [], [])
            elif kind < 128:
                stack, pos = self._verification_items(pos, 1)
                delta, frame = kind - 64, (op.F_SAME1, [], stack)
            elif kind < 247:
                raise ClassFormatError(f"Invalid stack map frame type {kind} in method {self.name}")
            else:
                delta = r.u2(pos)
                pos += 2
                if kind == 247:
                    stack, pos = self._verification_items(pos, 1)
                    frame = (op.F_SAME1, [], stack)
                elif kind < 251:
                    k = 251 - kind
                    if k > len(current):
                        raise ClassFormatError(f"Chop frame removes too many locals in method {self.name}")
                    chopped = current[len(current) - k :]
                    current = current[: len(current) - k]
                    frame = (op.F_CHOP, chopped, [])
                elif kind == 251:
                    frame = (op.F_SAME, [], [])
                elif kind < 255:
                    appended, pos = self._verification_items(pos, kind - 251)
                    current = current + appended
                    frame = (op.F_APPEND, appended, [])
                else:
                    local, pos = self._verification_items(pos, r.u2(pos))
                    stack, pos = self._verification_items(pos, r.u2(pos))
                    current = list(local)
                    frame = (op.F_FULL, local, stack)
            offset += delta + 1
            self.label(offset)
            frames[offset] = frame
        return frames

    # --- CODE ---

    def read(self) -> None:
        r = self.r
        mv = self.mv
        insns = list(self.instructions())
        for _, kind, _, operands in insns:
            if kind == "jump":
                self.label(operands[0])
            elif kind == "tableswitch":
                self.label(operands[2])
                for target in operands[3]:
                    self.label(target)
            elif kind == "lookupswitch":
                self.label(operands[0])
                for target in operands[2]:
                    self.label(target)

        pos = self.end
        handlers = []
        for _ in range(r.u2(pos)):
            entry = pos + 2
            handlers.append(
                (
                    self.label(r.u2(entry)),
                    self.label(r.u2(entry + 2)),
                    self.label(r.u2(entry + 4)),
                    r.opt_class(r.u2(entry + 6)),
                )
            )
            pos += 8
        attrs = _Attributes(r, pos + 2)

        lines: Dict[int, List[int]] = {}
        for name, start, _ in attrs.entries:
            if name == "LineNumberTable":
                for i in range(r.u2(start)):
                    pc = r.u2(start + 2 + 4 * i)
                    self.label(pc)
                    lines.setdefault(pc, []).append(r.u2(start + 4 + 4 * i))

        locals_ = []
        signatures: Dict[Tuple[int, int], str] = {}
        for name, start, _ in attrs.entries:
            if name == "LocalVariableTypeTable":
                for i in range(r.u2(start)):
                    entry = start + 2 + 10 * i
                    signatures[(r.u2(entry), r.u2(entry + 8))] = r.utf8(r.u2(entry + 6))
        for name, start, _ in attrs.entries:
            if name == "LocalVariableTable":
                for i in range(r.u2(start)):
                    entry = start + 2 + 10 * i
                    pc, length = r.u2(entry), r.u2(entry + 2)
                    self.label(pc)
                    self.label(pc + length)
                    locals_.append((pc, length, r.utf8(r.u2(entry + 4)), r.utf8(r.u2(entry + 6)), r.u2(entry + 8)))

        frames: Dict[int, tuple] = {}
        stack_map = attrs.get("StackMapTable")
        if stack_map is not None:
            frames = self._read_frames(stack_map)
            starts = {offset for offset, _, _, _ in insns}
            for offset in sorted(frames):
                if offset not in starts:
                    raise ClassFormatError(f"Stack map frame at offset {offset} is not an instruction boundary")

        insn_annotations: Dict[int, List[tuple]] = {}
        try_catch_annotations: List[tuple] = []
        local_annotations: List[tuple] = []
        for visible, prefix in _VISIBILITY:
            pos = attrs.get(f"{prefix}TypeAnnotations")
            if pos is None:
                continue
            count = r.u2(pos)
            pos += 2
            for _ in range(count):
                target = pos
                sort = r.u1(target)
                type_ref, pos = r.type_annotation_target(pos)
                type_path, pos = r.type_path(pos)
                desc = r.utf8(r.u2(pos))
                entry = (type_ref, type_path, desc, visible, pos + 2)
                if sort in (0x40, 0x41):
                    ranges = []
                    for i in range(r.u2(target + 1)):
                        item = target + 3 + 6 * i
                        start, length = r.u2(item), r.u2(item + 2)
                        ranges.append((self.label(start), self.label(start + length), r.u2(item + 4)))
                    local_annotations.append(entry + (ranges,))
                elif sort == 0x42:
                    try_catch_annotations.append(entry)
                elif 0x43 <= sort <= 0x4B:
                    insn_annotations.setdefault(r.u2(target + 1), []).append(entry)
                pos = r._annotation_body(None, pos + 2)

        mv.visit_code()
        for start, end, handler, type_name in handlers:
            mv.visit_try_catch_block(start, end, handler, type_name)
        for type_ref, type_path, desc, visible, body in try_catch_annotations:
            r._annotation_body(mv.visit_try_catch_annotation(type_ref, type_path, desc, visible), body)

        for offset, kind, opcode, operands in insns:
            self._visit_position(offset, lines, frames)
            self._visit_insn(kind, opcode, operands)
            for type_ref, type_path, desc, visible, body in insn_annotations.get(offset, ()):
                r._annotation_body(mv.visit_insn_annotation(type_ref, type_path, desc, visible), body)
        self._visit_position(self.length, lines, frames)

        for pc, length, name, desc, index in locals_:
            signature = signatures.get((pc, index))
            mv.visit_local_variable(name, desc, signature, self.labels[pc], self.labels[pc + length], index)
        for type_ref, type_path, desc, visible, body, ranges in local_annotations:
            starts = [s for s, _, _ in ranges]
            ends = [e for _, e, _ in ranges]
            indices = [i for _, _, i in ranges]
            av = mv.visit_local_variable_annotation(type_ref, type_path, starts, ends, indices, desc, visible)
            r._annotation_body(av, body)
        for attribute in attrs.custom(r, _CODE_ATTRIBUTES):
            mv.visit_attribute(attribute)
        mv.visit_maxs(self.max_stack, self.max_locals)

    def _visit_position(self, offset: int, lines: Dict[int, List[int]], frames: Dict[int, tuple]) -> None:
        mv = self.mv
        label = self.labels.get(offset)
        if label is not None:
            mv.visit_label(label)
            for line in lines.get(offset, ()):
                mv.visit_line_number(line, label)
        frame = frames.get(offset)
        if frame is not None:
            frame_type, local, stack = frame
            mv.visit_frame(frame_type, len(local), local, len(stack), stack)

    def _visit_insn(self, kind: str, opcode: int, operands: tuple) -> None:
        r = self.r
        mv = self.mv
        if kind == "insn":
            mv.visit_insn(opcode)
        elif kind == "int":
            mv.visit_int_insn(opcode, operands[0])
        elif kind == "var":
            mv.visit_var_insn(opcode, operands[0])
        elif kind == "iinc":
            mv.visit_iinc_insn(operands[0], operands[1])
        elif kind == "ldc":
            mv.visit_ldc_insn(r.constant(operands[0]))
        elif kind == "jump":
            mv.visit_jump_insn(opcode, self.labels[operands[0]])
        elif kind == "tableswitch":
            low, high, default, targets = operands
            mv.visit_table_switch_insn(low, high, self.labels[default], [self.labels[t] for t in targets])
        elif kind == "lookupswitch":
            default, keys, targets = operands
            mv.visit_lookup_switch_insn(self.labels[default], keys, [self.labels[t] for t in targets])
        elif kind == "field":
            owner, name, desc, _ = r.member_ref(operands[0])
            mv.visit_field_insn(opcode, owner, name, desc)
        elif kind == "method":
            owner, name, desc, itf = r.member_ref(operands[0])
            mv.visit_method_insn(opcode, owner, name, desc, itf)
        elif kind == "indy":
            _, bsm_idx, nat = r._entry(operands[0], ConstantPoolTag.INVOKE_DYNAMIC)
            name, desc = r.name_and_type(nat)
            if bsm_idx >= len(r.bootstrap_methods):
                raise ClassFormatError(f"Invalid bootstrap method index {bsm_idx}")
            handle_idx, args = r.bootstrap_methods[bsm_idx]
            mv.visit_invoke_dynamic_insn(name, desc, r.handle(handle_idx), [r.constant(a) for a in args])
        elif kind == "type":
            mv.visit_type_insn(opcode, r.class_name(operands[0]))
        else:
            mv.visit_multi_anew_array_insn(r.class_name(operands[0]), operands[1])
