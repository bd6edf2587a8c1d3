"""Reads the s-expression text form and drives a class visitor."""

from typing import IO, Dict, List, Optional, Set, Union

from . import opcodes as op
from .exceptions import SemanticError
from .interfaces import ClassInput
from .models import PRIMITIVES, Handle, IntArray, Label, TypePath, TypeRef
from .sexp_parser import SExpParser
from .visitor import AnnotationVisitor, ClassVisitor, FieldVisitor, MethodVisitor, ModuleVisitor

# primitive tags allowed as the initial value of a field with the given descriptor
_FIELD_VALUE_TAGS = {
    "Z": {"Z", "I"},
    "B": {"B", "I"},
    "C": {"C", "I"},
    "S": {"S", "I"},
    "I": {"Z", "B", "C", "S", "I"},
    "J": {"J"},
    "F": {"F"},
    "D": {"D"},
}

_FRAME_LOCALS = {
    op.F_SAME: (0, 0),
    op.F_SAME1: (0, 0),
    op.F_CHOP: (1, 3),
    op.F_APPEND: (1, 3),
}
_FRAME_STACK = {op.F_SAME: (0, 0), op.F_SAME1: (1, 1), op.F_CHOP: (0, 0), op.F_APPEND: (0, 0)}


class _CodeLabels:
    """Per-method label namespace."""

    def __init__(self):
        self.by_name: Dict[str, Label] = {}
        self.placed: Set[str] = set()
        self.first_use: Dict[str, int] = {}


class ClassParser(ClassInput):
    """Reads one or more class forms from a text document."""

    def __init__(self, source: Union[str, IO[str]]):
        self.source = source
        self.p = SExpParser(source)

    def close(self) -> None:
        if not isinstance(self.source, str):
            self.source.close()

    # --- CLASS ---

    def read(self, v: ClassVisitor) -> bool:
        """Read one class form into ``v``; return whether another one follows."""
        p = self.p
        p.block("class")
        version = p.int_val()
        access = self._access()
        name = p.sym()
        signature = p.str_val()
        super_name = p.sym()
        interfaces = p.syms()
        v.visit(version, access, name, signature, super_name, interfaces)

        while p.more():
            p.begin()
            keyword = p.sym()
            if keyword == "source":
                v.visit_source(p.str_val(), p.str_val())
            elif keyword == "inner-class":
                self._parse_inner_class(v)
            elif keyword == "outer-class":
                owner = p.str_val()
                outer_name = p.sym()
                v.visit_outer_class(owner, outer_name, p.str_val())
            elif keyword == "module":
                self._parse_module(v)
            elif keyword == "field":
                self._parse_field(v)
            elif keyword == "method":
                self._parse_method(v)
            elif keyword == "annotation":
                self._parse_annotation_header(v)
            elif keyword == "type-annotation":
                self._parse_type_annotation_header(v.visit_type_annotation)
            elif keyword == "attribute":
                v.visit_attribute(self._parse_attribute())
            else:
                raise p.err(f"Unexpected symbol {keyword}")
            p.end()

        p.end()
        v.visit_end()
        return p.more()

    def _parse_inner_class(self, v: ClassVisitor) -> None:
        p = self.p
        name = p.sym()
        outer_name = p.sym()
        inner_name = p.sym()
        v.visit_inner_class(name, outer_name, inner_name, self._access())

    def _parse_module(self, v: ClassVisitor) -> None:
        p = self.p
        name = p.sym()
        flags = self._access()
        version = p.str_val()
        mv = v.visit_module(name, flags, version) or ModuleVisitor()
        # TODO forward mainclass/package/require/export/open/use/provide entries to mv
        while p.more():
            p.skip()
        mv.visit_end()

    def _parse_field(self, v: ClassVisitor) -> None:
        p = self.p
        access = self._access()
        name = p.sym()
        descriptor = p.str_val()
        signature = p.str_val()
        line = p.line
        value = self.generic()
        self._check_field_value(descriptor, value, line)
        f = v.visit_field(access, name, descriptor, signature, value) or FieldVisitor()
        while p.more():
            p.begin()
            keyword = p.sym()
            if keyword == "annotation":
                self._parse_annotation_header(f)
            elif keyword == "type-annotation":
                self._parse_type_annotation_header(f.visit_type_annotation)
            elif keyword == "attribute":
                f.visit_attribute(self._parse_attribute())
            else:
                raise p.err(f"Unexpected symbol {keyword}")
            p.end()
        f.visit_end()

    @staticmethod
    def _check_field_value(descriptor: Optional[str], value, line: int) -> None:
        if value is None or descriptor is None:
            return
        if isinstance(value, str):
            if descriptor != "Ljava/lang/String;":
                raise SemanticError(f"String constant for field of type {descriptor}", line)
            return
        tag = getattr(value, "tag", None)
        allowed = _FIELD_VALUE_TAGS.get(descriptor)
        if tag is None or allowed is None or tag not in allowed:
            raise SemanticError(f"Constant {value!r} does not match field type {descriptor}", line)

    def _parse_attribute(self):
        # custom attribute contents have no text form
        return None

    # --- ANNOTATIONS ---

    def _parse_annotation_header(self, v) -> None:
        descriptor = self.p.str_val()
        visible = self.p.bool_val()
        self._parse_annotation(True, v.visit_annotation(descriptor, visible))

    def _parse_type_annotation_header(self, visit) -> None:
        p = self.p
        type_ref = p.int_val()
        type_path = self._type_path()
        descriptor = p.str_val()
        visible = p.bool_val()
        self._parse_annotation(True, visit(type_ref, type_path, descriptor, visible))

    def _type_path(self) -> Optional[TypePath]:
        text = self.p.str_val()
        try:
            return TypePath.from_string(text)
        except ValueError as e:
            raise self.p.err(str(e)) from None

    def _parse_annotation(self, use_name: bool, v: Optional[AnnotationVisitor]) -> None:
        p = self.p
        v = v or AnnotationVisitor()
        while p.more():
            p.begin()
            keyword = p.sym()
            name = p.sym() if use_name else None
            if keyword == "value":
                v.visit(name, self.generic())
            elif keyword == "enum":
                descriptor = p.str_val()
                v.visit_enum(name, descriptor, p.sym())
            elif keyword == "annotation":
                descriptor = p.str_val()
                self._parse_annotation(True, v.visit_annotation(name, descriptor))
            elif keyword == "array":
                self._parse_annotation(False, v.visit_array(name))
            else:
                raise p.err(f"Unexpected symbol {keyword}")
            p.end()
        v.visit_end()

    # --- METHOD ---

    def _parse_method(self, v: ClassVisitor) -> None:
        p = self.p
        access = self._access()
        name = p.sym()
        descriptor = p.str_val()
        signature = p.str_val()
        exceptions = p.syms()
        m = v.visit_method(access, name, descriptor, signature, exceptions) or MethodVisitor()

        while p.more():
            p.begin()
            keyword = p.sym()
            if keyword == "param":
                param_name = p.sym()
                m.visit_parameter(param_name, self._access())
            elif keyword == "default":
                self._parse_annotation(False, m.visit_annotation_default())
            elif keyword == "annotation":
                self._parse_annotation_header(m)
            elif keyword == "type-annotation":
                self._parse_type_annotation_header(m.visit_type_annotation)
            elif keyword == "annotable-param-count":
                count = p.int_val()
                m.visit_annotable_parameter_count(count, p.bool_val())
            elif keyword == "param-annotation":
                parameter = p.int_val()
                descriptor = p.str_val()
                visible = p.bool_val()
                self._parse_annotation(True, m.visit_parameter_annotation(parameter, descriptor, visible))
            elif keyword == "attribute":
                m.visit_attribute(self._parse_attribute())
            elif keyword == "code":
                self._parse_code(m)
            else:
                raise p.err(f"Unexpected symbol {keyword}")
            p.end()
        m.visit_end()

    def _parse_code(self, v: MethodVisitor) -> None:
        p = self.p
        labels = _CodeLabels()
        v.visit_code()
        while p.more():
            p.begin()
            keyword = p.sym()
            if keyword == "label":
                line = p.line
                name = p.sym()
                if name in labels.placed:
                    raise SemanticError(f"Label {name} placed twice", line)
                label = self._sym_label(labels, name)
                labels.placed.add(name)
                v.visit_label(label)
            elif keyword == "maxs":
                max_stack = p.int_val()
                v.visit_maxs(max_stack, p.int_val())
            elif keyword == "line":
                line = p.int_val()
                v.visit_line_number(line, self._label(labels))
            elif keyword == "try-catch":
                start = self._label(labels)
                end = self._label(labels)
                handler = self._label(labels)
                v.visit_try_catch_block(start, end, handler, p.str_val())
            elif keyword == "local":
                self._parse_local_variable(v, labels)
            elif keyword == "insn-annotation":
                self._parse_type_annotation_header(v.visit_insn_annotation)
            elif keyword == "try-catch-annotation":
                self._parse_type_annotation_header(v.visit_try_catch_annotation)
            elif keyword == "local-annotation":
                self._parse_local_variable_annotation(v, labels)
            elif keyword == "frame":
                self._parse_frame(v, labels)
            elif keyword == "attribute":
                v.visit_attribute(self._parse_attribute())
            else:
                self._parse_insn(keyword, v, labels)
            p.end()

        for name, line in labels.first_use.items():
            if name not in labels.placed:
                raise SemanticError(f"Undefined label {name}", line)

    def _parse_local_variable(self, v: MethodVisitor, labels: _CodeLabels) -> None:
        p = self.p
        name = p.sym()
        descriptor = p.str_val()
        signature = p.str_val()
        start = self._label(labels)
        end = self._label(labels)
        v.visit_local_variable(name, descriptor, signature, start, end, p.int_val())

    def _parse_local_variable_annotation(self, v: MethodVisitor, labels: _CodeLabels) -> None:
        p = self.p
        type_ref = p.int_val()
        type_path = self._type_path()
        start = self._labels(labels)
        end = self._labels(labels)
        index = []
        p.begin()
        while p.more():
            index.append(p.int_val())
        p.end()
        descriptor = p.str_val()
        visible = p.bool_val()
        self._parse_annotation(
            True, v.visit_local_variable_annotation(type_ref, type_path, start, end, index, descriptor, visible)
        )

    def _parse_frame(self, v: MethodVisitor, labels: _CodeLabels) -> None:
        p = self.p
        line = p.line
        kind = p.sym()
        frame_type = op.FRAME_BY_NAME.get(kind)
        if frame_type is None:
            raise p.err("Invalid frame type")
        local = self._frame_items(labels)
        stack = self._frame_items(labels)
        bounds = _FRAME_LOCALS.get(frame_type)
        if bounds is not None:
            low, high = bounds
            stack_low, stack_high = _FRAME_STACK[frame_type]
            if not (low <= len(local) <= high and stack_low <= len(stack) <= stack_high):
                raise SemanticError(
                    f"Frame {kind} cannot have {len(local)} locals and {len(stack)} stack items", line
                )
        v.visit_frame(frame_type, len(local), local, len(stack), stack)

    def _frame_items(self, labels: _CodeLabels) -> List:
        p = self.p
        items = []
        p.begin()
        while p.more():
            if p.is_str_val():
                items.append(p.str_val())
                continue
            line = p.line
            name = p.sym()
            item = op.ITEM_BY_NAME.get(name)
            items.append(item if item is not None else self._sym_label(labels, name, line))
        p.end()
        return items

    # --- INSTRUCTIONS ---

    def _parse_insn(self, name: str, v: MethodVisitor, labels: _CodeLabels) -> None:
        p = self.p
        opcode = op.OPCODE_BY_NAME.get(name)
        if opcode is None:
            raise p.err(f"Unknown instruction {name}")

        if opcode == op.LDC:
            v.visit_ldc_insn(self.generic())
        elif opcode == op.IINC:
            var = p.int_val()
            v.visit_iinc_insn(var, p.int_val())
        elif opcode == op.MULTIANEWARRAY:
            descriptor = p.str_val()
            v.visit_multi_anew_array_insn(descriptor, p.int_val())
        elif opcode == op.TABLESWITCH:
            low = p.int_val()
            high = p.int_val()
            default = self._label(labels)
            v.visit_table_switch_insn(low, high, default, self._labels(labels))
        elif opcode == op.LOOKUPSWITCH:
            default = self._label(labels)
            keys, targets = [], []
            p.begin()
            while p.more():
                p.begin()
                keys.append(p.int_val())
                targets.append(self._label(labels))
                p.end()
            p.end()
            v.visit_lookup_switch_insn(default, keys, targets)
        elif opcode == op.INVOKEDYNAMIC:
            indy_name = p.sym()
            descriptor = p.str_val()
            p.block("H")
            bootstrap = self._handle()
            p.end()
            v.visit_invoke_dynamic_insn(indy_name, descriptor, bootstrap, self.generics())
        elif opcode == op.NEWARRAY:
            operand = op.ARRAY_TYPE_BY_TAG.get(p.sym())
            if operand is None:
                raise p.err("Invalid array type")
            v.visit_int_insn(opcode, operand)
        elif opcode in (op.NEW, op.ANEWARRAY):
            v.visit_type_insn(opcode, p.sym())
        elif opcode in (op.CHECKCAST, op.INSTANCEOF):
            v.visit_type_insn(opcode, p.str_val())
        elif opcode in op.INSN:
            v.visit_insn(opcode)
        elif opcode in op.VAR_INSN:
            v.visit_var_insn(opcode, p.int_val())
        elif opcode in op.INT_INSN:
            v.visit_int_insn(opcode, p.int_val())
        elif opcode in op.JUMP_INSN:
            v.visit_jump_insn(opcode, self._label(labels))
        elif opcode in op.FIELD_INSN:
            owner = p.sym()
            field_name = p.sym()
            v.visit_field_insn(opcode, owner, field_name, p.str_val())
        elif opcode in op.METHOD_INSN:
            owner = p.sym()
            method_name = p.sym()
            descriptor = p.str_val()
            is_interface = opcode == op.INVOKEINTERFACE or (
                opcode == op.INVOKESTATIC and p.is_bool_val() and p.bool_val()
            )
            v.visit_method_insn(opcode, owner, method_name, descriptor, is_interface)
        else:
            raise p.err(f"Unexpected instruction {name}")

    # --- SHARED PIECES ---

    def _access(self) -> int:
        p = self.p
        access = 0
        p.begin()
        while p.more():
            flag = p.sym()
            bit = op.ACCESS_BY_NAME.get(flag)
            if bit is None:
                raise p.err(f"Invalid access token {flag}")
            access |= bit
        p.end()
        return access

    def _label(self, labels: _CodeLabels) -> Label:
        line = self.p.line
        return self._sym_label(labels, self.p.sym(), line)

    def _labels(self, labels: _CodeLabels) -> List[Label]:
        p = self.p
        p.begin()
        table = []
        while p.more():
            table.append(self._label(labels))
        p.end()
        return table

    def _sym_label(self, labels: _CodeLabels, name: Optional[str], line: Optional[int] = None) -> Label:
        if not name or name[0] != "L":
            raise self.p.err(f"Expected label, got {name}")
        label = labels.by_name.get(name)
        if label is None:
            label = Label()
            labels.by_name[name] = label
            labels.first_use[name] = line if line is not None else self.p.line
        return label

    def _handle(self) -> Handle:
        p = self.p
        tag = op.HANDLE_BY_NAME.get(p.sym())
        if tag is None:
            raise p.err("Invalid tag")
        owner = p.sym()
        name = p.sym()
        descriptor = p.str_val()
        return Handle(tag, owner, name, descriptor, p.bool_val())

    def generic(self):
        p = self.p
        if p.is_str_val():
            return p.str_val()
        p.begin()
        tag = p.sym()
        if tag == "H":
            value = self._handle()
        elif tag == "T":
            value = TypeRef(p.str_val())
        elif tag == "[I":
            values = []
            while p.more():
                values.append(p.int_val())
            value = IntArray(tuple(values))
        elif tag in PRIMITIVES:
            value = PRIMITIVES[tag](self._primitive(tag))
        else:
            raise p.err(f"Invalid value type {tag}")
        p.end()
        return value

    def _primitive(self, tag: str):
        p = self.p
        if tag == "Z":
            return p.bool_val()
        if tag == "C":
            return p.char_val()
        if tag == "B":
            return p.byte_val()
        if tag == "S":
            return p.short_val()
        if tag == "I":
            return p.int_val()
        if tag == "J":
            return p.long_val()
        if tag == "F":
            return p.float_val()
        return p.double_val()

    def generics(self) -> Optional[List]:
        p = self.p
        if p.is_null():
            p.sym()
            return None
        p.begin()
        values = []
        while p.more():
            values.append(self.generic())
        p.end()
        return values
