"""Visitor protocol shared by every producer and sink of class content.

Each visitor optionally wraps a delegate and forwards every event to it, so
a subclass only overrides the events it cares about. Methods returning a
child visitor return the delegate's child, or ``None`` when there is no
delegate; producers substitute a discarding visitor for ``None``.
"""

from typing import List, Optional, Sequence

from .models import Attribute, Handle, Label, TypePath


class AnnotationVisitor:
    def __init__(self, delegate: Optional["AnnotationVisitor"] = None):
        self.delegate = delegate

    def visit(self, name: Optional[str], value) -> None:
        if self.delegate is not None:
            self.delegate.visit(name, value)

    def visit_enum(self, name: Optional[str], descriptor: str, value: str) -> None:
        if self.delegate is not None:
            self.delegate.visit_enum(name, descriptor, value)

    def visit_annotation(self, name: Optional[str], descriptor: str) -> Optional["AnnotationVisitor"]:
        if self.delegate is not None:
            return self.delegate.visit_annotation(name, descriptor)
        return None

    def visit_array(self, name: Optional[str]) -> Optional["AnnotationVisitor"]:
        if self.delegate is not None:
            return self.delegate.visit_array(name)
        return None

    def visit_end(self) -> None:
        if self.delegate is not None:
            self.delegate.visit_end()


class ModuleVisitor:
    def __init__(self, delegate: Optional["ModuleVisitor"] = None):
        self.delegate = delegate

    def visit_main_class(self, main_class: str) -> None:
        if self.delegate is not None:
            self.delegate.visit_main_class(main_class)

    def visit_package(self, package: str) -> None:
        if self.delegate is not None:
            self.delegate.visit_package(package)

    def visit_require(self, module: str, access: int, version: Optional[str]) -> None:
        if self.delegate is not None:
            self.delegate.visit_require(module, access, version)

    def visit_export(self, package: str, access: int, modules: Optional[List[str]]) -> None:
        if self.delegate is not None:
            self.delegate.visit_export(package, access, modules)

    def visit_open(self, package: str, access: int, modules: Optional[List[str]]) -> None:
        if self.delegate is not None:
            self.delegate.visit_open(package, access, modules)

    def visit_use(self, service: str) -> None:
        if self.delegate is not None:
            self.delegate.visit_use(service)

    def visit_provide(self, service: str, providers: List[str]) -> None:
        if self.delegate is not None:
            self.delegate.visit_provide(service, providers)

    def visit_end(self) -> None:
        if self.delegate is not None:
            self.delegate.visit_end()


class FieldVisitor:
    def __init__(self, delegate: Optional["FieldVisitor"] = None):
        self.delegate = delegate

    def visit_annotation(self, descriptor: str, visible: bool) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_annotation(descriptor, visible)
        return None

    def visit_type_annotation(
        self, type_ref: int, type_path: Optional[TypePath], descriptor: str, visible: bool
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_type_annotation(type_ref, type_path, descriptor, visible)
        return None

    def visit_attribute(self, attribute: Optional[Attribute]) -> None:
        if self.delegate is not None:
            self.delegate.visit_attribute(attribute)

    def visit_end(self) -> None:
        if self.delegate is not None:
            self.delegate.visit_end()


class MethodVisitor:
    def __init__(self, delegate: Optional["MethodVisitor"] = None):
        self.delegate = delegate

    # --- METHOD METADATA ---

    def visit_parameter(self, name: Optional[str], access: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_parameter(name, access)

    def visit_annotation_default(self) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_annotation_default()
        return None

    def visit_annotation(self, descriptor: str, visible: bool) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_annotation(descriptor, visible)
        return None

    def visit_type_annotation(
        self, type_ref: int, type_path: Optional[TypePath], descriptor: str, visible: bool
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_type_annotation(type_ref, type_path, descriptor, visible)
        return None

    def visit_annotable_parameter_count(self, count: int, visible: bool) -> None:
        if self.delegate is not None:
            self.delegate.visit_annotable_parameter_count(count, visible)

    def visit_parameter_annotation(
        self, parameter: int, descriptor: str, visible: bool
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_parameter_annotation(parameter, descriptor, visible)
        return None

    def visit_attribute(self, attribute: Optional[Attribute]) -> None:
        if self.delegate is not None:
            self.delegate.visit_attribute(attribute)

    # --- CODE ---

    def visit_code(self) -> None:
        if self.delegate is not None:
            self.delegate.visit_code()

    def visit_frame(self, frame_type: int, num_local: int, local: Sequence, num_stack: int, stack: Sequence) -> None:
        if self.delegate is not None:
            self.delegate.visit_frame(frame_type, num_local, local, num_stack, stack)

    def visit_insn(self, opcode: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_insn(opcode)

    def visit_int_insn(self, opcode: int, operand: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_int_insn(opcode, operand)

    def visit_var_insn(self, opcode: int, var: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_var_insn(opcode, var)

    def visit_type_insn(self, opcode: int, type_name: str) -> None:
        if self.delegate is not None:
            self.delegate.visit_type_insn(opcode, type_name)

    def visit_field_insn(self, opcode: int, owner: str, name: str, descriptor: str) -> None:
        if self.delegate is not None:
            self.delegate.visit_field_insn(opcode, owner, name, descriptor)

    def visit_method_insn(self, opcode: int, owner: str, name: str, descriptor: str, is_interface: bool) -> None:
        if self.delegate is not None:
            self.delegate.visit_method_insn(opcode, owner, name, descriptor, is_interface)

    def visit_invoke_dynamic_insn(
        self, name: str, descriptor: str, bootstrap: Handle, arguments: Optional[List]
    ) -> None:
        if self.delegate is not None:
            self.delegate.visit_invoke_dynamic_insn(name, descriptor, bootstrap, arguments)

    def visit_jump_insn(self, opcode: int, label: Label) -> None:
        if self.delegate is not None:
            self.delegate.visit_jump_insn(opcode, label)

    def visit_label(self, label: Label) -> None:
        if self.delegate is not None:
            self.delegate.visit_label(label)

    def visit_ldc_insn(self, value) -> None:
        if self.delegate is not None:
            self.delegate.visit_ldc_insn(value)

    def visit_iinc_insn(self, var: int, increment: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_iinc_insn(var, increment)

    def visit_table_switch_insn(self, low: int, high: int, default: Label, labels: List[Label]) -> None:
        if self.delegate is not None:
            self.delegate.visit_table_switch_insn(low, high, default, labels)

    def visit_lookup_switch_insn(self, default: Label, keys: List[int], labels: List[Label]) -> None:
        if self.delegate is not None:
            self.delegate.visit_lookup_switch_insn(default, keys, labels)

    def visit_multi_anew_array_insn(self, descriptor: str, dimensions: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_multi_anew_array_insn(descriptor, dimensions)

    def visit_insn_annotation(
        self, type_ref: int, type_path: Optional[TypePath], descriptor: str, visible: bool
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_insn_annotation(type_ref, type_path, descriptor, visible)
        return None

    def visit_try_catch_block(self, start: Label, end: Label, handler: Label, type_name: Optional[str]) -> None:
        if self.delegate is not None:
            self.delegate.visit_try_catch_block(start, end, handler, type_name)

    def visit_try_catch_annotation(
        self, type_ref: int, type_path: Optional[TypePath], descriptor: str, visible: bool
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_try_catch_annotation(type_ref, type_path, descriptor, visible)
        return None

    def visit_local_variable(
        self, name: str, descriptor: str, signature: Optional[str], start: Label, end: Label, index: int
    ) -> None:
        if self.delegate is not None:
            self.delegate.visit_local_variable(name, descriptor, signature, start, end, index)

    def visit_local_variable_annotation(
        self,
        type_ref: int,
        type_path: Optional[TypePath],
        start: List[Label],
        end: List[Label],
        index: List[int],
        descriptor: str,
        visible: bool,
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_local_variable_annotation(
                type_ref, type_path, start, end, index, descriptor, visible
            )
        return None

    def visit_line_number(self, line: int, start: Label) -> None:
        if self.delegate is not None:
            self.delegate.visit_line_number(line, start)

    def visit_maxs(self, max_stack: int, max_locals: int) -> None:
        if self.delegate is not None:
            self.delegate.visit_maxs(max_stack, max_locals)

    def visit_end(self) -> None:
        if self.delegate is not None:
            self.delegate.visit_end()


class ClassVisitor:
    def __init__(self, delegate: Optional["ClassVisitor"] = None):
        self.delegate = delegate

    def visit(
        self,
        version: int,
        access: int,
        name: str,
        signature: Optional[str],
        super_name: Optional[str],
        interfaces: Optional[List[str]],
    ) -> None:
        if self.delegate is not None:
            self.delegate.visit(version, access, name, signature, super_name, interfaces)

    def visit_source(self, source: Optional[str], debug: Optional[str]) -> None:
        if self.delegate is not None:
            self.delegate.visit_source(source, debug)

    def visit_module(self, name: str, access: int, version: Optional[str]) -> Optional[ModuleVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_module(name, access, version)
        return None

    def visit_outer_class(self, owner: str, name: Optional[str], descriptor: Optional[str]) -> None:
        if self.delegate is not None:
            self.delegate.visit_outer_class(owner, name, descriptor)

    def visit_annotation(self, descriptor: str, visible: bool) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_annotation(descriptor, visible)
        return None

    def visit_type_annotation(
        self, type_ref: int, type_path: Optional[TypePath], descriptor: str, visible: bool
    ) -> Optional[AnnotationVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_type_annotation(type_ref, type_path, descriptor, visible)
        return None

    def visit_attribute(self, attribute: Optional[Attribute]) -> None:
        if self.delegate is not None:
            self.delegate.visit_attribute(attribute)

    def visit_inner_class(
        self, name: str, outer_name: Optional[str], inner_name: Optional[str], access: int
    ) -> None:
        if self.delegate is not None:
            self.delegate.visit_inner_class(name, outer_name, inner_name, access)

    def visit_field(
        self, access: int, name: str, descriptor: str, signature: Optional[str], value
    ) -> Optional[FieldVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_field(access, name, descriptor, signature, value)
        return None

    def visit_method(
        self,
        access: int,
        name: str,
        descriptor: str,
        signature: Optional[str],
        exceptions: Optional[List[str]],
    ) -> Optional[MethodVisitor]:
        if self.delegate is not None:
            return self.delegate.visit_method(access, name, descriptor, signature, exceptions)
        return None

    def visit_end(self) -> None:
        if self.delegate is not None:
            self.delegate.visit_end()
