"""Constant pool construction and the modified UTF-8 string encoding."""

import struct
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple

from .escape import code_units
from .exceptions import ClassFormatError
from .models import Boolean, Byte, Char, Double, Float, Handle, Int, Long, Short, TypeRef


class ConstantPoolTag(IntEnum):
    UTF8 = 1
    INTEGER = 3
    FLOAT = 4
    LONG = 5
    DOUBLE = 6
    CLASS = 7
    STRING = 8
    FIELDREF = 9
    METHODREF = 10
    INTERFACE_METHODREF = 11
    NAME_AND_TYPE = 12
    METHOD_HANDLE = 15
    METHOD_TYPE = 16
    DYNAMIC = 17
    INVOKE_DYNAMIC = 18
    MODULE = 19
    PACKAGE = 20


def encode_modified_utf8(value: str) -> bytes:
    out = bytearray()
    for c in code_units(value):
        if 0x01 <= c <= 0x7F:
            out.append(c)
        elif c <= 0x7FF:
            out.append(0xC0 | (c >> 6))
            out.append(0x80 | (c & 0x3F))
        else:
            out.append(0xE0 | (c >> 12))
            out.append(0x80 | ((c >> 6) & 0x3F))
            out.append(0x80 | (c & 0x3F))
    return bytes(out)


def decode_modified_utf8(data: bytes) -> str:
    chars = []
    i = 0
    n = len(data)
    try:
        while i < n:
            b = data[i]
            if b < 0x80:
                chars.append(b)
                i += 1
            elif b & 0xE0 == 0xC0:
                chars.append(((b & 0x1F) << 6) | (data[i + 1] & 0x3F))
                i += 2
            elif b & 0xF0 == 0xE0:
                chars.append(((b & 0x0F) << 12) | ((data[i + 1] & 0x3F) << 6) | (data[i + 2] & 0x3F))
                i += 3
            else:
                raise ClassFormatError(f"Invalid modified UTF-8 byte 0x{b:02x}")
    except IndexError:
        raise ClassFormatError("Truncated modified UTF-8 string") from None
    return "".join(map(chr, chars))


class ConstantPool:
    """Manages the constant pool and bootstrap method table of a class being written."""

    def __init__(self):
        self._entries: List[Optional[bytes]] = [None]  # 1-indexed
        self._cache: Dict[tuple, int] = {}
        self.bootstrap_methods: List[Tuple[int, Tuple[int, ...]]] = []
        self._bootstrap_cache: Dict[tuple, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _add(self, key: tuple, data: bytes) -> int:
        if key in self._cache:
            return self._cache[key]
        idx = len(self._entries)
        if idx > 0xFFFF:
            raise ClassFormatError("Constant pool overflow")
        self._entries.append(bytes([key[0]]) + data)
        self._cache[key] = idx
        # Long and Double take two slots
        if key[0] in (ConstantPoolTag.LONG, ConstantPoolTag.DOUBLE):
            self._entries.append(None)
        return idx

    def add_utf8(self, value: str) -> int:
        data = encode_modified_utf8(value)
        if len(data) > 0xFFFF:
            raise ClassFormatError("String constant too long")
        return self._add((ConstantPoolTag.UTF8, value), struct.pack(">H", len(data)) + data)

    def add_integer(self, value: int) -> int:
        return self._add((ConstantPoolTag.INTEGER, value), struct.pack(">i", value))

    def add_float(self, value: float) -> int:
        data = struct.pack(">f", value)
        return self._add((ConstantPoolTag.FLOAT, data), data)

    def add_long(self, value: int) -> int:
        return self._add((ConstantPoolTag.LONG, value), struct.pack(">q", value))

    def add_double(self, value: float) -> int:
        data = struct.pack(">d", value)
        return self._add((ConstantPoolTag.DOUBLE, data), data)

    def _add_indexed(self, tag: ConstantPoolTag, *indices: int) -> int:
        return self._add((tag,) + indices, struct.pack(">" + "H" * len(indices), *indices))

    def add_class(self, internal_name: str) -> int:
        return self._add_indexed(ConstantPoolTag.CLASS, self.add_utf8(internal_name))

    def add_string(self, value: str) -> int:
        return self._add_indexed(ConstantPoolTag.STRING, self.add_utf8(value))

    def add_module(self, name: str) -> int:
        return self._add_indexed(ConstantPoolTag.MODULE, self.add_utf8(name))

    def add_package(self, name: str) -> int:
        return self._add_indexed(ConstantPoolTag.PACKAGE, self.add_utf8(name))

    def add_method_type(self, descriptor: str) -> int:
        return self._add_indexed(ConstantPoolTag.METHOD_TYPE, self.add_utf8(descriptor))

    def add_name_and_type(self, name: str, descriptor: str) -> int:
        return self._add_indexed(ConstantPoolTag.NAME_AND_TYPE, self.add_utf8(name), self.add_utf8(descriptor))

    def add_fieldref(self, class_name: str, field_name: str, descriptor: str) -> int:
        return self._add_indexed(
            ConstantPoolTag.FIELDREF, self.add_class(class_name), self.add_name_and_type(field_name, descriptor)
        )

    def add_methodref(self, class_name: str, method_name: str, descriptor: str, is_interface: bool = False) -> int:
        tag = ConstantPoolTag.INTERFACE_METHODREF if is_interface else ConstantPoolTag.METHODREF
        return self._add_indexed(tag, self.add_class(class_name), self.add_name_and_type(method_name, descriptor))

    def add_method_handle(self, handle: Handle) -> int:
        if handle.tag <= 4:
            ref = self.add_fieldref(handle.owner, handle.name, handle.descriptor)
        else:
            ref = self.add_methodref(handle.owner, handle.name, handle.descriptor, handle.is_interface)
        key = (ConstantPoolTag.METHOD_HANDLE, handle.tag, ref)
        return self._add(key, struct.pack(">BH", handle.tag, ref))

    def add_type(self, value: TypeRef) -> int:
        if value.is_method():
            return self.add_method_type(value.descriptor)
        return self.add_class(value.internal_name())

    def add_bootstrap_method(self, handle: Handle, arguments: Sequence) -> int:
        entry = (self.add_method_handle(handle), tuple(self.add_constant(a) for a in arguments))
        if entry not in self._bootstrap_cache:
            self._bootstrap_cache[entry] = len(self.bootstrap_methods)
            self.bootstrap_methods.append(entry)
        return self._bootstrap_cache[entry]

    def add_invoke_dynamic(self, name: str, descriptor: str, handle: Handle, arguments: Sequence) -> int:
        bsm = self.add_bootstrap_method(handle, arguments)
        return self._add_indexed(ConstantPoolTag.INVOKE_DYNAMIC, bsm, self.add_name_and_type(name, descriptor))

    def add_constant(self, value) -> int:
        """Add a loadable constant as used by ``ldc``, ``ConstantValue`` and bootstrap arguments."""
        if isinstance(value, str):
            return self.add_string(value)
        if isinstance(value, (Int, Short, Byte)):
            return self.add_integer(value.value)
        if isinstance(value, Boolean):
            return self.add_integer(int(value.value))
        if isinstance(value, Char):
            return self.add_integer(ord(value.value))
        if isinstance(value, Float):
            return self.add_float(value.value)
        if isinstance(value, Long):
            return self.add_long(value.value)
        if isinstance(value, Double):
            return self.add_double(value.value)
        if isinstance(value, TypeRef):
            return self.add_type(value)
        if isinstance(value, Handle):
            return self.add_method_handle(value)
        raise ClassFormatError(f"Unsupported constant {value!r}")

    def is_wide(self, idx: int) -> bool:
        return self._entries[idx][0] in (ConstantPoolTag.LONG, ConstantPoolTag.DOUBLE)

    def write(self, out: bytearray) -> None:
        out.extend(struct.pack(">H", len(self._entries)))
        for entry in self._entries[1:]:
            if entry is not None:
                out.extend(entry)
