import math
import os
import struct
from dataclasses import dataclass
from typing import Optional, Tuple

from .sexp_parser import to_float32, wrap


class Label:
    """A position inside a method's code; compared by identity."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Label(0x{id(self):x})"


@dataclass(frozen=True)
class Handle:
    tag: int
    owner: str
    name: str
    descriptor: str
    is_interface: bool = False


@dataclass(frozen=True)
class TypeRef:
    """A class, array or method type given by its descriptor."""

    descriptor: str

    @classmethod
    def from_internal_name(cls, name: str) -> "TypeRef":
        if name.startswith("["):
            return cls(name)
        return cls(f"L{name};")

    def is_method(self) -> bool:
        return self.descriptor.startswith("(")

    def internal_name(self) -> str:
        d = self.descriptor
        if d.startswith("L") and d.endswith(";"):
            return d[1:-1]
        return d


ARRAY_ELEMENT = 0
INNER_TYPE = 1
WILDCARD_BOUND = 2
TYPE_ARGUMENT = 3

_STEP_CHARS = {"[": ARRAY_ELEMENT, ".": INNER_TYPE, "*": WILDCARD_BOUND}
_STEP_TEXT = {v: k for k, v in _STEP_CHARS.items()}


@dataclass(frozen=True)
class TypePath:
    """Path to a type argument, wildcard bound, array element or nested type."""

    steps: Tuple[Tuple[int, int], ...]

    @classmethod
    def from_string(cls, text: Optional[str]) -> Optional["TypePath"]:
        if not text:
            return None
        steps = []
        i = 0
        while i < len(text):
            c = text[i]
            i += 1
            if c in _STEP_CHARS:
                steps.append((_STEP_CHARS[c], 0))
            elif c.isdigit():
                j = i
                while j < len(text) and text[j].isdigit():
                    j += 1
                if j >= len(text) or text[j] != ";":
                    raise ValueError(f"Malformed type path {text!r}")
                steps.append((TYPE_ARGUMENT, int(text[i - 1 : j])))
                i = j + 1
            else:
                raise ValueError(f"Malformed type path {text!r}")
        return cls(tuple(steps))

    def __str__(self) -> str:
        return "".join(
            f"{arg};" if kind == TYPE_ARGUMENT else _STEP_TEXT[kind] for kind, arg in self.steps
        )


@dataclass(frozen=True)
class Attribute:
    """A class-file attribute the translator does not interpret."""

    name: str
    data: bytes = b""


class Primitive:
    """A constant carrying its JVM primitive type."""

    __slots__ = ("value",)
    tag = "?"

    def __init__(self, value):
        self.value = self._coerce(value)

    @staticmethod
    def _coerce(value):
        return value

    def _key(self):
        return self.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"

    def __eq__(self, other):
        return type(other) is type(self) and self._key() == other._key()

    def __hash__(self):
        return hash((self.tag, self._key()))


class Boolean(Primitive):
    __slots__ = ()
    tag = "Z"

    @staticmethod
    def _coerce(value):
        return bool(value)


class Char(Primitive):
    __slots__ = ()
    tag = "C"

    @staticmethod
    def _coerce(value):
        if isinstance(value, int):
            value = chr(value & 0xFFFF)
        if len(value) != 1 or ord(value) > 0xFFFF:
            raise ValueError("Char must be a single 16-bit code unit")
        return value


class Byte(Primitive):
    __slots__ = ()
    tag = "B"

    @staticmethod
    def _coerce(value):
        return wrap(int(value), 8)


class Short(Primitive):
    __slots__ = ()
    tag = "S"

    @staticmethod
    def _coerce(value):
        return wrap(int(value), 16)


class Int(Primitive):
    __slots__ = ()
    tag = "I"

    @staticmethod
    def _coerce(value):
        return wrap(int(value), 32)


class Long(Primitive):
    __slots__ = ()
    tag = "J"

    @staticmethod
    def _coerce(value):
        return wrap(int(value), 64)


class Float(Primitive):
    __slots__ = ()
    tag = "F"

    @staticmethod
    def _coerce(value):
        return to_float32(float(value))

    def _key(self):
        if math.isnan(self.value):
            return "NaN"
        return struct.pack(">f", self.value)


class Double(Primitive):
    __slots__ = ()
    tag = "D"

    @staticmethod
    def _coerce(value):
        return float(value)

    def _key(self):
        if math.isnan(self.value):
            return "NaN"
        return struct.pack(">d", self.value)


PRIMITIVES = {cls.tag: cls for cls in (Boolean, Char, Byte, Short, Int, Long, Float, Double)}


@dataclass(frozen=True)
class IntArray:
    values: Tuple[int, ...] = ()


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PipelineOptions:
    compute_maxs: bool = False
    verify: bool = False

    @classmethod
    def from_env(cls) -> "PipelineOptions":
        return cls(compute_maxs=_env_flag("CHASM_COMPUTE_MAXS"), verify=_env_flag("CHASM_VERIFY"))
