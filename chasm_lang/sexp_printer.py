"""Indenting writer for the s-expression text form."""

import math
from decimal import Decimal
from typing import IO, Iterable, Optional

from .escape import escape_char, escape_string
from .sexp_parser import to_float32

BEGIN, LPAR, RPAR, VAL, END, INDENT = range(6)


def _java_decimal(digits: str) -> str:
    d = Decimal(digits)
    if d == 0 or Decimal("1e-3") <= abs(d) < Decimal("1e7"):
        text = format(d, "f")
        if "." not in text:
            text += ".0"
        return text
    sign, ds, exponent = d.normalize().as_tuple()
    mantissa = "".join(str(x) for x in ds)
    exp = exponent + len(ds) - 1
    return f"{'-' if sign else ''}{mantissa[0]}.{mantissa[1:] or '0'}E{exp}"


def format_double(v: float) -> str:
    """Shortest decimal that reads back to ``v``, in the JVM's notation."""
    if math.isnan(v):
        return "NaN"
    if math.isinf(v):
        return "Infinity" if v > 0 else "-Infinity"
    return _java_decimal(repr(v))


def format_float(v: float) -> str:
    """Like :func:`format_double`, with the shortest digits that survive binary32."""
    if math.isnan(v) or math.isinf(v):
        return format_double(v)
    for precision in range(1, 10):
        digits = "%.*g" % (precision, v)
        if to_float32(float(digits)) == v:
            break
    return _java_decimal(digits)


class SExpPrinter:
    def __init__(self, out: IO[str]):
        self._out = out
        self._indent = 0
        self._pos = BEGIN
        self._written = False

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._written = True

    def _space(self) -> None:
        pos = self._pos
        if pos == END:
            self._indent -= 1
            pos = INDENT
        if pos == INDENT:
            self._write("\n")
            self._indent += 1
            pos = BEGIN
        if pos == BEGIN:
            self._write(" " * self._indent)
        elif pos in (RPAR, VAL):
            self._write(" ")
        self._pos = VAL

    def begin(self) -> None:
        self._space()
        self._write("(")
        self._pos = LPAR

    def block(self, name: str) -> None:
        self.begin()
        self.sym(name)

    def end(self) -> None:
        self._write(")")
        self._pos = RPAR

    def end_line(self) -> None:
        self._write(")")
        self._pos = END

    def new_line(self) -> None:
        self._pos = END

    def indent(self) -> None:
        if self._pos == LPAR:
            self._indent += 1
        else:
            self._pos = INDENT

    def unindent(self) -> None:
        if self._pos != INDENT:
            self._indent -= 1

    def sym(self, name: Optional[str]) -> None:
        self._space()
        self._write("null" if name is None else name)

    def syms(self, names: Optional[Iterable[str]]) -> None:
        if names is None:
            self.sym(None)
            return
        self.begin()
        for name in names:
            self.sym(name)
        self.end()

    def val(self, value) -> None:
        self._space()
        if value is None:
            self._write("null")
        elif isinstance(value, bool):
            self._write("true" if value else "false")
        elif isinstance(value, int):
            self._write(str(value))
        elif isinstance(value, float):
            self._write(format_double(value))
        elif isinstance(value, str):
            self._write('"' + escape_string(value) + '"')
        else:
            raise TypeError(f"Cannot print value of type {type(value).__name__}")

    def val_float(self, value: float) -> None:
        self._space()
        self._write(format_float(value))

    def val_char(self, value: str) -> None:
        self._space()
        # a bare apostrophe would end the literal
        escaped = "\\u0027" if value == "'" else escape_char(value)
        self._write("'" + escaped + "'")

    def flush(self) -> None:
        self._out.flush()

    def close(self) -> None:
        if self._written:
            self._out.write("\n")
            self._written = False
        self.flush()
