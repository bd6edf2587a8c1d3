"""C-style escaping for string and character literals.

Strings are treated as sequences of UTF-16 code units: a character above
U+FFFF is written as its surrogate pair, and unescaping never recombines
surrogates.
"""

from typing import Iterator, Optional

_SIMPLE_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}

_SIMPLE_UNESCAPES = {
    '"': '"',
    "\\": "\\",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
}

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def code_units(s: str) -> Iterator[int]:
    """Yield the UTF-16 code units of ``s``."""
    for ch in s:
        c = ord(ch)
        if c > 0xFFFF:
            c -= 0x10000
            yield 0xD800 | (c >> 10)
            yield 0xDC00 | (c & 0x3FF)
        else:
            yield c


def _escape_unit(c: int) -> str:
    ch = chr(c)
    simple = _SIMPLE_ESCAPES.get(ch)
    if simple is not None:
        return simple
    if 0x20 <= c < 0x7F:
        return ch
    return "\\u%04X" % c


def escape_char(c: str) -> str:
    return "".join(_escape_unit(u) for u in code_units(c))


def escape_string(s: str) -> str:
    return "".join(_escape_unit(u) for u in code_units(s))


def unescape_string(s: str) -> Optional[str]:
    """Reverse :func:`escape_string`; returns ``None`` for a malformed escape."""
    out = []
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        i += 1
        if ch != "\\":
            out.append(ch)
            continue
        if i >= n:
            return None
        ch = s[i]
        i += 1
        if ch == "u":
            digits = s[i : i + 4]
            if len(digits) < 4 or not all(d in _HEX_DIGITS for d in digits):
                return None
            out.append(chr(int(digits, 16)))
            i += 4
            continue
        simple = _SIMPLE_UNESCAPES.get(ch)
        if simple is None:
            return None
        out.append(simple)
    return "".join(out)
