"""Token cursor over the s-expression text form."""

import math
import struct
from collections import namedtuple
from typing import IO, List, Optional, Union

from lark import Lark
from lark.exceptions import UnexpectedCharacters

from .escape import code_units, unescape_string
from .exceptions import GrammaticalError, IoError, LexicalError
from .grammar import SEXP_GRAMMAR

LPAR = "LPAR"
RPAR = "RPAR"
STR = "STR"
CHAR = "CHAR"
SYM = "SYM"
INT = "INT"
FLOAT = "FLOAT"
END = "END"

_KIND_NAMES = {
    LPAR: "'('",
    RPAR: "')'",
    STR: "string",
    CHAR: "character",
    SYM: "symbol",
    INT: "integer",
    FLOAT: "float",
    END: "end of input",
}

_Token = namedtuple("_Token", ["kind", "value", "line"])

_LEXER = None


def get_lexer() -> Lark:
    """Lazily construct and cache the tokenizer built from the canonical grammar."""
    global _LEXER
    if _LEXER is None:
        _LEXER = Lark(SEXP_GRAMMAR, parser="lalr", lexer="basic")
    return _LEXER


def wrap(value: int, bits: int) -> int:
    """Truncate ``value`` to a signed two's-complement integer of ``bits`` bits."""
    mask = (1 << bits) - 1
    value &= mask
    if value >> (bits - 1):
        value -= 1 << bits
    return value


def to_float32(value: float) -> float:
    try:
        return struct.unpack(">f", struct.pack(">f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _convert_number(text: str, line: int) -> _Token:
    if any(c in "eE.fF" for c in text):
        s = text[:-1] if text[-1] in "fF" else text
        try:
            return _Token(FLOAT, float(s), line)
        except ValueError:
            raise LexicalError(f"Malformed number {text}", line) from None
    try:
        return _Token(INT, wrap(int(text), 64), line)
    except ValueError:
        raise LexicalError(f"Malformed number {text}", line) from None


def _convert(tok) -> _Token:
    line = tok.line
    kind = tok.type
    if kind == "LPAR":
        return _Token(LPAR, "(", line)
    if kind == "RPAR":
        return _Token(RPAR, ")", line)
    if kind == "SYMBOL":
        return _Token(SYM, str(tok), line)
    if kind == "NUMBER":
        return _convert_number(str(tok), line)
    value = unescape_string(str(tok)[1:-1])
    if value is None:
        raise LexicalError("Invalid escape sequence", line)
    if kind == "STRING":
        return _Token(STR, value, line)
    units = len(list(code_units(value)))
    if units == 0:
        raise LexicalError("Empty character literal", line)
    if units > 1:
        raise LexicalError("Character literal too long", line)
    return _Token(CHAR, value, line)


class SExpParser:
    """One-token-lookahead cursor with typed accessors."""

    def __init__(self, source: Union[str, IO[str]]):
        if not isinstance(source, str):
            try:
                source = source.read()
            except (OSError, UnicodeDecodeError) as e:
                raise IoError(f"Failed to read input: {e}") from e
        self._tokens = get_lexer().lex(source)
        self._peeked: Optional[_Token] = None
        self._line = 1

    # --- TOKEN STREAM ---

    def _fill(self) -> _Token:
        if self._peeked is None:
            try:
                tok = next(self._tokens)
            except StopIteration:
                self._peeked = _Token(END, None, self._line)
            except UnexpectedCharacters as e:
                if e.char in "\"'":
                    raise LexicalError("Unterminated literal", e.line) from None
                raise LexicalError(f"Unexpected character {e.char!r}", e.line) from None
            else:
                self._peeked = _convert(tok)
            self._line = self._peeked.line
        return self._peeked

    def _next(self) -> _Token:
        tok = self._fill()
        if tok.kind != END:
            self._peeked = None
        return tok

    def _expect(self, kind: str) -> _Token:
        tok = self._next()
        if tok.kind != kind:
            raise self.err(f"Expected {_KIND_NAMES[kind]}, got {self._describe(tok)}")
        return tok

    @staticmethod
    def _describe(tok: _Token) -> str:
        if tok.kind in (SYM, INT, FLOAT):
            return f"{_KIND_NAMES[tok.kind]} {tok.value}"
        return _KIND_NAMES[tok.kind]

    @property
    def line(self) -> int:
        return self._line

    def err(self, message: str) -> GrammaticalError:
        return GrammaticalError(message, self._line)

    # --- STRUCTURE ---

    def begin(self) -> None:
        self._expect(LPAR)

    def end(self) -> None:
        self._expect(RPAR)

    def block(self, name: str) -> None:
        self.begin()
        tok = self._next()
        if tok.kind != SYM or tok.value != name:
            raise self.err(f"Expected {name}, got {self._describe(tok)}")

    def skip(self) -> None:
        """Consume one complete item, descending into nested lists."""
        if self._fill().kind == LPAR:
            self.begin()
            while self.more():
                self.skip()
            self.end()
        else:
            self._next()

    def more(self) -> bool:
        return self._fill().kind not in (RPAR, END)

    def at_end(self) -> bool:
        return self._fill().kind == END

    # --- VALUES ---

    def is_null(self) -> bool:
        tok = self._fill()
        return tok.kind == SYM and tok.value == "null"

    def is_str_val(self) -> bool:
        return self._fill().kind == STR or self.is_null()

    def is_bool_val(self) -> bool:
        tok = self._fill()
        return tok.kind == SYM and tok.value in ("true", "false")

    def sym(self) -> Optional[str]:
        value = self._expect(SYM).value
        return None if value == "null" else value

    def syms(self) -> Optional[List[str]]:
        if self.is_null():
            self._next()
            return None
        self.begin()
        names = []
        while self.more():
            names.append(self.sym())
        self.end()
        return names

    def str_val(self) -> Optional[str]:
        if self._fill().kind == SYM:
            tok = self._next()
            if tok.value != "null":
                raise self.err(f"Expected null, got {self._describe(tok)}")
            return None
        return self._expect(STR).value

    def char_val(self) -> str:
        return self._expect(CHAR).value

    def bool_val(self) -> bool:
        tok = self._next()
        if tok.kind == SYM and tok.value == "true":
            return True
        if tok.kind == SYM and tok.value == "false":
            return False
        raise self.err(f"Expected boolean, got {self._describe(tok)}")

    def long_val(self) -> int:
        return self._expect(INT).value

    def int_val(self) -> int:
        return wrap(self.long_val(), 32)

    def short_val(self) -> int:
        return wrap(self.long_val(), 16)

    def byte_val(self) -> int:
        return wrap(self.long_val(), 8)

    def double_val(self) -> float:
        tok = self._fill()
        if tok.kind == SYM and tok.value == "Infinity":
            self._next()
            return math.inf
        if tok.kind == SYM and tok.value == "NaN":
            self._next()
            return math.nan
        return self._expect(FLOAT).value

    def float_val(self) -> float:
        return to_float32(self.double_val())


_TREE_PARSER = None


def parse_tree(text: str):
    """Parse ``text`` into a lark tree of nested lists; used for editor diagnostics."""
    global _TREE_PARSER
    if _TREE_PARSER is None:
        _TREE_PARSER = Lark(SEXP_GRAMMAR, parser="lalr", propagate_positions=True)
    return _TREE_PARSER.parse(text)
