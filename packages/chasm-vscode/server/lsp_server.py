from __future__ import annotations

import io
import sys
from pathlib import Path


def _fatal(msg: str) -> None:
    sys.stderr.write(msg + "\n")
    sys.stderr.flush()


try:
    try:
        from pygls.lsp.server import LanguageServer
    except Exception:
        from pygls.server import LanguageServer
    from lsprotocol.types import (
        TEXT_DOCUMENT_DID_CHANGE,
        TEXT_DOCUMENT_DID_OPEN,
        TEXT_DOCUMENT_FORMATTING,
        Diagnostic,
        DiagnosticSeverity,
        Position,
        Range,
        TextEdit,
    )
except Exception as e:
    _fatal(f"chasm: Failed to import LSP dependencies: {e}")
    raise


SERVER = LanguageServer("chasm-server", "v0.1")

# --- PATH SETUP ---
# Ensure chasm_lang is importable from ../../../
SERVER_DIR = Path(__file__).resolve().parent
ROOT_DIR = SERVER_DIR.parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

try:
    from chasm_lang import ChasmError, ClassParser, ClassPrinter, ClassVisitor
    from chasm_lang.sexp_parser import parse_tree
    from lark.exceptions import UnexpectedInput
except ImportError:
    _fatal("chasm: Could not import 'chasm_lang'. Ensure repo root is in PYTHONPATH.")
    raise


# --- DIAGNOSTICS LOGIC ---


def _make_diag(line0: int, col0: int, msg: str) -> Diagnostic:
    start = Position(line=max(line0, 0), character=max(col0, 0))
    end = Position(line=max(line0, 0), character=max(col0, 0) + 10)
    return Diagnostic(
        range=Range(start=start, end=end),
        message=msg,
        severity=DiagnosticSeverity.Error,
        source="chasm",
    )


def _read_all(source: str, visitor_factory) -> None:
    parser = ClassParser(source)
    while parser.read(visitor_factory()):
        pass


def check_document(source: str) -> list[Diagnostic]:
    """Structural check with the lark grammar, then a full read into a discarding visitor."""
    try:
        parse_tree(source)
    except UnexpectedInput as e:
        line = (getattr(e, "line", 1) or 1) - 1
        col = (getattr(e, "column", 1) or 1) - 1
        return [_make_diag(line, col, str(e).split("\n")[0])]
    if not source.strip():
        return []
    try:
        _read_all(source, ClassVisitor)
    except ChasmError as e:
        line = getattr(e, "line", None) or 1
        return [_make_diag(line - 1, 0, getattr(e, "message", str(e)))]
    return []


def format_document(source: str) -> str:
    out = io.StringIO()
    printer = ClassPrinter(out)
    _read_all(source, lambda: printer)
    printer.p.close()
    return out.getvalue()


def validate(ls: LanguageServer, uri: str) -> None:
    doc = ls.workspace.get_document(uri)
    ls.publish_diagnostics(uri, check_document(doc.source))


@SERVER.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls, params):
    validate(ls, params.text_document.uri)


@SERVER.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls, params):
    validate(ls, params.text_document.uri)


@SERVER.feature(TEXT_DOCUMENT_FORMATTING)
def formatting(ls, params):
    doc = ls.workspace.get_document(params.text_document.uri)
    try:
        text = format_document(doc.source)
    except ChasmError:
        return None
    lines = doc.source.split("\n")
    end = Position(line=len(lines), character=0)
    return [TextEdit(range=Range(start=Position(line=0, character=0), end=end), new_text=text)]


if __name__ == "__main__":
    SERVER.start_io()
