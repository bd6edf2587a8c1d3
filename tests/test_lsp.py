from __future__ import annotations

import importlib.util
import unittest
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace

from tests.trace_runner import read_fixture

ROOT = Path(__file__).resolve().parents[1]
LSP_PATH = ROOT / "packages" / "chasm-vscode" / "server" / "lsp_server.py"


def _load_lsp_module():
    spec = importlib.util.spec_from_file_location("chasm_lsp_server", LSP_PATH)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Failed to load module spec from {LSP_PATH}")
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


@dataclass
class _Doc:
    source: str


class _Workspace:
    def __init__(self, text: str):
        self._doc = _Doc(text)

    def get_document(self, uri: str) -> _Doc:
        return self._doc


class _LS:
    def __init__(self, text: str):
        self.workspace = _Workspace(text)
        self.published: dict[str, list[object]] = {}

    def publish_diagnostics(self, uri: str, diagnostics: list[object]) -> None:
        self.published[uri] = diagnostics


def _params(uri: str):
    return SimpleNamespace(text_document=SimpleNamespace(uri=uri))


class LspTests(unittest.TestCase):
    def setUp(self):
        self.lsp = _load_lsp_module()

    def test_lsp_accepts_canonical_document(self) -> None:
        self.assertEqual(self.lsp.check_document(read_fixture("counter.chasm")), [])

    def test_lsp_accepts_empty_document(self) -> None:
        self.assertEqual(self.lsp.check_document(""), [])

    def test_lsp_reports_unbalanced_parentheses(self) -> None:
        diags = self.lsp.check_document("(class 52 () A null java/lang/Object ()\n (source \"A.java\" null)")
        self.assertEqual(len(diags), 1)
        self.assertEqual(diags[0].source, "chasm")

    def test_lsp_reports_undefined_label_on_its_line(self) -> None:
        src = '(class 52 () A null java/lang/Object ()\n (method () m "()V" null null\n  (code\n   (goto L3))))'
        diags = self.lsp.check_document(src)
        self.assertEqual(len(diags), 1)
        self.assertEqual(diags[0].message, "Undefined label L3")
        self.assertEqual(diags[0].range.start.line, 3)

    def test_lsp_reports_unknown_instruction(self) -> None:
        src = '(class 52 () A null java/lang/Object ()\n (method () m "()V" null null\n  (code\n   (jump L0))))'
        diags = self.lsp.check_document(src)
        self.assertTrue(any("Unknown instruction jump" in d.message for d in diags))

    def test_validate_publishes_diagnostics(self) -> None:
        ls = _LS("(class 52 (publik) A null java/lang/Object ())")
        self.lsp.validate(ls, "file:///a.chasm")
        diags = ls.published["file:///a.chasm"]
        self.assertEqual(len(diags), 1)
        self.assertIn("Invalid access token publik", diags[0].message)

    def test_formatting_returns_canonical_text(self) -> None:
        messy = " ".join(read_fixture("hello.chasm").split())
        edits = self.lsp.formatting(_LS(messy), _params("file:///Hello.chasm"))
        self.assertEqual(len(edits), 1)
        self.assertEqual(edits[0].new_text, read_fixture("hello.chasm"))
        self.assertEqual(edits[0].range.start.line, 0)

    def test_formatting_skips_broken_documents(self) -> None:
        self.assertIsNone(self.lsp.formatting(_LS("(class 52 (publik))"), _params("file:///a.chasm")))


if __name__ == "__main__":
    unittest.main(verbosity=2)
