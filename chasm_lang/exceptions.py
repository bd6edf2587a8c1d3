from typing import Optional


class ChasmError(Exception):
    """Base exception for the translator."""

    pass


class SExpError(ChasmError):
    """A fault in a text document, tagged with the 1-based line it occurred on."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        if line is None:
            super().__init__(message)
        else:
            super().__init__(f"{message} at line {line}")


class LexicalError(SExpError):
    """Raised for characters, literals or escapes the tokenizer cannot read."""

    pass


class GrammaticalError(SExpError):
    """Raised when a token is valid but does not fit the document structure."""

    pass


class SemanticError(SExpError):
    """Raised when a well-formed document is inconsistent with itself."""

    pass


class IoError(SExpError):
    """Raised when the underlying text source cannot be read."""

    pass


class ClassFormatError(ChasmError):
    """Raised for malformed class files and for content a class file cannot hold."""

    pass
