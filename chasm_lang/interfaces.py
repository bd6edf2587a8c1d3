import sys
from abc import ABC, abstractmethod
from typing import Optional

from .visitor import ClassVisitor


def _resolve_print():
    chasm_mod = sys.modules.get("chasm")
    return getattr(chasm_mod, "print", print)


class IOHandler(ABC):
    """Abstracts reporting so the pipeline can be hosted in different frontends."""

    @abstractmethod
    def emit(self, symbol: str, message: str) -> None: ...


class ConsoleIO(IOHandler):
    """Console-backed reporting used by the CLI."""

    def emit(self, symbol: str, message: str) -> None:
        line = f"{symbol} {message}"
        try:
            _resolve_print()(line)
        except UnicodeEncodeError:
            _resolve_print()(message.encode("ascii", "backslashreplace").decode("ascii"))


class SilentIO(IOHandler):
    """Discards every report; used by the language server and tests."""

    def emit(self, symbol: str, message: str) -> None:
        pass


class ClassInput(ABC):
    """A producer of classes: text documents, class files or archives."""

    @abstractmethod
    def read(self, visitor: ClassVisitor) -> bool:
        """Replay the next class on ``visitor``; return whether another one follows."""

    def close(self) -> None:
        pass


class ClassOutput(ABC):
    """A consumer of classes; hands out one visitor per class."""

    @abstractmethod
    def write(self) -> Optional[ClassVisitor]:
        """Finish the previous class and return the visitor for the next one."""

    def close(self) -> None:
        pass
