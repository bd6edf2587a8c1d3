from .grammar import SEXP_GRAMMAR
from .exceptions import (
    ChasmError,
    SExpError,
    LexicalError,
    GrammaticalError,
    SemanticError,
    IoError,
    ClassFormatError,
)
from .escape import escape_char, escape_string, unescape_string
from .interfaces import IOHandler, ConsoleIO, SilentIO, ClassInput, ClassOutput
from .models import (
    Label,
    Handle,
    TypeRef,
    TypePath,
    Attribute,
    Boolean,
    Char,
    Byte,
    Short,
    Int,
    Long,
    Float,
    Double,
    IntArray,
    PipelineOptions,
)
from .visitor import (
    AnnotationVisitor,
    ModuleVisitor,
    FieldVisitor,
    MethodVisitor,
    ClassVisitor,
)
from .sexp_parser import SExpParser
from .sexp_printer import SExpPrinter
from .class_parser import ClassParser
from .class_printer import ClassPrinter
from .bytecode_reader import ClassReader
from .bytecode_writer import ClassWriter
from .pipeline import Pipeline, DebugVisitor

__all__ = [
    "SEXP_GRAMMAR",
    "ChasmError",
    "SExpError",
    "LexicalError",
    "GrammaticalError",
    "SemanticError",
    "IoError",
    "ClassFormatError",
    "escape_char",
    "escape_string",
    "unescape_string",
    "IOHandler",
    "ConsoleIO",
    "SilentIO",
    "ClassInput",
    "ClassOutput",
    "Label",
    "Handle",
    "TypeRef",
    "TypePath",
    "Attribute",
    "Boolean",
    "Char",
    "Byte",
    "Short",
    "Int",
    "Long",
    "Float",
    "Double",
    "IntArray",
    "PipelineOptions",
    "AnnotationVisitor",
    "ModuleVisitor",
    "FieldVisitor",
    "MethodVisitor",
    "ClassVisitor",
    "SExpParser",
    "SExpPrinter",
    "ClassParser",
    "ClassPrinter",
    "ClassReader",
    "ClassWriter",
    "Pipeline",
    "DebugVisitor",
]
