"""chasm entrypoint module exposing the public API and CLI."""

import argparse
import os
import sys

from chasm_lang import (
    SEXP_GRAMMAR,
    ChasmError,
    ClassFormatError,
    ClassParser,
    ClassPrinter,
    ClassReader,
    ClassWriter,
    ConsoleIO,
    IOHandler,
    Pipeline,
    PipelineOptions,
)

__all__ = [
    "SEXP_GRAMMAR",
    "ChasmError",
    "ClassFormatError",
    "ClassParser",
    "ClassPrinter",
    "ClassReader",
    "ClassWriter",
    "ConsoleIO",
    "IOHandler",
    "Pipeline",
    "PipelineOptions",
    "main",
]


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="chasm", description="Translate between JVM class files and their s-expression text form"
    )
    parser.add_argument("-m", "--maxs", action="store_true", help="Recompute max stack and max locals")
    parser.add_argument("-v", "--verify", action="store_true", help="Re-read every class read or written")
    parser.add_argument("input", help="Input .class, .jar or text file")
    parser.add_argument("output", nargs="?", help="Output .class, .jar or text file")
    args = parser.parse_args(argv)

    options = PipelineOptions.from_env()
    if args.maxs:
        options.compute_maxs = True
    if args.verify:
        options.verify = True

    pipeline = Pipeline(options, io_handler=ConsoleIO())
    output = os.path.abspath(args.output) if args.output else None
    try:
        pipeline.process(os.path.abspath(args.input), output)
    except Exception as e:
        try:
            print(f"FATAL ERROR\n{e}", file=sys.stderr)
        except UnicodeEncodeError:
            print("FATAL ERROR", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
