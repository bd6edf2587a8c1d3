"""Field and method descriptor helpers."""

from typing import List, Tuple

from .exceptions import ClassFormatError


def _field_end(desc: str, i: int) -> int:
    while i < len(desc) and desc[i] == "[":
        i += 1
    if i >= len(desc):
        raise ClassFormatError(f"Malformed descriptor {desc!r}")
    if desc[i] == "L":
        end = desc.find(";", i)
        if end < 0:
            raise ClassFormatError(f"Malformed descriptor {desc!r}")
        return end + 1
    if desc[i] not in "ZBCSIJFDV":
        raise ClassFormatError(f"Malformed descriptor {desc!r}")
    return i + 1


def parse_method_descriptor(desc: str) -> Tuple[List[str], str]:
    """Split ``(args)ret`` into argument descriptors and the return descriptor."""
    if not desc.startswith("("):
        raise ClassFormatError(f"Malformed method descriptor {desc!r}")
    args = []
    i = 1
    while i < len(desc) and desc[i] != ")":
        end = _field_end(desc, i)
        args.append(desc[i:end])
        i = end
    if i >= len(desc):
        raise ClassFormatError(f"Malformed method descriptor {desc!r}")
    return args, desc[i + 1 :]


def type_size(desc: str) -> int:
    """Number of stack or local slots a value of the given type occupies."""
    if desc == "V":
        return 0
    return 2 if desc in ("J", "D") else 1


def arguments_size(desc: str) -> int:
    args, _ = parse_method_descriptor(desc)
    return sum(type_size(a) for a in args)
