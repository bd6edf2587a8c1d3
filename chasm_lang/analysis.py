"""Maximum stack depth and local slot computation over assembled method records."""

from typing import Dict, List, Sequence, Tuple

from . import opcodes as op
from .descriptors import arguments_size, parse_method_descriptor, type_size
from .exceptions import ClassFormatError
from .models import Label

# Stack effect of every opcode whose effect does not depend on an operand.
_STACK_DELTA: Dict[int, int] = {}


def _deltas(start: int, values: Sequence[int]) -> None:
    for i, delta in enumerate(values):
        _STACK_DELTA[start + i] = delta


_deltas(0, [0, 1, 1, 1, 1, 1, 1, 1, 1, 2, 2, 1, 1, 1, 2, 2, 1, 1])  # nop .. sipush
_deltas(21, [1, 2, 1, 2, 1])  # iload .. aload
_deltas(46, [-1, 0, -1, 0, -1, -1, -1, -1])  # iaload .. saload
_deltas(54, [-1, -2, -1, -2, -1])  # istore .. astore
_deltas(79, [-3, -4, -3, -4, -3, -3, -3, -3])  # iastore .. sastore
_deltas(87, [-1, -2, 1, 1, 1, 2, 2, 2, 0])  # pop .. swap
_deltas(96, [-1, -2, -1, -2] * 5)  # iadd .. drem
_deltas(116, [0, 0, 0, 0])  # ineg .. dneg
_deltas(120, [-1, -1, -1, -1, -1, -1, -1, -2, -1, -2, -1, -2])  # ishl .. lxor
_deltas(132, [0, 1, 0, 1, -1, -1, 0, 0, 1, 1, -1, 0, -1, 0, 0, 0])  # iinc .. i2s
_deltas(148, [-3, -1, -1, -3, -3])  # lcmp .. dcmpg
_deltas(153, [-1] * 6 + [-2] * 8)  # ifeq .. if_acmpne
_deltas(167, [0, 1, 0, -1, -1])  # goto jsr ret tableswitch lookupswitch
_deltas(172, [-1, -2, -1, -2, -1, 0])  # ireturn .. return
_deltas(187, [1, 0, 0, 0, -1, 0, 0, -1, -1])  # new .. monitorexit
_deltas(198, [-1, -1])  # ifnull ifnonnull

_BLOCK_END = frozenset([op.GOTO, op.RET, op.TABLESWITCH, op.LOOKUPSWITCH, op.ATHROW]) | frozenset(
    range(op.IRETURN, op.RETURN + 1)
)
_WIDE_VARS = frozenset([op.LLOAD, op.DLOAD, op.LSTORE, op.DSTORE])


def _stack_delta(record: tuple) -> int:
    kind, opcode = record[0], record[1]
    if kind == "ldc":
        return 2 if record[3] else 1
    if kind == "field":
        size = type_size(record[3])
        if opcode == op.GETSTATIC:
            return size
        if opcode == op.PUTSTATIC:
            return -size
        if opcode == op.GETFIELD:
            return size - 1
        return -size - 1
    if kind in ("method", "indy"):
        _, ret = parse_method_descriptor(record[3])
        delta = type_size(ret) - arguments_size(record[3])
        if opcode not in (op.INVOKESTATIC, op.INVOKEDYNAMIC):
            delta -= 1
        return delta
    if kind == "multianewarray":
        return 1 - record[3]
    return _STACK_DELTA[opcode]


def _successors(record: tuple, depth: int) -> Tuple[List[Tuple[Label, int]], bool]:
    """Branch targets with their entry depth and whether control falls through."""
    kind, opcode = record[0], record[1]
    if kind == "jump":
        if opcode == op.JSR:
            return [(record[2], depth)], True
        return [(record[2], depth)], opcode != op.GOTO
    if kind == "tableswitch":
        return [(label, depth) for label in [record[4]] + list(record[5])], False
    if kind == "lookupswitch":
        return [(label, depth) for label in [record[2]] + list(record[4])], False
    return [], opcode not in _BLOCK_END


def max_locals_of(records: Sequence[tuple], access: int, descriptor: str) -> int:
    max_locals = arguments_size(descriptor) + (0 if access & op.ACC_STATIC else 1)
    for record in records:
        if record[0] == "var":
            size = 2 if record[1] in _WIDE_VARS else 1
            max_locals = max(max_locals, record[2] + size)
        elif record[0] == "iinc":
            max_locals = max(max_locals, record[2] + 1)
    return max_locals


def max_stack_of(records: Sequence[tuple], handlers: Sequence[Label]) -> int:
    label_index = {record[2]: i for i, record in enumerate(records) if record[0] == "label"}

    def index_of(label: Label) -> int:
        try:
            return label_index[label]
        except KeyError:
            raise ClassFormatError("Undefined label") from None

    work = [(0, 0)] + [(index_of(h), 1) for h in handlers]
    seen = set()
    max_stack = 0
    while work:
        i, depth = work.pop()
        while i < len(records) and i not in seen:
            seen.add(i)
            record = records[i]
            i += 1
            if record[0] in ("label", "frame"):
                continue
            if record[0] == "jump" and record[1] == op.JSR:
                # the subroutine runs with the return address pushed
                max_stack = max(max_stack, depth + 1)
                work.append((index_of(record[2]), depth + 1))
                continue
            depth += _stack_delta(record)
            if depth < 0:
                raise ClassFormatError("Stack underflow")
            max_stack = max(max_stack, depth)
            targets, falls_through = _successors(record, depth)
            for label, target_depth in targets:
                work.append((index_of(label), target_depth))
            if not falls_through:
                break
    return max_stack


def compute_maxs(records: Sequence[tuple], access: int, descriptor: str, handlers: Sequence[Label]) -> Tuple[int, int]:
    """Return ``(max_stack, max_locals)`` for the buffered instruction records of one method."""
    return max_stack_of(records, handlers), max_locals_of(records, access, descriptor)
