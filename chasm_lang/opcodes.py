"""JVM opcode numbers, mnemonics, instruction kinds and flag constants."""

from types import MappingProxyType

# --- OPCODES ---
_NAMES = """
nop aconst_null iconst_m1 iconst_0 iconst_1 iconst_2 iconst_3 iconst_4 iconst_5
lconst_0 lconst_1 fconst_0 fconst_1 fconst_2 dconst_0 dconst_1 bipush sipush
ldc ldc_w ldc2_w iload lload fload dload aload
iload_0 iload_1 iload_2 iload_3 lload_0 lload_1 lload_2 lload_3
fload_0 fload_1 fload_2 fload_3 dload_0 dload_1 dload_2 dload_3
aload_0 aload_1 aload_2 aload_3
iaload laload faload daload aaload baload caload saload
istore lstore fstore dstore astore
istore_0 istore_1 istore_2 istore_3 lstore_0 lstore_1 lstore_2 lstore_3
fstore_0 fstore_1 fstore_2 fstore_3 dstore_0 dstore_1 dstore_2 dstore_3
astore_0 astore_1 astore_2 astore_3
iastore lastore fastore dastore aastore bastore castore sastore
pop pop2 dup dup_x1 dup_x2 dup2 dup2_x1 dup2_x2 swap
iadd ladd fadd dadd isub lsub fsub dsub imul lmul fmul dmul
idiv ldiv fdiv ddiv irem lrem frem drem ineg lneg fneg dneg
ishl lshl ishr lshr iushr lushr iand land ior lor ixor lxor iinc
i2l i2f i2d l2i l2f l2d f2i f2l f2d d2i d2l d2f i2b i2c i2s
lcmp fcmpl fcmpg dcmpl dcmpg
ifeq ifne iflt ifge ifgt ifle if_icmpeq if_icmpne if_icmplt if_icmpge if_icmpgt if_icmple
if_acmpeq if_acmpne goto jsr ret tableswitch lookupswitch
ireturn lreturn freturn dreturn areturn return
getstatic putstatic getfield putfield
invokevirtual invokespecial invokestatic invokeinterface invokedynamic
new newarray anewarray arraylength athrow checkcast instanceof
monitorenter monitorexit wide multianewarray ifnull ifnonnull goto_w jsr_w
""".split()

# Compact and wide encodings are produced by the writer and never appear in text.
_ENCODING_ONLY = frozenset(
    ["ldc_w", "ldc2_w", "wide", "goto_w", "jsr_w"]
    + [f"{t}{op}_{n}" for t in "ilfda" for op in ("load", "store") for n in range(4)]
)

OPCODES = tuple("" if name in _ENCODING_ONLY else name for name in _NAMES)
OPCODE_BY_NAME = MappingProxyType({name: op for op, name in enumerate(OPCODES) if name})

NOP = 0
BIPUSH = 16
SIPUSH = 17
LDC = 18
LDC_W = 19
LDC2_W = 20
ILOAD = 21
LLOAD = 22
FLOAD = 23
DLOAD = 24
ALOAD = 25
ILOAD_0 = 26
ISTORE = 54
LSTORE = 55
FSTORE = 56
DSTORE = 57
ASTORE = 58
ISTORE_0 = 59
IINC = 132
IFEQ = 153
IF_ACMPNE = 166
GOTO = 167
JSR = 168
RET = 169
TABLESWITCH = 170
LOOKUPSWITCH = 171
IRETURN = 172
RETURN = 177
GETSTATIC = 178
PUTSTATIC = 179
GETFIELD = 180
PUTFIELD = 181
INVOKEVIRTUAL = 182
INVOKESPECIAL = 183
INVOKESTATIC = 184
INVOKEINTERFACE = 185
INVOKEDYNAMIC = 186
NEW = 187
NEWARRAY = 188
ANEWARRAY = 189
ATHROW = 191
CHECKCAST = 192
INSTANCEOF = 193
WIDE = 196
MULTIANEWARRAY = 197
IFNULL = 198
IFNONNULL = 199
GOTO_W = 200
JSR_W = 201

# --- INSTRUCTION KINDS ---
INSN = frozenset(
    list(range(0, 16))
    + list(range(46, 54))
    + list(range(79, 132))
    + list(range(133, 153))
    + list(range(172, 178))
    + [190, 191, 194, 195]
)
INT_INSN = frozenset([BIPUSH, SIPUSH, NEWARRAY])
VAR_INSN = frozenset([ILOAD, LLOAD, FLOAD, DLOAD, ALOAD, ISTORE, LSTORE, FSTORE, DSTORE, ASTORE, RET])
TYPE_INSN = frozenset([NEW, ANEWARRAY, CHECKCAST, INSTANCEOF])
FIELD_INSN = frozenset([GETSTATIC, PUTSTATIC, GETFIELD, PUTFIELD])
METHOD_INSN = frozenset([INVOKEVIRTUAL, INVOKESPECIAL, INVOKESTATIC, INVOKEINTERFACE])
JUMP_INSN = frozenset(list(range(IFEQ, RET)) + [IFNULL, IFNONNULL])

# --- NEWARRAY OPERANDS ---
T_BOOLEAN = 4
T_CHAR = 5
T_FLOAT = 6
T_DOUBLE = 7
T_BYTE = 8
T_SHORT = 9
T_INT = 10
T_LONG = 11

ARRAY_TYPE_BY_TAG = MappingProxyType(
    {"Z": T_BOOLEAN, "C": T_CHAR, "F": T_FLOAT, "D": T_DOUBLE, "B": T_BYTE, "S": T_SHORT, "I": T_INT, "J": T_LONG}
)
ARRAY_TAGS = MappingProxyType({v: k for k, v in ARRAY_TYPE_BY_TAG.items()})

# --- ACCESS FLAGS ---
ACC_PUBLIC = 0x0001
ACC_PRIVATE = 0x0002
ACC_PROTECTED = 0x0004
ACC_STATIC = 0x0008
ACC_FINAL = 0x0010
ACC_SUPER = 0x0020
ACC_SYNCHRONIZED = 0x0020
ACC_OPEN = 0x0020
ACC_TRANSITIVE = 0x0020
ACC_VOLATILE = 0x0040
ACC_BRIDGE = 0x0040
ACC_STATIC_PHASE = 0x0040
ACC_VARARGS = 0x0080
ACC_TRANSIENT = 0x0080
ACC_NATIVE = 0x0100
ACC_INTERFACE = 0x0200
ACC_ABSTRACT = 0x0400
ACC_STRICT = 0x0800
ACC_SYNTHETIC = 0x1000
ACC_ANNOTATION = 0x2000
ACC_ENUM = 0x4000
ACC_MANDATED = 0x8000
ACC_MODULE = 0x8000
# pseudo flag carried by the Deprecated attribute
ACC_DEPRECATED = 0x20000

ACCESS_BY_NAME = MappingProxyType(
    {
        "abstract": ACC_ABSTRACT,
        "annotation": ACC_ANNOTATION,
        "bridge": ACC_BRIDGE,
        "deprecated": ACC_DEPRECATED,
        "enum": ACC_ENUM,
        "final": ACC_FINAL,
        "interface": ACC_INTERFACE,
        "mandated": ACC_MANDATED,
        "module": ACC_MODULE,
        "native": ACC_NATIVE,
        "open": ACC_OPEN,
        "private": ACC_PRIVATE,
        "protected": ACC_PROTECTED,
        "public": ACC_PUBLIC,
        "static": ACC_STATIC,
        "static_phase": ACC_STATIC_PHASE,
        "strictfp": ACC_STRICT,
        "super": ACC_SUPER,
        "synchronized": ACC_SYNCHRONIZED,
        "synthetic": ACC_SYNTHETIC,
        "transient": ACC_TRANSIENT,
        "transitive": ACC_TRANSITIVE,
        "varargs": ACC_VARARGS,
        "volatile": ACC_VOLATILE,
    }
)

CLASS_FLAGS = ("abstract", "annotation", "deprecated", "enum", "final", "interface", "module", "public", "super", "synthetic")
FIELD_FLAGS = ("deprecated", "enum", "final", "private", "protected", "public", "static", "synthetic", "transient", "volatile")
METHOD_FLAGS = (
    "abstract", "bridge", "deprecated", "final", "native", "private", "protected",
    "public", "static", "strictfp", "synchronized", "synthetic", "varargs",
)
INNER_FLAGS = (
    "abstract", "annotation", "deprecated", "enum", "final", "interface",
    "private", "protected", "public", "static", "synthetic",
)
PARAM_FLAGS = ("final", "mandated", "synthetic")
MODULE_FLAGS = ("mandated", "open", "synthetic")
REQUIRE_FLAGS = ("transitive", "mandated", "synthetic", "static_phase")
EXPORT_FLAGS = ("mandated", "synthetic")

# --- STACK MAP FRAMES ---
F_NEW = -1
F_FULL = 0
F_APPEND = 1
F_CHOP = 2
F_SAME = 3
F_SAME1 = 4

FRAME_BY_NAME = MappingProxyType(
    {"new": F_NEW, "full": F_FULL, "append": F_APPEND, "chop": F_CHOP, "same": F_SAME, "same1": F_SAME1}
)
FRAME_NAMES = MappingProxyType({v: k for k, v in FRAME_BY_NAME.items()})

TOP = 0
INTEGER = 1
FLOAT = 2
DOUBLE = 3
LONG = 4
NULL = 5
UNINITIALIZED_THIS = 6

ITEM_BY_NAME = MappingProxyType({"T": TOP, "I": INTEGER, "F": FLOAT, "D": DOUBLE, "J": LONG, "N": NULL, "U": UNINITIALIZED_THIS})
ITEM_NAMES = MappingProxyType({v: k for k, v in ITEM_BY_NAME.items()})

# --- METHOD HANDLES ---
H_GETFIELD = 1
H_GETSTATIC = 2
H_PUTFIELD = 3
H_PUTSTATIC = 4
H_INVOKEVIRTUAL = 5
H_INVOKESTATIC = 6
H_INVOKESPECIAL = 7
H_NEWINVOKESPECIAL = 8
H_INVOKEINTERFACE = 9

HANDLE_BY_NAME = MappingProxyType(
    {
        "getfield": H_GETFIELD,
        "getstatic": H_GETSTATIC,
        "putfield": H_PUTFIELD,
        "putstatic": H_PUTSTATIC,
        "invokevirtual": H_INVOKEVIRTUAL,
        "invokestatic": H_INVOKESTATIC,
        "invokespecial": H_INVOKESPECIAL,
        "newinvokespecial": H_NEWINVOKESPECIAL,
        "invokeinterface": H_INVOKEINTERFACE,
    }
)
HANDLE_NAMES = MappingProxyType({v: k for k, v in HANDLE_BY_NAME.items()})
