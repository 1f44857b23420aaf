"""
clike Type Mapping
==================

Maps clike type names onto LLVM IR types and provides the numeric
conversions the code generator applies at operators, stores, calls and
returns.

Type Table
----------
| clike    | LLVM IR  | Rank | Zero value |
|----------|----------|------|------------|
| int      | i32      | 0    | 0          |
| float    | float    | 1    | 0.0        |
| double   | double   | 2    | 0.0        |
| void     | void     | -    | (none)     |

Binary operands are promoted to the higher-ranked of the two types.
Unknown type names are an error; there is no fallback type.
"""

from typing import Optional

from llvmlite import ir

from clike.errors import SourceLocation, UnknownTypeError


INT_TYPE = ir.IntType(32)
FLOAT_TYPE = ir.FloatType()
DOUBLE_TYPE = ir.DoubleType()
VOID_TYPE = ir.VoidType()
BOOL_TYPE = ir.IntType(1)

# Largest value of an int literal; '-2147483648' is negation of INT_MAX + 1
INT_MAX = 2 ** (INT_TYPE.width - 1) - 1

TYPE_NAMES: dict[str, ir.Type] = {
    "int": INT_TYPE,
    "float": FLOAT_TYPE,
    "double": DOUBLE_TYPE,
    "void": VOID_TYPE,
}

# Promotion order for mixed-type arithmetic
_RANK = {
    "i32": 0,
    "float": 1,
    "double": 2,
}


def resolve_type(name: str, location: Optional[SourceLocation] = None) -> ir.Type:
    """
    Return the LLVM type for a clike type name.

    Raises:
        UnknownTypeError: If the name is not a clike type
    """
    try:
        return TYPE_NAMES[name]
    except KeyError:
        raise UnknownTypeError(name, location) from None


def is_floating(ty: ir.Type) -> bool:
    return isinstance(ty, (ir.FloatType, ir.DoubleType))


def is_integer(ty: ir.Type) -> bool:
    return isinstance(ty, ir.IntType)


def zero_value(ty: ir.Type) -> ir.Constant:
    """Type-appropriate zero used for uninitialized locals and default returns."""
    if is_floating(ty):
        return ir.Constant(ty, 0.0)
    return ir.Constant(ty, 0)


def common_type(left: ir.Type, right: ir.Type) -> ir.Type:
    """Return the wider of two operand types (int < float < double)."""
    if _RANK[str(left)] >= _RANK[str(right)]:
        return left
    return right


def convert(builder: ir.IRBuilder, value: ir.Value, target: ir.Type, name: str = "") -> ir.Value:
    """
    Convert a numeric value to the target type.

    i1 results of comparisons are zero-extended first, so booleans behave
    as the integers 0 and 1.
    """
    source = value.type

    if source == BOOL_TYPE:
        value = builder.zext(value, INT_TYPE, name=name or "booltmp")
        source = INT_TYPE

    if source == target:
        return value

    if is_integer(source) and is_floating(target):
        return builder.sitofp(value, target, name=name or "itofp")
    if is_floating(source) and is_integer(target):
        return builder.fptosi(value, target, name=name or "fptoi")
    if is_floating(source) and is_floating(target):
        if _RANK[str(source)] < _RANK[str(target)]:
            return builder.fpext(value, target, name=name or "fpext")
        return builder.fptrunc(value, target, name=name or "fptrunc")
    if is_integer(source) and is_integer(target):
        return builder.sext(value, target, name=name or "sext")

    raise TypeError(f"cannot convert {source} to {target}")
