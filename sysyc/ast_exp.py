"""Expression nodes of the syntax tree and their Koopa IR emission."""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar, TextIO

from .symbols import KoopaContext, Result, ResultKind, SymbolKind

_Fold = Callable[[int, int], int]


def _wrap(value: int) -> int:
    """Reduce an integer to the signed 32-bit range."""
    return (value + 2**31) % 2**32 - 2**31


def _div(lhs: int, rhs: int) -> int:
    if rhs == 0:
        raise ZeroDivisionError("division by zero in constant expression")
    quotient = abs(lhs) // abs(rhs)
    return _wrap(-quotient if (lhs < 0) != (rhs < 0) else quotient)


def _mod(lhs: int, rhs: int) -> int:
    if rhs == 0:
        raise ZeroDivisionError("modulo by zero in constant expression")
    remainder = abs(lhs) % abs(rhs)
    return _wrap(-remainder if lhs < 0 else remainder)


def _arith(op: Callable[[int, int], int]) -> _Fold:
    return lambda lhs, rhs: _wrap(op(lhs, rhs))


def _compare(op: Callable[[int, int], bool]) -> _Fold:
    return lambda lhs, rhs: int(op(lhs, rhs))


class Node(ABC):
    """A node of the syntax tree that writes Koopa IR."""

    @abstractmethod
    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        """Write the IR for this node to ``out`` and return its result."""


class _BinaryExp(Node):
    """Shared emission for left-associative binary expression levels."""

    _instructions: ClassVar[dict[str, tuple[str, _Fold]]] = {}

    def _emit_binary(
        self,
        ctx: KoopaContext,
        out: TextIO,
        left: Node | None,
        op: str | None,
        right: Node | None,
    ) -> Result:
        name = type(self).__name__
        if left is None and op is None and right is not None:
            return right.emit(ctx, out)
        if left is None or op is None or right is None:
            raise ValueError(f"{name}: invalid expression")
        if op not in self._instructions:
            raise ValueError(f"{name}: invalid operator {op!r}")
        instruction, fold = self._instructions[op]
        lhs = left.emit(ctx, out)
        rhs = right.emit(ctx, out)
        if lhs.kind is ResultKind.IMM and rhs.kind is ResultKind.IMM:
            return Result.imm(fold(lhs.value, rhs.value))
        result = ctx.new_register()
        out.write(f"\t{result} = {instruction} {lhs}, {rhs}\n")
        return result


def _short_circuit(
    ctx: KoopaContext,
    out: TextIO,
    left: Node,
    right: Node,
    is_and: bool,
) -> Result:
    """Emit ``&&`` or ``||`` with short-circuit evaluation."""
    lhs = left.emit(ctx, out)
    if lhs.kind is ResultKind.IMM:
        decided = (lhs.value == 0) if is_and else (lhs.value != 0)
        if decided:
            return Result.imm(0 if is_and else 1)
        rhs = right.emit(ctx, out)
        if rhs.kind is ResultKind.IMM:
            return Result.imm(int(rhs.value != 0))
        temp = ctx.new_register()
        out.write(f"\t{temp} = ne {rhs}, 0\n")
        return temp

    kind = "and" if is_and else "or"
    ident = ctx.next_and_id() if is_and else ctx.next_or_id()
    second_label = f"%{kind}_second_operator_{ident}"
    end_label = f"%{kind}_end_{ident}"
    memory = f"@{kind}_result_in_memory_{ident}"

    temp_1 = ctx.new_register()
    out.write(f"\t{temp_1} = ne {lhs}, 0\n")
    out.write(f"\t{memory} = alloc i32\n")
    out.write(f"\tstore {temp_1}, {memory}\n")
    if is_and:
        out.write(f"\tbr {temp_1}, {second_label}, {end_label}\n")
    else:
        out.write(f"\tbr {temp_1}, {end_label}, {second_label}\n")
    out.write(f"{second_label}:\n")

    rhs = right.emit(ctx, out)
    temp_2 = ctx.new_register()
    temp_3 = ctx.new_register()
    out.write(f"\t{temp_2} = ne {rhs}, 0\n")
    out.write(f"\t{temp_3} = {kind} {temp_1}, {temp_2}\n")
    out.write(f"\tstore {temp_3}, {memory}\n")
    out.write(f"\tjump {end_label}\n")
    out.write(f"{end_label}:\n")

    result = ctx.new_register()
    out.write(f"\t{result} = load {memory}\n")
    return result


@dataclass
class Exp(Node):
    """A full expression."""

    left_or_exp: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self.left_or_exp.emit(ctx, out)


@dataclass
class ConstExp(Node):
    """An expression that must be known at compile time."""

    exp: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self.exp.emit(ctx, out)


@dataclass
class LVal(Node):
    """A reference to a named variable or constant."""

    left_value_symbol: str

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        symbol = ctx.lookup(self.left_value_symbol)
        if symbol.kind is SymbolKind.VAR:
            result = ctx.new_register()
            out.write(f"\t{result} = load @{self.left_value_symbol}_{symbol.value}\n")
            return result
        if symbol.kind is SymbolKind.VAL:
            return Result.imm(symbol.value)
        raise ValueError(f"LVal: {self.left_value_symbol!r} is not a variable")


@dataclass
class PrimaryExp(Node):
    """A parenthesised expression, a left value or a number."""

    exp: Node | None = None
    lval: Node | None = None
    number: int | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        present = [
            self.exp is not None,
            self.number is not None,
            self.lval is not None,
        ]
        if present.count(True) != 1:
            raise ValueError("PrimaryExp: invalid primary expression")
        if self.exp is not None:
            return self.exp.emit(ctx, out)
        if self.number is not None:
            return Result.imm(self.number)
        assert self.lval is not None
        return self.lval.emit(ctx, out)


_UNARY = {
    "+": ("add", lambda v: v),
    "-": ("sub", lambda v: _wrap(-v)),
    "!": ("eq", lambda v: int(v == 0)),
}


@dataclass
class UnaryExp(Node):
    """A primary expression or a unary operator applied to a unary expression."""

    primary_exp: Node | None = None
    op: str | None = None
    unary_exp: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.primary_exp is not None and self.op is None and self.unary_exp is None:
            return self.primary_exp.emit(ctx, out)
        if self.primary_exp is not None or self.op is None or self.unary_exp is None:
            raise ValueError("UnaryExp: invalid unary expression")
        if self.op not in _UNARY:
            raise ValueError(f"UnaryExp: invalid operator {self.op!r}")
        instruction, fold = _UNARY[self.op]
        operand = self.unary_exp.emit(ctx, out)
        if operand.kind is ResultKind.IMM:
            return Result.imm(fold(operand.value))
        result = ctx.new_register()
        out.write(f"\t{result} = {instruction} 0, {operand}\n")
        return result


@dataclass
class MulExp(_BinaryExp):
    """Multiplication, division and modulo."""

    mul_exp: Node | None = None
    op: str | None = None
    unary_exp: Node | None = None

    _instructions: ClassVar[dict[str, tuple[str, _Fold]]] = {
        "*": ("mul", _arith(operator.mul)),
        "/": ("div", _div),
        "%": ("mod", _mod),
    }

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self._emit_binary(ctx, out, self.mul_exp, self.op, self.unary_exp)


@dataclass
class AddExp(_BinaryExp):
    """Addition and subtraction."""

    add_exp: Node | None = None
    op: str | None = None
    mul_exp: Node | None = None

    _instructions: ClassVar[dict[str, tuple[str, _Fold]]] = {
        "+": ("add", _arith(operator.add)),
        "-": ("sub", _arith(operator.sub)),
    }

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self._emit_binary(ctx, out, self.add_exp, self.op, self.mul_exp)


@dataclass
class RelExp(_BinaryExp):
    """Ordering comparisons."""

    rel_exp: Node | None = None
    op: str | None = None
    add_exp: Node | None = None

    _instructions: ClassVar[dict[str, tuple[str, _Fold]]] = {
        "<": ("lt", _compare(operator.lt)),
        ">": ("gt", _compare(operator.gt)),
        "<=": ("le", _compare(operator.le)),
        ">=": ("ge", _compare(operator.ge)),
    }

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self._emit_binary(ctx, out, self.rel_exp, self.op, self.add_exp)


@dataclass
class EqExp(_BinaryExp):
    """Equality comparisons."""

    eq_exp: Node | None = None
    op: str | None = None
    rel_exp: Node | None = None

    _instructions: ClassVar[dict[str, tuple[str, _Fold]]] = {
        "==": ("eq", _compare(operator.eq)),
        "!=": ("ne", _compare(operator.ne)),
    }

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self._emit_binary(ctx, out, self.eq_exp, self.op, self.rel_exp)


@dataclass
class LAndExp(Node):
    """Logical and, evaluated with short circuit."""

    left_and_exp: Node | None = None
    op: str | None = None
    eq_exp: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.left_and_exp is None and self.op is None and self.eq_exp is not None:
            return self.eq_exp.emit(ctx, out)
        if self.left_and_exp is None or self.op is None or self.eq_exp is None:
            raise ValueError("LAndExp: invalid logical AND expression")
        return _short_circuit(ctx, out, self.left_and_exp, self.eq_exp, is_and=True)


@dataclass
class LOrExp(Node):
    """Logical or, evaluated with short circuit."""

    left_or_exp: Node | None = None
    op: str | None = None
    left_and_exp: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.left_or_exp is None and self.op is None and self.left_and_exp is not None:
            return self.left_and_exp.emit(ctx, out)
        if self.left_or_exp is None or self.op is None or self.left_and_exp is None:
            raise ValueError("LOrExp: invalid logical OR expression")
        return _short_circuit(ctx, out, self.left_or_exp, self.left_and_exp, is_and=False)