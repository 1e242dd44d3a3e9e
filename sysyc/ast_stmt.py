"""Program, declaration and statement nodes and their Koopa IR emission."""

from __future__ import annotations

import io
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TextIO

from .ast_exp import LVal, Node
from .symbols import KoopaContext, Result, ResultKind, Symbol, SymbolKind


@dataclass
class CompUnit(Node):
    """The whole compilation unit: a single function definition."""

    func_def: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self.func_def.emit(ctx, out)


@dataclass
class FuncDef(Node):
    """A function definition with its return type and body."""

    func_type: Node
    ident: str
    block: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        out.write(f"fun @{self.ident}(): ")
        self.func_type.emit(ctx, out)
        out.write(" {\n%entry:\n")
        result = self.block.emit(ctx, out)
        if not result.returned:
            out.write("\tret 0\n")
        out.write("}\n")
        return result


@dataclass
class FuncType(Node):
    """The return type of a function."""

    type: str

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.type != "int":
            raise ValueError(f"FuncType: invalid function type {self.type!r}")
        out.write("i32")
        return Result()


@dataclass
class Block(Node):
    """A braced sequence of declarations and statements with its own scope."""

    block_items: list[Node] = field(default_factory=list)

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        with ctx.scope():
            for item in self.block_items:
                result = item.emit(ctx, out)
                if result.returned:
                    return result
        return Result()


@dataclass
class BlockItem(Node):
    """Either a statement or a declaration inside a block."""

    stmt: Node | None = None
    decl: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.stmt is not None and self.decl is None:
            return self.stmt.emit(ctx, out)
        if self.stmt is None and self.decl is not None:
            return self.decl.emit(ctx, out)
        raise ValueError("BlockItem: invalid block item")


class StmtKind(Enum):
    """The kinds of statement."""

    ASSIGN = "assign"
    EXPRESSION = "expression"
    BLOCK = "block"
    RETURN = "return"
    IF = "if"


@dataclass
class Stmt(Node):
    """A statement; which fields are set depends on its kind."""

    kind: StmtKind
    lval: LVal | None = None
    exp: Node | None = None
    block: Node | None = None
    inside_if_stmt: Node | None = None
    inside_else_stmt: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        handler = {
            StmtKind.ASSIGN: self._assign,
            StmtKind.RETURN: self._return,
            StmtKind.EXPRESSION: self._expression,
            StmtKind.BLOCK: self._block,
            StmtKind.IF: self._if,
        }.get(self.kind)
        if handler is None:
            raise ValueError("Stmt: invalid statement")
        return handler(ctx, out)

    def _assign(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.lval is None or self.exp is None or self.block is not None:
            raise ValueError("Stmt: invalid assign statement")
        name = self.lval.left_value_symbol
        value = self.exp.emit(ctx, out)
        symbol = ctx.lookup(name)
        if symbol.kind is SymbolKind.VAL:
            raise ValueError(f"Stmt: assign to constant {name!r}")
        out.write(f"\tstore {value}, @{name}_{symbol.value}\n")
        return Result()

    def _return(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.lval is not None or self.block is not None:
            raise ValueError("Stmt: invalid return statement")
        if self.exp is None:
            out.write("\tret\n")
            return Result(returned=True)
        value = self.exp.emit(ctx, out)
        out.write(f"\tret {value}\n")
        return replace(value, returned=True)

    def _expression(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.lval is not None or self.block is not None:
            raise ValueError("Stmt: invalid expression statement")
        if self.exp is not None:
            self.exp.emit(ctx, out)
        return Result()

    def _block(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.lval is not None or self.exp is not None or self.block is None:
            raise ValueError("Stmt: invalid block statement")
        return self.block.emit(ctx, out)

    def _if(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.exp is None:
            raise ValueError("Stmt: if statement without a condition")
        ident = ctx.next_if_id()
        then_label = f"%then_{ident}"
        else_label = f"%else_{ident}"
        end_label = f"%end_{ident}"

        cond = self.exp.emit(ctx, out)
        if self.inside_if_stmt is None:
            raise ValueError("Stmt: invalid if statement, there's no if")

        false_label = else_label if self.inside_else_stmt is not None else end_label
        out.write(f"\tbr {cond}, {then_label}, {false_label}\n")
        out.write(f"{then_label}:\n")
        result_if = self.inside_if_stmt.emit(ctx, out)
        if not result_if.returned:
            out.write(f"\tjump {end_label}\n")

        result_else = Result()
        if self.inside_else_stmt is not None:
            out.write(f"{else_label}:\n")
            result_else = self.inside_else_stmt.emit(ctx, out)
            if not result_else.returned:
                out.write(f"\tjump {end_label}\n")

        if result_if.returned and result_else.returned:
            return Result(returned=True)
        out.write(f"{end_label}:\n")
        return Result()


@dataclass
class Decl(Node):
    """A constant or variable declaration."""

    const_decl: Node | None = None
    var_decl: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        if self.const_decl is not None:
            self.const_decl.emit(ctx, out)
        elif self.var_decl is not None:
            self.var_decl.emit(ctx, out)
        else:
            raise ValueError("Decl: invalid declaration")
        return Result()


@dataclass
class BType(Node):
    """The base type of a declaration."""

    type: str = "int"

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        out.write("i32")
        return Result()


@dataclass
class ConstDecl(Node):
    """A list of constant definitions sharing a base type."""

    btype: Node
    const_defs: list[Node] = field(default_factory=list)

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        for definition in self.const_defs:
            definition.emit(ctx, out)
        return Result()


@dataclass
class ConstDef(Node):
    """A constant bound to a compile-time value."""

    const_symbol: str
    const_init_val: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        value = self.const_init_val.emit(ctx, out)
        if value.kind is not ResultKind.IMM:
            raise ValueError(
                f"ConstDef: initializer of {self.const_symbol!r} is not constant"
            )
        ctx.insert(self.const_symbol, Symbol(SymbolKind.VAL, value.value))
        return Result()


@dataclass
class ConstInitVal(Node):
    """The initializer of a constant."""

    const_exp: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self.const_exp.emit(ctx, out)


@dataclass
class VarDecl(Node):
    """A list of variable definitions sharing a base type."""

    btype: Node
    var_defs: list[Node] = field(default_factory=list)

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        for definition in self.var_defs:
            definition.emit(ctx, out)
        return Result()


@dataclass
class VarDef(Node):
    """A variable definition with an optional initializer."""

    var_symbol: str
    var_init_val: Node | None = None

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        value = None
        if self.var_init_val is not None:
            value = self.var_init_val.emit(ctx, out)
        ctx.insert(self.var_symbol, Symbol(SymbolKind.VAR, 0))
        depth = ctx.lookup(self.var_symbol).value
        target = f"@{self.var_symbol}_{depth}"
        if not ctx.is_allocated(self.var_symbol):
            out.write(f"\t{target} = alloc i32\n")
        ctx.mark_allocated(self.var_symbol)
        if value is not None:
            out.write(f"\tstore {value}, {target}\n")
        return Result()


@dataclass
class InitVal(Node):
    """The initializer of a variable."""

    exp: Node

    def emit(self, ctx: KoopaContext, out: TextIO) -> Result:
        return self.exp.emit(ctx, out)


def generate_koopa(comp_unit: Node) -> str:
    """Emit Koopa IR text for a whole compilation unit."""
    out = io.StringIO()
    comp_unit.emit(KoopaContext(), out)
    return out.getvalue()