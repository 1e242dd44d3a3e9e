"""RISC-V code generation from in-memory Koopa IR."""

from __future__ import annotations

from collections.abc import Callable

from .koopa_ir import (
    Alloc,
    BasicBlock,
    Binary,
    BinaryOp,
    Branch,
    Function,
    Integer,
    Jump,
    Load,
    Program,
    Return,
    Store,
    TypeTag,
    Value,
    parse_program,
)
from .riscv_util import RISCVContext, RISCVPrinter

_BinaryEmitter = Callable[[RISCVPrinter, str, str, str], None]


def _eq(p: RISCVPrinter, rd: str, lhs: str, rhs: str) -> None:
    p.xor_(rd, lhs, rhs)
    p.seqz(rd, rd)


def _ne(p: RISCVPrinter, rd: str, lhs: str, rhs: str) -> None:
    p.xor_(rd, lhs, rhs)
    p.snez(rd, rd)


def _ge(p: RISCVPrinter, rd: str, lhs: str, rhs: str) -> None:
    p.slt(rd, lhs, rhs)
    p.seqz(rd, rd)


def _le(p: RISCVPrinter, rd: str, lhs: str, rhs: str) -> None:
    p.sgt(rd, lhs, rhs)
    p.seqz(rd, rd)


_BINARY_EMITTERS: dict[BinaryOp, _BinaryEmitter] = {
    BinaryOp.EQ: _eq,
    BinaryOp.NOT_EQ: _ne,
    BinaryOp.GT: RISCVPrinter.sgt,
    BinaryOp.LT: RISCVPrinter.slt,
    BinaryOp.GE: _ge,
    BinaryOp.LE: _le,
    BinaryOp.ADD: RISCVPrinter.add,
    BinaryOp.SUB: RISCVPrinter.sub,
    BinaryOp.MUL: RISCVPrinter.mul,
    BinaryOp.DIV: RISCVPrinter.div,
    BinaryOp.MOD: RISCVPrinter.rem,
    BinaryOp.AND: RISCVPrinter.and_,
    BinaryOp.OR: RISCVPrinter.or_,
}


def _frame_size(func: Function) -> int:
    """Four bytes for every instruction with a result, rounded up to 16."""
    slots = sum(
        1 for bb in func.bbs for inst in bb.insts if inst.ty is not TypeTag.UNIT
    )
    return (slots * 4 + 15) // 16 * 16


class RISCVGenerator:
    """Walks a Koopa program and writes RISC-V assembly for it."""

    def __init__(self) -> None:
        self._ctx = RISCVContext()
        self._out = RISCVPrinter()

    def generate(self, program: Program) -> str:
        """Return the assembly text for ``program``."""
        self._ctx = RISCVContext()
        self._out = RISCVPrinter()
        for value in program.values:
            self._instruction(value)
        self._out.directive(".text")
        for func in program.funcs:
            self._function(func)
        return self._out.text()

    def _function(self, func: Function) -> None:
        name = func.name[1:]
        self._out.directive(f".globl {name}")
        self._out.label(name)
        size = _frame_size(func)
        self._ctx.start_function(name, size)
        self._out.addi("sp", "sp", -size, self._ctx)
        for bb in func.bbs:
            self._basic_block(bb)

    def _basic_block(self, bb: BasicBlock) -> None:
        self._out.label(bb.name[1:])
        for inst in bb.insts:
            self._instruction(inst)

    def _instruction(self, inst: Value) -> None:
        match inst:
            case Return():
                self._return(inst)
            case Binary():
                self._binary(inst)
            case Alloc():
                # Slots are assigned lazily when the allocation is first stored to.
                pass
            case Load():
                self._load(inst)
            case Store():
                self._store(inst)
            case Branch():
                self._branch(inst)
            case Jump():
                self._out.jump(inst.target.name[1:])
            case _:
                raise RuntimeError(f"invalid instruction: {inst.tag.name}")

    def _load_operand(self, reg: str, value: Value) -> None:
        if isinstance(value, Integer):
            self._out.li(reg, value.value)
        else:
            offset = self._ctx.current_frame().offset(value)
            self._out.lw(reg, "sp", offset, self._ctx)

    def _load(self, inst: Load) -> None:
        frame = self._ctx.current_frame()
        reg = self._ctx.allocate(inst)
        self._out.lw(reg, "sp", frame.offset(inst.src), self._ctx)
        self._out.sw(reg, "sp", frame.save(inst), self._ctx)
        self._ctx.free(inst)

    def _store(self, inst: Store) -> None:
        frame = self._ctx.current_frame()
        reg = self._ctx.allocate(inst)
        self._load_operand(reg, inst.value)
        self._out.sw(reg, "sp", frame.save(inst.dest), self._ctx)
        self._ctx.free(inst)

    def _branch(self, inst: Branch) -> None:
        reg = self._ctx.allocate(inst)
        self._load_operand(reg, inst.cond)
        self._out.bnez(reg, inst.true_bb.name[1:])
        self._out.jump(inst.false_bb.name[1:])
        self._ctx.free(inst)

    def _return(self, inst: Return) -> None:
        if inst.value is None:
            self._out.li("a0", 0)
        else:
            self._load_operand("a0", inst.value)
        frame = self._ctx.current_frame()
        self._out.addi("sp", "sp", frame.size, self._ctx)
        self._out.ret()

    def _binary(self, inst: Binary) -> None:
        lhs = self._ctx.allocate(inst.lhs)
        self._load_operand(lhs, inst.lhs)
        rhs = self._ctx.allocate(inst.rhs)
        self._load_operand(rhs, inst.rhs)
        # Operands are already in registers, so the result may overwrite them.
        self._ctx.free(inst.lhs)
        self._ctx.free(inst.rhs)
        cur = self._ctx.allocate(inst)
        emitter = _BINARY_EMITTERS.get(inst.op)
        if emitter is None:
            raise RuntimeError(f"invalid binary operator: {inst.op.name}")
        emitter(self._out, cur, lhs, rhs)
        frame = self._ctx.current_frame()
        self._out.sw(cur, "sp", frame.save(inst), self._ctx)
        self._ctx.free(inst)


def emit_riscv(program: Program) -> str:
    """Generate RISC-V assembly for a parsed Koopa program."""
    return RISCVGenerator().generate(program)


def compile_koopa(koopa_text: str) -> str:
    """Parse Koopa IR text and generate RISC-V assembly for it."""
    return emit_riscv(parse_program(koopa_text))