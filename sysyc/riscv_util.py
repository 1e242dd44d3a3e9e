"""Stack frames, register allocation and an assembly printer for RISC-V output."""

from __future__ import annotations

from collections.abc import Hashable
from typing import Protocol

_TEMP_REGISTERS = tuple(f"t{i}" for i in range(7)) + tuple(f"a{i}" for i in range(8))
_IMM12_MIN = -2048
_IMM12_MAX = 2048  # exclusive


def _fits_imm12(value: int) -> bool:
    return _IMM12_MIN <= value < _IMM12_MAX


class StackFrame:
    """Stack slots of one function, addressed as offsets from ``sp``."""

    def __init__(self, stack_size: int = 0) -> None:
        self.size = stack_size
        self.used = 0
        self._offsets: dict[Hashable, int] = {}

    def save(self, value: Hashable) -> int:
        """Give ``value`` a 4-byte slot unless it already has one; return its offset."""
        if value not in self._offsets:
            self._offsets[value] = self.used
            self.used += 4
            if self.used > self.size:
                raise RuntimeError("stack overflow")
        return self._offsets[value]

    def offset(self, value: Hashable) -> int:
        """The ``sp`` offset of a value saved in this frame."""
        try:
            return self._offsets[value]
        except KeyError:
            raise KeyError("value not found in this stack frame") from None


class _TempSource(Protocol):
    def temp_register(self) -> str: ...


class RISCVContext:
    """Register assignments shared across functions, and one frame per function."""

    def __init__(self) -> None:
        self._registers: dict[Hashable, str] = {}
        self._in_use: dict[str, bool] = dict.fromkeys(_TEMP_REGISTERS, False)
        self._frames: dict[str, StackFrame] = {}
        self._current: str | None = None

    def allocate(self, value: Hashable, is_zero: bool = False) -> str:
        """Bind ``value`` to a free register (or ``x0``) and return its name."""
        if value in self._registers:
            raise RuntimeError("value already has a register")
        if is_zero:
            self._registers[value] = "x0"
            return "x0"
        for reg in _TEMP_REGISTERS:
            if not self._in_use[reg]:
                self._registers[value] = reg
                self._in_use[reg] = True
                return reg
        raise RuntimeError("no free register found")

    def free(self, value: Hashable) -> None:
        """Release the register held by ``value``."""
        try:
            reg = self._registers.pop(value)
        except KeyError:
            raise KeyError("value has no register") from None
        if reg in self._in_use:
            self._in_use[reg] = False

    def has(self, value: Hashable) -> bool:
        return value in self._registers

    def temp_register(self) -> str:
        """A currently free register, not reserved, for immediate scratch use."""
        for reg in _TEMP_REGISTERS:
            if not self._in_use[reg]:
                return reg
        raise RuntimeError("no free register found")

    def register_of(self, value: Hashable) -> str:
        try:
            return self._registers[value]
        except KeyError:
            raise KeyError("value has no register") from None

    def start_function(self, name: str, stack_size: int) -> StackFrame:
        """Create the frame of a new function and make it current."""
        if name in self._frames:
            raise RuntimeError(f"function {name!r} already exists")
        frame = StackFrame(stack_size)
        self._frames[name] = frame
        self._current = name
        return frame

    def current_frame(self) -> StackFrame:
        if self._current is None or self._current not in self._frames:
            raise RuntimeError("no current function")
        return self._frames[self._current]


class RISCVPrinter:
    """Collects RISC-V assembly lines."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    def text(self) -> str:
        """All assembly written so far."""
        return "".join(self._lines)

    def _emit(self, line: str) -> None:
        self._lines.append(f"\t{line}\n")

    def label(self, name: str) -> None:
        self._lines.append(f"{name}:\n")

    def directive(self, line: str) -> None:
        self._emit(line)

    def ret(self) -> None:
        self._emit("ret")

    def seqz(self, rd: str, rs1: str) -> None:
        self._emit(f"seqz {rd}, {rs1}")

    def snez(self, rd: str, rs1: str) -> None:
        self._emit(f"snez {rd}, {rs1}")

    def _rrr(self, op: str, rd: str, rs1: str, rs2: str) -> None:
        self._emit(f"{op} {rd}, {rs1}, {rs2}")

    def or_(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("or", rd, rs1, rs2)

    def and_(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("and", rd, rs1, rs2)

    def xor_(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("xor", rd, rs1, rs2)

    def add(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("add", rd, rs1, rs2)

    def addi(self, rd: str, rs1: str, imm: int, context: _TempSource) -> None:
        """Add an immediate, going through a scratch register if it exceeds 12 bits."""
        if _fits_imm12(imm):
            self._emit(f"addi {rd}, {rs1}, {imm}")
        else:
            reg = context.temp_register()
            self.li(reg, imm)
            self.add(rd, rs1, reg)

    def sub(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("sub", rd, rs1, rs2)

    def mul(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("mul", rd, rs1, rs2)

    def div(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("div", rd, rs1, rs2)

    def rem(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("rem", rd, rs1, rs2)

    def sgt(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("sgt", rd, rs1, rs2)

    def slt(self, rd: str, rs1: str, rs2: str) -> None:
        self._rrr("slt", rd, rs1, rs2)

    def li(self, rd: str, imm: int) -> None:
        self._emit(f"li {rd}, {imm}")

    def mv(self, rd: str, rs1: str) -> None:
        self._emit(f"mv {rd}, {rs1}")

    def _memory(self, op: str, reg: str, base: str, bias: int, context: _TempSource) -> None:
        if _fits_imm12(bias):
            self._emit(f"{op} {reg}, {bias}({base})")
        else:
            scratch = context.temp_register()
            self.li(scratch, bias)
            self.add(scratch, scratch, base)
            self._emit(f"{op} {reg}, ({scratch})")

    def lw(self, rd: str, base: str, bias: int, context: _TempSource) -> None:
        self._memory("lw", rd, base, bias, context)

    def sw(self, rs1: str, base: str, bias: int, context: _TempSource) -> None:
        self._memory("sw", rs1, base, bias, context)

    def bnez(self, cond: str, label: str) -> None:
        self._emit(f"bnez {cond}, {label}")

    def beqz(self, cond: str, label: str) -> None:
        self._emit(f"beqz {cond}, {label}")

    def jump(self, label: str) -> None:
        self._emit(f"j {label}")