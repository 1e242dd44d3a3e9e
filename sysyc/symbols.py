"""Expression results, symbols and scoped symbol tables for IR generation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum


class ResultKind(Enum):
    """Where an expression's value lives."""

    IMM = "imm"
    REG = "reg"


@dataclass
class Result:
    """Outcome of emitting a node: an immediate or a numbered register."""

    kind: ResultKind = ResultKind.IMM
    value: int = 0
    returned: bool = False

    @classmethod
    def imm(cls, value: int) -> Result:
        """An immediate result."""
        return cls(ResultKind.IMM, int(value))

    def __str__(self) -> str:
        prefix = "%" if self.kind is ResultKind.REG else ""
        return f"{prefix}{self.value}"


class SymbolKind(Enum):
    """A variable (memory) or a compile-time constant."""

    VAR = "var"
    VAL = "val"


@dataclass(frozen=True)
class Symbol:
    """A named entry: a constant's value, or a variable's scope depth."""

    kind: SymbolKind = SymbolKind.VAL
    value: int = 0


class KoopaContext:
    """Scopes, allocation bookkeeping and label/register counters."""

    def __init__(self) -> None:
        self._scopes: list[dict[str, Symbol]] = []
        self._allocated: set[tuple[str, int]] = set()
        self._last_register = -1
        self.if_count = 0
        self.and_count = 0
        self.or_count = 0

    def new_register(self) -> Result:
        """A fresh register result, numbered from %0."""
        self._last_register += 1
        return Result(ResultKind.REG, self._last_register)

    def push_scope(self) -> None:
        self._scopes.append({})

    def pop_scope(self) -> None:
        if not self._scopes:
            raise RuntimeError("no scope to leave")
        self._scopes.pop()

    @contextmanager
    def scope(self) -> Iterator[None]:
        """Enter a new scope for the duration of the block."""
        self.push_scope()
        try:
            yield
        finally:
            self.pop_scope()

    def insert(self, name: str, symbol: Symbol) -> None:
        """Bind a name in the innermost scope."""
        if not self._scopes:
            raise RuntimeError("symbol table is empty")
        self._scopes[-1][name] = symbol

    def lookup(self, name: str) -> Symbol:
        """Resolve a name; variables resolve to the depth that declares them."""
        for depth in range(len(self._scopes), 0, -1):
            symbol = self._scopes[depth - 1].get(name)
            if symbol is None:
                continue
            if symbol.kind is SymbolKind.VAR:
                return Symbol(SymbolKind.VAR, depth)
            return symbol
        raise LookupError(f"identifier {name!r} does not exist")

    def mark_allocated(self, name: str) -> None:
        self._allocated.add((name, len(self._scopes)))

    def is_allocated(self, name: str) -> bool:
        return (name, len(self._scopes)) in self._allocated

    def next_if_id(self) -> int:
        self.if_count += 1
        return self.if_count

    def next_and_id(self) -> int:
        self.and_count += 1
        return self.and_count

    def next_or_id(self) -> int:
        self.or_count += 1
        return self.or_count