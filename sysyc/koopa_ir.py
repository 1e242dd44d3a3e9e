"""In-memory Koopa IR and a parser for its text form."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, NamedTuple

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class KoopaParseError(ValueError):
    """Raised when Koopa IR text is malformed or inconsistent."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        super().__init__(f"line {line}: {message}" if line is not None else message)


class TypeTag(IntEnum):
    """Kind of a Koopa type."""

    INT32 = 0
    UNIT = 1
    ARRAY = 2
    POINTER = 3
    FUNCTION = 4


class ValueTag(IntEnum):
    """Kind of a Koopa value."""

    INTEGER = 0
    ZERO_INIT = 1
    UNDEF = 2
    AGGREGATE = 3
    FUNC_ARG_REF = 4
    BLOCK_ARG_REF = 5
    ALLOC = 6
    GLOBAL_ALLOC = 7
    LOAD = 8
    STORE = 9
    GET_PTR = 10
    GET_ELEM_PTR = 11
    BINARY = 12
    BRANCH = 13
    JUMP = 14
    CALL = 15
    RETURN = 16


class BinaryOp(IntEnum):
    """Binary operators of Koopa IR."""

    NOT_EQ = 0
    EQ = 1
    GT = 2
    LT = 3
    GE = 4
    LE = 5
    ADD = 6
    SUB = 7
    MUL = 8
    DIV = 9
    MOD = 10
    AND = 11
    OR = 12
    XOR = 13
    SHL = 14
    SHR = 15
    SAR = 16


_BINARY_OPS = {
    "ne": BinaryOp.NOT_EQ,
    "eq": BinaryOp.EQ,
    "gt": BinaryOp.GT,
    "lt": BinaryOp.LT,
    "ge": BinaryOp.GE,
    "le": BinaryOp.LE,
    "add": BinaryOp.ADD,
    "sub": BinaryOp.SUB,
    "mul": BinaryOp.MUL,
    "div": BinaryOp.DIV,
    "mod": BinaryOp.MOD,
    "and": BinaryOp.AND,
    "or": BinaryOp.OR,
    "xor": BinaryOp.XOR,
    "shl": BinaryOp.SHL,
    "shr": BinaryOp.SHR,
    "sar": BinaryOp.SAR,
}


@dataclass(eq=False)
class Value:
    """A Koopa value; compared and hashed by identity."""

    tag: ClassVar[ValueTag]
    ty: ClassVar[TypeTag] = TypeTag.UNIT
    name: str | None = field(default=None, kw_only=True)


@dataclass(eq=False)
class Integer(Value):
    """An i32 constant."""

    tag: ClassVar[ValueTag] = ValueTag.INTEGER
    ty: ClassVar[TypeTag] = TypeTag.INT32
    value: int = 0


@dataclass(eq=False)
class Alloc(Value):
    """A local allocation of one i32."""

    tag: ClassVar[ValueTag] = ValueTag.ALLOC
    ty: ClassVar[TypeTag] = TypeTag.POINTER


@dataclass(eq=False)
class Load(Value):
    """A load from an allocation."""

    tag: ClassVar[ValueTag] = ValueTag.LOAD
    ty: ClassVar[TypeTag] = TypeTag.INT32
    src: Value


@dataclass(eq=False)
class Store(Value):
    """A store of a value into an allocation."""

    tag: ClassVar[ValueTag] = ValueTag.STORE
    value: Value
    dest: Value


@dataclass(eq=False)
class Binary(Value):
    """A binary operation on two i32 values."""

    tag: ClassVar[ValueTag] = ValueTag.BINARY
    ty: ClassVar[TypeTag] = TypeTag.INT32
    op: BinaryOp
    lhs: Value
    rhs: Value


@dataclass(eq=False)
class Branch(Value):
    """A conditional branch."""

    tag: ClassVar[ValueTag] = ValueTag.BRANCH
    cond: Value
    true_bb: BasicBlock
    false_bb: BasicBlock


@dataclass(eq=False)
class Jump(Value):
    """An unconditional jump."""

    tag: ClassVar[ValueTag] = ValueTag.JUMP
    target: BasicBlock


@dataclass(eq=False)
class Return(Value):
    """A function return, with or without a value."""

    tag: ClassVar[ValueTag] = ValueTag.RETURN
    value: Value | None = None


@dataclass(eq=False)
class BasicBlock:
    """A labelled sequence of instructions; the name keeps its '%'."""

    name: str
    insts: list[Value] = field(default_factory=list)


@dataclass(eq=False)
class Function:
    """A function definition; the name keeps its '@'."""

    name: str
    ret_type: TypeTag = TypeTag.UNIT
    bbs: list[BasicBlock] = field(default_factory=list)


@dataclass(eq=False)
class Program:
    """A whole Koopa program."""

    funcs: list[Function] = field(default_factory=list)
    values: list[Value] = field(default_factory=list)


class _Token(NamedTuple):
    kind: str
    text: str
    line: int


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\n]+)
    |(?P<comment>//[^\n]*|/\*.*?\*/)
    |(?P<symbol>[@%][A-Za-z0-9_]+)
    |(?P<int>-?\d+)
    |(?P<word>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<punct>[(){}:,=*\[\]])
    """,
    re.VERBOSE | re.DOTALL,
)


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    line = 1
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise KoopaParseError(f"unexpected character {text[pos]!r}", line)
        kind = match.lastgroup or ""
        lexeme = match.group()
        if kind not in ("ws", "comment"):
            tokens.append(_Token(kind, lexeme, line))
        line += lexeme.count("\n")
        pos = match.end()
    tokens.append(_Token("eof", "", line))
    return tokens


def _describe(tok: _Token) -> str:
    return "end of input" if tok.kind == "eof" else repr(tok.text)


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self, ahead: int = 0) -> _Token:
        return self._tokens[min(self._pos + ahead, len(self._tokens) - 1)]

    def _advance(self) -> _Token:
        tok = self._peek()
        if tok.kind != "eof":
            self._pos += 1
        return tok

    def _at(self, kind: str, text: str | None = None, ahead: int = 0) -> bool:
        tok = self._peek(ahead)
        return tok.kind == kind and (text is None or tok.text == text)

    def _expect(self, kind: str, text: str | None = None) -> _Token:
        if not self._at(kind, text):
            tok = self._peek()
            raise KoopaParseError(
                f"expected {text or kind}, found {_describe(tok)}", tok.line
            )
        return self._advance()

    def program(self) -> Program:
        program = Program()
        seen: set[str] = set()
        while not self._at("eof"):
            line = self._peek().line
            func = self._function()
            if func.name in seen:
                raise KoopaParseError(f"function {func.name} redefined", line)
            seen.add(func.name)
            program.funcs.append(func)
        return program

    def _type(self) -> TypeTag:
        tok = self._advance()
        if tok.kind == "word" and tok.text == "i32":
            return TypeTag.INT32
        raise KoopaParseError(f"unsupported type {_describe(tok)}", tok.line)

    def _function(self) -> Function:
        self._expect("word", "fun")
        name_tok = self._expect("symbol")
        if not name_tok.text.startswith("@"):
            raise KoopaParseError("function name must start with '@'", name_tok.line)
        self._expect("punct", "(")
        if not self._at("punct", ")"):
            raise KoopaParseError("function parameters are not supported", self._peek().line)
        self._expect("punct", ")")
        ret_type = TypeTag.UNIT
        if self._at("punct", ":"):
            self._advance()
            ret_type = self._type()
        self._expect("punct", "{")

        blocks = self._scan_labels()
        func = Function(name_tok.text, ret_type)
        values: dict[str, Value] = {}
        current: BasicBlock | None = None
        while not self._at("punct", "}"):
            if self._at("symbol") and self._at("punct", ":", 1):
                label = self._advance()
                self._advance()
                current = blocks[label.text]
                func.bbs.append(current)
                continue
            if current is None:
                tok = self._peek()
                raise KoopaParseError(
                    f"instruction {_describe(tok)} outside of a basic block", tok.line
                )
            current.insts.append(self._instruction(values, blocks))
        close = self._expect("punct", "}")
        if not func.bbs:
            raise KoopaParseError(f"function {func.name} has no basic blocks", close.line)
        return func

    def _scan_labels(self) -> dict[str, BasicBlock]:
        blocks: dict[str, BasicBlock] = {}
        index = self._pos
        while True:
            tok = self._tokens[index]
            if tok.kind == "eof" or (tok.kind == "punct" and tok.text == "}"):
                return blocks
            nxt = self._tokens[index + 1]
            if tok.kind == "symbol" and nxt.kind == "punct" and nxt.text == ":":
                if not tok.text.startswith("%"):
                    raise KoopaParseError("basic block name must start with '%'", tok.line)
                if tok.text in blocks:
                    raise KoopaParseError(f"basic block {tok.text} redefined", tok.line)
                blocks[tok.text] = BasicBlock(tok.text)
            index += 1

    def _instruction(self, values: dict[str, Value], blocks: dict[str, BasicBlock]) -> Value:
        tok = self._peek()
        if tok.kind == "symbol" and self._at("punct", "=", 1):
            self._advance()
            self._advance()
            if tok.text in values:
                raise KoopaParseError(f"value {tok.text} redefined", tok.line)
            value = self._definition(values)
            value.name = tok.text
            values[tok.text] = value
            return value
        if tok.kind == "word":
            if tok.text == "store":
                self._advance()
                stored = self._int_operand(values)
                self._expect("punct", ",")
                dest_line = self._peek().line
                dest = self._operand(values)
                if not isinstance(dest, Alloc):
                    raise KoopaParseError("store destination is not an allocation", dest_line)
                return Store(stored, dest)
            if tok.text == "br":
                self._advance()
                cond = self._int_operand(values)
                self._expect("punct", ",")
                true_bb = self._block_ref(blocks)
                self._expect("punct", ",")
                false_bb = self._block_ref(blocks)
                return Branch(cond, true_bb, false_bb)
            if tok.text == "jump":
                self._advance()
                return Jump(self._block_ref(blocks))
            if tok.text == "ret":
                self._advance()
                if self._at("int") or (
                    self._at("symbol")
                    and not self._at("punct", ":", 1)
                    and not self._at("punct", "=", 1)
                ):
                    return Return(self._int_operand(values))
                return Return()
        raise KoopaParseError(f"unexpected {_describe(tok)}", tok.line)

    def _definition(self, values: dict[str, Value]) -> Value:
        tok = self._expect("word")
        if tok.text == "alloc":
            self._type()
            return Alloc()
        if tok.text == "load":
            src_line = self._peek().line
            src = self._operand(values)
            if not isinstance(src, Alloc):
                raise KoopaParseError("load source is not an allocation", src_line)
            return Load(src)
        op = _BINARY_OPS.get(tok.text)
        if op is None:
            raise KoopaParseError(f"unknown instruction {tok.text!r}", tok.line)
        lhs = self._int_operand(values)
        self._expect("punct", ",")
        rhs = self._int_operand(values)
        return Binary(op, lhs, rhs)

    def _operand(self, values: dict[str, Value]) -> Value:
        tok = self._advance()
        if tok.kind == "int":
            number = int(tok.text)
            if not _INT32_MIN <= number <= _INT32_MAX:
                raise KoopaParseError(f"integer {tok.text} out of i32 range", tok.line)
            return Integer(number)
        if tok.kind == "symbol":
            try:
                return values[tok.text]
            except KeyError:
                raise KoopaParseError(f"undefined value {tok.text}", tok.line) from None
        raise KoopaParseError(f"expected a value, found {_describe(tok)}", tok.line)

    def _int_operand(self, values: dict[str, Value]) -> Value:
        line = self._peek().line
        value = self._operand(values)
        if value.ty != TypeTag.INT32:
            raise KoopaParseError("expected an i32 value", line)
        return value

    def _block_ref(self, blocks: dict[str, BasicBlock]) -> BasicBlock:
        tok = self._expect("symbol")
        try:
            return blocks[tok.text]
        except KeyError:
            raise KoopaParseError(f"undefined basic block {tok.text}", tok.line) from None


def parse_program(text: str) -> Program:
    """Parse Koopa IR text into a Program."""
    return _Parser(_tokenize(text)).program()