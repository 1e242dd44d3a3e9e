# sysyc

`sysyc` is a compact compiler library for a subset of the SysY language. It
has two stages that can be used on their own:

1. **Syntax tree to Koopa IR.** A SysY syntax tree (a `CompUnit` holding one
   `int` function) is lowered to text-form Koopa IR. Constant expressions are
   folded at compile time (with 32-bit wrap-around and C-style truncating
   division), constants are substituted in place, local variables become
   `alloc`/`load`/`store`, `if`/`else` statements become labelled basic
   blocks, and `&&` / `||` are short-circuited with branches.
2. **Koopa IR to RISC-V.** Text-form Koopa IR is parsed into an in-memory
   program and turned into RV32 assembly. Every instruction result lives in a
   stack slot; each instruction loads its operands into temporary registers,
   computes, and stores the result back.

The package has no dependencies outside the standard library.

## Supported language

- one function returning `int`, with nested blocks
- `const int` and `int` declarations, with or without initialisers
- assignment, expression statements, `return`, `if` / `else`
- unary `+ - !`, binary `* / % + - < > <= >= == != && ||`

## Lowering a syntax tree to Koopa IR

Expression nodes live in `sysyc.ast_exp` (`Exp`, `ConstExp`, `LVal`,
`PrimaryExp`, `UnaryExp`, `MulExp`, `AddExp`, `RelExp`, `EqExp`, `LAndExp`,
`LOrExp`); declarations, statements and functions live in `sysyc.ast_stmt`
(`CompUnit`, `FuncDef`, `FuncType`, `Block`, `BlockItem`, `Stmt`,
`StmtKind`, `Decl`, `BType`, `ConstDecl`, `ConstDef`, `ConstInitVal`,
`VarDecl`, `VarDef`, `InitVal`). Every node accepts any other node as a
child, so the grammar's pass-through levels may be skipped.
`generate_koopa` returns the Koopa IR text of a whole unit:

```python
from sysyc.ast_exp import AddExp, Exp, PrimaryExp
from sysyc.ast_stmt import (
    Block, BlockItem, CompUnit, FuncDef, FuncType, Stmt, StmtKind, generate_koopa,
)

body = Exp(AddExp(add_exp=PrimaryExp(number=1), op="+", mul_exp=PrimaryExp(number=2)))
unit = CompUnit(
    FuncDef(FuncType("int"), "main",
            Block([BlockItem(stmt=Stmt(StmtKind.RETURN, exp=body))]))
)
print(generate_koopa(unit))
```

The constant is folded and the result is:

```
fun @main(): i32 {
%entry:
	ret 3
}
```

A function body that does not return on every path gets a trailing `ret 0`.
Variables are named after their scope depth (`@x_1`, `@x_2`, ...).

Errors are raised, not written into the output: assigning to a constant
raises `ValueError`, an unknown identifier raises `LookupError`, and a
constant division by zero raises `ZeroDivisionError`.

## Compiling Koopa IR to RISC-V

`compile_koopa` in `sysyc.riscv` takes Koopa IR text and returns assembly:

```python
from sysyc.riscv import compile_koopa

koopa_text = """\
fun @main(): i32 {
%entry:
	%0 = add 1, 2
	ret %0
}
"""

print(compile_koopa(koopa_text))
```

which prints

```
	.text
	.globl main
main:
	addi sp, sp, -16
entry:
	li t0, 1
	li t1, 2
	add t0, t0, t1
	sw t0, 0(sp)
	lw a0, 0(sp)
	addi sp, sp, 16
	ret
```

With a parsed program at hand, the two steps can be run separately:

```python
from sysyc.koopa_ir import parse_program
from sysyc.riscv import emit_riscv

program = parse_program(koopa_text)
assembly = emit_riscv(program)
```

`RISCVGenerator().generate(program)` does the same as `emit_riscv`.

The parser reads functions without parameters, the `i32` type, `alloc`,
`load`, `store`, the binary operators, `br`, `jump` and `ret`, and skips
`//` and `/* */` comments. It raises `KoopaParseError` (a `ValueError`
carrying the offending `line`) for text it cannot read. The code generator
handles every binary operator except `xor`, `shl`, `shr` and `sar`, for
which it raises `RuntimeError`; it also raises `RuntimeError` if a frame
overflows.

## Building blocks

- `sysyc.koopa_ir` — the Koopa IR data model (`Program`, `Function`,
  `BasicBlock`, the instruction classes `Integer`, `Alloc`, `Load`, `Store`,
  `Binary`, `Branch`, `Jump`, `Return`, and the enums `TypeTag`, `ValueTag`,
  `BinaryOp`) and `parse_program`.
- `sysyc.symbols` — `Result`, `Symbol` and `KoopaContext`: the scoped symbol
  table and the counters for registers and labels used during lowering.
- `sysyc.riscv_util` — `StackFrame`, `RISCVContext` (register allocation over
  `t0`–`t6` and `a0`–`a7`) and `RISCVPrinter`, which collects instructions and
  goes through a scratch register when an offset or immediate does not fit
  in 12 bits.
- `sysyc.riscv` — `RISCVGenerator`, `emit_riscv` and `compile_koopa`.

## What it does not do

- There is no SysY source reader: syntax trees must be built in Python, as
  above.
- There is no command-line program; the package is used as a library.
- Nothing is written to files; both stages return strings.
- Function calls, parameters, loops, arrays and global variables are not
  supported.