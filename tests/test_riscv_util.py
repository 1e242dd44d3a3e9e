import pytest

from sysyc.riscv_util import RISCVContext, RISCVPrinter, StackFrame


class _Val:
    """Identity-hashed stand-in for an IR value."""


def test_frame_assigns_consecutive_slots():
    frame = StackFrame(16)
    a, b = _Val(), _Val()
    first = frame.save(a)
    second = frame.save(b)
    assert first == 0
    assert second - first == 4
    assert frame.offset(b) == second
    assert frame.used == 8


def test_frame_save_is_idempotent():
    frame = StackFrame(16)
    a = _Val()
    frame.save(a)
    used = frame.used
    assert frame.save(a) == frame.offset(a)
    assert frame.used == used


def test_frame_overflow_raises():
    frame = StackFrame(4)
    frame.save(_Val())
    with pytest.raises(RuntimeError):
        frame.save(_Val())


def test_frame_offset_unknown_raises():
    with pytest.raises(KeyError):
        StackFrame(16).offset(_Val())


def test_allocate_in_order_and_reuse():
    ctx = RISCVContext()
    a, b, c = _Val(), _Val(), _Val()
    ra = ctx.allocate(a)
    rb = ctx.allocate(b)
    assert ra == "t0"
    assert ra != rb and ctx.register_of(b) == rb
    ctx.free(a)
    assert not ctx.has(a)
    assert ctx.allocate(c) == ra


def test_allocate_zero_register():
    ctx = RISCVContext()
    v = _Val()
    assert ctx.allocate(v, is_zero=True) == "x0"
    assert ctx.has(v)
    assert ctx.temp_register() == "t0"


def test_double_allocate_raises():
    ctx = RISCVContext()
    v = _Val()
    ctx.allocate(v)
    with pytest.raises(RuntimeError):
        ctx.allocate(v)


def test_register_exhaustion():
    ctx = RISCVContext()
    regs = {ctx.allocate(_Val()) for _ in range(15)}
    assert len(regs) == 15
    with pytest.raises(RuntimeError):
        ctx.allocate(_Val())
    with pytest.raises(RuntimeError):
        ctx.temp_register()


def test_temp_register_does_not_reserve():
    ctx = RISCVContext()
    temp = ctx.temp_register()
    assert ctx.temp_register() == temp
    assert ctx.allocate(_Val()) == temp


def test_free_and_lookup_unknown_raise():
    ctx = RISCVContext()
    with pytest.raises(KeyError):
        ctx.free(_Val())
    with pytest.raises(KeyError):
        ctx.register_of(_Val())


def test_functions_and_frames():
    ctx = RISCVContext()
    with pytest.raises(RuntimeError):
        ctx.current_frame()
    frame = ctx.start_function("main", 32)
    assert ctx.current_frame() is frame
    assert ctx.current_frame().size == 32
    with pytest.raises(RuntimeError):
        ctx.start_function("main", 16)


def test_printer_basic_instructions():
    p = RISCVPrinter()
    p.directive(".text")
    p.label("main")
    p.li("a0", 0)
    p.ret()
    assert p.text() == "\t.text\nmain:\n\tli a0, 0\n\tret\n"


def test_printer_three_register_forms():
    p = RISCVPrinter()
    p.add("t0", "t1", "t2")
    p.or_("t0", "t1", "t2")
    p.xor_("t0", "t1", "t2")
    lines = p.text().splitlines()
    assert lines == ["\tadd t0, t1, t2", "\tor t0, t1, t2", "\txor t0, t1, t2"]


def test_printer_branches():
    p = RISCVPrinter()
    p.bnez("t0", "then_1")
    p.jump("end_1")
    assert p.text() == "\tbnez t0, then_1\n\tj end_1\n"


def test_lw_sw_small_offsets():
    p = RISCVPrinter()
    ctx = RISCVContext()
    p.lw("t0", "sp", 8, ctx)
    p.sw("t0", "sp", 8, ctx)
    assert p.text() == "\tlw t0, 8(sp)\n\tsw t0, 8(sp)\n"


def test_lw_large_offset_uses_scratch():
    p = RISCVPrinter()
    ctx = RISCVContext()
    ctx.allocate(_Val())
    scratch = ctx.temp_register()
    p.lw("t0", "sp", 4096, ctx)
    lines = p.text().splitlines()
    assert lines[0] == f"\tli {scratch}, 4096"
    assert lines[1] == f"\tadd {scratch}, {scratch}, sp"
    assert lines[2] == f"\tlw t0, ({scratch})"


def test_addi_boundaries():
    ctx = RISCVContext()
    small = RISCVPrinter()
    small.addi("sp", "sp", -2048, ctx)
    assert small.text().splitlines() == ["\taddi sp, sp, -2048"]
    large = RISCVPrinter()
    large.addi("sp", "sp", 2048, ctx)
    lines = large.text().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("\tli ") and lines[0].endswith(", 2048")
    assert lines[1].startswith("\tadd sp, sp, ")