import pytest

from sysyc.koopa_ir import (
    Alloc,
    Binary,
    BinaryOp,
    Branch,
    Integer,
    Jump,
    KoopaParseError,
    Load,
    Return,
    Store,
    TypeTag,
    ValueTag,
    parse_program,
)

SAMPLE = """
fun @main(): i32 {
%entry:
    @x_1 = alloc i32
    store 1, @x_1
    %0 = load @x_1
    %1 = add %0, 2
    br %1, %then_1, %end_1
%then_1:
    ret %1
%end_1:
    ret 0
}
"""


def test_function_shape():
    program = parse_program(SAMPLE)
    assert [f.name for f in program.funcs] == ["@main"]
    func = program.funcs[0]
    assert func.ret_type == TypeTag.INT32
    assert [bb.name for bb in func.bbs] == ["%entry", "%then_1", "%end_1"]
    assert program.values == []


def test_instruction_kinds_and_types():
    entry = parse_program(SAMPLE).funcs[0].bbs[0]
    assert [i.tag for i in entry.insts] == [
        ValueTag.ALLOC,
        ValueTag.STORE,
        ValueTag.LOAD,
        ValueTag.BINARY,
        ValueTag.BRANCH,
    ]
    assert [i.ty for i in entry.insts] == [
        TypeTag.POINTER,
        TypeTag.UNIT,
        TypeTag.INT32,
        TypeTag.INT32,
        TypeTag.UNIT,
    ]


def test_references_are_shared_objects():
    func = parse_program(SAMPLE).funcs[0]
    alloc, store, load, binary, branch = func.bbs[0].insts
    assert isinstance(store, Store) and store.dest is alloc
    assert isinstance(store.value, Integer) and store.value.value == 1
    assert isinstance(load, Load) and load.src is alloc
    assert isinstance(binary, Binary) and binary.op == BinaryOp.ADD
    assert binary.lhs is load
    assert binary.rhs.value == 2
    assert isinstance(branch, Branch)
    assert branch.cond is binary
    assert branch.true_bb is func.bbs[1]
    assert branch.false_bb is func.bbs[2]
    ret = func.bbs[1].insts[0]
    assert isinstance(ret, Return) and ret.value is binary


def test_names_are_kept_with_prefix():
    entry = parse_program(SAMPLE).funcs[0].bbs[0]
    assert [i.name for i in entry.insts] == ["@x_1", None, "%0", "%1", None]


def test_parsed_tags_have_format_numbering():
    text = "fun @f(): i32 {\n%entry:\n %0 = ne 1, 2\n %1 = or %0, 1\n ret %1\n}"
    insts = parse_program(text).funcs[0].bbs[0].insts
    assert int(insts[0].op) == 0
    assert int(insts[1].op) == 12
    assert int(insts[0].lhs.tag) == 0
    assert int(insts[2].tag) == 16


def test_all_binary_mnemonics():
    mnemonics = ["ne", "eq", "gt", "lt", "ge", "le", "add", "sub", "mul", "div", "mod", "and", "or"]
    body = "\n".join(f"%{i} = {m} 1, 2" for i, m in enumerate(mnemonics))
    text = f"fun @main(): i32 {{\n%entry:\n{body}\nret 0\n}}"
    insts = parse_program(text).funcs[0].bbs[0].insts
    assert [i.op.name for i in insts[:-1]] == [
        "NOT_EQ", "EQ", "GT", "LT", "GE", "LE", "ADD", "SUB", "MUL", "DIV", "MOD", "AND", "OR",
    ]


def test_ret_without_value_and_jump():
    text = "fun @f() {\n%entry:\n jump %next\n%next:\n ret\n}"
    func = parse_program(text).funcs[0]
    assert func.ret_type == TypeTag.UNIT
    jump = func.bbs[0].insts[0]
    assert isinstance(jump, Jump) and jump.target is func.bbs[1]
    ret = func.bbs[1].insts[0]
    assert isinstance(ret, Return) and ret.value is None


def test_ret_followed_by_label_has_no_value():
    text = "fun @f(): i32 {\n%entry:\n br 1, %a, %b\n%a:\n ret\n%b:\n ret -5\n}"
    func = parse_program(text).funcs[0]
    assert func.bbs[1].insts[0].value is None
    assert func.bbs[2].insts[0].value.value == -5


def test_each_integer_literal_is_distinct():
    text = "fun @f(): i32 {\n%entry:\n %0 = add 1, 1\n ret %0\n}"
    binary = parse_program(text).funcs[0].bbs[0].insts[0]
    assert binary.lhs is not binary.rhs
    assert binary.lhs.value == binary.rhs.value


def test_comments_are_ignored():
    text = "// leading\nfun @f(): i32 { /* a\nb */\n%entry:\n ret 3 // tail\n}"
    func = parse_program(text).funcs[0]
    assert func.bbs[0].insts[0].value.value == 3


def test_empty_text_is_empty_program():
    assert parse_program("  \n").funcs == []


def test_allocation_is_parsed_as_pointer_alloc():
    text = "fun @f(): i32 {\n%entry:\n @a = alloc i32\n ret 0\n}"
    alloc = parse_program(text).funcs[0].bbs[0].insts[0]
    assert isinstance(alloc, Alloc)
    assert alloc.name == "@a"
    assert alloc.tag == ValueTag.ALLOC
    assert alloc.ty == TypeTag.POINTER


@pytest.mark.parametrize(
    "body",
    [
        "ret %9",
        "jump %nowhere",
        "%0 = add 1, 2\n %0 = add 3, 4\n ret 0",
        "ret 4294967296",
        "%0 = add 1, 2\n %1 = load %0\n ret 0",
        "store 1, 2\n ret 0",
        "%0 = frob 1, 2\n ret 0",
        "@a = alloc i64\n ret 0",
        "@a = alloc i32\n %0 = add @a, 1\n ret 0",
        "ret 0 $",
    ],
)
def test_invalid_bodies_raise(body):
    with pytest.raises(KoopaParseError):
        parse_program(f"fun @f(): i32 {{\n%entry:\n {body}\n}}")


def test_instruction_before_label_raises():
    with pytest.raises(KoopaParseError):
        parse_program("fun @f(): i32 {\n ret 0\n}")


def test_duplicate_label_raises():
    with pytest.raises(KoopaParseError):
        parse_program("fun @f(): i32 {\n%a:\n ret 0\n%a:\n ret 1\n}")


def test_duplicate_function_raises():
    text = "fun @f(): i32 {\n%a:\n ret 0\n}\nfun @f(): i32 {\n%a:\n ret 0\n}"
    with pytest.raises(KoopaParseError):
        parse_program(text)


def test_unterminated_function_raises_with_line():
    with pytest.raises(KoopaParseError) as info:
        parse_program("fun @f(): i32 {\n%a:\n ret 0\n")
    assert info.value.line == 4