import pytest

from garnet_lang.internals.parser import parse_expression, parse_source
from garnet_lang.semantics.ast import (
    AttrAssign, Break, Call, ClassDef, Const, ConstAssign, ExprStmt, If, IndexAssign,
    InterpolatedString, IntLit, IVar, IvarAssign, LocalAssign, MethodDef, Name,
    Not, OpAssign, RangeLit, Return, Splat, StringLit, Super, SymbolLit, While,
    Yield,
)
from garnet_lang.semantics.ast_builder import (
    EmptyInterpolationError,
    InvalidEscapeError,
    ParseFailure,
    UnterminatedInterpolationError,
)


def _stmts(src):
    return parse_source(src).body.statements


def _expr(src):
    (stmt,) = _stmts(src)
    assert isinstance(stmt, ExprStmt)
    return stmt.expr


def test_empty_program():
    assert _stmts("") == []
    assert _stmts("\n\n# only a comment\n") == []


def test_statement_separators():
    stmts = _stmts("a = 1; b = 2\n\n\nc = 3\n")
    assert [s.expr.name for s in stmts] == ["a", "b", "c"]


def test_operators_become_calls():
    expr = _expr("1 + 2 * 3\n")
    assert isinstance(expr, Call) and expr.name == "+"
    assert isinstance(expr.args[0], Call) and expr.args[0].name == "*"


def test_negative_literal_folds():
    expr = _expr("-5\n")
    assert isinstance(expr, IntLit) and expr.value == -5


def test_command_call_without_parens():
    expr = _expr('puts "hi", :sym\n')
    assert isinstance(expr, Call)
    assert expr.receiver is None and expr.name == "puts"
    assert isinstance(expr.args[0], StringLit)
    assert isinstance(expr.args[1], SymbolLit) and expr.args[1].name == "sym"


def test_binary_minus_is_not_a_command():
    expr = _expr("x - 1\n")
    assert isinstance(expr, Call) and expr.name == "-"
    assert isinstance(expr.receiver, Name)


def test_method_call_chain_and_index():
    expr = _expr("list.first(2)[0]\n")
    assert expr.name == "[]"
    assert expr.receiver.name == "first"
    assert isinstance(expr.receiver.receiver, Name)


def test_newlines_inside_parens_and_after_operators():
    expr = _expr("foo(1,\n    2) +\n  3\n")
    assert expr.name == "+"
    assert len(expr.receiver.args) == 2


def test_assignments():
    stmts = _stmts("x = 1\n@y = 2\nZ = 3\nobj.name = 4\nh[:k] = 5\nx += 1\n@y ||= 6\n")
    kinds = [type(s.expr) for s in stmts]
    assert kinds[:3] == [LocalAssign, IvarAssign, ConstAssign]
    assert isinstance(stmts[3].expr, AttrAssign) and stmts[3].expr.name == "name"
    assert isinstance(stmts[4].expr, IndexAssign)
    assert isinstance(stmts[5].expr, OpAssign) and stmts[5].expr.op == "+"
    assert isinstance(stmts[6].expr, OpAssign) and stmts[6].expr.op == "||"
    assert isinstance(stmts[6].expr.target, IVar)


def test_class_and_method_definitions():
    src = (
        "class Point < Base\n"
        "  def initialize(x, y = 0, *rest, &blk)\n"
        "    @x = x\n"
        "  end\n"
        "  def self.origin\n"
        "  end\n"
        "  def ==(other)\n"
        "  end\n"
        "  def name=(v)\n"
        "  end\n"
        "end\n"
    )
    (cls,) = _stmts(src)
    assert isinstance(cls, ClassDef) and cls.name == "Point" and not cls.is_module
    assert isinstance(cls.superclass, Const)
    init, origin, eq, setter = cls.body.statements
    assert isinstance(init, MethodDef)
    assert [(p.name, p.kind) for p in init.params] == [
        ("x", "req"), ("y", "opt"), ("rest", "rest"), ("blk", "block"),
    ]
    assert origin.singleton and origin.name == "origin"
    assert eq.name == "=="
    assert setter.name == "name="


def test_module_definition():
    (mod,) = _stmts("module Enumerable\nend\n")
    assert isinstance(mod, ClassDef) and mod.is_module


def test_control_flow():
    src = (
        "if a\n  1\nelsif b\n  2\nelse\n  3\nend\n"
        "unless c\n  4\nend\n"
        "while d\n  break\nend\n"
    )
    if_stmt, unless_stmt, loop = _stmts(src)
    assert isinstance(if_stmt, If) and len(if_stmt.arms) == 2 and if_stmt.else_block
    assert isinstance(unless_stmt.arms[0][0], Not)
    assert isinstance(loop, While)
    assert isinstance(loop.body.statements[0], Break)


def test_blocks_yield_and_super():
    src = (
        "def each\n"
        "  yield 1, 2\n"
        "  super\n"
        "  super(1)\n"
        "  return items.map do |a, b|\n"
        "    a\n"
        "  end\n"
        "end\n"
    )
    (method,) = _stmts(src)
    y, zsuper, sup, ret = method.body.statements
    assert isinstance(y.expr, Yield) and len(y.expr.args) == 2
    assert isinstance(zsuper.expr, Super) and zsuper.expr.args is None
    assert sup.expr.args[0].value == 1
    assert isinstance(ret, Return)
    assert ret.value.block.params == ["a", "b"]


def test_splat_and_block_pass():
    expr = _expr("foo(1, *rest, &blk)\n")
    assert isinstance(expr.args[1], Splat)
    assert isinstance(expr.block_pass, Name)


def test_ranges():
    expr = _expr("(1..10)\n")
    assert isinstance(expr, RangeLit) and not expr.exclusive
    assert _expr("(1...10)\n").exclusive


def test_string_escapes_and_interpolation():
    assert _expr('"a\\tb\\u00e9"\n').value == "a\tbé"
    assert _expr("'a\\nb'\n").value == "a\\nb"
    expr = _expr('"x = #{x + 1}!"\n')
    assert isinstance(expr, InterpolatedString)
    assert expr.parts[0] == "x = "
    assert isinstance(expr.parts[1], Call)
    assert expr.parts[2] == "!"


def test_unicode_escape_range():
    assert _expr('"\\u{48 10FFFF}"\n').value == "H\U0010ffff"
    with pytest.raises(InvalidEscapeError) as exc:
        parse_source('x = 1\ny = "\\u{110000}"\n')
    assert exc.value.line == 2
    assert "invalid Unicode escape" in exc.value.message


def test_parse_expression():
    expr = parse_expression("a.b(c)")
    assert isinstance(expr, Call) and expr.name == "b"


def test_syntax_error_position():
    with pytest.raises(ParseFailure) as exc:
        parse_source("x = 1\ny = 2\nz = = 3\n")
    assert exc.value.line == 3
    assert "unexpected" in exc.value.message


def test_missing_end():
    with pytest.raises(ParseFailure) as exc:
        parse_source("def foo\n  1\n")
    assert "end of input" in exc.value.message


def test_bad_character():
    with pytest.raises(ParseFailure) as exc:
        parse_source("x = 1\ny = $\n")
    assert exc.value.line == 2


@pytest.mark.parametrize("src,error", [
    ('"#{x"\n', UnterminatedInterpolationError),
    ('"#{ }"\n', EmptyInterpolationError),
])
def test_interpolation_errors(src, error):
    with pytest.raises(error):
        parse_source(src)


def test_interpolation_error_reports_outer_line():
    with pytest.raises(ParseFailure) as exc:
        parse_source('x = 1\ny = "#{1 +}"\n')
    assert exc.value.line == 2


@pytest.mark.parametrize("src", [
    "def f(a, a)\nend\n",
    "def f(&b, c)\nend\n",
    "def f(*a, *b)\nend\n",
    "foo(&a, 1)\n",
    "foo(&a) do\nend\n",
    "def f\n  yield(&b)\nend\n",
])
def test_invalid_argument_lists(src):
    with pytest.raises(ParseFailure):
        parse_source(src)
