# semantics/ast.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union, Literal

from garnet_lang.internals.report import Span

# === Core node base ===

@dataclass
class Node:
    loc: Optional[Span]

@dataclass
class Stmt(Node):
    pass

@dataclass
class Block(Node):
    statements: List[Stmt]

# === Program structure ===

@dataclass
class Program(Node):
    body: Block

ParamKind = Literal["req", "opt", "rest", "block"]
@dataclass
class Param:
    name: str
    kind: ParamKind = "req"
    default: Optional["Expr"] = None   # Only for kind == "opt"
    loc: Optional[Span] = None

@dataclass
class ClassDef(Stmt):
    name: str
    superclass: Optional["Expr"]
    body: Block
    is_module: bool = False
    name_span: Optional[Span] = None

@dataclass
class MethodDef(Stmt):
    name: str                        # Ruby-level name, e.g. "foo", "name=", "[]", "+"
    params: List[Param]
    body: Block
    singleton: bool = False          # def self.foo
    name_span: Optional[Span] = None

# === Statements ===

@dataclass
class ExprStmt(Stmt):
    expr: "Expr"

@dataclass
class If(Stmt):
    arms: List[Tuple["Expr", Block]]     # [(cond, block), ...]
    else_block: Optional[Block]

@dataclass
class While(Stmt):
    cond: "Expr"
    body: Block

@dataclass
class Return(Stmt):
    value: Optional["Expr"]

@dataclass
class Break(Stmt):
    value: Optional["Expr"]

# === Expressions ===

@dataclass
class Name(Node):
    """Bare identifier: a local variable if one is in scope, else a call on self."""
    id: str

@dataclass
class IVar(Node):
    name: str                        # Includes the leading '@'

@dataclass
class Const(Node):
    name: str

@dataclass
class SelfRef(Node):
    pass

@dataclass
class NilLit(Node):
    pass

@dataclass
class BoolLit(Node):
    value: bool

@dataclass
class FileRef(Node):
    """__FILE__"""
    pass

@dataclass
class IntLit(Node):
    value: int

@dataclass
class FloatLit(Node):
    value: float

@dataclass
class StringLit(Node):
    value: str

@dataclass
class InterpolatedString(Node):
    """A string with #{...} parts.

    Parts alternate freely between literal text and expressions:
    "a#{b}c" -> ["a", Name("b"), "c"]
    """
    parts: List[Union[str, "Expr"]]

@dataclass
class SymbolLit(Node):
    name: str                        # Without the leading ':'

@dataclass
class XString(Node):
    """Backtick literal: raw JavaScript with optional #{...} parts."""
    parts: List[Union[str, "Expr"]]

@dataclass
class ArrayLiteral(Node):
    elements: List["Expr"]

@dataclass
class HashLiteral(Node):
    pairs: List[Tuple["Expr", "Expr"]]

@dataclass
class RangeLit(Node):
    low: "Expr"
    high: "Expr"
    exclusive: bool = False

@dataclass
class Splat(Node):
    expr: "Expr"

@dataclass
class DoBlock(Node):
    params: List[str]
    body: Block

@dataclass
class Call(Node):
    receiver: Optional["Expr"]       # None for calls on self
    name: str
    args: List["Expr"] = field(default_factory=list)
    block: Optional[DoBlock] = None
    block_pass: Optional["Expr"] = None

@dataclass
class Super(Node):
    args: Optional[List["Expr"]]     # None for bare `super` (forward all arguments)
    block_pass: Optional["Expr"] = None

@dataclass
class Yield(Node):
    args: List["Expr"]

@dataclass
class Not(Node):
    expr: "Expr"

@dataclass
class And(Node):
    left: "Expr"
    right: "Expr"

@dataclass
class Or(Node):
    left: "Expr"
    right: "Expr"

# === Assignments (expressions, value is the assigned value) ===

@dataclass
class LocalAssign(Node):
    name: str
    value: "Expr"

@dataclass
class IvarAssign(Node):
    name: str
    value: "Expr"

@dataclass
class ConstAssign(Node):
    name: str
    value: "Expr"

@dataclass
class AttrAssign(Node):
    receiver: "Expr"
    name: str                        # Setter name without '=', e.g. "size"
    value: "Expr"

@dataclass
class IndexAssign(Node):
    receiver: "Expr"
    args: List["Expr"]
    value: "Expr"

AsgnOp = Literal["+", "-", "*", "/", "%", "**", "||", "&&"]
@dataclass
class OpAssign(Node):
    target: Union[Name, IVar]
    op: AsgnOp
    value: "Expr"


Expr = Union[
    Name, IVar, Const, SelfRef, NilLit, BoolLit, FileRef, IntLit, FloatLit,
    StringLit, InterpolatedString, SymbolLit, XString, ArrayLiteral, HashLiteral,
    RangeLit, Splat, Call, Super, Yield, Not, And, Or,
    LocalAssign, IvarAssign, ConstAssign, AttrAssign, IndexAssign, OpAssign,
]
