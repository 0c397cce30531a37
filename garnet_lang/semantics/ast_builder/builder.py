"""ASTBuilder: turns the Lark parse tree into typed AST nodes.

Statements are dispatched on the tree's rule name, expressions through
``_x_<rule>`` methods. Operators become method calls (``a + b`` is
``a.+(b)``) since every operator is a method in the source language.
"""
from __future__ import annotations
from typing import List, Optional, Tuple

from lark import Tree, Token

from garnet_lang.internals.report import span_of
from garnet_lang.semantics.ast import (
    Program, Block, Param, ClassDef, MethodDef, ExprStmt, If, While, Return, Break,
    Name, IVar, Const, SelfRef, NilLit, BoolLit, FileRef, IntLit, FloatLit,
    StringLit, InterpolatedString, SymbolLit, XString, ArrayLiteral, HashLiteral,
    RangeLit, Splat, DoBlock, Call, Super, Yield, Not, And, Or,
    LocalAssign, IvarAssign, ConstAssign, AttrAssign, IndexAssign, OpAssign,
    Stmt, Expr,
)
from garnet_lang.semantics.ast_builder.exceptions import ParseFailure
from garnet_lang.semantics.ast_builder.strings import (
    process_string_escapes,
    process_single_quoted,
    split_interpolations,
    shift_span,
)


def _trees(children) -> List[Tree]:
    return [c for c in children if isinstance(c, Tree)]


def _token(children, *types: str) -> Optional[Token]:
    for c in children:
        if isinstance(c, Token) and c.type in types:
            return c
    return None


def _first_tree(children, data: str) -> Optional[Tree]:
    for c in children:
        if isinstance(c, Tree) and c.data == data:
            return c
    return None


class ASTBuilder:
    def build(self, tree: Tree) -> Program:
        """Build a Program from a ``program`` parse tree."""
        assert isinstance(tree, Tree) and tree.data == "program"
        stmts = [self.stmt(ch) for ch in _trees(tree.children)]
        return Program(span_of(tree), Block(span_of(tree), stmts))

    def build_expr(self, tree: Tree) -> Expr:
        return self.expr(tree)

    # ------------------------
    # Statements
    # ------------------------

    def block(self, tree: Tree) -> Block:
        return Block(span_of(tree), [self.stmt(ch) for ch in _trees(tree.children)])

    def stmt(self, tree: Tree) -> Stmt:
        handler = getattr(self, f"_s_{tree.data}", None)
        if handler is not None:
            return handler(tree)
        return ExprStmt(span_of(tree), self.expr(tree))

    def _s_class_def(self, t: Tree) -> ClassDef:
        name = _token(t.children, "CONST")
        body = _first_tree(t.children, "body")
        superclass = None
        if _token(t.children, "LT") is not None:
            superclass = self.expr([c for c in _trees(t.children) if c is not body][0])
        return ClassDef(span_of(t), str(name), superclass, self.block(body),
                        is_module=False, name_span=span_of(name))

    def _s_module_def(self, t: Tree) -> ClassDef:
        name = _token(t.children, "CONST")
        return ClassDef(span_of(t), str(name), None, self.block(_first_tree(t.children, "body")),
                        is_module=True, name_span=span_of(name))

    def _s_method_def(self, t: Tree) -> MethodDef:
        singleton = _first_tree(t.children, "singleton") is not None
        fname = [c for c in _trees(t.children) if c.data not in ("singleton", "params", "body")][0]
        params_tree = _first_tree(t.children, "params")
        params = self._params(params_tree) if params_tree is not None else []
        return MethodDef(span_of(t), self._fname(fname), params,
                         self.block(_first_tree(t.children, "body")),
                         singleton=singleton, name_span=span_of(fname))

    def _fname(self, t: Tree) -> str:
        if t.data in ("fname", "operator_name"):
            inner = _first_tree(t.children, "operator_name")
            if inner is not None:
                return self._fname(inner)
            return str(t.children[0])
        if t.data == "plain_name":
            return str(t.children[0])
        if t.data == "setter_name":
            return f"{t.children[0]}="
        if t.data == "index_name":
            return "[]"
        if t.data == "index_setter_name":
            return "[]="
        raise ParseFailure(f"unexpected method name node '{t.data}'", span_of(t))

    def _params(self, t: Tree) -> List[Param]:
        params: List[Param] = []
        seen = set()
        for p in _trees(t.children):
            name = str(_token(p.children, "NAME"))
            if name in seen:
                raise ParseFailure(f"duplicated argument name '{name}'", span_of(p))
            seen.add(name)
            if p.data == "req_param":
                params.append(Param(name, "req", loc=span_of(p)))
            elif p.data == "opt_param":
                params.append(Param(name, "opt", self.expr(_trees(p.children)[0]), span_of(p)))
            elif p.data == "rest_param":
                params.append(Param(name, "rest", loc=span_of(p)))
            else:
                params.append(Param(name, "block", loc=span_of(p)))
        kinds = [p.kind for p in params]
        if "block" in kinds and kinds.index("block") != len(kinds) - 1:
            raise ParseFailure("block argument must be the last parameter", span_of(t))
        if kinds.count("rest") > 1:
            raise ParseFailure("only one splat parameter is allowed", span_of(t))
        return params

    def _s_if_stmt(self, t: Tree) -> If:
        trees = _trees(t.children)
        arms = [(self.expr(trees[0]), self.block(trees[1]))]
        else_block = None
        for ch in trees[2:]:
            if ch.data == "elsif_clause":
                cond, body = _trees(ch.children)
                arms.append((self.expr(cond), self.block(body)))
            elif ch.data == "else_clause":
                else_block = self.block(_trees(ch.children)[0])
        return If(span_of(t), arms, else_block)

    def _s_unless_stmt(self, t: Tree) -> If:
        trees = _trees(t.children)
        cond = self.expr(trees[0])
        else_clause = _first_tree(trees[2:], "else_clause")
        else_block = self.block(_trees(else_clause.children)[0]) if else_clause is not None else None
        return If(span_of(t), [(Not(cond.loc, cond), self.block(trees[1]))], else_block)

    def _s_while_stmt(self, t: Tree) -> While:
        cond, body = _trees(t.children)
        return While(span_of(t), self.expr(cond), self.block(body))

    def _s_return_stmt(self, t: Tree) -> Return:
        trees = _trees(t.children)
        return Return(span_of(t), self.expr(trees[0]) if trees else None)

    def _s_break_stmt(self, t: Tree) -> Break:
        trees = _trees(t.children)
        return Break(span_of(t), self.expr(trees[0]) if trees else None)

    # ------------------------
    # Expressions
    # ------------------------

    def expr(self, t: Tree) -> Expr:
        handler = getattr(self, f"_x_{t.data}", None)
        if handler is None:
            raise ParseFailure(f"unexpected '{t.data}' in expression position", span_of(t))
        return handler(t)

    def _call_args(self, t: Optional[Tree]) -> Tuple[List[Expr], Optional[Expr]]:
        """Split an ``args``/``call_args`` tree into positional args and a ``&blk`` pass."""
        if t is None:
            return [], None
        if t.data == "call_args":
            t = _first_tree(t.children, "args")
            if t is None:
                return [], None
        args: List[Expr] = []
        block_pass = None
        items = _trees(t.children)
        for i, item in enumerate(items):
            if item.data == "block_pass":
                if i != len(items) - 1:
                    raise ParseFailure("block argument should be the last argument", span_of(item))
                block_pass = self.expr(_trees(item.children)[0])
            else:
                args.append(self.expr(item))
        return args, block_pass

    def _do_block(self, t: Optional[Tree]) -> Optional[DoBlock]:
        if t is None:
            return None
        params_tree = _first_tree(t.children, "block_params")
        params = [str(tok) for tok in params_tree.children
                  if isinstance(tok, Token) and tok.type == "NAME"] if params_tree is not None else []
        return DoBlock(span_of(t), params, self.block(_first_tree(t.children, "body")))

    def _with_block(self, call: Call, block: Optional[DoBlock]) -> Call:
        if block is not None and call.block_pass is not None:
            raise ParseFailure("both block argument and literal block are passed", call.loc)
        call.block = block
        return call

    # --- calls ---

    def _x_fcall(self, t: Tree) -> Call:
        name = _token(t.children, "NAME")
        args, block_pass = self._call_args(_first_tree(t.children, "call_args"))
        call = Call(span_of(t), None, str(name), args, block_pass=block_pass)
        return self._with_block(call, self._do_block(_first_tree(t.children, "do_block")))

    def _x_command_call(self, t: Tree) -> Call:
        name = _token(t.children, "NAME")
        args, block_pass = self._call_args(_first_tree(t.children, "args"))
        call = Call(span_of(t), None, str(name), args, block_pass=block_pass)
        return self._with_block(call, self._do_block(_first_tree(t.children, "do_block")))

    def _x_method_call(self, t: Tree) -> Call:
        recv = self.expr(t.children[0])
        name = _first_tree(t.children, "method_name")
        args, block_pass = self._call_args(_first_tree(t.children, "call_args"))
        call = Call(span_of(t), recv, str(name.children[0]), args, block_pass=block_pass)
        return self._with_block(call, self._do_block(_first_tree(t.children, "do_block")))

    def _x_index(self, t: Tree) -> Call:
        recv = self.expr(t.children[0])
        args, _ = self._call_args(_first_tree(t.children[1:], "args"))
        return Call(span_of(t), recv, "[]", args)

    def _x_binop(self, t: Tree) -> Call:
        left, op, right = t.children
        return Call(span_of(t), self.expr(left), str(op), [self.expr(right)])

    def _x_negate(self, t: Tree) -> Expr:
        operand = self.expr(_trees(t.children)[0])
        if isinstance(operand, (IntLit, FloatLit)):
            return type(operand)(span_of(t), -operand.value)
        return Call(span_of(t), operand, "-@", [])

    def _x_uplus(self, t: Tree) -> Expr:
        operand = self.expr(_trees(t.children)[0])
        if isinstance(operand, (IntLit, FloatLit)):
            return operand
        return Call(span_of(t), operand, "+@", [])

    def _x_super_call(self, t: Tree) -> Super:
        call_args = _first_tree(t.children, "call_args")
        if call_args is None:
            return Super(span_of(t), None)
        args, block_pass = self._call_args(call_args)
        return Super(span_of(t), args, block_pass)

    def _x_super_command(self, t: Tree) -> Super:
        args, block_pass = self._call_args(_first_tree(t.children, "args"))
        return Super(span_of(t), args, block_pass)

    def _x_yield_call(self, t: Tree) -> Yield:
        args, block_pass = self._call_args(_first_tree(t.children, "call_args"))
        if block_pass is not None:
            raise ParseFailure("block argument should not be given to yield", span_of(t))
        return Yield(span_of(t), args)

    def _x_yield_command(self, t: Tree) -> Yield:
        args, block_pass = self._call_args(_first_tree(t.children, "args"))
        if block_pass is not None:
            raise ParseFailure("block argument should not be given to yield", span_of(t))
        return Yield(span_of(t), args)

    def _x_splat(self, t: Tree) -> Splat:
        return Splat(span_of(t), self.expr(_trees(t.children)[0]))

    def _x_block_pass(self, t: Tree) -> Expr:
        raise ParseFailure("block argument is only allowed in a call's argument list", span_of(t))

    # --- logic ---

    def _x_not_op(self, t: Tree) -> Not:
        return Not(span_of(t), self.expr(_trees(t.children)[-1]))

    def _x_and_op(self, t: Tree) -> And:
        left, right = _trees(t.children)
        return And(span_of(t), self.expr(left), self.expr(right))

    def _x_or_op(self, t: Tree) -> Or:
        left, right = _trees(t.children)
        return Or(span_of(t), self.expr(left), self.expr(right))

    def _x_range(self, t: Tree) -> RangeLit:
        low, op, high = t.children
        return RangeLit(span_of(t), self.expr(low), self.expr(high), exclusive=op.type == "DOT3")

    def _x_paren(self, t: Tree) -> Expr:
        return self.expr(_trees(t.children)[0])

    # --- assignment ---

    def _x_lasgn(self, t: Tree) -> LocalAssign:
        return LocalAssign(span_of(t), str(t.children[0]), self.expr(t.children[-1]))

    def _x_iasgn(self, t: Tree) -> IvarAssign:
        return IvarAssign(span_of(t), str(t.children[0]), self.expr(t.children[-1]))

    def _x_cdecl(self, t: Tree) -> ConstAssign:
        return ConstAssign(span_of(t), str(t.children[0]), self.expr(t.children[-1]))

    def _x_attrasgn(self, t: Tree) -> AttrAssign:
        recv = self.expr(t.children[0])
        name = _token(t.children[1:], "NAME")
        return AttrAssign(span_of(t), recv, str(name), self.expr(t.children[-1]))

    def _x_index_asgn(self, t: Tree) -> IndexAssign:
        recv = self.expr(t.children[0])
        args, _ = self._call_args(_first_tree(t.children[1:], "args"))
        return IndexAssign(span_of(t), recv, args, self.expr(t.children[-1]))

    def _x_op_lasgn(self, t: Tree) -> OpAssign:
        name, op, value = t.children
        target = Name(span_of(name), str(name))
        return OpAssign(span_of(t), target, str(op)[:-1], self.expr(value))

    def _x_op_iasgn(self, t: Tree) -> OpAssign:
        name, op, value = t.children
        target = IVar(span_of(name), str(name))
        return OpAssign(span_of(t), target, str(op)[:-1], self.expr(value))

    # --- variables and keywords ---

    def _x_ident(self, t: Tree) -> Name:
        return Name(span_of(t), str(t.children[0]))

    def _x_ivar(self, t: Tree) -> IVar:
        return IVar(span_of(t), str(t.children[0]))

    def _x_const(self, t: Tree) -> Const:
        return Const(span_of(t), str(t.children[0]))

    def _x_self(self, t: Tree) -> SelfRef:
        return SelfRef(span_of(t))

    def _x_nil(self, t: Tree) -> NilLit:
        return NilLit(span_of(t))

    def _x_true(self, t: Tree) -> BoolLit:
        return BoolLit(span_of(t), True)

    def _x_false(self, t: Tree) -> BoolLit:
        return BoolLit(span_of(t), False)

    def _x_file(self, t: Tree) -> FileRef:
        return FileRef(span_of(t))

    # --- literals ---

    def _x_int(self, t: Tree) -> IntLit:
        return IntLit(span_of(t), int(str(t.children[0]).replace("_", "")))

    def _x_float(self, t: Tree) -> FloatLit:
        return FloatLit(span_of(t), float(str(t.children[0]).replace("_", "")))

    def _x_symbol(self, t: Tree) -> SymbolLit:
        return SymbolLit(span_of(t), str(t.children[0])[1:])

    def _x_array(self, t: Tree) -> ArrayLiteral:
        elements, _ = self._call_args(_first_tree(t.children, "args"))
        return ArrayLiteral(span_of(t), elements)

    def _x_hash(self, t: Tree) -> HashLiteral:
        pairs = []
        for pair in _trees(t.children):
            key, value = _trees(pair.children)
            pairs.append((self.expr(key), self.expr(value)))
        return HashLiteral(span_of(t), pairs)

    def _x_string(self, t: Tree) -> Expr:
        tok = t.children[0]
        raw = str(tok)[1:-1]
        span = span_of(t)
        if tok.type == "SSTRING":
            return StringLit(span, process_single_quoted(raw))
        parts = self._interpolate(raw, span, lambda s: process_string_escapes(s, span))
        if all(isinstance(p, str) for p in parts):
            return StringLit(span, "".join(parts))
        return InterpolatedString(span, parts)

    def _x_xstring(self, t: Tree) -> XString:
        raw = str(t.children[0])[1:-1]
        return XString(span_of(t), self._interpolate(raw, span_of(t), lambda s: s.replace("\\`", "`")))

    def _interpolate(self, raw: str, span, process) -> list:
        from garnet_lang.internals.parser import parse_expression

        parts = []
        for chunk in split_interpolations(raw, span):
            if isinstance(chunk, str):
                parts.append(process(chunk))
                continue
            code, line_offset = chunk
            try:
                parts.append(parse_expression(code))
            except ParseFailure as e:
                base = span.line - 1 + line_offset if span is not None else line_offset
                raise type(e)(e.message, shift_span(e.span, base)) from e
        return parts
