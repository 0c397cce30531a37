"""
JavaScript backend for the Garnet compiler.

Walks a Program AST and emits the raw code of one unit. Everything the
output refers to across units goes through the unit's interning handle:

    foo.bar(1)      →  foo.$a(1)         ("bar" interned as "a")
    @name = x       →  self.$b = x       ("@name" interned as "b")
    def size; end   →  $defn(self, "$c", function $m_c() {...})

Runtime entry points are only reached through the helper aliases of
``garnet_lang.runtime.helpers``; the driver wraps the result so those
aliases are bound.

API:
    from garnet_lang.backend.codegen_js import generate_unit
    raw = generate_unit(program_ast, unit_state)
"""
from __future__ import annotations
from contextlib import contextmanager
from typing import List, Tuple, TYPE_CHECKING

from garnet_lang.backend.scope import Scope, ScopeManager, js_local
from garnet_lang.internals.errors import CodegenError
from garnet_lang.runtime.helpers import RuntimeHelper, RUNTIME_PARAM
from garnet_lang.runtime.js import js_number, js_string
from garnet_lang.semantics.ast import (
    Program, Param, ClassDef, MethodDef, ExprStmt, If, While, Return, Break,
    Name, IVar, Const, SelfRef, NilLit, BoolLit, FileRef, IntLit, FloatLit,
    StringLit, InterpolatedString, SymbolLit, XString, ArrayLiteral, HashLiteral,
    RangeLit, Splat, DoBlock, Call, Super, Yield, Not, And, Or,
    LocalAssign, IvarAssign, ConstAssign, AttrAssign, IndexAssign, OpAssign,
)

if TYPE_CHECKING:
    from garnet_lang.compiler.driver import UnitState


INDENT = "  "

NIL = RuntimeHelper.NIL_CLASS.alias
SUPER = RuntimeHelper.SUPER.alias
BJUMP = RuntimeHelper.BREAK_JUMP.alias
NOPROC = RuntimeHelper.NO_PROC.alias
CLASS = RuntimeHelper.CLASS.alias
DEFN = RuntimeHelper.DEFN.alias
DEFS = RuntimeHelper.DEFS.alias
CONST = RuntimeHelper.CONST.alias
RANGE = RuntimeHelper.RANGE.alias
HASH = RuntimeHelper.HASH.alias
SLICE = RuntimeHelper.SLICE.alias

# Method-local names bound in generated function headers
YIELD_VAR = "$yield"
ZSUPER_VAR = "$zargs"


def generate_unit(program: Program, unit: "UnitState") -> str:
    """Generate the raw (unwrapped) code of one unit."""
    return JSGenerator(unit).generate(program)


class JSGenerator:
    """Emits JavaScript for one unit. Create one per unit."""

    def __init__(self, unit: "UnitState") -> None:
        self.unit = unit
        self.scopes = ScopeManager()

    # ------------------------
    # Unit entry points
    # ------------------------

    def generate(self, program: Program) -> str:
        if self.unit.core:
            return self._core_unit(program)
        scope = self.scopes.push("top")
        body = self.statements(program.body.statements)
        self.scopes.pop()
        decls = [f"self = {RUNTIME_PARAM}.top", f"FILE = {js_string(self.unit.file_id)}"]
        decls += self._symbol_decls() + self._scope_decls(scope)
        header = f"var {', '.join(decls)};"
        return f"{header}\n{body}" if body else header

    def _core_unit(self, program: Program) -> str:
        """The core unit is a function the bootstrap calls with (top, FILE)."""
        scope = self.scopes.push("top")
        with self.indented():
            body = self.statements(program.body.statements)
            lines = self._var_line(self._symbol_decls() + self._scope_decls(scope))
        self.scopes.pop()
        if body:
            lines.append(body)
        return "function(self, FILE) {\n" + "\n".join(lines) + "\n}"

    # ------------------------
    # Unit state helpers
    # ------------------------

    @contextmanager
    def indented(self):
        saved = self.unit.indent
        self.unit.indent = saved + INDENT
        try:
            yield
        finally:
            self.unit.indent = saved

    def mid(self, name: str) -> str:
        """Property name of an interned method or ivar: ``$<id>``."""
        return f"${self.unit.intern(name)}"

    def temp(self) -> str:
        self.unit.unique += 1
        name = f"$t{self.unit.unique}"
        self.scopes.current.temps.append(name)
        return name

    def symbol(self, name: str) -> str:
        var = self.unit.symbols.get(name)
        if var is None:
            self.unit.sym_id += 1
            var = f"$sym{self.unit.sym_id}"
            self.unit.symbols[name] = var
        return var

    def _symbol_decls(self) -> List[str]:
        return [f"{var} = {js_string(name)}" for name, var in self.unit.symbols.items()]

    def _scope_decls(self, scope: Scope) -> List[str]:
        return [f"{js_local(name)} = {NIL}" for name in scope.locals] + scope.temps

    def _var_line(self, decls: List[str]) -> List[str]:
        return [f"{self.unit.indent}var {', '.join(decls)};"] if decls else []

    def _function(self, head: str, lines: List[str]) -> str:
        return f"{head} {{\n" + "\n".join(line for line in lines if line) + f"\n{self.unit.indent}}}"

    # ------------------------
    # Statements
    # ------------------------

    def statements(self, stmts: List, returns: bool = False) -> str:
        """Emit a statement list; with *returns* the last value is returned."""
        out = []
        for i, st in enumerate(stmts):
            out.append(self.stmt(st, returns and i == len(stmts) - 1))
        if returns and not stmts:
            out.append(f"{self.unit.indent}return {NIL};")
        return "\n".join(s for s in out if s)

    def stmt(self, node, returns: bool = False) -> str:
        ind = self.unit.indent
        if isinstance(node, ExprStmt):
            return self._expr_stmt(node.expr, returns)
        if isinstance(node, If):
            return self._if(node, returns)
        if isinstance(node, While):
            code = self._while(node)
            return f"{code}\n{ind}return {NIL};" if returns else code
        if isinstance(node, Return):
            return self._return(node)
        if isinstance(node, Break):
            return self._break(node)
        if isinstance(node, (ClassDef, MethodDef)):
            return self._expr_stmt(node, returns)
        raise CodegenError("CE2002", node.loc, construct=type(node).__name__)

    def _expr_stmt(self, expr, returns: bool) -> str:
        ind = self.unit.indent
        code = self.expr(expr)
        if isinstance(expr, XString):
            code = code.rstrip().rstrip(";")
            if code.lstrip().startswith("return") or not returns:
                return f"{ind}{code};"
        return f"{ind}return {code};" if returns else f"{ind}{code};"

    def _if(self, node: If, returns: bool) -> str:
        ind = self.unit.indent
        lines = []
        for i, (cond, block) in enumerate(node.arms):
            test = self.truthy(cond)
            lines.append(f"{ind}if ({test}) {{" if i == 0 else f"{ind}}} else if ({test}) {{")
            with self.indented():
                lines.append(self.statements(block.statements, returns))
        if node.else_block is not None:
            lines.append(f"{ind}}} else {{")
            with self.indented():
                lines.append(self.statements(node.else_block.statements, returns))
        elif returns:
            lines.append(f"{ind}}} else {{")
            lines.append(f"{ind}{INDENT}return {NIL};")
        lines.append(f"{ind}}}")
        return "\n".join(line for line in lines if line)

    def _while(self, node: While) -> str:
        ind = self.unit.indent
        scope = self.scopes.current
        test = self.truthy(node.cond)
        scope.loop_depth += 1
        with self.indented():
            body = self.statements(node.body.statements)
        scope.loop_depth -= 1
        if not body:
            return f"{ind}while ({test}) {{}}"
        return f"{ind}while ({test}) {{\n{body}\n{ind}}}"

    def _return(self, node: Return) -> str:
        if self.scopes.current.kind not in ("def", "iter"):
            raise CodegenError("CE2001", node.loc, construct="return",
                               context="outside of a method or block")
        value = self.expr(node.value) if node.value is not None else NIL
        return f"{self.unit.indent}return {value};"

    def _break(self, node: Break) -> str:
        ind = self.unit.indent
        scope = self.scopes.current
        if scope.loop_depth > 0:
            return f"{ind}break;"
        if scope.kind == "iter":
            scope.has_break = True
            value = self.expr(node.value) if node.value is not None else NIL
            return f"{ind}throw ({BJUMP}.$value = {value}, {BJUMP});"
        raise CodegenError("CE2001", node.loc, construct="break",
                           context="outside of a loop or block")

    # ------------------------
    # Expressions
    # ------------------------

    def expr(self, node) -> str:
        handler = getattr(self, f"_x_{type(node).__name__}", None)
        if handler is None:
            raise CodegenError("CE2002", getattr(node, "loc", None), construct=type(node).__name__)
        return handler(node)

    def truthy(self, node) -> str:
        """JS boolean test: only nil and false are falsy."""
        if isinstance(node, Not):
            return self.expr(node)
        if isinstance(node, BoolLit):
            return "true" if node.value else "false"
        code = self.expr(node)
        t = self.temp()
        return f"({t} = {code}) !== {NIL} && {t} !== false"

    def receiver(self, node) -> str:
        code = self.expr(node)
        if isinstance(node, (IntLit, FloatLit, XString)):
            return f"({code})"
        return code

    def arglist(self, args: List) -> Tuple[str, bool]:
        """Comma-separated arguments, or one array expression when splats are present."""
        if any(isinstance(a, Splat) for a in args):
            return self._splat_array(args), True
        return ", ".join(self.expr(a) for a in args), False

    def _splat_array(self, elements: List) -> str:
        parts = []
        pending: List[str] = []
        for el in elements:
            if isinstance(el, Splat):
                if pending:
                    parts.append(f"[{', '.join(pending)}]")
                    pending = []
                parts.append(self.expr(el.expr))
            else:
                pending.append(self.expr(el))
        if pending:
            parts.append(f"[{', '.join(pending)}]")
        return f"[].concat({', '.join(parts)})"

    # --- literals ---

    def _x_NilLit(self, node: NilLit) -> str:
        return NIL

    def _x_BoolLit(self, node: BoolLit) -> str:
        return "true" if node.value else "false"

    def _x_SelfRef(self, node: SelfRef) -> str:
        return "self"

    def _x_FileRef(self, node: FileRef) -> str:
        return "FILE"

    def _x_IntLit(self, node: IntLit) -> str:
        return js_number(node.value)

    def _x_FloatLit(self, node: FloatLit) -> str:
        return js_number(node.value)

    def _x_StringLit(self, node: StringLit) -> str:
        return js_string(node.value)

    def _x_InterpolatedString(self, node: InterpolatedString) -> str:
        pieces = []
        if not isinstance(node.parts[0], str):
            pieces.append('""')
        for part in node.parts:
            if isinstance(part, str):
                if part:
                    pieces.append(js_string(part))
            else:
                pieces.append(f"({self.expr(part)}).{self.mid('to_s')}()")
        return f"({' + '.join(pieces)})"

    def _x_SymbolLit(self, node: SymbolLit) -> str:
        return self.symbol(node.name)

    def _x_XString(self, node: XString) -> str:
        return "".join(p if isinstance(p, str) else f"({self.expr(p)})" for p in node.parts)

    def _x_ArrayLiteral(self, node: ArrayLiteral) -> str:
        code, splat = self.arglist(node.elements)
        return code if splat else f"[{code}]"

    def _x_HashLiteral(self, node: HashLiteral) -> str:
        items = []
        for key, value in node.pairs:
            items.append(self.expr(key))
            items.append(self.expr(value))
        return f"{HASH}({', '.join(items)})"

    def _x_RangeLit(self, node: RangeLit) -> str:
        low = self.expr(node.low)
        high = self.expr(node.high)
        return f"{RANGE}({low}, {high}, {'true' if node.exclusive else 'false'})"

    def _x_Splat(self, node: Splat) -> str:
        raise CodegenError("CE2002", node.loc, construct="splat outside an argument list")

    # --- variables ---

    def _x_Name(self, node: Name) -> str:
        if self.scopes.current.find_local(node.id):
            return js_local(node.id)
        if node.id == "block_given?":
            return self._block_given()
        return f"self.{self.mid(node.id)}()"

    def _x_IVar(self, node: IVar) -> str:
        return f"self.{self.mid(node.name)}"

    def _x_Const(self, node: Const) -> str:
        return f"{CONST}(self, {js_string(node.name)})"

    def _x_LocalAssign(self, node: LocalAssign) -> str:
        self.scopes.current.declare(node.name)
        return f"{js_local(node.name)} = {self.expr(node.value)}"

    def _x_IvarAssign(self, node: IvarAssign) -> str:
        ref = f"self.{self.mid(node.name)}"
        return f"{ref} = {self.expr(node.value)}"

    def _x_ConstAssign(self, node: ConstAssign) -> str:
        return f"{CONST}(self, {js_string(node.name)}, {self.expr(node.value)})"

    def _x_AttrAssign(self, node: AttrAssign) -> str:
        recv = self.receiver(node.receiver)
        return f"{recv}.{self.mid(node.name + '=')}({self.expr(node.value)})"

    def _x_IndexAssign(self, node: IndexAssign) -> str:
        recv = self.receiver(node.receiver)
        mid = self.mid("[]=")
        args, splat = self.arglist(node.args + [node.value])
        if splat:
            t = self.temp()
            return f"({t} = {recv}).{mid}.apply({t}, {args})"
        return f"{recv}.{mid}({args})"

    def _x_OpAssign(self, node: OpAssign) -> str:
        target = node.target
        if isinstance(target, Name):
            self.scopes.current.declare(target.id)
            ref = js_local(target.id)
        else:
            ref = f"self.{self.mid(target.name)}"
        if node.op in ("||", "&&"):
            t = self.temp()
            value = self.expr(node.value)
            pick = f"{t} : {value}" if node.op == "||" else f"{value} : {t}"
            return f"{ref} = (({t} = {ref}) !== {NIL} && {t} !== false ? {pick})"
        value = self.expr(node.value)
        return f"{ref} = {ref}.{self.mid(node.op)}({value})"

    # --- logic ---

    def _x_Not(self, node: Not) -> str:
        return f"!({self.truthy(node.expr)})"

    def _x_And(self, node: And) -> str:
        left = self.expr(node.left)
        t = self.temp()
        right = self.expr(node.right)
        return f"(({t} = {left}) !== {NIL} && {t} !== false ? {right} : {t})"

    def _x_Or(self, node: Or) -> str:
        left = self.expr(node.left)
        t = self.temp()
        right = self.expr(node.right)
        return f"(({t} = {left}) !== {NIL} && {t} !== false ? {t} : {right})"

    # --- calls ---

    def _x_Call(self, node: Call) -> str:
        if (node.receiver is None and node.name == "block_given?" and not node.args
                and node.block is None and node.block_pass is None):
            return self._block_given()
        recv = self.receiver(node.receiver) if node.receiver is not None else "self"
        mid = self.mid(node.name)
        args, splat = self.arglist(node.args)

        if node.block is None and node.block_pass is None:
            if not splat:
                return f"{recv}.{mid}({args})"
            if node.receiver is None:
                return f"self.{mid}.apply(self, {args})"
            t = self.temp()
            return f"({t} = {recv}).{mid}.apply({t}, {args})"

        if node.receiver is None:
            this, prefix = "self", ""
        else:
            this = self.temp()
            prefix = f"{this} = {recv}, "
        fn = self.temp()
        broke = False
        if node.block is not None:
            block, broke = self._block_function(node.block)
        else:
            block = self.expr(node.block_pass)
        invoke = f"apply({this}, {args})" if splat else f"call({this}{', ' + args if args else ''})"
        call = f"({prefix}({fn} = {this}.{mid}).$P = {block}, {fn}).{invoke}"
        if broke:
            return (f"(function() {{ try {{ return {call}; }} catch ($e) "
                    f"{{ if ($e === {BJUMP}) {{ return $e.$value; }} throw $e; }} }})()")
        return call

    def _block_given(self) -> str:
        method = self.scopes.current.enclosing_def()
        if method is None:
            return "false"
        method.uses_block = True
        return f"({YIELD_VAR} !== {NOPROC})"

    def _block_function(self, block: DoBlock) -> Tuple[str, bool]:
        scope = self.scopes.push("iter")
        for name in block.params:
            scope.add_param(name)
        params = ", ".join(js_local(name) for name in block.params)
        with self.indented():
            ind = self.unit.indent
            defaults = [f"{ind}if ({js_local(n)} === undefined) {{ {js_local(n)} = {NIL}; }}"
                        for n in block.params]
            body = self.statements(block.body.statements, returns=True)
            lines = self._var_line(self._scope_decls(scope)) + defaults + [body]
        self.scopes.pop()
        return self._function(f"function({params})", lines), scope.has_break

    def _x_Yield(self, node: Yield) -> str:
        method = self.scopes.current.enclosing_def()
        if method is None:
            raise CodegenError("CE2001", node.loc, construct="yield", context="outside of a method")
        method.uses_block = True
        args, splat = self.arglist(node.args)
        if splat:
            return f"{YIELD_VAR}.apply(null, {args})"
        return f"{YIELD_VAR}.call(null{', ' + args if args else ''})"

    def _x_Super(self, node: Super) -> str:
        method = self.scopes.current.enclosing_def()
        if method is None:
            raise CodegenError("CE2001", node.loc, construct="super", context="outside of a method")
        if node.args is None:
            method.uses_zsuper = True
            args = ZSUPER_VAR
        else:
            code, splat = self.arglist(node.args)
            args = code if splat else f"[{code}]"
        extra = f", {self.expr(node.block_pass)}" if node.block_pass is not None else ""
        return f"{SUPER}($m_{method.method_id}, self, {args}{extra})"

    # --- definitions ---

    def _x_ClassDef(self, node: ClassDef) -> str:
        superclass = self.expr(node.superclass) if node.superclass is not None else "null"
        scope = self.scopes.push("class")
        with self.indented():
            body = self.statements(node.body.statements, returns=True)
            lines = self._var_line(self._scope_decls(scope)) + [body]
        self.scopes.pop()
        fn = self._function("function(self)", lines)
        return f"{CLASS}(self, {superclass}, {js_string(node.name)}, {fn}, {1 if node.is_module else 0})"

    def _x_MethodDef(self, node: MethodDef) -> str:
        ident = self.unit.intern(node.name)
        fn_name = f"$m_{ident}"
        scope = self.scopes.push("def", method_id=ident)
        block_param = next((p for p in node.params if p.kind == "block"), None)
        if block_param is not None:
            scope.uses_block = True
        with self.indented():
            names, extra_decls, prologue = self._params(node.params, scope)
            body = self.statements(node.body.statements, returns=True)
            decls = ["self = this"]
            if scope.uses_block:
                decls.append(f"{YIELD_VAR} = {fn_name}.$P || {NOPROC}")
            if block_param is not None:
                decls.append(f"{js_local(block_param.name)} = {fn_name}.$P || {NIL}")
            if scope.uses_zsuper:
                decls.append(f"{ZSUPER_VAR} = {SLICE}.call(arguments)")
            decls += extra_decls + self._scope_decls(scope)
            lines = self._var_line(decls)
            if scope.uses_block:
                lines.append(f"{self.unit.indent}{fn_name}.$P = null;")
            lines += prologue + [body]
        self.scopes.pop()
        definer = DEFS if node.singleton else DEFN
        fn = self._function(f"function {fn_name}({', '.join(names)})", lines)
        return f"{definer}(self, {js_string('$' + ident)}, {fn})"

    def _params(self, params: List[Param], scope: Scope) -> Tuple[List[str], List[str], List[str]]:
        """JS parameter names, extra ``var`` declarations and prologue lines."""
        ind = self.unit.indent
        names: List[str] = []
        extra: List[str] = []
        prologue: List[str] = []
        seen_rest = False
        for p in params:
            js = js_local(p.name)
            scope.add_param(p.name)
            if p.kind in ("req", "opt"):
                if seen_rest:
                    raise CodegenError("CE2002", p.loc, construct="parameter after a splat parameter")
                names.append(js)
                if p.kind == "opt":
                    default = self.expr(p.default)
                    prologue.append(f"{ind}if ({js} === undefined) {{ {js} = {default}; }}")
            elif p.kind == "rest":
                seen_rest = True
                extra.append(f"{js} = {SLICE}.call(arguments, {len(names)})")
        return names, extra, prologue
