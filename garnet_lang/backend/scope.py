"""
Lexical scope tracking for JavaScript generation.

Each generated JavaScript function (the unit top level, a class body, a
method, a block) gets one ``Scope``. A scope collects:

- local variables, hoisted into one ``var`` line initialised to nil
- temporaries handed out from the unit's unique counter
- flags the function header depends on (block usage, bare ``super``)

Blocks see the locals of the scopes around them; methods and class bodies
do not.
"""
from __future__ import annotations
from typing import List, Literal, Optional, Set

from garnet_lang.backend.interning import JS_RESERVED

ScopeKind = Literal["top", "class", "def", "iter"]

# Names the generated code itself binds in every function
_BOUND_NAMES = frozenset({"self", "FILE", "VM", "top", "code"})


def js_local(name: str) -> str:
    """JavaScript name for a source-level local variable."""
    if name in JS_RESERVED or name in _BOUND_NAMES:
        return f"{name}$"
    return name


class Scope:
    def __init__(self, kind: ScopeKind, parent: Optional["Scope"] = None, method_id: Optional[str] = None) -> None:
        self.kind = kind
        self.parent = parent
        self.method_id = method_id       # Interned id of the method being defined
        self.locals: List[str] = []      # Source names, in declaration order
        self.params: Set[str] = set()
        self.temps: List[str] = []
        self.loop_depth = 0
        self.uses_block = False          # $yield / block_given? / &blk
        self.uses_zsuper = False
        self.has_break = False           # break inside an iter scope

    def is_declared_here(self, name: str) -> bool:
        return name in self.params or name in self.locals

    def find_local(self, name: str) -> bool:
        scope: Optional[Scope] = self
        while scope is not None:
            if scope.is_declared_here(name):
                return True
            if scope.kind != "iter":
                return False
            scope = scope.parent
        return False

    def declare(self, name: str) -> None:
        if not self.find_local(name):
            self.locals.append(name)

    def add_param(self, name: str) -> None:
        self.params.add(name)

    def enclosing_def(self) -> Optional["Scope"]:
        """Method scope reachable through blocks only, or None."""
        scope: Optional[Scope] = self
        while scope is not None:
            if scope.kind == "def":
                return scope
            if scope.kind != "iter":
                return None
            scope = scope.parent
        return None

    def __repr__(self) -> str:
        return f"Scope({self.kind}, locals={self.locals}, temps={len(self.temps)})"


class ScopeManager:
    """Stack of scopes for the function currently being generated."""

    def __init__(self) -> None:
        self._stack: List[Scope] = []

    @property
    def current(self) -> Scope:
        if not self._stack:
            raise IndexError("No active scope")
        return self._stack[-1]

    def push(self, kind: ScopeKind, method_id: Optional[str] = None) -> Scope:
        parent = self._stack[-1] if self._stack else None
        scope = Scope(kind, parent, method_id)
        self._stack.append(scope)
        return scope

    def pop(self) -> Scope:
        if not self._stack:
            raise IndexError("No scopes to pop")
        return self._stack.pop()

    def __len__(self) -> int:
        return len(self._stack)
