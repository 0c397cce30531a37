"""Readable dump of a Program tree for ``--dump-ast``."""
from __future__ import annotations
from dataclasses import is_dataclass, fields
from typing import Any

from garnet_lang.semantics.ast import Name, IVar, Const, IntLit, FloatLit, StringLit, SymbolLit


def _leaf(node: Any) -> str | None:
    """One-line form for nodes that carry a single value."""
    if isinstance(node, Name):
        return f"Name {node.id}"
    if isinstance(node, IVar):
        return f"IVar {node.name}"
    if isinstance(node, Const):
        return f"Const {node.name}"
    if isinstance(node, (IntLit, FloatLit)):
        return f"{node.__class__.__name__} {node.value}"
    if isinstance(node, StringLit):
        return f"StringLit {node.value!r}"
    if isinstance(node, SymbolLit):
        return f"SymbolLit :{node.name}"
    return None


def _pp(node: Any, indent: int) -> str:
    ind = "  " * indent
    if isinstance(node, (list, tuple)):
        if not node:
            return ind + "[]"
        return "\n".join(_pp(n, indent) for n in node)
    if not is_dataclass(node):
        return ind + repr(node)
    leaf = _leaf(node)
    if leaf is not None:
        return ind + leaf
    lines = [f"{ind}{node.__class__.__name__}"]
    for f in fields(node):
        if f.name == "loc" or f.name.endswith("_span"):
            continue
        val = getattr(node, f.name)
        if val is None:
            continue
        if is_dataclass(val) or isinstance(val, (list, tuple)):
            lines.append(f"{ind}  {f.name}:")
            lines.append(_pp(val, indent + 2))
        else:
            lines.append(f"{ind}  {f.name}: {val!r}")
    return "\n".join(lines)


def dump_ast(node: Any) -> str:
    return _pp(node, 0)
