"""Wrap raw generated code with the runtime helper prologue.

Two shapes exist. Ordinary units become a function literal taking the
runtime context::

    (function(VM) { var $nilcls = VM.NC, $super = VM.S, ...;
    <raw code>;
    })

The core unit bootstraps the definitions every other unit relies on, so its
raw code is itself a ``function(self, FILE)`` expression that the wrapper
calls with the root namespace and file id it is handed::

    function(VM, top, FILE) { var $nilcls = VM.NC, ...;
    var code = <raw code>;
    return code(top, FILE);}
"""
from __future__ import annotations

from garnet_lang.runtime.helpers import RUNTIME_HELPERS, RUNTIME_PARAM, HelperEntry


def helper_prologue(helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS) -> str:
    """Render the alias declarations, e.g. ``var $x = VM.y, $z = VM.w;``.

    Returns an empty string for an empty registry.
    """
    if not helpers:
        return ""
    decls = ", ".join(f"{h.alias} = {RUNTIME_PARAM}.{h.member}" for h in helpers)
    return f"var {decls};"


def _statement(js: str) -> str:
    return js.rstrip().rstrip(";").rstrip()


def _head(params: str, helpers: tuple[HelperEntry, ...]) -> str:
    prologue = helper_prologue(helpers)
    head = f"function({params}) {{"
    return f"{head} {prologue}" if prologue else head


def wrap_unit(js: str, helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS) -> str:
    """Wrap an ordinary unit's statements in a runtime-context function literal."""
    return f"({_head(RUNTIME_PARAM, helpers)}\n{_statement(js)};\n}})"


def wrap_core(js: str, helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS) -> str:
    """Wrap the core unit's function expression for the bootstrap loader."""
    head = _head(f"{RUNTIME_PARAM}, top, FILE", helpers)
    return f"{head}\nvar code = {_statement(js)};\nreturn code(top, FILE);}}"
