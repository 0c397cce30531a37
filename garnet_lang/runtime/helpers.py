"""Runtime helper registry.

Generated code never names runtime entry points directly. Each unit declares
short local aliases bound to members of the runtime context object, and the
code inside the unit only uses the aliases. The registry below is the single
source of truth for those aliases; wrapping (see ``wrapper.py``) renders it
in declaration order.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


# Name of the runtime context parameter every wrapped unit receives
RUNTIME_PARAM = "VM"

# Global namespace object exposed by the JavaScript runtime
RUNTIME_NAMESPACE = "garnet"

# Expression a bundle passes as the runtime context of ordinary units
RUNTIME_CONTEXT_EXPR = f"{RUNTIME_NAMESPACE}.runtime"

# Registration call that installs a cached id table into the runtime
REGISTER_FUNCTION = f"{RUNTIME_NAMESPACE}.parse_data"

# Loader the bundle hands the wrapped core unit to
CORE_LOADER = f"{RUNTIME_NAMESPACE}.core"


@dataclass(frozen=True)
class HelperEntry:
    """One alias declaration: ``var <alias> = VM.<member>``."""
    alias: str
    member: str


class RuntimeHelper(Enum):
    """Known runtime helpers, in prologue order."""
    NIL_CLASS   = HelperEntry("$nilcls", "NC")   # nil literal
    SUPER       = HelperEntry("$super", "S")     # super dispatch
    BREAK_JUMP  = HelperEntry("$bjump", "B")     # break value literal
    NO_PROC     = HelperEntry("$noproc", "P")    # block used when none is given
    CLASS       = HelperEntry("$class", "k")     # define classes and modules
    DEFN        = HelperEntry("$defn", "m")      # define instance method
    DEFS        = HelperEntry("$defs", "M")      # define singleton method
    CONST       = HelperEntry("$const", "cg")    # const_get
    RANGE       = HelperEntry("$range", "G")     # new range instance
    HASH        = HelperEntry("$hash", "H")      # new hash instance
    SLICE       = HelperEntry("$slice", "as")    # Array.prototype.slice (splats)

    @property
    def alias(self) -> str:
        return self.value.alias

    @property
    def member(self) -> str:
        return self.value.member


RUNTIME_HELPERS: tuple[HelperEntry, ...] = tuple(h.value for h in RuntimeHelper)


def registry_signature(helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS) -> str:
    """Stable text form of a registry, used to invalidate caches when it changes."""
    return ",".join(f"{h.alias}={h.member}" for h in helpers)
