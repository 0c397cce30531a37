"""Persistent method/identifier interning.

Every method name and instance-variable name a unit mentions is replaced in
the output by a short id (``a``, ``b``, ..., ``z``, ``aa``, ...). The ids must
stay stable across units compiled at different times and across builds, so
the mapping lives in a persistent table that outlives any single unit:

- each unit interns into a private ``ScratchTable``;
- ids are always allocated from the persistent table's cursor, under its
  lock, so two units can never be handed the same id;
- on success the driver merges the scratch table into the persistent table;
  on failure the scratch table is dropped and the persistent mapping is
  untouched.

The persistent table can be exported to a ``CachePayload`` and seeded from
one, which is what keeps incremental builds diff-stable.
"""
from __future__ import annotations

import re
import threading
from typing import Dict, Iterator, Optional, Set, Tuple, TYPE_CHECKING

from garnet_lang.internals.errors import CachePayloadError, InternConsistencyError

if TYPE_CHECKING:
    from garnet_lang.compiler.payload import CachePayload


FIRST_ID = "a"

# Ids are emitted as bare identifiers, so none of these may ever be handed out
JS_RESERVED = frozenset({
    "arguments", "await", "break", "case", "catch", "class", "const",
    "continue", "debugger", "default", "delete", "do", "else", "enum",
    "eval", "export", "extends", "false", "finally", "for", "function",
    "if", "implements", "import", "in", "instanceof", "interface", "let",
    "new", "null", "package", "private", "protected", "public", "return",
    "static", "super", "switch", "this", "throw", "true", "try", "typeof",
    "undefined", "var", "void", "while", "with", "yield",
})

_ID_RE = re.compile(r"[a-z]+")


def successor(ident: str) -> str:
    """Next string in base-26 order: ``a`` -> ``b``, ``z`` -> ``aa``, ``az`` -> ``ba``."""
    chars = list(ident)
    i = len(chars) - 1
    while i >= 0:
        if chars[i] != "z":
            chars[i] = chr(ord(chars[i]) + 1)
            return "".join(chars)
        chars[i] = "a"
        i -= 1
    return "a" + "".join(chars)


def id_order(ident: str) -> Tuple[int, str]:
    """Sort key matching allocation order."""
    return (len(ident), ident)


def is_valid_id(ident: object) -> bool:
    return isinstance(ident, str) and _ID_RE.fullmatch(ident) is not None and ident not in JS_RESERVED


class IdCursor:
    """Produces ids in allocation order, skipping reserved words."""

    def __init__(self, start: str = FIRST_ID) -> None:
        if not is_valid_id(start):
            raise CachePayloadError("CE3001", reason=f"invalid next id {start!r}")
        self._value = start

    @property
    def value(self) -> str:
        return self._value

    def take(self) -> str:
        current = self._value
        nxt = successor(current)
        while nxt in JS_RESERVED:
            nxt = successor(nxt)
        self._value = nxt
        return current

    def __repr__(self) -> str:
        return f"IdCursor({self._value!r})"


class IdentifierTable:
    """Ordered, injective name -> id mapping."""

    def __init__(self, entries: Optional[Dict[str, str]] = None) -> None:
        self._ids: Dict[str, str] = {}
        self._names: Dict[str, str] = {}
        for name, ident in (entries or {}).items():
            self.add(name, ident)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def get(self, name: str) -> Optional[str]:
        return self._ids.get(name)

    def name_for(self, ident: str) -> Optional[str]:
        return self._names.get(ident)

    def items(self):
        return self._ids.items()

    def add(self, name: str, ident: str) -> None:
        """Record ``name -> ident``. Re-adding the same pair is a no-op."""
        existing = self._ids.get(name)
        if existing is not None and existing != ident:
            raise InternConsistencyError("CE0001", name=name, existing=existing,
                                         incoming=ident, unit="(table)")
        owner = self._names.get(ident)
        if owner is not None and owner != name:
            raise InternConsistencyError("CE0002", ident=ident, existing=owner, incoming=name)
        self._ids[name] = ident
        self._names[ident] = name

    def clear(self) -> None:
        self._ids.clear()
        self._names.clear()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._ids)


class ScratchTable(IdentifierTable):
    """Names interned by one unit, waiting to be merged."""

    def __init__(self, persistent: "PersistentTable", unit: str = "(unit)") -> None:
        super().__init__()
        self.persistent = persistent
        self.unit = unit
        # names whose pending reservation this unit holds
        self.held: Set[str] = set()

    def intern(self, name: str) -> str:
        return self.persistent.allocate(self, name)


class PersistentTable:
    """Process-wide interning state shared by every unit of a build.

    Pass one instance to every driver taking part in the build. All mutation
    goes through ``allocate``, ``merge_unit`` and ``load_snapshot``, which
    hold the table lock.

    A name allocated but not yet merged is *reserved*: other units interning
    it get the same id. Each unit holding the reservation counts; the last
    one to merge or be released drops it.
    """

    def __init__(self, payload: Optional["CachePayload"] = None) -> None:
        self._lock = threading.Lock()
        self.ids = IdentifierTable()
        self.cursor = IdCursor()
        # name -> id handed to a unit that has not merged yet
        self._reserved: Dict[str, str] = {}
        self._holders: Dict[str, int] = {}
        if payload is not None:
            self.load_snapshot(payload)

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, name: object) -> bool:
        return name in self.ids

    def lookup(self, name: str) -> Optional[str]:
        return self.ids.get(name)

    @property
    def pending(self) -> Dict[str, str]:
        """Reserved names not merged by any unit yet."""
        with self._lock:
            return dict(self._reserved)

    def new_scratch(self, unit: str = "(unit)") -> ScratchTable:
        return ScratchTable(self, unit)

    def allocate(self, scratch: ScratchTable, name: str) -> str:
        """Return the id for *name*, allocating it on first sight."""
        hit = scratch.get(name)
        if hit is not None:
            return hit
        with self._lock:
            ident = self.ids.get(name)
            if ident is None:
                ident = self._reserved.get(name)
                if ident is None:
                    ident = self.cursor.take()
                    self._reserved[name] = ident
                self._holders[name] = self._holders.get(name, 0) + 1
                scratch.held.add(name)
        scratch.add(name, ident)
        return ident

    def merge_unit(self, scratch: ScratchTable) -> None:
        """Copy a finished unit's entries in. All-or-nothing."""
        with self._lock:
            for name, ident in scratch.items():
                existing = self.ids.get(name)
                if existing is not None and existing != ident:
                    raise InternConsistencyError("CE0001", name=name, existing=existing,
                                                 incoming=ident, unit=scratch.unit)
                owner = self.ids.name_for(ident)
                if owner is not None and owner != name:
                    raise InternConsistencyError("CE0002", ident=ident, existing=owner, incoming=name)
            for name, ident in scratch.items():
                self.ids.add(name, ident)
            self._drop_holds(scratch)
        scratch.clear()

    def release(self, scratch: ScratchTable) -> None:
        """Abandon a unit without merging. Its reservations are dropped; ids stay burned."""
        with self._lock:
            self._drop_holds(scratch)
        scratch.clear()

    def _drop_holds(self, scratch: ScratchTable) -> None:
        for name in scratch.held:
            left = self._holders.get(name, 0) - 1
            if left > 0:
                self._holders[name] = left
            else:
                self._holders.pop(name, None)
                self._reserved.pop(name, None)
        scratch.held.clear()

    def export_snapshot(self) -> "CachePayload":
        from garnet_lang.compiler.payload import CachePayload

        with self._lock:
            return CachePayload(methods=self.ids.as_dict(), next_id=self.cursor.value)

    def load_snapshot(self, payload: "CachePayload") -> None:
        """Replace the table contents with a previously exported payload."""
        payload.validate()
        with self._lock:
            self.ids = IdentifierTable(payload.methods)
            self.cursor = IdCursor(payload.next_id)
            self._reserved.clear()
            self._holders.clear()
