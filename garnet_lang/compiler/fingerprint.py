"""Per-unit fingerprint computation for incremental compilation.

A fingerprint captures everything that affects a unit's wrapped output
other than the identifier table:
- Source text
- File id (it is embedded in the output as FILE)
- Whether the unit is the core unit (different wrapper shape)
- The runtime helper registry (it is embedded in the prologue)

The identifier table is checked separately: a cached output is reused only
while every name it interned still maps to the same id.
"""
from __future__ import annotations

import hashlib
from typing import Dict

from garnet_lang.backend.interning import PersistentTable
from garnet_lang.runtime.helpers import RUNTIME_HELPERS, HelperEntry, registry_signature


def compute_unit_fingerprint(source: str, file_id: str, core: bool = False,
                             helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS) -> str:
    """Compute a hex SHA-256 fingerprint for one compilation unit."""
    hasher = hashlib.sha256()

    hasher.update(b"SOURCE:")
    hasher.update(source.encode("utf-8"))

    hasher.update(b"FILE:")
    hasher.update(file_id.encode("utf-8"))

    hasher.update(b"CORE:")
    hasher.update(b"1" if core else b"0")

    hasher.update(b"HELPERS:")
    hasher.update(registry_signature(helpers).encode("utf-8"))

    return hasher.hexdigest()


def interned_still_valid(interned: Dict[str, str], table: PersistentTable) -> bool:
    """True if *table* maps every name of a cached unit to the id it was built with."""
    return all(table.lookup(name) == ident for name, ident in interned.items())
