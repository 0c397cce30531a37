"""Cache payload model and its embeddable JavaScript form.

A payload is everything the persistent interning table knows: the ordered
name -> id mapping and the next id the cursor will hand out. It is rendered
for shipping alongside compiled output as a call into the runtime::

    garnet.parse_data({
      "methods": {"foo": "a", "bar": "b"},
      "next": "c"
    });

so that a cached bundle can register its ids without recompiling any source.
``decode`` reads that text back and refuses anything that is not exactly this
shape; a malformed payload must never turn into an empty table.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict

from garnet_lang.backend.interning import id_order, is_valid_id
from garnet_lang.internals.errors import CachePayloadError
from garnet_lang.runtime.helpers import REGISTER_FUNCTION
from garnet_lang.runtime.js import js_string


PAYLOAD_KEYS = ("methods", "next")

_LITERAL_RE = re.compile(
    r"\s*" + re.escape(REGISTER_FUNCTION) + r"\(\s*(\{.*\})\s*\)\s*;?\s*",
    re.DOTALL,
)


@dataclass(frozen=True)
class CachePayload:
    """Snapshot of a persistent interning table."""
    methods: Dict[str, str] = field(default_factory=dict)
    next_id: str = "a"

    def __len__(self) -> int:
        return len(self.methods)

    def validate(self) -> None:
        """Raise ``CachePayloadError`` unless the payload can seed a table."""
        if not isinstance(self.methods, dict):
            raise CachePayloadError("CE3001", reason="'methods' must be a mapping")
        if not is_valid_id(self.next_id):
            raise CachePayloadError("CE3001", reason=f"invalid next id {self.next_id!r}")
        limit = id_order(self.next_id)
        owners: Dict[str, str] = {}
        for name, ident in self.methods.items():
            if not isinstance(name, str):
                raise CachePayloadError("CE3001", reason=f"name {name!r} is not a string")
            if not is_valid_id(ident):
                raise CachePayloadError("CE3001", reason=f"invalid id {ident!r} for {name!r}")
            if ident in owners:
                raise CachePayloadError(
                    "CE3001", reason=f"id {ident!r} assigned to both {owners[ident]!r} and {name!r}")
            if id_order(ident) >= limit:
                raise CachePayloadError(
                    "CE3001", reason=f"id {ident!r} for {name!r} is not below next id {self.next_id!r}")
            owners[ident] = name

    def to_dict(self) -> Dict[str, Any]:
        return {"methods": dict(self.methods), "next": self.next_id}

    @classmethod
    def from_dict(cls, data: Any) -> "CachePayload":
        if not isinstance(data, dict):
            raise CachePayloadError("CE3001", reason=f"expected an object, got {type(data).__name__}")
        missing = [k for k in PAYLOAD_KEYS if k not in data]
        if missing:
            raise CachePayloadError("CE3001", reason=f"missing key(s): {', '.join(missing)}")
        unknown = sorted(str(k) for k in data if k not in PAYLOAD_KEYS)
        if unknown:
            raise CachePayloadError("CE3001", reason=f"unknown key(s): {', '.join(unknown)}")
        methods = data["methods"]
        if not isinstance(methods, dict):
            raise CachePayloadError("CE3001", reason="'methods' must be a mapping")
        if not isinstance(data["next"], str):
            raise CachePayloadError("CE3001", reason="'next' must be a string")
        payload = cls(methods=dict(methods), next_id=data["next"])
        payload.validate()
        return payload


def encode(payload: CachePayload) -> str:
    """Render *payload* as a runtime registration call."""
    pairs = ", ".join(f"{js_string(name)}: {js_string(ident)}"
                      for name, ident in payload.methods.items())
    return (
        f"{REGISTER_FUNCTION}({{\n"
        f"  \"methods\": {{{pairs}}},\n"
        f"  \"next\": {js_string(payload.next_id)}\n"
        f"}});\n"
    )


def _reject_duplicate_keys(pairs):
    obj = {}
    for key, value in pairs:
        if key in obj:
            raise CachePayloadError("CE3001", reason=f"duplicate key {key!r}")
        obj[key] = value
    return obj


def decode(text: str) -> CachePayload:
    """Parse the output of ``encode`` back into a payload."""
    if not isinstance(text, str):
        raise CachePayloadError("CE3001", reason="payload text must be a string")
    m = _LITERAL_RE.fullmatch(text)
    if m is None:
        raise CachePayloadError("CE3001", reason=f"expected a {REGISTER_FUNCTION}({{...}}) call")
    try:
        data = json.loads(m.group(1), object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as e:
        raise CachePayloadError(
            "CE3001", reason=f"invalid object literal: {e.msg} (line {e.lineno}, column {e.colno})") from e
    return CachePayload.from_dict(data)
