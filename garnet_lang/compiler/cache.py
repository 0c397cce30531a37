"""Cache management for incremental compilation.

Manages the __garnet_cache__/ directory, manifest metadata, the persisted
identifier table and per-unit output caching.
"""
from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Dict, Optional, Tuple

from garnet_lang import __version__ as compiler_version
from garnet_lang.compiler.id_cache_format import IdCacheFormat
from garnet_lang.compiler.payload import CachePayload
from garnet_lang.runtime.helpers import RUNTIME_HELPERS, HelperEntry, registry_signature


# Cache directory name (placed next to the first source file)
CACHE_DIR_NAME = "__garnet_cache__"
MANIFEST_NAME = "cache.json"
IDS_NAME = "ids.gidc"
UNITS_DIR = "units"


class CacheManager:
    """Manages the incremental compilation cache directory and manifest.

    The cache stores each unit's wrapped output alongside the identifier
    table those outputs were generated against. Reusing an output is only
    sound while the table still maps its names to the same ids, so the
    table and the outputs are always kept or discarded together.

    Directory layout::

        __garnet_cache__/
            cache.json              -- manifest (compiler version, helper registry)
            ids.gidc                -- persistent identifier table (binary)
            units/
                app.js              -- cached wrapped output for app.rb
                app.fingerprint     -- source fingerprint it was built from
                app.ids.json        -- names the unit interned, with their ids
                lib/util.js         -- mirrors source tree
    """

    def __init__(self, project_root: Path, cache_dir: Optional[Path] = None,
                 helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS) -> None:
        self.project_root = project_root
        self.cache_path = cache_dir or (project_root / CACHE_DIR_NAME)
        self.units_path = self.cache_path / UNITS_DIR
        self.ids_path = self.cache_path / IDS_NAME
        self._registry = registry_signature(helpers)
        self._manifest: Optional[dict] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        """Check whether the cache exists and the manifest matches current settings."""
        manifest = self._read_manifest()
        if manifest is None:
            return False
        return (
            manifest.get("compiler_version") == compiler_version
            and manifest.get("helper_registry") == self._registry
        )

    def ensure_dirs(self) -> None:
        """Create the cache directory structure if it doesn't exist."""
        self.units_path.mkdir(parents=True, exist_ok=True)

    def write_manifest(self) -> None:
        """Write (or overwrite) the cache manifest with current settings."""
        self.ensure_dirs()
        manifest = {
            "compiler_version": compiler_version,
            "helper_registry": self._registry,
        }
        manifest_path = self.cache_path / MANIFEST_NAME
        manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        self._manifest = manifest

    def wipe(self) -> None:
        """Remove the entire cache directory."""
        if self.cache_path.exists():
            shutil.rmtree(self.cache_path)
        self._manifest = None

    def invalidate_and_rebuild(self) -> None:
        """Wipe cache and recreate with fresh manifest."""
        self.wipe()
        self.write_manifest()

    # ------------------------------------------------------------------
    # Identifier table
    # ------------------------------------------------------------------

    def has_id_table(self) -> bool:
        return self.ids_path.exists()

    def load_id_table(self) -> Optional[CachePayload]:
        """Read the persisted identifier table, or None if there is none.

        Raises:
            CachePayloadError: the file exists but is not a valid table.
        """
        if not self.ids_path.exists():
            return None
        return IdCacheFormat.read(self.ids_path)

    def store_id_table(self, payload: CachePayload) -> Path:
        self.ensure_dirs()
        IdCacheFormat.write(self.ids_path, payload)
        return self.ids_path

    # ------------------------------------------------------------------
    # Per-unit output management
    # ------------------------------------------------------------------

    def unit_output_path(self, unit_name: str) -> Path:
        """Return the cached .js path for a source unit (mirrors source tree)."""
        return self.units_path / (unit_name + ".js")

    def has_cached_unit(self, unit_name: str, fingerprint: str) -> bool:
        """Check whether a cached output exists for *unit_name* with matching fingerprint."""
        out_path = self.unit_output_path(unit_name)
        if not out_path.exists():
            return False
        stored = self._read_unit_fingerprint(unit_name)
        return stored == fingerprint

    def load_unit(self, unit_name: str, fingerprint: str) -> Optional[Tuple[str, Dict[str, str]]]:
        """Return ``(code, interned)`` for a fresh cached unit, else None."""
        if not self.has_cached_unit(unit_name, fingerprint):
            return None
        ids_path = self._ids_sidecar_path(unit_name)
        try:
            interned = json.loads(ids_path.read_text(encoding="utf-8"))
            code = self.unit_output_path(unit_name).read_text(encoding="utf-8")
        except (json.JSONDecodeError, OSError):
            return None
        if not isinstance(interned, dict):
            return None
        return code, interned

    def store_unit(self, unit_name: str, code: str, fingerprint: str,
                   interned: Dict[str, str]) -> Path:
        """Store a unit's wrapped output, its fingerprint and its interned names."""
        out_path = self.unit_output_path(unit_name)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(code, encoding="utf-8")
        self._ids_sidecar_path(unit_name).write_text(
            json.dumps(interned, indent=2, ensure_ascii=False), encoding="utf-8")
        self._write_unit_fingerprint(unit_name, fingerprint)
        return out_path

    def drop_unit(self, unit_name: str) -> None:
        """Forget a unit's cached output (e.g. after it failed to compile)."""
        out_path = self.unit_output_path(unit_name)
        for path in (out_path, self._fingerprint_path(out_path), self._ids_sidecar_path(unit_name)):
            if path.exists():
                path.unlink()

    # ------------------------------------------------------------------
    # Sidecar persistence (.fingerprint and .ids.json next to the output)
    # ------------------------------------------------------------------

    def _fingerprint_path(self, out_path: Path) -> Path:
        return out_path.with_suffix(".fingerprint")

    def _ids_sidecar_path(self, unit_name: str) -> Path:
        return self.unit_output_path(unit_name).with_suffix(".ids.json")

    def _read_unit_fingerprint(self, unit_name: str) -> Optional[str]:
        fp = self._fingerprint_path(self.unit_output_path(unit_name))
        return fp.read_text(encoding="utf-8").strip() if fp.exists() else None

    def _write_unit_fingerprint(self, unit_name: str, fingerprint: str) -> None:
        fp = self._fingerprint_path(self.unit_output_path(unit_name))
        fp.parent.mkdir(parents=True, exist_ok=True)
        fp.write_text(fingerprint, encoding="utf-8")

    # ------------------------------------------------------------------
    # Manifest I/O
    # ------------------------------------------------------------------

    def _read_manifest(self) -> Optional[dict]:
        if self._manifest is not None:
            return self._manifest
        manifest_path = self.cache_path / MANIFEST_NAME
        if not manifest_path.exists():
            return None
        try:
            self._manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            return self._manifest
        except (json.JSONDecodeError, OSError):
            return None
