"""Compilation driver: one unit at a time against a shared interning table.

A driver owns the per-unit state the generator writes into and a reference
to the ``PersistentTable`` shared by the whole build::

    table = PersistentTable()
    core = CompilationDriver(table).compile(core_src, "core.rb", core=True)
    app = CompilationDriver(table).compile(app_src, "app.rb")

Each ``compile`` call resets the unit state, parses, generates, wraps the
raw code with the runtime helper prologue and merges the unit's interned
names into the table. A unit that fails to parse or generate leaves the
table's mapping untouched.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from garnet_lang.backend.codegen_js import generate_unit
from garnet_lang.backend.interning import PersistentTable, ScratchTable
from garnet_lang.compiler.payload import CachePayload
from garnet_lang.internals.errors import CodegenError, UnitSyntaxError
from garnet_lang.internals.parser import parse_source
from garnet_lang.runtime.helpers import RUNTIME_HELPERS, HelperEntry
from garnet_lang.runtime.wrapper import wrap_core, wrap_unit
from garnet_lang.semantics.ast import Program
from garnet_lang.semantics.ast_builder import ParseFailure


@dataclass
class UnitState:
    """Everything the generator may change while compiling one unit."""
    file_id: str
    scratch: ScratchTable
    core: bool = False
    indent: str = ""
    unique: int = 0
    symbols: Dict[str, str] = field(default_factory=dict)
    sym_id: int = 0

    def intern(self, name: str) -> str:
        """Write handle on the interning table for this unit."""
        return self.scratch.intern(name)


@dataclass(frozen=True)
class UnitResult:
    file_id: str
    code: str                        # Wrapped unit output
    manifest: CachePayload           # Table snapshot after this unit merged
    interned: Dict[str, str]         # Names this unit saw, with their ids


class CompilationDriver:
    def __init__(
        self,
        table: Optional[PersistentTable] = None,
        parser: Callable[[str, str], Program] = parse_source,
        generator: Callable[[Program, UnitState], str] = generate_unit,
        helpers: tuple[HelperEntry, ...] = RUNTIME_HELPERS,
    ) -> None:
        self.table = table if table is not None else PersistentTable()
        self.parser = parser
        self.generator = generator
        self.helpers = helpers
        self.unit = self._new_state("(file)")

    def _new_state(self, file_id: str, core: bool = False) -> UnitState:
        return UnitState(file_id=file_id, scratch=self.table.new_scratch(file_id), core=core)

    def reset_for_unit(self, file_id: str, core: bool = False) -> UnitState:
        """Start a fresh unit. The persistent table is not touched."""
        self.unit = self._new_state(file_id, core)
        return self.unit

    def compile(self, source: str, file_id: str = "(file)", core: bool = False) -> UnitResult:
        """Compile one unit.

        Raises:
            UnitSyntaxError: the parser rejected the source.
            CodegenError: the generator rejected the AST (``file`` is set).
            InternConsistencyError: merging the unit would break the table.
        """
        unit = self.reset_for_unit(file_id, core)
        try:
            return self._compile_unit(source, file_id, core, unit)
        except Exception:
            # ids stay burned; only the pending reservations go
            self.table.release(unit.scratch)
            raise

    def _compile_unit(self, source: str, file_id: str, core: bool, unit: UnitState) -> UnitResult:
        try:
            program = self.parser(source, file_id)
        except ParseFailure as e:
            raise UnitSyntaxError(file_id, e.line, e.message, e.column) from e

        try:
            raw = self.generator(program, unit)
        except CodegenError as e:
            e.file = file_id
            raise

        code = wrap_core(raw, self.helpers) if core else wrap_unit(raw, self.helpers)
        interned = unit.scratch.as_dict()
        self.table.merge_unit(unit.scratch)
        return UnitResult(file_id=file_id, code=code, manifest=self.build_manifest(),
                          interned=interned)

    def build_manifest(self) -> CachePayload:
        """Snapshot of every name interned so far, plus the cursor."""
        return self.table.export_snapshot()

    def load_manifest(self, payload: CachePayload) -> None:
        """Seed the table from a previous build's snapshot.

        Raises:
            CachePayloadError: the payload is not a consistent table.
        """
        self.table.load_snapshot(payload)

    def make_intern(self, name: str) -> str:
        """Intern *name* outside any unit and merge it right away."""
        scratch = self.table.new_scratch("(make_intern)")
        ident = scratch.intern(name)
        self.table.merge_unit(scratch)
        return ident
