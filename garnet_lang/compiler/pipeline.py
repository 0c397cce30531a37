"""Multi-unit compilation orchestration.

Units compile one after another against a single persistent table: the
core unit first, then every source in command-line order. With the
incremental cache enabled the table is seeded from the previous build, so
unchanged units keep their ids and their cached output stays valid.
"""
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from garnet_lang.backend.interning import PersistentTable
from garnet_lang.compiler.cache import CacheManager
from garnet_lang.compiler.driver import CompilationDriver
from garnet_lang.compiler.fingerprint import compute_unit_fingerprint, interned_still_valid
from garnet_lang.compiler.loader import SOURCE_SUFFIX, get_effective_cwd, read_source, unit_name
from garnet_lang.compiler.payload import encode
from garnet_lang.internals import errors as er
from garnet_lang.internals.errors import (
    CachePayloadError,
    CodegenError,
    InternConsistencyError,
    UnitSyntaxError,
)
from garnet_lang.internals.parse_errors import handle_compile_exception
from garnet_lang.internals.parser import parse_source
from garnet_lang.internals.report import Reporter
from garnet_lang.runtime.helpers import CORE_LOADER, RUNTIME_CONTEXT_EXPR


def _make_parser(args):
    """Parser callable for the driver that honours --dump-parse/--dump-ast."""
    dump_parse = bool(getattr(args, 'dump_parse', False))
    dump_ast = bool(getattr(args, 'dump_ast', False))

    def parse(src: str, file_id: str):
        program = parse_source(src, file_id, dump_parse=dump_parse)
        if dump_ast:
            from garnet_lang.frontend.ast_printer import dump_ast as render
            print(f"# ast: {file_id}")
            print(render(program))
            print()
        return program

    return parse


def _load_table(cache: CacheManager, reporter: Reporter, strict: bool) -> Optional[PersistentTable]:
    """Seed a table from the cache. Returns None if the build must stop."""
    if not cache.is_valid():
        cache.invalidate_and_rebuild()
        return PersistentTable()

    cache.ensure_dirs()
    try:
        payload = cache.load_id_table()
        return PersistentTable(payload)
    except CachePayloadError as e:
        if strict:
            e.emit(reporter)
            return None
        er.emit(reporter, er.ERR.CW3101, None, reason=e.message)
        cache.invalidate_and_rebuild()
        return PersistentTable()


def compile_project(sources: List[Path], core: Optional[Path], args) -> int:
    """Compile *core* and *sources* into one JavaScript bundle.

    Args:
        sources: Resolved paths of the ordinary units, in load order.
        core: Resolved path of the core unit, if any.
        args: Parsed command line arguments.

    Returns:
        Exit code (0=success, 1=warnings, 2=errors).
    """
    units: List[Tuple[Path, bool]] = ([(core, True)] if core else []) + [(s, False) for s in sources]
    if not units:
        print("error: nothing to compile", file=sys.stderr)
        return 2

    root = units[0][0].parent
    build_reporter = Reporter(str(root))
    incremental = not getattr(args, 'no_incremental', False)
    dumping = bool(getattr(args, 'dump_parse', False) or getattr(args, 'dump_ast', False))
    cache_dir = Path(args.cache_dir) if getattr(args, 'cache_dir', None) else None
    cache = CacheManager(root, cache_dir=cache_dir)

    if incremental:
        table = _load_table(cache, build_reporter, bool(getattr(args, 'strict_cache', False)))
        if table is None:
            build_reporter.print()
            return 2
    else:
        table = PersistentTable()

    driver = CompilationDriver(table, parser=_make_parser(args))
    reporters: List[Reporter] = [build_reporter]
    outputs: List[Tuple[str, bool]] = []
    failed: List[str] = []
    rebuilt, cached = [], []

    t0 = time.monotonic()
    print("Code generation:")

    for src_path, is_core in units:
        reporter = Reporter(str(src_path))
        reporters.append(reporter)
        src = read_source(src_path, reporter)
        name = unit_name(src_path, root)
        if src is None:
            failed.append(name)
            continue

        file_id = name + SOURCE_SUFFIX
        fp = compute_unit_fingerprint(src, file_id, is_core)

        hit = cache.load_unit(name, fp) if incremental and not dumping else None
        if hit is not None and interned_still_valid(hit[1], table):
            outputs.append((hit[0], is_core))
            cached.append(name)
            print(f"  {name:<30s} [cached]")
            continue

        try:
            result = driver.compile(src, file_id, core=is_core)
        except (UnitSyntaxError, CodegenError) as e:
            handle_compile_exception(e, reporter, src_path)
            failed.append(name)
        except InternConsistencyError as e:
            e.emit(reporter)
            for r in reporters:
                r.print()
            print(f"Compilation aborted: {e}", file=sys.stderr)
            return 2
        else:
            outputs.append((result.code, is_core))
            rebuilt.append(name)
            if incremental:
                cache.store_unit(name, result.code, fp, result.interned)
            print(f"  {name:<30s} [rebuilt]")
            continue

        if incremental:
            cache.drop_unit(name)
        print(f"  {name:<30s} [failed]")

    codegen_time = time.monotonic() - t0
    if incremental:
        cache.store_id_table(table.export_snapshot())

    for r in reporters:
        r.print()

    print(f"\nCodegen: {len(units)} units ({len(cached)} cached, {len(rebuilt)} rebuilt) "
          f"in {codegen_time:.2f}s")

    if failed:
        return 2

    manifest = encode(table.export_snapshot())
    parts = [manifest.rstrip("\n")]
    for code, is_core in outputs:
        if is_core:
            parts.append(f"{CORE_LOADER}({code});")
        else:
            parts.append(f"{code}({RUNTIME_CONTEXT_EXPR});")
    bundle = "\n".join(parts) + "\n"

    effective_cwd = get_effective_cwd()
    if getattr(args, 'out', None):
        out_path = Path(args.out)
        if not out_path.is_absolute():
            out_path = effective_cwd / out_path
    else:
        out_path = effective_cwd / ((sources[0] if sources else core).stem + ".js")
    out_path.write_text(bundle, encoding="utf-8")

    if getattr(args, 'manifest', None):
        manifest_path = Path(args.manifest)
        if not manifest_path.is_absolute():
            manifest_path = effective_cwd / manifest_path
        manifest_path.write_text(manifest, encoding="utf-8")
        print(f"wrote manifest: {manifest_path}")

    print(f"Success! Wrote bundle: {out_path}")

    if any(r.has_warnings for r in reporters):
        return 1
    return 0
