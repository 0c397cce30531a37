"""CLI entry point and argument parsing."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from garnet_lang.internals.version import print_banner


def main(argv: list[str] | None = None) -> int:
    """Main compiler entry point."""
    print_banner()

    ap = argparse.ArgumentParser(prog="garnetc", description="Garnet to JavaScript compiler")

    ap.add_argument("sources", nargs='*', help="Paths to source files (.rb), in load order")
    ap.add_argument("--version", action="store_true", help="Show version and exit")
    ap.add_argument("--core", metavar="FILE",
                    help="Core unit compiled first and wrapped for the bootstrap loader")
    ap.add_argument("--dump-parse", action="store_true", help="Print raw Lark tree")
    ap.add_argument("--dump-ast", action="store_true", help="Print AST")
    ap.add_argument("-o", "--out", metavar="OUT",
                    help="Output bundle path (default: first source filename with .js)")
    ap.add_argument(
        "--manifest",
        metavar="PATH",
        help="Also write the identifier table as a standalone registration script",
    )
    ap.add_argument(
        "--traceback",
        action="store_true",
        help="Print full traceback on unexpected errors (for debugging)",
    )
    ap.add_argument(
        "--no-incremental",
        action="store_true",
        help="Force full rebuild, ignoring the cached identifier table and outputs",
    )
    ap.add_argument(
        "--strict-cache",
        action="store_true",
        help="Fail instead of rebuilding when the identifier cache is unreadable",
    )
    ap.add_argument(
        "--clean-cache",
        action="store_true",
        help="Remove the cache directory first (exit if no sources are given)",
    )
    ap.add_argument(
        "--cache-dir",
        metavar="PATH",
        help="Custom cache directory location (default: __garnet_cache__/)",
    )
    args = ap.parse_args(argv)

    if args.version:
        return 0

    from garnet_lang.compiler.loader import resolve_source

    sources = [resolve_source(s) for s in args.sources]
    core = resolve_source(args.core) if args.core else None

    if args.clean_cache:
        from garnet_lang.compiler.cache import CacheManager
        first = core or (sources[0] if sources else None)
        root = first.parent if first else Path.cwd()
        cache_dir = Path(args.cache_dir) if args.cache_dir else None
        cm = CacheManager(root, cache_dir=cache_dir)
        if cm.cache_path.exists():
            cm.wipe()
            print(f"Removed cache: {cm.cache_path}")
        else:
            print("No cache found.")
        if not sources and core is None:
            return 0

    if not sources and core is None:
        print("error: at least one source file required (or --core FILE)", file=sys.stderr)
        return 2

    from garnet_lang.compiler.pipeline import compile_project

    try:
        result = compile_project(sources, core, args)
    except Exception as e:
        print(f"Compilation failed: {e}", file=sys.stderr)
        if args.traceback:
            import traceback
            traceback.print_exc()
        return 2
    print()
    return result


if __name__ == "__main__":
    raise SystemExit(main())
