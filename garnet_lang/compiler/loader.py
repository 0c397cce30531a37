"""Source file loading and unit naming."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from garnet_lang.internals import errors as er
from garnet_lang.internals.report import Reporter

SOURCE_SUFFIX = ".rb"


def get_effective_cwd() -> Path:
    """Get the effective current working directory for file resolution.

    Checks for the GARNET_CWD environment variable set by wrapper scripts.
    If present, uses that directory. Otherwise falls back to os.getcwd().

    Returns:
        Path where source files should be resolved from.
    """
    garnet_cwd = os.environ.get('GARNET_CWD')
    if garnet_cwd:
        return Path(garnet_cwd)
    return Path.cwd()


def resolve_source(path: str | Path) -> Path:
    """Resolve a command-line source path against the effective cwd."""
    src_path = Path(path)
    if not src_path.is_absolute():
        src_path = get_effective_cwd() / src_path
    return src_path.resolve()


def unit_name(src_path: Path, root: Path) -> str:
    """Cache name of a unit: its path below *root*, without the suffix.

    ``root/lib/util.rb`` -> ``lib/util``. Files outside *root* use their stem.
    """
    try:
        rel = src_path.relative_to(root)
    except ValueError:
        return src_path.stem
    return rel.with_suffix("").as_posix()


def read_source(src_path: Path, reporter: Reporter) -> Optional[str]:
    """Read a unit's source text, reporting CE4001 if it cannot be read.

    Also emits CW0001 when the file does not end with a newline.
    """
    try:
        src = src_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
        er.emit(reporter, er.ERR.CE4001, None, path=str(src_path), reason=reason)
        return None

    reporter.source = src
    if src and not src.endswith('\n'):
        er.emit(reporter, er.ERR.CW0001, None)
    return src
