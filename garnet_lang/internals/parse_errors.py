"""Shared compile exception handling for the pipeline and CLI."""
from __future__ import annotations

import sys

from garnet_lang.internals.errors import CompileError, emit, ERR
from garnet_lang.semantics.ast_builder import ParseFailure


def handle_compile_exception(exc: Exception, reporter, source_path=None) -> bool:
    """Handle a compile exception by emitting diagnostics through the reporter.

    Args:
        exc: The exception to handle.
        reporter: Reporter for error/warning collection.
        source_path: Optional path for context on stderr.

    Returns:
        True if the exception was handled, False otherwise.
    """
    if isinstance(exc, CompileError):
        exc.emit(reporter)
        return True

    if isinstance(exc, ParseFailure):
        emit(reporter, ERR.CE1001, exc.span, message=exc.message)
        return True

    if isinstance(exc, (OSError, UnicodeDecodeError)) and source_path:
        print(f"error: cannot read {source_path}: {exc}", file=sys.stderr)
        return True

    return False
