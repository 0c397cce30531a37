"""Diagnostics for one compilation unit.

Every unit of a build gets its own ``Reporter``; the pipeline prints them in
unit order once the unit loop is done. A diagnostic is rendered as its
location, severity, code and message, followed by the offending source line
when a span is known::

    app.rb:3:7: error [CE1001]: syntax error: unexpected '='.
      | y = = 2
      `     ^
"""
from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from lark import Token


class Style:
    """ANSI escapes used when the stream is a colour terminal."""
    RESET = "\x1b[0m"
    BOLD = "\x1b[1m"
    DIM = "\x1b[2m"
    LOC = "\x1b[36m"
    RULE = "\x1b[90m"
    SEVERITY = {"error": "\x1b[31m", "warning": "\x1b[33m"}


@dataclass(frozen=True)
class Span:
    line: int
    col: int
    end_line: int
    end_col: int

    @classmethod
    def at(cls, line: int, col: int = 1) -> "Span":
        return cls(line, col, line, col)


@dataclass(frozen=True)
class Diagnostic:
    severity: str    # "error" or "warning"
    code: str
    message: str
    span: Optional[Span] = None


def span_of(node: Any) -> Optional[Span]:
    """Source span of a Lark tree (from its meta) or token, if it has one."""
    meta = getattr(node, "meta", None)
    if meta is not None and not getattr(meta, "empty", True):
        return Span(meta.line, meta.column, meta.end_line, meta.end_column)
    if isinstance(node, Token) and node.line is not None and node.column is not None:
        return Span(node.line, node.column, node.end_line or node.line, node.end_column or node.column)
    return None


def _shown_path(unit: str) -> str:
    try:
        return f"./{Path(unit).resolve().relative_to(Path.cwd())}"
    except (ValueError, OSError):
        return Path(unit).name or unit


def _terminal_caps(stream) -> Tuple[bool, bool]:
    """(colour, box drawing) for *stream*: TTY only, vetoed by env vars."""
    tty = getattr(stream, "isatty", lambda: False)()
    if not tty or os.getenv("TERM") == "dumb":
        return False, False
    return os.getenv("NO_COLOR") is None, os.getenv("NO_UNICODE") is None


class Reporter:
    def __init__(self, unit: str = "<input>", source: Optional[str] = None) -> None:
        self.unit = unit
        self.source = source
        self.diagnostics: List[Diagnostic] = []

    def error(self, code: str, msg: str, span: Optional[Span]) -> None:
        self.diagnostics.append(Diagnostic("error", code, msg, span))

    def warn(self, code: str, msg: str, span: Optional[Span]) -> None:
        self.diagnostics.append(Diagnostic("warning", code, msg, span))

    def count(self, severity: str) -> int:
        return sum(1 for d in self.diagnostics if d.severity == severity)

    @property
    def has_errors(self) -> bool:
        return self.count("error") > 0

    @property
    def has_warnings(self) -> bool:
        return self.count("warning") > 0

    def _source_line(self, span: Span) -> str:
        lines = (self.source or "").splitlines()
        return lines[span.line - 1] if 0 < span.line <= len(lines) else ""

    def _render(self, d: Diagnostic, color: bool, unicode: bool) -> Iterator[str]:
        where = _shown_path(self.unit)
        if d.span is not None:
            where += f":{d.span.line}:{d.span.col}"
        text = d.message if d.message.endswith(".") else d.message + "."

        tint = Style.SEVERITY[d.severity] if color else ""
        if color:
            r = Style.RESET
            head = (f"{Style.LOC}{where}{r}: {Style.BOLD}{tint}{d.severity}{r} "
                    f"[{Style.DIM}{d.code}{r}]: {text}")
        else:
            head = f"{where}: {d.severity} [{d.code}]: {text}"

        if d.span is None:
            yield head
            return

        pad = " " * (max(1, d.span.col) - 1)
        snippet = self._source_line(d.span)
        if not unicode:
            yield head
            yield f"  | {snippet}"
            yield f"  ` {pad}^"
            return
        rule = Style.RULE if color else ""
        end = Style.RESET if color else ""
        yield f"{rule}  ╭──┤ {end}{head}"
        yield f"{rule}  │{end}  {snippet}"
        yield f"{rule}  │{end}  {tint}{pad}┯{end}"
        yield f"{rule}  ╰{'─' * max(1, d.span.col)}{end}{tint}╯{end}"

    def format(self, use_color: bool = False, use_unicode: bool = False) -> str:
        return "\n".join(line for d in self.diagnostics
                         for line in self._render(d, use_color, use_unicode))

    def print(self, stream=None) -> None:
        """Write the diagnostics to *stream* (stderr by default), styled for the terminal."""
        stream = stream or sys.stderr
        if self.diagnostics:
            color, unicode = _terminal_caps(stream)
            print(self.format(color, unicode), file=stream)
