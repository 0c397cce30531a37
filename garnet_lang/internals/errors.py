"""Coded diagnostics: the message catalogue and the exceptions carrying codes.

Codes are grouped by hundreds: CE0xxx interning, CE1xxx syntax, CE2xxx code
generation, CE3xxx cache payloads, CE4xxx source loading. Warnings use CW.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional

from garnet_lang.internals.report import Span, Reporter


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    SYNTAX = "syntax"
    CODEGEN = "codegen"
    CACHE = "cache"
    UNIT = "unit"
    INTERNAL = "internal"
    GENERAL = "general"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    severity: Severity
    text: str
    category: Category = Category.GENERAL
    doc: str = ""

    def render(self, **kwargs) -> str:
        try:
            return self.text.format(**kwargs)
        except KeyError as missing:
            raise KeyError(f"{self.code} needs '{missing.args[0]}' to format {self.text!r}") from None


class Catalog:
    """Registered messages, reachable as ``ERR.CE1001`` or ``ERR["CE1001"]``."""

    def __init__(self) -> None:
        self._messages: Dict[str, ErrorMessage] = {}

    def register(self, code: str, severity: Severity, text: str,
                 category: Category = Category.GENERAL, doc: str = "") -> ErrorMessage:
        if code in self._messages:
            raise ValueError(f"error code {code} registered twice")
        msg = self._messages[code] = ErrorMessage(code, severity, text, category, doc)
        return msg

    def __getitem__(self, code: str) -> ErrorMessage:
        try:
            return self._messages[code]
        except KeyError:
            raise KeyError(f"unknown error code: {code}") from None

    def __getattr__(self, code: str) -> ErrorMessage:
        if code.startswith("_"):
            raise AttributeError(code)
        try:
            return self._messages[code]
        except KeyError as e:
            raise AttributeError(code) from e

    def __iter__(self) -> Iterator[ErrorMessage]:
        return iter(self._messages.values())


ERR = Catalog()


def emit(r: Reporter, em: ErrorMessage, span: Optional[Span], **kwargs) -> None:
    report = r.error if em.severity is Severity.ERROR else r.warn
    report(em.code, em.render(**kwargs), span)


#
# --- Exceptions
#

class CompileError(Exception):
    """Base class for errors raised with a registry code.

    The message text comes from the registry entry, formatted with the
    keyword arguments, which stay available on ``kwargs`` for reporting.
    """

    def __init__(self, code: str, span: Optional[Span] = None, **kwargs):
        self.code = code
        self.span = span
        self.kwargs = kwargs
        self.message = ERR[code].render(**kwargs)
        super().__init__(f"{code}: {self.message}")

    def emit(self, reporter: Reporter) -> None:
        emit(reporter, ERR[self.code], self.span, **self.kwargs)


class UnitSyntaxError(CompileError):
    """A compilation unit failed to parse.

    Carries the unit's file id, the 1-based source line and the parser's
    message.
    """

    def __init__(self, file: str, line: int, message: str, column: int = 1):
        super().__init__("CE1001", Span.at(line, column), message=message)
        self.file = file
        self.line = line
        self.column = column
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message} in `{self.file}' on line {self.line}"


class CodegenError(CompileError):
    """The generator met a construct it cannot emit in its context."""

    def __init__(self, code: str, span: Optional[Span] = None, file: Optional[str] = None, **kwargs):
        super().__init__(code, span, **kwargs)
        self.file = file


class InternConsistencyError(CompileError):
    """A name resolved to two different ids, or an id to two names.

    Never expected under the allocation discipline; the build must abort.
    """


class CachePayloadError(CompileError):
    """A cache payload could not be read or failed validation."""


#
# --- Catalogue
#

# Interning invariants (CE0xxx)
ERR.register("CE0001", Severity.ERROR,
    "identifier '{name}' is interned as '{existing}' but unit '{unit}' recorded '{incoming}'",
    Category.INTERNAL, "Two ids were allocated for one name. Allocation must be serialized.")

ERR.register("CE0002", Severity.ERROR,
    "id '{ident}' already names '{existing}', cannot also name '{incoming}'",
    Category.INTERNAL, "An id was handed out twice. The cursor must never repeat.")

# Syntax (CE1xxx)
ERR.register("CE1001", Severity.ERROR,
    "{message}",
    Category.SYNTAX, "The parser rejected the unit.")

# Code generation (CE2xxx)
ERR.register("CE2001", Severity.ERROR,
    "'{construct}' cannot be used {context}",
    Category.CODEGEN, "The construct is only valid inside a method, block or loop.")

ERR.register("CE2002", Severity.ERROR,
    "unsupported construct '{construct}'",
    Category.CODEGEN, "The generator has no emitter for this AST node.")

# Cache payloads (CE3xxx)
ERR.register("CE3001", Severity.ERROR,
    "malformed cache payload: {reason}",
    Category.CACHE, "The payload does not have the mapping/cursor shape or its ids are invalid.")

ERR.register("CE3002", Severity.ERROR,
    "identifier cache '{path}' is truncated: expected {expected} bytes, got {actual}",
    Category.CACHE, "The file ended before the declared section length.")

ERR.register("CE3003", Severity.ERROR,
    "'{path}' is not an identifier cache file",
    Category.CACHE, "The magic bytes do not match.")

ERR.register("CE3004", Severity.ERROR,
    "identifier cache '{path}' has format version {version}, this compiler reads version {supported}",
    Category.CACHE, "The cache was written by an incompatible compiler.")

ERR.register("CE3005", Severity.ERROR,
    "cannot decode identifier cache '{path}': {reason}",
    Category.CACHE, "The MessagePack blob is corrupt.")

ERR.register("CE3006", Severity.ERROR,
    "cannot read identifier cache '{path}': {reason}",
    Category.CACHE, "The cache file exists but could not be opened.")

# Source loading (CE4xxx)
ERR.register("CE4001", Severity.ERROR,
    "cannot read source file '{path}': {reason}",
    Category.UNIT, "The file does not exist or is not readable.")

# General warnings
ERR.register("CW0001", Severity.WARNING,
    "missing trailing newline", Category.GENERAL,
    "Source file should end with a newline character.")

ERR.register("CW3101", Severity.WARNING,
    "identifier cache discarded, rebuilding from scratch: {reason}", Category.CACHE,
    "The cached id table could not be loaded. Ids will be reassigned.")
