"""Custom exceptions for parse and AST building errors."""
from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from garnet_lang.internals.report import Span


class ParseFailure(Exception):
    """The source could not be turned into an AST.

    ``line`` and ``column`` are 1-based; the driver maps this to a
    ``UnitSyntaxError`` carrying the unit's file id.
    """
    def __init__(self, message: str, span: Optional['Span'] = None):
        super().__init__(message)
        self.message = message
        self.span = span

    @property
    def line(self) -> int:
        return self.span.line if self.span is not None else 1

    @property
    def column(self) -> int:
        return self.span.col if self.span is not None else 1


class UnterminatedInterpolationError(ParseFailure):
    """Exception raised when a #{ ... } interpolation is not closed."""


class EmptyInterpolationError(ParseFailure):
    """Exception raised when #{} contains no expression."""


class InvalidEscapeError(ParseFailure):
    """Exception raised when an escape names a code point outside Unicode."""
