"""AST builder package.

Turns Lark parse trees into the typed nodes of ``garnet_lang.semantics.ast``.
"""
from garnet_lang.semantics.ast_builder.builder import ASTBuilder
from garnet_lang.semantics.ast_builder.exceptions import (
    ParseFailure,
    UnterminatedInterpolationError,
    EmptyInterpolationError,
    InvalidEscapeError,
)

__all__ = [
    "ASTBuilder",
    "ParseFailure",
    "UnterminatedInterpolationError",
    "EmptyInterpolationError",
    "InvalidEscapeError",
]
