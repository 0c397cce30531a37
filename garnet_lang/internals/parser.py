"""Lark parser setup and AST construction."""
from __future__ import annotations

import threading
from pathlib import Path

from lark import Lark, UnexpectedInput, UnexpectedToken, UnexpectedCharacters

from garnet_lang.internals.postlexer import ChainedPostlexer
from garnet_lang.internals.report import Span
from garnet_lang.semantics.ast import Program, Expr
from garnet_lang.semantics.ast_builder import ASTBuilder, ParseFailure

GRAMMAR_PATH = Path(__file__).parent.parent / "grammar.lark"

_parser: Lark | None = None
_parser_lock = threading.Lock()

_TOKEN_NAMES = {
    "$END": "end of input",
    "_NL": "newline",
    "_CMD": "argument",
}


def get_parser() -> Lark:
    """Build the LALR parser once per process."""
    global _parser
    with _parser_lock:
        if _parser is None:
            _parser = Lark.open(
                str(GRAMMAR_PATH),
                start=["program", "expr"],
                parser="lalr",
                lexer="basic",
                propagate_positions=True,
                maybe_placeholders=False,
                postlex=ChainedPostlexer(),
            )
        return _parser


def _describe(token) -> str:
    if token.type in _TOKEN_NAMES:
        return _TOKEN_NAMES[token.type]
    return f"'{token}'"


def _last_line(src: str) -> int:
    return max(1, src.count("\n") + (0 if src.endswith("\n") else 1))


def improve_parse_error(e: UnexpectedInput, src: str) -> ParseFailure:
    """Turn a Lark error into a one-line message with a position."""
    line = getattr(e, "line", -1)
    column = getattr(e, "column", -1)
    if isinstance(e, UnexpectedToken):
        message = f"unexpected {_describe(e.token)}"
        if e.token.type == "$END":
            line, column = _last_line(src), 1
            if "END" in e.expected:
                message += ", expecting 'end'"
    elif isinstance(e, UnexpectedCharacters):
        message = f"unexpected character {src[e.pos_in_stream]!r}" \
            if 0 <= e.pos_in_stream < len(src) else "unexpected character"
    else:
        message = "unexpected end of input"
    if line is None or line < 1:
        line = _last_line(src)
    if column is None or column < 1:
        column = 1
    return ParseFailure(message, Span.at(line, column))


def parse_tree(src: str, start: str = "program"):
    """Parse *src* into a Lark tree.

    Raises:
        ParseFailure: the source does not match the grammar.
    """
    try:
        return get_parser().parse(src, start=start)
    except UnexpectedInput as e:
        raise improve_parse_error(e, src) from None


def parse_source(src: str, file_id: str = "(file)", dump_parse: bool = False) -> Program:
    """Parse a compilation unit into a Program AST.

    Raises:
        ParseFailure: syntax error; carries the 1-based line and column.
    """
    tree = parse_tree(src)
    if dump_parse:
        print(f"# parse tree: {file_id}")
        print(tree.pretty())
    return ASTBuilder().build(tree)


def parse_expression(src: str) -> Expr:
    """Parse a single expression, as found inside ``#{...}``."""
    return ASTBuilder().build_expr(parse_tree(src, start="expr"))
