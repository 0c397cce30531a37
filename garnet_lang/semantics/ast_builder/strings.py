"""String literal processing: escape sequences and #{...} interpolation."""
from __future__ import annotations
from typing import List, Optional, Tuple, Union, TYPE_CHECKING

from garnet_lang.internals.report import Span
from garnet_lang.semantics.ast_builder.exceptions import (
    EmptyInterpolationError,
    InvalidEscapeError,
    UnterminatedInterpolationError,
)

if TYPE_CHECKING:
    from garnet_lang.semantics.ast import Expr


_SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '0': '\0',
    's': ' ',
    'e': '\x1b',
    'a': '\a',
    'b': '\b',
    'f': '\f',
    'v': '\v',
}


def process_string_escapes(raw: str, span: Optional[Span] = None) -> str:
    r"""Process the escape sequences of a double-quoted literal.

    Handles \n \t \r \0 \s \e \a \b \f \v, \xNN, \uNNNN and \u{N...}.
    Any other escaped character stands for itself (\" \\ \#).

    Raises:
        InvalidEscapeError: a \u{...} code point above U+10FFFF.
    """
    result = []
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if ch != '\\' or i + 1 >= n:
            result.append(ch)
            i += 1
            continue
        nxt = raw[i + 1]
        if nxt in _SIMPLE_ESCAPES:
            result.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == 'x' and len(raw[i + 2:i + 4]) == 2 and _is_hex(raw[i + 2:i + 4]):
            result.append(chr(int(raw[i + 2:i + 4], 16)))
            i += 4
        elif nxt == 'u' and raw[i + 2:i + 3] == '{':
            close = raw.find('}', i + 3)
            digits = raw[i + 3:close].split() if close != -1 else []
            if close != -1 and digits and all(_is_hex(d) for d in digits):
                result.extend(_code_point(d, span) for d in digits)
                i = close + 1
            else:
                result.append(nxt)
                i += 2
        elif nxt == 'u' and _is_hex(raw[i + 2:i + 6]) and len(raw[i + 2:i + 6]) == 4:
            result.append(chr(int(raw[i + 2:i + 6], 16)))
            i += 6
        else:
            result.append(nxt)
            i += 2
    return ''.join(result)


def process_single_quoted(raw: str) -> str:
    r"""Single-quoted literals only know \\ and \'."""
    result = []
    i = 0
    while i < len(raw):
        if raw[i] == '\\' and i + 1 < len(raw) and raw[i + 1] in "\\'":
            result.append(raw[i + 1])
            i += 2
        else:
            result.append(raw[i])
            i += 1
    return ''.join(result)


def _is_hex(text: str) -> bool:
    return bool(text) and all(c in '0123456789abcdefABCDEF' for c in text)


def _code_point(digits: str, span: Optional[Span]) -> str:
    cp = int(digits, 16)
    if cp > 0x10FFFF:
        raise InvalidEscapeError(f"invalid Unicode escape \\u{{{digits}}}", span)
    return chr(cp)


def split_interpolations(raw: str, span: Optional[Span]) -> List[Union[str, Tuple[str, int]]]:
    """Split literal content into text chunks and ``(code, line_offset)`` chunks.

    Text chunks are returned unprocessed. ``line_offset`` counts the newlines
    before the interpolation, for error positions.

    Raises:
        UnterminatedInterpolationError: ``#{`` without a matching ``}``.
        EmptyInterpolationError: ``#{}`` or ``#{   }``.
    """
    parts: List[Union[str, Tuple[str, int]]] = []
    text: List[str] = []
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if ch == '\\' and i + 1 < n:
            text.append(raw[i:i + 2])
            i += 2
            continue
        if ch == '#' and raw[i + 1:i + 2] == '{':
            end = _matching_brace(raw, i + 2)
            if end == -1:
                raise UnterminatedInterpolationError("unterminated string interpolation", span)
            code = raw[i + 2:end]
            if not code.strip():
                raise EmptyInterpolationError("empty string interpolation", span)
            if text:
                parts.append(''.join(text))
                text = []
            parts.append((code, raw.count('\n', 0, i)))
            i = end + 1
            continue
        text.append(ch)
        i += 1
    if text:
        parts.append(''.join(text))
    return parts


def _matching_brace(raw: str, start: int) -> int:
    """Index of the ``}`` closing an interpolation opened just before *start*."""
    depth = 1
    quote = None
    i = start
    while i < len(raw):
        ch = raw[i]
        if quote is not None:
            if ch == '\\':
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in '"\'`':
            quote = ch
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def shift_span(span: Optional[Span], line_offset: int) -> Optional[Span]:
    if span is None:
        return None
    return Span(span.line + line_offset, span.col, span.end_line + line_offset, span.end_col)
