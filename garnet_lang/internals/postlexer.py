# internals/postlexer.py
"""
Postlexer for newline-terminated statements and paren-less command calls.

Newlines:
---------
Newlines (and ``;``) end statements, but only where a statement can end.
A newline is dropped when:

- it is the first token of the file, or follows another newline
- it sits inside ``( )``, ``[ ]`` or ``{ }``
- the previous token cannot end an expression (``a +``, ``foo(1,``, ``x =``)

Commands:
---------
``puts "hi"`` and ``attr_reader :a, :b`` call a method without
parentheses. The grammar cannot tell ``puts x`` from two juxtaposed
expressions, so when a statement starts with a method name that is
followed, on the same line and after whitespace, by a token that can only
start an argument, a zero-width ``_CMD`` token is inserted between them.

- puts "hi"     → NAME _CMD DSTRING
- x[1]          → unchanged (no whitespace)
- x - 1         → unchanged (MINUS may be a binary operator)
"""

from lark import Token


class NewlineFilter:
    """Drops newlines that cannot terminate a statement."""

    NL_type = '_NL'
    OPEN_PAREN_types = ('LPAR', 'LSQB', 'LBRACE')
    CLOSE_PAREN_types = ('RPAR', 'RSQB', 'RBRACE')
    CONTINUATION_types = frozenset({
        'COMMA', 'DOT', 'ASSIGN', 'OP_ASGN', 'ARROW',
        'PLUS', 'MINUS', 'STAR', 'SLASH', 'PERCENT', 'POW',
        'EQ', 'NE', 'CMP', 'LT', 'GT', 'LE', 'GE', 'SHL',
        'OROR', 'ANDAND', 'DOT2', 'DOT3',
    })

    def process(self, stream):
        # State is per call: one postlexer instance serves concurrent parses
        paren_level = 0
        prev = None
        for token in stream:
            if token.type in self.OPEN_PAREN_types:
                paren_level += 1
            elif token.type in self.CLOSE_PAREN_types:
                paren_level = max(0, paren_level - 1)
            elif token.type == self.NL_type:
                if (paren_level > 0 or prev is None or prev.type == self.NL_type
                        or prev.type in self.CONTINUATION_types):
                    continue
            yield token
            prev = token


class CommandMarker:
    """Inserts ``_CMD`` after the head of a paren-less command call."""

    CMD_type = '_CMD'
    HEAD_types = frozenset({'NAME', 'SUPER', 'YIELD'})
    ARG_START_types = frozenset({
        'NAME', 'CONST', 'IVAR', 'INT', 'FLOAT', 'DSTRING', 'SSTRING',
        'XSTRING', 'SYMBOL', 'SELF', 'NIL', 'TRUE', 'FALSE',
    })

    def process(self, stream):
        prev = None
        held = None
        for token in stream:
            if held is not None:
                yield held
                if (token.type in self.ARG_START_types
                        and token.line == held.end_line
                        and token.column > held.end_column):
                    yield Token.new_borrow_pos(self.CMD_type, '', token)
                prev, held = held, None
            if token.type in self.HEAD_types and (prev is None or prev.type == NewlineFilter.NL_type):
                held = token
                continue
            yield token
            prev = token
        if held is not None:
            yield held


class ChainedPostlexer:
    """Chain the newline filter and the command marker."""

    def __init__(self):
        self.newlines = NewlineFilter()
        self.commands = CommandMarker()
        self.always_accept = (NewlineFilter.NL_type,)

    def process(self, stream):
        # Newlines first so the marker sees statement starts
        stream = self.newlines.process(stream)
        return self.commands.process(stream)
