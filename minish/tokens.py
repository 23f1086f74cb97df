"""Token kinds and the small helpers the parser uses to walk token chains."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Optional

_SPACES = frozenset(" \t\n\v\f\r")


class TokenType(IntEnum):
    """Kinds of tokens a command line is split into."""

    WORD = 0
    ARGUMENT = 1
    PIPE = 2
    STDIN = 3
    STDOUT = 4
    HEREDOC = 5
    APPEND = 6
    LOGICAL_AND = 7
    LOGICAL_OR = 8
    SINGLE_QUOTE = 9
    DOUBLE_QUOTE = 10


_REDIRECTIONS = frozenset(
    {TokenType.STDIN, TokenType.STDOUT, TokenType.HEREDOC, TokenType.APPEND}
)
_LOGICAL = frozenset({TokenType.LOGICAL_AND, TokenType.LOGICAL_OR})


@dataclass
class Token:
    """One lexical unit of a command line, linked to its neighbours."""

    pos: int
    type: TokenType
    value: str
    is_parsed: bool = False
    prev: Optional["Token"] = field(default=None, repr=False, compare=False)
    next: Optional["Token"] = field(default=None, repr=False, compare=False)

    def is_redirection(self) -> bool:
        """Tell whether this token is one of ``<``, ``>``, ``<<`` or ``>>``."""
        return self.type in _REDIRECTIONS

    def is_command_end(self) -> bool:
        """Tell whether this token ends a simple command."""
        return self.type == TokenType.PIPE or self.type in _LOGICAL

    def is_list_end(self) -> bool:
        """Tell whether this token ends a list: the last token, ``&&`` or ``||``."""
        return self.next is None or self.type in _LOGICAL


def link_tokens(tokens: Iterable[Token]) -> list[Token]:
    """Number the tokens in order and link each to its neighbours."""
    chain = list(tokens)
    previous: Optional[Token] = None
    for pos, token in enumerate(chain):
        token.pos = pos
        token.prev = previous
        token.next = None
        if previous is not None:
            previous.next = token
        previous = token
    return chain


def is_space(char: str) -> bool:
    """Tell whether ``char`` is ASCII whitespace."""
    return char in _SPACES


def skip_quoted(text: str) -> str:
    """Return ``text`` past a leading quoted section, if it starts with one.

    An unterminated quote runs to the end of the text.
    """
    if not text or text[0] not in "\"'":
        return text
    closing = text.find(text[0], 1)
    return "" if closing == -1 else text[closing + 1:]


def count_lists(tokens: Iterable[Token]) -> int:
    """Count the lists separated by ``&&`` and ``||``."""
    return 1 + sum(1 for token in tokens if token.type in _LOGICAL)