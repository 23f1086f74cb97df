"""Syntax checks run on a token chain before any command is built."""

from __future__ import annotations

from typing import Sequence

from minish.tokens import Token, TokenType

_SYNTAX_ERROR = "minishell: syntax error near unexpected token `"


class ShellSyntaxError(Exception):
    """A command line that cannot be parsed."""

    exit_status = 2

    def __init__(self, token: Token) -> None:
        self.token = token
        super().__init__(f"{_SYNTAX_ERROR}{token.value}'")


class AmbiguousRedirectError(Exception):
    """A redirection whose target is an unexpanded ``*``."""

    exit_status = 1

    def __init__(self) -> None:
        super().__init__("minishell: *: ambiguous redirect")


def _check_operator(token: Token) -> None:
    following = token.next
    if (
        token.pos == 0
        or following is None
        or (following.type != TokenType.WORD and not following.is_redirection())
    ):
        raise ShellSyntaxError(token)
    if token.prev is not None and token.prev.type != TokenType.WORD:
        raise ShellSyntaxError(token)


def check_syntax(tokens: Sequence[Token]) -> None:
    """Raise ShellSyntaxError at the first misplaced operator or redirection.

    ``||`` is checked over the whole line first, then ``&&`` (and any word
    starting with ``&``), then ``|``, then redirections.
    """
    for token in tokens:
        if token.type == TokenType.LOGICAL_OR:
            _check_operator(token)
    for token in tokens:
        if token.type == TokenType.LOGICAL_AND or token.value.startswith("&"):
            _check_operator(token)
    for token in tokens:
        if token.type == TokenType.PIPE:
            _check_operator(token)
    for token in tokens:
        if token.is_redirection():
            if token.next is None or token.next.type != TokenType.WORD:
                raise ShellSyntaxError(token)


def check_ambiguous_star(tokens: Sequence[Token]) -> None:
    """Raise AmbiguousRedirectError if a redirection targets ``*``.

    The exemption for here-documents looks at the token after the first one
    of the line, not at the redirection itself.
    """
    if not tokens:
        return
    second = tokens[0].next
    for token in tokens:
        if token.is_redirection() and token.next is not None:
            if token.next.value.startswith("*") and (
                second is None or second.type != TokenType.HEREDOC
            ):
                raise AmbiguousRedirectError()