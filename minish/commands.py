"""Grouping a checked token chain into lists of piped commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Sequence

from minish.env import Environment, ShellState
from minish.expand import expand_tokens
from minish.syntax import check_ambiguous_star, check_syntax
from minish.tokens import Token, TokenType, link_tokens

_INPUT_KINDS = frozenset({TokenType.STDIN, TokenType.HEREDOC})
_OUTPUT_KINDS = frozenset({TokenType.STDOUT, TokenType.APPEND})
_LOGICAL = frozenset({TokenType.LOGICAL_AND, TokenType.LOGICAL_OR})


@dataclass(frozen=True)
class Redirection:
    """One redirection of a command; for a here-document the target is its delimiter."""

    kind: TokenType
    target: str


@dataclass
class Command:
    """A simple command: its arguments, redirections and pipe neighbours."""

    argv: list[str] = field(default_factory=list)
    redirections: list[Redirection] = field(default_factory=list)
    pipe_before: bool = False
    pipe_after: bool = False

    @property
    def argc(self) -> int:
        return len(self.argv)

    def input_redirections(self) -> list[Redirection]:
        """Return the ``<`` and ``<<`` redirections in the order written."""
        return [r for r in self.redirections if r.kind in _INPUT_KINDS]

    def output_redirections(self) -> list[Redirection]:
        """Return the ``>`` and ``>>`` redirections in the order written."""
        return [r for r in self.redirections if r.kind in _OUTPUT_KINDS]

    def heredoc_delimiters(self) -> list[str]:
        """Return the delimiters of the command's here-documents, in order."""
        return [r.target for r in self.redirections if r.kind == TokenType.HEREDOC]


class Connector(Enum):
    """What follows a list: ``&&``, ``||`` or the end of the line."""

    AND = "&&"
    OR = "||"
    END = ""


@dataclass
class CommandList:
    """Commands joined by pipes, and the operator that follows them."""

    commands: list[Command] = field(default_factory=list)
    connector: Connector = Connector.END

    @property
    def size(self) -> int:
        return len(self.commands)


def _split_after(
    tokens: Iterable[Token], is_end: Callable[[Token], bool]
) -> Iterator[list[Token]]:
    """Yield runs of tokens, each closed by (and including) an ending token."""
    group: list[Token] = []
    for token in tokens:
        group.append(token)
        if is_end(token):
            yield group
            group = []
    if group:
        yield group


def build_command(tokens: Sequence[Token], pipe_before: bool) -> Command:
    """Build a command from its tokens, including the operator that ends it.

    Redirection operators and their targets are marked as parsed; the
    remaining unparsed words become the arguments.
    """
    command = Command(pipe_before=bool(pipe_before))
    if tokens and tokens[-1].type == TokenType.PIPE:
        command.pipe_after = True
        tokens[-1].is_parsed = True

    body: list[Token] = []
    for token in tokens:
        if token.is_command_end():
            break
        body.append(token)

    for token, target in zip(body, body[1:]):
        if token.is_redirection():
            command.redirections.append(Redirection(token.type, target.value))
            token.is_parsed = True
            target.is_parsed = True

    for token in body:
        if token.type == TokenType.WORD and not token.is_parsed:
            command.argv.append(token.value)
            token.is_parsed = True
    return command


def _connector_for(token: Token) -> Connector:
    if token.type == TokenType.LOGICAL_AND:
        return Connector.AND
    if token.type == TokenType.LOGICAL_OR:
        return Connector.OR
    return Connector.END


def build_lists(tokens: Sequence[Token]) -> list[CommandList]:
    """Split a token chain at ``&&`` and ``||`` into lists of piped commands."""
    lists: list[CommandList] = []
    for group in _split_after(tokens, lambda t: t.type in _LOGICAL):
        command_list = CommandList(connector=_connector_for(group[-1]))
        after_pipe = False
        for segment in _split_after(group, Token.is_command_end):
            command_list.commands.append(build_command(segment, after_pipe))
            if segment[-1].type == TokenType.PIPE:
                after_pipe = True
        lists.append(command_list)
    return lists


def expand_relative_arguments(argv: Sequence[str], env: Environment) -> list[str]:
    """Prefix arguments starting with ``./`` with the value of ``PWD``."""
    result: list[str] = []
    for argument in argv:
        if argument.startswith("./"):
            pwd: Optional[str] = env.get("PWD")
            argument = (pwd or "") + argument[1:]
        result.append(argument)
    return result


def prepare(tokens: Iterable[Token], state: ShellState) -> list[CommandList]:
    """Check, expand and group the tokens of one command line.

    Raises ShellSyntaxError or AmbiguousRedirectError for a line that cannot
    run; each carries the exit status the shell reports for it.
    """
    chain = link_tokens(tokens)
    if not chain:
        return []
    check_syntax(chain)
    check_ambiguous_star(chain)
    expand_tokens(chain, state.env, state.last_status)
    lists = build_lists(chain)
    for command_list in lists:
        for command in command_list.commands:
            command.argv = expand_relative_arguments(command.argv, state.env)
    return lists