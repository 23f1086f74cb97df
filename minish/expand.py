"""Expansion of ``$NAME`` and ``$?`` inside words."""

from __future__ import annotations

from typing import Iterable

from minish.env import Environment
from minish.tokens import Token

_LETTERS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
_DIGITS = frozenset("0123456789")


def is_name_char(char: str) -> bool:
    """Tell whether ``char`` may appear in a variable reference."""
    return char in _LETTERS or char in _DIGITS or char in ("_", "?")


def is_name_start(char: str) -> bool:
    """Tell whether ``char`` may follow ``$`` to start a variable reference."""
    return char in _LETTERS or char in ("_", "?")


def lookup_variable(key: str, env: Environment, last_status: int) -> str:
    """Return what ``key`` (with or without its ``$``) expands to."""
    if key.startswith("$"):
        key = key[1:]
    if key == "?":
        return str(last_status)
    return env.get(key) or ""


def _read_reference(value: str, start: int) -> int:
    """Return the index just past the reference whose ``$`` is at ``start``."""
    index = start + 1
    while index < len(value) and is_name_char(value[index]):
        index += 1
        if value[index - 1] == "?":
            break
    return index


def expand_word(value: str, env: Environment, last_status: int) -> str:
    """Replace variable references outside single quotes; quotes are kept."""
    parts: list[str] = []
    in_single = False
    index = 0
    while index < len(value):
        char = value[index]
        if char == "'":
            in_single = not in_single
        if (
            char == "$"
            and index + 1 < len(value)
            and is_name_start(value[index + 1])
            and not in_single
        ):
            end = _read_reference(value, index)
            parts.append(lookup_variable(value[index:end], env, last_status))
            index = end
        else:
            parts.append(char)
            index += 1
    return "".join(parts)


def expand_tokens(tokens: Iterable[Token], env: Environment, last_status: int) -> None:
    """Expand, in place, the value of every token that contains ``$``."""
    for token in tokens:
        if "$" in token.value:
            token.value = expand_word(token.value, env, last_status)