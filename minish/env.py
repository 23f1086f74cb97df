"""Shell environment variables and the state shared across a session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

_WHITESPACE = " \t\n\v\f\r"
_ASCII_LETTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_ASCII_DIGITS = "0123456789"


def _wrap(number: int, bits: int) -> int:
    """Reduce ``number`` to a signed integer of ``bits`` width, two's complement."""
    half = 1 << (bits - 1)
    return ((number + half) % (1 << bits)) - half


def split_assignment(entry: str) -> tuple[str, Optional[str]]:
    """Split ``KEY=VALUE`` at the first ``=``; the value is None without one."""
    key, sep, value = entry.partition("=")
    return key, (value if sep else None)


def entry_key(entry: str) -> str:
    """Return the part of ``entry`` before the first ``=``."""
    return entry.partition("=")[0]


def is_valid_identifier(argument: str) -> bool:
    """Tell whether the key of ``argument`` is a valid variable name."""
    key = entry_key(argument)
    if not key or (key[0] not in _ASCII_LETTERS and key[0] != "_"):
        return False
    return all(
        ch in _ASCII_LETTERS or ch in _ASCII_DIGITS or ch == "_" for ch in key[1:]
    )


def is_valid_number(text: Optional[str]) -> bool:
    """Tell whether ``text`` is an optional sign followed only by digits."""
    if not text:
        return False
    body = text[1:] if text[0] in "+-" else text
    return all(ch in _ASCII_DIGITS for ch in body)


def _parse_integer(text: str, bits: int) -> int:
    index = 0
    while index < len(text) and text[index] in _WHITESPACE:
        index += 1
    sign = 1
    if index < len(text) and text[index] in "+-":
        if text[index] == "-":
            sign = -1
        index += 1
    result = 0
    while index < len(text) and text[index] in _ASCII_DIGITS:
        result = _wrap(result * 10 + int(text[index]), bits)
        index += 1
    return _wrap(result * sign, bits)


def parse_long(text: str) -> int:
    """Parse a leading integer as a 64-bit signed value, wrapping on overflow."""
    return _parse_integer(text, 64)


def parse_int(text: str) -> int:
    """Parse a leading integer as a 32-bit signed value, wrapping on overflow."""
    return _parse_integer(text, 32)


class Environment:
    """Ordered shell variables; a variable may exist without a value."""

    def __init__(self, entries: Iterable[tuple[str, Optional[str]]] = ()) -> None:
        self._vars: dict[str, Optional[str]] = {}
        for key, value in entries:
            self._vars[key] = value

    @classmethod
    def from_envp(cls, envp: Iterable[str]) -> "Environment":
        """Build an environment from ``KEY=VALUE`` strings."""
        return cls(split_assignment(entry) for entry in envp)

    def get(self, key: str) -> Optional[str]:
        """Return the value of ``key``, or None if it is unset or has no value."""
        return self._vars.get(key)

    def set(self, key: str, value: Optional[str]) -> None:
        """Give ``key`` a value, appending it if it is not yet defined."""
        self._vars[key] = value

    def add(self, entry: str) -> None:
        """Apply an ``export`` argument: define a new variable or replace the value.

        Exporting an existing name without ``=`` clears its value.
        """
        key, value = split_assignment(entry)
        self._vars[key] = value

    def unset(self, key: str) -> None:
        """Remove ``key`` if it is defined."""
        self._vars.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._vars

    def __len__(self) -> int:
        return len(self._vars)

    def keys(self) -> list[str]:
        """Return the variable names in definition order."""
        return list(self._vars)

    def sorted_keys(self) -> list[str]:
        """Return the variable names in byte order."""
        return sorted(self._vars, key=lambda k: k.encode())

    def to_envp(self) -> list[str]:
        """Return ``KEY=VALUE`` strings, ``KEY=`` for variables without value."""
        return [f"{key}={value or ''}" for key, value in self._vars.items()]

    def increment_shlvl(self) -> None:
        """Add one to ``SHLVL`` if it is defined."""
        if "SHLVL" in self._vars:
            level = parse_int(self._vars["SHLVL"] or "")
            self._vars["SHLVL"] = str(_wrap(level + 1, 32))


@dataclass
class ShellState:
    """Everything a running shell carries from one command line to the next."""

    env: Environment = field(default_factory=Environment)
    envp: list[str] = field(default_factory=list)
    last_status: int = 0
    exit_code: int = 0
    should_exit: bool = False

    @classmethod
    def from_envp(cls, envp: Iterable[str]) -> "ShellState":
        """Start a session from the inherited environment, raising SHLVL."""
        env = Environment.from_envp(envp)
        env.increment_shlvl()
        return cls(env=env, envp=env.to_envp())

    def refresh_envp(self) -> None:
        """Rebuild the exported string list after the variables changed."""
        self.envp = self.env.to_envp()

    def set_last_status(self, status: int) -> None:
        """Record the status that ``$?`` expands to."""
        self.last_status = status