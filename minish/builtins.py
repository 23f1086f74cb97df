"""Commands the shell runs itself instead of starting a program."""

from __future__ import annotations

import os
from typing import Optional, Sequence, TextIO

from minish.env import (
    Environment,
    ShellState,
    is_valid_identifier,
    is_valid_number,
    parse_long,
)

CD_ONE_ARG = "minishell: cd: no absolute or relative path specified\n"
CD_TOO_MANY_ARG_ERROR = "minishell: cd: too many arguments\n"
EXIT_TOO_MANY_ARG_ERROR = "minishell: exit: too many arguments\n"

BUILTIN_NAMES = frozenset({"cd", "echo", "env", "exit", "export", "pwd", "unset"})

_CURRENT = 1
_PARENT = 2
_PREVIOUS = 3
_HOME = 4
_PARENT_PATH = 5
_RELATIVE = 6
_ABSOLUTE = 0


def is_builtin(argv: Sequence[str]) -> bool:
    """Tell whether the command named by ``argv[0]`` is a builtin."""
    return bool(argv) and bool(argv[0]) and argv[0] in BUILTIN_NAMES


def _relative_kind(argument: str) -> int:
    """Classify a ``cd`` argument; a short argument matches as a prefix."""
    if ".".startswith(argument):
        return _CURRENT
    if "..".startswith(argument):
        return _PARENT
    if "--".startswith(argument):
        return _PREVIOUS
    if "~".startswith(argument) or "~/".startswith(argument):
        return _HOME
    if argument.startswith("../"):
        return _PARENT_PATH
    if not argument.startswith("/"):
        return _RELATIVE
    return _ABSOLUTE


def _renew_value(env: Environment, key: str, value: str) -> None:
    """Replace the value of the first variable whose name starts with ``key``."""
    for name in env.keys():
        if name.startswith(key):
            env.set(name, value)
            return


def _oserror(prefix: str, exc: OSError, err: TextIO) -> None:
    err.write(f"{prefix}: {exc.strerror or exc}\n")


def cd(argv: Sequence[str], env: Environment, err: TextIO) -> int:
    """Change the working directory and keep ``PWD`` and ``OLDPWD`` current."""
    if len(argv) == 1:
        err.write(CD_ONE_ARG)
        return 1
    if len(argv) > 2:
        err.write(CD_TOO_MANY_ARG_ERROR)
        return 1
    try:
        old_cwd = os.getcwd()
    except OSError as exc:
        _oserror("minishell: cd", exc, err)
        return 1

    argument = argv[1]
    kind = _relative_kind(argument)
    path: Optional[str]
    if kind == _PREVIOUS:
        path = env.get("OLDPWD")
        if path is None:
            err.write("minishell: cd: OLDPWD not set\n")
            return 1
    elif kind == _HOME:
        path = env.get("HOME")
        if path is None:
            err.write("minishell: cd: HOME not set\n")
            return 1
    else:
        path = argument

    try:
        os.chdir(path)
    except OSError as exc:
        _oserror("minishell: cd", exc, err)
        return 1

    if kind != _CURRENT:
        try:
            new_cwd = os.getcwd()
        except OSError as exc:
            _oserror("minishell: cd", exc, err)
        else:
            _renew_value(env, "OLDPWD", old_cwd)
            _renew_value(env, "PWD", new_cwd)
    return 0


def echo(argv: Sequence[str], out: TextIO) -> int:
    """Print the arguments separated by spaces; leading ``-n`` drops the newline."""
    args = list(argv[1:])
    newline = True
    while args and args[0] == "-n":
        newline = False
        args.pop(0)
    out.write(" ".join(args))
    if newline:
        out.write("\n")
    return 0


def print_env(env: Environment, out: TextIO) -> int:
    """Print every variable that has a value as ``KEY=VALUE``."""
    for key in env.keys():
        value = env.get(key)
        if key and value is not None:
            out.write(f"{key}={value}\n")
    return 0


def exit_builtin(
    state: ShellState, argv: Sequence[str], out: TextIO, err: TextIO
) -> int:
    """Ask the shell to exit, setting the code it exits with."""
    out.write("exit\n")
    state.should_exit = True
    if len(argv) == 1:
        state.exit_code = 0
        return 0
    if len(argv) > 2:
        err.write(EXIT_TOO_MANY_ARG_ERROR)
        state.exit_code = 1
        state.should_exit = False
        return 1
    argument = argv[1]
    if not is_valid_number(argument):
        state.exit_code = 2
        err.write(f"minishell: exit: {argument}: numeric argument required\n")
    else:
        state.exit_code = parse_long(argument) % 256
    return 0


def _export_listing(env: Environment, out: TextIO) -> int:
    for key in env.sorted_keys():
        value = env.get(key)
        if value is not None:
            out.write(f'declare -x {key}="{value}"\n')
        else:
            out.write(f"declare -x {key}=''\n")
    return 0


def export(argv: Sequence[str], env: Environment, out: TextIO, err: TextIO) -> int:
    """List the variables, or define and update them from ``KEY[=VALUE]`` arguments."""
    if len(argv) == 1:
        return _export_listing(env, out)
    status = 0
    for argument in argv[1:]:
        if not is_valid_identifier(argument):
            err.write(f"minishell: export: '{argument}': not a valid identifier\n")
            status = 1
        else:
            env.add(argument)
    return status


def pwd(out: TextIO, err: TextIO) -> int:
    """Print the working directory."""
    try:
        cwd = os.getcwd()
    except OSError as exc:
        _oserror("minishell: pwd", exc, err)
        return 1
    out.write(f"{cwd}\n")
    return 0


def unset(argv: Sequence[str], env: Environment) -> int:
    """Remove each named variable; unknown names are ignored."""
    for key in argv[1:]:
        env.unset(key)
    return 0


def run_builtin(
    state: ShellState, argv: Sequence[str], out: TextIO, err: TextIO
) -> int:
    """Run the builtin named by ``argv[0]`` and return its status."""
    if not argv:
        return 0
    name = argv[0]
    if name == "cd":
        return cd(argv, state.env, err)
    if name == "echo":
        return echo(argv, out)
    if name == "env":
        return print_env(state.env, out)
    if name == "exit":
        return exit_builtin(state, argv, out, err)
    if name == "export":
        status = export(argv, state.env, out, err)
        state.refresh_envp()
        return status
    if name == "pwd":
        return pwd(out, err)
    if name == "unset":
        status = unset(argv, state.env)
        state.refresh_envp()
        return status
    return 0