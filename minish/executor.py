"""Running command lists: builtins inside the shell, other commands as child processes."""

from __future__ import annotations

import copy
import os
import signal
import stat
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence, TextIO, Union

from minish.builtins import is_builtin, run_builtin
from minish.commands import Command, CommandList, Connector
from minish.env import ShellState
from minish.redirections import (
    HEREDOC_FILE,
    HeredocInterrupted,
    OpenedFiles,
    RedirectionError,
    open_command_files,
)

SIGNAL_EXIT = 128
COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127
FAILURE = 1


class CommandNotFound(Exception):
    """No program of the given name was found on ``PATH``."""

    exit_status = COMMAND_NOT_FOUND

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name}: command not found")


def find_paths(envp: Sequence[str]) -> Optional[list[str]]:
    """Return the non-empty directories of ``PATH``, or None if it is not set."""
    for entry in envp:
        if entry.startswith("PATH="):
            return [directory for directory in entry[5:].split(":") if directory]
    return None


def make_path(name: str, envp: Sequence[str]) -> str:
    """Return the file to run for ``name``; absolute names are used as they are.

    Raises CommandNotFound when no ``PATH`` directory holds the name.
    """
    if name.startswith("/"):
        return name
    for directory in find_paths(envp) or ():
        candidate = f"{directory}/{name}"
        if os.path.exists(candidate):
            return candidate
    raise CommandNotFound(name)


def exec_error_status(path: str) -> int:
    """Return the status reported when ``path`` could not be run."""
    try:
        info = os.stat(path)
    except FileNotFoundError:
        return COMMAND_NOT_FOUND
    except PermissionError:
        return COMMAND_NOT_EXECUTABLE
    except OSError:
        return FAILURE
    if stat.S_ISDIR(info.st_mode) or not os.access(path, os.X_OK):
        return COMMAND_NOT_EXECUTABLE
    return FAILURE


def _exec_error_message(name: str, path: str, exc: OSError) -> str:
    if os.path.isdir(path):
        return f"minishell: {name}: Is a directory\n"
    return f"minishell: {name}: {exc.strerror or exc}\n"


def _environ(envp: Sequence[str]) -> dict[str, str]:
    environ: dict[str, str] = {}
    for entry in envp:
        key, _, value = entry.partition("=")
        if key:
            environ[key] = value
    return environ


def _status_of(returncode: int) -> int:
    if returncode < 0:
        return SIGNAL_EXIT - returncode
    return returncode


def _flush(*streams: TextIO) -> None:
    for stream in streams:
        try:
            stream.flush()
        except (OSError, ValueError):
            pass


def _report(err: TextIO, message: str) -> None:
    err.write(message)
    _flush(err)


@dataclass
class _BuiltinStage:
    """A builtin running on its own thread as one stage of a pipeline."""

    thread: threading.Thread
    result: dict = field(default_factory=dict)

    def wait(self) -> int:
        self.thread.join()
        return self.result.get("status", FAILURE)


_Stage = Union[subprocess.Popen, _BuiltinStage, int]


def _wait(stage: _Stage) -> int:
    if isinstance(stage, int):
        return stage
    if isinstance(stage, _BuiltinStage):
        return stage.wait()
    return _status_of(stage.wait())


def _spawn(
    state: ShellState,
    argv: Sequence[str],
    stdin_fd: int,
    stdout_fd: int,
    stderr_fd: int,
    err: TextIO,
) -> Union[subprocess.Popen, int]:
    """Start an external command, or return the status it failed with."""
    try:
        path = make_path(argv[0], state.envp)
    except CommandNotFound as exc:
        _report(err, f"{exc}\n")
        return exc.exit_status
    try:
        return subprocess.Popen(
            list(argv),
            executable=path,
            stdin=stdin_fd,
            stdout=stdout_fd,
            stderr=stderr_fd,
            env=_environ(state.envp),
        )
    except OSError as exc:
        _report(err, _exec_error_message(argv[0], path, exc))
        return exec_error_status(path)


def _start_builtin(
    state: ShellState, argv: Sequence[str], out_fd: int, err: TextIO
) -> _BuiltinStage:
    """Run a builtin on a copy of the state, writing to ``out_fd``."""
    child_state = copy.deepcopy(state)
    stream = os.fdopen(os.dup(out_fd), "w")
    stage = _BuiltinStage(thread=threading.Thread(daemon=True))

    def run() -> None:
        try:
            with stream:
                stage.result["status"] = run_builtin(child_state, argv, stream, err)
        except BrokenPipeError:
            stage.result["status"] = SIGNAL_EXIT + signal.SIGPIPE

    stage.thread = threading.Thread(target=run, daemon=True)
    stage.thread.start()
    return stage


def _run_single(
    state: ShellState,
    command: Command,
    files: OpenedFiles,
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    if not command.argv or command.argv[0] == "":
        return 0
    if is_builtin(command.argv):
        if files.outfile_fd is not None:
            with os.fdopen(files.outfile_fd, "w", closefd=False) as out:
                return run_builtin(state, command.argv, out, stderr)
        status = run_builtin(state, command.argv, stdout, stderr)
        _flush(stdout)
        return status
    _flush(stdout, stderr)
    in_fd = files.infile_fd if files.infile_fd is not None else stdin.fileno()
    out_fd = files.outfile_fd if files.outfile_fd is not None else stdout.fileno()
    return _wait(_spawn(state, command.argv, in_fd, out_fd, stderr.fileno(), stderr))


def _start_stage(
    state: ShellState,
    command: Command,
    files: Optional[OpenedFiles],
    in_fd: int,
    out_fd: int,
    stderr: TextIO,
) -> _Stage:
    if files is None:
        return FAILURE
    if not command.argv:
        return 0
    if files.infile_fd is not None:
        in_fd = files.infile_fd
    if files.outfile_fd is not None:
        out_fd = files.outfile_fd
    if is_builtin(command.argv):
        return _start_builtin(state, command.argv, out_fd, stderr)
    return _spawn(state, command.argv, in_fd, out_fd, stderr.fileno(), stderr)


def _run_pipeline(
    state: ShellState,
    commands: Sequence[Command],
    files: Sequence[Optional[OpenedFiles]],
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
) -> int:
    last = len(commands) - 1
    pipes: list[tuple[int, int]] = []
    open_fds: set[int] = set()
    try:
        for _ in range(last):
            read_end, write_end = os.pipe()
            pipes.append((read_end, write_end))
            open_fds.update((read_end, write_end))
    except OSError as exc:
        for fd in open_fds:
            os.close(fd)
        _report(stderr, f"minishell: pipe: {exc.strerror or exc}\n")
        return FAILURE

    def release(fd: int) -> None:
        if fd in open_fds:
            open_fds.discard(fd)
            os.close(fd)

    _flush(stdout, stderr)
    stages: list[_Stage] = []
    try:
        for index, command in enumerate(commands):
            in_fd = pipes[index - 1][0] if index > 0 else stdin.fileno()
            out_fd = pipes[index][1] if index < last else stdout.fileno()
            stages.append(
                _start_stage(state, command, files[index], in_fd, out_fd, stderr)
            )
            if index > 0:
                release(pipes[index - 1][0])
            if index < last:
                release(pipes[index][1])
    finally:
        for fd in list(open_fds):
            release(fd)
    status = 0
    for stage in stages:
        status = _wait(stage)
    return status


def run_command_list(
    state: ShellState,
    command_list: CommandList,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Open the redirections of a pipeline, run it and return its status.

    The status is that of the last command.  If the last command's files
    cannot be opened it does not run and the status is 1; an interrupted
    here-document gives 130.
    """
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr
    commands = command_list.commands
    if not commands:
        return 0
    opened: list[Optional[OpenedFiles]] = []
    try:
        for index, command in enumerate(commands):
            if not command.redirections:
                opened.append(OpenedFiles())
                continue
            try:
                opened.append(open_command_files(command, stdin, HEREDOC_FILE, stderr))
            except RedirectionError as exc:
                _report(stderr, f"{exc}\n")
                opened.append(None)
                if index == len(commands) - 1:
                    return exc.exit_status
        if len(commands) == 1:
            files = opened[0]
            assert files is not None
            return _run_single(state, commands[0], files, stdin, stdout, stderr)
        return _run_pipeline(state, commands, opened, stdin, stdout, stderr)
    except HeredocInterrupted as exc:
        return exc.exit_status
    finally:
        for files in opened:
            if files is not None:
                files.close()


def execute(
    state: ShellState,
    lists: Sequence[CommandList],
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Run lists joined by ``&&`` and ``||``; record and return the status for ``$?``.

    A list that is skipped keeps status 0.  Once ``exit`` has asked the shell
    to stop, no further list runs.
    """
    statuses = [0] * len(lists)
    for index, command_list in enumerate(lists):
        if index > 0:
            if state.should_exit:
                break
            connector = lists[index - 1].connector
            previous = statuses[index - 1]
            if connector is Connector.AND:
                if previous != 0:
                    continue
            elif connector is Connector.OR:
                if previous == 0:
                    continue
            else:
                continue
        statuses[index] = run_command_list(state, command_list, stdin, stdout, stderr)
    status = statuses[-1] if statuses else 0
    state.set_last_status(status)
    return status