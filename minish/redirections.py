"""Opening the files a command redirects from and to, here-documents included."""

from __future__ import annotations

import errno
import os
import stat
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, TextIO

from minish.commands import Command
from minish.tokens import TokenType

HD_CTRLD = "minishell: here-document delimited by end-of-file (wanted `"
HEREDOC_FILE = "here_doc.txt"
HEREDOC_PROMPT = "> "

_FILE_MODE = 0o644


class RedirectionError(Exception):
    """A redirection whose file cannot be opened."""

    exit_status = 1

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"minishell: {name}: {reason}")


class HeredocInterrupted(Exception):
    """Reading a here-document was interrupted by the user."""

    exit_status = 130


@dataclass
class OpenedFiles:
    """The descriptors a command reads from and writes to, once opened."""

    infile_fd: Optional[int] = None
    outfile_fd: Optional[int] = None
    heredoc_path: Optional[str] = None

    def close(self) -> None:
        """Close the descriptors and remove the here-document file."""
        for fd in (self.infile_fd, self.outfile_fd):
            if fd is not None:
                try:
                    os.close(fd)
                except OSError:
                    pass
        self.infile_fd = None
        self.outfile_fd = None
        if self.heredoc_path is not None:
            try:
                os.unlink(self.heredoc_path)
            except FileNotFoundError:
                pass
            self.heredoc_path = None

    def __enter__(self) -> "OpenedFiles":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def check_output_directory(name: str) -> None:
    """Raise RedirectionError unless the directory of ``name`` is writable."""
    folder = name.rpartition("/")[0] if "/" in name else "."
    try:
        info = os.stat(folder)
    except OSError as exc:
        raise RedirectionError(name, exc.strerror or str(exc)) from None
    if not stat.S_ISDIR(info.st_mode):
        raise RedirectionError(name, "Not a directory")
    if folder == "/":
        return
    if not os.access(folder, os.W_OK):
        raise RedirectionError(name, os.strerror(errno.EACCES))


def open_redirection(name: str, kind: TokenType) -> int:
    """Open ``name`` as the redirection ``kind`` asks and return the descriptor.

    Raises OSError if the file cannot be opened.
    """
    if kind == TokenType.STDIN:
        return os.open(name, os.O_RDONLY)
    if kind in (TokenType.HEREDOC, TokenType.STDOUT):
        return os.open(name, os.O_RDWR | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
    if kind == TokenType.APPEND:
        return os.open(name, os.O_RDWR | os.O_CREAT | os.O_APPEND, _FILE_MODE)
    raise ValueError(f"not a redirection: {kind!r}")


def read_heredoc(
    delimiter: str,
    lines: Iterable[str],
    path: str,
    prompt: Optional[TextIO],
    err: TextIO,
) -> int:
    """Copy lines into ``path`` up to ``delimiter``; return it opened for reading.

    End of input also ends the document, with a warning on ``err``.  An
    interrupt removes the file and raises HeredocInterrupted.
    """
    source: Iterator[str] = iter(lines)
    fd = open_redirection(path, TokenType.HEREDOC)
    with open(fd, "w", closefd=True) as document:
        while True:
            if prompt is not None:
                prompt.write(HEREDOC_PROMPT)
                prompt.flush()
            try:
                line = next(source)
            except StopIteration:
                err.write(f"{HD_CTRLD}{delimiter}')\n")
                break
            except KeyboardInterrupt:
                document.close()
                try:
                    os.unlink(path)
                except FileNotFoundError:
                    pass
                raise HeredocInterrupted() from None
            if line.endswith("\n"):
                line = line[:-1]
            if line == delimiter:
                break
            document.write(line + "\n")
    try:
        return os.open(path, os.O_RDONLY)
    except OSError as exc:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        raise RedirectionError(path, exc.strerror or str(exc)) from None


def _open_input(files: OpenedFiles, name: str) -> None:
    if not os.path.exists(name):
        raise RedirectionError(name, os.strerror(errno.ENOENT))
    try:
        fd = open_redirection(name, TokenType.STDIN)
    except OSError as exc:
        raise RedirectionError(name, exc.strerror or str(exc)) from None
    _replace_input(files, fd)


def _replace_input(files: OpenedFiles, fd: int) -> None:
    if files.infile_fd is not None:
        os.close(files.infile_fd)
    files.infile_fd = fd


def _open_output(files: OpenedFiles, name: str, kind: TokenType) -> None:
    check_output_directory(name)
    try:
        fd = open_redirection(name, kind)
    except OSError as exc:
        raise RedirectionError(name, exc.strerror or str(exc)) from None
    if files.outfile_fd is not None:
        os.close(files.outfile_fd)
    files.outfile_fd = fd


def open_command_files(
    command: Command,
    lines: Iterable[str],
    heredoc_path: str = HEREDOC_FILE,
    err: Optional[TextIO] = None,
) -> OpenedFiles:
    """Open every redirection of ``command`` in order, inputs before outputs.

    Only the last input and the last output stay open.  On failure everything
    opened so far is closed and RedirectionError or HeredocInterrupted is
    raised; the error is not printed.
    """
    import sys

    error_stream = err if err is not None else sys.stderr
    files = OpenedFiles()
    try:
        for redirection in command.input_redirections():
            if redirection.kind == TokenType.STDIN:
                _open_input(files, redirection.target)
            else:
                files.heredoc_path = heredoc_path
                fd = read_heredoc(
                    redirection.target, lines, heredoc_path, sys.stdout, error_stream
                )
                _replace_input(files, fd)
        for redirection in command.output_redirections():
            _open_output(files, redirection.target, redirection.kind)
    except BaseException:
        files.close()
        raise
    return files