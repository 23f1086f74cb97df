import errno
import io
import os

import pytest

from minish.commands import Command, Redirection
from minish.redirections import (
    HD_CTRLD,
    HeredocInterrupted,
    OpenedFiles,
    RedirectionError,
    check_output_directory,
    open_command_files,
    open_redirection,
    read_heredoc,
)
from minish.tokens import TokenType


def _read_fd(fd):
    chunks = []
    while True:
        chunk = os.read(fd, 4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks).decode()


def _interrupted_lines():
    yield "first\n"
    raise KeyboardInterrupt


def test_stdout_truncates(tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("old content")
    fd = open_redirection(str(target), TokenType.STDOUT)
    os.write(fd, b"new")
    os.close(fd)
    assert target.read_text() == "new"


def test_append_keeps_content(tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("one\n")
    fd = open_redirection(str(target), TokenType.APPEND)
    os.write(fd, b"two\n")
    os.close(fd)
    assert target.read_text() == "one\ntwo\n"


def test_stdin_reads(tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("hello")
    fd = open_redirection(str(source), TokenType.STDIN)
    try:
        assert _read_fd(fd) == "hello"
    finally:
        os.close(fd)


def test_stdin_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        open_redirection(str(tmp_path / "missing"), TokenType.STDIN)


def test_unknown_kind_raises(tmp_path):
    with pytest.raises(ValueError):
        open_redirection(str(tmp_path / "x"), TokenType.PIPE)


def test_output_directory_missing(tmp_path):
    name = str(tmp_path / "nodir" / "file")
    with pytest.raises(RedirectionError) as info:
        check_output_directory(name)
    assert info.value.reason == os.strerror(errno.ENOENT)
    assert str(info.value) == f"minishell: {name}: {os.strerror(errno.ENOENT)}"


def test_output_directory_is_a_file(tmp_path):
    plain = tmp_path / "plain"
    plain.write_text("")
    name = str(plain) + "/file"
    with pytest.raises(RedirectionError) as info:
        check_output_directory(name)
    assert info.value.reason == "Not a directory"
    assert info.value.name == name


def test_heredoc_stops_at_delimiter(tmp_path):
    path = str(tmp_path / "doc")
    source = iter(["a\n", "b\n", "EOF\n", "c\n"])
    prompt = io.StringIO()
    err = io.StringIO()
    fd = read_heredoc("EOF", source, path, prompt, err)
    try:
        assert _read_fd(fd) == "a\nb\n"
    finally:
        os.close(fd)
    assert next(source) == "c\n"
    assert prompt.getvalue() == "> > > "
    assert err.getvalue() == ""


def test_heredoc_end_of_input_warns(tmp_path):
    path = str(tmp_path / "doc")
    err = io.StringIO()
    fd = read_heredoc("EOF", ["only\n"], path, None, err)
    try:
        assert _read_fd(fd) == "only\n"
    finally:
        os.close(fd)
    assert err.getvalue() == f"{HD_CTRLD}EOF')\n"


def test_heredoc_interrupt_removes_file(tmp_path):
    path = tmp_path / "doc"
    with pytest.raises(HeredocInterrupted):
        read_heredoc("EOF", _interrupted_lines(), str(path), None, io.StringIO())
    assert not path.exists()
    assert HeredocInterrupted.exit_status == 130


def test_command_files_keep_last_output(tmp_path):
    first = tmp_path / "first"
    second = tmp_path / "second"
    command = Command(
        argv=["cat"],
        redirections=[
            Redirection(TokenType.STDOUT, str(first)),
            Redirection(TokenType.STDOUT, str(second)),
        ],
    )
    with open_command_files(command, [], str(tmp_path / "doc"), io.StringIO()) as files:
        assert files.infile_fd is None
        os.write(files.outfile_fd, b"data")
    assert first.exists()
    assert first.read_text() == ""
    assert second.read_text() == "data"


def test_command_files_heredoc_is_last_input(tmp_path, monkeypatch):
    monkeypatch.setattr("sys.stdout", io.StringIO())
    source = tmp_path / "in.txt"
    source.write_text("from file")
    doc = tmp_path / "doc"
    command = Command(
        argv=["cat"],
        redirections=[
            Redirection(TokenType.STDIN, str(source)),
            Redirection(TokenType.HEREDOC, "END"),
        ],
    )
    files = open_command_files(command, ["line\n", "END\n"], str(doc), io.StringIO())
    try:
        assert _read_fd(files.infile_fd) == "line\n"
        assert files.heredoc_path == str(doc)
    finally:
        files.close()
    assert files.infile_fd is None
    assert not doc.exists()


def test_missing_input_stops_before_outputs(tmp_path):
    out = tmp_path / "out"
    missing = str(tmp_path / "missing")
    command = Command(
        argv=["cat"],
        redirections=[
            Redirection(TokenType.STDOUT, str(out)),
            Redirection(TokenType.STDIN, missing),
        ],
    )
    with pytest.raises(RedirectionError) as info:
        open_command_files(command, [], str(tmp_path / "doc"), io.StringIO())
    assert info.value.name == missing
    assert info.value.exit_status == 1
    assert not out.exists()


def test_opened_files_close_releases_descriptors(tmp_path):
    target = tmp_path / "out"
    fd = open_redirection(str(target), TokenType.STDOUT)
    with OpenedFiles(outfile_fd=fd) as files:
        assert files.outfile_fd == fd
    assert files.outfile_fd is None
    with pytest.raises(OSError):
        os.fstat(fd)