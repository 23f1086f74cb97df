import pytest

from minish.env import (
    Environment,
    ShellState,
    entry_key,
    is_valid_identifier,
    is_valid_number,
    parse_int,
    parse_long,
    split_assignment,
)


@pytest.fixture
def env():
    return Environment.from_envp(["HOME=/home/user", "PATH=/bin:/usr/bin", "SHLVL=1", "EMPTY"])


def test_split_assignment_first_equals():
    assert split_assignment("A=b=c") == ("A", "b=c")
    assert split_assignment("NOVALUE") == ("NOVALUE", None)
    assert split_assignment("X=") == ("X", "")


def test_entry_key():
    assert entry_key("KEY=value") == "KEY"
    assert entry_key("KEY") == "KEY"


def test_from_envp_keeps_order_and_values(env):
    assert env.keys() == ["HOME", "PATH", "SHLVL", "EMPTY"]
    assert env.get("PATH") == "/bin:/usr/bin"
    assert env.get("EMPTY") is None
    assert "EMPTY" in env
    assert "MISSING" not in env
    assert len(env) == 4


def test_to_envp_round_trip(env):
    envp = env.to_envp()
    assert envp[:3] == ["HOME=/home/user", "PATH=/bin:/usr/bin", "SHLVL=1"]
    assert envp[3] == "EMPTY="
    again = Environment.from_envp(envp[:3])
    assert again.to_envp() == envp[:3]


def test_add_new_and_existing(env):
    env.add("NEW=1")
    assert env.keys()[-1] == "NEW"
    assert env.get("NEW") == "1"
    env.add("HOME=/tmp")
    assert env.get("HOME") == "/tmp"
    assert env.keys()[0] == "HOME"


def test_add_without_value_clears_existing(env):
    env.add("HOME")
    assert "HOME" in env
    assert env.get("HOME") is None


def test_set_and_unset(env):
    env.set("PATH", "/opt")
    assert env.get("PATH") == "/opt"
    env.unset("PATH")
    assert "PATH" not in env
    env.unset("PATH")
    assert len(env) == 3


def test_sorted_keys(env):
    env.add("_UNDER=1")
    env.add("apple=1")
    keys = env.sorted_keys()
    assert keys == sorted(env.keys())
    assert keys.index("_UNDER") > keys.index("SHLVL")
    assert keys[-1] == "apple"


def test_increment_shlvl(env):
    env.increment_shlvl()
    assert env.get("SHLVL") == "2"


def test_increment_shlvl_missing_does_nothing():
    env = Environment.from_envp(["A=1"])
    env.increment_shlvl()
    assert "SHLVL" not in env
    assert env.to_envp() == ["A=1"]


@pytest.mark.parametrize(
    "argument, expected",
    [
        ("NAME", True),
        ("_name1=value", True),
        ("a_b_c=", True),
        ("1ABC=x", False),
        ("=value", False),
        ("BAD-NAME=x", False),
        ("", False),
    ],
)
def test_is_valid_identifier(argument, expected):
    assert is_valid_identifier(argument) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("42", True),
        ("-7", True),
        ("+13", True),
        ("12a", False),
        ("", False),
        (None, False),
        (" 1", False),
    ],
)
def test_is_valid_number(text, expected):
    assert is_valid_number(text) is expected


def test_parse_long_skips_whitespace_and_sign():
    assert parse_long("  \t-42") == -42
    assert parse_long("+17xyz") == 17
    assert parse_long("abc") == 0


def test_parse_long_wraps_on_overflow():
    assert parse_long("9223372036854775807") == 2**63 - 1
    assert parse_long("9223372036854775808") == -(2**63)


def test_parse_int_wraps_on_overflow():
    assert parse_int("2147483647") == 2**31 - 1
    assert parse_int("2147483648") == -(2**31)
    assert parse_int("-5") == -5


def test_shell_state_from_envp_raises_shlvl():
    state = ShellState.from_envp(["SHLVL=3", "USER=someone"])
    assert state.env.get("SHLVL") == "4"
    assert state.envp == ["SHLVL=4", "USER=someone"]
    assert state.last_status == 0
    assert state.should_exit is False


def test_refresh_envp_reflects_changes():
    state = ShellState.from_envp(["A=1"])
    state.env.add("B=2")
    state.env.unset("A")
    state.refresh_envp()
    assert state.envp == ["B=2"]


def test_set_last_status():
    state = ShellState.from_envp([])
    state.set_last_status(127)
    assert state.last_status == 127