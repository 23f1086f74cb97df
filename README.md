# minish

`minish` is a small command shell written as a Python library. It takes a
command line that has already been split into tokens. From there it checks
the syntax, expands variables, builds pipelines, opens redirections and runs
the commands. It uses only the standard library.

## Modules

- `minish.env` has `Environment`, an ordered table of variables in which a
  variable may exist without a value, and `ShellState`, which holds what a
  session carries from line to line. It also has the helpers
  `split_assignment`, `entry_key`, `is_valid_identifier`, `is_valid_number`,
  `parse_long` and `parse_int`. The two parse functions read a leading
  integer and wrap it to 64 or 32 bits.
- `minish.tokens` has `TokenType`, `Token` (a token linked to its
  neighbours), `link_tokens`, `is_space`, `skip_quoted` and `count_lists`.
- `minish.syntax` has `check_syntax`, which raises `ShellSyntaxError` (exit
  status 2) when `||`, `&&`, `|` or a redirection is misplaced. It also has
  `check_ambiguous_star`, which raises `AmbiguousRedirectError` (exit
  status 1) when a redirection targets `*`.
- `minish.expand` expands `$NAME` and `$?` with `expand_word` and
  `expand_tokens`. Single-quoted text is left alone, and the quotes
  themselves are kept in the result.
- `minish.commands` groups tokens into `Command` objects, each holding an
  `argv` and a list of `Redirection`s. It then groups the commands into
  `CommandList` pipelines, each followed by a `Connector` (`AND`, `OR` or
  `END`). `prepare` does the whole step:
  1. check the syntax;
  2. check for `*` targets;
  3. expand variables;
  4. group the tokens into commands and lists;
  5. prefix arguments that start with `./` with `$PWD`.
- `minish.builtins` has the built-ins `cd`, `echo`, `env` (`print_env`),
  `exit` (`exit_builtin`), `export`, `pwd` and `unset`. It also has
  `is_builtin` and `run_builtin`, which dispatches on `argv[0]`.
- `minish.redirections` opens input, output and append files. It also
  handles here-documents with `read_heredoc` and `open_command_files`.
  - The result is an `OpenedFiles` object, which is a context manager.
  - Failures raise `RedirectionError` or `HeredocInterrupted`.
  - Here-document text is written to `here_doc.txt` in the current
    directory, and that file is removed again when the files are closed.
- `minish.executor` looks up commands on `PATH` with `find_paths` and
  `make_path`; `make_path` raises `CommandNotFound`. It runs one pipeline
  with `run_command_list`, and lists joined by `&&` and `||` with `execute`.
  Statuses follow shell conventions:
  - 127 when the command is not found;
  - 126 when it is not executable;
  - 128 + the signal number when it was killed;
  - 130 when a here-document was interrupted.

## Environment

```python
from minish.env import Environment, is_valid_identifier, parse_long

env = Environment.from_envp(["HOME=/home/user", "SHLVL=1", "EMPTY"])
env.increment_shlvl()
env.get("SHLVL")      # "2"
"EMPTY" in env        # True, though it has no value
env.to_envp()         # ["HOME=/home/user", "SHLVL=2", "EMPTY="]

is_valid_identifier("MY_VAR=1")   # True
is_valid_identifier("1BAD")       # False
parse_long("  -42")               # -42
```

## Expansion

```python
from minish.env import Environment
from minish.expand import expand_word

env = Environment.from_envp(["USER=someone"])
expand_word("hello $USER", env, 0)   # "hello someone"
expand_word("$?", env, 3)            # "3"
expand_word("'$USER'", env, 0)       # "'$USER'"
```

## Running a line

```python
import os
from minish.commands import prepare
from minish.env import ShellState
from minish.executor import execute
from minish.tokens import Token, TokenType

state = ShellState.from_envp(f"{k}={v}" for k, v in os.environ.items())
tokens = [
    Token(0, TokenType.WORD, "echo"),
    Token(0, TokenType.WORD, "$HOME"),
    Token(0, TokenType.PIPE, "|"),
    Token(0, TokenType.WORD, "cat"),
]
lists = prepare(tokens, state)   # positions and links are set by prepare
status = execute(state, lists)   # also stored in state.last_status for $?
```

`execute` uses `sys.stdin`, `sys.stdout` and `sys.stderr` unless other
streams are passed. They must be real files, because child processes
inherit their descriptors. Where the built-ins run depends on the command:

- A built-in that stands alone runs in the shell and changes its state.
- A built-in inside a pipeline runs on a thread with a copy of the state,
  so its changes do not last.
- `exit` only sets `state.should_exit` and `state.exit_code`. No later
  lists run after that, and ending the session is up to the caller.

## What the package does not do

- There is no interactive prompt, line editing, history or signal handling
  for a terminal session.
- There is no command to start.
- Nothing turns a raw input string into tokens: the caller builds the
  `Token` list.
- There is no globbing.

## Tests

The tests use pytest, which is declared in the `test` extra:

```
pip install -e .[test]
pytest
```