"""A small command shell library: environment, syntax checks, expansion, built-ins,
redirections and execution of pipelines."""

__version__ = "0.1.0"

__all__ = [
    "builtins",
    "commands",
    "env",
    "executor",
    "expand",
    "redirections",
    "syntax",
    "tokens",
]