"""Commands the shell runs itself: echo, cd, pwd, env, export, unset and exit."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

from .environment import SHELL_CWD, STATUS, Environment, c_atoi

_DIGITS = frozenset("0123456789")
_LONG_MIN = -(1 << 63)
_LONG_MAX = (1 << 63) - 1
_PARENT_BUILTINS = frozenset({"cd", "unset", "exit"})


class ShellExit(Exception):
    """Raised by ``exit`` to end the shell with ``status``."""

    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


def _stream(stream: TextIO | None, default: TextIO) -> TextIO:
    return default if stream is None else stream


def _is_alpha(ch: str) -> bool:
    return "a" <= ch <= "z" or "A" <= ch <= "Z"


def is_numeric_argument(text: str, err: TextIO | None = None) -> bool:
    """Tell whether ``text`` is an integer that fits a signed 64-bit value.

    Reports "numeric argument required" on ``err`` when it is not.
    """
    body = text[1:] if text.startswith(("+", "-")) else text
    valid = bool(text) and all(ch in _DIGITS for ch in body)
    if valid:
        value = int(body or "0")
        if text.startswith("-"):
            value = -value
        valid = _LONG_MIN <= value <= _LONG_MAX
    if not valid:
        _stream(err, sys.stderr).write("numeric argument required\n")
    return valid


def is_valid_identifier(name: str) -> bool:
    """Tell whether ``name`` can name a variable."""
    if not name or not (_is_alpha(name[0]) or name[0] == "_"):
        return False
    return all(_is_alpha(ch) or ch in _DIGITS or ch == "_" for ch in name[1:])


def echo(args: Sequence[str], out: TextIO | None = None) -> int:
    """Print the arguments; leading ``-n``, ``-nn``... options drop the newline."""
    out = _stream(out, sys.stdout)
    index = 1
    newline = True
    while index < len(args) and args[index].startswith("-n") and set(args[index][1:]) == {"n"}:
        newline = False
        index += 1
    out.write(" ".join(args[index:]))
    if newline:
        out.write("\n")
    return 0


def pwd(
    args: Sequence[str],
    env: Environment,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Print the shell's working directory."""
    if len(args) > 1:
        _stream(err, sys.stderr).write("too many arguments\n")
        return 2
    _stream(out, sys.stdout).write(f"{env.get(SHELL_CWD) or ''}\n")
    return 0


def print_env(env: Environment, out: TextIO | None = None) -> int:
    """Print every variable that has a value as ``NAME=value``."""
    out = _stream(out, sys.stdout)
    for name, value in env.items():
        if name not in (STATUS, SHELL_CWD) and value is not None:
            out.write(f"{name}={value}\n")
    return 0


def _print_declarations(env: Environment, out: TextIO) -> None:
    for name, value in env.items():
        if name == STATUS or name.startswith("1") or name == "_":
            continue
        line = f"declare -x {name}"
        if value is not None:
            line += f'="{value}"'
        out.write(line + "\n")


def _export_one(arg: str, env: Environment, err: TextIO) -> bool:
    name, sep, value = arg.partition("=")
    append = False
    if sep and name.endswith("+") and is_valid_identifier(name[:-1]):
        name = name[:-1]
        append = True
    if not is_valid_identifier(name):
        err.write(f"export: '{arg}' not a valid identifier\n")
        return False
    if not sep:
        env.declare(name)
    elif append:
        env.set(name, (env.get(name) or "") + value)
    else:
        env.set(name, value)
    return True


def export(
    args: Sequence[str],
    env: Environment,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Define, append to or declare variables; list them when given no arguments."""
    if len(args) < 2:
        _print_declarations(env, _stream(out, sys.stdout))
        return 0
    err = _stream(err, sys.stderr)
    status = 0
    for arg in args[1:]:
        if not _export_one(arg, env, err):
            status = 2
    return status


def unset(args: Sequence[str], env: Environment) -> int:
    """Remove the named variables."""
    for name in args[1:]:
        env.remove(name)
    return 0


def cd(args: Sequence[str], env: Environment, err: TextIO | None = None) -> int:
    """Change directory and record the new one in ``PWD``."""
    err = _stream(err, sys.stderr)
    target: str | None
    if len(args) < 2:
        target = env.get("HOME")
        if target is None:
            err.write("HOME not set\n")
            return 1
    elif len(args) > 2:
        err.write("cd: too many arguments\n")
        return 1
    elif args[1].startswith("/"):
        target = args[1]
    else:
        base = env.get(SHELL_CWD) or ""
        try:
            os.chdir(f"{base}/{args[1]}")
        except OSError:
            try:
                os.chdir(args[1])
            except OSError as exc:
                err.write(f"chdir: {exc.strerror}\n")
                return 1
        target = None
    if target is not None:
        try:
            os.chdir(target)
        except OSError as exc:
            err.write(f"chdir: {exc.strerror}\n")
            return 1
    try:
        cwd = os.getcwd()
    except OSError as exc:
        err.write(f"getcwd: {exc.strerror}\n")
        return 1
    env.set("PWD", cwd)
    env.set(SHELL_CWD, cwd)
    return 0


def exit_builtin(
    args: Sequence[str],
    env: Environment,
    err: TextIO | None = None,
    announce: bool = False,
) -> int:
    """Raise ShellExit with the requested status.

    Returns 1 without exiting when given too many arguments.
    """
    err = _stream(err, sys.stderr)
    if announce:
        err.write("exit\n")
    if len(args) < 2:
        status = c_atoi(env.get(STATUS) or "0") & 0xFF
    elif len(args) > 2:
        err.write("too many arguments\n")
        return 1
    elif is_numeric_argument(args[1], err):
        status = c_atoi(args[1]) & 0xFF
    else:
        status = 2
    raise ShellExit(status)


def is_parent_builtin(name: str | None) -> bool:
    """Tell whether ``name`` is a builtin that must run in the shell process."""
    return name in _PARENT_BUILTINS


def run_builtin(
    args: Sequence[str],
    env: Environment,
    out: TextIO | None = None,
    err: TextIO | None = None,
    announce: bool = False,
) -> int | None:
    """Run ``args`` as a builtin and return its status, or None if it is not one."""
    if not args:
        return None
    name = args[0]
    if name == "cd":
        return cd(args, env, err)
    if name == "export":
        return export(args, env, out, err)
    if name == "unset":
        return unset(args, env)
    if name == "exit":
        return exit_builtin(args, env, err, announce)
    if name == "echo":
        return echo(args, out)
    if name == "env":
        return print_env(env, out)
    if name == "pwd":
        return pwd(args, env, out, err)
    return None