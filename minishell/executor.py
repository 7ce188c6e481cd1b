"""Runs parsed pipelines: some builtins in the shell itself, everything else as processes."""

from __future__ import annotations

import io
import os
import signal
import subprocess
import sys
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import BinaryIO, TextIO, Union

from .builtins import ShellExit, is_parent_builtin, run_builtin
from .environment import Environment
from .heredoc import HeredocStore
from .parser import Command, Redirection, RedirectionType

_NOT_FOUND = "command not found\n"

# What a stage reads from: None inherits the shell's input, bytes are fed
# through a pipe (empty bytes mean an empty input), a file object is a pipe
# from the previous process.
_Input = Union[BinaryIO, bytes, None]


class RedirectionError(Exception):
    """Raised when a redirection target is missing or cannot be opened."""


def _stderr(err: TextIO | None) -> TextIO:
    return sys.stderr if err is None else err


def resolve_command(name: str | None, env: Environment, err: TextIO | None = None) -> str | None:
    """Find the program to run for ``name``.

    A name containing a slash is used as it is if it exists; otherwise each
    ``PATH`` entry is searched for an executable. Without ``PATH`` the name
    itself is tried. Reports "command not found" on ``err`` and returns None
    when nothing matches.
    """
    if name is None:
        return None
    err = _stderr(err)
    if not name:
        err.write(_NOT_FOUND)
        return None
    if "/" in name:
        if os.access(name, os.F_OK):
            return name
        err.write(_NOT_FOUND)
        return None
    search = env.get("PATH")
    if search is None:
        if os.access(name, os.F_OK):
            return name
        err.write(_NOT_FOUND)
        return None
    for directory in filter(None, search.split(":")):
        candidate = f"{directory}/{name}"
        if os.access(candidate, os.F_OK | os.X_OK):
            return candidate
    err.write(_NOT_FOUND)
    return None


def _open_target(redirection: Redirection) -> BinaryIO:
    if redirection.kind is RedirectionType.INPUT:
        flags, mode = os.O_RDONLY, "rb"
    elif redirection.kind is RedirectionType.APPEND:
        flags, mode = os.O_CREAT | os.O_APPEND | os.O_WRONLY, "ab"
    else:
        flags, mode = os.O_CREAT | os.O_TRUNC | os.O_WRONLY, "wb"
    try:
        fd = os.open(redirection.file, flags, 0o777)
    except OSError as exc:
        raise RedirectionError(f"open: {exc.strerror}") from exc
    return os.fdopen(fd, mode)


@contextmanager
def open_redirections(
    redirections: Sequence[Redirection],
) -> Iterator[tuple[BinaryIO | None, BinaryIO | None]]:
    """Open every redirection in order and yield the final ``(input, output)`` files.

    Later redirections of the same direction replace earlier ones, which are
    still opened (and so created or truncated). Either file is None when no
    redirection of that direction was given. Raises RedirectionError on the
    first target that is missing or cannot be opened.
    """
    source: BinaryIO | None = None
    target: BinaryIO | None = None
    try:
        for redirection in redirections:
            if redirection.file is None:
                raise RedirectionError("ambiguous redirection")
            handle = _open_target(redirection)
            if redirection.kind is RedirectionType.INPUT:
                if source is not None:
                    source.close()
                source = handle
            else:
                if target is not None:
                    target.close()
                target = handle
        yield source, target
    finally:
        for handle in (source, target):
            if handle is not None:
                handle.close()


@contextmanager
def _sigint_ignored() -> Iterator[None]:
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)


@contextmanager
def _preserved_cwd() -> Iterator[None]:
    cwd = os.getcwd()
    try:
        yield
    finally:
        os.chdir(cwd)


def _restore_signals() -> None:
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    signal.signal(signal.SIGQUIT, signal.SIG_DFL)


def _copy_env(env: Environment) -> Environment:
    clone = Environment()
    for name, value in env.items():
        clone.set(name, value)
    return clone


def _discard(source: _Input) -> None:
    if source is not None and not isinstance(source, bytes):
        source.close()


def _feed(pipe: BinaryIO, data: bytes) -> None:
    try:
        pipe.write(data)
    except (BrokenPipeError, OSError):
        pass
    finally:
        try:
            pipe.close()
        except OSError:
            pass


def _runs_in_shell(command: Command) -> bool:
    args = command.args
    return bool(args) and (
        is_parent_builtin(args[0]) or (args[0] == "export" and len(args) > 1)
    )


def _run_in_shell(command: Command, env: Environment) -> int:
    try:
        with open_redirections(command.redirections):
            pass
    except RedirectionError as exc:
        sys.stderr.write(f"{exc}\n")
        return 1
    status = run_builtin(command.args, env, announce=True)
    return 0 if status is None else status


def _run_child_builtin(args: list[str], env: Environment, out: TextIO) -> int | None:
    with _preserved_cwd():
        try:
            return run_builtin(args, _copy_env(env), out=out)
        except ShellExit as exc:
            return exc.status


def _check_program(path: str) -> int | None:
    if os.path.isdir(path):
        sys.stderr.write(f"{path}: Is a directory\n")
        return 126
    if not os.access(path, os.X_OK):
        sys.stderr.write(f"{path}: Permission denied\n")
        return 126
    return None


class _Pipeline:
    def __init__(self, env: Environment) -> None:
        self._env = env
        self._stages: list[subprocess.Popen[bytes] | int] = []
        self._feeders: list[threading.Thread] = []

    def run(self, commands: Sequence[Command]) -> int:
        upstream: _Input = None
        for index, command in enumerate(commands):
            last = index == len(commands) - 1
            try:
                upstream = self._stage(command, upstream, last)
            except RedirectionError as exc:
                _discard(upstream)
                sys.stderr.write(f"{exc}\n")
                self._stages.append(1)
                upstream = b""
        return self._finish()

    def _stage(self, command: Command, upstream: _Input, last: bool) -> _Input:
        with open_redirections(command.redirections) as (infile, outfile):
            stdin: _Input = upstream
            if infile is not None:
                _discard(upstream)
                stdin = infile
            if not command.args:
                _discard(upstream)
                self._stages.append(0)
                return b""
            buffer = io.StringIO()
            status = _run_child_builtin(command.args, self._env, buffer)
            if status is not None:
                _discard(upstream)
                self._stages.append(status)
                return self._deliver(buffer.getvalue(), outfile, last)
            return self._spawn(command.args, stdin, upstream, outfile, last)

    @staticmethod
    def _deliver(text: str, outfile: BinaryIO | None, last: bool) -> bytes:
        if outfile is not None:
            outfile.write(text.encode())
            return b""
        if last:
            sys.stdout.write(text)
            sys.stdout.flush()
            return b""
        return text.encode()

    def _spawn(
        self,
        args: list[str],
        stdin: _Input,
        upstream: _Input,
        outfile: BinaryIO | None,
        last: bool,
    ) -> _Input:
        path = resolve_command(args[0], self._env)
        status = 127 if path is None else _check_program(path)
        if status is not None or path is None:
            _discard(upstream)
            self._stages.append(127 if status is None else status)
            return b""
        feed = b""
        popen_stdin: object
        if isinstance(stdin, bytes):
            feed = stdin
            popen_stdin = subprocess.PIPE if stdin else subprocess.DEVNULL
        else:
            popen_stdin = stdin
        popen_stdout: object = outfile if outfile is not None else (None if last else subprocess.PIPE)
        sys.stdout.flush()
        try:
            process = subprocess.Popen(
                args,
                executable=path,
                env=self._env.exported(),
                stdin=popen_stdin,
                stdout=popen_stdout,
                preexec_fn=_restore_signals,
            )
        except OSError as exc:
            sys.stderr.write(f"execve: {exc.strerror}\n")
            self._stages.append(127)
            return b""
        finally:
            _discard(upstream)
        self._stages.append(process)
        if feed and process.stdin is not None:
            feeder = threading.Thread(target=_feed, args=(process.stdin, feed), daemon=True)
            feeder.start()
            self._feeders.append(feeder)
        if popen_stdout is subprocess.PIPE:
            return process.stdout
        return b""

    def _finish(self) -> int:
        status = 0
        for stage in self._stages:
            if isinstance(stage, int):
                status = stage
                continue
            code = stage.wait()
            if code < 0:
                if -code in (signal.SIGINT, signal.SIGQUIT):
                    sys.stdout.write("\n")
                status = 128 - code
            else:
                status = code
        for feeder in self._feeders:
            feeder.join()
        return status


def execute(
    commands: Sequence[Command],
    env: Environment,
    heredocs: HeredocStore | None = None,
) -> int:
    """Run a pipeline and return the status of its last stage.

    A lone ``cd``, ``unset``, ``exit`` or ``export`` with arguments runs in
    the shell and changes its state; any other stage runs on its own copy of
    the environment. ``exit`` in the shell raises ShellExit. Here-document
    files are removed afterwards.
    """
    try:
        with _sigint_ignored():
            if len(commands) == 1 and _runs_in_shell(commands[0]):
                return _run_in_shell(commands[0], env)
            return _Pipeline(env).run(commands)
    finally:
        if heredocs is not None:
            heredocs.cleanup()