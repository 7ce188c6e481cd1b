"""The interactive shell: prompt, line handling and the read-eval loop."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Callable, Mapping, Sequence

from .builtins import ShellExit
from .environment import SHELL_CWD, STATUS, Environment, c_atoi
from .executor import execute
from .heredoc import HeredocInterrupted, HeredocStore
from .lexer import ShellSyntaxError, tokenize
from .parser import build_pipeline

GREEN = "\033[1;32m"
YELLOW = "\033[1;33m"
BLUE = "\033[34m"
COLOR_RESET = "\033[0m"

ReadLine = Callable[[str], "str | None"]


def _read_input(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


class Shell:
    """Shell state: its variables, here-document files and last exit status."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        cwd: str | None = None,
        heredoc_dir: str | os.PathLike[str] | None = None,
    ) -> None:
        self.env = Environment.from_mapping(
            os.environ if environ is None else environ,
            os.getcwd() if cwd is None else cwd,
        )
        self.heredocs = HeredocStore(heredoc_dir)
        self.status = 0
        self._read_line: ReadLine = _read_input

    def prompt(self) -> str:
        """Return the coloured prompt showing the working directory."""
        cwd = self.env.get(SHELL_CWD) or ""
        return (
            f"{GREEN}minishell>{COLOR_RESET}{YELLOW}{cwd}"
            f"{COLOR_RESET}{BLUE}${COLOR_RESET}"
        )

    def run_line(self, line: str) -> int:
        """Run one input line and return its status, recording it in ``$?``.

        An empty line keeps the previous status. Syntax errors give 2, an
        interrupted here-document 130. ``exit`` raises ShellExit.
        """
        if not line:
            status = c_atoi(self.env.get(STATUS) or "0")
        else:
            try:
                tokens = tokenize(line, self.env, self.heredocs, self._read_line)
            except ShellSyntaxError as exc:
                sys.stderr.write(f"{exc}\n")
                status = 2
            except HeredocInterrupted as exc:
                status = exc.status
            else:
                status = execute(build_pipeline(tokens), self.env, self.heredocs)
        self.status = status
        self.env.set(STATUS, str(status))
        return status

    def loop(self, read_line: ReadLine | None = None) -> int:
        """Read and run lines until end of input or ``exit``; return the exit status."""
        if read_line is not None:
            self._read_line = read_line
        while True:
            try:
                line = self._read_line(self.prompt())
            except KeyboardInterrupt:
                sys.stdout.write("\n")
                self.env.set(STATUS, "130")
                continue
            if line is None:
                sys.stdout.write("\nexit\n")
                return self.status
            try:
                self.run_line(line)
            except ShellExit as exc:
                return exc.status


def main(argv: Sequence[str] | None = None) -> int:
    """Start an interactive shell on the process environment."""
    if not os.environ:
        sys.stderr.write("error: env unset\n")
        return 18
    try:
        import readline  # noqa: F401  (line editing and history for input())
    except ImportError:
        pass
    shell = Shell()
    if hasattr(signal, "SIGQUIT"):
        signal.signal(signal.SIGQUIT, signal.SIG_IGN)
    return shell.loop()


if __name__ == "__main__":
    sys.exit(main())