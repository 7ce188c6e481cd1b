"""Here-document support: delimiter parsing, body expansion and temp files."""

from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path

from .environment import Environment

_BLANKS = frozenset(" \t\r\n\v\f")
_OPERATORS = frozenset("|<>")
_QUOTES = frozenset("\"'")
_NAME_STOP = _BLANKS | _OPERATORS | _QUOTES | {"$"}


class HeredocInterrupted(Exception):
    """Raised when reading a here-document is cancelled with an interrupt."""

    status = 130


class HeredocStore:
    """Hands out numbered temporary files (``.tmp1``, ``.tmp2`` ...) in a directory."""

    def __init__(self, directory: str | os.PathLike[str] | None = None) -> None:
        self.directory = Path(directory if directory is not None else tempfile.gettempdir())
        self._order = 0

    def _path(self, number: int) -> Path:
        return self.directory / f".tmp{number}"

    def create(self) -> str:
        """Create (or truncate) the next numbered file and return its path."""
        if not self._path(1).exists():
            self._order = 0
        self._order += 1
        path = self._path(self._order)
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o644)
        os.close(fd)
        return str(path)

    def cleanup(self) -> None:
        """Remove the numbered files, stopping at the first missing one."""
        number = 1
        while (path := self._path(number)).exists():
            path.unlink()
            number += 1


def read_delimiter(line: str, pos: int) -> tuple[str, bool, int]:
    """Read a here-document delimiter starting at ``pos``.

    Returns the delimiter, whether any part of it was quoted, and the
    position just past it. Raises ValueError on a malformed delimiter.
    """
    if line[pos:pos + 1] in _OPERATORS:
        raise ValueError("parsing error")
    parts: list[str] = []
    quoted = False
    while pos < len(line) and line[pos] not in _OPERATORS and line[pos] not in _BLANKS:
        ch = line[pos]
        if ch in _QUOTES:
            quoted = True
            pos += 1
            while pos < len(line) and line[pos] not in _QUOTES:
                parts.append(line[pos])
                pos += 1
            if line[pos:pos + 1] != ch:
                raise ValueError("no matching quote")
            pos += 1
        else:
            parts.append(ch)
            pos += 1
    delimiter = "".join(parts)
    if not delimiter and not quoted:
        raise ValueError("parsing error")
    return delimiter, quoted, pos


def expand_line(line: str, env: Environment) -> str:
    """Replace ``$NAME`` references in a here-document line with their values."""
    out: list[str] = []
    pos = 0
    while pos < len(line):
        if line[pos] != "$":
            out.append(line[pos])
            pos += 1
            continue
        pos += 1
        start = pos
        while pos < len(line) and line[pos] not in _NAME_STOP:
            pos += 1
        name = line[start:pos]
        if not name:
            out.append("$")
            continue
        value = env.get(name)
        if value:
            out.append(value)
    return "".join(out)


def write_heredoc(
    path: str | os.PathLike[str],
    delimiter: str,
    env: Environment,
    quoted: bool,
    read_line: Callable[[str], str | None],
) -> None:
    """Read lines until ``delimiter`` and write them to ``path``.

    ``read_line`` takes a prompt and returns a line, or None at end of input.
    Unless the delimiter was quoted, variables in each line are expanded.
    An interrupt removes the file and raises HeredocInterrupted.
    """
    try:
        with open(path, "w", encoding="utf-8") as fh:
            while True:
                line = read_line(">")
                if line is None:
                    sys.stderr.write(
                        "\nwarning: here-document delimited by end-of-file "
                        f"(wanted '{delimiter}')\n"
                    )
                    return
                line = line.removesuffix("\n")
                if line == delimiter:
                    return
                text = line + "\n"
                fh.write(text if quoted else expand_line(text, env))
    except KeyboardInterrupt:
        sys.stdout.write("\n")
        Path(path).unlink(missing_ok=True)
        raise HeredocInterrupted from None