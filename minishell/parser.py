"""Groups tokens into pipeline commands with their redirections."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from itertools import takewhile

from .lexer import Token, TokenType


class RedirectionType(Enum):
    APPEND = 2
    TRUNCATE = 3
    INPUT = 4


@dataclass
class Redirection:
    """A redirection target. ``file`` is None when the target expanded to nothing."""

    file: str | None
    kind: RedirectionType


@dataclass
class Command:
    """One stage of a pipeline: its argument words and its redirections."""

    args: list[str] = field(default_factory=list)
    redirections: list[Redirection] = field(default_factory=list)


_REDIRECTIONS = {
    ">": RedirectionType.TRUNCATE,
    ">>": RedirectionType.APPEND,
    "<": RedirectionType.INPUT,
}


def build_pipeline(tokens: Iterable[Token]) -> list[Command]:
    """Split checked tokens at pipes into commands.

    A word that came from an empty expansion ends the argument list of its
    command: later words are dropped, redirections are still collected.
    There is always at least one command.
    """
    commands: list[Command] = []
    words: list[str | None] = []
    redirections: list[Redirection] = []

    def finish() -> None:
        args = list(takewhile(lambda word: word is not None, words))
        commands.append(Command(args=args, redirections=list(redirections)))
        words.clear()
        redirections.clear()

    stream = iter(tokens)
    for token in stream:
        if token.kind is not TokenType.OPERATOR:
            words.append(token.value)
            continue
        if token.value == "|":
            finish()
            continue
        target = next(stream, None)
        kind = _REDIRECTIONS.get(token.value or "")
        if kind is not None:
            redirections.append(Redirection(target.value if target else None, kind))
    finish()
    return commands