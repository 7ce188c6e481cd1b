"""Turns an input line into tokens, expanding variables, quotes and here-documents."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from .environment import Environment
from .heredoc import HeredocStore, read_delimiter, write_heredoc

_WHITESPACE = frozenset(" \t\r\n\v\f")
_OPERATORS = frozenset("|<>")


class TokenType(Enum):
    WORD = 0
    OPERATOR = 1


@dataclass
class Token:
    """A word or operator. A word whose value is None came from an empty expansion."""

    kind: TokenType = TokenType.WORD
    value: str | None = None


class ShellSyntaxError(Exception):
    """Raised for an input line that cannot be tokenized or is malformed."""


class _Special(Enum):
    LITERAL_DOLLAR = auto()
    DROP = auto()


def is_whitespace(ch: str) -> bool:
    return ch in _WHITESPACE


def is_operator(ch: str) -> bool:
    return ch in _OPERATORS


def _at(text: str, pos: int) -> str:
    return text[pos] if pos < len(text) else ""


def _is_alpha(ch: str) -> bool:
    return len(ch) == 1 and ("a" <= ch <= "z" or "A" <= ch <= "Z")


def _is_digit(ch: str) -> bool:
    return len(ch) == 1 and "0" <= ch <= "9"


def _read_input(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


class _Lexer:
    def __init__(
        self,
        env: Environment,
        heredocs: HeredocStore,
        read_line: Callable[[str], str | None],
    ) -> None:
        self._env = env
        self._heredocs = heredocs
        self._read_line = read_line
        self.tokens: list[Token] = [Token()]
        self._split = False

    @property
    def _current(self) -> Token:
        return self.tokens[-1]

    def _start_token(self) -> None:
        self.tokens.append(Token())

    def _append(self, text: str) -> None:
        current = self._current
        current.value = (current.value or "") + text

    def _break_if_pending(self) -> None:
        if self._split and self._current.value is not None:
            self._start_token()

    def run(self, line: str) -> list[Token]:
        pos = 1 if is_whitespace(_at(line, 0)) else 0
        while pos < len(line):
            pos = self._step(line, pos, expanding=False)
        return self.tokens

    def _step(self, text: str, pos: int, expanding: bool) -> int:
        ch = text[pos]
        if not expanding and ch in ("'", '"'):
            return self._quotes(text, pos)
        if not expanding and is_operator(ch):
            return self._operator(text, pos)
        if not expanding and ch in ("$", "~"):
            return self._expandable(text, pos)
        if not is_whitespace(ch):
            self._break_if_pending()
            self._split = False
            self._append(ch)
            return pos + 1
        while is_whitespace(_at(text, pos)):
            pos += 1
            self._split = True
        return pos

    def _lookup(self, text: str, pos: int) -> tuple[str | None | _Special, int]:
        """Resolve the variable after the ``$`` at ``pos``."""
        pos += 1
        ch = _at(text, pos)
        if not _is_alpha(ch) and ch != "_":
            if ch == "?" or _is_digit(ch):
                pos += 1
                if _is_digit(ch):
                    return None, pos
                return self._env.get("?"), pos
            if ch not in ("'", '"'):
                return _Special.LITERAL_DOLLAR, pos
            return _Special.DROP, pos
        start = pos
        while _is_alpha(_at(text, pos)) or _is_digit(_at(text, pos)) or _at(text, pos) == "_":
            pos += 1
        return self._env.get(text[start:pos]), pos

    def _expandable(self, text: str, pos: int) -> int:
        self._break_if_pending()
        if text[pos] == "~":
            return self._tilde(text, pos)
        value, pos = self._lookup(text, pos)
        if value is _Special.LITERAL_DOLLAR:
            self._append("$")
            value = None
        elif value is _Special.DROP:
            value = None
        elif (
            value is None
            and self._current.value is None
            and (is_operator(_at(text, pos)) or is_whitespace(_at(text, pos)))
        ):
            self._start_token()
        self._split = False
        if value:
            inner = 0
            while inner < len(value):
                inner = self._step(value, inner, expanding=True)
        return pos

    def _tilde(self, text: str, pos: int) -> int:
        following = _at(text, pos + 1)
        if (is_whitespace(following) or following in ("", "/")) and (self._split or pos == 0):
            self._split = False
            self._expandable("$HOME", 0)
            return pos + 1
        self._append("~")
        return pos + 1

    def _quotes(self, text: str, pos: int) -> int:
        self._break_if_pending()
        if self._current.value is None:
            self._current.value = ""
        self._split = False
        quote = text[pos]
        pos += 1
        if quote == "'":
            end = text.find("'", pos)
            if end < 0:
                raise ShellSyntaxError("error: no quote")
            self._append(text[pos:end])
            return end + 1
        while pos < len(text) and text[pos] != '"':
            if text[pos] == "$":
                value, pos = self._lookup(text, pos)
                if isinstance(value, _Special):
                    self._append("$")
                elif value:
                    self._append(value)
            else:
                self._append(text[pos])
                pos += 1
        if pos >= len(text):
            raise ShellSyntaxError("error:no double quote")
        return pos + 1

    def _operator(self, text: str, pos: int) -> int:
        if pos and self._current.value is not None:
            self._start_token()
        self._current.kind = TokenType.OPERATOR
        op = text[pos]
        self._append(op)
        pos += 1
        following = _at(text, pos)
        if following == op and op == "|":
            raise ShellSyntaxError("syntax error")
        if following == op and op == "<":
            self._split = True
            return self._heredoc(text, pos)
        if op == ">" and following == ">":
            self._append(">")
            pos += 1
        if is_operator(_at(text, pos)) and op != "|":
            raise ShellSyntaxError("syntax error")
        self._split = True
        return pos

    def _heredoc(self, text: str, pos: int) -> int:
        pos += 1
        while is_whitespace(_at(text, pos)):
            pos += 1
        try:
            delimiter, quoted, pos = read_delimiter(text, pos)
        except ValueError as exc:
            raise ShellSyntaxError(str(exc)) from None
        self._start_token()
        try:
            path = self._heredocs.create()
        except OSError as exc:
            raise ShellSyntaxError(f"here_doc open: {exc.strerror}") from exc
        write_heredoc(path, delimiter, self._env, quoted, self._read_line)
        self._current.value = path
        return pos


def tokenize(
    line: str,
    env: Environment,
    heredocs: HeredocStore | None = None,
    read_line: Callable[[str], str | None] | None = None,
) -> list[Token]:
    """Split ``line`` into checked tokens.

    Here-documents are read through ``read_line`` and stored in files from
    ``heredocs``; the token after a ``<`` operator then names that file.
    Raises ShellSyntaxError on malformed input and HeredocInterrupted when a
    here-document is cancelled.
    """
    lexer = _Lexer(
        env,
        heredocs if heredocs is not None else HeredocStore(),
        read_line if read_line is not None else _read_input,
    )
    tokens = lexer.run(line)
    check_syntax(tokens)
    return tokens


def _is_pipe(token: Token) -> bool:
    return token.kind is TokenType.OPERATOR and (token.value or "").startswith("|")


def _is_redirection(token: Token | None) -> bool:
    return (
        token is not None
        and token.kind is TokenType.OPERATOR
        and (token.value or "")[:1] in (">", "<")
    )


def check_syntax(tokens: list[Token]) -> None:
    """Reject misplaced pipes and redirections with ShellSyntaxError."""
    if not tokens or _is_pipe(tokens[0]):
        raise ShellSyntaxError("syntax error")
    redirect = False
    pipe = False
    previous: Token | None = None
    for token in tokens:
        if _is_redirection(previous) and _is_redirection(token):
            raise ShellSyntaxError("syntax error")
        if (redirect or pipe) and _is_pipe(token):
            raise ShellSyntaxError("syntax error")
        if token.kind is TokenType.OPERATOR and not _is_pipe(token):
            redirect, pipe = True, False
        elif _is_pipe(token):
            pipe = True
        else:
            redirect = pipe = False
        previous = token
    if pipe or redirect:
        raise ShellSyntaxError("syntax error")