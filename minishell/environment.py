"""Shell variable storage: exported variables plus the shell's internal state."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

STATUS = "?"
SHELL_CWD = "1PWD"
_HIDDEN = frozenset({STATUS, SHELL_CWD})
_WHITESPACE = " \t\n\v\f\r"


def c_atoi(text: str) -> int:
    """Parse a leading integer the way C ``atoi`` does, wrapping to 32 bits.

    Leading whitespace and one sign are accepted; parsing stops at the first
    non-digit. Text without digits yields 0.
    """
    stripped = text.lstrip(_WHITESPACE)
    sign = 1
    if stripped[:1] in ("-", "+"):
        if stripped[0] == "-":
            sign = -1
        stripped = stripped[1:]
    digits = []
    for ch in stripped:
        if not "0" <= ch <= "9":
            break
        digits.append(ch)
    value = int("".join(digits)) * sign if digits else 0
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


class Environment:
    """Ordered set of shell variables.

    A variable may be declared without a value (``None``). Two internal
    entries are kept alongside ordinary variables: ``?`` holds the last exit
    status and ``1PWD`` the shell's own idea of the working directory. They
    cannot be removed and are never passed on to child processes.
    """

    def __init__(self) -> None:
        self._vars: dict[str, str | None] = {}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str], cwd: str) -> "Environment":
        """Build the startup environment, bumping ``SHLVL`` by one."""
        env = cls()
        for name, value in mapping.items():
            if name.startswith("SHLVL"):
                value = str(c_atoi(value) + 1)
            env._vars[name] = value
        env._vars[STATUS] = "0"
        env._vars[SHELL_CWD] = cwd
        return env

    def get(self, name: str) -> str | None:
        """Return the value of ``name``, or None if unset, valueless or empty."""
        if not name:
            return None
        return self._vars.get(name)

    def set(self, name: str, value: str | None) -> None:
        """Assign ``value`` to ``name``; a new variable goes at the end."""
        self._vars[name] = value

    def declare(self, name: str) -> None:
        """Make ``name`` exist, keeping its value if it already has one."""
        self._vars.setdefault(name, None)

    def remove(self, name: str) -> None:
        """Unset ``name``; the internal entries and unknown names are ignored."""
        if name in _HIDDEN:
            return
        self._vars.pop(name, None)

    def items(self) -> Iterator[tuple[str, str | None]]:
        """Yield every ``(name, value)`` pair in definition order."""
        yield from list(self._vars.items())

    def exported(self) -> dict[str, str]:
        """Return the variables handed to child processes."""
        return {
            name: value if value is not None else ""
            for name, value in self._vars.items()
            if name not in _HIDDEN
        }

    def __contains__(self, name: object) -> bool:
        return name in self._vars