"""
UCI option table.

Engines advertise their configurable parameters in reply to "uci":

    option name Move Overhead type spin default 10 min 0 max 5000
    option name RelocationRule type combo default AnyVacant var AnyVacant var MovementPattern

and the GUI changes them with

    setoption name <id> [value <x>]

Option names are case-insensitive and may contain spaces. Values are checked
against the option's type before they are stored; a rejected value leaves the
option unchanged. Callbacks run after every accepted change (and on every
"setoption" of a button).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

OptionCallback = Callable[["Option"], None]

_TYPES = ("check", "spin", "combo", "button", "string")


@dataclass
class Option:
    """
    One entry of the option table.

    Attributes:
        name:      Display name, as the GUI shows it.
        type:      One of check, spin, combo, button, string.
        default:   Initial value (bool, int or str; None for buttons).
        min / max: Bounds for spin options.
        choices:   Allowed values for combo options.
        on_change: Called with the option after each accepted change.
    """

    name: str
    type: str
    default: Any = None
    min: Optional[int] = None
    max: Optional[int] = None
    choices: tuple[str, ...] = ()
    on_change: Optional[OptionCallback] = None
    value: Any = field(init=False)

    def __post_init__(self) -> None:
        if self.type not in _TYPES:
            raise ValueError(f"unknown option type: {self.type}")
        self.value = self.default

    def parse(self, raw: Optional[str]) -> Any:
        """Convert a setoption value to this option's type, or raise ValueError."""
        if self.type == "button":
            return None
        if raw is None:
            raise ValueError(f"option {self.name!r} needs a value")

        if self.type == "check":
            lowered = raw.lower()
            if lowered not in ("true", "false"):
                raise ValueError(f"option {self.name!r} expects true or false, got {raw!r}")
            return lowered == "true"

        if self.type == "spin":
            number = int(raw)
            if not self.min <= number <= self.max:
                raise ValueError(
                    f"option {self.name!r} must be in [{self.min}, {self.max}], got {number}"
                )
            return number

        if self.type == "combo":
            for choice in self.choices:
                if choice.lower() == raw.lower():
                    return choice
            raise ValueError(f"option {self.name!r} has no choice {raw!r}")

        # string
        return "" if raw == "<empty>" else raw

    def set(self, raw: Optional[str]) -> None:
        """Store a new value and run the callback; a ValueError from either undoes it."""
        previous = self.value
        self.value = self.parse(raw)
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except ValueError:
            self.value = previous
            raise

    def uci(self) -> str:
        line = f"option name {self.name} type {self.type}"
        if self.type == "check":
            line += f" default {'true' if self.default else 'false'}"
        elif self.type == "spin":
            line += f" default {self.default} min {self.min} max {self.max}"
        elif self.type == "combo":
            line += f" default {self.default}" + "".join(f" var {c}" for c in self.choices)
        elif self.type == "string":
            line += f" default {self.default or '<empty>'}"
        return line


class OptionsMap:
    """Options in registration order, looked up case-insensitively."""

    def __init__(self) -> None:
        self._options: dict[str, Option] = {}

    def add(self, option: Option) -> Option:
        self._options[option.name.lower()] = option
        return option

    def get(self, name: str) -> Option:
        try:
            return self._options[name.lower()]
        except KeyError:
            raise KeyError(name) from None

    def __getitem__(self, name: str) -> Any:
        return self.get(name).value

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._options

    def __iter__(self) -> Iterator[Option]:
        return iter(self._options.values())

    def __len__(self) -> int:
        return len(self._options)

    def setoption(self, tokens: list[str]) -> Option:
        """
        Apply the arguments of a "setoption" command.

        Args:
            tokens: Command tokens with "setoption" stripped, e.g.
                    ["name", "Move", "Overhead", "value", "30"].

        Returns:
            The option that was changed.

        Raises:
            KeyError:   No option has that name.
            ValueError: The command is malformed or the value is rejected.
        """
        if not tokens or tokens[0] != "name":
            raise ValueError("setoption: expected 'name <id> [value <x>]'")

        if "value" in tokens[1:]:
            value_idx = tokens.index("value", 1)
            name = " ".join(tokens[1:value_idx])
            value: Optional[str] = " ".join(tokens[value_idx + 1:])
        else:
            name = " ".join(tokens[1:])
            value = None

        option = self.get(name)
        option.set(value)
        return option
