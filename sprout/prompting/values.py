"""Tagged answer values.

Prompt backends hand back loosely-typed answers (strings from a terminal,
bools from a confirm widget, lists from a multi-select).  The resolver
converts each answer into exactly one of the variants below before any
constraint is checked, so validation dispatches on the variant rather than on
whatever Python type the backend happened to return.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union

from sprout.spec.models import Kind
from sprout.spec.parser import normalize_number

_TRUE_WORDS = {"y", "yes", "true", "t", "on", "1"}
_FALSE_WORDS = {"n", "no", "false", "f", "off", "0"}


@dataclass(frozen=True)
class StringValue:
    value: str

    def plain(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    value: int | float

    def plain(self) -> int | float:
        return self.value


@dataclass(frozen=True)
class BoolValue:
    value: bool

    def plain(self) -> bool:
        return self.value


@dataclass(frozen=True)
class ListValue:
    items: tuple["ScalarValue", ...]

    def plain(self) -> list[Any]:
        return [item.plain() for item in self.items]


ScalarValue = Union[StringValue, NumberValue, BoolValue]
Value = Union[StringValue, NumberValue, BoolValue, ListValue]


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def to_scalar(kind: Kind, raw: Any) -> ScalarValue:
    """Convert a raw backend answer to the variant for *kind*.

    Raises:
        ValueError: With a user-facing reason when *raw* is not a *kind*.
    """
    if kind is Kind.STRING:
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise ValueError(f"expected text, got {raw!r}")
        return StringValue(str(raw))
    if kind is Kind.NUMBER:
        return NumberValue(parse_number(raw))
    return BoolValue(parse_bool(raw))


def to_list(kind: Kind, raw: Any) -> ListValue:
    """Convert a multi-select answer (list, or comma-separated string)."""
    if isinstance(raw, str):
        raw = [part.strip() for part in raw.split(",") if part.strip()]
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"expected a list of values, got {raw!r}")
    return ListValue(tuple(to_scalar(kind, item) for item in raw))


def parse_number(raw: Any) -> int | float:
    """Parse an int/float or numeric string; bools and non-finite values fail."""
    if isinstance(raw, bool):
        raise ValueError(f"{raw!r} is not a number")
    if isinstance(raw, (int, float)):
        number = raw
    elif isinstance(raw, str):
        text = raw.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise ValueError(f"{raw!r} is not a number") from None
    else:
        raise ValueError(f"{raw!r} is not a number")
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError(f"{raw!r} is not a finite number")
    return normalize_number(number)


def parse_bool(raw: Any) -> bool:
    """Accept a bool or a yes/no style word."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"{raw!r} is not yes/no")
