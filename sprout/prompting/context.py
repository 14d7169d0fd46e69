"""Append-only variable context.

The context is seeded with the project name and grows by one entry per
resolved prompt.  Defaults are rendered against the partial context, so an
entry is only ever visible to prompts declared after it.  Once resolution is
done the context is frozen into a read-only mapping for the tree renderer.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from sprout.errors import ContextFrozenError, DuplicateInsertionError


class VariableContext:
    """Ordered ``name -> value`` mapping with insert-once semantics."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._frozen: Mapping[str, Any] | None = None

    def insert(self, name: str, value: Any) -> None:
        """Add *name*.  Raises if it is already present or the context is frozen."""
        if self._frozen is not None:
            raise ContextFrozenError(f"Cannot set '{name}': context is frozen")
        if name in self._values:
            raise DuplicateInsertionError(name)
        self._values[name] = value

    def lookup(self, name: str) -> Any:
        return self._values[name]

    def names(self) -> list[str]:
        return list(self._values)

    def as_dict(self) -> dict[str, Any]:
        """Return a shallow copy, used as the render context for defaults."""
        return dict(self._values)

    def freeze(self) -> Mapping[str, Any]:
        """Return a read-only view and refuse any further inserts."""
        if self._frozen is None:
            self._frozen = MappingProxyType(dict(self._values))
        return self._frozen

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "frozen" if self.frozen else "open"
        return f"VariableContext({self._values!r}, {state})"
