"""Tests for the append-only variable context (sprout.prompting.context)."""

from __future__ import annotations

import pytest

from sprout.errors import ContextFrozenError, DuplicateInsertionError
from sprout.prompting.context import VariableContext


pytestmark = pytest.mark.unit


class TestVariableContext:
    def test_insert_and_lookup(self):
        context = VariableContext()
        context.insert("project_name", "acme")
        assert context.lookup("project_name") == "acme"
        assert "project_name" in context
        assert len(context) == 1

    def test_insertion_order_preserved(self):
        context = VariableContext()
        for name in ("c", "a", "b"):
            context.insert(name, name.upper())
        assert context.names() == ["c", "a", "b"]
        assert list(context) == ["c", "a", "b"]

    def test_duplicate_insert_rejected(self):
        context = VariableContext()
        context.insert("x", 1)
        with pytest.raises(DuplicateInsertionError):
            context.insert("x", 2)
        assert context.lookup("x") == 1

    def test_lookup_missing_raises_key_error(self):
        with pytest.raises(KeyError):
            VariableContext().lookup("nope")

    def test_as_dict_is_a_copy(self):
        context = VariableContext()
        context.insert("x", 1)
        snapshot = context.as_dict()
        snapshot["y"] = 2
        assert "y" not in context

    def test_freeze_returns_read_only_view(self):
        context = VariableContext()
        context.insert("x", 1)
        frozen = context.freeze()
        assert frozen["x"] == 1
        with pytest.raises(TypeError):
            frozen["x"] = 2  # type: ignore[index]

    def test_insert_after_freeze_rejected(self):
        context = VariableContext()
        context.freeze()
        assert context.frozen
        with pytest.raises(ContextFrozenError):
            context.insert("late", 1)

    def test_freeze_is_idempotent(self):
        context = VariableContext()
        context.insert("x", 1)
        assert context.freeze() is context.freeze()

    def test_repr_shows_state(self):
        context = VariableContext()
        assert "open" in repr(context)
        context.freeze()
        assert "frozen" in repr(context)
