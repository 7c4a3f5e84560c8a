"""
Tests for sibling name uniqueness.
"""

import pytest

from canopy import Folder, NameExhaustionError, attach_child, ensure_unique
from tests.example_models import Soil


def add_raw(parent: Folder, name: str) -> Soil:
    """Attach without any name repair."""
    node = Soil(name)
    attach_child(parent, node)
    return node


class TestEnsureUnique:
    """Tests for ensure_unique."""

    def test_no_collision_is_noop(self) -> None:
        parent = Folder()
        node = add_raw(parent, "Soil")
        assert ensure_unique(node) == "Soil"
        assert node.name == "Soil"

    def test_detached_node_unchanged(self) -> None:
        node = Soil("X")
        assert ensure_unique(node) == "X"

    def test_first_suffix_is_one(self) -> None:
        parent = Folder()
        add_raw(parent, "X")
        second = add_raw(parent, "X")
        ensure_unique(second)
        assert second.name == "X1"

    def test_suffixes_do_not_compound(self) -> None:
        """Three nodes named Foo become Foo, Foo1, Foo2."""
        parent = Folder()
        for _ in range(3):
            ensure_unique(add_raw(parent, "Foo"))
        assert [c.name for c in parent.children] == ["Foo", "Foo1", "Foo2"]

    def test_skips_taken_suffixes(self) -> None:
        """A suffixed name already in use is skipped."""
        parent = Folder()
        add_raw(parent, "Foo")
        add_raw(parent, "Foo1")
        node = add_raw(parent, "Foo")
        ensure_unique(node)
        assert node.name == "Foo2"

    def test_exhaustion(self) -> None:
        """Running out of attempts raises NameExhaustionError."""
        parent = Folder()
        add_raw(parent, "Foo")
        add_raw(parent, "Foo1")
        add_raw(parent, "Foo2")
        node = add_raw(parent, "Foo")
        with pytest.raises(NameExhaustionError) as info:
            ensure_unique(node, max_attempts=2)
        assert info.value.base_name == "Foo"
        assert node.name == "Foo"

    def test_names_are_case_sensitive(self) -> None:
        parent = Folder()
        add_raw(parent, "foo")
        node = add_raw(parent, "Foo")
        ensure_unique(node)
        assert node.name == "Foo"
