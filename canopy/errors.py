"""
Exceptions raised by structural operations on the model tree.

All errors derive from StructureError so callers can catch the whole
family at once. None of them are retried internally: a failed
precondition stays failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from canopy.links import LinkDescriptor
    from canopy.node import ModelNode


class StructureError(Exception):
    """Base exception for model tree operations."""


class StructuralError(StructureError):
    """Raised when a tree-shape precondition is violated."""


class NotFoundError(StructuralError):
    """Raised when a node is not a direct child of the given parent."""

    def __init__(self, parent: ModelNode, child: ModelNode):
        super().__init__(f"'{child.name}' is not a child of '{parent.name}'")
        self.parent = parent
        self.child = child


class ReadOnlyError(StructuralError):
    """Raised when a mutation targets a read-only node."""

    def __init__(self, node: ModelNode):
        super().__init__(f"Unable to modify {node.name} - it is read-only.")
        self.node = node


class InvalidFormatError(StructureError):
    """Raised when a serialized fragment matches no supported dialect."""


class NameExhaustionError(StructureError):
    """Raised when no collision-free sibling name can be found."""

    def __init__(self, base_name: str, attempts: int):
        super().__init__(
            f"Cannot create a unique name for model: {base_name} "
            f"(gave up after {attempts} attempts)"
        )
        self.base_name = base_name
        self.attempts = attempts


class UnresolvedLinkError(StructureError):
    """Raised when a required link has no match in scope."""

    def __init__(self, node: ModelNode, link: LinkDescriptor):
        super().__init__(
            f"Unable to resolve link '{link.attribute}' "
            f"({link.target.__name__}) in {node.full_path}"
        )
        self.node = node
        self.link = link
