"""
Dependency links between models.

A model class declares the links it needs as LinkDescriptor entries in
its `links` class attribute. LinkResolver walks a subtree and binds each
declared attribute to the nearest matching model in scope (or to a
simulation service of the right type), overwriting whatever was bound
before. Running it twice on an unchanged tree yields the same bindings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from canopy import scope
from canopy.errors import UnresolvedLinkError

if TYPE_CHECKING:
    from canopy.node import ModelNode
    from canopy.scope import ScopeCache

logger = logging.getLogger(__name__)


class Multiplicity(Enum):
    """How many targets a link binds."""

    SINGLE = "single"
    COLLECTION = "collection"


@dataclass(frozen=True)
class LinkDescriptor:
    """
    A named injection point on a model class.

    Attributes:
        attribute: Instance attribute the resolved target is written to
        target: Class (or abstract base) the target must be an instance of
        required: Whether an unresolved link is an error
        multiplicity: SINGLE binds the nearest match, COLLECTION binds all
    """

    attribute: str
    target: type
    required: bool = True
    multiplicity: Multiplicity = Multiplicity.SINGLE

    @property
    def is_collection(self) -> bool:
        return self.multiplicity is Multiplicity.COLLECTION

    def empty_value(self) -> Any:
        """Value an unresolved link is left at."""
        return [] if self.is_collection else None


def link(
    attribute: str,
    target: type,
    required: bool = True,
    collection: bool = False,
) -> LinkDescriptor:
    """Shorthand for declaring a LinkDescriptor in a `links` tuple."""
    multiplicity = Multiplicity.COLLECTION if collection else Multiplicity.SINGLE
    return LinkDescriptor(
        attribute=attribute,
        target=target,
        required=required,
        multiplicity=multiplicity,
    )


class LinkResolver:
    """
    Binds declared links for every model in a subtree.

    Args:
        services: Objects offered to links ahead of scope search
            (the running simulation's service handle)
        cache: Scope cache used for the scope searches, if any
    """

    def __init__(
        self,
        services: Iterable[object] = (),
        cache: ScopeCache | None = None,
    ):
        self.services = list(services)
        self.cache = cache

    def resolve(
        self,
        root: ModelNode,
        include_self: bool = True,
        throw_on_fail: bool = True,
    ) -> int:
        """
        Resolve links across a subtree, depth first.

        Args:
            root: Subtree root
            include_self: Whether to resolve the root's own links
            throw_on_fail: Raise on an unresolved required link instead of
                logging a warning and leaving it unset

        Returns:
            Number of links left unresolved

        Raises:
            UnresolvedLinkError: If a required link cannot be satisfied and
                throw_on_fail is set. Models visited before the failure keep
                their new bindings.
        """
        nodes = root.walk() if include_self else root.descendants()
        unresolved = 0
        for node in nodes:
            for descriptor in node.link_descriptors():
                if not self._bind(node, descriptor, throw_on_fail):
                    unresolved += 1
        return unresolved

    def unresolve(self, root: ModelNode, include_self: bool = True) -> None:
        """Reset every link in a subtree to its unresolved value."""
        nodes = root.walk() if include_self else root.descendants()
        for node in nodes:
            for descriptor in node.link_descriptors():
                setattr(node, descriptor.attribute, descriptor.empty_value())

    def _bind(
        self, node: ModelNode, descriptor: LinkDescriptor, throw_on_fail: bool
    ) -> bool:
        matches = self._candidates(node, descriptor.target)

        if descriptor.is_collection:
            setattr(node, descriptor.attribute, list(matches))
        else:
            setattr(node, descriptor.attribute, matches[0] if matches else None)

        if matches or not descriptor.required:
            return True

        # Required link with nothing in scope
        if throw_on_fail:
            raise UnresolvedLinkError(node, descriptor)
        logger.warning(
            "Unresolved link '%s' (%s) in %s",
            descriptor.attribute,
            descriptor.target.__name__,
            node.full_path,
        )
        return False

    def _candidates(self, node: ModelNode, target: type) -> Sequence[object]:
        found: list[object] = [s for s in self.services if isinstance(s, target)]
        found.extend(
            match
            for match in scope.find_all_in_scope(node, target, self.cache)
            if match is not node
        )
        return found
