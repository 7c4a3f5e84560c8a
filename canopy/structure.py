"""
Structural edits to a model tree: add, move, rename and delete.

StructureEngine is the single entry point for changing the shape of a
tree. Each operation checks its preconditions before touching the tree,
keeps sibling names unique and invalidates scope lookups for the trees it
touches. Adding under a running Simulation also resolves links, connects
events and delivers StartOfSimulation to the new subtree, so models
injected mid-run take part in the rest of the run.

Edits to one tree must be serialized by the caller; nothing here locks.

Node states through the engine:

    Detached -> Attached -> (Detached via move-out) -> Attached -> Removed
"""

from __future__ import annotations

import logging

from canopy import naming
from canopy.config import StructureConfig
from canopy.errors import ReadOnlyError, StructuralError
from canopy.importer import ExternalFormatImporter
from canopy.lifecycle import ON_CREATED, START_OF_SIMULATION, LifecycleDispatcher
from canopy.node import ModelNode, attach_child, detach_child, set_parent_recursively
from canopy.scope import ScopeCache, cache_for
from canopy.simulation import Simulation, Simulations

logger = logging.getLogger(__name__)


class StructureEngine:
    """
    Applies structural edits to model trees.

    Args:
        config: Naming bound, link strictness and unwrap behaviour
        cache: Extra scope cache that every edit invalidates alongside the
            tree's own. Lookups only read it when handed it explicitly
            (e.g. a LinkResolver built with this cache).
        importer: Parser for serialized fragments
        dispatcher: Lifecycle hook dispatcher
    """

    def __init__(
        self,
        config: StructureConfig | None = None,
        cache: ScopeCache | None = None,
        importer: ExternalFormatImporter | None = None,
        dispatcher: LifecycleDispatcher | None = None,
    ):
        self.config = config or StructureConfig()
        self.cache = cache if cache is not None else ScopeCache()
        self.importer = importer or ExternalFormatImporter()
        self.dispatcher = dispatcher or LifecycleDispatcher()

    def add(
        self,
        model: ModelNode | str,
        parent: ModelNode,
        throw_on_fail: bool | None = None,
    ) -> ModelNode:
        """
        Attach a model (or a serialized fragment) as the last child of parent.

        Args:
            model: A detached model, or native JSON / legacy XML text
            parent: Node to add under
            throw_on_fail: Overrides config.strict_links for the live
                re-link of this add

        Returns:
            The attached model. For a Simulations wrapper with exactly one
            child this is the child, not the wrapper.

        Raises:
            ReadOnlyError: If parent is read-only (parent is left unchanged)
            InvalidFormatError: If text matches neither dialect
            StructuralError: If model is already attached or is an
                ancestor of parent
            UnresolvedLinkError: If a required link fails during a live add
                in strict mode (the model stays attached)
        """
        if parent.read_only:
            raise ReadOnlyError(parent)

        if isinstance(model, str):
            node = self._add_node(self.importer.parse(model), parent, throw_on_fail)
            # Fragments may carry descendants whose initialisation depends on
            # their final position, so they are named and created again here.
            naming.ensure_unique(node, self.config.max_name_attempts)
            self.dispatcher.dispatch(node, ON_CREATED, include_self=False)
            return node

        return self._add_node(model, parent, throw_on_fail)

    def rename(self, node: ModelNode, new_name: str) -> None:
        """Rename node; a colliding name gets a numeric suffix."""
        old_name = node.name
        node.name = new_name
        naming.ensure_unique(node, self.config.max_name_attempts)
        self._invalidate(node)
        logger.debug("Renamed %s to %s", old_name, node.full_path)

    def move(self, node: ModelNode, new_parent: ModelNode) -> None:
        """
        Move node (with its subtree) to the end of new_parent's children.

        unique_id is preserved. Links and event connections are not
        re-resolved; callers that need that must run LinkResolver and
        EventConnector themselves.

        Raises:
            StructuralError: If node has no parent, is not among its
                parent's children, or new_parent is inside node's subtree
            ReadOnlyError: If new_parent is read-only
        """
        old_parent = node.parent
        if old_parent is None:
            raise StructuralError(f"Cannot move model {node.name}: it has no parent")
        if new_parent is node or node.is_ancestor_of(new_parent):
            raise StructuralError(
                f"Cannot move model {node.name} into its own subtree ({new_parent.name})"
            )
        if new_parent.read_only:
            raise ReadOnlyError(new_parent)
        if not any(child is node for child in old_parent.children):
            raise StructuralError(f"Cannot move model {node.name}")

        # Scope differs after the move, so clear around both locations
        self._invalidate(node)
        detach_child(old_parent, node)
        attach_child(new_parent, node)
        naming.ensure_unique(node, self.config.max_name_attempts)
        self._invalidate(node)
        logger.debug("Moved %s from %s", node.full_path, old_parent.full_path)

    def delete(self, node: ModelNode) -> bool:
        """
        Detach node from its parent.

        Returns:
            True if the node was removed; False if it had no parent or was
            not found among its parent's children. Never raises for these.
        """
        parent = node.parent
        if parent is None:
            return False
        self._invalidate(node)
        if not any(child is node for child in parent.children):
            return False
        detach_child(parent, node)
        logger.debug("Deleted %s from %s", node.name, parent.full_path)
        return True

    def _add_node(
        self, node: ModelNode, parent: ModelNode, throw_on_fail: bool | None
    ) -> ModelNode:
        if (
            self.config.unwrap_single_child
            and isinstance(node, Simulations)
            and len(node.children) == 1
        ):
            wrapper = node
            node = wrapper.children[0]
            detach_child(wrapper, node)

        attach_child(parent, node)
        set_parent_recursively(node)
        naming.ensure_unique(node, self.config.max_name_attempts)
        self._invalidate(node)

        self.dispatcher.dispatch(node, ON_CREATED)

        simulation = _enclosing_simulation(parent)
        try:
            if simulation is not None and simulation.is_running:
                strict = self.config.strict_links if throw_on_fail is None else throw_on_fail
                self._start_live(node, parent, simulation, strict)
        finally:
            self._invalidate(node)

        logger.debug("Added %s", node.full_path)
        return node

    def _start_live(
        self, node: ModelNode, parent: ModelNode, simulation: Simulation, strict: bool
    ) -> None:
        try:
            simulation.link_resolver().resolve(node, include_self=True, throw_on_fail=strict)
            simulation.events.connect(node)
            self.dispatcher.dispatch(node, START_OF_SIMULATION, parent)
        except Exception:
            logger.error(
                "Live add of %s failed part way; the model stays attached and "
                "parts of its subtree may be linked, connected or started",
                node.full_path,
            )
            raise

    def _invalidate(self, node: ModelNode) -> None:
        owned = cache_for(node)
        if owned is not None:
            owned.invalidate(node)
        if owned is not self.cache:
            self.cache.invalidate(node)


def _enclosing_simulation(parent: ModelNode) -> Simulation | None:
    if isinstance(parent, Simulation):
        return parent
    return parent.find_ancestor(Simulation)
