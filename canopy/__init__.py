"""
Canopy Model Tree Engine

Structural editing of a live simulation model tree: models can be added,
moved, renamed and deleted while a simulation runs, with links, events,
lookup caches and lifecycle hooks kept consistent.

Modules:
    node: ModelNode, capability registration, attach/detach primitives
    naming: Sibling name uniqueness
    scope: Scope search and the scope lookup cache
    links: Link declarations and resolution
    events: Publisher/subscriber wiring
    lifecycle: Lifecycle hook dispatch
    importer: Native JSON and legacy XML fragments
    simulation: Simulations root, Simulation, Clock
    structure: StructureEngine (add, move, rename, delete)
    config: Engine configuration
    errors: Exception hierarchy
"""

from canopy.config import StructureConfig
from canopy.errors import (
    InvalidFormatError,
    NameExhaustionError,
    NotFoundError,
    ReadOnlyError,
    StructuralError,
    StructureError,
    UnresolvedLinkError,
)
from canopy.events import EventBinding, EventConnector
from canopy.importer import ExternalFormatImporter, NodeDocument
from canopy.lifecycle import LifecycleDispatcher
from canopy.links import LinkDescriptor, LinkResolver, Multiplicity, link
from canopy.logging_config import setup_logging
from canopy.naming import ensure_unique
from canopy.node import (
    Folder,
    ModelNode,
    attach_child,
    detach_child,
    find_sibling,
    lookup_type,
    set_parent_recursively,
    subscribe,
)
from canopy.scope import ScopeCache, find_all_in_scope, find_by_path, find_in_scope, in_scope
from canopy.simulation import Clock, Simulation, Simulations
from canopy.structure import StructureEngine

__all__ = [
    # Config
    "StructureConfig",
    "setup_logging",
    # Errors
    "InvalidFormatError",
    "NameExhaustionError",
    "NotFoundError",
    "ReadOnlyError",
    "StructuralError",
    "StructureError",
    "UnresolvedLinkError",
    # Tree
    "Folder",
    "ModelNode",
    "attach_child",
    "detach_child",
    "find_sibling",
    "lookup_type",
    "set_parent_recursively",
    "subscribe",
    "ensure_unique",
    # Scope
    "ScopeCache",
    "find_all_in_scope",
    "find_by_path",
    "find_in_scope",
    "in_scope",
    # Links and events
    "LinkDescriptor",
    "LinkResolver",
    "Multiplicity",
    "link",
    "EventBinding",
    "EventConnector",
    "LifecycleDispatcher",
    # Import
    "ExternalFormatImporter",
    "NodeDocument",
    # Simulation
    "Clock",
    "Simulation",
    "Simulations",
    "StructureEngine",
]
