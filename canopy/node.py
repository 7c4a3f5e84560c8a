"""
Model tree nodes.

ModelNode is the unit of the structural tree: a named object with a
parent reference, an ordered list of children and a set of declared
capabilities. Child order is significant; it is the order events and
lifecycle hooks are delivered in.

Capabilities are registered per class rather than discovered by
inspection at resolve time:

    links:      LinkDescriptor entries the LinkResolver binds
    publishes:  event names the model raises
    parameters: attributes settable from serialized input
    @subscribe: marks a method as the handler of a named event

The tables are merged along the MRO once, when the subclass is created,
and every subclass is recorded in a type registry used by the importer.

Example:
    class Fertiliser(ModelNode):
        links = (link("soil", Soil),)
        publishes = ("Fertilised",)
        parameters = ("amount",)
        amount = 0.0

        @subscribe("NewDay")
        def on_new_day(self, sender):
            ...
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from canopy import scope
from canopy.errors import NotFoundError, ReadOnlyError, StructuralError

if TYPE_CHECKING:
    from canopy.links import LinkDescriptor
    from canopy.scope import ScopeCache

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
N = TypeVar("N", bound="ModelNode")

# Lifecycle hooks implemented as plain methods rather than subscriptions
HOOK_METHODS: dict[str, str] = {"OnCreated": "on_created"}

_TYPE_REGISTRY: dict[str, type[ModelNode]] = {}


def subscribe(event: str) -> Callable[[F], F]:
    """Mark a method as a handler for the named event."""

    def decorator(func: F) -> F:
        events = getattr(func, "_subscribes", ())
        func._subscribes = (*events, event)  # type: ignore[attr-defined]
        return func

    return decorator


class ModelNode:
    """A node in the model tree."""

    links: ClassVar[tuple[LinkDescriptor, ...]] = ()
    publishes: ClassVar[tuple[str, ...]] = ()
    parameters: ClassVar[tuple[str, ...]] = ()

    # Set on tree roots that own a scope cache
    scope_cache: ScopeCache | None = None

    # Merged capability tables, filled by _register_capabilities
    _link_table: ClassVar[tuple[LinkDescriptor, ...]] = ()
    _event_table: ClassVar[frozenset[str]] = frozenset()
    _parameter_table: ClassVar[tuple[str, ...]] = ()
    _subscription_table: ClassVar[dict[str, tuple[str, ...]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _register_capabilities(cls)

    def __init__(
        self,
        name: str | None = None,
        children: Iterable[ModelNode] = (),
        read_only: bool = False,
        **parameters: Any,
    ):
        self.name = name if name is not None else type(self).__name__
        self.parent: ModelNode | None = None
        self.children: list[ModelNode] = []
        self.read_only = False
        self.unique_id = uuid.uuid4()
        self._event_handlers: dict[str, list[Callable[..., Any]]] = {}

        for descriptor in self._link_table:
            setattr(self, descriptor.attribute, descriptor.empty_value())

        for key, value in parameters.items():
            if key not in self._parameter_table:
                raise TypeError(f"{type(self).__name__} has no parameter '{key}'")
            setattr(self, key, value)

        for child in children:
            attach_child(self, child)

        # Applied last so constructor-supplied children can still attach
        self.read_only = read_only

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @classmethod
    def link_descriptors(cls) -> tuple[LinkDescriptor, ...]:
        return cls._link_table

    @classmethod
    def published_events(cls) -> frozenset[str]:
        return cls._event_table

    @classmethod
    def parameter_names(cls) -> tuple[str, ...]:
        return cls._parameter_table

    @classmethod
    def subscriptions(cls) -> dict[str, tuple[str, ...]]:
        """Event name -> names of the methods handling it."""
        return dict(cls._subscription_table)

    def handlers_for(self, event: str) -> list[Callable[..., Any]]:
        """Bound subscriber methods for an event, in declaration order."""
        return [getattr(self, attr) for attr in self._subscription_table.get(event, ())]

    def hook(self, name: str) -> list[Callable[..., Any]]:
        """Callables implementing a lifecycle hook on this node."""
        if name in HOOK_METHODS:
            return [getattr(self, HOOK_METHODS[name])]
        return self.handlers_for(name)

    def on_created(self) -> None:
        """Called once the node (and its subtree) has been attached."""

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def raise_event(self, event: str, *args: Any) -> int:
        """
        Invoke every handler connected to one of this node's events.

        Returns:
            Number of handlers invoked
        """
        if event not in self._event_table:
            raise ValueError(f"{type(self).__name__} does not publish '{event}'")
        # Handlers may add or remove subscribers while we iterate
        handlers = list(self._event_handlers.get(event, ()))
        for handler in handlers:
            handler(*args)
        return len(handlers)

    def connected_handlers(self, event: str) -> list[Callable[..., Any]]:
        return list(self._event_handlers.get(event, ()))

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def root(self) -> ModelNode:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def full_path(self) -> str:
        """Dotted path from the root, e.g. '.Simulations.Field.Wheat'."""
        names = [self.name] + [a.name for a in self.ancestors()]
        return "." + ".".join(reversed(names))

    def ancestors(self) -> Iterator[ModelNode]:
        """Parent first, root last."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def descendants(self) -> Iterator[ModelNode]:
        """All descendants in pre-order, excluding self."""
        for child in list(self.children):
            yield from child.walk()

    def walk(self) -> Iterator[ModelNode]:
        """Self followed by all descendants in pre-order."""
        yield self
        yield from self.descendants()

    def is_ancestor_of(self, other: ModelNode) -> bool:
        return any(a is self for a in other.ancestors())

    def find_ancestor(self, cls: type[N]) -> N | None:
        return next((a for a in self.ancestors() if isinstance(a, cls)), None)

    def find_child(self, name: str) -> ModelNode | None:
        return next((c for c in self.children if c.name == name), None)

    def children_of_type(self, cls: type[N]) -> list[N]:
        return [c for c in self.children if isinstance(c, cls)]

    def find_sibling(self, name: str) -> ModelNode | None:
        return find_sibling(self, name)

    def find_in_scope(self, target: type | str) -> ModelNode | None:
        return scope.find_in_scope(self, target, scope.cache_for(self))

    def find_all_in_scope(self, target: type) -> tuple[ModelNode, ...]:
        return scope.find_all_in_scope(self, target, scope.cache_for(self))

    def find_by_path(self, path: str) -> ModelNode | None:
        return scope.find_by_path(self, path, scope.cache_for(self))


def _register_capabilities(cls: type[ModelNode]) -> None:
    links: dict[str, LinkDescriptor] = {}
    events: set[str] = set()
    parameters: list[str] = []
    handlers: dict[str, tuple[str, ...]] = {}

    # Base classes first so subclasses override by attribute name
    for klass in reversed(cls.__mro__):
        if not issubclass(klass, ModelNode):
            continue
        declared = vars(klass)
        for descriptor in declared.get("links", ()):
            links[descriptor.attribute] = descriptor
        events.update(declared.get("publishes", ()))
        for name in declared.get("parameters", ()):
            if name not in parameters:
                parameters.append(name)
        for attr, value in declared.items():
            subscribed = getattr(value, "_subscribes", None)
            if subscribed:
                handlers[attr] = tuple(subscribed)
            elif attr in handlers:
                # Overridden without the decorator
                del handlers[attr]

    table: dict[str, list[str]] = {}
    for attr, subscribed in handlers.items():
        for event in subscribed:
            table.setdefault(event, []).append(attr)

    cls._link_table = tuple(links.values())
    cls._event_table = frozenset(events)
    cls._parameter_table = tuple(parameters)
    cls._subscription_table = {event: tuple(attrs) for event, attrs in table.items()}

    if cls.__name__ in _TYPE_REGISTRY and _TYPE_REGISTRY[cls.__name__] is not cls:
        logger.debug("Model type %s re-registered", cls.__name__)
    _TYPE_REGISTRY[cls.__name__] = cls


_register_capabilities(ModelNode)


class Folder(ModelNode):
    """A plain container for grouping models."""


def lookup_type(type_name: str) -> type[ModelNode] | None:
    """
    Find a registered model class by name.

    Accepts bare names ("Folder"), namespaced names ("Models.Core.Folder")
    and assembly-qualified names ("Models.Core.Folder, Models"). Falls back
    to a case-insensitive match for tag-style names ("folder").
    """
    short = type_name.split(",")[0].strip().rsplit(".", 1)[-1]
    if short in _TYPE_REGISTRY:
        return _TYPE_REGISTRY[short]
    lowered = short.lower()
    return next((c for n, c in _TYPE_REGISTRY.items() if n.lower() == lowered), None)


def attach_child(parent: ModelNode, child: ModelNode) -> None:
    """
    Append child to parent's children.

    Raises:
        ReadOnlyError: If parent is read-only
        StructuralError: If child already has a parent, or attaching it
            would make a node its own ancestor
    """
    if parent.read_only:
        raise ReadOnlyError(parent)
    if child.parent is not None:
        raise StructuralError(
            f"'{child.name}' is already a child of '{child.parent.name}'"
        )
    if child is parent or child.is_ancestor_of(parent):
        raise StructuralError(
            f"Cannot add '{child.name}' under its own descendant '{parent.name}'"
        )
    parent.children.append(child)
    child.parent = parent

    # Caches owned inside the subtree are only read while their owner is a root
    for node in child.walk():
        if node.scope_cache is not None:
            node.scope_cache.clear()


def detach_child(parent: ModelNode, child: ModelNode) -> None:
    """
    Remove child (by identity) from parent's children.

    Raises:
        NotFoundError: If child is not a direct child of parent
    """
    for index, candidate in enumerate(parent.children):
        if candidate is child:
            del parent.children[index]
            child.parent = None
            return
    raise NotFoundError(parent, child)


def set_parent_recursively(root: ModelNode) -> None:
    """Point every descendant's parent at the node that holds it."""
    for node in root.walk():
        for child in node.children:
            child.parent = node


def find_sibling(node: ModelNode, name: str) -> ModelNode | None:
    """Sibling of node with exactly this name, excluding node itself."""
    if node.parent is None:
        return None
    return next(
        (s for s in node.parent.children if s is not node and s.name == name),
        None,
    )
