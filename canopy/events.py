"""
Event wiring between publishers and subscribers.

A model publishes an event by listing its name in `publishes` and calling
raise_event(); a model subscribes with the @subscribe decorator.
EventConnector pairs them by name: each subscriber is connected to every
publisher of the same event found in its scope. Bindings are transient
and rebuilt on each connect pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from canopy import scope

if TYPE_CHECKING:
    from canopy.node import ModelNode
    from canopy.scope import ScopeCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventBinding:
    """One subscriber handler attached to one publisher event."""

    publisher: ModelNode
    event: str
    subscriber: ModelNode
    handler: str

    def involves(self, nodes: set[int]) -> bool:
        return id(self.publisher) in nodes or id(self.subscriber) in nodes


class EventConnector:
    """
    Connects and disconnects event handlers for whole subtrees.

    Args:
        cache: Scope cache used when searching for publishers
    """

    def __init__(self, cache: ScopeCache | None = None):
        self.cache = cache
        # Insertion-ordered set of live bindings
        self._bindings: dict[EventBinding, None] = {}

    def __len__(self) -> int:
        return len(self._bindings)

    @property
    def bindings(self) -> list[EventBinding]:
        return list(self._bindings)

    def connect(self, root: ModelNode) -> int:
        """
        Attach every subscriber in the subtree to its publishers in scope.

        Safe to call repeatedly: an existing binding is never added twice.

        Returns:
            Number of new bindings made
        """
        added = 0
        for subscriber in root.walk():
            for event, handler_names in subscriber.subscriptions().items():
                publishers = [
                    p
                    for p in scope.find_all_in_scope(subscriber, object, self.cache)
                    if event in p.published_events()
                ]
                for publisher in publishers:
                    for handler_name in handler_names:
                        binding = EventBinding(publisher, event, subscriber, handler_name)
                        if binding in self._bindings:
                            continue
                        self._bindings[binding] = None
                        publisher._event_handlers.setdefault(event, []).append(
                            getattr(subscriber, handler_name)
                        )
                        added += 1
        if added:
            logger.debug("Connected %d event handlers under %s", added, root.full_path)
        return added

    def disconnect(self, root: ModelNode) -> int:
        """
        Remove every binding whose publisher or subscriber is in the subtree.

        Returns:
            Number of bindings removed
        """
        members = {id(node) for node in root.walk()}
        stale = [b for b in self._bindings if b.involves(members)]
        for binding in stale:
            del self._bindings[binding]
            handlers = binding.publisher._event_handlers.get(binding.event, [])
            handler = getattr(binding.subscriber, binding.handler)
            if handler in handlers:
                handlers.remove(handler)
        if stale:
            logger.debug("Disconnected %d event handlers under %s", len(stale), root.full_path)
        return len(stale)

    def bindings_for(self, node: ModelNode) -> list[EventBinding]:
        """Bindings in which node is the publisher or the subscriber."""
        return [b for b in self._bindings if node in (b.publisher, b.subscriber)]
