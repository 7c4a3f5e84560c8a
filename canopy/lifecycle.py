"""
Lifecycle hook dispatch.

Hooks are delivered directly to every model in a subtree, node before
children, without going through event connections. The first hook that
raises aborts the rest of the traversal.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from canopy.node import ModelNode

logger = logging.getLogger(__name__)

ON_CREATED = "OnCreated"
START_OF_SIMULATION = "StartOfSimulation"
END_OF_SIMULATION = "EndOfSimulation"


class LifecycleDispatcher:
    """Invokes named lifecycle hooks across a subtree."""

    def dispatch(
        self,
        root: ModelNode,
        hook: str,
        *args: Any,
        include_self: bool = True,
    ) -> int:
        """
        Invoke hook on root and its descendants in pre-order.

        Args:
            root: Subtree root
            hook: Hook name ("OnCreated" or any subscribed event name)
            *args: Arguments passed to each handler
            include_self: Whether root itself receives the hook

        Returns:
            Number of handlers invoked
        """
        nodes = root.walk() if include_self else root.descendants()
        invoked = 0
        for node in nodes:
            for handler in node.hook(hook):
                handler(*args)
                invoked += 1
        logger.debug("Dispatched %s to %d handlers under %s", hook, invoked, root.full_path)
        return invoked
