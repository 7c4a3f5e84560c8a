"""
Simulation containers.

Simulations is the root of a model tree. It owns the scope cache for the
tree and the StructureEngine used to edit it.

Simulation is the live collaborator the engine consults during an add:
while run() is executing, is_running is True and models added under it
are linked, connected and started on the spot. Its services are offered
to links before scope search.

Clock drives the daily loop by raising NewDay.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any
from uuid import UUID

from canopy.config import StructureConfig
from canopy.events import EventConnector
from canopy.lifecycle import END_OF_SIMULATION, START_OF_SIMULATION, LifecycleDispatcher
from canopy.links import LinkResolver
from canopy.node import ModelNode
from canopy.scope import ScopeCache, cache_for

if TYPE_CHECKING:
    from canopy.structure import StructureEngine

logger = logging.getLogger(__name__)


class Simulations(ModelNode):
    """
    Root container of a model tree.

    A Simulations holding exactly one child is also the wrapper produced
    by single-model fragments; the engine unwraps it on add.
    """

    def __init__(
        self,
        name: str | None = None,
        children: Iterable[ModelNode] = (),
        read_only: bool = False,
        config: StructureConfig | None = None,
        **parameters: Any,
    ):
        self.scope_cache = ScopeCache()
        self.config = config or StructureConfig()
        self._engine: StructureEngine | None = None
        super().__init__(name=name, children=children, read_only=read_only, **parameters)

    @property
    def engine(self) -> StructureEngine:
        """Structure engine sharing this tree's scope cache."""
        if self._engine is None:
            from canopy.structure import StructureEngine

            self._engine = StructureEngine(config=self.config, cache=self.scope_cache)
        return self._engine

    def find_by_id(self, unique_id: UUID) -> ModelNode | None:
        """Model in this tree with the given unique_id."""
        return next((n for n in self.walk() if n.unique_id == unique_id), None)

    def reset_caches(self) -> None:
        """Drop all cached scope lookups (reload)."""
        if self.scope_cache is not None:
            self.scope_cache.clear()


class Clock(ModelNode):
    """Raises NewDay once per simulated day."""

    publishes = ("NewDay",)
    parameters = ("num_days",)

    num_days = 10

    def __init__(self, name: str | None = None, **kwargs: Any):
        super().__init__(name=name, **kwargs)
        self.today = -1

    def run(self) -> None:
        for day in range(self.num_days):
            self.today = day
            self.raise_event("NewDay", self)


class Simulation(ModelNode):
    """
    A single runnable simulation.

    Args:
        name: Model name
        children: Initial child models
        services: Objects offered to links ahead of scope search
    """

    def __init__(
        self,
        name: str | None = None,
        children: Iterable[ModelNode] = (),
        services: Iterable[object] = (),
        **kwargs: Any,
    ):
        # Used only while this simulation is itself a tree root
        self.scope_cache = ScopeCache()
        super().__init__(name=name, children=children, **kwargs)
        self.services: list[object] = list(services)
        self.is_running = False
        self.events = EventConnector()
        self.dispatcher = LifecycleDispatcher()

    def link_resolver(self) -> LinkResolver:
        return LinkResolver(self.services, cache_for(self))

    def run(self) -> None:
        """
        Run the simulation to completion.

        Links are resolved strictly, events connected and StartOfSimulation
        delivered before the clock starts. Event connections are torn down
        and is_running cleared on the way out, even on failure.
        """
        logger.info("Running %s", self.full_path)
        self.events.cache = cache_for(self)
        self.is_running = True
        try:
            self.link_resolver().resolve(self, include_self=True, throw_on_fail=True)
            self.events.connect(self)
            self.dispatcher.dispatch(self, START_OF_SIMULATION, self)
            for clock in self.children_of_type(Clock):
                clock.run()
            self.dispatcher.dispatch(self, END_OF_SIMULATION, self)
        finally:
            self.events.disconnect(self)
            self.is_running = False
        logger.info("Finished %s", self.full_path)
