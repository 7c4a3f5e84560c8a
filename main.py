"""
Canopy - Live Model Tree Editing Demo

Walks through the structural engine on a small paddock:
1. Build a simulation tree in code
2. Add models from native JSON and legacy XML fragments
3. Run a season in which a manager sows a crop part way through
4. Rename, move and delete models, then dump part of the tree

Models added while the season runs are linked, connected and started on
the spot, so the late crop grows for the rest of the season without any
extra wiring.
"""

import logging

from canopy import (
    Clock,
    Folder,
    ModelNode,
    Simulation,
    Simulations,
    StructureEngine,
    link,
    setup_logging,
    subscribe,
)


class Soil(ModelNode):
    """Soil profile shared by every crop in the paddock."""

    parameters = ("depth",)
    depth = 1800.0


class Crop(ModelNode):
    """Counts growing days and raises Harvesting once mature."""

    links = (link("soil", Soil),)
    publishes = ("Harvesting",)
    parameters = ("harvest_after",)
    harvest_after = 4

    def __init__(self, name: str | None = None, **kwargs):
        super().__init__(name=name, **kwargs)
        self.growing_days = 0

    @subscribe("NewDay")
    def on_new_day(self, sender: Clock) -> None:
        self.growing_days += 1
        if self.growing_days == self.harvest_after:
            self.raise_event("Harvesting", self)


class Fertiliser(ModelNode):
    """Top-dresses the paddock after each harvest."""

    links = (link("crops", Crop, required=False, collection=True),)
    parameters = ("amount",)
    amount = 0.0

    def __init__(self, name: str | None = None, **kwargs):
        super().__init__(name=name, **kwargs)
        self.applied: list[str] = []

    @subscribe("Harvesting")
    def on_harvesting(self, sender: Crop) -> None:
        self.applied.append(sender.name)


class SowingManager(ModelNode):
    """Sows a late crop beside itself on a given day."""

    links = (link("structure", StructureEngine),)
    parameters = ("sow_on",)
    sow_on = 2

    def __init__(self, name: str | None = None, **kwargs):
        super().__init__(name=name, **kwargs)
        self.sown: ModelNode | None = None

    @subscribe("NewDay")
    def on_new_day(self, sender: Clock) -> None:
        if sender.today == self.sow_on and self.sown is None:
            self.sown = self.structure.add('{"$type": "Crop", "Name": "LateCrop"}', self.parent)


def build_paddock(num_days: int = 6) -> Simulations:
    """
    Simulations
    └── Season
        ├── Clock
        └── Paddock: [Soil, Wheat, Fertiliser, SowingManager]
    """
    paddock = Folder(
        "Paddock",
        children=[Soil(), Crop("Wheat"), Fertiliser(amount=40.0), SowingManager()],
    )
    season = Simulation("Season", children=[Clock(num_days=num_days), paddock])
    sims = Simulations(children=[season])
    season.services.append(sims.engine)
    return sims


def print_tree(node: ModelNode, depth: int = 0) -> None:
    print(f"  {'  ' * depth}{node.name} ({type(node).__name__})")
    for child in node.children:
        print_tree(child, depth + 1)


def banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def main() -> None:
    setup_logging(logging.INFO)

    print("\n" + "=" * 60)
    print("  CANOPY: Live Model Tree Editing")
    print("=" * 60)

    sims = build_paddock()
    engine = sims.engine
    season = sims.find_child("Season")
    paddock = season.find_child("Paddock")

    banner("STEP 1: Adding serialized fragments")
    barley = engine.add('{"$type": "Crop", "Name": "Barley", "harvest_after": 3}', paddock)
    legacy = engine.add("<crop name='Wheat'><harvest_after>5</harvest_after></crop>", paddock)
    print(f"  Native fragment added as {barley.full_path}")
    print(f"  Legacy fragment added as {legacy.full_path} (name collision repaired)")

    banner("STEP 2: Running the season")
    season.run()
    late = paddock.find_child("SowingManager").sown
    print(f"  {late.full_path} was sown mid-run")
    print(f"  Linked to soil: {late.soil.name}, grew for {late.growing_days} days")
    fertiliser = paddock.find_child("Fertiliser")
    print(f"  Fertiliser applied after: {', '.join(fertiliser.applied)}")

    banner("STEP 3: Editing the tree")
    store = engine.add(Folder("Store"), sims)
    engine.rename(barley, "Wheat")
    print(f"  Barley renamed to {barley.name}")
    engine.move(late, store)
    print(f"  Late crop moved to {late.full_path}, id unchanged: {sims.find_by_id(late.unique_id) is late}")
    print(f"  Delete {legacy.name}: {engine.delete(legacy)}; again: {engine.delete(legacy)}")

    print("\nFinal tree:")
    print_tree(sims)

    print("\nStore in the native format:")
    print(engine.importer.dump_native(store))

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
