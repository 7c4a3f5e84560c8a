"""
Tests for scope search and the scope cache.
"""

from canopy import Folder, ScopeCache, Simulations, find_all_in_scope, find_by_path, find_in_scope, in_scope
from canopy.scope import BY_TYPE
from tests.example_models import Barley, Crop, Soil, Wheat


def make_farm() -> dict[str, Folder]:
    """
    Farm
    ├── East: [Soil, Wheat]
    └── West: [Soil, Barley]
    """
    east = Folder("East", children=[Soil(), Wheat()])
    west = Folder("West", children=[Soil(), Barley()])
    farm = Folder("Farm", children=[east, west])
    return {"farm": farm, "east": east, "west": west}


class TestInScope:
    """Tests for scope ordering."""

    def test_nearest_first(self) -> None:
        """Own subtree first, then outward through ancestors."""
        tree = make_farm()
        wheat = tree["east"].children[1]
        names = [n.full_path for n in in_scope(wheat)]
        assert names == [
            ".Farm.East.Wheat",
            ".Farm.East",
            ".Farm.East.Soil",
            ".Farm",
            ".Farm.West",
            ".Farm.West.Soil",
            ".Farm.West.Barley",
        ]

    def test_no_repeats(self) -> None:
        tree = make_farm()
        visited = list(in_scope(tree["west"].children[0]))
        assert len(visited) == len({id(n) for n in visited}) == 7

    def test_find_nearest_soil(self) -> None:
        """The soil in the same paddock wins over the neighbour's."""
        tree = make_farm()
        wheat = tree["east"].children[1]
        assert find_in_scope(wheat, Soil) is tree["east"].children[0]

    def test_find_by_name(self) -> None:
        tree = make_farm()
        wheat = tree["east"].children[1]
        assert find_in_scope(wheat, "Barley") is tree["west"].children[1]
        assert find_in_scope(wheat, "Oats") is None

    def test_find_all_in_discovery_order(self) -> None:
        tree = make_farm()
        barley = tree["west"].children[1]
        crops = find_all_in_scope(barley, Crop)
        assert [c.name for c in crops] == ["Barley", "Wheat"]


class TestFindByPath:
    """Tests for dotted path lookups."""

    def test_absolute(self) -> None:
        tree = make_farm()
        soil = tree["west"].children[0]
        assert find_by_path(tree["east"], ".Farm.West.Soil") is soil

    def test_absolute_wrong_root(self) -> None:
        tree = make_farm()
        assert find_by_path(tree["east"], ".Ranch.West") is None

    def test_relative(self) -> None:
        tree = make_farm()
        wheat = tree["east"].children[1]
        assert find_by_path(wheat, "West.Barley") is tree["west"].children[1]

    def test_missing(self) -> None:
        tree = make_farm()
        assert find_by_path(tree["farm"], "East.Oats") is None


class TestScopeCache:
    """Tests for memoization and invalidation."""

    def test_results_cached(self) -> None:
        cache = ScopeCache()
        tree = make_farm()
        wheat = tree["east"].children[1]
        first = find_all_in_scope(wheat, Soil, cache)
        assert cache.query(wheat, BY_TYPE, Soil) == first
        assert len(cache) == 1

    def test_get_or_compute_only_computes_once(self) -> None:
        cache = ScopeCache()
        node = Folder()
        calls = []

        def compute() -> int:
            calls.append(1)
            return 42

        assert cache.get_or_compute(node, "custom", "x", compute) == 42
        assert cache.get_or_compute(node, "custom", "x", compute) == 42
        assert len(calls) == 1

    def test_cached_none_is_a_hit(self) -> None:
        """A cached miss is not recomputed."""
        cache = ScopeCache()
        tree = make_farm()
        assert find_in_scope(tree["farm"], "Oats", cache) is None
        assert len(cache) == 1

    def test_invalidate_clears_node_and_ancestors(self) -> None:
        cache = ScopeCache()
        tree = make_farm()
        wheat = tree["east"].children[1]
        for node in (wheat, tree["east"], tree["farm"]):
            find_all_in_scope(node, Soil, cache)
        cache.invalidate(wheat)
        assert len(cache) == 0

    def test_invalidate_leaves_other_trees(self) -> None:
        """Trees with identical names do not share or lose entries."""
        cache = ScopeCache()
        first = make_farm()
        second = make_farm()
        find_all_in_scope(first["east"], Soil, cache)
        find_all_in_scope(second["east"], Soil, cache)
        assert len(cache) == 2

        cache.invalidate(first["east"])
        assert cache.query(first["east"], BY_TYPE, Soil) is None
        assert cache.query(second["east"], BY_TYPE, Soil) is not None

    def test_clear(self) -> None:
        cache = ScopeCache()
        tree = make_farm()
        find_all_in_scope(tree["farm"], Soil, cache)
        cache.clear()
        assert len(cache) == 0

    def test_store_and_forget(self) -> None:
        cache = ScopeCache()
        tree = make_farm()
        east, farm = tree["east"], tree["farm"]
        cache.store(east, BY_TYPE, Soil, (east.children[0],))
        cache.store(farm, BY_TYPE, Soil, ())
        assert (east.unique_id, BY_TYPE, Soil) in cache
        assert cache.forget(east) == 1
        assert (east.unique_id, BY_TYPE, Soil) not in cache
        assert cache.query(farm, BY_TYPE, Soil) == ()

    def test_root_owns_cache(self) -> None:
        """Node helpers go through the cache owned by a Simulations root."""
        soil = Soil()
        sims = Simulations(children=[Folder(children=[soil, Wheat()])])
        wheat = soil.parent.children[1]
        assert wheat.find_in_scope(Soil) is soil
        assert len(sims.scope_cache) == 1
