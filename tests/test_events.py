"""
Tests for publisher/subscriber wiring.
"""

from canopy import Clock, EventBinding, EventConnector, Folder, ScopeCache, attach_child
from tests.example_models import Barley, Fertiliser, Soil, Wheat


def make_paddock() -> dict:
    clock = Clock(num_days=3)
    wheat = Wheat()
    fertiliser = Fertiliser()
    paddock = Folder("Paddock", children=[clock, Soil(), wheat, fertiliser])
    return {"paddock": paddock, "clock": clock, "wheat": wheat, "fertiliser": fertiliser}


class TestConnect:
    """Tests for EventConnector.connect."""

    def test_subscriber_receives_events(self) -> None:
        tree = make_paddock()
        EventConnector().connect(tree["paddock"])
        tree["clock"].run()
        assert tree["wheat"].days == [0, 1, 2]

    def test_binding_recorded(self) -> None:
        tree = make_paddock()
        connector = EventConnector()
        connector.connect(tree["paddock"])
        expected = EventBinding(tree["clock"], "NewDay", tree["wheat"], "on_new_day")
        assert expected in connector.bindings
        assert expected in connector.bindings_for(tree["clock"])

    def test_crop_event_reaches_fertiliser(self) -> None:
        tree = make_paddock()
        EventConnector().connect(tree["paddock"])
        tree["wheat"].raise_event("Harvesting", tree["wheat"])
        assert tree["fertiliser"].harvests == 1

    def test_every_publisher_in_scope(self) -> None:
        """A subscriber connects to all publishers of the event."""
        tree = make_paddock()
        barley = Barley()
        attach_child(tree["paddock"], barley)
        EventConnector().connect(tree["paddock"])
        tree["wheat"].raise_event("Harvesting", tree["wheat"])
        barley.raise_event("Harvesting", barley)
        assert tree["fertiliser"].harvests == 2

    def test_connect_twice_no_duplicates(self) -> None:
        tree = make_paddock()
        connector = EventConnector(cache=ScopeCache())
        first = connector.connect(tree["paddock"])
        second = connector.connect(tree["paddock"])
        assert first > 0
        assert second == 0
        tree["clock"].run()
        assert tree["wheat"].days == [0, 1, 2]

    def test_connect_subtree_only(self) -> None:
        """Connecting a subtree wires its subscribers to publishers in scope."""
        tree = make_paddock()
        connector = EventConnector()
        connector.connect(tree["wheat"])
        tree["clock"].run()
        assert tree["wheat"].days == [0, 1, 2]
        assert tree["fertiliser"].harvests == 0
        tree["wheat"].raise_event("Harvesting", tree["wheat"])
        assert tree["fertiliser"].harvests == 0

    def test_publisher_elsewhere_under_root(self) -> None:
        """A clock in a sibling paddock's subtree is still in scope via the root."""
        tree = make_paddock()
        other_clock = Clock("OtherClock", num_days=1)
        Folder("Farm", children=[tree["paddock"], Folder("East", children=[other_clock])])
        EventConnector().connect(tree["wheat"])
        other_clock.run()
        assert tree["wheat"].days == [0]


class TestDisconnect:
    """Tests for EventConnector.disconnect."""

    def test_disconnect_subscriber(self) -> None:
        tree = make_paddock()
        connector = EventConnector()
        connector.connect(tree["paddock"])
        removed = connector.disconnect(tree["wheat"])
        assert removed > 0
        tree["clock"].run()
        assert tree["wheat"].days == []

    def test_disconnect_publisher(self) -> None:
        """Removing a publisher's subtree drops the bindings it publishes."""
        tree = make_paddock()
        connector = EventConnector()
        connector.connect(tree["paddock"])
        connector.disconnect(tree["clock"])
        assert tree["clock"].connected_handlers("NewDay") == []
        assert all(b.publisher is not tree["clock"] for b in connector.bindings)

    def test_disconnect_everything(self) -> None:
        tree = make_paddock()
        connector = EventConnector()
        connector.connect(tree["paddock"])
        connector.disconnect(tree["paddock"])
        assert len(connector) == 0

    def test_reconnect_after_disconnect(self) -> None:
        tree = make_paddock()
        connector = EventConnector()
        connector.connect(tree["paddock"])
        connector.disconnect(tree["paddock"])
        connector.connect(tree["paddock"])
        tree["clock"].run()
        assert tree["wheat"].days == [0, 1, 2]
