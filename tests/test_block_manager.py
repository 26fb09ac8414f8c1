"""Tests for the block manager, street store and debouncer."""

import pytest
from pydantic import ValidationError

from conftest import add_rectangle
from py_citygen.core.geometry import polygon_area
from py_citygen.engine import (
    BlockManager,
    BlockManagerOptions,
    Debouncer,
    InMemoryStreetStore,
    RebuildState,
)


@pytest.fixture
def manager_factory(clock, options):
    managers = []

    def factory(store, manager_options=None):
        manager = BlockManager(store, manager_options or options, timer_factory=clock.timer)
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        manager.dispose()


class TestPipeline:
    """Test full rebuilds over small street networks."""

    def test_rectangle(self, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        generation = manager.force_rebuild()

        assert generation.number == 1
        assert len(manager.get_blocks()) == 1
        offset = manager.get_offset_polygons()[0]
        assert offset is not None
        assert polygon_area(offset) == pytest.approx(4500.0)

        strips = manager.get_strips()
        assert len(strips) == 2
        assert {strip.street_edge_id for strip in strips} == {"ab", "cd"}

        lots = manager.get_lots()
        assert len(lots) == 8
        assert sum(lot.area for lot in lots) == pytest.approx(4500.0)

    def test_edges_carry_default_width(self, rectangle_store, manager_factory):
        rectangle_store.set_edge_width("ab", 20.0)
        manager = manager_factory(rectangle_store)
        manager.force_rebuild()

        edges = manager.get_edges()
        assert edges["ab"].width == 20.0
        assert edges["bc"].width == 10.0

    def test_published_edges_are_read_only(self, rectangle_store, manager_factory):
        generation = manager_factory(rectangle_store).force_rebuild()

        with pytest.raises(TypeError):
            generation.edges["ab"] = None
        assert set(generation.edges) == {"ab", "bc", "cd", "da"}

    def test_sliver_block_has_no_buildable_area(self, sliver_store, manager_factory):
        manager = manager_factory(sliver_store)
        manager.force_rebuild()

        offsets = manager.get_offset_polygons()
        assert len(manager.get_blocks()) == 2
        assert len(offsets) == 2
        assert sum(1 for polygon in offsets if polygon is None) == 1
        assert len(manager.get_strips()) == 2

    def test_grid_lots_are_valid(self, grid_store, manager_factory, options):
        manager = manager_factory(grid_store)
        manager.force_rebuild()

        assert len(manager.get_blocks()) == 6
        assert len(manager.get_strips()) == 12
        lots = manager.get_lots()
        assert len(lots) == 48
        for lot in lots:
            assert lot.area >= options.min_lot_area
            assert lot.frontage_length >= options.min_lot_frontage

    def test_rebuild_is_idempotent(self, grid_store, manager_factory):
        manager = manager_factory(grid_store)
        first = manager.force_rebuild()
        second = manager.force_rebuild()

        assert second.number == first.number + 1
        assert [block.id for block in first.blocks] == [block.id for block in second.blocks]
        assert [lot.id for lot in first.lots] == [lot.id for lot in second.lots]
        assert [lot.polygon for lot in first.lots] == [lot.polygon for lot in second.lots]

    def test_empty_store(self, manager_factory):
        manager = manager_factory(InMemoryStreetStore())
        generation = manager.force_rebuild()

        assert generation.blocks == ()
        assert manager.get_lots() == []


class TestScheduling:
    """Test debounced rebuild scheduling."""

    def test_burst_of_changes_rebuilds_once(self, clock, manager_factory):
        store = InMemoryStreetStore()
        manager = manager_factory(store)
        generations = []
        manager.add_rebuild_listener(generations.append)

        add_rectangle(store)
        clock.advance(0.2)
        store.move_node("c", 100.0, 61.0)
        clock.advance(0.29)

        assert generations == []
        assert manager.state == RebuildState.PENDING

        clock.advance(0.01)
        assert len(generations) == 1
        assert generations[0].number == 1
        assert len(generations[0].blocks) == 1
        assert manager.state == RebuildState.IDLE

        store.move_node("c", 100.0, 60.0)
        clock.advance(0.3)
        assert len(generations) == 2

    def test_initial_rebuild_is_scheduled(self, clock, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        assert manager.state == RebuildState.PENDING
        assert manager.get_blocks() == []

        clock.advance(0.3)
        assert len(manager.get_blocks()) == 1

    def test_force_rebuild_cancels_pending(self, clock, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        manager.force_rebuild()
        assert manager.state == RebuildState.IDLE

        clock.advance(1.0)
        assert manager.get_generation().number == 1

    def test_state_while_rebuilding(self, rectangle_store, manager_factory, monkeypatch):
        manager = manager_factory(rectangle_store)
        seen = []

        def fake_generate_strips(block, polygon, edge_widths=None):
            seen.append(manager.state)
            return []

        monkeypatch.setattr(
            "py_citygen.engine.block_manager.generate_strips", fake_generate_strips
        )
        manager.force_rebuild()

        assert seen == [RebuildState.REBUILDING]

    def test_reentrant_rebuild_is_deferred(self, clock, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        returned = []

        def listener(generation):
            returned.append(manager.force_rebuild())

        manager.add_rebuild_listener(listener)
        generation = manager.force_rebuild()

        assert returned == [generation]
        assert manager.state == RebuildState.PENDING

        manager.remove_rebuild_listener(listener)
        clock.advance(0.3)
        assert manager.get_generation().number == 2


class TestOptions:
    """Test option updates."""

    def test_invalid_options_rejected(self, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        with pytest.raises(ValidationError):
            manager.set_options(min_lot_area=-1.0)
        assert manager.options.min_lot_area == 200.0

    def test_options_schedule_rebuild(self, clock, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        manager.force_rebuild()

        options = manager.set_options(target_lot_width=45.0, rebuild_debounce_ms=100)
        assert options.target_lot_width == 45.0
        assert manager.state == RebuildState.PENDING

        clock.advance(0.1)
        assert manager.get_generation().number == 2
        assert len(manager.get_lots()) == 4

    def test_options_are_frozen(self):
        options = BlockManagerOptions()
        with pytest.raises(ValidationError):
            options.min_lot_area = 10.0


class TestFailureIsolation:
    """Test that failures never escape a rebuild."""

    def test_strip_failure_skips_block(self, rectangle_store, manager_factory, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("py_citygen.engine.block_manager.generate_strips", broken)
        manager = manager_factory(rectangle_store)
        generation = manager.force_rebuild()

        assert len(generation.blocks) == 1
        assert generation.strips == ()
        assert generation.lots == ()

    def test_failed_rebuild_keeps_previous_generation(
        self, rectangle_store, manager_factory, monkeypatch
    ):
        manager = manager_factory(rectangle_store)
        previous = manager.force_rebuild()

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("py_citygen.engine.block_manager.detect_blocks", broken)
        assert manager.force_rebuild() is previous
        assert manager.state == RebuildState.IDLE

    def test_listener_failure_is_contained(self, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        received = []

        def broken(generation):
            raise RuntimeError("boom")

        manager.add_rebuild_listener(broken)
        manager.add_rebuild_listener(received.append)
        generation = manager.force_rebuild()

        assert received == [generation]


class TestDispose:
    """Test manager disposal."""

    def test_dispose_stops_rebuilds(self, clock, rectangle_store, manager_factory):
        manager = manager_factory(rectangle_store)
        manager.dispose()
        assert manager.state == RebuildState.IDLE

        rectangle_store.move_node("c", 100.0, 70.0)
        clock.advance(1.0)
        assert manager.state == RebuildState.IDLE
        assert manager.get_generation().number == 0
        assert manager.force_rebuild().number == 0


class TestStreetStore:
    """Test the in-memory street store."""

    def test_remove_node_removes_edges(self, rectangle_store):
        rectangle_store.remove_node("a")

        assert "a" not in rectangle_store.get_nodes()
        assert set(rectangle_store.get_edges()) == {"bc", "cd"}

    def test_listeners_called_per_mutation(self):
        store = InMemoryStreetStore()
        calls = []
        store.add_listener(lambda: calls.append(1))

        store.add_node("a", 0.0, 0.0)
        store.add_node("b", 10.0, 0.0)
        store.add_edge("ab", "a", "b")
        store.remove_edge("ab")
        store.remove_edge("ab")

        assert len(calls) == 4

    def test_unknown_node_move(self):
        with pytest.raises(KeyError):
            InMemoryStreetStore().move_node("missing", 0.0, 0.0)

    def test_invalid_width_rejected(self, rectangle_store):
        with pytest.raises(ValidationError):
            rectangle_store.set_edge_width("ab", -5.0)

    def test_readers_return_copies(self, rectangle_store):
        nodes = rectangle_store.get_nodes()
        nodes.clear()
        assert len(rectangle_store.get_nodes()) == 4


class TestDebouncer:
    """Test the debouncer."""

    def test_trigger_burst(self, clock):
        calls = []
        debouncer = Debouncer(0.5, lambda: calls.append(clock.now), timer_factory=clock.timer)

        for _ in range(3):
            debouncer.trigger()
            clock.advance(0.2)
        assert calls == []
        assert debouncer.pending

        clock.advance(0.3)
        assert calls == [pytest.approx(0.9)]
        assert not debouncer.pending

    def test_cancel(self, clock):
        calls = []
        debouncer = Debouncer(0.1, lambda: calls.append(1), timer_factory=clock.timer)
        debouncer.trigger()
        debouncer.cancel()
        clock.advance(1.0)

        assert calls == []
        assert not debouncer.pending
