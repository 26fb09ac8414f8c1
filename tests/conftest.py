"""Shared fixtures for the block pipeline tests."""

import os

os.environ.setdefault("MPLBACKEND", "Agg")

import pytest

from py_citygen.core.block_detection import DetectedBlock
from py_citygen.core.geometry import Point2D, signed_area
from py_citygen.engine import BlockManagerOptions, InMemoryStreetStore


class FakeTimer:
    """``threading.Timer`` stand-in driven by ``FakeClock``."""

    def __init__(self, clock, interval, function):
        self.clock = clock
        self.interval = interval
        self.function = function
        self.due = None
        self.cancelled = False
        self.fired = False

    def start(self):
        self.due = self.clock.now + self.interval
        self.clock.timers.append(self)

    def cancel(self):
        self.cancelled = True


class FakeClock:
    """Manual clock; ``advance`` fires due timers in order."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def timer(self, interval, function):
        return FakeTimer(self, interval, function)

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [
                t for t in self.timers
                if not t.cancelled and not t.fired and t.due <= target + 1e-9
            ]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.function()
        self.now = target


def add_rectangle(store, width=100.0, depth=60.0):
    store.add_node("a", 0.0, 0.0)
    store.add_node("b", width, 0.0)
    store.add_node("c", width, depth)
    store.add_node("d", 0.0, depth)
    store.add_edge("ab", "a", "b")
    store.add_edge("bc", "b", "c")
    store.add_edge("cd", "c", "d")
    store.add_edge("da", "d", "a")
    return store


def add_grid(store, columns, rows, spacing):
    for i in range(columns + 1):
        for j in range(rows + 1):
            store.add_node(f"n_{i}_{j}", i * spacing, j * spacing)
    for i in range(columns + 1):
        for j in range(rows + 1):
            if i < columns:
                store.add_edge(f"h_{i}_{j}", f"n_{i}_{j}", f"n_{i + 1}_{j}")
            if j < rows:
                store.add_edge(f"v_{i}_{j}", f"n_{i}_{j}", f"n_{i}_{j + 1}")
    return store


def make_block(points, block_id="block_0", edge_ids=None):
    """DetectedBlock from bare coordinates, edges named e0, e1, ..."""
    polygon = [Point2D(*p) for p in points]
    n = len(polygon)
    return DetectedBlock(
        id=block_id,
        node_ids=[f"p{i}" for i in range(n)],
        edge_ids=edge_ids or [f"e{i}" for i in range(n)],
        polygon=polygon,
        area=signed_area(polygon),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def options():
    return BlockManagerOptions()


@pytest.fixture
def rectangle_store():
    """100 x 60 block bounded by four default-width streets."""
    return add_rectangle(InMemoryStreetStore())


@pytest.fixture
def sliver_store():
    """The rectangle plus a 0.8 deep triangle hanging off its bottom street."""
    store = add_rectangle(InMemoryStreetStore())
    store.add_node("e", 100.0, -0.8)
    store.add_edge("be", "b", "e")
    store.add_edge("ea", "e", "a")
    return store


@pytest.fixture
def grid_store():
    """3 x 2 grid of 100 x 100 blocks."""
    return add_grid(InMemoryStreetStore(), 3, 2, 100.0)


@pytest.fixture
def rectangle_block():
    return make_block(
        [(0, 0), (100, 0), (100, 60), (0, 60)], edge_ids=["ab", "bc", "cd", "da"]
    )
