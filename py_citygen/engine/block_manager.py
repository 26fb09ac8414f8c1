"""
Block manager: keeps blocks, strips and lots in step with the street network.

The manager listens to a street store and rebuilds all derived data after
changes settle (debounced). A rebuild runs the whole pipeline:

1. Read nodes and edges, resolving default street widths
2. Detect blocks and keep the interior ones
3. Inset each block by its street widths
4. Generate strips per block
5. Subdivide strips into lots

Results are published as one immutable ``Generation``. Readers always see
either the previous generation or the new one in full, never a mix.
Failures inside a block or strip are logged and skipped; nothing escapes a
rebuild.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..config import settings as default_settings
from ..config.settings import Settings
from ..core.block_detection import DetectedBlock, detect_blocks, get_interior_blocks
from ..core.boundary_offset import offset_block_boundary
from ..core.geometry import Point2D
from ..core.lot_subdivision import GeneratedLot, SubdivisionRules, subdivide_strip
from ..core.street_graph import GraphEdge, StreetGraph
from ..core.strip_generation import Strip, generate_strips
from .debounce import Debouncer
from .street_store import StreetStore

logger = structlog.get_logger()


class RebuildState(str, Enum):
    """Scheduling state of the block manager."""

    IDLE = "idle"
    PENDING = "pending"
    REBUILDING = "rebuilding"


class BlockManagerOptions(BaseModel):
    """Block generation options."""

    model_config = ConfigDict(frozen=True)

    default_street_width: float = Field(
        default=10.0, gt=0, description="Width for streets without an explicit width"
    )
    min_lot_frontage: float = Field(default=10.0, gt=0, description="Minimum lot frontage")
    max_lot_frontage: float = Field(default=50.0, gt=0, description="Maximum lot frontage")
    min_lot_area: float = Field(default=200.0, gt=0, description="Minimum lot area")
    max_lot_depth: float = Field(default=40.0, gt=0, description="Nominal lot depth (not enforced yet)")
    target_lot_width: float = Field(default=25.0, gt=0, description="Preferred lot width")
    rebuild_debounce_ms: int = Field(
        default=300, ge=0, description="Quiet period before a rebuild runs"
    )
    lot_jitter_seed: str = Field(default="lots", description="Seed prefix for lot jitter")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BlockManagerOptions":
        """Build options from application settings (the global ones by default)."""
        settings = settings or default_settings
        return cls(
            default_street_width=settings.default_street_width,
            min_lot_frontage=settings.min_lot_frontage,
            max_lot_frontage=settings.max_lot_frontage,
            min_lot_area=settings.min_lot_area,
            max_lot_depth=settings.max_lot_depth,
            target_lot_width=settings.target_lot_width,
            rebuild_debounce_ms=settings.rebuild_debounce_ms,
            lot_jitter_seed=settings.lot_jitter_seed,
        )

    def subdivision_rules(self) -> SubdivisionRules:
        return SubdivisionRules(
            min_lot_frontage=self.min_lot_frontage,
            max_lot_frontage=self.max_lot_frontage,
            min_lot_area=self.min_lot_area,
            max_lot_depth=self.max_lot_depth,
            target_lot_width=self.target_lot_width,
            jitter_seed=self.lot_jitter_seed,
        )


@dataclass(frozen=True)
class Generation:
    """One complete, immutable rebuild result."""

    number: int
    blocks: Tuple[DetectedBlock, ...] = ()
    offset_polygons: Tuple[Optional[Tuple[Point2D, ...]], ...] = ()
    strips: Tuple[Strip, ...] = ()
    lots: Tuple[GeneratedLot, ...] = ()
    edges: Mapping[str, GraphEdge] = field(default_factory=lambda: MappingProxyType({}))
    built_at: float = 0.0


RebuildListener = Callable[[Generation], None]


class BlockManager:
    """Debounced, cached block/strip/lot generation over a street store."""

    def __init__(
        self,
        store: StreetStore,
        options: Optional[BlockManagerOptions] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """
        Subscribe to ``store`` and schedule the initial rebuild.

        Args:
            store: Street network source
            options: Generation options, from settings when omitted
            timer_factory: ``threading.Timer`` compatible factory for the debounce
        """
        self._store = store
        self._options = options or BlockManagerOptions.from_settings()
        self._generation = Generation(number=0)
        self._listeners: List[RebuildListener] = []
        self._rebuild_lock = threading.Lock()
        self._rebuilding = False
        self._rebuild_thread: Optional[int] = None
        self._disposed = False

        self._debouncer = Debouncer(
            self._options.rebuild_debounce_ms / 1000.0,
            self._rebuild_from_timer,
            timer_factory=timer_factory,
        )

        store.add_listener(self.schedule_rebuild)
        self.schedule_rebuild()

    # Scheduling

    @property
    def state(self) -> RebuildState:
        if self._rebuilding:
            return RebuildState.REBUILDING
        if self._debouncer.pending:
            return RebuildState.PENDING
        return RebuildState.IDLE

    @property
    def options(self) -> BlockManagerOptions:
        return self._options

    def schedule_rebuild(self) -> None:
        """Rebuild once no further changes arrive within the debounce window."""
        if self._disposed:
            return
        self._debouncer.trigger()

    def force_rebuild(self) -> Generation:
        """
        Rebuild immediately, cancelling any pending debounced rebuild.

        Called from inside a rebuild (e.g. by a rebuild listener), this
        schedules a debounced rebuild instead and returns the current
        generation.
        """
        if self._disposed:
            return self._generation
        if self._rebuild_thread == threading.get_ident():
            logger.debug("Re-entrant rebuild deferred", generation=self._generation.number)
            self.schedule_rebuild()
            return self._generation

        self._debouncer.cancel()
        return self._rebuild()

    def set_options(self, **changes) -> BlockManagerOptions:
        """
        Update options and schedule a rebuild.

        Raises:
            pydantic.ValidationError: If a changed value is invalid
        """
        options = BlockManagerOptions(**{**self._options.model_dump(), **changes})
        self._options = options
        self._debouncer.delay_seconds = options.rebuild_debounce_ms / 1000.0
        self.schedule_rebuild()
        return options

    def dispose(self) -> None:
        """Stop listening to the store and cancel any pending rebuild."""
        self._disposed = True
        self._debouncer.cancel()
        self._store.remove_listener(self.schedule_rebuild)
        self._listeners.clear()

    # Rebuild listeners

    def add_rebuild_listener(self, listener: RebuildListener) -> None:
        self._listeners.append(listener)

    def remove_rebuild_listener(self, listener: RebuildListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Cached results

    def get_generation(self) -> Generation:
        return self._generation

    def get_blocks(self) -> List[DetectedBlock]:
        """Interior blocks (centreline polygons)."""
        return list(self._generation.blocks)

    def get_offset_polygons(self) -> List[Optional[List[Point2D]]]:
        """Buildable area per block, None where the inset collapsed."""
        return [
            list(polygon) if polygon is not None else None
            for polygon in self._generation.offset_polygons
        ]

    def get_strips(self) -> List[Strip]:
        return list(self._generation.strips)

    def get_lots(self) -> List[GeneratedLot]:
        return list(self._generation.lots)

    def get_edges(self) -> Dict[str, GraphEdge]:
        """Edges of the last rebuild with default widths applied."""
        return dict(self._generation.edges)

    # Rebuild

    def _rebuild_from_timer(self) -> None:
        if self._disposed:
            return
        self._rebuild()

    def _rebuild(self) -> Generation:
        with self._rebuild_lock:
            self._rebuild_thread = threading.get_ident()
            try:
                self._rebuilding = True
                try:
                    generation = self._build_generation(self._generation.number + 1)
                except Exception:
                    logger.exception("Rebuild failed", generation=self._generation.number + 1)
                    return self._generation
                finally:
                    self._rebuilding = False

                self._generation = generation
                self._notify(generation)
                return generation
            finally:
                self._rebuild_thread = None

    def _build_generation(self, number: int) -> Generation:
        options = self._options
        started = time.perf_counter()

        graph = StreetGraph.from_mappings(
            self._store.get_nodes(), self._store.get_edges(), options.default_street_width
        )
        edge_widths = graph.edge_widths

        blocks = get_interior_blocks(detect_blocks(graph.nodes, graph.edges))

        offset_polygons: List[Optional[Tuple[Point2D, ...]]] = []
        for block in blocks:
            try:
                polygon = offset_block_boundary(block, edge_widths, options.default_street_width)
            except Exception:
                logger.warning("Offset failed", block_id=block.id, exc_info=True)
                polygon = None
            offset_polygons.append(tuple(polygon) if polygon is not None else None)

        strips: List[Strip] = []
        for block, polygon in zip(blocks, offset_polygons):
            if polygon is None:
                continue
            try:
                strips.extend(generate_strips(block, list(polygon), edge_widths))
            except Exception:
                logger.warning("Strip generation failed", block_id=block.id, exc_info=True)

        rules = options.subdivision_rules()
        lots: List[GeneratedLot] = []
        for strip in strips:
            try:
                lots.extend(subdivide_strip(strip, rules))
            except Exception:
                logger.warning("Lot subdivision failed", strip_id=strip.id, exc_info=True)

        logger.info(
            "Blocks rebuilt",
            generation=number,
            blocks=len(blocks),
            valid_offsets=sum(1 for polygon in offset_polygons if polygon is not None),
            strips=len(strips),
            lots=len(lots),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )

        return Generation(
            number=number,
            blocks=tuple(blocks),
            offset_polygons=tuple(offset_polygons),
            strips=tuple(strips),
            lots=tuple(lots),
            edges=MappingProxyType(dict(graph.edges)),
            built_at=time.time(),
        )

    def _notify(self, generation: Generation) -> None:
        for listener in list(self._listeners):
            try:
                listener(generation)
            except Exception:
                logger.warning("Rebuild listener failed", generation=generation.number, exc_info=True)
