"""
Force Layout Engine
===================

Iterative physics layout over node positions.

GUARANTEES:
===========
1. Node identity: a record replaced under the same id keeps its
   simulated position, velocity and pin (no teleporting)
2. Pinned nodes sit exactly on their pin coordinate after every tick
3. Links are resolved id -> slot on every graph update, never cached
   as node references
4. Zero links still lays out (repulsion, collision, centering)
5. restart() always wakes listeners, even while cooling

LIFECYCLE:
==========
set_graph() -> running (alpha = 1) -> step()... -> alpha < alpha_min -> idle
drag start: alpha_target = drag_alpha_target, restart
drag end:   alpha_target = 0
"""

from __future__ import annotations
from dataclasses import dataclass, field
import math
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..store.contracts import GraphLink, GraphNode, Point
from .forces import CenteringForce, CollideForce, Force, LinkForce, ManyBodyForce
from .state import SimulationState


INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


@dataclass
class ForceConfig:
    """Layout constants. Defaults are the canvas design values."""
    link_distance: float = 180.0
    charge_strength: float = -500.0
    collision_radius: float = 70.0
    center_strength: float = 0.05
    center_x: float = 0.0
    center_y: float = 0.0
    distance_min: float = 1.0

    alpha_min: float = 0.001
    alpha_decay: Optional[float] = None
    velocity_decay: float = 0.4
    drag_alpha_target: float = 0.3

    initial_radius: float = 10.0
    seed: int = 0

    def __post_init__(self):
        if self.alpha_decay is None:
            self.alpha_decay = 1 - self.alpha_min ** (1 / 300)
        if not 0 <= self.velocity_decay <= 1:
            raise ValueError("velocity_decay must be within [0, 1]")


@dataclass(frozen=True)
class TickEvent:
    """Emitted after every committed tick."""
    tick: int
    alpha: float
    positions: Mapping[str, Point] = field(default_factory=dict)


TickListener = Callable[[TickEvent], None]
WakeListener = Callable[[], None]


class ForceSimulation:
    """
    Owned simulation instance; one per mounted canvas.

    Not thread-safe. Driven from a single event loop.
    """

    def __init__(self, config: Optional[ForceConfig] = None):
        self._config = config or ForceConfig()
        self._state = SimulationState()
        self._rng = np.random.default_rng(self._config.seed)
        self._forces: Dict[str, Force] = {
            "link": LinkForce(self._config.link_distance),
            "charge": ManyBodyForce(self._config.charge_strength, self._config.distance_min),
            "collide": CollideForce(self._config.collision_radius),
            "center": CenteringForce(
                self._config.center_strength,
                self._config.center_x,
                self._config.center_y
            ),
        }
        self._alpha = 1.0
        self._alpha_target = 0.0
        self._running = False
        self._tick_count = 0
        self._node_ids: Tuple[str, ...] = ()
        self._link_keys: frozenset = frozenset()
        self._dropped_links: Tuple[GraphLink, ...] = ()
        self._tick_listeners: List[TickListener] = []
        self._wake_listeners: List[WakeListener] = []
        self._disposed = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def config(self) -> ForceConfig:
        return self._config

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def alpha_target(self) -> float:
        return self._alpha_target

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def dropped_links(self) -> Tuple[GraphLink, ...]:
        """Links skipped at the last update because an endpoint was unknown."""
        return self._dropped_links

    def force(self, name: str) -> Force:
        return self._forces[name]

    def node_ids(self) -> Tuple[str, ...]:
        return self._node_ids

    # =========================================================================
    # GRAPH UPDATES
    # =========================================================================

    def set_graph(self, nodes: Sequence[GraphNode], links: Sequence[GraphLink]) -> bool:
        """
        Re-seed the simulation from a fresh node/link collection.

        The incoming list decides existence; position, velocity and pin
        are copied forward by id. Returns True when the node or link set
        changed and the simulation was reheated.
        """
        ids = []
        hints: Dict[str, Optional[Point]] = {}
        for node in nodes:
            if node.node_id in hints:
                continue
            ids.append(node.node_id)
            hints[node.node_id] = node.position

        previous = self._state
        state = SimulationState(ids)
        fresh = state.copy_forward(previous)
        for i in np.flatnonzero(fresh):
            hint = hints[ids[i]]
            if hint is not None:
                state.x[i], state.y[i] = hint.x, hint.y
            else:
                radius = self._config.initial_radius * math.sqrt(0.5 + i)
                angle = i * INITIAL_ANGLE
                state.x[i] = self._config.center_x + radius * math.cos(angle)
                state.y[i] = self._config.center_y + radius * math.sin(angle)

        self._dropped_links = state.resolve_links(links)
        self._state = state
        for force in self._forces.values():
            force.initialize(state)

        link_keys = frozenset(
            link.key for link in links if link not in self._dropped_links
        )
        changed = (
            frozenset(ids) != frozenset(self._node_ids)
            or link_keys != self._link_keys
        )
        self._node_ids = tuple(ids)
        self._link_keys = link_keys
        if changed:
            self.reheat()
        return changed

    # =========================================================================
    # TEMPERATURE
    # =========================================================================

    def reheat(self, alpha: float = 1.0):
        """Full reheat: set alpha and restart."""
        self._alpha = alpha
        self.restart()

    def set_alpha_target(self, target: float):
        self._alpha_target = target

    def restart(self):
        """Resume ticking. Always notifies wake listeners."""
        if self._disposed:
            return
        self._running = True
        for listener in list(self._wake_listeners):
            listener()

    def stop(self):
        self._running = False

    # =========================================================================
    # PINNING
    # =========================================================================

    def pin(self, node_id: str, x: Optional[float] = None, y: Optional[float] = None) -> bool:
        """Pin a node at (x, y), or at its current position."""
        i = self._state.index.get(node_id)
        if i is None:
            return False
        px = self._state.x[i] if x is None else x
        py = self._state.y[i] if y is None else y
        self._state.fx[i] = px
        self._state.fy[i] = py
        self._state.x[i] = px
        self._state.y[i] = py
        self._state.vx[i] = 0.0
        self._state.vy[i] = 0.0
        return True

    def unpin(self, node_id: str) -> bool:
        i = self._state.index.get(node_id)
        if i is None:
            return False
        self._state.fx[i] = np.nan
        self._state.fy[i] = np.nan
        return True

    def is_pinned(self, node_id: str) -> bool:
        i = self._state.index.get(node_id)
        return i is not None and bool(self._state.pinned[i])

    # =========================================================================
    # STEPPING
    # =========================================================================

    def tick(self, iterations: int = 1):
        """Apply `iterations` integration passes and emit one TickEvent."""
        cfg = self._config
        state = self._state
        for _ in range(iterations):
            self._alpha += (self._alpha_target - self._alpha) * cfg.alpha_decay
            for force in self._forces.values():
                force.apply(state, self._alpha, self._rng)
            self._integrate(state)
            self._tick_count += 1
        self._emit_tick()

    def step(self) -> bool:
        """
        One timer frame: tick if running, then go idle once cooled.

        Returns True if a tick was performed.
        """
        if not self._running:
            return False
        self.tick()
        if self._alpha < self._config.alpha_min:
            self._running = False
        return True

    def run_until_idle(self, max_ticks: int = 10000) -> int:
        ticks = 0
        while self._running and ticks < max_ticks:
            self.step()
            ticks += 1
        return ticks

    def _integrate(self, state: SimulationState):
        prev_x = state.x.copy()
        prev_y = state.y.copy()
        free = ~state.pinned
        keep = 1 - self._config.velocity_decay
        state.vx[free] *= keep
        state.vy[free] *= keep
        state.x[free] += state.vx[free]
        state.y[free] += state.vy[free]

        pinned = ~free
        state.x[pinned] = state.fx[pinned]
        state.y[pinned] = state.fy[pinned]
        state.vx[pinned] = 0.0
        state.vy[pinned] = 0.0

        # Coordinates stay finite: a bad step is rolled back for that node
        bad = ~(np.isfinite(state.x) & np.isfinite(state.y))
        if bad.any():
            state.x[bad] = prev_x[bad]
            state.y[bad] = prev_y[bad]
            state.vx[bad] = 0.0
            state.vy[bad] = 0.0

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    def position_of(self, node_id: str) -> Optional[Point]:
        i = self._state.index.get(node_id)
        if i is None:
            return None
        return Point(float(self._state.x[i]), float(self._state.y[i]))

    def positions(self) -> Dict[str, Point]:
        state = self._state
        return {
            node_id: Point(float(state.x[i]), float(state.y[i]))
            for i, node_id in enumerate(state.ids)
        }

    def velocity_of(self, node_id: str) -> Optional[Tuple[float, float]]:
        i = self._state.index.get(node_id)
        if i is None:
            return None
        return float(self._state.vx[i]), float(self._state.vy[i])

    # =========================================================================
    # LISTENERS & LIFECYCLE
    # =========================================================================

    def on_tick(self, listener: TickListener) -> Callable[[], None]:
        self._tick_listeners.append(listener)
        return lambda: self._tick_listeners.remove(listener) if listener in self._tick_listeners else None

    def on_wake(self, listener: WakeListener) -> Callable[[], None]:
        self._wake_listeners.append(listener)
        return lambda: self._wake_listeners.remove(listener) if listener in self._wake_listeners else None

    def _emit_tick(self):
        if not self._tick_listeners:
            return
        event = TickEvent(tick=self._tick_count, alpha=self._alpha, positions=self.positions())
        for listener in list(self._tick_listeners):
            listener(event)

    def dispose(self):
        self.stop()
        self._disposed = True
        self._tick_listeners.clear()
        self._wake_listeners.clear()
