"""
Graph Canvas
============

One mounted canvas: store subscription, force simulation, view
transform, interaction machine and render reconciler wired together.

LIFECYCLE:
==========
    canvas = GraphCanvas(store, ViewportSize(1280, 800))
    canvas.mount()
    loop = canvas.start_loop()      # inside a running asyncio loop
    ...
    canvas.dispose()

Store snapshots are queued and applied only at the start of `step()`,
between ticks, so a tick never sees a half-swapped node list.
"""

from __future__ import annotations
import time
from typing import Callable, List, Optional, Tuple

from .contracts import Error, ErrorCode, Result
from .interaction import (
    ConnectionRequested, Dragging, InteractionConfig, InteractionController,
    InteractionEffect, NodeClicked, SourceSelected,
)
from .layout import ForceConfig, ForceSimulation, SimulationLoop
from .render import RenderPlan, RenderReconciler, Scene
from .store import GraphSnapshot, GraphStore, Point
from .view import ViewConfig, ViewportSize, ViewTransform, ViewTransformController


ConnectHandler = Callable[[str, str], None]
ClickListener = Callable[[str], None]
ViolationListener = Callable[[Error], None]


class GraphCanvas:
    """
    Owns the per-canvas components and their lifecycle.

    A ConnectionRequested outcome is routed to `on_connect` when given,
    otherwise straight to `store.add_link`.
    """

    def __init__(
        self,
        store: GraphStore,
        viewport: ViewportSize = ViewportSize(1280.0, 800.0),
        force_config: Optional[ForceConfig] = None,
        view_config: Optional[ViewConfig] = None,
        interaction_config: Optional[InteractionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        on_connect: Optional[ConnectHandler] = None
    ):
        self._store = store
        self._simulation = ForceSimulation(force_config)
        self._view = ViewTransformController(viewport, view_config, clock)
        self._interaction = InteractionController(self._simulation, self._view, interaction_config)
        self._reconciler = RenderReconciler()
        self._on_connect = on_connect

        self._current: Optional[GraphSnapshot] = None
        self._pending: Optional[GraphSnapshot] = None
        self._loop: Optional[SimulationLoop] = None
        self._mounted = False
        self._disposed = False
        self._unsubscribers: List[Callable[[], None]] = []
        self._click_listeners: List[ClickListener] = []
        self._violation_listeners: List[ViolationListener] = []
        self._last_plan = RenderPlan()

    # =========================================================================
    # COMPONENTS
    # =========================================================================

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def simulation(self) -> ForceSimulation:
        return self._simulation

    @property
    def view(self) -> ViewTransformController:
        return self._view

    @property
    def interaction(self) -> InteractionController:
        return self._interaction

    @property
    def reconciler(self) -> RenderReconciler:
        return self._reconciler

    @property
    def scene(self) -> Scene:
        return self._reconciler.scene

    @property
    def transform(self) -> ViewTransform:
        return self._view.transform

    @property
    def snapshot(self) -> Optional[GraphSnapshot]:
        """The snapshot currently rendered (not the pending one)."""
        return self._current

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def last_plan(self) -> RenderPlan:
        return self._last_plan

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def connect_mode(self) -> bool:
        return self._interaction.connect_mode

    @property
    def pending_source(self) -> Optional[str]:
        return self._interaction.pending_source

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def mount(self):
        if self._mounted:
            return
        if self._disposed:
            raise RuntimeError("GraphCanvas was disposed and cannot be remounted")
        self._view.mount()
        self._unsubscribers = [
            self._store.subscribe(self._on_snapshot),
            self._simulation.on_tick(self._reconciler.on_tick),
            self._interaction.on_effect(self._on_effect),
            self._simulation.on_wake(self._wake),
        ]
        self._pending = self._store.snapshot()
        self._mounted = True

    def start_loop(self, interval_seconds: float = 0.016) -> SimulationLoop:
        """Start the frame loop on the running asyncio event loop."""
        if self._loop is None:
            self._loop = SimulationLoop(self.step, interval_seconds, on_error=self._frame_failed)
        self._loop.start()
        self._loop.wake()
        return self._loop

    @property
    def loop(self) -> Optional[SimulationLoop]:
        return self._loop

    def dispose(self):
        """Stop the loop, detach from the store and release the engine."""
        if self._disposed:
            return
        if self._loop is not None:
            self._loop.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._interaction.reset()
        self._simulation.dispose()
        self._reconciler.clear()
        self._pending = None
        self._mounted = False
        self._disposed = True

    # =========================================================================
    # FRAME
    # =========================================================================

    def step(self) -> bool:
        """
        One frame: apply the queued snapshot, tick, advance the view.

        Returns True while another frame is wanted.
        """
        if not self._mounted:
            return False
        self.flush()
        self._simulation.step()
        animating = self._view.advance()
        return self._simulation.is_running or animating or self._pending is not None

    def flush(self):
        """Apply the queued snapshot, if any."""
        snapshot = self._pending
        if snapshot is None:
            return
        self._pending = None
        self._current = snapshot
        self._simulation.set_graph(snapshot.nodes, snapshot.links)
        for link in self._simulation.dropped_links:
            self._violation(Error.create(
                ErrorCode.DANGLING_LINK,
                "Link references an unknown node and was not simulated",
                link=link.key
            ))

        state = self._interaction.state
        if isinstance(state, Dragging) and snapshot.node(state.node_id) is None:
            self._interaction.reset()

        self._reconcile()

    def _reconcile(self):
        if self._current is None:
            return
        self._last_plan = self._reconciler.reconcile(
            self._current,
            self._simulation.positions(),
            self._interaction.pending_source
        )

    def _frame_failed(self, exc: Exception):
        self._violation(Error.create(
            ErrorCode.FRAME_FAILED,
            f"Frame raised {type(exc).__name__}: {exc}",
            error_type=type(exc).__name__
        ))

    def _on_snapshot(self, snapshot: GraphSnapshot):
        self._pending = snapshot
        self._wake()

    def _wake(self):
        if self._loop is not None:
            self._loop.wake()

    # =========================================================================
    # POINTER INPUT (screen coordinates)
    # =========================================================================

    def hit_test(self, point: Point) -> Optional[str]:
        """Topmost node card under a screen point."""
        world = self._view.screen_to_world(point)
        hit = None
        for element in self._reconciler.scene.nodes.values():
            if (element.x <= world.x <= element.x + element.width
                    and element.y <= world.y <= element.y + element.height):
                hit = element.key
        return hit

    def pointer_down(self, point: Point, node_id: Optional[str] = None) -> Tuple[InteractionEffect, ...]:
        if node_id is None:
            node_id = self.hit_test(point)
        elif self._simulation.position_of(node_id) is None:
            node_id = None
        return self._interaction.pointer_down(point, node_id)

    def pointer_move(self, point: Point) -> Tuple[InteractionEffect, ...]:
        return self._interaction.pointer_move(point)

    def pointer_up(self, point: Point) -> Tuple[InteractionEffect, ...]:
        return self._interaction.pointer_up(point)

    def wheel(self, point: Point, delta_y: float):
        self._interaction.wheel(point, delta_y)
        self._wake()

    def double_click(self, point: Point):
        self._interaction.double_click(point)

    def set_connect_mode(self, active: bool) -> Tuple[InteractionEffect, ...]:
        return self._interaction.toggle_connect_mode(active)

    def toggle_connect_mode(self) -> Tuple[InteractionEffect, ...]:
        return self._interaction.toggle_connect_mode()

    # =========================================================================
    # VIEW COMMANDS
    # =========================================================================

    def zoom_in(self) -> ViewTransform:
        end = self._view.zoom_in()
        self._wake()
        return end

    def zoom_out(self) -> ViewTransform:
        end = self._view.zoom_out()
        self._wake()
        return end

    def fit_to_view(self, padding: Optional[float] = None, max_scale: Optional[float] = None) -> Result:
        result = self._view.fit_to_view(
            self._simulation.positions().values(),
            padding=padding,
            max_scale=max_scale
        )
        if result.is_success:
            self._wake()
        return result

    def resize(self, viewport: ViewportSize):
        self._view.resize(viewport)

    # =========================================================================
    # OUTCOMES
    # =========================================================================

    def set_connect_handler(self, handler: Optional[ConnectHandler]):
        self._on_connect = handler

    def on_node_click(self, listener: ClickListener) -> Callable[[], None]:
        self._click_listeners.append(listener)
        return lambda: self._click_listeners.remove(listener) if listener in self._click_listeners else None

    def on_violation(self, listener: ViolationListener) -> Callable[[], None]:
        self._violation_listeners.append(listener)
        return lambda: self._violation_listeners.remove(listener) if listener in self._violation_listeners else None

    def _violation(self, error: Error):
        for listener in list(self._violation_listeners):
            listener(error)

    def _on_effect(self, effect: InteractionEffect):
        if isinstance(effect, ConnectionRequested):
            if self._on_connect is not None:
                self._on_connect(effect.source_id, effect.target_id)
                return
            result = self._store.add_link(effect.source_id, effect.target_id)
            if result.is_failure:
                self._violation(result.error)
        elif isinstance(effect, NodeClicked):
            for listener in list(self._click_listeners):
                listener(effect.node_id)
        elif isinstance(effect, SourceSelected):
            self._reconcile()
