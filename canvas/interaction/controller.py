"""
Interaction Controller
======================

Binds the pure state machine to one canvas: pointer input in screen
coordinates in, pins / reheats on the simulation and domain effects to
listeners out. Empty-canvas drags and wheel input go to the view
controller as direct manipulation.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..layout.simulation import ForceSimulation
from ..store.contracts import Point
from ..view import ViewTransformController
from .states import (
    DragEnded, DragMoved, DragStarted, Dragging, Idle, InteractionEffect, InteractionEvent,
    InteractionState, PointerDown, PointerMove, PointerUp, ToggleConnectMode,
    is_connect_mode, pending_source, transition,
)


EffectListener = Callable[[InteractionEffect], None]


@dataclass
class InteractionConfig:
    drag_threshold: float = 3.0  # screen pixels
    wheel_sensitivity: float = 0.002


class InteractionController:
    """
    Pointer events are processed strictly in arrival order; each one is
    handled to completion before the next.
    """

    def __init__(
        self,
        simulation: ForceSimulation,
        view: ViewTransformController,
        config: Optional[InteractionConfig] = None
    ):
        self._simulation = simulation
        self._view = view
        self._config = config or InteractionConfig()
        self._state: InteractionState = Idle()
        self._listeners: List[EffectListener] = []
        self._drag_offset = Point(0.0, 0.0)
        self._pan_anchor: Optional[Point] = None

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def connect_mode(self) -> bool:
        return is_connect_mode(self._state)

    @property
    def pending_source(self) -> Optional[str]:
        return pending_source(self._state)

    @property
    def is_panning(self) -> bool:
        return self._pan_anchor is not None

    def on_effect(self, listener: EffectListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    # =========================================================================
    # INPUT
    # =========================================================================

    def pointer_down(self, point: Point, node_id: Optional[str] = None) -> Tuple[InteractionEffect, ...]:
        if node_id is None:
            self._pan_anchor = point
        return self.dispatch(PointerDown(point, node_id))

    def pointer_move(self, point: Point) -> Tuple[InteractionEffect, ...]:
        if self._pan_anchor is not None:
            self._view.pan_by(point.x - self._pan_anchor.x, point.y - self._pan_anchor.y)
            self._pan_anchor = point
        return self.dispatch(PointerMove(point))

    def pointer_up(self, point: Point) -> Tuple[InteractionEffect, ...]:
        self._pan_anchor = None
        return self.dispatch(PointerUp(point))

    def wheel(self, point: Point, delta_y: float):
        factor = 2 ** (-delta_y * self._config.wheel_sensitivity)
        self._view.zoom_at(factor, point)

    def double_click(self, point: Point):
        self._view.double_click(point)

    def toggle_connect_mode(self, active: Optional[bool] = None) -> Tuple[InteractionEffect, ...]:
        return self.dispatch(ToggleConnectMode(active))

    def reset(self):
        """Return to Idle, releasing any held pin."""
        if is_connect_mode(self._state):
            self.toggle_connect_mode(False)
        if isinstance(self._state, Dragging):
            self._apply(DragEnded(self._state.node_id, moved=True))
            self._state = Idle()
        self._pan_anchor = None

    def dispatch(self, event: InteractionEvent) -> Tuple[InteractionEffect, ...]:
        result = transition(self._state, event, self._config.drag_threshold)
        self._state = result.state
        for effect in result.effects:
            self._apply(effect)
            for listener in list(self._listeners):
                listener(effect)
        return result.effects

    # =========================================================================
    # EFFECTS ON THE SIMULATION
    # =========================================================================

    def _apply(self, effect: InteractionEffect):
        sim = self._simulation
        if isinstance(effect, DragStarted):
            current = sim.position_of(effect.node_id)
            if current is None:
                return
            pointer = self._view.screen_to_world(effect.point)
            self._drag_offset = Point(current.x - pointer.x, current.y - pointer.y)
            sim.pin(effect.node_id)
            sim.set_alpha_target(sim.config.drag_alpha_target)
            sim.restart()
        elif isinstance(effect, DragMoved):
            pointer = self._view.screen_to_world(effect.point)
            sim.pin(
                effect.node_id,
                pointer.x + self._drag_offset.x,
                pointer.y + self._drag_offset.y
            )
        elif isinstance(effect, DragEnded):
            sim.set_alpha_target(0.0)
            sim.unpin(effect.node_id)
