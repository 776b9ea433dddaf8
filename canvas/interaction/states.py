"""
Interaction State Machine
=========================

Pure transition function over explicit tagged states.

STATES:
=======
Idle
Dragging(node_id, origin, moved, resume)
ConnectingAwaitingSource
ConnectingAwaitingTarget(source_id)

A press on a node always enters Dragging. On release, the press is
EITHER a drag (pointer travelled beyond the threshold) OR a click,
never both. A click is then interpreted against `resume`, the state
the press interrupted.

SIDE EFFECTS:
=============
transition() only returns effects. Only the click on B != A while in
ConnectingAwaitingTarget(A) yields ConnectionRequested.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
import math
from typing import Optional, Tuple, Union

from ..store.contracts import Point


# =============================================================================
# STATES
# =============================================================================

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class ConnectingAwaitingSource:
    pass


@dataclass(frozen=True)
class ConnectingAwaitingTarget:
    source_id: str


RestingState = Union[Idle, ConnectingAwaitingSource, ConnectingAwaitingTarget]


@dataclass(frozen=True)
class Dragging:
    node_id: str
    origin: Point
    moved: bool = False
    resume: RestingState = field(default_factory=Idle)


InteractionState = Union[Idle, Dragging, ConnectingAwaitingSource, ConnectingAwaitingTarget]


# =============================================================================
# EVENTS (input)
# =============================================================================

@dataclass(frozen=True)
class PointerDown:
    """Press at a screen point; node_id is None on empty canvas."""
    point: Point
    node_id: Optional[str] = None


@dataclass(frozen=True)
class PointerMove:
    point: Point


@dataclass(frozen=True)
class PointerUp:
    """Release anywhere, including outside any node."""
    point: Point


@dataclass(frozen=True)
class ToggleConnectMode:
    """Flip connect mode, or force it when `active` is given."""
    active: Optional[bool] = None


InteractionEvent = Union[PointerDown, PointerMove, PointerUp, ToggleConnectMode]


# =============================================================================
# EFFECTS (output)
# =============================================================================

@dataclass(frozen=True)
class DragStarted:
    node_id: str
    point: Point


@dataclass(frozen=True)
class DragMoved:
    node_id: str
    point: Point


@dataclass(frozen=True)
class DragEnded:
    node_id: str
    moved: bool


@dataclass(frozen=True)
class NodeClicked:
    node_id: str


@dataclass(frozen=True)
class SourceSelected:
    """Pending connection source changed; None clears the selection."""
    node_id: Optional[str]


@dataclass(frozen=True)
class ConnectionRequested:
    source_id: str
    target_id: str


@dataclass(frozen=True)
class ConnectModeChanged:
    active: bool


InteractionEffect = Union[
    DragStarted, DragMoved, DragEnded, NodeClicked,
    SourceSelected, ConnectionRequested, ConnectModeChanged
]


@dataclass(frozen=True)
class Transition:
    state: InteractionState
    effects: Tuple[InteractionEffect, ...] = ()


# =============================================================================
# QUERIES
# =============================================================================

def resting_state(state: InteractionState) -> RestingState:
    """The state a drag will return to, or the state itself."""
    return state.resume if isinstance(state, Dragging) else state


def is_connect_mode(state: InteractionState) -> bool:
    return isinstance(resting_state(state), (ConnectingAwaitingSource, ConnectingAwaitingTarget))


def pending_source(state: InteractionState) -> Optional[str]:
    rest = resting_state(state)
    if isinstance(rest, ConnectingAwaitingTarget):
        return rest.source_id
    return None


# =============================================================================
# TRANSITIONS
# =============================================================================

def transition(
    state: InteractionState,
    event: InteractionEvent,
    drag_threshold: float = 3.0
) -> Transition:
    """Compute the next state and the effects of one event."""
    if isinstance(event, ToggleConnectMode):
        return _toggle(state, event)
    if isinstance(state, Dragging):
        return _while_dragging(state, event, drag_threshold)
    if isinstance(state, (Idle, ConnectingAwaitingSource, ConnectingAwaitingTarget)):
        return _while_resting(state, event)
    raise TypeError(f"Unknown interaction state: {state!r}")


def _while_resting(state: RestingState, event: InteractionEvent) -> Transition:
    if isinstance(event, PointerDown):
        if event.node_id is None:
            return Transition(state)
        return Transition(
            Dragging(node_id=event.node_id, origin=event.point, resume=state),
            (DragStarted(event.node_id, event.point),)
        )
    if isinstance(event, (PointerMove, PointerUp)):
        return Transition(state)
    raise TypeError(f"Unknown interaction event: {event!r}")


def _while_dragging(state: Dragging, event: InteractionEvent, threshold: float) -> Transition:
    if isinstance(event, PointerDown):
        # Secondary press while a drag is held
        return Transition(state)
    if isinstance(event, PointerMove):
        moved = state.moved or _distance(state.origin, event.point) > threshold
        return Transition(
            replace(state, moved=moved),
            (DragMoved(state.node_id, event.point),)
        )
    if isinstance(event, PointerUp):
        moved = state.moved or _distance(state.origin, event.point) > threshold
        ended = DragEnded(state.node_id, moved)
        if moved:
            return Transition(state.resume, (ended,))
        click = _click(state.resume, state.node_id)
        return Transition(click.state, (ended,) + click.effects)
    raise TypeError(f"Unknown interaction event: {event!r}")


def _click(state: RestingState, node_id: str) -> Transition:
    if isinstance(state, Idle):
        return Transition(state, (NodeClicked(node_id),))
    if isinstance(state, ConnectingAwaitingSource):
        return Transition(ConnectingAwaitingTarget(node_id), (SourceSelected(node_id),))
    if isinstance(state, ConnectingAwaitingTarget):
        if node_id == state.source_id:
            return Transition(ConnectingAwaitingSource(), (SourceSelected(None),))
        return Transition(Idle(), (
            ConnectionRequested(state.source_id, node_id),
            SourceSelected(None),
            ConnectModeChanged(False),
        ))
    raise TypeError(f"Unknown interaction state: {state!r}")


def _toggle(state: InteractionState, event: ToggleConnectMode) -> Transition:
    active = is_connect_mode(state)
    desired = (not active) if event.active is None else event.active
    if desired == active:
        return Transition(state)

    if desired:
        rest: RestingState = ConnectingAwaitingSource()
        effects: Tuple[InteractionEffect, ...] = (ConnectModeChanged(True),)
    else:
        rest = Idle()
        effects = (ConnectModeChanged(False),)
        if pending_source(state) is not None:
            effects = (SourceSelected(None),) + effects

    if isinstance(state, Dragging):
        return Transition(replace(state, resume=rest), effects)
    return Transition(rest, effects)


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)
