"""
Interaction Layer

Responsibility:
Turn pointer input into drag, click and connect outcomes.
States are explicit values; the transition function is pure.
"""

from .states import (
    Idle, Dragging, ConnectingAwaitingSource, ConnectingAwaitingTarget,
    InteractionState, RestingState,
    PointerDown, PointerMove, PointerUp, ToggleConnectMode, InteractionEvent,
    DragStarted, DragMoved, DragEnded, NodeClicked, SourceSelected,
    ConnectionRequested, ConnectModeChanged, InteractionEffect,
    Transition, transition, is_connect_mode, pending_source, resting_state,
)
from .controller import InteractionController, InteractionConfig, EffectListener

__all__ = [
    'Idle', 'Dragging', 'ConnectingAwaitingSource', 'ConnectingAwaitingTarget',
    'InteractionState', 'RestingState',
    'PointerDown', 'PointerMove', 'PointerUp', 'ToggleConnectMode', 'InteractionEvent',
    'DragStarted', 'DragMoved', 'DragEnded', 'NodeClicked', 'SourceSelected',
    'ConnectionRequested', 'ConnectModeChanged', 'InteractionEffect',
    'Transition', 'transition', 'is_connect_mode', 'pending_source', 'resting_state',
    'InteractionController', 'InteractionConfig', 'EffectListener',
]
