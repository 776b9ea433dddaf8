"""
Render Layer

Responsibility:
Keep one retained visual element per node and per link in step with
the graph snapshot (content) and the simulation (coordinates).
"""

from .elements import (
    CARD_WIDTH, CARD_HEIGHT, KIND_COLORS,
    NodeAppearance, NodeElement, LinkElement, Scene,
    CreateNode, UpdateNode, RemoveNode, CreateLink, RemoveLink, RenderOp, RenderPlan,
)
from .reconciler import RenderReconciler

__all__ = [
    'CARD_WIDTH', 'CARD_HEIGHT', 'KIND_COLORS',
    'NodeAppearance', 'NodeElement', 'LinkElement', 'Scene',
    'CreateNode', 'UpdateNode', 'RemoveNode', 'CreateLink', 'RemoveLink', 'RenderOp', 'RenderPlan',
    'RenderReconciler',
]
