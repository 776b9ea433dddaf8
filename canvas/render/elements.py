"""
Scene Contracts
===============

Retained visual elements and the keyed diff operations that maintain
them. Independent of any rendering technology: a host draws the Scene
(or replays the operations) however it likes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from ..store.contracts import GraphNode, NodeKind


CARD_WIDTH = 140.0
CARD_HEIGHT = 80.0

# (background, border) per node kind
KIND_COLORS: Dict[NodeKind, Tuple[str, str]] = {
    NodeKind.USER_INPUT: ("slate-800", "slate-600"),
    NodeKind.GATEKEEPER: ("cyan-950", "cyan-500"),
    NodeKind.EXPERT: ("purple-950", "purple-500"),
    NodeKind.CONCEPT: ("pink-950", "pink-500"),
    NodeKind.ROADMAP: ("yellow-950", "yellow-500"),
}


@dataclass(frozen=True)
class NodeAppearance:
    """
    Everything content-dependent on a node card.

    Equality of two appearances decides whether a content update is
    needed; positions are deliberately not part of it.
    """
    label: str
    badge: str
    background: str
    border: str
    source_ring: bool = False
    roadmap_badge: bool = False
    image_badge: bool = False
    deep_dive_badge: bool = False

    @staticmethod
    def of(node: GraphNode, selected_source: Optional[str] = None) -> NodeAppearance:
        background, border = KIND_COLORS[node.kind]
        return NodeAppearance(
            label=node.label,
            badge=node.badge,
            background=background,
            border=border,
            source_ring=node.node_id == selected_source,
            roadmap_badge=node.selected_for_roadmap,
            image_badge=node.has_image,
            deep_dive_badge=node.deep_dive_completed,
        )


@dataclass
class NodeElement:
    """Retained node card. (x, y) is the card's top-left corner."""
    key: str
    appearance: NodeAppearance
    x: float = 0.0
    y: float = 0.0
    width: float = CARD_WIDTH
    height: float = CARD_HEIGHT
    content_version: int = 0
    element_id: int = 0

    def place(self, cx: float, cy: float):
        """Center the card on a layout coordinate."""
        self.x = cx - self.width / 2
        self.y = cy - self.height / 2

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


@dataclass
class LinkElement:
    key: str
    source_id: str
    target_id: str
    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0
    element_id: int = 0


# =============================================================================
# DIFF OPERATIONS
# =============================================================================

@dataclass(frozen=True)
class CreateNode:
    key: str
    appearance: NodeAppearance


@dataclass(frozen=True)
class UpdateNode:
    key: str
    appearance: NodeAppearance


@dataclass(frozen=True)
class RemoveNode:
    key: str


@dataclass(frozen=True)
class CreateLink:
    key: str
    source_id: str
    target_id: str


@dataclass(frozen=True)
class RemoveLink:
    key: str


RenderOp = Union[CreateNode, UpdateNode, RemoveNode, CreateLink, RemoveLink]


@dataclass(frozen=True)
class RenderPlan:
    """Ordered operations: removals, then creations, then updates."""
    ops: Tuple[RenderOp, ...] = field(default_factory=tuple)

    def of_type(self, op_type) -> Tuple[RenderOp, ...]:
        return tuple(op for op in self.ops if isinstance(op, op_type))

    @property
    def is_empty(self) -> bool:
        return not self.ops


@dataclass
class Scene:
    """Keyed retained elements of one canvas."""
    nodes: Dict[str, NodeElement] = field(default_factory=dict)
    links: Dict[str, LinkElement] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "nodes": [
                {
                    "id": el.key,
                    "x": el.x,
                    "y": el.y,
                    "width": el.width,
                    "height": el.height,
                    "label": el.appearance.label,
                    "badge": el.appearance.badge,
                    "background": el.appearance.background,
                    "border": el.appearance.border,
                    "source_ring": el.appearance.source_ring,
                    "roadmap_badge": el.appearance.roadmap_badge,
                    "image_badge": el.appearance.image_badge,
                    "deep_dive_badge": el.appearance.deep_dive_badge,
                }
                for el in self.nodes.values()
            ],
            "links": [
                {
                    "id": el.key,
                    "source": el.source_id,
                    "target": el.target_id,
                    "x1": el.x1, "y1": el.y1, "x2": el.x2, "y2": el.y2,
                }
                for el in self.links.values()
            ],
        }
