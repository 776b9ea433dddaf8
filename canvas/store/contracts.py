"""
Graph Record Contracts
======================

Immutable node and link records owned by the application layer.

IDENTITY RULES:
===============
1. node_id is assigned once and never changes
2. A record may be REPLACED (new object, same id) on every content update
3. Two records with equal node_id are the same node
4. Links are id pairs only - never embedded node references
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class NodeKind(Enum):
    """Role of a node in the discovery chain."""
    USER_INPUT = "user_input"
    GATEKEEPER = "gatekeeper"
    EXPERT = "expert"
    CONCEPT = "concept"
    ROADMAP = "roadmap"


@dataclass(frozen=True)
class Point:
    """2D coordinate in layout space."""
    x: float
    y: float


@dataclass(frozen=True)
class GraphNode:
    """
    Canonical node record.

    `position` is only a seed hint for nodes entering the simulation.
    Once a node is simulated, the layout engine owns its live position
    and this field is ignored for that id.
    """
    node_id: str
    kind: NodeKind
    label: str
    content: str = ""
    role: Optional[str] = None
    image: Optional[str] = None  # data URI
    selected_for_roadmap: bool = False
    deep_dive_completed: bool = False
    position: Optional[Point] = None

    def __post_init__(self):
        if not self.node_id or not isinstance(self.node_id, str):
            raise ValueError("node_id must be a non-empty string")
        if not isinstance(self.kind, NodeKind):
            raise ValueError(f"kind must be a NodeKind, got {self.kind!r}")

    @property
    def has_image(self) -> bool:
        return bool(self.image)

    @property
    def badge(self) -> str:
        """Short type badge shown on the node card."""
        return self.role or self.kind.value


@dataclass(frozen=True)
class GraphLink:
    """
    Directed reference pair.

    WHY IDS ONLY:
    Node records are replaced wholesale on updates. A link holding
    object references would silently point at stale records.
    """
    source_id: str
    target_id: str

    def __post_init__(self):
        if not self.source_id or not self.target_id:
            raise ValueError("Link endpoints must be non-empty node ids")

    @property
    def key(self) -> str:
        """Ordered-pair key; (a, b) and (b, a) are distinct links."""
        return f"{self.source_id}->{self.target_id}"

    @property
    def is_self_link(self) -> bool:
        return self.source_id == self.target_id


@dataclass(frozen=True)
class GraphSnapshot:
    """
    Immutable view of the store at one version.

    Readers (layout, reconciler, interaction) treat a snapshot as
    frozen for the duration of one tick or one event.
    """
    version: int
    nodes: Tuple[GraphNode, ...] = field(default_factory=tuple)
    links: Tuple[GraphLink, ...] = field(default_factory=tuple)

    def node_index(self) -> Dict[str, GraphNode]:
        return {node.node_id: node for node in self.nodes}

    def node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None

    def has_link(self, source_id: str, target_id: str) -> bool:
        return any(
            link.source_id == source_id and link.target_id == target_id
            for link in self.links
        )

    @property
    def is_empty(self) -> bool:
        return not self.nodes
