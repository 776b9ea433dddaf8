"""
Graph Data Store Layer

Responsibility:
Own the canonical node/link collection and publish immutable snapshots.

PRINCIPLES:
1. Records are frozen; updates replace records under the same id
2. Links are id pairs
3. Invariant violations are rejected as data, never raised
"""

from .contracts import NodeKind, Point, GraphNode, GraphLink, GraphSnapshot
from .store import GraphStore, SnapshotListener
from .topology import GraphTopology, GraphMetrics

__all__ = [
    'NodeKind', 'Point', 'GraphNode', 'GraphLink', 'GraphSnapshot',
    'GraphStore', 'SnapshotListener',
    'GraphTopology', 'GraphMetrics',
]
