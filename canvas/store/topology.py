"""
Graph Topology
==============

Structural queries over a graph snapshot using NetworkX.

Used by the application layer to walk lineage (concept -> expert ->
principle) and by the canvas to report connectivity. Pure reads: the
NetworkX graph is rebuilt from a snapshot and never written back.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Set

import networkx as nx

from .contracts import GraphSnapshot, NodeKind


@dataclass(frozen=True)
class GraphMetrics:
    """Immutable structural metrics for a snapshot."""
    node_count: int
    edge_count: int
    density: float
    connected_components_count: int


class GraphTopology:
    """Directed NetworkX view of one snapshot."""

    def __init__(self, snapshot: GraphSnapshot):
        self._snapshot = snapshot
        self._graph = nx.DiGraph()
        for node in snapshot.nodes:
            self._graph.add_node(node.node_id, kind=node.kind)
        for link in snapshot.links:
            # Snapshots from the store never dangle; foreign ones might
            if link.source_id in self._graph and link.target_id in self._graph:
                self._graph.add_edge(link.source_id, link.target_id)

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    def neighbors(self, node_id: str) -> Set[str]:
        """Undirected neighbourhood of a node."""
        if node_id not in self._graph:
            return set()
        return set(self._graph.successors(node_id)) | set(self._graph.predecessors(node_id))

    def neighbors_of_kind(self, node_id: str, kind: NodeKind) -> List[str]:
        return sorted(
            n for n in self.neighbors(node_id)
            if self._graph.nodes[n]["kind"] == kind
        )

    def nearest_of_kind(self, node_id: str, kind: NodeKind) -> Optional[str]:
        """
        Closest node of the given kind, ignoring link direction.

        Ties are broken by id so the answer is stable across calls.
        """
        if node_id not in self._graph:
            return None
        undirected = self._graph.to_undirected(as_view=True)
        lengths = nx.single_source_shortest_path_length(undirected, node_id)
        candidates = [
            (distance, other) for other, distance in lengths.items()
            if other != node_id and self._graph.nodes[other]["kind"] == kind
        ]
        if not candidates:
            return None
        return min(candidates)[1]

    def compute_metrics(self) -> GraphMetrics:
        if not self._graph:
            return GraphMetrics(0, 0, 0.0, 0)
        return GraphMetrics(
            node_count=self._graph.number_of_nodes(),
            edge_count=self._graph.number_of_edges(),
            density=nx.density(self._graph),
            connected_components_count=nx.number_weakly_connected_components(self._graph)
        )
