"""
Simulation State
================

Process-local arrays for the force simulation, indexed through an
id -> slot table (the node collection is the arena, ids are indices).

Nothing here is persisted. The whole state is re-derivable from node
positions, link topology and force parameters.
"""

from __future__ import annotations
from typing import Dict, List, Sequence, Tuple

import numpy as np

from ..store.contracts import GraphLink


class SimulationState:
    """
    Columnar per-node state.

    fx / fy hold the pin coordinate, NaN when the node is free.
    link_source / link_target are slot indices resolved fresh on every
    rebuild; they are never stored back into GraphLink records.
    """

    def __init__(self, ids: Sequence[str] = ()):
        self.ids: List[str] = list(ids)
        self.index: Dict[str, int] = {node_id: i for i, node_id in enumerate(self.ids)}
        n = len(self.ids)
        self.x = np.zeros(n, dtype=float)
        self.y = np.zeros(n, dtype=float)
        self.vx = np.zeros(n, dtype=float)
        self.vy = np.zeros(n, dtype=float)
        self.fx = np.full(n, np.nan)
        self.fy = np.full(n, np.nan)
        self.link_source = np.zeros(0, dtype=int)
        self.link_target = np.zeros(0, dtype=int)

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def pinned(self) -> np.ndarray:
        return ~np.isnan(self.fx)

    def resolve_links(self, links: Sequence[GraphLink]) -> Tuple[GraphLink, ...]:
        """
        Resolve id pairs to slot indices for this state.

        Returns the links that could not be resolved (unknown endpoint).
        Self-links are kept in the data model but carry no layout force.
        """
        sources, targets, dropped = [], [], []
        seen = set()
        for link in links:
            if link.source_id not in self.index or link.target_id not in self.index:
                dropped.append(link)
                continue
            if link.is_self_link or link.key in seen:
                continue
            seen.add(link.key)
            sources.append(self.index[link.source_id])
            targets.append(self.index[link.target_id])
        self.link_source = np.asarray(sources, dtype=int)
        self.link_target = np.asarray(targets, dtype=int)
        return tuple(dropped)

    def copy_forward(self, previous: SimulationState) -> np.ndarray:
        """
        Carry x, y, velocity and pin over from `previous` by id.

        Returns a boolean mask of slots that had no previous record.
        """
        fresh = np.ones(len(self.ids), dtype=bool)
        for i, node_id in enumerate(self.ids):
            j = previous.index.get(node_id)
            if j is None:
                continue
            fresh[i] = False
            self.x[i] = previous.x[j]
            self.y[i] = previous.y[j]
            self.vx[i] = previous.vx[j]
            self.vy[i] = previous.vy[j]
            self.fx[i] = previous.fx[j]
            self.fy[i] = previous.fy[j]
        return fresh
