"""
Render Reconciler
=================

Keyed diff of the current snapshot against the retained Scene.

GUARANTEES:
===========
1. Elements whose key survives are updated IN PLACE, never recreated
2. Removed keys are removed; new keys are created at the node's current
   simulated position
3. Ticks touch coordinates only; content is re-applied only when a
   node's NodeAppearance changed
4. Links are resolved from ids against the snapshot each time; links
   with a missing endpoint are not drawn
"""

from __future__ import annotations
from itertools import count
from typing import List, Mapping, Optional

from ..layout.simulation import TickEvent
from ..store.contracts import GraphSnapshot, Point
from .elements import (
    CreateLink, CreateNode, LinkElement, NodeAppearance, NodeElement,
    RemoveLink, RemoveNode, RenderOp, RenderPlan, Scene, UpdateNode,
)


class RenderReconciler:

    def __init__(self):
        self._scene = Scene()
        self._ids = count(1)
        self.content_updates = 0
        self.position_updates = 0

    @property
    def scene(self) -> Scene:
        return self._scene

    # =========================================================================
    # CONTENT (low frequency)
    # =========================================================================

    def plan(self, snapshot: GraphSnapshot, selected_source: Optional[str] = None) -> RenderPlan:
        """Compute the keyed diff without touching the scene."""
        removals: List[RenderOp] = []
        creations: List[RenderOp] = []
        updates: List[RenderOp] = []

        wanted_nodes = {}
        for node in snapshot.nodes:
            wanted_nodes.setdefault(node.node_id, NodeAppearance.of(node, selected_source))

        wanted_links = {}
        for link in snapshot.links:
            if link.source_id in wanted_nodes and link.target_id in wanted_nodes:
                wanted_links.setdefault(link.key, link)

        for key in self._scene.links:
            if key not in wanted_links:
                removals.append(RemoveLink(key))
        for key in self._scene.nodes:
            if key not in wanted_nodes:
                removals.append(RemoveNode(key))

        for key, appearance in wanted_nodes.items():
            element = self._scene.nodes.get(key)
            if element is None:
                creations.append(CreateNode(key, appearance))
            elif element.appearance != appearance:
                updates.append(UpdateNode(key, appearance))
        for key, link in wanted_links.items():
            if key not in self._scene.links:
                creations.append(CreateLink(key, link.source_id, link.target_id))

        return RenderPlan(tuple(removals + creations + updates))

    def apply(self, plan: RenderPlan, positions: Mapping[str, Point]):
        scene = self._scene
        for op in plan.ops:
            if isinstance(op, RemoveLink):
                scene.links.pop(op.key, None)
            elif isinstance(op, RemoveNode):
                scene.nodes.pop(op.key, None)
            elif isinstance(op, CreateNode):
                element = NodeElement(key=op.key, appearance=op.appearance, element_id=next(self._ids))
                position = positions.get(op.key)
                if position is not None:
                    element.place(position.x, position.y)
                element.content_version = 1
                scene.nodes[op.key] = element
                self.content_updates += 1
            elif isinstance(op, UpdateNode):
                element = scene.nodes[op.key]
                element.appearance = op.appearance
                element.content_version += 1
                self.content_updates += 1
            elif isinstance(op, CreateLink):
                element = LinkElement(
                    key=op.key,
                    source_id=op.source_id,
                    target_id=op.target_id,
                    element_id=next(self._ids)
                )
                scene.links[op.key] = element
                self._place_link(element, positions)
            else:
                raise TypeError(f"Unknown render operation: {op!r}")

    def reconcile(
        self,
        snapshot: GraphSnapshot,
        positions: Mapping[str, Point],
        selected_source: Optional[str] = None
    ) -> RenderPlan:
        plan = self.plan(snapshot, selected_source)
        self.apply(plan, positions)
        return plan

    # =========================================================================
    # POSITIONS (every tick)
    # =========================================================================

    def on_tick(self, event: TickEvent):
        self.update_positions(event.positions)

    def update_positions(self, positions: Mapping[str, Point]):
        for key, element in self._scene.nodes.items():
            position = positions.get(key)
            if position is not None:
                element.place(position.x, position.y)
        for element in self._scene.links.values():
            self._place_link(element, positions)
        self.position_updates += 1

    @staticmethod
    def _place_link(element: LinkElement, positions: Mapping[str, Point]):
        source = positions.get(element.source_id)
        target = positions.get(element.target_id)
        if source is None or target is None:
            return
        element.x1, element.y1 = source.x, source.y
        element.x2, element.y2 = target.x, target.y

    def clear(self):
        self._scene = Scene()
