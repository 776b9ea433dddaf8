"""
Graph Data Store
================

Canonical mapping of node id -> node record plus the ordered link list.

GUARANTEES:
===========
1. Node ids are unique for the lifetime of the store
2. No duplicate (source_id, target_id) ordered pair
3. Links only reference existing nodes
4. Every mutation publishes ONE immutable GraphSnapshot
5. Rejected mutations are no-ops returning Result.failure

The store is single-writer: the owning application layer serializes
mutations through its own event order. Readers only ever see snapshots.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Dict, Iterator, List, Optional

from ..contracts import Error, ErrorCode, Result
from .contracts import GraphLink, GraphNode, GraphSnapshot


SnapshotListener = Callable[[GraphSnapshot], None]


class GraphStore:
    """
    Single-writer, multi-reader node/link collection.

    Use `batch()` to group several mutations into one published
    snapshot (e.g. a new node together with its link).
    """

    def __init__(self):
        self._nodes: Dict[str, GraphNode] = {}
        self._links: List[GraphLink] = []
        self._link_keys: set = set()
        self._version = 0
        self._listeners: List[SnapshotListener] = []
        self._batch_depth = 0
        self._dirty = False
        self._snapshot: Optional[GraphSnapshot] = None

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> GraphSnapshot:
        if self._snapshot is None or self._snapshot.version != self._version:
            self._snapshot = GraphSnapshot(
                version=self._version,
                nodes=tuple(self._nodes.values()),
                links=tuple(self._links)
            )
        return self._snapshot

    def node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    def links(self) -> List[GraphLink]:
        return list(self._links)

    def has_link(self, source_id: str, target_id: str) -> bool:
        return GraphLink(source_id, target_id).key in self._link_keys

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def batch(self) -> Iterator[GraphStore]:
        """Publish a single snapshot for all mutations inside the block."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._publish()

    def _changed(self):
        self._version += 1
        self._dirty = True
        if self._batch_depth == 0:
            self._publish()

    def _publish(self):
        self._dirty = False
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # NODE MUTATIONS
    # =========================================================================

    def add_node(self, node: GraphNode) -> Result:
        if node.node_id in self._nodes:
            return Result.failure(Error.create(
                ErrorCode.DUPLICATE_NODE_ID,
                f"Node id already exists: {node.node_id}",
                node_id=node.node_id
            ))
        self._nodes[node.node_id] = node
        self._changed()
        return Result.success(node)

    def replace_node(self, node: GraphNode) -> Result:
        """Swap in a new record for an existing id."""
        if node.node_id not in self._nodes:
            return self._missing(node.node_id)
        if self._nodes[node.node_id] == node:
            return Result.success(node)
        self._nodes[node.node_id] = node
        self._changed()
        return Result.success(node)

    def update_node(self, node_id: str, /, **changes) -> Result:
        """Replace a node record with updated attributes. The id is immutable."""
        current = self._nodes.get(node_id)
        if current is None:
            return self._missing(node_id)
        if "node_id" in changes and changes["node_id"] != node_id:
            return Result.failure(Error.create(
                ErrorCode.FLOW_PRECONDITION,
                "node_id cannot be changed",
                node_id=node_id
            ))
        return self.replace_node(replace(current, **changes))

    def remove_node(self, node_id: str) -> Result:
        """Remove a node and every link touching it."""
        if node_id not in self._nodes:
            return self._missing(node_id)
        removed = self._nodes.pop(node_id)
        self._links = [
            link for link in self._links
            if link.source_id != node_id and link.target_id != node_id
        ]
        self._link_keys = {link.key for link in self._links}
        self._changed()
        return Result.success(removed)

    # =========================================================================
    # LINK MUTATIONS
    # =========================================================================

    def add_link(self, source_id: str, target_id: str) -> Result:
        """
        Add a directed link.

        Self-links are permitted by the data model; the connect
        gesture never produces one.
        """
        for endpoint in (source_id, target_id):
            if endpoint not in self._nodes:
                return Result.failure(Error.create(
                    ErrorCode.DANGLING_LINK,
                    f"Link endpoint does not exist: {endpoint}",
                    source_id=source_id,
                    target_id=target_id
                ))
        link = GraphLink(source_id, target_id)
        if link.key in self._link_keys:
            return Result.failure(Error.create(
                ErrorCode.DUPLICATE_LINK,
                f"Link already exists: {link.key}",
                link=link.key
            ))
        self._links.append(link)
        self._link_keys.add(link.key)
        self._changed()
        return Result.success(link)

    def remove_link(self, source_id: str, target_id: str) -> Result:
        key = GraphLink(source_id, target_id).key
        if key not in self._link_keys:
            return Result.failure(Error.create(
                ErrorCode.DANGLING_LINK,
                f"No such link: {key}",
                link=key
            ))
        self._links = [link for link in self._links if link.key != key]
        self._link_keys.discard(key)
        self._changed()
        return Result.success(key)

    def clear(self):
        if not self._nodes and not self._links:
            return
        self._nodes.clear()
        self._links.clear()
        self._link_keys.clear()
        self._changed()

    def _missing(self, node_id: str) -> Result:
        return Result.failure(Error.create(
            ErrorCode.NODE_NOT_FOUND,
            f"Node not found: {node_id}",
            node_id=node_id
        ))
