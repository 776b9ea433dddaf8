"""
Synapse Canvas

Graph simulation and interaction core of the discovery canvas:

    store        canonical node / link collection, immutable snapshots
    layout       force-directed simulation and its asyncio frame loop
    view         pan / zoom transform with animated transitions
    interaction  drag, click and connect state machine
    render       keyed reconciliation into a retained scene
    facade       GraphCanvas wiring the above for one mounted canvas
"""

from .contracts import Error, ErrorCode, Result
from .facade import GraphCanvas
from .store import GraphLink, GraphNode, GraphSnapshot, GraphStore, NodeKind, Point
from .view import ViewportSize, ViewTransform

__all__ = [
    'Error', 'ErrorCode', 'Result',
    'GraphCanvas',
    'GraphLink', 'GraphNode', 'GraphSnapshot', 'GraphStore', 'NodeKind', 'Point',
    'ViewportSize', 'ViewTransform',
]

__version__ = "0.1.0"
