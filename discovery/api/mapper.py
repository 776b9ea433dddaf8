"""
API Mapper
==========

Transforms session, snapshot and scene state into JSON-ready DTOs.
"""
from typing import Any, Dict, Optional

from canvas.contracts import Error, Result
from canvas.facade import GraphCanvas
from canvas.store import GraphNode, GraphSnapshot
from canvas.view import ViewTransform

from ..session import DiscoverySession


def map_node(node: GraphNode) -> Dict[str, Any]:
    return {
        "id": node.node_id,
        "type": node.kind.value,
        "label": node.label,
        "content": node.content,
        "role": node.role,
        "image": node.image,
        "selected_for_roadmap": node.selected_for_roadmap,
        "deep_dive_completed": node.deep_dive_completed,
    }


def map_snapshot(snapshot: GraphSnapshot) -> Dict[str, Any]:
    return {
        "version": snapshot.version,
        "nodes": [map_node(n) for n in snapshot.nodes],
        "links": [{"source": l.source_id, "target": l.target_id} for l in snapshot.links],
    }


def map_transform(transform: ViewTransform) -> Dict[str, Any]:
    return {
        "x": transform.translate_x,
        "y": transform.translate_y,
        "k": transform.scale,
        "svg": transform.to_svg(),
    }


def map_graph(session: DiscoverySession, canvas: Optional[GraphCanvas]) -> Dict[str, Any]:
    """Full canvas state: store snapshot, scene and view."""
    dto: Dict[str, Any] = {
        "snapshot": map_snapshot(session.store.snapshot()),
        "status": map_status(session),
    }
    if canvas is not None:
        dto["scene"] = canvas.scene.to_dict()
        dto["transform"] = map_transform(canvas.transform)
        dto["connect_mode"] = canvas.connect_mode
        dto["pending_source"] = canvas.pending_source
        dto["simulation"] = {
            "alpha": canvas.simulation.alpha,
            "running": canvas.simulation.is_running,
            "ticks": canvas.simulation.tick_count,
        }
    return dto


def map_status(session: DiscoverySession) -> Dict[str, Any]:
    return {
        "message": session.status_message,
        "is_processing": session.is_processing,
        "has_gatekeeper": session.has_gatekeeper,
        "has_experts": session.has_experts,
    }


def map_error(error: Error) -> Dict[str, Any]:
    return {
        "code": error.code.name,
        "message": error.message,
        "context": dict(error.context),
    }


def map_result(result: Result, session: DiscoverySession) -> Dict[str, Any]:
    dto: Dict[str, Any] = {"ok": result.is_success, "status": map_status(session)}
    if result.is_failure:
        dto["error"] = map_error(result.error)
    elif isinstance(result.value, str):
        dto["id"] = result.value
    return dto
