"""
Synapse Discovery: API Server
=============================

HTTP surface for one discovery session and its mounted canvas.

Endpoints:
- GET  /health
- GET  /api/v1/graph                      -> snapshot, scene, view, status
- GET  /api/v1/experts                    -> predefined experts
- GET  /api/v1/audit                      -> audit entries and metric totals
- POST /api/v1/session/start              -> hypothesis + core principle
- POST /api/v1/session/experts            -> predefined or generated expert
- POST /api/v1/session/synthesize         -> research roadmap
- POST /api/v1/session/reset
- POST /api/v1/links                      -> connect two nodes
- POST /api/v1/nodes/{id}/selection       -> toggle roadmap selection
- POST /api/v1/nodes/{id}/deep-dive
- POST /api/v1/pointer                    -> pointer / wheel input
- POST /api/v1/connect-mode
- POST /api/v1/view/{zoom-in|zoom-out|fit}

Usage:
    uvicorn discovery.api.server:app --reload
"""
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from adapter.agents import AgentService
from canvas.facade import GraphCanvas
from canvas.store import Point

from ..config import DiscoveryConfig
from ..session import DiscoverySession
from .mapper import map_error, map_graph, map_result, map_status, map_transform

# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

# Global session and canvas
session_instance: Optional[DiscoverySession] = None
canvas_instance: Optional[GraphCanvas] = None


def create_session(config: DiscoveryConfig) -> DiscoverySession:
    """Session + mounted canvas for one configuration."""
    agents = AgentService(config.provider.create_provider(), config.agents)
    session = DiscoverySession(agents)
    canvas = GraphCanvas(
        session.store,
        viewport=config.canvas.viewport,
        force_config=config.forces,
        view_config=config.view,
        interaction_config=config.interaction
    )
    session.attach(canvas)
    canvas.mount()
    return session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the session and start the canvas frame loop."""
    global session_instance, canvas_instance

    config = DiscoveryConfig.from_env()
    print(f"[*] Initializing discovery session (provider: {config.provider.provider})")

    try:
        session_instance = create_session(config)
        canvas_instance = session_instance.canvas
        canvas_instance.start_loop(config.canvas.tick_ms / 1000.0)
        print("[*] Session initialized successfully.")
    except Exception as e:
        print(f"[!] FAILED to initialize session: {e}")
        raise e

    yield

    print("[*] Shutting down discovery session.")
    canvas_instance.dispose()
    session_instance.detach()
    session_instance = None
    canvas_instance = None

app = FastAPI(
    title="Synapse Discovery API",
    version="0.1.0",
    description="Discovery canvas: agent flows over a force-directed graph",
    lifespan=lifespan
)

# CORS (Allow Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _session() -> DiscoverySession:
    if not session_instance:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return session_instance


def _canvas() -> GraphCanvas:
    if not canvas_instance:
        raise HTTPException(status_code=503, detail="Canvas not initialized")
    return canvas_instance


# =============================================================================
# REQUEST MODELS
# =============================================================================

class StartRequest(BaseModel):
    topic: str
    role_context: str = ""


class ExpertRequest(BaseModel):
    expert_id: Optional[str] = None
    role: Optional[str] = None


class LinkRequest(BaseModel):
    source: str
    target: str


class PointerRequest(BaseModel):
    kind: Literal["down", "move", "up", "wheel", "dblclick"]
    x: float
    y: float
    node_id: Optional[str] = None
    delta_y: float = 0.0


class ConnectModeRequest(BaseModel):
    active: Optional[bool] = None


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
async def health_check():
    """System status."""
    if not session_instance:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return {"status": "online", "mode": "discovery", "processing": session_instance.is_processing}


@app.get("/api/v1/graph")
async def get_graph():
    return map_graph(_session(), canvas_instance)


@app.get("/api/v1/experts")
async def get_experts():
    return {
        "experts": [
            {"id": e.expert_id, "role": e.role, "persona": e.persona, "color": e.color}
            for e in _session().available_experts()
        ]
    }


@app.get("/api/v1/audit")
async def get_audit(limit: int = 100):
    session = _session()
    entries = session.audit.get_entries()[-limit:]
    return {
        "entries": [
            {
                "sequence": e.sequence,
                "type": e.event_type.value,
                "action": e.action,
                "entity_id": e.entity_id,
                "timestamp": e.timestamp.isoformat(),
                "metadata": dict(e.metadata),
            }
            for e in entries
        ],
        "metrics": session.metrics.snapshot(),
    }


@app.post("/api/v1/session/start")
async def start_session(request: StartRequest):
    session = _session()
    return map_result(await session.start(request.role_context, request.topic), session)


@app.post("/api/v1/session/experts")
async def add_expert(request: ExpertRequest):
    session = _session()
    if request.expert_id:
        expert = next((e for e in session.available_experts() if e.expert_id == request.expert_id), None)
        if expert is None:
            raise HTTPException(status_code=404, detail=f"Unknown expert: {request.expert_id}")
        return map_result(session.add_expert(expert), session)
    if request.role:
        return map_result(await session.generate_specialist(request.role), session)
    raise HTTPException(status_code=422, detail="Provide expert_id or role")


@app.post("/api/v1/session/synthesize")
async def synthesize():
    session = _session()
    return map_result(await session.synthesize(), session)


@app.post("/api/v1/session/reset")
async def reset_session():
    session = _session()
    session.reset()
    return {"ok": True, "status": map_status(session)}


@app.post("/api/v1/links")
async def connect(request: LinkRequest):
    session = _session()
    return map_result(await session.connect(request.source, request.target), session)


@app.post("/api/v1/nodes/{node_id}/selection")
async def toggle_selection(node_id: str):
    session = _session()
    return map_result(session.toggle_selection(node_id), session)


@app.post("/api/v1/nodes/{node_id}/deep-dive")
async def deep_dive(node_id: str):
    session = _session()
    return map_result(await session.deep_dive(node_id), session)


@app.post("/api/v1/pointer")
async def pointer(request: PointerRequest):
    canvas = _canvas()
    point = Point(request.x, request.y)
    effects = ()
    if request.kind == "down":
        effects = canvas.pointer_down(point, request.node_id)
    elif request.kind == "move":
        effects = canvas.pointer_move(point)
    elif request.kind == "up":
        effects = canvas.pointer_up(point)
    elif request.kind == "wheel":
        canvas.wheel(point, request.delta_y)
    else:
        canvas.double_click(point)
    return {
        "state": type(canvas.interaction.state).__name__,
        "effects": [type(e).__name__ for e in effects],
        "connect_mode": canvas.connect_mode,
        "pending_source": canvas.pending_source,
        "transform": map_transform(canvas.transform),
    }


@app.post("/api/v1/connect-mode")
async def set_connect_mode(request: ConnectModeRequest):
    canvas = _canvas()
    if request.active is None:
        canvas.toggle_connect_mode()
    else:
        canvas.set_connect_mode(request.active)
    return {"connect_mode": canvas.connect_mode, "pending_source": canvas.pending_source}


@app.post("/api/v1/view/{command}")
async def view_command(command: Literal["zoom-in", "zoom-out", "fit"]):
    canvas = _canvas()
    if command == "zoom-in":
        target = canvas.zoom_in()
    elif command == "zoom-out":
        target = canvas.zoom_out()
    else:
        result = canvas.fit_to_view()
        if result.is_failure:
            return {"ok": False, "error": map_error(result.error), "transform": map_transform(canvas.transform)}
        target = result.value
    return {"ok": True, "target": map_transform(target), "transform": map_transform(canvas.transform)}
