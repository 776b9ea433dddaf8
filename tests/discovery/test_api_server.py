"""
API Server Tests
================

HTTP surface over a mock-provider session, through the app lifespan.
"""

import pytest
from fastapi.testclient import TestClient

from discovery.api.server import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("SYNAPSE_PROVIDER", "mock")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    with TestClient(app) as test_client:
        yield test_client


def start(client, topic="Why do flocks turn together?"):
    return client.post("/api/v1/session/start", json={"topic": topic, "role_context": "Ecologist"}).json()


def graph_nodes(client, kind=None):
    nodes = client.get("/api/v1/graph").json()["snapshot"]["nodes"]
    return [n for n in nodes if kind is None or n["type"] == kind]


def brainstormed(client):
    start(client)
    expert_id = client.post("/api/v1/session/experts", json={"expert_id": "biologist"}).json()["id"]
    client.post("/api/v1/links", json={"source": "gatekeeper-1", "target": expert_id})
    return expert_id


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "online", "mode": "discovery", "processing": False}

    def test_experts_listed(self, client):
        experts = client.get("/api/v1/experts").json()["experts"]
        assert {e["id"] for e in experts} >= {"biologist", "physicist"}


class TestSessionEndpoints:

    def test_start(self, client):
        body = start(client)

        assert body["ok"] is True
        assert body["id"] == "gatekeeper-1"
        assert body["status"]["has_gatekeeper"] is True

        graph = client.get("/api/v1/graph").json()
        assert {n["id"] for n in graph["snapshot"]["nodes"]} == {"user-input", "gatekeeper-1"}
        assert graph["snapshot"]["links"] == [{"source": "user-input", "target": "gatekeeper-1"}]
        assert "transform" in graph and "scene" in graph

    def test_start_rejected(self, client):
        body = start(client, topic="")

        assert body["ok"] is False
        assert body["error"]["code"] == "FLOW_PRECONDITION"

    def test_add_predefined_expert(self, client):
        start(client)
        body = client.post("/api/v1/session/experts", json={"expert_id": "physicist"}).json()

        assert body["ok"] is True
        assert client.get("/api/v1/graph").json()["connect_mode"] is True

    def test_add_generated_specialist(self, client):
        start(client)
        body = client.post("/api/v1/session/experts", json={"role": "Glaciologist"}).json()

        assert body["ok"] is True
        assert [n["label"] for n in graph_nodes(client, "expert")] == ["Glaciologist"]

    def test_unknown_expert(self, client):
        response = client.post("/api/v1/session/experts", json={"expert_id": "astrologer"})
        assert response.status_code == 404

    def test_expert_request_needs_a_field(self, client):
        response = client.post("/api/v1/session/experts", json={})
        assert response.status_code == 422

    def test_link_triggers_brainstorm(self, client):
        brainstormed(client)
        concepts = graph_nodes(client, "concept")

        assert len(concepts) == 3
        assert all(c["role"] == "Biologist" for c in concepts)

    def test_duplicate_link(self, client):
        expert_id = brainstormed(client)
        body = client.post("/api/v1/links", json={"source": "gatekeeper-1", "target": expert_id}).json()

        assert body["ok"] is False
        assert body["error"]["code"] == "DUPLICATE_LINK"

    def test_selection_and_synthesis(self, client):
        brainstormed(client)
        concept_id = graph_nodes(client, "concept")[0]["id"]

        selected = client.post(f"/api/v1/nodes/{concept_id}/selection").json()
        roadmap = client.post("/api/v1/session/synthesize").json()

        assert selected["ok"] is True
        assert roadmap["ok"] is True
        assert [n["label"] for n in graph_nodes(client, "roadmap")] == ["Research Roadmap"]

    def test_deep_dive(self, client):
        brainstormed(client)
        concept_id = graph_nodes(client, "concept")[0]["id"]

        body = client.post(f"/api/v1/nodes/{concept_id}/deep-dive").json()

        assert body["ok"] is True
        concept = next(n for n in graph_nodes(client) if n["id"] == concept_id)
        assert concept["deep_dive_completed"] is True

    def test_reset(self, client):
        start(client)
        body = client.post("/api/v1/session/reset").json()

        assert body["ok"] is True
        assert graph_nodes(client) == []


class TestCanvasEndpoints:

    def test_connect_mode_toggle(self, client):
        assert client.post("/api/v1/connect-mode", json={}).json()["connect_mode"] is True
        assert client.post("/api/v1/connect-mode", json={"active": False}).json()["connect_mode"] is False

    def test_pointer_on_empty_canvas(self, client):
        body = client.post("/api/v1/pointer", json={"kind": "down", "x": 5.0, "y": 5.0}).json()

        assert body["state"] == "Idle"
        assert body["effects"] == []
        client.post("/api/v1/pointer", json={"kind": "up", "x": 5.0, "y": 5.0})

    def test_pointer_wheel_zooms(self, client):
        body = client.post("/api/v1/pointer", json={"kind": "wheel", "x": 640.0, "y": 400.0, "delta_y": -500.0}).json()
        assert body["transform"]["k"] == pytest.approx(2.0)

    def test_pointer_kind_validated(self, client):
        response = client.post("/api/v1/pointer", json={"kind": "hover", "x": 0.0, "y": 0.0})
        assert response.status_code == 422

    def test_zoom_in(self, client):
        body = client.post("/api/v1/view/zoom-in").json()

        assert body["ok"] is True
        assert body["target"]["k"] == pytest.approx(1.2)

    def test_fit_on_empty_graph(self, client):
        body = client.post("/api/v1/view/fit").json()

        assert body["ok"] is False
        assert body["error"]["code"] == "DEGENERATE_BOUNDS"


class TestAudit:

    def test_audit_records_flow(self, client):
        start(client)
        body = client.get("/api/v1/audit").json()

        actions = [e["action"] for e in body["entries"]]
        assert "distill_principle" in actions
        assert body["metrics"]["agent_calls_total"] == 1.0

    def test_audit_limit(self, client):
        start(client)
        body = client.get("/api/v1/audit", params={"limit": 2}).json()
        assert len(body["entries"]) == 2
