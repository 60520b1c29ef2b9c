"""
End-to-end tests for the HTTP API.

The document store and AI gateway are swapped for the test fixtures through
dependency overrides; everything else runs as in production.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from mapdiary.api.app import app
from mapdiary.api.dependencies import get_document_store, get_gateway
from mapdiary.config import ROOT_NODE_LABEL
from mapdiary.graph.templates import MOOD_CHOICES
from mapdiary.infrastructure import settings
from mapdiary.llm.errors import AIGatewayError
from mapdiary.observability.telemetry import get_counter

SUMMARY_JSON = json.dumps(
    {
        "summary": "Quiet day at home.",
        "emotion": "🏠",
        "financials": [{"type": "expense", "label": "groceries", "amount": 20000}],
    }
)

REPORT_JSON = json.dumps(
    {
        "chronological": "Wednesday: park.",
        "thematic": "Outdoors.",
        "summary": "A sunny week.",
        "emotion": "☀️",
    }
)


@pytest.fixture
def client(store, gateway):
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_map(client, **body):
    response = client.post("/api/maps", json=body)
    assert response.status_code == 201
    return response.json()


def add_root(client, map_id, label="Root"):
    response = client.post(f"/api/maps/{map_id}/nodes", json={"label": label})
    assert response.status_code == 201
    return response.json()["node_ids"][0]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "llm" in data


def test_database_health(client):
    response = client.get("/health/db")

    assert response.status_code == 200
    assert response.json()["pool"]["pool_size"] > 0
    assert response.json()["documents"] == 0


class TestMaps:
    def test_create_and_get(self, client):
        created = create_map(client, title="Trip")

        response = client.get(f"/api/maps/{created['id']}")

        assert response.status_code == 200
        assert response.json()["title"] == "Trip"
        assert response.json()["type"] == "blank"

    def test_untitled_map_gets_date_title(self, client):
        assert create_map(client)["title"] == "2024년 8월 15일의 기록"

    def test_list_and_search(self, client):
        create_map(client, title="Seoul trip")
        create_map(client, title="Groceries")

        listed = client.get("/api/maps").json()
        found = client.get("/api/maps", params={"q": "seoul"}).json()

        assert listed["total"] == 2
        assert [m["title"] for m in found["maps"]] == ["Seoul trip"]

    def test_patch_note_content(self, client):
        note = create_map(client, title="Note", type="note")

        response = client.patch(
            f"/api/maps/{note['id']}", json={"title": "Renamed", "content": "hello"}
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["content"] == "hello"
        assert response.json()["pages"] == ["hello", ""]

    def test_patch_note_pages(self, client):
        note = create_map(client, title="Note", type="note")

        response = client.patch(f"/api/maps/{note['id']}", json={"pages": ["left", "right"]})

        assert response.status_code == 200
        assert response.json()["pages"] == ["left", "right"]
        assert "<!-- page -->" in response.json()["content"]
        assert create_map(client, title="Graph")["pages"] is None

    def test_delete(self, client):
        created = create_map(client, type="daily")

        assert client.delete(f"/api/maps/{created['id']}").status_code == 204
        assert client.get(f"/api/maps/{created['id']}").status_code == 404

    def test_unknown_map_is_404(self, client):
        response = client.get("/api/maps/missing")

        assert response.status_code == 404
        assert get_counter("api.errors.404") == 1

    def test_invalid_type_is_rejected(self, client):
        response = client.post("/api/maps", json={"type": "bogus"})

        assert response.status_code == 422
        assert response.json()["invalid_fields"] == ["type"]
        assert get_counter("api.validation_errors") == 1

    def test_by_date(self, client):
        daily = create_map(client, type="daily")

        assert client.get("/api/maps/by-date/2024-08-15").json()["id"] == daily["id"]
        assert client.get("/api/maps/by-date/2024-08-16").status_code == 404

    def test_users_are_isolated(self, client):
        client.post("/api/maps", json={"title": "mine"}, headers={"X-User-Id": "alice"})

        theirs = client.get("/api/maps", headers={"X-User-Id": "bob"}).json()

        assert theirs["total"] == 0

    def test_missing_user_rejected_when_auth_required(self, client, monkeypatch):
        monkeypatch.setattr(settings, "AUTH_REQUIRED", True)

        assert client.get("/api/maps").status_code == 401
        assert client.get("/api/maps", headers={"X-User-Id": "alice"}).status_code == 200


class TestGraph:
    def test_daily_map_graph(self, client):
        daily = create_map(client, type="daily")

        graph = client.get(f"/api/maps/{daily['id']}/graph").json()

        assert len(graph["nodes"]) == 8
        assert len(graph["edges"]) == 7
        assert "selected" not in graph["nodes"][0]

    def test_first_node_of_blank_map(self, client):
        blank = create_map(client, title="Blank")

        add_root(client, blank["id"], label=ROOT_NODE_LABEL)

        nodes = client.get(f"/api/maps/{blank['id']}/graph").json()["nodes"]
        assert [n["label"] for n in nodes] == [ROOT_NODE_LABEL]

    def test_children_and_cascade_delete(self, client):
        blank = create_map(client, title="Blank")
        root = add_root(client, blank["id"])
        children = client.post(
            f"/api/maps/{blank['id']}/nodes/{root}/children", json={"labels": ["a", "b"]}
        ).json()["node_ids"]
        client.post(f"/api/maps/{blank['id']}/nodes/{children[0]}/children", json={})

        response = client.delete(f"/api/maps/{blank['id']}/nodes/{children[0]}")

        assert response.status_code == 200
        assert len(response.json()["node_ids"]) == 2
        remaining = client.get(f"/api/maps/{blank['id']}/graph").json()
        assert {n["id"] for n in remaining["nodes"]} == {root, children[1]}
        assert len(remaining["edges"]) == 1

    def test_content_and_position(self, client):
        blank = create_map(client, title="Blank")
        root = add_root(client, blank["id"])
        base = f"/api/maps/{blank['id']}/nodes/{root}"

        content = client.put(f"{base}/content", json={"label": "Day", "content": "body"})
        position = client.put(f"{base}/position", json={"x": 10, "y": 20})

        assert content.status_code == 204
        assert position.status_code == 204

        node = client.get(f"/api/maps/{blank['id']}/graph").json()["nodes"][0]
        assert node["label"] == "Day"
        assert node["content"] == "body"
        assert node["position"] == {"x": 10, "y": 20}

    def test_edges(self, client):
        blank = create_map(client, title="Blank")
        a = add_root(client, blank["id"], "A")
        b = add_root(client, blank["id"], "B")

        edge = client.post(f"/api/maps/{blank['id']}/edges", json={"source": a, "target": b})
        loop = client.post(f"/api/maps/{blank['id']}/edges", json={"source": a, "target": a})
        dangling = client.post(
            f"/api/maps/{blank['id']}/edges", json={"source": a, "target": "ghost"}
        )

        assert edge.status_code == 201
        assert loop.status_code == 400
        assert dangling.status_code == 404
        edge_id = edge.json()["id"]
        assert client.delete(f"/api/maps/{blank['id']}/edges/{edge_id}").status_code == 204
        assert client.delete(f"/api/maps/{blank['id']}/edges/{edge_id}").status_code == 404

    def test_unknown_node_is_404(self, client):
        blank = create_map(client, title="Blank")

        response = client.post(f"/api/maps/{blank['id']}/nodes/missing/children", json={})

        assert response.status_code == 404
        assert client.delete(f"/api/maps/{blank['id']}/nodes/missing").status_code == 404

    def test_graph_of_unknown_map_is_404(self, client):
        assert client.get("/api/maps/missing/graph").status_code == 404

    def test_brainstorm(self, client, backend):
        blank = create_map(client, title="Blank")
        root = add_root(client, blank["id"], "Travel")
        backend.queue("Beach, Mountain, City, Desert")

        response = client.post(f"/api/maps/{blank['id']}/nodes/{root}/brainstorm")

        assert response.status_code == 201
        assert len(response.json()["node_ids"]) == 3

    def test_brainstorm_ai_failure_is_502(self, client, backend):
        blank = create_map(client, title="Blank")
        root = add_root(client, blank["id"], "Travel")
        backend.queue(AIGatewayError("backend down"))

        response = client.post(f"/api/maps/{blank['id']}/nodes/{root}/brainstorm")

        assert response.status_code == 502

    def test_choose_and_reset(self, client):
        daily = create_map(client, type="daily")
        nodes = client.get(f"/api/maps/{daily['id']}/graph").json()["nodes"]
        options = [n for n in nodes if n["data"].get("isChoice")]
        chosen = next(n for n in options if n["label"] == MOOD_CHOICES[0])
        group_id = chosen["data"]["parentId"]

        hidden = client.post(f"/api/maps/{daily['id']}/nodes/{chosen['id']}/choose").json()

        assert len(hidden["node_ids"]) == len(MOOD_CHOICES) - 1

        client.post(f"/api/maps/{daily['id']}/nodes/{group_id}/reset-choices")
        nodes = client.get(f"/api/maps/{daily['id']}/graph").json()["nodes"]
        assert not any(n["hidden"] for n in nodes)


class TestSummaries:
    def test_empty_map_is_422(self, client):
        blank = create_map(client, title="Blank")

        response = client.post(f"/api/maps/{blank['id']}/summary")

        assert response.status_code == 422

    def test_summary_then_financials(self, client, backend):
        blank = create_map(client, title="Blank")
        add_root(client, blank["id"], "Shopping")
        backend.queue(SUMMARY_JSON)

        summary = client.post(f"/api/maps/{blank['id']}/summary").json()
        cached = client.post(f"/api/maps/{blank['id']}/summary").json()
        financials = client.get(f"/api/maps/{blank['id']}/financials").json()

        assert summary["summary"] == "Quiet day at home."
        assert summary["persisted"]
        assert cached["cached"]
        assert financials["total_expense"] == 20000
        assert financials["expense_shares"][0]["percentage"] == 100.0

    def test_markdown(self, client):
        blank = create_map(client, title="Blank")
        add_root(client, blank["id"], "Morning")

        response = client.get(f"/api/maps/{blank['id']}/markdown")

        assert "**Morning**" in response.json()["markdown"]

    def test_summary_by_date(self, client, backend):
        create_map(client, type="daily")
        backend.queue(SUMMARY_JSON)

        response = client.post("/api/maps/by-date/2024-08-15/summary")

        assert response.status_code == 200
        assert response.json()["persisted"]


class TestReports:
    def test_check_generates_and_lists(self, client, clock, backend):
        clock.set(datetime(2024, 8, 7, 9, tzinfo=UTC))
        note = create_map(client, title="Wed", type="note")
        client.patch(f"/api/maps/{note['id']}", json={"content": "walked in the park"})
        clock.set(datetime(2024, 8, 15, 12, tzinfo=UTC))
        backend.queue(REPORT_JSON)

        checked = client.post("/api/reports/check").json()
        again = client.post("/api/reports/check").json()
        listed = client.get("/api/reports").json()

        assert [r["period_id"] for r in checked["reports"]] == ["2024-W32"]
        assert again["total"] == 0
        assert listed["reports"][0]["summary"] == "A sunny week."

        report_id = listed["reports"][0]["id"]
        assert client.delete(f"/api/reports/{report_id}").status_code == 204
        assert client.delete(f"/api/reports/{report_id}").status_code == 404


class TestIdeas:
    def test_topic_ideas(self, client, backend):
        backend.queue("A, B, C, D, E, F")

        response = client.post("/api/ideas", json={"topic": "Travel"})

        assert response.status_code == 200
        assert response.json() == {"topic": "Travel", "ideas": ["A", "B", "C", "D", "E"]}

    def test_blank_topic_is_rejected(self, client):
        assert client.post("/api/ideas", json={"topic": ""}).status_code == 422
