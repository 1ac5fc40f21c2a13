"""Tests for the JSON API."""

import pytest
from starlette.testclient import TestClient

from hackmate.config import Config
from hackmate.core.models import TaskStatus
from hackmate.core.orchestrator import TaskOrchestrator
from hackmate.web.app import create_app


@pytest.fixture
def orchestrator():
    return TaskOrchestrator(
        Config(schedule_delay=0, enable_ai=False, enable_github=False, enable_slack=False)
    )


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as client:
        yield client


def _failed_task(orchestrator, title="Broken build", agent="coder"):
    task = orchestrator.store.create(title, "Fix it", agent)
    orchestrator.store.transition(task.id, TaskStatus.IN_PROGRESS)
    orchestrator.store.transition(task.id, TaskStatus.FAILED)
    task.error = "compile error"
    return task


class TestCreateTask:
    def test_creates_plan(self, client, orchestrator):
        resp = client.post("/api/tasks", json={"problem": "Add a /health endpoint"})
        assert resp.status_code == 201
        task_id = resp.json()["task_id"]
        assert orchestrator.get_task(task_id).title == "Analyze Requirements"
        assert len(orchestrator.get_all_tasks()) == 5

    @pytest.mark.parametrize(
        "body",
        [{}, {"problem": ""}, {"problem": "   "}, {"problem": 42}, ["problem"]],
    )
    def test_missing_problem(self, client, body):
        resp = client.post("/api/tasks", json=body)
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_invalid_json(self, client):
        resp = client.post(
            "/api/tasks", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid JSON body"}


class TestListAndGet:
    def test_list_empty(self, client):
        resp = client.get("/api/tasks")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_list_newest_first(self, client, orchestrator):
        first = orchestrator.store.create("first")
        second = orchestrator.store.create("second")
        ids = [t["id"] for t in client.get("/api/tasks").json()]
        assert ids == [second.id, first.id]

    def test_get_task(self, client, orchestrator):
        task = orchestrator.store.create("Build API", "REST", "coder", {"type": "api"})
        data = client.get(f"/api/tasks/{task.id}").json()
        assert data["title"] == "Build API"
        assert data["status"] == "queued"
        assert data["agent"] == "coder"
        assert data["metadata"] == {"type": "api"}
        assert data["result"] is None

    def test_get_task_not_found(self, client):
        resp = client.get("/api/tasks/nonexistent")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Task not found"}


class TestRetry:
    def test_retry_failed_task(self, client, orchestrator):
        task = _failed_task(orchestrator)
        resp = client.post(f"/api/tasks/{task.id}/retry")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "done"
        assert data["error"] is None
        assert "Task retry initiated" in data["logs"]
        assert data["result"]["kind"] == "code"

    def test_retry_not_failed(self, client, orchestrator):
        task = orchestrator.store.create("Queued task")
        resp = client.post(f"/api/tasks/{task.id}/retry")
        assert resp.status_code == 409
        assert "not in failed state" in resp.json()["error"]

    def test_retry_not_found(self, client):
        resp = client.post("/api/tasks/nonexistent/retry")
        assert resp.status_code == 404


class TestStatusAndMemory:
    def test_agent_status(self, client):
        data = client.get("/api/agents/status").json()
        assert set(data["agents"]) == {"planner", "coder", "debugger", "pm"}
        assert data["memory"]["backend"] == "local"
        assert data["ai"]["available"] is False

    def test_memory_search(self, client, orchestrator):
        client.post("/api/tasks", json={"problem": "Add a /health endpoint"})
        resp = client.get("/api/memory/search", params={"q": "Implement Solution", "limit": 3})
        assert resp.status_code == 200
        results = resp.json()
        assert 0 < len(results) <= 3
        assert {"id", "type", "content", "metadata", "timestamp", "score"} <= set(results[0])

    def test_memory_search_requires_query(self, client):
        assert client.get("/api/memory/search").status_code == 400

    def test_memory_search_bad_limit(self, client):
        resp = client.get("/api/memory/search", params={"q": "x", "limit": "many"})
        assert resp.status_code == 400

    def test_usage(self, client):
        data = client.get("/api/usage").json()
        assert data == {"calls": 0, "total_cost": 0, "by_model": {}, "by_task": {}}
