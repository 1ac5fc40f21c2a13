"""Tests for the MCP tool functions."""

from types import SimpleNamespace

import pytest

from hackmate.config import Config
from hackmate.core.models import TaskStatus
from hackmate.core.orchestrator import TaskOrchestrator
from hackmate.mcp import server


@pytest.fixture
def orchestrator():
    return TaskOrchestrator(
        Config(schedule_delay=0, enable_ai=False, enable_github=False, enable_slack=False)
    )


@pytest.fixture
def ctx(orchestrator):
    lifespan_context = server.AppContext(orchestrator=orchestrator)
    return SimpleNamespace(request_context=SimpleNamespace(lifespan_context=lifespan_context))


class TestTaskTools:
    @pytest.mark.asyncio
    async def test_solve_and_wait(self, ctx):
        result = await server.solve_problem(ctx, "Add a /health endpoint", wait=True)
        assert len(result["tasks"]) == 5
        assert all(t["status"] == "done" for t in result["tasks"])
        assert server.get_task(ctx, result["task_id"])["title"] == "Analyze Requirements"

    @pytest.mark.asyncio
    async def test_solve_empty_problem(self, ctx):
        result = await server.solve_problem(ctx, "")
        assert "error" in result

    def test_list_tasks_filters_by_status(self, ctx, orchestrator):
        done = orchestrator.store.create("done task")
        orchestrator.store.transition(done.id, TaskStatus.IN_PROGRESS)
        orchestrator.store.transition(done.id, TaskStatus.DONE)
        orchestrator.store.create("queued task")

        assert len(server.list_tasks(ctx)) == 2
        assert [t["title"] for t in server.list_tasks(ctx, status="done")] == ["done task"]

    def test_get_task_not_found(self, ctx):
        assert server.get_task(ctx, "missing") == {"error": "Task not found: missing"}

    @pytest.mark.asyncio
    async def test_retry_errors_are_returned(self, ctx, orchestrator):
        assert "error" in await server.retry_task(ctx, "missing")
        queued = orchestrator.store.create("queued task")
        result = await server.retry_task(ctx, queued.id)
        assert "not in failed state" in result["error"]


class TestStatusTools:
    def test_agent_status(self, ctx):
        assert set(server.agent_status(ctx)["agents"]) == {"planner", "coder", "debugger", "pm"}

    @pytest.mark.asyncio
    async def test_search_memory(self, ctx):
        await server.solve_problem(ctx, "Add a /health endpoint", wait=True)
        results = await server.search_memory(ctx, "Update Documentation", limit=2)
        assert 0 < len(results) <= 2

    def test_usage_report(self, ctx):
        assert server.usage_report(ctx)["calls"] == 0
