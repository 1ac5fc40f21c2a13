"""MCP server exposing the hackmate orchestrator as tools."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from hackmate.config import get_config
from hackmate.core.orchestrator import TaskOrchestrator
from hackmate.core.tasks import TaskNotFoundError, TaskStateError


@dataclass
class AppContext:
    orchestrator: TaskOrchestrator


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Build the orchestrator on startup, drain it on shutdown."""
    orchestrator = TaskOrchestrator.from_config(get_config())
    await orchestrator.initialize()
    try:
        yield AppContext(orchestrator=orchestrator)
    finally:
        await orchestrator.shutdown()


mcp = FastMCP("hackmate", lifespan=app_lifespan)


def _orch(ctx: Context) -> TaskOrchestrator:
    """Extract the orchestrator from MCP Context."""
    return ctx.request_context.lifespan_context.orchestrator


# ── Task Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
async def solve_problem(ctx: Context, problem: str, wait: bool = False) -> dict:
    """Plan a problem into agent tasks and start executing them.

    With wait=True the call returns after every planned task has finished.
    """
    orchestrator = _orch(ctx)
    try:
        task_id = await orchestrator.create_task_from_problem(problem)
    except ValueError as e:
        return {"error": str(e)}
    if wait:
        await orchestrator.wait_idle()
    return {"task_id": task_id, "tasks": [t.to_dict() for t in orchestrator.get_all_tasks()]}


@mcp.tool()
def list_tasks(ctx: Context, status: str | None = None) -> list[dict]:
    """List all tasks, newest first, optionally filtered by status."""
    tasks = _orch(ctx).get_all_tasks()
    if status:
        tasks = [t for t in tasks if t.status.value == status]
    return [t.to_dict() for t in tasks]


@mcp.tool()
def get_task(ctx: Context, task_id: str) -> dict:
    """Get full details of a task including its logs and result."""
    task = _orch(ctx).get_task(task_id)
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return task.to_dict()


@mcp.tool()
async def retry_task(ctx: Context, task_id: str) -> dict:
    """Retry a failed task and wait for it to finish."""
    try:
        task = await _orch(ctx).retry_task(task_id)
    except (TaskNotFoundError, TaskStateError) as e:
        return {"error": str(e)}
    return task.to_dict()


# ── Status Tools ──────────────────────────────────────────────────────────────


@mcp.tool()
def agent_status(ctx: Context) -> dict:
    """Readiness of each agent and the enabled integrations."""
    return _orch(ctx).get_agent_status()


@mcp.tool()
async def search_memory(ctx: Context, query: str, limit: int = 10) -> list[dict]:
    """Search memory from previous tasks, plans and errors."""
    entries = await _orch(ctx).search_memory(query, limit)
    return [e.to_dict() for e in entries]


@mcp.tool()
def usage_report(ctx: Context) -> dict:
    """AI token usage and cost, by model and by task."""
    return _orch(ctx).get_usage_report()


def run():
    mcp.run()
