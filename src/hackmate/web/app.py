"""JSON API for the hackmate orchestrator."""

from contextlib import asynccontextmanager

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from hackmate.core.orchestrator import TaskOrchestrator
from hackmate.core.tasks import TaskNotFoundError, TaskStateError


def _orchestrator(request: Request) -> TaskOrchestrator:
    return request.app.state.orchestrator


# ── Handlers ──────────────────────────────────────────────────────────────────


async def api_create_task(request: Request):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    problem = body.get("problem") if isinstance(body, dict) else None
    if not isinstance(problem, str) or not problem.strip():
        return JSONResponse({"error": "Problem statement is required"}, status_code=400)

    task_id = await _orchestrator(request).create_task_from_problem(problem)
    return JSONResponse({"task_id": task_id}, status_code=201)


async def api_list_tasks(request: Request):
    tasks = _orchestrator(request).get_all_tasks()
    return JSONResponse([t.to_dict() for t in tasks])


async def api_get_task(request: Request):
    task = _orchestrator(request).get_task(request.path_params["task_id"])
    if not task:
        return JSONResponse({"error": "Task not found"}, status_code=404)
    return JSONResponse(task.to_dict())


async def api_retry_task(request: Request):
    task_id = request.path_params["task_id"]
    try:
        task = await _orchestrator(request).retry_task(task_id)
    except TaskNotFoundError:
        return JSONResponse({"error": "Task not found"}, status_code=404)
    except TaskStateError as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return JSONResponse(task.to_dict())


async def api_agent_status(request: Request):
    return JSONResponse(_orchestrator(request).get_agent_status())


async def api_search_memory(request: Request):
    query = request.query_params.get("q", "")
    if not query.strip():
        return JSONResponse({"error": "Query parameter 'q' is required"}, status_code=400)
    try:
        limit = int(request.query_params.get("limit", 10))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    entries = await _orchestrator(request).search_memory(query, limit)
    return JSONResponse([e.to_dict() for e in entries])


async def api_usage(request: Request):
    return JSONResponse(_orchestrator(request).get_usage_report())


# ── App ───────────────────────────────────────────────────────────────────────


def create_app(orchestrator: TaskOrchestrator | None = None) -> Starlette:
    @asynccontextmanager
    async def lifespan(app: Starlette):
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = TaskOrchestrator.from_config()
        await app.state.orchestrator.initialize()
        try:
            yield
        finally:
            await app.state.orchestrator.shutdown()

    routes = [
        Route("/api/tasks", api_create_task, methods=["POST"]),
        Route("/api/tasks", api_list_tasks, methods=["GET"]),
        Route("/api/tasks/{task_id}", api_get_task, methods=["GET"]),
        Route("/api/tasks/{task_id}/retry", api_retry_task, methods=["POST"]),
        Route("/api/agents/status", api_agent_status),
        Route("/api/memory/search", api_search_memory),
        Route("/api/usage", api_usage),
    ]
    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    return app


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
