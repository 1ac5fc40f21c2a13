"""Tests for planning, background execution and retry in the orchestrator."""

import pytest

from hackmate.agents.coder import CoderAgent
from hackmate.agents.debugger import DebuggerAgent
from hackmate.agents.dispatcher import AgentDispatcher
from hackmate.agents.planner import PlannerAgent
from hackmate.agents.pm import PMAgent
from hackmate.config import Config
from hackmate.core.models import CoderResult, Plan, TaskDescriptor, TaskStatus
from hackmate.core.orchestrator import TaskOrchestrator
from hackmate.core.tasks import TaskNotFoundError, TaskStateError

PROBLEM = "Add a /health endpoint"


class FakeNotifier:
    enabled = True

    def __init__(self):
        self.texts = []

    async def post(self, text, blocks=None):
        self.texts.append(text)
        return True

    def status(self):
        return {"enabled": True, "channel": "C1"}


class FlakyCoder(CoderAgent):
    """Fails until ``fail`` is switched off."""

    fail = True

    async def execute(self, task, log):
        if self.fail:
            raise RuntimeError("compile error")
        return await super().execute(task, log)


class ScriptedPlanner(PlannerAgent):
    def __init__(self, plan=None, error=None):
        super().__init__()
        self.scripted = plan
        self.error = error

    async def plan(self, problem, context=None):
        if self.error:
            raise self.error
        return self.scripted


def _config(**overrides):
    values = dict(schedule_delay=0, enable_ai=False, enable_github=False, enable_slack=False)
    values.update(overrides)
    return Config(**values)


def _oldest_first(orchestrator):
    return list(reversed(orchestrator.get_all_tasks()))


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def orchestrator(notifier):
    return TaskOrchestrator(_config(), dispatcher=AgentDispatcher.build(notifier=notifier))


class TestCreateFromProblem:
    @pytest.mark.asyncio
    async def test_fallback_plan_runs_to_completion(self, orchestrator):
        first_id = await orchestrator.create_task_from_problem(PROBLEM)

        tasks = _oldest_first(orchestrator)
        assert tasks[0].id == first_id
        assert [t.agent for t in tasks] == ["planner", "planner", "coder", "debugger", "pm"]
        assert all(t.status is TaskStatus.QUEUED for t in tasks)
        assert all(t.logs == [f"Task created from problem: {PROBLEM}"] for t in tasks)

        await orchestrator.wait_idle()

        assert all(t.status is TaskStatus.DONE for t in tasks)
        assert all(t.result is not None for t in tasks)
        assert tasks[2].logs[1] == "Task execution started by coder agent"
        assert tasks[2].logs[-1] == "Task completed successfully"
        assert len({t.metadata["plan_id"] for t in tasks}) == 1

    @pytest.mark.asyncio
    async def test_notifications(self, orchestrator, notifier):
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()

        def count(prefix):
            return sum(1 for t in notifier.texts if t.startswith(prefix))

        assert count("🆕 Task CREATED") == 5
        assert count("📋 Planning Complete!") == 1
        assert count("🚀 Task STARTED") == 5
        assert count("✅ Task COMPLETED") == 5
        assert count("📊 Project Status Update") == 1

    @pytest.mark.asyncio
    async def test_debugger_sees_code_from_same_plan(self, orchestrator):
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()
        coder_task, debug_task = _oldest_first(orchestrator)[2:4]

        context = orchestrator._context_for(debug_task)
        assert isinstance(coder_task.result, CoderResult)
        assert context.code == coder_task.result.code
        assert len(context.all_tasks) == 5

    @pytest.mark.asyncio
    async def test_empty_problem_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            await orchestrator.create_task_from_problem("   ")
        assert orchestrator.get_all_tasks() == []

    @pytest.mark.asyncio
    async def test_planner_crash_uses_fallback(self):
        dispatcher = AgentDispatcher(
            ScriptedPlanner(error=RuntimeError("boom")), CoderAgent(), DebuggerAgent(), PMAgent()
        )
        orchestrator = TaskOrchestrator(_config(), dispatcher=dispatcher)
        await orchestrator.create_task_from_problem(PROBLEM)
        assert len(orchestrator.get_all_tasks()) == 5
        await orchestrator.wait_idle()

    @pytest.mark.asyncio
    async def test_ai_plan_recorded_as_decision(self):
        plan = Plan(
            summary="Single step",
            tasks=[TaskDescriptor("Write handler", "GET /health", "developer", {"type": "api"})],
            source="ai",
        )
        dispatcher = AgentDispatcher(ScriptedPlanner(plan), CoderAgent(), DebuggerAgent(), PMAgent())
        orchestrator = TaskOrchestrator(_config(), dispatcher=dispatcher)

        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()

        [task] = orchestrator.get_all_tasks()
        assert task.status is TaskStatus.DONE
        assert task.metadata["type"] == "api"
        [decision] = await orchestrator.memory.get_by_type("decision")
        assert decision.content == (
            f"Decision: Created plan for: {PROBLEM}\nReasoning: Generated 1 tasks: Single step"
        )

    @pytest.mark.asyncio
    async def test_plans_run_in_submission_order(self, orchestrator):
        await orchestrator.create_task_from_problem("first problem")
        await orchestrator.create_task_from_problem("second problem")
        await orchestrator.wait_idle()

        tasks = _oldest_first(orchestrator)
        assert len(tasks) == 10
        assert all(t.status is TaskStatus.DONE for t in tasks)
        finished = [t.updated_at for t in tasks]
        assert finished == sorted(finished)


class TestRetry:
    @pytest.fixture
    def coder(self):
        return FlakyCoder()

    @pytest.fixture
    def orchestrator(self, coder):
        dispatcher = AgentDispatcher(PlannerAgent(), coder, DebuggerAgent(), PMAgent())
        return TaskOrchestrator(_config(), dispatcher=dispatcher)

    @pytest.mark.asyncio
    async def test_failure_then_retry(self, orchestrator, coder):
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()

        coder_task = _oldest_first(orchestrator)[2]
        assert coder_task.status is TaskStatus.FAILED
        assert coder_task.error == "compile error"
        assert coder_task.logs[-1] == "Task failed: compile error"
        others = [t for t in orchestrator.get_all_tasks() if t is not coder_task]
        assert all(t.status is TaskStatus.DONE for t in others)

        [error] = await orchestrator.memory.get_by_type("error")
        assert error.content == "Error: compile error\nContext: Task: Implement Solution"

        coder.fail = False
        task = await orchestrator.retry_task(coder_task.id)

        assert task.status is TaskStatus.DONE
        assert task.error is None
        assert "Task retry initiated" in task.logs
        assert task.logs.index("Task retry initiated") < task.logs.index("Task completed successfully")
        assert isinstance(task.result, CoderResult)

    @pytest.mark.asyncio
    async def test_retry_rejects_non_failed_task(self, orchestrator, coder):
        coder.fail = False
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()
        done = orchestrator.get_all_tasks()[0]

        with pytest.raises(TaskStateError, match="not in failed state"):
            await orchestrator.retry_task(done.id)
        assert done.status is TaskStatus.DONE

    @pytest.mark.asyncio
    async def test_retry_unknown_task(self, orchestrator):
        with pytest.raises(TaskNotFoundError):
            await orchestrator.retry_task("does-not-exist")


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_task(self, orchestrator):
        first_id = await orchestrator.create_task_from_problem(PROBLEM)
        assert orchestrator.get_task(first_id).title == "Analyze Requirements"
        assert orchestrator.get_task("missing") is None
        await orchestrator.wait_idle()

    @pytest.mark.asyncio
    async def test_listing_is_idempotent(self, orchestrator):
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()
        first = [t.to_dict() for t in orchestrator.get_all_tasks()]
        second = [t.to_dict() for t in orchestrator.get_all_tasks()]
        assert first == second

    @pytest.mark.asyncio
    async def test_memory_search_after_run(self, orchestrator):
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()
        results = await orchestrator.search_memory("Implement Solution")
        assert results
        assert any("Implement Solution" in e.content for e in results)

    @pytest.mark.asyncio
    async def test_memory_disabled(self):
        orchestrator = TaskOrchestrator(_config(enable_memory=False))
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.wait_idle()
        assert orchestrator.memory is None
        assert await orchestrator.search_memory("anything") == []
        assert orchestrator.get_agent_status()["memory"] == {"enabled": False, "backend": "disabled"}

    @pytest.mark.asyncio
    async def test_agent_status(self, orchestrator):
        await orchestrator.initialize()
        status = orchestrator.get_agent_status()
        assert set(status["agents"]) == {"planner", "coder", "debugger", "pm"}
        assert status["memory"] == {"enabled": True, "backend": "local"}
        assert status["ai"] == {"available": False, "models": [], "default_model": "gemini-pro"}
        assert status["task_count"] == 0
        assert status["config"]["enable_ai"] is False
        assert status["integrations"] == {
            "github": {"enabled": False, "repository": None},
            "slack": {"enabled": True, "channel": "C1"},
        }

    def test_usage_report_starts_empty(self, orchestrator):
        assert orchestrator.get_usage_report()["calls"] == 0

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_running_plans(self, orchestrator):
        await orchestrator.create_task_from_problem(PROBLEM)
        await orchestrator.shutdown()
        assert all(t.status is TaskStatus.DONE for t in orchestrator.get_all_tasks())
