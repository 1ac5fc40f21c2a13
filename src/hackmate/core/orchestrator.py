"""Task orchestration: plan a problem into tasks, run them, and retry failures."""

import asyncio
import logging
import uuid

from hackmate.agents.dispatcher import AgentDispatcher, DispatchContext
from hackmate.agents.planner import fallback_plan
from hackmate.ai.gateway import AIGateway
from hackmate.config import Config, get_config
from hackmate.core.memory import MemoryStore
from hackmate.core.models import CoderResult, MemoryEntry, Plan, Task, TaskStatus
from hackmate.core.tasks import TaskStateError, TaskStore
from hackmate.integrations.github import build_code_host
from hackmate.integrations.slack import build_notifier

logger = logging.getLogger(__name__)


class TaskOrchestrator:
    """Owns the task store and drives tasks through their lifecycle.

    Hosting layers construct one instance and share it. Created tasks are
    executed in the background, one at a time, in planned order.
    """

    def __init__(
        self,
        config: Config | None = None,
        gateway: AIGateway | None = None,
        memory: MemoryStore | None = None,
        dispatcher: AgentDispatcher | None = None,
        store: TaskStore | None = None,
    ):
        self.config = config or Config()
        self.gateway = gateway or AIGateway(default_model=self.config.default_model)
        self.memory = memory
        self.dispatcher = dispatcher or AgentDispatcher.build(self.gateway)
        self.store = store or TaskStore()
        self._pending: set[asyncio.Task] = set()
        self._run_lock = asyncio.Lock()
        self._initialized = False

    @classmethod
    def from_config(cls, config: Config | None = None) -> "TaskOrchestrator":
        config = config or get_config()
        gateway = AIGateway.from_config(config)
        dispatcher = AgentDispatcher.build(
            gateway=gateway,
            code_host=build_code_host(config),
            notifier=build_notifier(config),
        )
        return cls(config, gateway=gateway, dispatcher=dispatcher)

    @property
    def memory_enabled(self) -> bool:
        return self.config.enable_memory and self.memory is not None

    async def initialize(self):
        """Connect the memory store. Safe to call more than once."""
        if self._initialized:
            return
        if self.config.enable_memory and self.memory is None:
            self.memory = await asyncio.to_thread(MemoryStore.from_config, self.config, self.gateway)
        self._initialized = True
        logger.info(
            "Orchestrator ready (ai=%s, memory=%s)",
            self.gateway.available,
            "off" if self.memory is None else ("vector" if self.memory.using_vector else "local"),
        )

    # ── Planning ──────────────────────────────────────────────────────────────

    async def create_task_from_problem(self, problem: str) -> str:
        """Plan ``problem`` into tasks and schedule them. Returns the first task id."""
        problem = problem.strip()
        if not problem:
            raise ValueError("Problem statement must not be empty")
        await self.initialize()

        plan = await self._plan(problem)
        plan_id = uuid.uuid4().hex
        pm = self.dispatcher.pm

        task_ids = []
        for descriptor in plan.tasks:
            task = self.store.create(
                title=descriptor.title,
                description=descriptor.description,
                agent=descriptor.agent,
                metadata={**descriptor.metadata, "plan_id": plan_id},
            )
            self.store.append_log(task.id, f"Task created from problem: {problem}")
            await self._remember_task(task, f"Task created: {task.title}")
            await pm.send_task_update(task, "created")
            task_ids.append(task.id)

        await pm.send_plan_created(problem, len(task_ids))
        self._schedule(task_ids)
        return task_ids[0]

    async def _plan(self, problem: str) -> Plan:
        context: list[str] = []
        if self.memory_enabled:
            try:
                context = await self.memory.get_relevant_context(problem, 5)
            except Exception:
                logger.exception("Failed to load planning context")

        try:
            plan = await self.dispatcher.planner.plan(problem, context)
        except Exception:
            logger.exception("Planner failed, using fallback plan")
            plan = fallback_plan(problem)
        if not plan.tasks:
            plan = fallback_plan(problem)

        if plan.source == "ai" and self.memory_enabled:
            try:
                await self.memory.add_decision(
                    f"Created plan for: {problem}",
                    f"Generated {len(plan.tasks)} tasks: {plan.summary}",
                )
            except Exception:
                logger.exception("Failed to store plan decision")
        return plan

    def _schedule(self, task_ids: list[str]):
        run = asyncio.create_task(self._run_plan(task_ids))
        self._pending.add(run)
        run.add_done_callback(self._pending.discard)

    async def _run_plan(self, task_ids: list[str]):
        await asyncio.sleep(self.config.schedule_delay)
        async with self._run_lock:
            for task_id in task_ids:
                try:
                    await self.execute_task(task_id)
                except TaskStateError as e:
                    logger.warning("Skipping task %s: %s", task_id, e)

    # ── Execution ─────────────────────────────────────────────────────────────

    async def execute_task(self, task_id: str) -> Task:
        """Run one queued task to completion or failure."""
        task = self.store.transition(task_id, TaskStatus.IN_PROGRESS)
        self.store.append_log(task_id, f"Task execution started by {task.agent} agent")
        pm = self.dispatcher.pm
        await pm.send_task_update(task, "started")

        def log(message: str):
            self.store.append_log(task_id, message)

        try:
            result = await self.dispatcher.dispatch(task, log, self._context_for(task))
        except Exception as e:
            task.error = str(e)
            self.store.transition(task_id, TaskStatus.FAILED)
            log(f"Task failed: {e}")
            logger.warning("Task %s (%s) failed: %s", task_id, task.title, e)
            if self.memory_enabled:
                try:
                    await self.memory.add_error(str(e), f"Task: {task.title}", task_id)
                except Exception:
                    logger.exception("Failed to store error memory for task %s", task_id)
            await pm.send_task_update(task, "failed")
            return task

        task.result = result
        task.error = None
        self.store.transition(task_id, TaskStatus.DONE)
        log("Task completed successfully")
        await self._remember_task(task, f"Task completed: {task.title}")

        if isinstance(result, CoderResult):
            if self.memory_enabled:
                try:
                    await self.memory.add_code_context(
                        result.code, result.description, task_id, result.filename
                    )
                except Exception:
                    logger.exception("Failed to store code memory for task %s", task_id)
            if result.pr_url:
                await pm.send_pr_created(task, result.pr_url)

        await pm.send_task_update(task, "completed")
        return task

    def _context_for(self, task: Task) -> DispatchContext:
        all_tasks = self.get_all_tasks()
        plan_id = task.metadata.get("plan_id")
        code = None
        for other in all_tasks:
            if (
                other.id != task.id
                and other.metadata.get("plan_id") == plan_id
                and isinstance(other.result, CoderResult)
            ):
                code = other.result.code
                break
        return DispatchContext(all_tasks=all_tasks, code=code)

    async def _remember_task(self, task: Task, content: str):
        if not self.memory_enabled:
            return
        try:
            await self.memory.add_task_context(
                task.id, content, {"status": task.status.value, "agent": task.agent}
            )
        except Exception:
            logger.exception("Failed to store memory for task %s", task.id)

    async def retry_task(self, task_id: str) -> Task:
        """Re-queue a failed task and run it again."""
        task = self.store.require(task_id)
        if task.status is not TaskStatus.FAILED:
            raise TaskStateError(f"Task {task_id} is not in failed state")
        self.store.transition(task_id, TaskStatus.QUEUED)
        task.error = None
        self.store.append_log(task_id, "Task retry initiated")
        return await self.execute_task(task_id)

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_all_tasks(self) -> list[Task]:
        return self.store.list()

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get(task_id)

    async def search_memory(self, query: str, limit: int = 10) -> list[MemoryEntry]:
        if not self.config.enable_memory:
            return []
        await self.initialize()
        if self.memory is None:
            return []
        return await self.memory.retrieve(query, limit)

    def get_agent_status(self) -> dict:
        if self.memory is None:
            memory_backend = "disabled" if not self.config.enable_memory else "uninitialized"
        else:
            memory_backend = "vector" if self.memory.using_vector else "local"
        return {
            "agents": self.dispatcher.status(),
            "memory": {"enabled": self.config.enable_memory, "backend": memory_backend},
            "integrations": {
                "github": self.dispatcher.coder.code_host.status(),
                "slack": self.dispatcher.pm.notifier.status(),
            },
            "ai": {
                "available": self.gateway.available,
                "models": self.gateway.available_models(),
                "default_model": self.gateway.default_model,
            },
            "task_count": len(self.store),
            "config": {
                "enable_ai": self.config.enable_ai,
                "enable_github": self.config.enable_github,
                "enable_slack": self.config.enable_slack,
                "enable_memory": self.config.enable_memory,
            },
        }

    def get_usage_report(self) -> dict:
        return self.gateway.usage.report()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def wait_idle(self):
        """Wait until every scheduled plan has finished running."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def shutdown(self):
        await self.wait_idle()
        await self.gateway.aclose()
        await self.dispatcher.coder.aclose()
