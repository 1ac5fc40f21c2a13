"""Routes tasks to the executor for their agent kind."""

from dataclasses import dataclass, field

from hackmate.agents.base import LogFn, normalize_agent
from hackmate.agents.coder import CoderAgent
from hackmate.agents.debugger import DebuggerAgent
from hackmate.agents.planner import PlannerAgent
from hackmate.agents.pm import PMAgent
from hackmate.core.models import AgentKind, Task, TaskResult


@dataclass
class DispatchContext:
    """Optional inputs gathered by the orchestrator for one dispatch."""

    all_tasks: list[Task] = field(default_factory=list)
    code: str | None = None


class AgentDispatcher:
    def __init__(
        self,
        planner: PlannerAgent,
        coder: CoderAgent,
        debugger: DebuggerAgent,
        pm: PMAgent,
    ):
        self.planner = planner
        self.coder = coder
        self.debugger = debugger
        self.pm = pm

    @classmethod
    def build(cls, gateway=None, code_host=None, notifier=None) -> "AgentDispatcher":
        return cls(
            planner=PlannerAgent(gateway),
            coder=CoderAgent(gateway, code_host),
            debugger=DebuggerAgent(gateway),
            pm=PMAgent(notifier, gateway),
        )

    @property
    def agents(self) -> dict[AgentKind, object]:
        return {
            AgentKind.PLANNER: self.planner,
            AgentKind.CODER: self.coder,
            AgentKind.DEBUGGER: self.debugger,
            AgentKind.PM: self.pm,
        }

    def resolve(self, task: Task) -> AgentKind:
        return normalize_agent(task.agent)

    async def dispatch(self, task: Task, log: LogFn, context: DispatchContext | None = None) -> TaskResult:
        context = context or DispatchContext()
        kind = self.resolve(task)
        if kind is AgentKind.PLANNER:
            return await self.planner.execute(task, log)
        if kind is AgentKind.CODER:
            return await self.coder.execute(task, log)
        if kind is AgentKind.DEBUGGER:
            return await self.debugger.execute(task, log, code=context.code)
        return await self.pm.execute(task, log, all_tasks=context.all_tasks)

    def status(self) -> dict:
        return {kind.value: agent.status() for kind, agent in self.agents.items()}
