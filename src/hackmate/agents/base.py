"""Agent kinds, name normalization and the shared executor base."""

import logging
import re
from typing import Callable

from hackmate.ai.providers import AIProviderError
from hackmate.core.models import AgentKind, AIRequest

logger = logging.getLogger(__name__)

LogFn = Callable[[str], None]

AGENT_SYNONYMS: dict[str, AgentKind] = {
    "planner": AgentKind.PLANNER,
    "planning": AgentKind.PLANNER,
    "plan": AgentKind.PLANNER,
    "architect": AgentKind.PLANNER,
    "analyst": AgentKind.PLANNER,
    "coder": AgentKind.CODER,
    "code": AgentKind.CODER,
    "coding": AgentKind.CODER,
    "developer": AgentKind.CODER,
    "dev": AgentKind.CODER,
    "engineer": AgentKind.CODER,
    "debugger": AgentKind.DEBUGGER,
    "debug": AgentKind.DEBUGGER,
    "tester": AgentKind.DEBUGGER,
    "testing": AgentKind.DEBUGGER,
    "qa": AgentKind.DEBUGGER,
    "pm": AgentKind.PM,
    "projectmanager": AgentKind.PM,
    "manager": AgentKind.PM,
    "productmanager": AgentKind.PM,
}

AGENT_CAPABILITIES: dict[AgentKind, list[str]] = {
    AgentKind.PLANNER: ["problem decomposition", "task planning", "requirements analysis"],
    AgentKind.CODER: ["code generation", "pull request creation"],
    AgentKind.DEBUGGER: ["code review", "issue detection", "test suggestions"],
    AgentKind.PM: ["status notifications", "project summaries"],
}


def normalize_agent(name: str | AgentKind | None) -> AgentKind:
    """Map a free-form agent name to an AgentKind; unknown names become coder."""
    if isinstance(name, AgentKind):
        return name
    key = re.sub(r"[\s_\-]+", "", (name or "").lower())
    kind = AGENT_SYNONYMS.get(key)
    if kind is None:
        logger.warning("Unknown agent %r, defaulting to coder", name)
        return AgentKind.CODER
    return kind


class Agent:
    """Base for agent executors that may consult the AI gateway."""

    kind: AgentKind

    def __init__(self, gateway=None):
        self.gateway = gateway

    @property
    def ai_enabled(self) -> bool:
        return self.gateway is not None and self.gateway.available

    @property
    def capabilities(self) -> list[str]:
        return AGENT_CAPABILITIES[self.kind]

    async def ask(
        self,
        prompt: str,
        task_type: str,
        complexity: str = "medium",
        task_id: str | None = None,
    ) -> str | None:
        """Prompt the AI gateway; None when unavailable or the call fails."""
        if not self.ai_enabled:
            return None
        try:
            response = await self.gateway.generate(
                AIRequest(
                    prompt=prompt,
                    task_type=task_type,
                    complexity=complexity,
                    task_id=task_id,
                )
            )
        except AIProviderError as e:
            logger.warning("%s agent AI call failed: %s", self.kind.value, e)
            return None
        return response.content

    def status(self) -> dict:
        return {
            "name": self.kind.value,
            "status": "ready",
            "capabilities": self.capabilities,
            "ai_enabled": self.ai_enabled,
        }
