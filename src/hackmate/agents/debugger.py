"""Debugger agent: reviews code and suggests fixes and tests."""

from hackmate.agents.base import Agent, LogFn
from hackmate.agents.parsing import DebugOutputParser
from hackmate.core.models import AgentKind, DebugResult, Task

DEBUG_PROMPT = """You are a meticulous reviewer. Find problems in the work below.

TASK: {title}
DESCRIPTION: {description}
{code_block}
Respond with JSON only:
{{"issues": ["..."], "fixes": ["..."], "testSuggestions": ["..."], "status": "passed|failed|needs_attention"}}
"""

COMMON_ISSUES = [
    "Check for proper error handling",
    "Verify all imports are correct",
    "Ensure type hints are defined",
    "Validate input parameters",
    "Check for resource leaks",
]

COMMON_FIXES = [
    "Add try/except blocks around I/O and network calls",
    "Implement input validation",
    "Add type hints to public functions",
    "Include unit tests",
    "Add logging for debugging",
]


def fallback_review(task: Task) -> DebugResult:
    return DebugResult(
        issues=list(COMMON_ISSUES),
        fixes=list(COMMON_FIXES),
        test_suggestions=[
            f"Unit tests for {task.title}",
            f"Integration tests for {task.title}",
            "Error handling tests",
            "Performance tests if applicable",
        ],
        status="needs_attention",
    )


class DebuggerAgent(Agent):
    kind = AgentKind.DEBUGGER

    def __init__(self, gateway=None):
        super().__init__(gateway)
        self.parser = DebugOutputParser()

    async def execute(self, task: Task, log: LogFn, code: str | None = None) -> DebugResult:
        log("Running tests and debugging")
        result = await self.review(task, code)
        log(f"Debug analysis completed - Status: {result.status}")
        if result.issues:
            log(f"Found {len(result.issues)} potential issues")
        return result

    async def review(self, task: Task, code: str | None = None) -> DebugResult:
        code_block = f"\nCODE:\n```\n{code}\n```\n" if code else ""
        text = await self.ask(
            DEBUG_PROMPT.format(title=task.title, description=task.description, code_block=code_block),
            task_type="debugging",
            task_id=task.id,
        )
        if text is not None:
            outcome = self.parser.parse(text)
            if outcome is not None:
                return DebugResult(**outcome.value)
        return fallback_review(task)
