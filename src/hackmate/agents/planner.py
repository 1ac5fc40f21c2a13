"""Planner agent: decomposes problems into task plans."""

import logging

from hackmate.agents.base import Agent, LogFn
from hackmate.agents.parsing import AnalysisOutputParser, PlanOutputParser
from hackmate.core.models import AgentKind, AnalysisResult, Plan, Task, TaskDescriptor

logger = logging.getLogger(__name__)

PLAN_PROMPT = """You are a senior engineer planning work for a small agent team.

Break the following problem into an ordered list of concrete tasks.
Available agents: planner (analysis, planning), coder (implementation),
debugger (testing, review), pm (documentation, stakeholder updates).

PROBLEM:
{problem}
{context}
Respond with JSON only, in this shape:
{{"summary": "one sentence", "tasks": [{{"title": "...", "description": "...", "agent": "planner|coder|debugger|pm", "metadata": {{"type": "analysis|planning|implementation|api|component|utility|testing|documentation"}}}}]}}
"""

ANALYSIS_PROMPT = """Analyze the following task and recommend how to approach it.

TITLE: {title}
DESCRIPTION: {description}

Respond with JSON only: {{"summary": "...", "recommendations": ["...", "..."]}}
"""

DEFAULT_RECOMMENDATIONS = [
    "Follow established coding patterns",
    "Include comprehensive error handling",
    "Add appropriate tests",
]


def fallback_plan(problem: str) -> Plan:
    """Deterministic five-step plan used when no AI plan is available."""
    return Plan(
        summary=f"Fallback plan for: {problem}",
        source="fallback",
        tasks=[
            TaskDescriptor(
                "Analyze Requirements",
                f'Analyze the problem: "{problem}"',
                AgentKind.PLANNER.value,
                {"type": "analysis"},
            ),
            TaskDescriptor(
                "Generate Implementation Plan",
                "Create detailed implementation strategy",
                AgentKind.PLANNER.value,
                {"type": "planning"},
            ),
            TaskDescriptor(
                "Implement Solution",
                "Code the solution based on requirements",
                AgentKind.CODER.value,
                {"type": "implementation"},
            ),
            TaskDescriptor(
                "Test and Debug",
                "Test the implementation and fix issues",
                AgentKind.DEBUGGER.value,
                {"type": "testing"},
            ),
            TaskDescriptor(
                "Update Documentation",
                "Document the changes and notify stakeholders",
                AgentKind.PM.value,
                {"type": "documentation"},
            ),
        ],
    )


class PlannerAgent(Agent):
    kind = AgentKind.PLANNER

    def __init__(self, gateway=None):
        super().__init__(gateway)
        self.plan_parser = PlanOutputParser()
        self.analysis_parser = AnalysisOutputParser()

    async def plan(self, problem: str, context: list[str] | None = None) -> Plan:
        """Ask the model for a plan, falling back to the fixed five steps."""
        context_block = ""
        if context:
            lines = "\n".join(f"- {c}" for c in context)
            context_block = f"\nRELEVANT CONTEXT FROM PREVIOUS WORK:\n{lines}\n"

        text = await self.ask(
            PLAN_PROMPT.format(problem=problem, context=context_block),
            task_type="planning",
            complexity="high",
        )
        if text is None:
            return fallback_plan(problem)

        outcome = self.plan_parser.parse(text)
        if outcome is None:
            logger.warning("Could not parse plan output, using fallback plan")
            return fallback_plan(problem)

        logger.info("Parsed plan via %s", outcome.tier)
        descriptors = [
            TaskDescriptor(
                title=t["title"],
                description=t["description"],
                agent=t["agent"],
                metadata=t["metadata"],
            )
            for t in outcome.value["tasks"]
        ]
        return Plan(
            summary=outcome.value["summary"] or f"Plan for: {problem}",
            tasks=descriptors,
            source="ai",
        )

    async def execute(self, task: Task, log: LogFn) -> AnalysisResult:
        log("Analyzing requirements and creating detailed plan")
        text = await self.ask(
            ANALYSIS_PROMPT.format(title=task.title, description=task.description),
            task_type="analysis",
            task_id=task.id,
        )
        if text is not None:
            outcome = self.analysis_parser.parse(text)
            if outcome is not None:
                return AnalysisResult(
                    summary=outcome.value["summary"],
                    recommendations=outcome.value["recommendations"] or list(DEFAULT_RECOMMENDATIONS),
                )
        return AnalysisResult(
            summary=f"Analysis completed for: {task.title}",
            recommendations=list(DEFAULT_RECOMMENDATIONS),
        )
