"""Project-manager agent: stakeholder notifications and progress summaries."""

import logging
from collections.abc import Iterable

from hackmate.agents.base import Agent, LogFn
from hackmate.core.models import (
    AgentKind,
    PMResult,
    PMUpdate,
    ProjectSummary,
    Task,
    TaskStatus,
)
from hackmate.integrations import slack as slack_mod

logger = logging.getLogger(__name__)

UPDATE_TYPES = ("created", "started", "completed", "failed")

UPDATE_EMOJI = {
    "created": "🆕",
    "started": "🚀",
    "completed": "✅",
    "failed": "❌",
}


def summarize(tasks: Iterable[Task]) -> ProjectSummary:
    counts = {status.value: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status.value] += 1
    total = sum(counts.values())
    pct = round(counts[TaskStatus.DONE.value] / total * 100) if total else 0
    return ProjectSummary(total=total, counts=counts, completion_pct=pct)


class PMAgent(Agent):
    """Every message is logged locally and, when configured, posted to Slack."""

    kind = AgentKind.PM

    def __init__(self, notifier=None, gateway=None):
        super().__init__(gateway)
        self.notifier = notifier or slack_mod.NullNotifier()

    @property
    def slack_enabled(self) -> bool:
        return self.notifier.enabled

    async def _publish(self, message: str, blocks: list[dict] | None = None) -> list[PMUpdate]:
        updates = []
        if self.slack_enabled:
            sent = await self.notifier.post(message, blocks)
            updates.append(PMUpdate(message, "slack", "sent" if sent else "failed"))
        logger.info("[pm] %s", message)
        updates.append(PMUpdate(message, "console", "sent"))
        return updates

    async def send_task_update(self, task: Task, update_type: str) -> list[PMUpdate]:
        if update_type not in UPDATE_TYPES:
            raise ValueError(f"Unknown update type: {update_type}")
        emoji = UPDATE_EMOJI[update_type]
        message = (
            f"{emoji} Task {update_type.upper()}: {task.title}\n"
            f"Agent: {task.agent}\n"
            f"Status: {task.status.value}\n"
            f"Description: {task.description}"
        )
        blocks = slack_mod.format_task_update(
            title=task.title,
            agent=task.agent,
            status=task.status.value,
            description=task.description,
            update_type=update_type,
            updated_at=task.updated_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        )
        return await self._publish(message, blocks)

    async def send_plan_created(self, problem: str, task_count: int) -> list[PMUpdate]:
        message = f"📋 Planning Complete!\nProblem: {problem}\nTasks generated: {task_count}"
        return await self._publish(message, slack_mod.format_plan_created(problem, task_count))

    async def send_pr_created(self, task: Task, pr_url: str) -> list[PMUpdate]:
        message = f"👀 Pull Request Created: {task.title}\n{pr_url}"
        return await self._publish(message, slack_mod.format_pr_created(task.title, pr_url))

    async def send_project_summary(self, tasks: Iterable[Task]) -> tuple[ProjectSummary, list[PMUpdate]]:
        summary = summarize(tasks)
        counts = summary.counts
        message = (
            f"📊 Project Status Update\n"
            f"Total Tasks: {summary.total}\n"
            f"Completed: {counts['done']}\n"
            f"In Progress: {counts['in_progress']}\n"
            f"Failed: {counts['failed']}\n"
            f"Queued: {counts['queued']}\n"
            f"Progress: {summary.completion_pct}%"
        )
        blocks = slack_mod.format_project_summary(counts, summary.total, summary.completion_pct)
        return summary, await self._publish(message, blocks)

    async def execute(self, task: Task, log: LogFn, all_tasks: list[Task] | None = None) -> PMResult:
        log("Handling project management tasks")
        summary, updates = await self.send_project_summary(all_tasks or [task])
        log("Project summary sent to stakeholders")
        return PMResult(summary=summary, updates=updates)

    def status(self) -> dict:
        return {**super().status(), "slack_enabled": self.slack_enabled}
