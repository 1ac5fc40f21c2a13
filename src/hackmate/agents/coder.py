"""Coder agent: generates code and publishes it as a pull request."""

import logging
import time

from hackmate.agents.base import Agent, LogFn
from hackmate.agents.parsing import CodeOutputParser
from hackmate.core.models import AgentKind, CoderResult, Task
from hackmate.core.tasks import slugify
from hackmate.integrations.github import GitHubError, NullCodeHost

logger = logging.getLogger(__name__)

CODE_PROMPT = """You are an expert Python developer. Implement the following task.

TITLE: {title}
DESCRIPTION: {description}
TYPE: {task_type}

Respond in exactly this format:
FILENAME|||<file name>|||
DESCRIPTION|||<one sentence>|||
CODE|||
<the complete file contents>
|||END
"""

TEMPLATES = {
    "api": '''"""{title}

{description}
"""

from starlette.requests import Request
from starlette.responses import JSONResponse


async def handler(request: Request):
    try:
        # TODO: implement {title}
        return JSONResponse({{"message": "Implementation needed for: {title}"}})
    except Exception as e:
        return JSONResponse({{"error": str(e)}}, status_code=500)
''',
    "component": '''"""{title}

{description}
"""


class Component:
    """TODO: define the behaviour of {title}."""

    def __init__(self, **props):
        self.props = props

    def render(self) -> str:
        return "{title}"
''',
    "utility": '''"""{title}

{description}
"""


def implement_task():
    """TODO: implement {title}."""
    raise NotImplementedError("Not implemented: {title}")
''',
}


def fallback_code(task: Task) -> CoderResult:
    """Template implementation chosen by the task's metadata type."""
    template = TEMPLATES.get(task.metadata.get("type"), TEMPLATES["utility"])
    return CoderResult(
        code=template.format(title=task.title, description=task.description),
        filename=f"{slugify(task.title) or 'generated'}.py",
        description=f"Fallback implementation template for: {task.title}",
    )


class CoderAgent(Agent):
    kind = AgentKind.CODER

    def __init__(self, gateway=None, code_host=None):
        super().__init__(gateway)
        self.code_host = code_host or NullCodeHost()
        self.parser = CodeOutputParser()

    @property
    def github_enabled(self) -> bool:
        return self.code_host.enabled

    async def generate(self, task: Task) -> CoderResult:
        text = await self.ask(
            CODE_PROMPT.format(
                title=task.title,
                description=task.description,
                task_type=task.metadata.get("type", "implementation"),
            ),
            task_type="code-generation",
            task_id=task.id,
        )
        if text is not None:
            outcome = self.parser.parse(text)
            if outcome is not None:
                logger.info("Parsed code output for task %s via %s", task.id, outcome.tier)
                value = outcome.value
                return CoderResult(
                    code=value["code"],
                    filename=value["filename"] or f"{slugify(task.title) or 'generated'}.py",
                    description=value["description"] or f"Implementation for: {task.title}",
                )
            logger.warning("Could not parse code output for task %s, using template", task.id)
        return fallback_code(task)

    async def execute(self, task: Task, log: LogFn) -> CoderResult:
        log("Generating code implementation")
        result = await self.generate(task)
        log(f"Generated {result.filename}")

        if self.github_enabled:
            result.pr_url = await self.create_pull_request(task, result)
            if result.pr_url:
                log(f"Created GitHub PR: {result.pr_url}")
        return result

    async def create_pull_request(self, task: Task, result: CoderResult) -> str | None:
        """Branch, commit and open a PR; None if any step fails."""
        branch = f"feature/task-{task.id[:8]}-{int(time.time())}"
        try:
            await self.code_host.create_branch(branch)
            await self.code_host.commit_file(
                branch,
                f"generated/{result.filename}",
                result.code,
                f"feat: {task.title}",
            )
            return await self.code_host.open_pull_request(
                title=f"feat: {task.title}",
                body=(
                    f"## {task.title}\n\n{task.description}\n\n"
                    f"### Changes\n- Added `generated/{result.filename}`\n\n"
                    f"{result.description}\n\n_Generated for task `{task.id}`._"
                ),
                branch=branch,
            )
        except (GitHubError, KeyError):
            logger.exception("Failed to create pull request for task %s", task.id)
            return None

    async def aclose(self):
        close = getattr(self.code_host, "aclose", None)
        if close is not None:
            await close()

    def status(self) -> dict:
        return {**super().status(), "github_enabled": self.github_enabled}
