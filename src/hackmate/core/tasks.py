"""Task store and state machine."""

import itertools
import re
import uuid
from typing import Any

from hackmate.core.models import Task, TaskStatus, utcnow


class TaskNotFoundError(KeyError):
    """Raised when a task id is unknown."""

    def __str__(self) -> str:
        return self.args[0] if self.args else "Task not found"


class TaskStateError(ValueError):
    """Raised when an operation's status precondition is not met."""


class InvalidTransitionError(TaskStateError):
    """Raised when a status change does not follow an allowed edge."""


ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.QUEUED: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.DONE, TaskStatus.FAILED},
    TaskStatus.DONE: set(),
    TaskStatus.FAILED: {TaskStatus.QUEUED},
}


def slugify(title: str) -> str:
    """Convert a title to a file-name-friendly slug."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:60]


class TaskStore:
    """In-memory task records, keyed by id.

    Ordering ties on ``created_at`` are broken by insertion order so listings
    are stable across calls.
    """

    def __init__(self):
        self._tasks: dict[str, Task] = {}
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._tasks)

    def create(
        self,
        title: str,
        description: str = "",
        agent: str = "coder",
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        now = utcnow()
        task = Task(
            id=uuid.uuid4().hex,
            title=title,
            description=description,
            agent=agent,
            status=TaskStatus.QUEUED,
            created_at=now,
            updated_at=now,
            metadata=dict(metadata or {}),
        )
        self._tasks[task.id] = task
        self._sequence[task.id] = next(self._counter)
        return task

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task not found: {task_id}")
        return task

    def list(self) -> list[Task]:
        """All tasks, newest first."""
        return sorted(
            self._tasks.values(),
            key=lambda t: (t.created_at, self._sequence[t.id]),
            reverse=True,
        )

    def transition(self, task_id: str, status: TaskStatus) -> Task:
        """Move a task to ``status`` if the edge is allowed."""
        task = self.require(task_id)
        if status not in ALLOWED_TRANSITIONS[task.status]:
            raise InvalidTransitionError(
                f"Task {task_id} cannot move from {task.status.value} to {status.value}"
            )
        task.status = status
        task.updated_at = utcnow()
        return task

    def append_log(self, task_id: str, message: str) -> Task:
        task = self.require(task_id)
        task.logs.append(message)
        return task
