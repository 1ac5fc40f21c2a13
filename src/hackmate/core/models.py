"""Data models for hackmate."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


class AgentKind(str, Enum):
    PLANNER = "planner"
    CODER = "coder"
    DEBUGGER = "debugger"
    PM = "pm"


class MemoryType(str, Enum):
    TASK = "task"
    DECISION = "decision"
    CODE = "code"
    ERROR = "error"
    CONTEXT = "context"


# ── Task results ──────────────────────────────────────────────────────────────


@dataclass
class AnalysisResult:
    summary: str
    recommendations: list[str] = field(default_factory=list)
    kind: str = "analysis"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CoderResult:
    code: str
    filename: str
    description: str
    pr_url: str | None = None
    kind: str = "code"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DebugResult:
    issues: list[str] = field(default_factory=list)
    fixes: list[str] = field(default_factory=list)
    test_suggestions: list[str] = field(default_factory=list)
    status: str = "needs_attention"
    kind: str = "debug"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PMUpdate:
    message: str
    channel: str  # "slack" or "console"
    status: str  # "sent" or "failed"
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "channel": self.channel,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ProjectSummary:
    total: int
    counts: dict[str, int]
    completion_pct: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PMResult:
    summary: ProjectSummary
    updates: list[PMUpdate] = field(default_factory=list)
    kind: str = "project_update"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "summary": self.summary.to_dict(),
            "updates": [u.to_dict() for u in self.updates],
        }


TaskResult = AnalysisResult | CoderResult | DebugResult | PMResult


# ── Tasks ─────────────────────────────────────────────────────────────────────


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    agent: str = AgentKind.CODER.value
    status: TaskStatus = TaskStatus.QUEUED
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    logs: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    result: TaskResult | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "agent": self.agent,
            "logs": list(self.logs),
            "metadata": dict(self.metadata),
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class TaskDescriptor:
    title: str
    description: str
    agent: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Plan:
    summary: str
    tasks: list[TaskDescriptor]
    source: str = "ai"  # "ai" or "fallback"


# ── Memory ────────────────────────────────────────────────────────────────────


@dataclass
class MemoryEntry:
    id: str
    type: MemoryType
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    score: float | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "score": self.score,
        }


# ── AI ────────────────────────────────────────────────────────────────────────


@dataclass
class AIRequest:
    prompt: str
    task_type: str
    complexity: str = "medium"
    preferred_model: str | None = None
    max_tokens: int = 4000
    task_id: str | None = None


@dataclass
class AIResponse:
    content: str
    input_tokens: int
    output_tokens: int
    cost: float
    model: str
    provider: str
