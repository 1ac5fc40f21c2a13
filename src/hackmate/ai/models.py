"""Model catalogue, selection rules and cost arithmetic."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ModelSpec:
    name: str
    provider: str  # "google", "openai" or "anthropic"
    api_model: str
    cost_per_input_token: float
    cost_per_output_token: float
    max_tokens: int


MODELS: dict[str, ModelSpec] = {
    "gemini-pro": ModelSpec("gemini-pro", "google", "gemini-1.5-flash", 0.000125, 0.000375, 30720),
    "gpt-4": ModelSpec("gpt-4", "openai", "gpt-4", 0.03, 0.06, 8192),
    "gpt-4-turbo": ModelSpec("gpt-4-turbo", "openai", "gpt-4-turbo", 0.01, 0.03, 128000),
    "claude-3-opus": ModelSpec(
        "claude-3-opus", "anthropic", "claude-3-opus-20240229", 0.015, 0.075, 200000
    ),
    "claude-3-sonnet": ModelSpec(
        "claude-3-sonnet", "anthropic", "claude-3-sonnet-20240229", 0.003, 0.015, 200000
    ),
}

# Best-first candidates per task type.
TASK_TYPE_MODELS: dict[str, list[str]] = {
    "planning": ["gpt-4", "claude-3-opus", "gemini-pro"],
    "code-generation": ["gpt-4-turbo", "claude-3-sonnet", "gemini-pro"],
    "debugging": ["gpt-4", "claude-3-sonnet", "gemini-pro"],
    "analysis": ["claude-3-opus", "gpt-4", "gemini-pro"],
    "documentation": ["claude-3-sonnet", "gpt-4-turbo", "gemini-pro"],
    "testing": ["gpt-4", "claude-3-sonnet", "gemini-pro"],
}

COMPLEXITY_INDEX = {"high": 0, "medium": 1, "low": 2}


class UnknownModelError(KeyError):
    """Raised when a model id is not in the catalogue."""

    def __str__(self) -> str:
        return self.args[0] if self.args else "Unknown model"


def get_model(name: str) -> ModelSpec:
    try:
        return MODELS[name]
    except KeyError:
        raise UnknownModelError(f"Unknown model: {name}") from None


def candidates_for(task_type: str, default_model: str = "gemini-pro") -> list[str]:
    return TASK_TYPE_MODELS.get(task_type, [default_model])


def select_model(
    task_type: str,
    complexity: str = "medium",
    default_model: str = "gemini-pro",
) -> str:
    """Pick a model for a task type; complexity indexes into the candidate list."""
    candidates = candidates_for(task_type, default_model)
    index = COMPLEXITY_INDEX.get(complexity, 1)
    return candidates[min(index, len(candidates) - 1)]


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    spec = get_model(model)
    return input_tokens * spec.cost_per_input_token + output_tokens * spec.cost_per_output_token


def estimate_tokens(text: str) -> int:
    """Rough token count for providers that do not report usage."""
    return math.ceil(len(text) / 4)


def recommend(
    task_type: str,
    complexity: str = "medium",
    default_model: str = "gemini-pro",
    available: set[str] | None = None,
) -> dict:
    """Recommended model, alternatives and a short explanation.

    When ``available`` is given, candidates whose provider is not configured
    are skipped in favour of the next one.
    """
    candidates = candidates_for(task_type, default_model)
    recommended = select_model(task_type, complexity, default_model)
    if available is not None and recommended not in available:
        usable = [m for m in candidates if m in available]
        if usable:
            recommended = usable[0]
    spec = get_model(recommended)
    return {
        "recommended": recommended,
        "alternatives": [m for m in candidates if m != recommended],
        "reasoning": (
            f"{recommended} ({spec.provider}) suits {task_type} tasks at {complexity} "
            f"complexity; context window {spec.max_tokens} tokens"
        ),
    }


def estimate_cost(prompt: str, expected_output_chars: int, model: str) -> float:
    return calculate_cost(
        model,
        estimate_tokens(prompt),
        math.ceil(expected_output_chars / 4),
    )
