"""AI provider gateway: model selection, fallback and usage accounting."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from hackmate.ai import models as models_mod
from hackmate.ai.providers import (
    AIProviderError,
    AnthropicProvider,
    CompletionProvider,
    GeminiProvider,
    OpenAIProvider,
)
from hackmate.core.models import AIRequest, AIResponse, utcnow

logger = logging.getLogger(__name__)


@dataclass
class UsageRecord:
    model: str
    provider: str
    input_tokens: int
    output_tokens: int
    cost: float
    task_id: str | None = None
    timestamp: datetime = field(default_factory=utcnow)


class UsageTracker:
    """Accumulates per-call token usage and cost."""

    def __init__(self):
        self.records: list[UsageRecord] = []

    def record(self, response: AIResponse, task_id: str | None = None):
        self.records.append(
            UsageRecord(
                model=response.model,
                provider=response.provider,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                cost=response.cost,
                task_id=task_id,
            )
        )

    @property
    def total_cost(self) -> float:
        return sum(r.cost for r in self.records)

    def report(self) -> dict:
        by_model: dict[str, dict] = defaultdict(
            lambda: {"calls": 0, "input_tokens": 0, "output_tokens": 0, "cost": 0.0}
        )
        by_task: dict[str, float] = defaultdict(float)
        for r in self.records:
            entry = by_model[r.model]
            entry["calls"] += 1
            entry["input_tokens"] += r.input_tokens
            entry["output_tokens"] += r.output_tokens
            entry["cost"] += r.cost
            if r.task_id:
                by_task[r.task_id] += r.cost
        return {
            "calls": len(self.records),
            "total_cost": self.total_cost,
            "by_model": dict(by_model),
            "by_task": dict(by_task),
        }


class AIGateway:
    """Routes completion requests to the provider that owns the selected model.

    On failure the request is retried once on ``default_model`` unless that
    was already the model that failed.
    """

    def __init__(
        self,
        providers: dict[str, CompletionProvider] | None = None,
        default_model: str = "gemini-pro",
        usage: UsageTracker | None = None,
    ):
        self.providers: dict[str, CompletionProvider] = dict(providers or {})
        self.default_model = default_model
        self.usage = usage or UsageTracker()

    @classmethod
    def from_config(cls, config) -> "AIGateway":
        providers: dict[str, CompletionProvider] = {}
        if config.enable_ai:
            if config.gemini_api_key:
                providers["google"] = GeminiProvider(config.gemini_api_key)
            if config.openai_api_key:
                providers["openai"] = OpenAIProvider(config.openai_api_key)
            if config.anthropic_api_key:
                providers["anthropic"] = AnthropicProvider(config.anthropic_api_key)
        return cls(providers, default_model=config.default_model)

    @property
    def available(self) -> bool:
        return bool(self.providers)

    @property
    def can_embed(self) -> bool:
        return any(p.supports_embeddings for p in self.providers.values())

    def available_models(self) -> list[str]:
        return [
            name for name, spec in models_mod.MODELS.items()
            if spec.provider in self.providers
        ]

    def select_model(self, request: AIRequest) -> str:
        if request.preferred_model:
            return request.preferred_model
        return models_mod.select_model(
            request.task_type, request.complexity, self.default_model
        )

    async def generate(self, request: AIRequest) -> AIResponse:
        model = self.select_model(request)
        try:
            response = await self._call(model, request)
        except AIProviderError as e:
            if model == self.default_model:
                raise
            logger.warning(
                "Model %s failed (%s), falling back to %s", model, e, self.default_model
            )
            response = await self._call(self.default_model, request)
        self.usage.record(response, request.task_id)
        return response

    async def _call(self, model: str, request: AIRequest) -> AIResponse:
        try:
            spec = models_mod.get_model(model)
        except models_mod.UnknownModelError as e:
            raise AIProviderError(str(e)) from e

        provider = self.providers.get(spec.provider)
        if provider is None:
            raise AIProviderError(f"Provider {spec.provider} not configured for {model}")

        max_tokens = min(request.max_tokens, spec.max_tokens)
        try:
            completion = await provider.complete(request.prompt, spec.api_model, max_tokens)
        except AIProviderError:
            raise
        except Exception as e:
            raise AIProviderError(f"{spec.provider} request failed: {e}") from e

        return AIResponse(
            content=completion.content,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            cost=models_mod.calculate_cost(
                model, completion.input_tokens, completion.output_tokens
            ),
            model=model,
            provider=spec.provider,
        )

    async def embed(self, text: str) -> list[float]:
        """Embed text with the first configured provider that supports it."""
        for provider in self.providers.values():
            if provider.supports_embeddings:
                try:
                    return await provider.embed(text)
                except AIProviderError:
                    raise
                except Exception as e:
                    raise AIProviderError(f"{provider.name} embedding failed: {e}") from e
        raise AIProviderError("No embedding-capable provider configured")

    def recommend(self, task_type: str, complexity: str = "medium") -> dict:
        available = set(self.available_models()) if self.available else None
        return models_mod.recommend(task_type, complexity, self.default_model, available)

    def estimate_cost(self, prompt: str, expected_output_chars: int, model: str | None = None) -> float:
        return models_mod.estimate_cost(prompt, expected_output_chars, model or self.default_model)

    async def aclose(self):
        for provider in self.providers.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
