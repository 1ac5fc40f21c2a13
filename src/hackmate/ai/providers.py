"""Generative-text provider clients (Gemini, OpenAI, Anthropic)."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from hackmate.ai.models import estimate_tokens


class AIProviderError(Exception):
    """Raised when a provider call fails or no provider can serve a request."""


@dataclass
class Completion:
    content: str
    input_tokens: int
    output_tokens: int


class CompletionProvider(Protocol):
    name: str
    supports_embeddings: bool

    async def complete(self, prompt: str, model: str, max_tokens: int) -> Completion:
        ...

    async def embed(self, text: str) -> list[float]:
        ...


GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider:
    """Google Gemini over its REST API."""

    name = "google"
    supports_embeddings = True
    embedding_model = "embedding-001"

    def __init__(self, api_key: str, client: httpx.AsyncClient | None = None):
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(base_url=GEMINI_API_URL, timeout=60.0)

    async def complete(self, prompt: str, model: str, max_tokens: int) -> Completion:
        try:
            response = await self._client.post(
                f"/models/{model}:generateContent",
                params={"key": self.api_key},
                json={
                    "contents": [{"parts": [{"text": prompt}]}],
                    "generationConfig": {"maxOutputTokens": max_tokens},
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise AIProviderError(f"Gemini request failed: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIProviderError("Gemini returned no candidates") from e
        text = "".join(p.get("text", "") for p in parts)

        usage = data.get("usageMetadata") or {}
        return Completion(
            content=text,
            input_tokens=usage.get("promptTokenCount") or estimate_tokens(prompt),
            output_tokens=usage.get("candidatesTokenCount") or estimate_tokens(text),
        )

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.post(
                f"/models/{self.embedding_model}:embedContent",
                params={"key": self.api_key},
                json={
                    "model": f"models/{self.embedding_model}",
                    "content": {"parts": [{"text": text}]},
                },
            )
            response.raise_for_status()
            return list(response.json()["embedding"]["values"])
        except (httpx.HTTPError, KeyError) as e:
            raise AIProviderError(f"Gemini embedding failed: {e}") from e

    async def aclose(self):
        await self._client.aclose()


class OpenAIProvider:
    """OpenAI chat completions and embeddings."""

    name = "openai"
    supports_embeddings = True
    embedding_model = "text-embedding-3-small"

    def __init__(self, api_key: str, client=None):
        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=api_key)
        self._client = client

    async def complete(self, prompt: str, model: str, max_tokens: int) -> Completion:
        from openai import OpenAIError

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise AIProviderError(f"OpenAI request failed: {e}") from e

        text = response.choices[0].message.content or ""
        usage = response.usage
        return Completion(
            content=text,
            input_tokens=usage.prompt_tokens if usage else estimate_tokens(prompt),
            output_tokens=usage.completion_tokens if usage else estimate_tokens(text),
        )

    async def embed(self, text: str) -> list[float]:
        from openai import OpenAIError

        try:
            response = await self._client.embeddings.create(
                model=self.embedding_model, input=text
            )
        except OpenAIError as e:
            raise AIProviderError(f"OpenAI embedding failed: {e}") from e
        return list(response.data[0].embedding)

    async def aclose(self):
        await self._client.close()


class AnthropicProvider:
    """Anthropic messages API. No embeddings."""

    name = "anthropic"
    supports_embeddings = False

    def __init__(self, api_key: str, client=None):
        if client is None:
            from anthropic import AsyncAnthropic
            client = AsyncAnthropic(api_key=api_key)
        self._client = client

    async def complete(self, prompt: str, model: str, max_tokens: int) -> Completion:
        from anthropic import AnthropicError

        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except AnthropicError as e:
            raise AIProviderError(f"Anthropic request failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return Completion(
            content=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def embed(self, text: str) -> list[float]:
        raise AIProviderError("Anthropic does not provide embeddings")

    async def aclose(self):
        await self._client.close()
