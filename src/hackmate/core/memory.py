"""Cross-task memory: vector-similarity store with a local keyword fallback."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Protocol

from hackmate.core.models import MemoryEntry, MemoryType, utcnow

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\w+")


def _words(text: str) -> set[str]:
    return {w.lower() for w in _WORD.findall(text)}


def _new_id() -> str:
    return f"mem_{uuid.uuid4().hex}"


class VectorStoreUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed or queried."""


# ── Local backend ─────────────────────────────────────────────────────────────


class LocalMemoryBackend:
    """Bounded in-process store ranked by keyword overlap."""

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._entries: list[MemoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: MemoryEntry):
        self._entries.append(entry)
        if len(self._entries) > self.capacity:
            del self._entries[: len(self._entries) - self.capacity]

    def get(self, entry_id: str) -> MemoryEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def delete(self, entry_id: str) -> bool:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                del self._entries[i]
                return True
        return False

    def search(self, query: str, limit: int = 5) -> list[MemoryEntry]:
        query_words = _words(query)
        if not query_words:
            return self._search_substring(query.strip(), limit)

        scored = []
        for position, entry in enumerate(self._entries):
            content_words = _words(entry.content)
            tags = entry.metadata.get("tags") or []
            searchable = content_words | _words(" ".join(str(t) for t in tags))
            common = len(query_words & searchable)
            if not common:
                continue
            score = common / max(len(content_words), len(query_words))
            scored.append((score, position, entry))

        return _ranked(scored, limit)

    def _search_substring(self, needle: str, limit: int) -> list[MemoryEntry]:
        """Queries with no words (punctuation, symbols) match as raw substrings."""
        if not needle:
            return []
        scored = [
            (len(needle) / len(entry.content.strip()), position, entry)
            for position, entry in enumerate(self._entries)
            if needle in entry.content
        ]
        return _ranked(scored, limit)

    def by_type(self, memory_type: MemoryType, limit: int = 10) -> list[MemoryEntry]:
        matches = [e for e in self._entries if e.type == memory_type]
        return list(reversed(matches))[:limit]

    def entries(self) -> list[MemoryEntry]:
        return list(self._entries)

    def clear(self):
        self._entries.clear()


def _ranked(scored: list[tuple[float, int, MemoryEntry]], limit: int) -> list[MemoryEntry]:
    # Higher score first, then most recently stored.
    scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
    return [_with_score(entry, score) for score, _, entry in scored[:limit]]


def _with_score(entry: MemoryEntry, score: float) -> MemoryEntry:
    return MemoryEntry(
        id=entry.id,
        type=entry.type,
        content=entry.content,
        metadata=dict(entry.metadata),
        timestamp=entry.timestamp,
        score=score,
    )


# ── Vector backend ────────────────────────────────────────────────────────────


class CollectionProtocol(Protocol):
    """The subset of the Chroma collection API used here."""

    def upsert(self, *, ids, embeddings, documents, metadatas) -> None:
        ...

    def query(self, *, query_embeddings, n_results, include) -> dict[str, list[Any]]:
        ...

    def get(self, *, ids=None, where=None, limit=None, include=None) -> dict[str, list[Any]]:
        ...

    def delete(self, *, ids) -> None:
        ...

    def count(self) -> int:
        ...


class ClientProtocol(Protocol):
    def get_or_create_collection(self, name: str, metadata: dict | None = None) -> CollectionProtocol:
        ...

    def delete_collection(self, name: str) -> None:
        ...


def default_chroma_factory(
    host: str | None = None,
    port: int = 8000,
    path: str | None = None,
) -> Callable[[], ClientProtocol]:
    """Build a factory for a Chroma HTTP client or a local persistent one."""

    def factory() -> ClientProtocol:
        import chromadb

        if host:
            return chromadb.HttpClient(host=host, port=port)
        if path:
            return chromadb.PersistentClient(path=path)
        raise VectorStoreUnavailableError("No Chroma host or path configured")

    return factory


class VectorMemoryBackend:
    """Entries kept in a Chroma collection with cosine distance."""

    def __init__(
        self,
        client_factory: Callable[[], ClientProtocol],
        collection_name: str = "hackmate-memory",
    ):
        self.collection_name = collection_name
        self._client_factory = client_factory
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            try:
                client = self._client or self._client_factory()
                self._client = client
                self._collection = client.get_or_create_collection(
                    self.collection_name, metadata={"hnsw:space": "cosine"}
                )
            except VectorStoreUnavailableError:
                raise
            except Exception as e:
                raise VectorStoreUnavailableError(f"Chroma unavailable: {e}") from e
        return self._collection

    def connect(self):
        """Verify that the collection can be obtained."""
        self._ensure_collection()

    async def upsert(self, entry: MemoryEntry, embedding: list[float]):
        collection = self._ensure_collection()
        await asyncio.to_thread(
            collection.upsert,
            ids=[entry.id],
            embeddings=[embedding],
            documents=[entry.content],
            metadatas=[_flatten_metadata(entry)],
        )

    async def query(self, embedding: list[float], limit: int = 5) -> list[MemoryEntry]:
        collection = self._ensure_collection()
        result = await asyncio.to_thread(
            collection.query,
            query_embeddings=[embedding],
            n_results=limit,
            include=["documents", "metadatas", "distances"],
        )
        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        entries = []
        for entry_id, document, metadata, distance in zip(ids, documents, metadatas, distances):
            entry = _restore_entry(entry_id, document, metadata or {})
            entry.score = 1.0 - float(distance)
            entries.append(entry)
        entries.sort(key=lambda e: e.score, reverse=True)
        return entries

    async def get(self, entry_id: str) -> MemoryEntry | None:
        collection = self._ensure_collection()
        result = await asyncio.to_thread(
            collection.get, ids=[entry_id], include=["documents", "metadatas"]
        )
        entries = _restore_many(result)
        return entries[0] if entries else None

    async def by_type(self, memory_type: MemoryType, limit: int = 10) -> list[MemoryEntry]:
        collection = self._ensure_collection()
        result = await asyncio.to_thread(
            collection.get,
            where={"type": memory_type.value},
            include=["documents", "metadatas"],
        )
        entries = _restore_many(result)
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]

    async def delete(self, entry_id: str):
        collection = self._ensure_collection()
        await asyncio.to_thread(collection.delete, ids=[entry_id])

    async def count(self) -> int:
        collection = self._ensure_collection()
        return await asyncio.to_thread(collection.count)

    async def clear(self):
        self._ensure_collection()
        await asyncio.to_thread(self._client.delete_collection, self.collection_name)
        self._collection = None
        self._ensure_collection()


def _flatten_metadata(entry: MemoryEntry) -> dict[str, Any]:
    """Chroma metadata values must be scalars."""
    flat: dict[str, Any] = {
        "type": entry.type.value,
        "timestamp": entry.timestamp.isoformat(),
        "metadata_json": json.dumps(entry.metadata, default=str),
    }
    for key, value in entry.metadata.items():
        if isinstance(value, (str, int, float, bool)):
            flat.setdefault(key, value)
    return flat


def _restore_entry(entry_id: str, document: str, metadata: dict[str, Any]) -> MemoryEntry:
    raw = metadata.get("metadata_json")
    timestamp = metadata.get("timestamp")
    return MemoryEntry(
        id=entry_id,
        type=MemoryType(metadata.get("type", MemoryType.CONTEXT.value)),
        content=document or "",
        metadata=json.loads(raw) if raw else {},
        timestamp=datetime.fromisoformat(timestamp) if timestamp else utcnow(),
    )


def _restore_many(result: dict[str, list[Any]]) -> list[MemoryEntry]:
    ids = result.get("ids") or []
    documents = result.get("documents") or [""] * len(ids)
    metadatas = result.get("metadatas") or [{}] * len(ids)
    return [
        _restore_entry(entry_id, document, metadata or {})
        for entry_id, document, metadata in zip(ids, documents, metadatas)
    ]


# ── Memory store ──────────────────────────────────────────────────────────────


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]:
        ...


class MemoryStore:
    """Stores memory entries and ranks them against free-text queries.

    Every entry is written to the local backend. When a vector backend is
    attached, entries are also embedded and upserted there, and queries are
    answered by nearest-neighbour search. Any vector failure is logged and the
    call is served from the local backend instead.
    """

    def __init__(
        self,
        local: LocalMemoryBackend | None = None,
        vector: VectorMemoryBackend | None = None,
        embedder: Embedder | None = None,
    ):
        self.local = local or LocalMemoryBackend()
        self.vector = vector if embedder is not None else None
        self.embedder = embedder

    @classmethod
    def from_config(cls, config, embedder=None) -> "MemoryStore":
        local = LocalMemoryBackend(capacity=config.memory_capacity)
        can_embed = embedder is not None and getattr(embedder, "can_embed", True)
        if not (config.vector_configured and can_embed):
            return cls(local)

        vector = VectorMemoryBackend(
            default_chroma_factory(config.chroma_host, config.chroma_port, config.chroma_path),
            collection_name=config.memory_collection,
        )
        try:
            vector.connect()
        except VectorStoreUnavailableError as e:
            logger.warning("Vector memory unavailable, using local memory: %s", e)
            return cls(local)
        return cls(local, vector, embedder)

    @property
    def using_vector(self) -> bool:
        return self.vector is not None

    async def store(
        self,
        memory_type: MemoryType | str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        if not content.strip():
            raise ValueError("Memory content must not be empty")
        entry = MemoryEntry(
            id=_new_id(),
            type=MemoryType(memory_type),
            content=content,
            metadata=dict(metadata or {}),
        )
        self.local.add(entry)
        if self.vector is not None:
            await self._upsert_vector(entry)
        return entry.id

    async def retrieve(self, query: str, limit: int = 5) -> list[MemoryEntry]:
        if self.vector is not None:
            try:
                embedding = await self.embedder.embed(query)
                return await self.vector.query(embedding, limit)
            except Exception:
                logger.exception("Vector search failed, using local memory")
        return self.local.search(query, limit)

    async def update(self, entry_id: str, patch: dict[str, Any]) -> bool:
        entry = self.local.get(entry_id)
        if entry is None and self.vector is not None:
            try:
                entry = await self.vector.get(entry_id)
            except Exception:
                logger.exception("Vector lookup failed for memory %s", entry_id)
        if entry is None:
            return False

        if "content" in patch:
            entry.content = patch["content"]
        if "metadata" in patch:
            entry.metadata.update(patch["metadata"])
        if "type" in patch:
            entry.type = MemoryType(patch["type"])
        entry.timestamp = utcnow()

        if self.vector is not None:
            await self._upsert_vector(entry)
        return True

    async def delete(self, entry_id: str) -> bool:
        deleted = self.local.delete(entry_id)
        if self.vector is not None:
            try:
                existing = await self.vector.get(entry_id)
                if existing is not None:
                    await self.vector.delete(entry_id)
                    deleted = True
            except Exception:
                logger.exception("Vector delete failed for memory %s", entry_id)
        return deleted

    async def get_by_type(self, memory_type: MemoryType | str, limit: int = 10) -> list[MemoryEntry]:
        memory_type = MemoryType(memory_type)
        if self.vector is not None:
            try:
                return await self.vector.by_type(memory_type, limit)
            except Exception:
                logger.exception("Vector type lookup failed, using local memory")
        return self.local.by_type(memory_type, limit)

    async def clear(self):
        self.local.clear()
        if self.vector is not None:
            try:
                await self.vector.clear()
            except Exception:
                logger.exception("Failed to clear vector memory")

    async def stats(self) -> dict:
        by_type = Counter(e.type.value for e in self.local.entries())
        total = len(self.local)
        if self.vector is not None:
            try:
                total = await self.vector.count()
            except Exception:
                logger.exception("Vector count failed")
        return {
            "total_entries": total,
            "entries_by_type": dict(by_type),
            "backend": "vector" if self.vector is not None else "local",
            "collection": self.vector.collection_name if self.vector is not None else None,
        }

    async def _upsert_vector(self, entry: MemoryEntry):
        try:
            embedding = await self.embedder.embed(entry.content)
            await self.vector.upsert(entry, embedding)
        except Exception:
            logger.exception("Vector upsert failed for memory %s", entry.id)

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def add_task_context(self, task_id: str, content: str, metadata: dict | None = None) -> str:
        return await self.store(
            MemoryType.TASK,
            content,
            {**(metadata or {}), "task_id": task_id, "tags": ["task", task_id]},
        )

    async def add_decision(self, decision: str, reasoning: str, task_id: str | None = None) -> str:
        metadata: dict[str, Any] = {"tags": ["decision"]}
        if task_id:
            metadata["task_id"] = task_id
        return await self.store(
            MemoryType.DECISION, f"Decision: {decision}\nReasoning: {reasoning}", metadata
        )

    async def add_code_context(self, code: str, description: str, task_id: str, filename: str | None = None) -> str:
        metadata: dict[str, Any] = {"task_id": task_id, "tags": ["code", task_id]}
        if filename:
            metadata["filename"] = filename
        return await self.store(MemoryType.CODE, f"{description}\n\n{code}", metadata)

    async def add_error(self, error: str, context: str, task_id: str | None = None) -> str:
        metadata: dict[str, Any] = {"tags": ["error"]}
        if task_id:
            metadata["task_id"] = task_id
        return await self.store(MemoryType.ERROR, f"Error: {error}\nContext: {context}", metadata)

    async def get_task_context(self, task_id: str, limit: int = 10) -> list[MemoryEntry]:
        """Entries recorded for a task, newest first."""
        entries = [e for e in self.local.entries() if e.metadata.get("task_id") == task_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]

    async def get_relevant_context(self, query: str, limit: int = 5) -> list[str]:
        return [e.content for e in await self.retrieve(query, limit)]
