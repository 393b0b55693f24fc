from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable
import asyncio
import hashlib
import math
import re
from pydantic import BaseModel, Field

from flowmind.domain.models.thought import new_id, utc_now

EMBEDDING_DIMENSIONS = 256

Embedder = Callable[[str], Awaitable[List[float]]]


class MemoryEntry(BaseModel):
    id: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str
    score: Optional[float] = None


@runtime_checkable
class MemoryService(Protocol):
    """Semantic memory capability handed to tools"""

    async def add(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        ...

    async def search(self, query: str, limit: int = 3) -> List[MemoryEntry]:
        ...


class VectorMemoryStore:
    """In-memory vector store ranked by cosine similarity.

    Embeds through `embedder` when one is supplied (normally the language
    model's `embed`), otherwise through a hashed bag-of-words vector.
    """

    def __init__(self, embedder: Optional[Embedder] = None, limit: Optional[int] = 1000):
        self.embedder = embedder
        self.limit = limit
        self.memories: List[Dict[str, Any]] = []
        self._lock = asyncio.Lock()

    async def add(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Add content to vector store"""

        embedding = await self._embed(content)

        async with self._lock:
            memory_id = new_id()
            self.memories.append({
                "id": memory_id,
                "content": content,
                "metadata": metadata or {},
                "created_at": utc_now().isoformat(),
                "embedding": embedding
            })

            if self.limit and len(self.memories) > self.limit:
                self.memories = self.memories[-self.limit:]

            return memory_id

    async def search(self, query: str, limit: int = 3) -> List[MemoryEntry]:
        """Search for the memories most similar to `query`"""

        query_embedding = await self._embed(query)

        async with self._lock:
            scored = [
                (self._cosine(query_embedding, memory["embedding"]), index, memory)
                for index, memory in enumerate(self.memories)
            ]

        # Newer entries win ties
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [
            MemoryEntry(
                id=memory["id"],
                content=memory["content"],
                metadata=memory["metadata"],
                created_at=memory["created_at"],
                score=score
            )
            for score, _, memory in scored[:limit]
        ]

    async def count(self) -> int:
        async with self._lock:
            return len(self.memories)

    async def _embed(self, text: str) -> List[float]:
        if self.embedder is not None:
            return list(await self.embedder(text))
        return self._hashed_embedding(text)

    def _hashed_embedding(self, text: str) -> List[float]:
        vector = [0.0] * EMBEDDING_DIMENSIONS
        for token in re.findall(r'\w+', text.lower()):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % EMBEDDING_DIMENSIONS] += 1.0
        return vector

    @staticmethod
    def _cosine(a: List[float], b: List[float]) -> float:
        if len(a) != len(b):
            return 0.0
        dot = sum(x * y for x, y in zip(a, b))
        norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
        return dot / norm if norm else 0.0
