from typing import List, Optional, Set

from flowmind.domain.models.thought import Category, Status, TaskStatus, Thought
from .base_store import BaseStore


class ThoughtStore(BaseStore[Thought]):
    """Store of Thoughts with lifecycle-aware queries"""

    def __init__(self):
        super().__init__("thoughts")

    async def get_pending(self) -> List[Thought]:
        return await self._select(lambda t: t.status == Status.PENDING)

    async def get_descendants(self, root_id: str) -> List[Thought]:
        """All thoughts of a task tree, excluding the root itself"""

        return await self._select(lambda t: t.metadata.root_id == root_id and t.id != root_id)

    async def get_roots(self) -> List[Thought]:
        return await self._select(lambda t: t.metadata.root_id in (None, t.id))

    async def paused_root_ids(self) -> Set[str]:
        paused = await self._select(lambda t: t.metadata.task_status == TaskStatus.PAUSED)
        return {t.id for t in paused}

    async def search_by_tag(self, tag: str) -> List[Thought]:
        return await self._select(lambda t: tag in t.metadata.tags)

    async def find_pending_prompt(self, prompt_id: str) -> Optional[Thought]:
        prompts = await self._select(
            lambda t: t.category == Category.USER_PROMPT
            and t.status == Status.PENDING
            and t.metadata.prompt_id == prompt_id
        )
        return prompts[0] if prompts else None

    async def find_waiting_thought(self, prompt_id: str) -> Optional[Thought]:
        waiting = await self._select(
            lambda t: t.status == Status.WAITING and t.metadata.waiting_for == prompt_id
        )
        return waiting[0] if waiting else None
