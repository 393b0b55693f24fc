from typing import List

from flowmind.domain.models.thought import Rule
from .base_store import BaseStore


class RuleStore(BaseStore[Rule]):
    """Store of Rules"""

    def __init__(self):
        super().__init__("rules")

    async def search_by_description(self, text: str) -> List[Rule]:
        needle = text.lower()
        return await self._select(
            lambda r: bool(r.metadata.description) and needle in r.metadata.description.lower()
        )
