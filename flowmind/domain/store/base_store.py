from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Set, TypeVar
import asyncio
from pydantic import BaseModel, Field
import structlog

from flowmind.domain.models.thought import utc_now

logger = structlog.get_logger(__name__)

ItemT = TypeVar("ItemT", bound=BaseModel)
ChangeListener = Callable[[], None]

MIN_PREFIX_LENGTH = 3


class StoreDelta(BaseModel):
    """Items changed and ids deleted since the previous extraction"""
    store: str
    changed: List[Any] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.changed and not self.deleted


def merge_metadata(existing: BaseModel, incoming: BaseModel) -> BaseModel:
    """Overlay incoming metadata on the stored metadata"""

    values = {}
    for name, field in type(incoming).model_fields.items():
        value = getattr(incoming, name)
        if name in incoming.model_fields_set or value != field.get_default(call_default_factory=True):
            values[name] = value
    return existing.model_copy(update=values, deep=True)


class BaseStore(Generic[ItemT]):
    """Keyed in-memory collection with change notification and delta tracking.

    Items are copied on the way in and on the way out, so the only way to
    change stored state is through `add`/`update`/`delete`. Callers holding
    an item across a suspension point must re-read it to see changes made
    by other tasks.
    """

    def __init__(self, name: str):
        self.name = name
        self._items: Dict[str, ItemT] = {}
        self._listeners: List[ChangeListener] = []
        self._changed: Set[str] = set()
        self._deleted: Set[str] = set()
        self._lock = asyncio.Lock()

    async def add(self, item: ItemT) -> ItemT:
        """Insert (or replace) an item, stamping its creation time if absent"""

        async with self._lock:
            stored = item.model_copy(deep=True)
            now = utc_now()
            if stored.metadata.created_at is None:
                stored.metadata.created_at = now
            if stored.metadata.modified_at is None:
                stored.metadata.modified_at = stored.metadata.created_at
            self._items[stored.id] = stored
            self._changed.add(stored.id)
            self._deleted.discard(stored.id)
            result = stored.model_copy(deep=True)

        self._notify()
        return result

    async def get(self, item_id: str) -> Optional[ItemT]:
        async with self._lock:
            item = self._items.get(item_id)
            return item.model_copy(deep=True) if item is not None else None

    async def update(self, item: ItemT) -> bool:
        """Store a new version of an item, merging its metadata into the stored one.

        Metadata fields the incoming item never set and that still hold their
        default keep the stored value; creation time is always preserved.
        Returns False when the id is unknown (nothing is inserted).
        """

        async with self._lock:
            existing = self._items.get(item.id)
            if existing is None:
                return False

            stored = item.model_copy(deep=True)
            stored.metadata = merge_metadata(existing.metadata, stored.metadata)
            stored.metadata.created_at = existing.metadata.created_at or stored.metadata.created_at
            stored.metadata.modified_at = utc_now()
            self._items[stored.id] = stored
            self._changed.add(stored.id)
            self._deleted.discard(stored.id)

        self._notify()
        return True

    async def delete(self, item_id: str) -> bool:
        async with self._lock:
            if item_id not in self._items:
                return False
            del self._items[item_id]
            self._changed.discard(item_id)
            self._deleted.add(item_id)

        self._notify()
        return True

    async def get_all(self) -> List[ItemT]:
        async with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    async def count(self) -> int:
        async with self._lock:
            return len(self._items)

    async def find_by_id_prefix(self, prefix: str) -> Optional[ItemT]:
        """Resolve a unique item from an id prefix of at least 3 characters.

        Unknown and ambiguous prefixes both yield None.
        """

        if not prefix or len(prefix) < MIN_PREFIX_LENGTH:
            return None

        async with self._lock:
            if prefix in self._items:
                return self._items[prefix].model_copy(deep=True)
            matching = [item for item_id, item in self._items.items() if item_id.startswith(prefix)]
            if len(matching) != 1:
                return None
            return matching[0].model_copy(deep=True)

    async def extract_delta(self) -> StoreDelta:
        """Return and clear everything changed or deleted since the last call"""

        async with self._lock:
            changed = [
                self._items[item_id].model_copy(deep=True)
                for item_id in self._changed
                if item_id in self._items
            ]
            deleted = list(self._deleted)
            self._changed.clear()
            self._deleted.clear()

        return StoreDelta(store=self.name, changed=changed, deleted=deleted)

    async def load(self, items: Iterable[ItemT]) -> int:
        """Replace all contents without recording a delta"""

        async with self._lock:
            self._items = {item.id: item.model_copy(deep=True) for item in items}
            self._changed.clear()
            self._deleted.clear()
            count = len(self._items)

        self._notify()
        return count

    def subscribe(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _select(self, predicate: Callable[[ItemT], bool]) -> List[ItemT]:
        async with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values() if predicate(item)]

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error("Change listener failed", store=self.name, error=str(e))
