from typing import Awaitable, Callable, List
import asyncio
import structlog

from flowmind.domain.store.base_store import BaseStore, StoreDelta
from .events import BaseEvent, StoreChangeEvent

logger = structlog.get_logger(__name__)

Subscriber = Callable[[BaseEvent], Awaitable[None]]


class ChangeBroadcaster:
    """Fans store deltas out to subscribers"""

    def __init__(self, *stores: BaseStore):
        self.stores = list(stores)
        self.subscribers: List[Subscriber] = []
        self._lock = asyncio.Lock()

    def subscribe(self, subscriber: Subscriber):
        if subscriber not in self.subscribers:
            self.subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber):
        if subscriber in self.subscribers:
            self.subscribers.remove(subscriber)

    async def publish(self) -> List[StoreChangeEvent]:
        """Extract every store's delta and send one event per non-empty delta"""

        async with self._lock:
            events = []
            for store in self.stores:
                delta = await store.extract_delta()
                if not delta.is_empty:
                    events.append(_to_event(delta))

            for event in events:
                await self.send_event(event)
            return events

    async def send_event(self, event: BaseEvent):
        """Deliver to every subscriber; a failing subscriber is dropped"""

        for subscriber in list(self.subscribers):
            try:
                await subscriber(event)
            except Exception as e:
                logger.error("Subscriber failed, removing", error=str(e))
                self.unsubscribe(subscriber)


def _to_event(delta: StoreDelta) -> StoreChangeEvent:
    return StoreChangeEvent(
        store=delta.store,
        changed=[item.model_dump(mode="json") for item in delta.changed],
        deleted=delta.deleted
    )
