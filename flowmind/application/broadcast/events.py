from typing import Any, Dict, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from flowmind.domain.models.thought import utc_now


class EventType(str, Enum):
    """Change notification event types"""
    STORE_CHANGE = "store_change"
    STATUS = "status"


class BaseEvent(BaseModel):
    """Base model for every published event"""
    type: EventType
    timestamp: datetime = Field(default_factory=utc_now)


class StoreChangeEvent(BaseEvent):
    """Items changed and ids deleted in one store since the last publish"""
    type: Literal[EventType.STORE_CHANGE] = EventType.STORE_CHANGE
    store: str
    changed: List[Dict[str, Any]] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)


class StatusEvent(BaseEvent):
    """Loop state and engine summary"""
    type: Literal[EventType.STATUS] = EventType.STATUS
    running: bool
    summary: Dict[str, Any] = Field(default_factory=dict)
