from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple
import asyncio
import os
from pydantic import BaseModel, Field
import structlog

from flowmind.domain.models.thought import Rule, Status, Thought, utc_now
from flowmind.domain.store.rule_store import RuleStore
from flowmind.domain.store.thought_store import ThoughtStore

logger = structlog.get_logger(__name__)

SNAPSHOT_VERSION = 1


class StateSnapshot(BaseModel):
    """Serializable image of both stores"""
    version: int = SNAPSHOT_VERSION
    saved_at: datetime = Field(default_factory=utc_now)
    thoughts: Dict[str, Thought] = Field(default_factory=dict)
    rules: Dict[str, Rule] = Field(default_factory=dict)

    @classmethod
    async def capture(cls, thoughts: ThoughtStore, rules: RuleStore) -> "StateSnapshot":
        return cls(
            thoughts={t.id: t for t in await thoughts.get_all()},
            rules={r.id: r for r in await rules.get_all()}
        )


class JsonStateStore:
    """Saves and restores snapshots as a JSON file, replacing it atomically"""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    async def save(self, thoughts: ThoughtStore, rules: RuleStore) -> StateSnapshot:
        snapshot = await StateSnapshot.capture(thoughts, rules)
        async with self._lock:
            await asyncio.to_thread(self._write, snapshot)
        logger.debug("State saved", path=str(self.path), thoughts=len(snapshot.thoughts), rules=len(snapshot.rules))
        return snapshot

    async def load(self, thoughts: ThoughtStore, rules: RuleStore) -> bool:
        """Restore both stores from disk; False when there is no snapshot.

        Thoughts that were Active when saved were interrupted mid-flight and
        come back as Pending.
        """

        async with self._lock:
            snapshot = await asyncio.to_thread(self._read)
        if snapshot is None:
            return False

        restored, interrupted = _revert_interrupted(snapshot.thoughts.values())
        await thoughts.load(restored)
        await rules.load(snapshot.rules.values())
        logger.info(
            "State loaded",
            path=str(self.path),
            thoughts=len(restored),
            rules=len(snapshot.rules),
            reverted=interrupted
        )
        return True

    def _write(self, snapshot: StateSnapshot):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(snapshot.model_dump_json(indent=2))
            f.write("\n")
        os.replace(tmp, self.path)

    def _read(self) -> Optional[StateSnapshot]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return StateSnapshot.model_validate_json(f.read())


def _revert_interrupted(thoughts) -> Tuple[list, int]:
    restored = []
    interrupted = 0
    for thought in thoughts:
        if thought.status == Status.ACTIVE:
            thought.status = Status.PENDING
            interrupted += 1
        restored.append(thought)
    return restored, interrupted


class DebouncedSaver:
    """Coalesces save requests arriving within `delay` seconds into one write.

    `schedule` is synchronous so it can be registered directly as a store
    change listener.
    """

    def __init__(self, store: JsonStateStore, thoughts: ThoughtStore, rules: RuleStore, delay: float = 5.0):
        self.store = store
        self.thoughts = thoughts
        self.rules = rules
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self.saves = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self):
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self):
        self._handle = None
        self._task = asyncio.create_task(self._save())

    async def _save(self):
        try:
            await self.store.save(self.thoughts, self.rules)
            self.saves += 1
        except OSError as e:
            logger.error("Failed to save state", path=str(self.store.path), error=str(e))

    async def flush(self):
        """Cancel any pending timer and save now"""

        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._task is not None and not self._task.done():
            await self._task
        self._task = None
        await self._save()
