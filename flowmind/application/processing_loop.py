from typing import Any, Dict, List, Optional
import asyncio
import structlog

from flowmind.application.broadcast.change_broadcaster import ChangeBroadcaster
from flowmind.application.broadcast.events import StatusEvent
from flowmind.domain.models.belief import Belief
from flowmind.domain.models.term import Atom
from flowmind.domain.models.thought import Category, TaskStatus, Thought, ThoughtMetadata, short_id
from flowmind.domain.orchestration.core.bootstrap import install_bootstrap_rules
from flowmind.domain.orchestration.core.engine import Engine
from flowmind.infrastructure.persistence.state_store import DebouncedSaver, JsonStateStore

logger = structlog.get_logger(__name__)


class ProcessingLoop:
    """Drives the engine on a fixed interval and connects it to
    change notification and persistence.

    A paused loop can still be advanced by hand with `step()`.
    """

    def __init__(
        self,
        engine: Engine,
        broadcaster: Optional[ChangeBroadcaster] = None,
        persistence: Optional[JsonStateStore] = None
    ):
        self.engine = engine
        self.settings = engine.settings
        self.broadcaster = broadcaster or ChangeBroadcaster(engine.thoughts, engine.rules)
        self.persistence = persistence
        self.saver = (
            DebouncedSaver(persistence, engine.thoughts, engine.rules, self.settings.save_debounce)
            if persistence is not None else None
        )
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._batch_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def initialize(self):
        """Restore saved state, install default rules into an empty rule
        store, and start saving on every store change."""

        if self.persistence is not None:
            try:
                await self.persistence.load(self.engine.thoughts, self.engine.rules)
            except (OSError, ValueError) as e:
                logger.error("Failed to load state, starting fresh", path=str(self.persistence.path), error=str(e))

        await install_bootstrap_rules(self.engine.rules)

        if self.saver is not None:
            self.engine.thoughts.subscribe(self.saver.schedule)
            self.engine.rules.subscribe(self.saver.schedule)
        await self.broadcaster.publish()

    def start(self):
        if self.is_running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info("Processing loop started", interval=self.settings.worker_interval)

    async def pause(self):
        """Stop ticking once the in-flight batch completes"""

        if not self.is_running:
            return
        self._stop.set()
        await self._task
        self._task = None
        logger.info("Processing loop paused")

    async def step(self) -> int:
        """Run one batch and publish the resulting changes"""

        async with self._batch_lock:
            count = await self.engine.process_batch()
            await self.broadcaster.publish()
            return count

    async def _run(self):
        while not self._stop.is_set():
            try:
                await self.step()
            except Exception as e:
                logger.error("Processing loop tick failed", error=str(e), exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.settings.worker_interval)
            except asyncio.TimeoutError:
                pass

    async def submit_input(self, text: str) -> Thought:
        thought = Thought(
            category=Category.INPUT,
            content=Atom(text),
            belief=Belief.trusted(),
            metadata=ThoughtMetadata(provenance="user_input", task_status=TaskStatus.RUNNING)
        )
        added = await self.engine.add_thought(thought)
        logger.info("Input submitted", thought_id=short_id(added.id))
        await self.broadcaster.publish()
        return added

    async def respond(self, prompt_ref: str, text: str) -> bool:
        """Answer a pending user prompt by id or unique id prefix"""

        prompt_id = await self._resolve_prompt_id(prompt_ref)
        if prompt_id is None:
            logger.warning("No pending prompt matches", prompt_ref=prompt_ref)
            return False

        handled = await self.engine.handle_external_response(prompt_id, text)
        await self.broadcaster.publish()
        return handled

    async def _resolve_prompt_id(self, prompt_ref: str) -> Optional[str]:
        prompt = await self.engine.thoughts.find_pending_prompt(prompt_ref)
        if prompt is None:
            prompt = await self.engine.thoughts.find_by_id_prefix(prompt_ref)
        if prompt is None or prompt.category != Category.USER_PROMPT:
            return None
        return prompt.metadata.prompt_id or prompt.id

    async def pause_task(self, root_ref: str) -> bool:
        return await self._set_task_status(root_ref, TaskStatus.PAUSED)

    async def run_task(self, root_ref: str) -> bool:
        return await self._set_task_status(root_ref, TaskStatus.RUNNING)

    async def _set_task_status(self, root_ref: str, task_status: TaskStatus) -> bool:
        root = await self.engine.set_task_status(root_ref, task_status)
        await self.broadcaster.publish()
        return root is not None

    async def list_tasks(self) -> List[Dict[str, Any]]:
        """Root thoughts with their run state and the size of their tree"""

        tasks = []
        for root in await self.engine.thoughts.get_roots():
            descendants = await self.engine.thoughts.get_descendants(root.id)
            tasks.append({
                "id": root.id,
                "category": root.category.value,
                "status": root.status.value,
                "task_status": (root.metadata.task_status or TaskStatus.RUNNING).value,
                "descendants": len(descendants),
            })
        return tasks

    async def status(self) -> StatusEvent:
        summary: Dict[str, Any] = await self.engine.get_summary()
        return StatusEvent(running=self.is_running, summary=summary)

    async def shutdown(self):
        """Stop the loop, wait for in-flight work, publish and save"""

        await self.pause()
        async with self._batch_lock:
            await self.broadcaster.publish()

        if self.saver is not None:
            self.engine.thoughts.unsubscribe(self.saver.schedule)
            self.engine.rules.unsubscribe(self.saver.schedule)
            await self.saver.flush()
        logger.info("Processing loop shut down")
