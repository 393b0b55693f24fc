from typing import Any, Dict, List, Optional, Set
import asyncio
import random
import structlog

from flowmind.domain.context.language_model import LanguageModel
from flowmind.domain.context.memory.vector_memory_store import MemoryService
from flowmind.domain.context.prompts import PromptLibrary
from flowmind.domain.errors import NoWaitingThought, truncate_message
from flowmind.domain.models.belief import Belief
from flowmind.domain.models.results import ActionResult
from flowmind.domain.models.term import Atom, Struct
from flowmind.domain.models.thought import Category, Rule, Status, TaskStatus, Thought, short_id
from flowmind.domain.store.rule_store import RuleStore
from flowmind.domain.store.thought_store import ThoughtStore
from flowmind.domain.tool.tool_executor import ActionExecutor
from flowmind.domain.tool.tool_interface import ToolContext
from flowmind.domain.tool.tool_registry import ToolRegistry
from flowmind.infrastructure.config import FlowMindSettings, get_settings
from flowmind.infrastructure.observability.logging import engine_logger, metrics
from .fallback_handler import FallbackHandler
from .rule_matcher import RuleMatcher

logger = structlog.get_logger(__name__)


class Engine:
    """Samples pending thoughts, applies the best matching rule or the
    fallback, and settles each thought's status, retries and belief.

    Up to `max_concurrent` thoughts are processed at once; the active-id
    set guarantees a thought is never processed by two tasks.
    """

    def __init__(
        self,
        thoughts: ThoughtStore,
        rules: RuleStore,
        tools: ToolRegistry,
        memory: MemoryService,
        llm: LanguageModel,
        prompts: Optional[PromptLibrary] = None,
        settings: Optional[FlowMindSettings] = None,
        rng: Optional[random.Random] = None
    ):
        self.settings = settings or get_settings()
        self.thoughts = thoughts
        self.rules = rules
        self.tools = tools
        self.rng = rng or random.Random()
        self.batch_size = self.settings.batch_size
        self.max_concurrent = self.settings.max_concurrent
        self.max_retries = self.settings.max_retries

        self.executor = ActionExecutor(tools, self.settings.error_max_length)
        self.fallback = FallbackHandler(self.executor, self.settings.error_max_length)
        self.context = ToolContext(
            thoughts=thoughts,
            rules=rules,
            tools=tools,
            memory=memory,
            llm=llm,
            prompts=prompts or PromptLibrary(),
            engine=self,
            settings=self.settings
        )
        self._active_ids: Set[str] = set()

    @property
    def active_ids(self) -> Set[str]:
        return set(self._active_ids)

    async def add_thought(self, thought: Thought) -> Thought:
        return await self.thoughts.add(thought)

    async def sample_thought(self) -> Optional[Thought]:
        """Weighted-random pick among pending thoughts not already in flight.

        Weight is the priority override or the belief score, floored at a
        small epsilon so every candidate stays selectable. User prompts
        wait for an external answer and are never picked, and thoughts of a
        paused task are held back until the task runs again.
        """

        pending = await self.thoughts.get_pending()
        paused = await self.thoughts.paused_root_ids()
        candidates = [
            t for t in pending
            if t.id not in self._active_ids
            and t.category != Category.USER_PROMPT
            and t.root_id not in paused
        ]
        if not candidates:
            return None

        weights = [self._weight(t) for t in candidates]
        if sum(weights) <= 0:
            return self.rng.choice(candidates)
        return self.rng.choices(candidates, weights=weights, k=1)[0]

    def _weight(self, thought: Thought) -> float:
        priority = thought.metadata.priority
        base = priority if priority is not None else thought.belief.score()
        return max(self.settings.sampling_epsilon, base)

    async def process_one(self) -> bool:
        """Process a single sampled thought; False when nothing is eligible"""

        thought = await self.sample_thought()
        if thought is None:
            return False
        self._active_ids.add(thought.id)
        await self._process_thought(thought)
        return True

    async def process_batch(self) -> int:
        """Start up to `batch_size` thoughts while under `max_concurrent`,
        wait for all of them, and return how many were attempted."""

        tasks: List[asyncio.Task] = []
        while len(self._active_ids) < self.max_concurrent and len(tasks) < self.batch_size:
            thought = await self.sample_thought()
            if thought is None:
                break
            self._active_ids.add(thought.id)
            tasks.append(asyncio.create_task(self._process_thought(thought)))

        if not tasks:
            return 0

        await asyncio.gather(*tasks)
        logger.debug("Processed batch", count=len(tasks))
        return len(tasks)

    async def _process_thought(self, thought: Thought):
        try:
            with structlog.contextvars.bound_contextvars(
                thought_id=short_id(thought.id),
                root_id=short_id(thought.root_id)
            ):
                await self._run(thought)
        except Exception as e:
            logger.error("Unhandled error processing thought", thought_id=short_id(thought.id), error=str(e), exc_info=True)
            await self._reconcile(thought.id, ActionResult.failed(f"Unhandled exception: {e}"), None)
        finally:
            current = await self.thoughts.get(thought.id)
            if current is not None and current.status == Status.ACTIVE:
                logger.warning("Thought still active after processing", thought_id=short_id(thought.id))
                await self._settle_failed(current, "Processing ended while ACTIVE.")
            self._active_ids.discard(thought.id)

    async def _run(self, sampled: Thought):
        thought = await self.thoughts.get(sampled.id)
        if thought is None or thought.status != Status.PENDING:
            logger.debug("Sampled thought no longer pending", thought_id=short_id(sampled.id))
            return

        thought.status = Status.ACTIVE
        await self.thoughts.update(thought)
        logger.info(
            "Processing thought",
            thought_id=short_id(thought.id),
            category=thought.category.value,
            retries=thought.metadata.retries
        )

        match = RuleMatcher.match(thought, await self.rules.get_all())
        rule: Optional[Rule] = None
        if match is not None:
            rule = match.rule
            thought.metadata.rule_id = rule.id
            await self.thoughts.update(thought)
            result = await self.executor.execute(rule.action, self.context, thought, rule, match.bindings)
            await self._update_rule_belief(rule.id, result)
        else:
            if thought.metadata.rule_id is not None:
                thought.metadata.rule_id = None
                await self.thoughts.update(thought)
            metrics.increment_counter("engine.fallbacks")
            result = await self.fallback.handle(thought, self.context)

        await self._reconcile(thought.id, result, rule)

    async def _update_rule_belief(self, rule_id: str, result: ActionResult):
        # Waiting outcomes are credited when the answer arrives
        if result.success and result.final_status == Status.WAITING:
            return
        rule = await self.rules.get(rule_id)
        if rule is None:
            return
        rule.belief.update(result.success)
        await self.rules.update(rule)

    async def _reconcile(self, thought_id: str, result: ActionResult, rule: Optional[Rule]):
        """Settle status, retries, error and belief from an action result"""

        current = await self.thoughts.get(thought_id)
        if current is None:
            logger.warning("Thought no longer exists after processing", thought_id=short_id(thought_id))
            return

        previous = current.status
        if rule is not None:
            current.metadata.rule_id = rule.id

        if result.success:
            current.status = result.final_status or Status.DONE
            current.metadata.error = None
            current.metadata.retries = 0
            if current.status != Status.WAITING:
                current.metadata.waiting_for = None
                current.belief.update(True)
            await self.thoughts.update(current)
            metrics.increment_counter(f"thoughts.{current.status.value}")
            engine_logger.log_status_transition(short_id(current.id), previous.value, current.status.value)
            return

        retries = current.metadata.retries + 1
        current.metadata.retries = retries
        current.metadata.error = truncate_message(result.error or "Unknown processing error", self.settings.error_max_length)
        current.metadata.waiting_for = None
        current.belief.update(False)
        current.status = Status.FAILED if retries >= self.max_retries else Status.PENDING
        await self.thoughts.update(current)

        logger.warning(
            "Thought failed",
            thought_id=short_id(current.id),
            attempt=retries,
            max_retries=self.max_retries,
            code=result.error_code,
            error=current.metadata.error
        )
        engine_logger.log_status_transition(
            short_id(current.id), previous.value, current.status.value,
            reason=result.error_code, retries=retries
        )
        if current.status == Status.FAILED:
            metrics.increment_counter("thoughts.failed")
            await self._log_failure(current)
        else:
            metrics.increment_counter("thoughts.retried")

    async def _settle_failed(self, current: Thought, error: str):
        current.status = Status.FAILED
        current.metadata.error = truncate_message(error, self.settings.error_max_length)
        current.belief.update(False)
        await self.thoughts.update(current)
        metrics.increment_counter("thoughts.failed")
        await self._log_failure(current)

    async def _log_failure(self, failed: Thought):
        """Record a terminal failure as a Log thought rules can react to"""

        if failed.category == Category.LOG:
            return
        content = Struct("failure", [
            Struct("thoughtId", [Atom(failed.id)]),
            Struct("content", [failed.content]),
            Struct("error", [Atom(failed.metadata.error or "Unknown")]),
        ])
        await self.add_thought(failed.spawn(Category.LOG, content, provenance="engine_failure_log"))

    async def handle_external_response(self, prompt_id: str, text: str) -> bool:
        """Deliver an answer to a user prompt and resume the waiting thought"""

        prompt = await self.thoughts.find_pending_prompt(prompt_id)
        if prompt is None:
            logger.error("Pending prompt not found", prompt_id=short_id(prompt_id))
            return False

        waiting = await self.thoughts.find_waiting_thought(prompt_id)
        if waiting is None:
            error = NoWaitingThought(f"No waiting thought found for prompt {short_id(prompt_id)}", prompt_id=prompt_id)
            logger.warning(error.message, code=error.code)
            prompt.status = Status.DONE
            prompt.metadata.error = error.message
            await self.thoughts.update(prompt)
            return False

        await self.add_thought(waiting.spawn(
            Category.INPUT,
            Atom(text),
            provenance="user_input",
            belief=Belief.trusted(),
            response_to=prompt_id,
            tags=["user_response"]
        ))

        prompt.status = Status.DONE
        await self.thoughts.update(prompt)

        waiting.status = Status.PENDING
        waiting.metadata.waiting_for = None
        waiting.belief.update(True)
        await self.thoughts.update(waiting)

        if waiting.metadata.rule_id:
            rule = await self.rules.get(waiting.metadata.rule_id)
            if rule is not None:
                rule.belief.update(True)
                await self.rules.update(rule)

        metrics.increment_counter("engine.external_responses")
        engine_logger.log_status_transition(short_id(waiting.id), Status.WAITING.value, Status.PENDING.value, reason="response")
        logger.info("Response received", prompt_id=short_id(prompt_id), thought_id=short_id(waiting.id))
        return True

    async def set_task_status(self, root_ref: str, task_status: TaskStatus) -> Optional[Thought]:
        """Pause or resume a task tree by the id (or id prefix) of its root"""

        root = await self.thoughts.find_by_id_prefix(root_ref)
        if root is None or root.root_id != root.id:
            logger.warning("Task root not found", root_ref=root_ref)
            return None

        root.metadata.task_status = task_status
        await self.thoughts.update(root)
        logger.info("Task status changed", root_id=short_id(root.id), task_status=task_status.value)
        return root

    async def get_summary(self) -> Dict[str, Any]:
        """Counts by status plus in-flight and rule totals"""

        counts = {status.value: 0 for status in Status}
        for thought in await self.thoughts.get_all():
            counts[thought.status.value] += 1
        return {
            "thoughts": counts,
            "active_tasks": len(self._active_ids),
            "rules": await self.rules.count(),
        }
