from typing import Dict, NamedTuple
import structlog

from flowmind.domain.errors import (
    ERROR_MAX_LENGTH, FallbackExhausted, FlowMindError, ToolExecutionError, truncate_message
)
from flowmind.domain.models.results import ActionResult
from flowmind.domain.models.term import Atom, Struct, to_text
from flowmind.domain.models.thought import Category, Thought, short_id
from flowmind.domain.tool.tool_executor import ActionExecutor
from flowmind.domain.tool.tool_interface import ToolContext

logger = structlog.get_logger(__name__)

CONTENT_PROMPT_LIMIT = 100


class GenerativeStep(NamedTuple):
    prompt_key: str
    placeholder: str
    produces: Category


# Input -> Goal -> Strategy -> Outcome
GENERATIVE_STEPS: Dict[Category, GenerativeStep] = {
    Category.INPUT: GenerativeStep("GENERATE_GOAL", "input", Category.GOAL),
    Category.GOAL: GenerativeStep("GENERATE_STRATEGY", "goal", Category.STRATEGY),
    Category.STRATEGY: GenerativeStep("GENERATE_OUTCOME", "strategy", Category.OUTCOME),
}

MEMORIZED_CATEGORIES = (Category.OUTCOME, Category.FACT)


def split_generated_lines(text: str):
    """Non-empty output lines, without list bullets"""

    for line in text.splitlines():
        line = line.strip()
        if line.startswith("- "):
            line = line[2:].strip()
        if line:
            yield line


class FallbackHandler:
    """Default behavior for thoughts no rule matches, keyed by category"""

    def __init__(self, executor: ActionExecutor, error_max_length: int = ERROR_MAX_LENGTH):
        self.executor = executor
        self.error_max_length = error_max_length

    async def handle(self, thought: Thought, context: ToolContext) -> ActionResult:
        logger.debug("Applying fallback", thought_id=short_id(thought.id), category=thought.category.value)
        try:
            return await self._dispatch(thought, context)
        except FlowMindError as e:
            return ActionResult.failed(truncate_message(e.message, self.error_max_length), e.code)
        except Exception as e:
            logger.error("Fallback raised", thought_id=short_id(thought.id), error=str(e), exc_info=True)
            return ActionResult.failed(
                truncate_message(f"Fallback failed: {e}", self.error_max_length),
                ToolExecutionError.code
            )

    async def _dispatch(self, thought: Thought, context: ToolContext) -> ActionResult:
        step = GENERATIVE_STEPS.get(thought.category)
        if step is not None:
            return await self._generate(thought, step, context)
        if thought.category in MEMORIZED_CATEGORIES:
            return await self._memorize(thought, context)
        if thought.category == Category.USER_PROMPT:
            raise FallbackExhausted(
                "User prompts are answered externally and have no fallback",
                category=thought.category.value
            )
        return await self._ask_user(thought, context)

    async def _generate(self, thought: Thought, step: GenerativeStep, context: ToolContext) -> ActionResult:
        content = to_text(thought.content)[:CONTENT_PROMPT_LIMIT]
        prompt = context.prompts.format(step.prompt_key, {step.placeholder: content})
        text = await context.llm.generate(prompt)

        created = 0
        for line in split_generated_lines(text):
            await context.add_thought(thought.spawn(step.produces, Atom(line), provenance="llm_fallback"))
            created += 1

        logger.info(
            "Fallback generated thoughts",
            thought_id=short_id(thought.id),
            produced=step.produces.value,
            count=created
        )
        return ActionResult.done()

    async def _memorize(self, thought: Thought, context: ToolContext) -> ActionResult:
        await context.memory.add(
            to_text(thought.content),
            {"type": thought.category.value, "source_id": thought.id}
        )
        return ActionResult.done()

    async def _ask_user(self, thought: Thought, context: ToolContext) -> ActionResult:
        content = to_text(thought.content)[:CONTENT_PROMPT_LIMIT]
        action = Struct("UserInteractionTool", [
            Atom("prompt"),
            Atom("FALLBACK_ASK_USER"),
            Struct("context", [
                Atom(f"thoughtId:{short_id(thought.id)}"),
                Atom(f"thoughtType:{thought.category.value}"),
                Atom(f"thoughtContent:{content}"),
            ]),
        ])
        return await self.executor.execute(action, context, thought)
