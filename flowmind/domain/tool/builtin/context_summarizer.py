from datetime import datetime, timezone
import structlog

from flowmind.domain.models.term import Atom, Struct, to_text
from flowmind.domain.models.thought import Category, Thought, short_id
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool

logger = structlog.get_logger(__name__)

SUMMARIZED_CATEGORIES = (Category.GOAL, Category.STRATEGY, Category.OUTCOME, Category.FACT, Category.LOG)
MAX_CONTEXT_LENGTH = 2000
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ContextSummarizer(BaseTool):
    """Summarizes what a task tree has produced so far"""
    name = "ContextSummarizer"
    description = "Summarizes a task tree with the LLM: summarize(root?)."

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        if ActionValidator.operation(action) != "summarize":
            return self.fail("unsupported_operation", ActionValidator.operation(action) or "missing")

        root_term = ActionValidator.arg(action, 1)
        root_id = await self.resolve_target_id(root_term, trigger, context) if root_term is not None else trigger.root_id
        root = await context.thoughts.get(root_id) if root_id else None
        if root is None:
            return self.fail("root_not_found", ActionValidator.atom_arg(action, 1))

        tree = [root] + await context.thoughts.get_descendants(root.id)
        relevant = sorted(
            (t for t in tree if t.category in SUMMARIZED_CATEGORIES),
            key=lambda t: t.metadata.created_at or _EPOCH
        )
        if not relevant:
            return Atom("No relevant context found for summarization.")

        # most recent context wins when the tree is large
        lines = "\n".join(f"{t.category.value}: {to_text(t.content)}" for t in relevant)[-MAX_CONTEXT_LENGTH:]
        prompt = context.prompts.format(
            "SUMMARIZE_TASK_COMPLETION",
            {"goalContent": to_text(root.content), "goalId": short_id(root.id)}
        ) + f"\n\nContext:\n---\n{lines}\n---\nSummary:"

        try:
            summary = await context.llm.generate(prompt)
        except Exception as e:
            logger.error("Summarization failed", root_id=short_id(root.id), error=str(e))
            return self.fail("llm_failed", str(e))

        logger.info("Task summarized", root_id=short_id(root.id), thoughts=len(relevant))
        return Atom(summary.strip())
