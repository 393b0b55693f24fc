import structlog

from flowmind.domain.models.belief import Belief
from flowmind.domain.models.term import Atom, Struct, to_text
from flowmind.domain.models.thought import Category, Thought, short_id
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool

logger = structlog.get_logger(__name__)


class GoalProposalTool(BaseTool):
    name = "GoalProposalTool"
    description = "Suggests a new goal from context and related memories: suggest(context?)."

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        if ActionValidator.operation(action) != "suggest":
            return self.fail("unsupported_operation", ActionValidator.operation(action) or "missing")

        context_text = to_text(ActionValidator.arg(action, 1) or trigger.content)
        limit = context.settings.memory_search_limit if context.settings else 3
        try:
            memories = await context.memory.search(f"Relevant past goals or outcomes related to: {context_text}", limit)
            memory_context = ""
            if memories:
                memory_context = "\nRelated past activities:\n - " + "\n - ".join(m.content for m in memories)

            prompt = context.prompts.format("SUGGEST_GOAL", {"context": context_text, "memoryContext": memory_context})
            suggestion = (await context.llm.generate(prompt)).strip()
        except Exception as e:
            logger.error("Goal suggestion failed", thought_id=short_id(trigger.id), error=str(e))
            return self.fail("suggestion_failed", str(e))

        if not suggestion:
            return self.ok("no_suggestion")

        goal = trigger.spawn(
            Category.GOAL,
            Atom(suggestion),
            provenance=self.name,
            belief=Belief.trusted(),
            tags=["suggested_goal"]
        )
        added = await context.add_thought(goal)
        logger.info("Suggested goal", goal_id=short_id(added.id), thought_id=short_id(trigger.id))
        return self.ok("suggestion_created", added.id)
