import structlog

from flowmind.domain.models.term import Atom, Struct
from flowmind.domain.models.thought import Category, Status, Thought, short_id
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool
from .llm_tool import render_prompt

logger = structlog.get_logger(__name__)


class UserInteractionTool(BaseTool):
    """Asks a human and suspends the trigger until the answer arrives"""
    name = "UserInteractionTool"
    description = "Requests input from the user: prompt(prompt_key_or_text, context?)."

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        if ActionValidator.operation(action) != "prompt":
            return self.fail("unsupported_operation", ActionValidator.operation(action) or "missing")

        source = ActionValidator.arg(action, 1)
        if source is None:
            return self.fail("invalid_params", "Missing prompt text or key")

        prompt_text = await render_prompt(self, source, ActionValidator.arg(action, 2), context, trigger)

        prompt = trigger.spawn(Category.USER_PROMPT, Atom(prompt_text), provenance=self.name)
        prompt.metadata.prompt_id = prompt.id
        await context.add_thought(prompt)

        current = await context.thoughts.get(trigger.id)
        if current is None:
            return self.fail("trigger_missing", short_id(trigger.id))
        current.status = Status.WAITING
        current.metadata.waiting_for = prompt.id
        await context.thoughts.update(current)

        logger.info("User prompt requested", prompt_id=short_id(prompt.id), thought_id=short_id(trigger.id))
        return self.ok("prompt_requested", prompt.id)
