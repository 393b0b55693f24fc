from typing import Optional
import structlog

from flowmind.domain.models.belief import Belief
from flowmind.domain.models.term import Struct, to_text
from flowmind.domain.models.thought import Category, Status, Thought, ThoughtMetadata, short_id
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool

logger = structlog.get_logger(__name__)

# Active is owned by the engine and Waiting by UserInteractionTool
SETTABLE_STATUSES = (Status.PENDING, Status.DONE, Status.FAILED)
TERMINAL_STATUSES = (Status.DONE, Status.FAILED)
LOG_LEVELS = ("debug", "info", "warning", "error")


class CoreTool(BaseTool):
    """Internal state operations on thoughts"""
    name = "CoreTool"
    description = (
        "Manages internal state: set_status(target, status), add_thought(category, content, root?, parent?), "
        "delete_thought(target), set_content(target, content), log(level, message)."
    )

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        operation = ActionValidator.operation(action)
        if operation == "set_status":
            return await self._set_status(action, context, trigger)
        if operation == "add_thought":
            return await self._add_thought(action, context, trigger)
        if operation == "delete_thought":
            return await self._delete_thought(action, context, trigger)
        if operation == "set_content":
            return await self._set_content(action, context, trigger)
        if operation == "log":
            return self._log(action, trigger)
        return self.fail("unsupported_operation", operation or "missing")

    async def _set_status(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        status_name = ActionValidator.atom_arg(action, 2)
        if status_name is None:
            return self.fail("invalid_params", "set_status(target, status)")
        try:
            status = Status(status_name.lower())
        except ValueError:
            return self.fail("invalid_status", status_name)
        if status not in SETTABLE_STATUSES:
            return self.fail("status_not_settable", status.value)

        target = await self._target(action, context, trigger)
        if target is None:
            return self.fail("target_not_found", ActionValidator.atom_arg(action, 1))
        if target.status in TERMINAL_STATUSES:
            return self.fail("target_terminal", f"{short_id(target.id)}:{target.status.value}")
        if target.status == Status.ACTIVE and target.id != trigger.id:
            return self.fail("target_in_flight", short_id(target.id))
        if target.status == status:
            return self.ok("status_unchanged", f"{short_id(target.id)}:{status.value}")

        target.status = status
        target.metadata.waiting_for = None
        await context.thoughts.update(target)
        return self.ok("status_set", f"{short_id(target.id)}:{status.value}")

    async def _add_thought(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        category_name = ActionValidator.atom_arg(action, 1)
        content = ActionValidator.arg(action, 2)
        if category_name is None or content is None:
            return self.fail("invalid_params", "add_thought(category, content, root?, parent?)")
        try:
            category = Category(category_name.lower())
        except ValueError:
            return self.fail("invalid_category", category_name)

        root_id = await self._optional_target(action, 3, trigger, context) or trigger.root_id
        parent_id = await self._optional_target(action, 4, trigger, context) or trigger.id
        thought = Thought(
            category=category,
            content=content,
            belief=Belief(),
            metadata=ThoughtMetadata(
                root_id=root_id,
                parent_id=parent_id,
                provenance=f"{self.name} (triggered by {short_id(trigger.id)})"
            )
        )
        added = await context.add_thought(thought)
        return self.ok("thought_added", added.id)

    async def _delete_thought(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        target = await self._target(action, context, trigger)
        if target is None:
            return self.fail("target_not_found", ActionValidator.atom_arg(action, 1))

        if target.category == Category.USER_PROMPT:
            waiter = await context.thoughts.find_waiting_thought(target.id)
            if waiter is not None:
                return self.fail("prompt_has_waiter", f"{short_id(target.id)} suspends {short_id(waiter.id)}")

        if not await context.thoughts.delete(target.id):
            return self.fail("target_not_found", short_id(target.id))
        return self.ok("thought_deleted", short_id(target.id))

    async def _set_content(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        content = ActionValidator.arg(action, 2)
        if content is None:
            return self.fail("invalid_params", "set_content(target, content)")

        target = await self._target(action, context, trigger)
        if target is None:
            return self.fail("target_not_found", ActionValidator.atom_arg(action, 1))

        target.content = content
        await context.thoughts.update(target)
        logger.debug("Content replaced", thought_id=short_id(target.id), triggered_by=short_id(trigger.id))
        return self.ok("content_set", short_id(target.id))

    def _log(self, action: Struct, trigger: Thought) -> ToolOutput:
        level = (ActionValidator.atom_arg(action, 1) or "").lower()
        message = ActionValidator.arg(action, 2)
        if level not in LOG_LEVELS or message is None:
            return self.fail("invalid_params", "log(debug|info|warning|error, message)")

        getattr(logger, level)(to_text(message), thought_id=short_id(trigger.id), source=self.name)
        return self.ok("logged", level)

    async def _target(self, action: Struct, context: ToolContext, trigger: Thought) -> Optional[Thought]:
        target_id = await self.resolve_target_id(ActionValidator.arg(action, 1), trigger, context)
        return await context.thoughts.get(target_id) if target_id else None

    async def _optional_target(self, action: Struct, index: int, trigger: Thought, context: ToolContext) -> Optional[str]:
        if ActionValidator.arg(action, index) is None:
            return None
        return await self.resolve_target_id(ActionValidator.arg(action, index), trigger, context)
