from typing import Optional
import time
import structlog

from flowmind.domain.errors import (
    ERROR_MAX_LENGTH, FlowMindError, ToolExecutionError, ToolNotFound, truncate_message
)
from flowmind.domain.models.results import ActionResult, ToolResult
from flowmind.domain.models.term import Bindings, Term, bindings_to_text, format_term, substitute
from flowmind.domain.models.thought import Rule, Status, Thought, short_id
from flowmind.infrastructure.observability.logging import engine_logger, metrics
from .tool_interface import ToolContext
from .tool_registry import ToolRegistry
from .tool_validator import ActionValidator

logger = structlog.get_logger(__name__)


class ActionExecutor:
    """Binds an action term to a registered tool and interprets the outcome.

    The outcome is read from the trigger's *stored* state after the call,
    since the tool may have suspended or failed it through the store.
    """

    def __init__(self, registry: ToolRegistry, error_max_length: int = ERROR_MAX_LENGTH):
        self.registry = registry
        self.error_max_length = error_max_length

    async def execute(
        self,
        action: Term,
        context: ToolContext,
        trigger: Thought,
        rule: Optional[Rule] = None,
        bindings: Optional[Bindings] = None
    ) -> ActionResult:
        bound = substitute(action, bindings) if bindings else action
        rule_id = rule.id if rule else None

        try:
            struct = ActionValidator.require_struct(bound)
            tool = await self.registry.get_tool(struct.name)
            if tool is None:
                raise ToolNotFound(f"Tool not found: {struct.name}", tool=struct.name)
        except FlowMindError as e:
            logger.warning("Action rejected", thought_id=short_id(trigger.id), rule_id=short_id(rule_id), code=e.code, error=e.message)
            return self._failed(e)

        logger.debug(
            "Executing action",
            action=format_term(struct),
            tool=tool.name,
            thought_id=short_id(trigger.id),
            rule_id=short_id(rule_id),
            bindings=bindings_to_text(bindings) if bindings else None
        )

        started = time.perf_counter()
        try:
            output = await tool.execute(struct, context, trigger)
        except Exception as e:
            logger.error("Tool raised", tool=tool.name, thought_id=short_id(trigger.id), error=str(e), exc_info=True)
            return self._failed(ToolExecutionError(f"Tool exception: {e}", tool=tool.name))
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.record_latency(f"tool.{tool.name}", duration_ms)

        result = await self._interpret(output, context, trigger)
        engine_logger.log_tool_execution(
            tool_name=tool.name,
            thought_id=short_id(trigger.id),
            action=format_term(struct),
            rule_id=short_id(rule_id) if rule_id else None,
            duration_ms=round(duration_ms, 3),
            success=result.success,
            error=result.error
        )
        return result

    async def _interpret(self, output, context: ToolContext, trigger: Thought) -> ActionResult:
        current = await context.thoughts.get(trigger.id)
        if current is None:
            logger.warning("Trigger deleted during action", thought_id=short_id(trigger.id))
            return ActionResult.done()

        if isinstance(output, ToolResult) and not output.ok:
            return self._failed(ToolExecutionError(f"Tool failed: {output.describe()}", code=output.code))
        if current.status == Status.WAITING:
            return await self._confirm_suspension(current, context)
        if current.status == Status.FAILED:
            return self._failed(ToolExecutionError("Tool set status to failed"))
        return ActionResult.done()

    def _failed(self, error: FlowMindError) -> ActionResult:
        return ActionResult.failed(truncate_message(error.message, self.error_max_length), error.code)

    async def _confirm_suspension(self, current: Thought, context: ToolContext) -> ActionResult:
        """A Waiting trigger must point at a pending user prompt, or nothing can resume it"""

        prompt_id = current.metadata.waiting_for
        prompt = await context.thoughts.find_pending_prompt(prompt_id) if prompt_id else None
        if prompt is None:
            logger.warning("Waiting without a pending prompt", thought_id=short_id(current.id), waiting_for=short_id(prompt_id))
            return self._failed(ToolExecutionError(
                f"Tool suspended the thought without a pending prompt (waiting_for={prompt_id})"
            ))
        return ActionResult.waiting()
