from flowmind.domain.models.term import Atom, ListTerm, Struct, to_text
from flowmind.domain.models.thought import Thought, short_id, utc_now
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool

DEFAULT_SEARCH_LIMIT = 3


class MemoryTool(BaseTool):
    name = "MemoryTool"
    description = "Manages vector memory: add(content), search(query, k?)."

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        operation = ActionValidator.operation(action)
        if operation == "add":
            return await self._add(action, context, trigger)
        if operation == "search":
            return await self._search(action, context)
        return self.fail("unsupported_operation", operation or "missing")

    async def _add(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        content = ActionValidator.arg(action, 1)
        if content is None:
            return self.fail("missing_content")

        await context.memory.add(
            to_text(content),
            {"type": trigger.category.value, "source_id": trigger.id}
        )

        current = await context.thoughts.get(trigger.id)
        if current is not None:
            current.metadata.embedded_at = utc_now()
            await context.thoughts.update(current)
        return self.ok("memory_added", short_id(trigger.id))

    async def _search(self, action: Struct, context: ToolContext) -> ToolOutput:
        query = ActionValidator.arg(action, 1)
        if query is None:
            return self.fail("missing_query")

        k_text = ActionValidator.atom_arg(action, 2)
        limit = int(k_text) if k_text and k_text.isdigit() else DEFAULT_SEARCH_LIMIT
        results = await context.memory.search(to_text(query), limit)
        return self.ok("searched", value=ListTerm([Atom(entry.content) for entry in results]))
