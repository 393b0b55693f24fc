from flowmind.domain.models.term import Atom, Struct, Term, to_text
from flowmind.domain.models.thought import Thought
from flowmind.domain.tool.tool_interface import ToolContext, ToolOutput
from flowmind.domain.tool.tool_validator import ActionValidator
from .base_tool import BaseTool


class LLMTool(BaseTool):
    name = "LLMTool"
    description = "Interacts with the LLM: generate(prompt_key_or_text, context?), embed(text)."

    async def execute(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        operation = ActionValidator.operation(action)
        if operation == "generate":
            return await self._generate(action, context, trigger)
        if operation == "embed":
            return await self._embed(action, context)
        return self.fail("unsupported_operation", operation or "missing")

    async def _generate(self, action: Struct, context: ToolContext, trigger: Thought) -> ToolOutput:
        source = ActionValidator.arg(action, 1)
        if source is None:
            return self.fail("invalid_params", "Missing prompt")

        prompt = await render_prompt(self, source, ActionValidator.arg(action, 2), context, trigger)
        try:
            response = await context.llm.generate(prompt)
        except Exception as e:
            return self.fail("generation_failed", str(e))
        return Atom(response)

    async def _embed(self, action: Struct, context: ToolContext) -> ToolOutput:
        text = ActionValidator.arg(action, 1)
        if text is None:
            return self.fail("invalid_params", "Missing text")
        try:
            await context.llm.embed(to_text(text))
        except Exception as e:
            return self.fail("embedding_failed", str(e))
        return self.ok("embedded")


async def render_prompt(tool: BaseTool, source: Term, context_term, context: ToolContext, trigger: Thought) -> str:
    """A registered template key is formatted; anything else is literal text"""

    if isinstance(source, Atom) and context.prompts.has(source.name):
        values = await tool.extract_context_args(context_term, trigger, context)
        return context.prompts.format(source.name, values)
    return to_text(source)
