from typing import TYPE_CHECKING, Optional, Protocol, Union, runtime_checkable

from flowmind.domain.context.language_model import LanguageModel
from flowmind.domain.context.memory.vector_memory_store import MemoryService
from flowmind.domain.context.prompts import PromptLibrary
from flowmind.domain.models.results import ToolResult
from flowmind.domain.models.term import Struct, Term
from flowmind.domain.models.thought import Thought
from flowmind.domain.store.rule_store import RuleStore
from flowmind.domain.store.thought_store import ThoughtStore

if TYPE_CHECKING:
    from flowmind.domain.orchestration.core.engine import Engine
    from flowmind.domain.tool.tool_registry import ToolRegistry
    from flowmind.infrastructure.config import FlowMindSettings

ToolOutput = Union[ToolResult, Term, None]


@runtime_checkable
class ToolInterface(Protocol):
    """A capability invoked through a bound action term.

    Return a `ToolResult` (or a bare Term/None for plain success). A tool
    may also settle the trigger itself by storing it as WAITING or FAILED.
    """
    name: str
    description: str

    async def execute(self, action: Struct, context: "ToolContext", trigger: Thought) -> ToolOutput:
        ...


class ToolContext:
    """Everything a tool may touch while executing"""

    def __init__(
        self,
        thoughts: ThoughtStore,
        rules: RuleStore,
        tools: "ToolRegistry",
        memory: MemoryService,
        llm: LanguageModel,
        prompts: PromptLibrary,
        engine: Optional["Engine"] = None,
        settings: Optional["FlowMindSettings"] = None
    ):
        self.thoughts = thoughts
        self.rules = rules
        self.tools = tools
        self.memory = memory
        self.llm = llm
        self.prompts = prompts
        self.engine = engine
        self.settings = settings

    async def add_thought(self, thought: Thought) -> Thought:
        """Enqueue a new thought, through the engine when one is attached"""

        if self.engine is not None:
            return await self.engine.add_thought(thought)
        return await self.thoughts.add(thought)
