from flowmind.domain.tool.tool_registry import ToolRegistry
from .base_tool import BaseTool
from .context_summarizer import ContextSummarizer
from .core_tool import CoreTool
from .goal_proposal_tool import GoalProposalTool
from .llm_tool import LLMTool
from .memory_tool import MemoryTool
from .rule_manager import RuleManager
from .user_interaction_tool import UserInteractionTool


def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    for tool in (
        CoreTool(), MemoryTool(), LLMTool(), UserInteractionTool(),
        GoalProposalTool(), ContextSummarizer(), RuleManager()
    ):
        registry.register_tool(tool)
    return registry


__all__ = [
    "BaseTool",
    "ContextSummarizer",
    "CoreTool",
    "GoalProposalTool",
    "LLMTool",
    "MemoryTool",
    "RuleManager",
    "UserInteractionTool",
    "register_builtin_tools",
]
