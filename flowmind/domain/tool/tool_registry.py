from typing import Dict, List, Optional
import structlog

from .tool_interface import ToolInterface

logger = structlog.get_logger(__name__)


class ToolRegistry:
    """Registry for managing available tools, keyed by name"""

    def __init__(self):
        self.tools: Dict[str, ToolInterface] = {}

    def register_tool(self, tool: ToolInterface):
        """Register a tool, replacing any tool with the same name"""

        if tool.name in self.tools:
            logger.warning("Tool redefined", tool=tool.name)
        self.tools[tool.name] = tool

    def unregister_tool(self, name: str) -> bool:
        return self.tools.pop(name, None) is not None

    async def get_tool(self, name: str) -> Optional[ToolInterface]:
        return self.tools.get(name)

    async def get_available_tools(self) -> List[ToolInterface]:
        return list(self.tools.values())

    async def search_tools(self, query: str) -> List[ToolInterface]:
        """Search tools by name or description"""

        query_lower = query.lower()
        return [
            tool for tool in self.tools.values()
            if query_lower in tool.name.lower() or query_lower in tool.description.lower()
        ]
