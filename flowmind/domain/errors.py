from typing import Any


ERROR_MAX_LENGTH = 250


def truncate_message(message: str, limit: int = ERROR_MAX_LENGTH) -> str:
    return message if len(message) <= limit else message[:limit]


class FlowMindError(Exception):
    """Base error; `code` is stable and recorded alongside the message"""
    code = "flowmind_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class MalformedAction(FlowMindError):
    """Bound action is not a Struct naming a tool"""
    code = "malformed_action"


class ToolNotFound(FlowMindError):
    code = "tool_not_found"


class ToolExecutionError(FlowMindError):
    """Tool raised, returned a failure result, or marked its trigger failed"""
    code = "tool_execution_error"


class FallbackExhausted(FlowMindError):
    """No fallback behavior exists for the thought's category"""
    code = "fallback_exhausted"


class NoWaitingThought(FlowMindError):
    """A prompt was answered but nothing is suspended on it"""
    code = "no_waiting_thought"


class PromptTemplateNotFound(FlowMindError):
    code = "prompt_template_not_found"
