from typing import Dict, Mapping, Optional
import re

from flowmind.domain.errors import PromptTemplateNotFound


DEFAULT_PROMPTS: Dict[str, str] = {
    "GENERATE_GOAL": 'Input: "{input}". Define a specific, actionable GOAL based on this input. Output ONLY the goal text.',
    "GENERATE_STRATEGY": 'Goal: "{goal}". Outline 1-3 concrete STRATEGY steps to achieve this goal. Output each step on a new line, starting with "- ".',
    "GENERATE_OUTCOME": 'Strategy step "{strategy}" was attempted. Describe a likely concise OUTCOME. Output ONLY the outcome text.',
    "SUGGEST_GOAL": 'Based on the current context "{context}"{memoryContext}\n\nSuggest ONE concise, actionable next goal or task. Output only the suggested goal text.',
    "FALLBACK_ASK_USER": 'No rule found for thought {thoughtId} ({thoughtType}: "{thoughtContent}"). How should I proceed with this?',
    "HANDLE_FAILURE": 'Thought {failedThoughtId} ("{content}") failed with error: "{error}". How should I proceed? (Options: retry / abandon / edit_goal / provide_new_strategy / manual_fix)',
    "CONFIRM_GOAL": 'Goal generated: "{goal}". Is this correct, or should it be refined? Please respond.',
    "NEXT_TASK_PROMPT": 'Task "{taskContent}" ({taskId}) is complete. What would you like to work on next?',
    "SUMMARIZE_TASK_COMPLETION": "Task goal '{goalContent}' (ID: {goalId}) is complete. Based on its associated thoughts (Outcomes, Facts, Logs), provide a brief summary of what was accomplished and any key findings.",
}

_PLACEHOLDER = re.compile(r"\{[a-zA-Z0-9_]+\}")


class PromptLibrary:
    """Named prompt templates with {placeholder} substitution"""

    def __init__(self, templates: Optional[Mapping[str, str]] = None):
        self.templates: Dict[str, str] = dict(DEFAULT_PROMPTS)
        if templates:
            self.templates.update(templates)

    def register(self, key: str, template: str):
        self.templates[key] = template

    def has(self, key: str) -> bool:
        return key in self.templates

    def format(self, key: str, values: Optional[Mapping[str, object]] = None) -> str:
        """Fill a template; placeholders without a value are removed"""

        template = self.templates.get(key)
        if template is None:
            raise PromptTemplateNotFound(f"Prompt template not found: {key}", key=key)

        text = template
        for name, value in (values or {}).items():
            text = text.replace("{" + name + "}", "" if value is None else str(value))
        return _PLACEHOLDER.sub("", text)
