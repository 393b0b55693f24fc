"""
Pytest Configuration and Fixtures
"""

import random
from typing import List

import pytest

from flowmind.domain.context.memory.vector_memory_store import VectorMemoryStore
from flowmind.domain.context.prompts import PromptLibrary
from flowmind.domain.orchestration.core.engine import Engine
from flowmind.domain.store.rule_store import RuleStore
from flowmind.domain.store.thought_store import ThoughtStore
from flowmind.domain.tool.builtin import register_builtin_tools
from flowmind.domain.tool.tool_interface import ToolContext
from flowmind.domain.tool.tool_registry import ToolRegistry
from flowmind.infrastructure.config import FlowMindSettings
from flowmind.infrastructure.observability.logging import metrics


class ScriptedLLM:
    """Replays canned responses and records every prompt it sees"""

    def __init__(self, responses: List[str] = None, default: str = "ok"):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.responses:
            return self.responses.pop(0)
        return self.default

    async def embed(self, text: str) -> List[float]:
        return [float(len(text)), 1.0]


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def settings(tmp_path) -> FlowMindSettings:
    return FlowMindSettings(data_dir=tmp_path, save_debounce=0.05, worker_interval=0.05)


@pytest.fixture
def thoughts() -> ThoughtStore:
    return ThoughtStore()


@pytest.fixture
def rules() -> RuleStore:
    return RuleStore()


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def memory() -> VectorMemoryStore:
    return VectorMemoryStore()


@pytest.fixture
def registry() -> ToolRegistry:
    return register_builtin_tools(ToolRegistry())


@pytest.fixture
def context(thoughts, rules, registry, memory, llm, settings) -> ToolContext:
    return ToolContext(
        thoughts=thoughts,
        rules=rules,
        tools=registry,
        memory=memory,
        llm=llm,
        prompts=PromptLibrary(),
        settings=settings
    )


@pytest.fixture
def engine(thoughts, rules, registry, memory, llm, settings) -> Engine:
    return Engine(
        thoughts=thoughts,
        rules=rules,
        tools=registry,
        memory=memory,
        llm=llm,
        settings=settings,
        rng=random.Random(42)
    )
